"""hookauditor CLI - Main entry point and command registration hub."""
# ruff: noqa: E402 - Intentional lazy loading: commands imported after cli group definition

import click
from rich.table import Table

from hookauditor import __version__
from hookauditor.pipeline.ui import console


class VerboseGroup(click.Group):
    """Help system that lists registered commands by category."""

    def format_commands(self, ctx, formatter):
        """Override to suppress default command listing (we use categorized format in format_help)."""
        pass

    COMMAND_CATEGORIES = {
        "ANALYSIS": {
            "title": "ANALYSIS",
            "description": "Hook placement and dependency list checks",
            "commands": ["check"],
        },
        "INSPECTION": {
            "title": "INSPECTION",
            "description": "Look at the graphs the checks are computed on",
            "commands": ["cfg"],
        },
    }

    def format_help(self, ctx, formatter):
        """Generate Rich-styled categorized help."""
        super().format_help(ctx, formatter)

        registered = {
            name: cmd
            for name, cmd in self.commands.items()
            if not name.startswith("_") and not getattr(cmd, "hidden", False)
        }

        console.print()
        console.rule("[bold]COMMANDS[/bold]", characters="-")

        for category_data in self.COMMAND_CATEGORIES.values():
            console.print(f"\n[bold cyan]{category_data['title']}[/bold cyan]")
            console.print(f"[dim]{category_data['description']}[/dim]")

            table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
            table.add_column("Command", style="cmd", width=12)
            table.add_column("Description", style="white")

            for cmd_name in category_data["commands"]:
                if cmd_name not in registered:
                    continue
                first_line = (registered[cmd_name].help or "").split("\n")[0].strip()
                table.add_row(cmd_name, first_line)

            console.print(table)

        console.print()
        console.rule(characters="-")
        console.print("For detailed options: [cmd]hookaud <command> --help[/cmd]")


@click.group(cls=VerboseGroup)
@click.version_option(version=__version__, prog_name="hookaud")
@click.help_option("-h", "--help")
def cli():
    """hookauditor - Static checks for hook call order and effect dependencies

    \b
    QUICK START:
      hookaud check src/              # Check every component file
      hookaud check src/ --json       # Machine-readable findings
      hookaud cfg App.jsx -f App      # Inspect one function's CFG"""
    pass


from hookauditor.commands.cfg import cfg
from hookauditor.commands.check import check

cli.add_command(check)
cli.add_command(cfg)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
