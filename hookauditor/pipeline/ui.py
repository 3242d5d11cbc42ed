"""Shared rich console for hookaud output.

Import ``console`` and the print helpers instead of creating a Console in
each command, so theme and styling stay consistent:

    from hookauditor.pipeline.ui import console, print_header

    print_header("HOOK FINDINGS")
    console.print(f"[high]{count}[/high] conditional hook call(s)")
"""

import sys

from rich.console import Console
from rich.theme import Theme

# Severity styles double as markup tags: [high]...[/high]
HOOKAUDITOR_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "high": "bold red",
    "medium": "bold yellow",
    "low": "cyan",
    "cmd": "bold magenta",
    "path": "bold cyan",
    "dim": "dim white",
})

console = Console(
    theme=HOOKAUDITOR_THEME,
    force_terminal=sys.stdout.isatty()
)


def severity_markup(severity: str) -> str:
    """Wrap a severity name in its theme style."""
    return f"[{severity}]{severity}[/{severity}]"


def print_header(title: str) -> None:
    """Section header; ASCII rule so output survives CP1252 consoles."""
    console.rule(f"[bold]{title}[/bold]", characters="-")


def print_error(msg: str) -> None:
    console.print(f"[error]ERROR:[/error] {msg}")


def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {msg}")


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {msg}")
