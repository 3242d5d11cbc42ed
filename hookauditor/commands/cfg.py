"""Control Flow Graph inspection command."""

import json
import sys

import click
from rich.table import Table

from hookauditor.ast_parser import JSParseError, JSParser
from hookauditor.config_runtime import HooksConfig, load_runtime_config
from hookauditor.graph.cf_graph_js import CFGBuilderJS
from hookauditor.graph.dominators import DominatorTree, loop_blocks
from hookauditor.pipeline.ui import console, print_error, print_header
from hookauditor.rules.hooks.function_units import discover_units
from hookauditor.rules.hooks.hook_registry import HookRegistry
from hookauditor.scope_manager import ScopeManager
from hookauditor.utils.error_handler import handle_exceptions
from hookauditor.utils.exit_codes import ExitCodes


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--function", "-f", "function_name", required=True, help="Function to build the CFG for")
@click.option("--json", "as_json", is_flag=True, help="Print the CFG as JSON")
@handle_exceptions
def cfg(file, function_name, as_json):
    """Print the control flow graph of one function.

    Shows every basic block with its type, source lines and hook-relevant
    calls, the tagged edges between blocks, which blocks sit in a loop and
    any regions that were approximated.

    \b
    EXAMPLES:
      hookaud cfg src/App.jsx --function App
      hookaud cfg src/useData.js -f useData --json
    """
    try:
        parsed = JSParser().parse_file(file)
    except JSParseError as e:
        print_error(str(e))
        sys.exit(ExitCodes.ERRORS)

    registry = HookRegistry.from_config(HooksConfig.from_runtime(load_runtime_config(".")))
    scopes = ScopeManager(parsed.tree)
    units = [u for u in discover_units(parsed.tree, scopes, registry) if u.name == function_name]
    if not units:
        print_error(f"Function '{function_name}' not found in {file}")
        sys.exit(ExitCodes.TASK_INCOMPLETE)

    unit = units[0]
    graph = CFGBuilderJS().build(function_name, unit.node)
    cyclic = loop_blocks(graph, DominatorTree(graph)) | graph.loop_body_blocks

    if as_json:
        data = graph.to_dict()
        data["host_kind"] = unit.kind.value
        data["loop_blocks"] = sorted(cyclic)
        click.echo(json.dumps(data, indent=2))
        return

    print_header(f"CFG {function_name} ({unit.kind.value})")
    table = Table()
    table.add_column("Block", justify="right")
    table.add_column("Type", style="cmd")
    table.add_column("Lines")
    table.add_column("Calls", justify="right")
    table.add_column("Successors")
    for node_id in sorted(graph.nodes):
        node = graph.nodes[node_id]
        lines = sorted({s.get("loc", {}).get("start", {}).get("line", 0) for s in node.statements} - {0})
        successors = ", ".join(
            f"{succ}({'/'.join(sorted(k.value for k in graph.edge_kinds(node_id, succ)))})"
            for succ in sorted(node.successors)
        )
        marker = " *" if node_id in cyclic else ""
        table.add_row(f"{node_id}{marker}", node.type, ",".join(map(str, lines)), str(len(node.calls)), successors)
    console.print(table)
    console.print("[dim]* block lies on a cycle or inside a loop body[/dim]")

    for approx in graph.approximations:
        console.print(f"[warning]approximated[/warning] {approx['type']} at line {approx['line']}: {approx['reason']}")
