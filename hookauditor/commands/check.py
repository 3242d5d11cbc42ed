"""Check hook call order and effect dependency lists."""

import json
import sys
from dataclasses import replace
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from hookauditor.analyzer import AnalysisResult, HooksAnalyzer
from hookauditor.config_runtime import HooksConfig, load_runtime_config
from hookauditor.pipeline.ui import console, print_header, print_success, print_warning, severity_markup
from hookauditor.rules.base import ViolationKind
from hookauditor.utils.error_handler import handle_exceptions
from hookauditor.utils.exit_codes import ExitCodes
from hookauditor.utils.logging import configure_file_logging, get_request_id, logger


def _exit_code(result: AnalysisResult, fail_on_findings: bool) -> int:
    parse_errors = any(d.kind is ViolationKind.PARSE_ERROR for d in result.diagnostics)
    findings = any(d.kind is not ViolationKind.PARSE_ERROR for d in result.diagnostics)
    if findings and fail_on_findings:
        return ExitCodes.VIOLATIONS
    if parse_errors or result.errors:
        return ExitCodes.ERRORS
    return ExitCodes.SUCCESS


def _render_table(result: AnalysisResult, max_rows: int) -> None:
    print_header("HOOK FINDINGS")
    table = Table(show_lines=False)
    table.add_column("Location", style="path", no_wrap=True)
    table.add_column("Kind", style="cmd")
    table.add_column("Severity")
    table.add_column("Message")

    for diagnostic in result.diagnostics[:max_rows]:
        table.add_row(
            f"{diagnostic.file_path}:{diagnostic.line}:{diagnostic.column}",
            diagnostic.kind.value,
            severity_markup(diagnostic.severity.value),
            escape(diagnostic.message),
        )
    console.print(table)

    hidden = len(result.diagnostics) - max_rows
    if hidden > 0:
        console.print(f"[dim]... {hidden} more finding(s) not shown (report.max_rows={max_rows})[/dim]")

    summary = ", ".join(f"{kind}: {count}" for kind, count in sorted(result.by_kind().items()))
    console.print(f"\n{len(result.diagnostics)} finding(s) in {result.files_analyzed} file(s) ({summary})")


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print findings as JSON")
@click.option("--output", type=click.Path(), help="Also write the JSON report to this file")
@click.option("--workers", type=int, help="Parallel file workers (default from config)")
@click.option("--additional-hooks", help="Regex of extra effect-like hooks to validate")
@click.option("--log-dir", type=click.Path(file_okay=False), help="Keep a rotating debug log in this directory")
@click.option(
    "--fail-on-findings/--no-fail",
    default=True,
    help="Exit with code 1 when findings exist (default: fail)",
)
@handle_exceptions
def check(paths, as_json, output, workers, additional_hooks, log_dir, fail_on_findings):
    """Check hook placement and effect dependency lists.

    Every function in the given files and directories is classified as a
    component, a custom hook or neither. Hook calls are verified to run
    unconditionally and in a stable order, and the dependency lists of
    effect-like hooks are compared against what their callbacks read.

    \b
    EXAMPLES:
      hookaud check src/
      hookaud check src/App.jsx --json
      hookaud check src/ --additional-hooks "^useAsyncEffect$"
      hookaud check src/ --no-fail --output findings.json

    \b
    EXIT CODES:
      0  No findings
      1  Findings reported
      2  Files that could not be parsed or analyzed
    """
    log_handler = configure_file_logging(Path(log_dir)) if log_dir else None
    try:
        cfg = load_runtime_config(".")
        hooks_config = HooksConfig.from_runtime(cfg)
        if additional_hooks:
            hooks_config = replace(hooks_config, additional_hooks=additional_hooks)

        analyzer = HooksAnalyzer(
            hooks_config,
            workers=workers or cfg["analysis"]["workers"],
            extensions=cfg["analysis"]["extensions"],
            exclude=cfg["analysis"]["exclude"],
        )
        result = analyzer.analyze_paths(paths)
        logger.info(f"{len(result.diagnostics)} finding(s), {len(result.errors)} error(s)")
    finally:
        if log_handler is not None:
            logger.remove(log_handler)

    report = result.to_dict()
    report["request_id"] = get_request_id()
    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")

    if as_json:
        click.echo(json.dumps(report, indent=2))
    elif result.diagnostics:
        _render_table(result, cfg["report"]["max_rows"])
    else:
        print_success(f"No hook findings in {result.files_analyzed} file(s)")

    if result.errors and not as_json:
        for error in result.errors:
            print_warning(f"{error['file']}: {error.get('unit') or ''} {escape(error['error'])}")

    sys.exit(_exit_code(result, fail_on_findings))
