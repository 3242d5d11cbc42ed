"""Hook analysis driver: parse, discover units, run both rules, merge results."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hookauditor.ast_parser import JSParseError, JSParser
from hookauditor.config_runtime import HooksConfig
from hookauditor.graph.cf_graph_js import CFG, CFGBuilderJS
from hookauditor.rules.base import Diagnostic, ViolationKind
from hookauditor.rules.hooks.call_sites import collect_hook_sites
from hookauditor.rules.hooks.exhaustive_deps import ExhaustiveDepsAnalyzer
from hookauditor.rules.hooks.function_units import FunctionUnit, discover_units
from hookauditor.rules.hooks.hook_registry import HookRegistry
from hookauditor.rules.hooks.rules_of_hooks import RulesOfHooksVerifier
from hookauditor.scope_manager import ScopeManager
from hookauditor.utils.constants import DEFAULT_EXCLUDE_DIRS, DEFAULT_EXTENSIONS
from hookauditor.utils.logging import logger


@dataclass
class AnalysisResult:
    """Diagnostics and per-unit errors for one or more files."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    files_analyzed: int = 0
    units_analyzed: int = 0

    @property
    def has_findings(self) -> bool:
        return bool(self.diagnostics)

    def merge(self, other: "AnalysisResult") -> None:
        self.diagnostics.extend(other.diagnostics)
        self.errors.extend(other.errors)
        self.files_analyzed += other.files_analyzed
        self.units_analyzed += other.units_analyzed

    def sort(self) -> None:
        self.diagnostics.sort(key=lambda d: d.sort_key())

    def by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for diagnostic in self.diagnostics:
            counts[diagnostic.kind.value] = counts.get(diagnostic.kind.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_analyzed": self.files_analyzed,
            "units_analyzed": self.units_analyzed,
            "summary": self.by_kind(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "errors": list(self.errors),
        }


class HooksAnalyzer:
    """Runs the call-order verifier and the dependency analyzer over source files."""

    def __init__(
        self,
        config: HooksConfig | None = None,
        workers: int = 4,
        extensions=DEFAULT_EXTENSIONS,
        exclude=DEFAULT_EXCLUDE_DIRS,
    ):
        self.config = config or HooksConfig()
        self.registry = HookRegistry.from_config(self.config)
        self.verifier = RulesOfHooksVerifier()
        self.deps = ExhaustiveDepsAnalyzer(self.registry)
        self.parser = JSParser()
        self.workers = max(1, workers)
        self.extensions = tuple(extensions)
        self.exclude = frozenset(exclude)

    # ---- single inputs -------------------------------------------------

    def analyze_source(self, source: str, file_path: str = "<memory>") -> AnalysisResult:
        try:
            parsed = self.parser.parse(source, file_path)
        except JSParseError as e:
            logger.info(f"Skipping {file_path}: {e.reason}")
            result = AnalysisResult(files_analyzed=1)
            result.diagnostics.append(
                Diagnostic(
                    kind=ViolationKind.PARSE_ERROR,
                    rule="parser",
                    message=f"Could not parse file: {e.reason}",
                    line=e.line,
                    column=e.column,
                    file_path=file_path,
                )
            )
            return result
        return self.analyze_tree(parsed.tree, file_path)

    def analyze_file(self, path: Path) -> AnalysisResult:
        path = Path(path)
        try:
            source = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return AnalysisResult(errors=[{"file": str(path), "unit": None, "error": str(e)}])
        return self.analyze_source(source, str(path))

    def analyze_tree(self, program: dict[str, Any], file_path: str = "<memory>") -> AnalysisResult:
        """Analyze an ESTree Program dict produced by any compatible parser."""
        result = AnalysisResult(files_analyzed=1)
        scopes = ScopeManager(program)
        for unit in discover_units(program, scopes, self.registry):
            try:
                diagnostics = self.analyze_unit(unit, scopes)
            except Exception as e:
                logger.bind(file=file_path, unit=unit.display_name).opt(exception=True).warning(
                    f"Analysis of {unit.display_name} in {file_path} failed: {e}"
                )
                result.errors.append(
                    {
                        "file": file_path,
                        "unit": unit.display_name,
                        "line": unit.location[0],
                        "error": f"{type(e).__name__}: {e}",
                    }
                )
                continue
            for diagnostic in diagnostics:
                diagnostic.file_path = file_path
            result.diagnostics.extend(diagnostics)
            result.units_analyzed += 1
        result.sort()
        return result

    def analyze_unit(self, unit: FunctionUnit, scopes: ScopeManager) -> list[Diagnostic]:
        cfg = self.build_cfg(unit)
        sites = collect_hook_sites(cfg, scopes, self.registry)
        if not sites:
            return []
        logger.debug(f"{unit!r}: {len(sites)} hook call(s)")
        diagnostics = self.verifier.verify(unit, cfg, sites)
        diagnostics.extend(self.deps.analyze(unit, sites, scopes))
        return diagnostics

    def build_cfg(self, unit: FunctionUnit) -> CFG:
        return CFGBuilderJS().build(unit.display_name, unit.node)

    # ---- many files ------------------------------------------------------

    def collect_files(self, paths) -> list[Path]:
        files: list[Path] = []
        seen: set[Path] = set()
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                candidates = sorted(p for p in path.rglob("*") if p.is_file())
            else:
                candidates = [path]
            for candidate in candidates:
                if path.is_dir():
                    if candidate.suffix not in self.extensions:
                        continue
                    # Only directories below the walked root are matched against excludes
                    if any(part in self.exclude for part in candidate.relative_to(path).parts):
                        continue
                if candidate not in seen:
                    seen.add(candidate)
                    files.append(candidate)
        return files

    def analyze_paths(self, paths) -> AnalysisResult:
        """Analyze files and directories in parallel; results are merged per file."""
        files = self.collect_files(paths)
        logger.info(f"Analyzing {len(files)} file(s) with {self.workers} worker(s)")
        result = AnalysisResult()

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {executor.submit(self.analyze_file, f): f for f in files}

            for future in as_completed(futures):
                try:
                    result.merge(future.result())
                except Exception as e:
                    logger.opt(exception=True).warning(f"Worker error on {futures[future]}: {e}")
                    result.errors.append({"file": str(futures[future]), "unit": None, "error": str(e)})

        result.sort()
        return result
