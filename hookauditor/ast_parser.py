"""JavaScript/JSX parser producing ESTree dicts via esprima."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import esprima

from hookauditor.utils.logging import logger

PARSE_OPTIONS = {"jsx": True, "loc": True, "range": True, "tolerant": False}


class JSParseError(ValueError):
    """Raised when a file cannot be parsed as module or script."""

    def __init__(self, file_path: str, message: str, line: int = 0, column: int = 0):
        super().__init__(f"{file_path}:{line}:{column}: {message}")
        self.file_path = file_path
        self.line = line
        self.column = column
        self.reason = message


@dataclass
class ParsedFile:
    """A parsed source file ready for analysis."""

    file_path: str
    source: str
    tree: dict[str, Any]
    source_type: str


class JSParser:
    """Parse JavaScript with esprima, falling back from module to script goal.

    Module goal is tried first because component files almost always use
    ``import``/``export``; sloppy-mode constructs such as ``with`` only parse
    under the script goal.
    """

    def __init__(self, options: dict[str, Any] | None = None):
        self.options = dict(PARSE_OPTIONS)
        if options:
            self.options.update(options)

    def parse(self, source: str, file_path: str = "<memory>") -> ParsedFile:
        try:
            tree = esprima.parseModule(source, self.options)
            source_type = "module"
        except Exception as module_error:
            logger.debug(f"Module parse failed for {file_path}, retrying as script: {module_error}")
            try:
                tree = esprima.parseScript(source, self.options)
                source_type = "script"
            except Exception as script_error:
                raise JSParseError(
                    file_path,
                    getattr(module_error, "description", None) or str(module_error),
                    getattr(module_error, "lineNumber", 0) or 0,
                    getattr(module_error, "column", 0) or 0,
                ) from script_error

        return ParsedFile(
            file_path=file_path,
            source=source,
            tree=tree.toDict(),
            source_type=source_type,
        )

    def parse_file(self, path: Path) -> ParsedFile:
        source = Path(path).read_text(encoding="utf-8", errors="replace")
        return self.parse(source, str(path))


def parse_js(source: str) -> dict[str, Any]:
    """Convenience wrapper returning only the Program dict."""
    return JSParser().parse(source).tree
