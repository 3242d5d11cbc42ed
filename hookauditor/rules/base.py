"""Base contracts for hook rule findings."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(Enum):
    """Standardized severity levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Confidence(Enum):
    """Confidence in finding accuracy."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ViolationKind(str, Enum):
    """Every diagnostic kind the hook rules can emit."""

    # Call-order verifier
    LOOP_CALL = "loop-call"
    CONDITIONAL_CALL = "conditional-call"
    ORDER_MISMATCH = "order-mismatch"
    INVALID_HOST = "invalid-host"
    ASYNC_HOST = "async-host"

    # Dependency-closure analyzer
    MISSING_DEPENDENCY = "missing-dependency"
    UNNECESSARY_DEPENDENCY = "unnecessary-dependency"
    MISSING_DEPENDENCY_ARRAY = "missing-dependency-array"
    COMPLEX_DEPENDENCY = "complex-dependency"
    NON_ARRAY_DEPENDENCIES = "non-array-dependencies"
    UNKNOWN_CALLBACK = "unknown-callback"
    ASYNC_EFFECT = "async-effect"
    MEMO_WITHOUT_DEPENDENCIES = "memo-without-dependencies"
    SETTER_WITHOUT_DEPENDENCIES = "setter-without-dependencies"
    STALE_ASSIGNMENT = "stale-assignment"

    # Host
    PARSE_ERROR = "parse-error"


RULES_OF_HOOKS = "rules-of-hooks"
EXHAUSTIVE_DEPS = "exhaustive-deps"

# Default severity per kind; structural violations break state association
KIND_SEVERITY: dict[ViolationKind, Severity] = {
    ViolationKind.LOOP_CALL: Severity.HIGH,
    ViolationKind.CONDITIONAL_CALL: Severity.HIGH,
    ViolationKind.ORDER_MISMATCH: Severity.HIGH,
    ViolationKind.INVALID_HOST: Severity.HIGH,
    ViolationKind.ASYNC_HOST: Severity.HIGH,
    ViolationKind.MISSING_DEPENDENCY: Severity.MEDIUM,
    ViolationKind.UNNECESSARY_DEPENDENCY: Severity.LOW,
    ViolationKind.MISSING_DEPENDENCY_ARRAY: Severity.MEDIUM,
    ViolationKind.COMPLEX_DEPENDENCY: Severity.LOW,
    ViolationKind.NON_ARRAY_DEPENDENCIES: Severity.MEDIUM,
    ViolationKind.UNKNOWN_CALLBACK: Severity.LOW,
    ViolationKind.ASYNC_EFFECT: Severity.MEDIUM,
    ViolationKind.MEMO_WITHOUT_DEPENDENCIES: Severity.MEDIUM,
    ViolationKind.SETTER_WITHOUT_DEPENDENCIES: Severity.HIGH,
    ViolationKind.STALE_ASSIGNMENT: Severity.MEDIUM,
    ViolationKind.PARSE_ERROR: Severity.HIGH,
}


@dataclass
class DependencySuggestion:
    """A corrected dependency list and the source range it replaces."""

    dependencies: list[str]
    text: str
    range: tuple[int, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dependencies": list(self.dependencies),
            "text": self.text,
            "range": list(self.range) if self.range else None,
        }


@dataclass
class Diagnostic:
    """Standardized output from the hook rules."""

    kind: ViolationKind
    rule: str
    message: str
    line: int

    column: int = 0
    end_line: int = 0
    end_column: int = 0
    file_path: str = ""
    severity: Severity | None = None
    confidence: Confidence = Confidence.HIGH
    data: dict[str, Any] = field(default_factory=dict)
    suggestion: DependencySuggestion | None = None

    def __post_init__(self):
        if self.severity is None:
            self.severity = KIND_SEVERITY.get(self.kind, Severity.MEDIUM)

    def sort_key(self) -> tuple:
        return (self.file_path, self.line, self.column, self.kind.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "kind": self.kind.value,
            "rule": self.rule,
            "message": self.message,
            "file": self.file_path,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
        }
        if self.data:
            result["data"] = self.data
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion.to_dict()
        return result


@dataclass
class RuleMetadata:
    """Metadata describing a rule for listings and filtering."""

    name: str
    category: str
    kinds: tuple[ViolationKind, ...] = ()
    target_extensions: list[str] | None = None
