"""Helpers for ESTree-shaped JavaScript ASTs stored as plain dicts.

Every analysis in hookauditor works on the dict form produced by
``hookauditor.ast_parser`` (or by any ESTree-compatible host). Nodes are
compared by identity, never by equality, because two structurally equal
subtrees at different locations are different program points.
"""

from collections.abc import Iterator
from typing import Any

FUNCTION_TYPES = frozenset(
    ["FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"]
)

CLASS_TYPES = frozenset(["ClassDeclaration", "ClassExpression"])

MEMBER_TYPES = frozenset(["MemberExpression", "OptionalMemberExpression"])

CALL_TYPES = frozenset(["CallExpression", "OptionalCallExpression", "NewExpression"])

# Keys that never hold child nodes
_NON_CHILD_KEYS = frozenset(
    [
        "type",
        "loc",
        "range",
        "start",
        "end",
        "raw",
        "regex",
        "leadingComments",
        "trailingComments",
        "innerComments",
        "comments",
        "tokens",
        "errors",
    ]
)

# Wrappers that only carry type information around an expression
TRANSPARENT_WRAPPERS = frozenset(
    [
        "TSAsExpression",
        "TSNonNullExpression",
        "TSTypeAssertion",
        "TSSatisfiesExpression",
        "ParenthesizedExpression",
        "TypeCastExpression",
    ]
)


def is_node(value: Any) -> bool:
    """Return True for an ESTree node dict."""
    return isinstance(value, dict) and isinstance(value.get("type"), str)


def node_type(node: Any) -> str | None:
    return node.get("type") if isinstance(node, dict) else None


def is_function(node: Any) -> bool:
    return node_type(node) in FUNCTION_TYPES


def is_async(node: dict[str, Any]) -> bool:
    """esprima's Python port stores the async flag as ``isAsync``."""
    return bool(node.get("async") or node.get("isAsync"))


def iter_child_nodes(node: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield direct child nodes in source key order."""
    for key, value in node.items():
        if key in _NON_CHILD_KEYS:
            continue
        if is_node(value):
            yield value
        elif isinstance(value, list):
            for item in value:
                if is_node(item):
                    yield item


def walk(node: dict[str, Any], skip_functions: bool = False) -> Iterator[dict[str, Any]]:
    """Pre-order traversal.

    With ``skip_functions`` the walk does not descend into nested function
    or class bodies (the root itself is always expanded).
    """
    stack = [node]
    root = node
    while stack:
        current = stack.pop()
        yield current
        if skip_functions and current is not root:
            if node_type(current) in FUNCTION_TYPES or node_type(current) in CLASS_TYPES:
                continue
        children = list(iter_child_nodes(current))
        stack.extend(reversed(children))


def build_parent_map(root: dict[str, Any]) -> dict[int, dict[str, Any]]:
    """Map ``id(child)`` to its parent node for the whole tree."""
    parents: dict[int, dict[str, Any]] = {}
    stack = [root]
    while stack:
        current = stack.pop()
        for child in iter_child_nodes(current):
            parents[id(child)] = current
            stack.append(child)
    return parents


def node_location(node: dict[str, Any] | None) -> tuple[int, int, int, int]:
    """Return ``(line, column, end_line, end_column)``; zeros when unknown."""
    if not node:
        return (0, 0, 0, 0)
    loc = node.get("loc") or {}
    start = loc.get("start") or {}
    end = loc.get("end") or {}
    return (
        start.get("line", 0) or 0,
        start.get("column", 0) or 0,
        end.get("line", 0) or 0,
        end.get("column", 0) or 0,
    )


def node_range(node: dict[str, Any] | None) -> tuple[int, int] | None:
    if not node:
        return None
    rng = node.get("range")
    if isinstance(rng, (list, tuple)) and len(rng) == 2:
        return (rng[0], rng[1])
    return None


def unwrap(node: dict[str, Any] | None) -> dict[str, Any] | None:
    """Strip type-only wrappers such as ``x as T`` and ``x!``."""
    while node is not None and node_type(node) in TRANSPARENT_WRAPPERS:
        node = node.get("expression")
    return node


def member_path(node: dict[str, Any] | None) -> str | None:
    """Dotted path for ``a`` / ``a.b.c`` / ``a?.b``; None for anything else."""
    node = unwrap(node)
    if node is None:
        return None
    kind = node_type(node)
    if kind == "Identifier":
        return node.get("name")
    if kind == "ChainExpression":
        return member_path(node.get("expression"))
    if kind in MEMBER_TYPES and not node.get("computed"):
        base = member_path(node.get("object"))
        prop = node.get("property") or {}
        if base is None or node_type(prop) != "Identifier":
            return None
        return f"{base}.{prop.get('name')}"
    return None


def root_identifier(node: dict[str, Any] | None) -> dict[str, Any] | None:
    """The identifier a member chain is rooted at."""
    node = unwrap(node)
    while node is not None:
        kind = node_type(node)
        if kind == "Identifier":
            return node
        if kind == "ChainExpression":
            node = unwrap(node.get("expression"))
        elif kind in MEMBER_TYPES:
            node = unwrap(node.get("object"))
        else:
            return None
    return None


def contains_jsx(node: dict[str, Any] | None) -> bool:
    if not node or is_function(node):
        return False
    return any(node_type(n) in ("JSXElement", "JSXFragment") for n in walk(node, skip_functions=True))


def returns_jsx(func: dict[str, Any]) -> bool:
    """True when a function's own return values include JSX."""
    body = func.get("body")
    if not body:
        return False
    if node_type(body) != "BlockStatement":
        return contains_jsx(body)
    for node in walk(body, skip_functions=True):
        if node_type(node) == "ReturnStatement" and contains_jsx(node.get("argument")):
            return True
    return False


def source_text(node: dict[str, Any], source: str | None) -> str | None:
    rng = node_range(node)
    if rng is None or source is None:
        return None
    return source[rng[0] : rng[1]]
