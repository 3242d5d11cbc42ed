"""Discovery of function units and their host classification."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hookauditor.js_ast import (
    FUNCTION_TYPES,
    MEMBER_TYPES,
    is_async,
    node_location,
    node_type,
    returns_jsx,
    walk,
)
from hookauditor.rules.hooks.hook_registry import HookRegistry, is_component_name
from hookauditor.scope_manager import ScopeManager


class HostKind(str, Enum):
    COMPONENT = "component"
    HELPER = "helper"
    NONE = "none"


@dataclass(eq=False)
class FunctionUnit:
    """A function body (or the Program) analyzed on its own."""

    node: dict[str, Any]
    name: str | None
    kind: HostKind
    is_async: bool = False
    in_class: bool = False
    is_program: bool = False
    parent: "FunctionUnit | None" = None
    children: list["FunctionUnit"] = field(default_factory=list)

    @property
    def is_host(self) -> bool:
        return self.kind is not HostKind.NONE

    @property
    def enclosing_host(self) -> "FunctionUnit | None":
        unit = self.parent
        while unit is not None:
            if unit.is_host:
                return unit
            unit = unit.parent
        return None

    @property
    def display_name(self) -> str:
        if self.is_program:
            return "<module>"
        return self.name or "<anonymous>"

    @property
    def location(self) -> tuple[int, int, int, int]:
        return node_location(self.node)

    def __repr__(self) -> str:
        return f"<FunctionUnit {self.display_name} {self.kind.value} line={self.location[0]}>"


def _key_name(key: dict[str, Any] | None) -> str | None:
    if node_type(key) == "Identifier":
        return key.get("name")
    if node_type(key) == "Literal" and isinstance(key.get("value"), str):
        return key["value"]
    return None


def function_name(func: dict[str, Any], scopes: ScopeManager) -> tuple[str | None, bool]:
    """Name a function the way a reader would, plus whether it is a class member.

    ``function Foo() {}``, ``const Foo = () => {}``, ``Foo = function () {}``,
    ``obj.Foo = () => {}``, ``{Foo: () => {}}``, ``class A { Foo() {} }`` and
    ``({Foo = () => {}})`` all name the function ``Foo``.
    """
    if func.get("id") and node_type(func) in ("FunctionDeclaration", "FunctionExpression"):
        return func["id"].get("name"), False

    parent = scopes.parent(func)
    kind = node_type(parent)
    if kind == "VariableDeclarator" and parent.get("init") is func:
        target = parent.get("id")
        return (target.get("name") if node_type(target) == "Identifier" else None), False
    if kind == "AssignmentExpression" and parent.get("right") is func:
        left = parent.get("left") or {}
        if node_type(left) == "Identifier":
            return left.get("name"), False
        if node_type(left) in MEMBER_TYPES and not left.get("computed"):
            return _key_name(left.get("property")), False
        return None, False
    if kind == "Property" and parent.get("value") is func and not parent.get("computed"):
        return _key_name(parent.get("key")), False
    if kind in ("MethodDefinition", "PropertyDefinition", "ClassProperty") and parent.get("value") is func:
        name = None if parent.get("computed") else _key_name(parent.get("key"))
        return name, True
    if kind == "AssignmentPattern" and parent.get("right") is func:
        left = parent.get("left")
        return (left.get("name") if node_type(left) == "Identifier" else None), False
    return None, False


def _host_kind(
    func: dict[str, Any],
    name: str | None,
    in_class: bool,
    parent_unit: FunctionUnit | None,
    registry: HookRegistry,
    scopes: ScopeManager,
) -> HostKind:
    if in_class:
        return HostKind.NONE
    if name is not None:
        if registry.is_hook_name(name):
            return HostKind.HELPER
        if is_component_name(name):
            return HostKind.COMPONENT
        return HostKind.NONE

    parent = scopes.parent(func)
    if node_type(parent) in ("CallExpression", "OptionalCallExpression") and any(
        arg is func for arg in parent.get("arguments") or []
    ):
        if registry.wrapper_name(parent):
            return HostKind.COMPONENT
    # Only top-level anonymous functions qualify; nested ones are render callbacks
    if (parent_unit is None or parent_unit.is_program) and returns_jsx(func):
        return HostKind.COMPONENT
    return HostKind.NONE


def discover_units(program: dict[str, Any], scopes: ScopeManager, registry: HookRegistry) -> list[FunctionUnit]:
    """All function units of a Program, outer before inner, Program first."""
    root = FunctionUnit(node=program, name=None, kind=HostKind.NONE, is_program=True)
    units = [root]
    owner: dict[int, FunctionUnit] = {id(program): root}

    for node in walk(program):
        if node_type(node) not in FUNCTION_TYPES:
            continue
        parent_unit = _enclosing_unit(node, scopes, owner) or root
        name, in_class = function_name(node, scopes)
        unit = FunctionUnit(
            node=node,
            name=name,
            kind=_host_kind(node, name, in_class, parent_unit, registry, scopes),
            is_async=is_async(node),
            in_class=in_class,
            parent=parent_unit,
        )
        parent_unit.children.append(unit)
        owner[id(node)] = unit
        units.append(unit)
    return units


def _enclosing_unit(node, scopes: ScopeManager, owner: dict[int, FunctionUnit]) -> FunctionUnit | None:
    current = scopes.parent(node)
    while current is not None:
        unit = owner.get(id(current))
        if unit is not None:
            return unit
        current = scopes.parent(current)
    return None
