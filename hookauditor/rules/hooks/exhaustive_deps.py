"""Dependency-list validation for effect-like hooks.

For every effect-like call whose callback is a function literal, the free
variables of the callback are resolved through the scope manager. Bindings
that live in the component's own scopes are required dependencies unless a
stability predicate proves they never change between renders. The required
set is diffed against the declared array literal and every mismatch carries a
corrected list.

Dependencies are compared as dotted paths (``props.user.id``). The path of a
reference climbs non-computed member accesses and stops before ``.current``,
before the property of a method call and at an assignment target.
"""

from dataclasses import dataclass
from typing import Any

from hookauditor.js_ast import (
    CALL_TYPES,
    FUNCTION_TYPES,
    MEMBER_TYPES,
    is_async,
    member_path,
    node_location,
    node_range,
    node_type,
    root_identifier,
    unwrap,
    walk,
)
from hookauditor.rules.base import (
    EXHAUSTIVE_DEPS,
    DependencySuggestion,
    Diagnostic,
    RuleMetadata,
    ViolationKind,
)
from hookauditor.rules.hooks.call_sites import HookCallSite
from hookauditor.rules.hooks.function_units import FunctionUnit
from hookauditor.rules.hooks.hook_registry import HookKind, HookRegistry
from hookauditor.scope_manager import Binding, Scope, ScopeManager
from hookauditor.utils.logging import logger

METADATA = RuleMetadata(
    name=EXHAUSTIVE_DEPS,
    category="correctness",
    kinds=(
        ViolationKind.MISSING_DEPENDENCY,
        ViolationKind.UNNECESSARY_DEPENDENCY,
        ViolationKind.MISSING_DEPENDENCY_ARRAY,
        ViolationKind.COMPLEX_DEPENDENCY,
        ViolationKind.NON_ARRAY_DEPENDENCIES,
        ViolationKind.UNKNOWN_CALLBACK,
        ViolationKind.ASYNC_EFFECT,
        ViolationKind.MEMO_WITHOUT_DEPENDENCIES,
        ViolationKind.SETTER_WITHOUT_DEPENDENCIES,
        ViolationKind.STALE_ASSIGNMENT,
    ),
    target_extensions=[".js", ".jsx", ".mjs", ".cjs"],
)


@dataclass
class RequiredDependency:
    path: str
    binding: Binding
    stable: bool


@dataclass
class DeclaredDependency:
    path: str
    node: dict[str, Any]
    binding: Binding | None


def is_ancestor_path(ancestor: str, path: str) -> bool:
    """``a`` and ``a.b`` are ancestors of ``a.b.c``; ``ab`` is not."""
    return path.startswith(ancestor + ".")


def format_list(paths: list[str]) -> str:
    quoted = [f"'{p}'" for p in paths]
    if len(quoted) == 1:
        return quoted[0]
    return ", ".join(quoted[:-1]) + f" and {quoted[-1]}"


class ExhaustiveDepsAnalyzer:
    """Validates declared dependency lists against callback closures."""

    def __init__(self, registry: HookRegistry):
        self.registry = registry
        self.strict = registry.config.strict_member_dependencies
        self.flag_stable = registry.config.flag_stable_dependencies

    def analyze(
        self,
        unit: FunctionUnit,
        sites: list[HookCallSite],
        scopes: ScopeManager,
    ) -> list[Diagnostic]:
        if unit.is_program:
            # No component scope: every binding is module-level
            return []
        diagnostics = []
        for site in sites:
            if site.spec.kind is not HookKind.EFFECT or site.spec.callback_index is None:
                continue
            diagnostics.extend(self.analyze_site(unit, site, scopes))
        return diagnostics

    def analyze_site(self, unit: FunctionUnit, site: HookCallSite, scopes: ScopeManager) -> list[Diagnostic]:
        spec = site.spec
        callback = unwrap(site.argument(spec.callback_index))
        deps_node = unwrap(site.argument(spec.deps_index))
        if callback is None:
            return []

        if node_type(callback) not in FUNCTION_TYPES:
            callback = self._resolve_callback(site.name, callback, deps_node, scopes)
            if callback is None:
                return []
            if isinstance(callback, Diagnostic):
                return [callback]

        pure_scopes = self._pure_scopes(unit, site, scopes)
        required, writes = self._collect_required(callback, pure_scopes, scopes)
        diagnostics: list[Diagnostic] = []

        if spec.is_effect and is_async(callback):
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.ASYNC_EFFECT,
                    callback,
                    f"Effect callbacks are synchronous to prevent race conditions. Put the async "
                    f"function inside the {site.name} callback instead.",
                    {"hook": site.name},
                )
            )

        if writes:
            for name, node in writes:
                diagnostics.append(
                    self._diagnostic(
                        ViolationKind.STALE_ASSIGNMENT,
                        node,
                        f"Assignments to the '{name}' variable from inside hook {site.name} will be "
                        "lost after each render. To preserve the value over time, store it in a "
                        "ref and keep the mutable value in its '.current' property.",
                        {"hook": site.name, "name": name},
                    )
                )
            # The intent is unclear until the assignments are fixed
            return diagnostics

        if deps_node is None:
            diagnostics.extend(self._check_without_list(site, callback, required, scopes))
            return diagnostics

        if node_type(deps_node) != "ArrayExpression":
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.NON_ARRAY_DEPENDENCIES,
                    deps_node,
                    f"Hook {site.name} was passed a dependency list that is not an array literal. "
                    "This means the dependencies cannot be statically verified.",
                    {"hook": site.name},
                )
            )
            return diagnostics

        declared, complex_nodes = self._collect_declared(deps_node, scopes)
        necessary, unnecessary, missing = self._classify(required, declared, pure_scopes)
        suggestion = None
        if missing or unnecessary or complex_nodes:
            suggested = self._collapse(necessary + [p for p in missing if p not in necessary])
            suggestion = self._suggest(suggested, node_range(deps_node))

        for node in complex_nodes:
            is_literal = node_type(node) == "Literal"
            message = (
                f"The literal {node.get('raw', node.get('value'))!s} is not a valid dependency because it never changes."
                if is_literal
                else f"Hook {site.name} has a complex expression in the dependency array. "
                "Extract it to a separate variable so it can be statically checked."
            )
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.COMPLEX_DEPENDENCY,
                    node,
                    message,
                    {"hook": site.name, "literal": is_literal},
                    suggestion,
                )
            )

        if missing:
            noun = "dependency" if len(missing) == 1 else "dependencies"
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.MISSING_DEPENDENCY,
                    deps_node,
                    f"Hook {site.name} has a missing {noun}: {format_list(missing)}. Either include "
                    "it or remove the dependency array.",
                    {"hook": site.name, "dependencies": missing},
                    suggestion,
                )
            )
        if unnecessary:
            noun = "dependency" if len(unnecessary) == 1 else "dependencies"
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.UNNECESSARY_DEPENDENCY,
                    deps_node,
                    f"Hook {site.name} has an unnecessary {noun}: {format_list(unnecessary)}. "
                    "Either exclude it or remove the dependency array.",
                    {"hook": site.name, "dependencies": unnecessary},
                    suggestion,
                )
            )
        return diagnostics

    # ---- callback and scopes ------------------------------------------

    def _resolve_callback(self, hook_name: str, callback, deps_node, scopes: ScopeManager):
        """Follow ``useEffect(handler, deps)`` to the function ``handler`` names."""
        if node_type(callback) == "Identifier":
            name = callback.get("name")
            if node_type(deps_node) == "ArrayExpression" and any(
                member_path(element) == name for element in deps_node.get("elements") or [] if element
            ):
                return None
            binding = scopes.resolve(callback)
            definition = binding.definition if binding is not None else None
            if binding is not None and binding.kind == "function" and node_type(definition) == "FunctionDeclaration":
                return definition
            if (
                node_type(definition) == "VariableDeclarator"
                and definition.get("id") is binding.identifier
                and binding.kind in ("const", "let")
                and node_type(unwrap(definition.get("init"))) in FUNCTION_TYPES
            ):
                return unwrap(definition.get("init"))
            if binding is None:
                logger.debug(f"Callback {name} is unresolved; dependencies unknown")
        return self._diagnostic(
            ViolationKind.UNKNOWN_CALLBACK,
            callback,
            f"Hook {hook_name} received a function whose dependencies are unknown. Pass an inline "
            "function instead.",
            {"hook": hook_name},
        )

    def _pure_scopes(self, unit: FunctionUnit, site: HookCallSite, scopes: ScopeManager) -> list[Scope]:
        """Scopes from the call's position up to and including the unit's function scope."""
        component_scope = scopes.acquire(unit.node)
        result = []
        scope = scopes.scope_for(site.call)
        while scope is not None:
            result.append(scope)
            if scope is component_scope:
                break
            scope = scope.parent
        return result

    def dependency_node(self, identifier: dict[str, Any], scopes: ScopeManager) -> dict[str, Any]:
        """The outermost member access a reference contributes as a dependency."""
        node = identifier
        while True:
            parent = scopes.parent(node)
            if node_type(parent) == "ChainExpression":
                node = parent
                continue
            if (
                node_type(parent) in MEMBER_TYPES
                and parent.get("object") is node
                and not parent.get("computed")
                and node_type(parent.get("property")) == "Identifier"
                and parent["property"].get("name") != "current"
            ):
                outer = scopes.parent(parent)
                while node_type(outer) == "ChainExpression":
                    outer = scopes.parent(outer)
                if node_type(outer) in CALL_TYPES and _strip_chain(outer.get("callee")) is parent:
                    break
                node = parent
                continue
            break
        parent = scopes.parent(node)
        if node_type(node) in MEMBER_TYPES and node_type(parent) == "AssignmentExpression" and parent.get("left") is node:
            return node.get("object")
        return node

    def _collect_required(self, callback, pure_scopes: list[Scope], scopes: ScopeManager):
        callback_scope = scopes.acquire(callback)
        pure = {id(scope) for scope in pure_scopes}
        required: dict[str, RequiredDependency] = {}
        writes: list[tuple[str, dict[str, Any]]] = []
        written: set[str] = set()

        for reference in scopes.references_within(callback):
            binding = reference.binding
            if binding is None:
                continue
            if callback_scope is not None and binding.scope.is_within(callback_scope):
                continue
            if id(binding.scope) not in pure:
                continue
            stable = self.registry.is_stable_binding(binding, scopes)
            if reference.is_write:
                if not stable and binding.name not in written:
                    written.add(binding.name)
                    writes.append((binding.name, reference.identifier))
                if not reference.is_read:
                    continue

            path = member_path(self.dependency_node(reference.identifier, scopes)) or binding.name
            existing = required.get(path)
            if existing is None:
                required[path] = RequiredDependency(path, binding, stable)
        return required, writes

    def _collect_declared(self, deps_node, scopes: ScopeManager):
        declared: list[DeclaredDependency] = []
        complex_nodes: list[dict[str, Any]] = []
        for element in deps_node.get("elements") or []:
            if element is None:
                continue
            path = member_path(element)
            if path is None:
                complex_nodes.append(element)
                continue
            binding = scopes.resolve(root_identifier(element))
            declared.append(DeclaredDependency(path, element, binding))
        return declared, complex_nodes

    # ---- findings --------------------------------------------------------

    def _check_without_list(self, site, callback, required, scopes: ScopeManager) -> list[Diagnostic]:
        spec = site.spec
        reactive = sorted(dep.path for dep in required.values() if not dep.stable)
        insertion = _end_of(callback)
        suggestion = self._suggest(reactive, (insertion, insertion) if insertion is not None else None, prefix=", ")

        if spec.requires_deps:
            return [
                self._diagnostic(
                    ViolationKind.MEMO_WITHOUT_DEPENDENCIES,
                    site.call,
                    f"Hook {site.name} does nothing when called with only one argument. Did you "
                    "forget to pass an array of dependencies?",
                    {"hook": site.name},
                    suggestion,
                )
            ]
        if not spec.is_effect:
            return []

        setter = self._synchronous_setter_call(callback, scopes)
        if setter is not None:
            return [
                self._diagnostic(
                    ViolationKind.SETTER_WITHOUT_DEPENDENCIES,
                    setter,
                    f"Hook {site.name} contains a call to '{setter['callee'].get('name')}'. Without "
                    "a list of dependencies, this can lead to an infinite chain of updates. To fix "
                    f"this, pass {suggestion.text.lstrip(', ')} as a second argument to the {site.name} hook.",
                    {"hook": site.name, "setter": setter["callee"].get("name")},
                    suggestion,
                )
            ]
        if reactive:
            return [
                self._diagnostic(
                    ViolationKind.MISSING_DEPENDENCY_ARRAY,
                    site.call,
                    f"Hook {site.name} has no dependency list but depends on {format_list(reactive)}. "
                    "Add a dependency list.",
                    {"hook": site.name, "dependencies": reactive},
                    suggestion,
                )
            ]
        return []

    def _synchronous_setter_call(self, callback, scopes: ScopeManager) -> dict[str, Any] | None:
        body = callback.get("body")
        if body is None:
            return None
        for node in walk(body, skip_functions=True):
            if node_type(node) not in ("CallExpression", "OptionalCallExpression"):
                continue
            callee = node.get("callee")
            if node_type(callee) != "Identifier":
                continue
            binding = scopes.resolve(callee)
            if binding is not None and self.registry.is_state_setter(binding, scopes):
                return node
        return None

    def _classify(self, required, declared, pure_scopes):
        """Split declared entries into kept and unnecessary; compute missing paths."""
        pure = {id(scope) for scope in pure_scopes}
        necessary: list[str] = []
        unnecessary: list[str] = []
        for dep in declared:
            if dep.path in necessary:
                unnecessary.append(dep.path)
            elif dep.binding is None or self._is_necessary(dep, required, pure):
                # Unresolved globals are kept as written
                necessary.append(dep.path)
            else:
                unnecessary.append(dep.path)

        reactive = [dep.path for dep in required.values() if not dep.stable]
        missing = sorted(path for path in reactive if not self._is_satisfied(path, necessary))
        return necessary, unnecessary, missing

    def _is_necessary(self, dep: DeclaredDependency, required, pure) -> bool:
        if dep.path.endswith(".current"):
            return False
        if id(dep.binding.scope) not in pure:
            # Outer scope values never trigger a re-render
            return False
        for path, requirement in required.items():
            related = path == dep.path or is_ancestor_path(dep.path, path)
            if not self.strict and is_ancestor_path(path, dep.path):
                related = True
            if related and not (self.flag_stable and requirement.stable):
                return True
        return False

    def _is_satisfied(self, path: str, declared_paths: list[str]) -> bool:
        for declared in declared_paths:
            if declared == path:
                return True
            if not self.strict and is_ancestor_path(declared, path):
                return True
        return False

    def _collapse(self, paths: list[str]) -> list[str]:
        if self.strict:
            return paths
        return [p for p in paths if not any(is_ancestor_path(other, p) for other in paths if other != p)]

    def _suggest(self, paths: list[str], replace_range, prefix: str = "") -> DependencySuggestion:
        return DependencySuggestion(
            dependencies=list(paths),
            text=f"{prefix}[{', '.join(paths)}]",
            range=replace_range,
        )

    def _diagnostic(self, kind, node, message, data, suggestion=None) -> Diagnostic:
        line, column, end_line, end_column = node_location(node)
        return Diagnostic(
            kind=kind,
            rule=EXHAUSTIVE_DEPS,
            message=message,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
            data=data,
            suggestion=suggestion,
        )


def _strip_chain(node):
    while node_type(node) == "ChainExpression":
        node = node.get("expression")
    return node


def _end_of(node: dict[str, Any]) -> int | None:
    rng = node_range(node)
    return rng[1] if rng else None
