"""Recognized hook callees and the stability predicates over their results.

The registry answers two questions for the analyses:

* Is this call expression a hook call, and which one? Callees are resolved
  through import aliases (``import {useState as useS}``), const aliases
  (``const useS = React.useState``) and namespace members (``React.useState``).
* Does this binding hold a value that never changes between renders? This is
  an ordered list of predicates that callers can extend with
  :meth:`HookRegistry.add_stable_predicate`.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from hookauditor.config_runtime import HooksConfig
from hookauditor.js_ast import MEMBER_TYPES, node_type, unwrap
from hookauditor.scope_manager import Binding, ScopeManager


class HookKind(str, Enum):
    """Classification of a hook callee."""

    STATE = "state"
    EFFECT = "effect"
    HELPER = "helper"


@dataclass(frozen=True)
class HookSpec:
    """What the analyses know about one hook callee."""

    name: str
    kind: HookKind
    callback_index: int | None = None
    deps_index: int | None = None
    is_effect: bool = False
    requires_deps: bool = False
    # Index of the stable element in an array-destructured result
    stable_index: int | None = None
    stable_whole: bool = False
    returns_setter: bool = False
    # Calls to this callee may legally sit in branches and loops
    order_exempt: bool = False


@dataclass(frozen=True)
class ResolvedHook:
    """A call expression matched to a registry entry."""

    name: str
    spec: HookSpec
    via_member: bool = False


DEFAULT_HOOKS = (
    HookSpec("useState", HookKind.STATE, stable_index=1, returns_setter=True),
    HookSpec("useReducer", HookKind.STATE, stable_index=1, returns_setter=True),
    HookSpec("useRef", HookKind.STATE, stable_whole=True),
    HookSpec("useContext", HookKind.STATE),
    HookSpec("useId", HookKind.STATE),
    HookSpec("useDebugValue", HookKind.STATE),
    HookSpec("useDeferredValue", HookKind.STATE),
    HookSpec("useSyncExternalStore", HookKind.STATE),
    HookSpec("useTransition", HookKind.STATE, stable_index=1),
    HookSpec("useActionState", HookKind.STATE, stable_index=1),
    HookSpec("useOptimistic", HookKind.STATE, stable_index=1),
    HookSpec("useEffect", HookKind.EFFECT, callback_index=0, deps_index=1, is_effect=True),
    HookSpec("useLayoutEffect", HookKind.EFFECT, callback_index=0, deps_index=1, is_effect=True),
    HookSpec("useInsertionEffect", HookKind.EFFECT, callback_index=0, deps_index=1, is_effect=True),
    HookSpec("useCallback", HookKind.EFFECT, callback_index=0, deps_index=1, requires_deps=True),
    HookSpec("useMemo", HookKind.EFFECT, callback_index=0, deps_index=1, requires_deps=True),
    HookSpec("useImperativeHandle", HookKind.EFFECT, callback_index=1, deps_index=2),
)

# Wrapper calls whose function argument is a component
COMPONENT_WRAPPERS = frozenset(["memo", "forwardRef"])

StablePredicate = Callable[[Binding, "HookRegistry", ScopeManager], bool]


def is_component_name(name: str | None) -> bool:
    return bool(name) and name[:1].isupper()


class HookRegistry:
    """Maps callee names to :class:`HookSpec` entries."""

    def __init__(self, config: HooksConfig | None = None, specs=DEFAULT_HOOKS):
        self.config = config or HooksConfig()
        self.prefix = self.config.helper_prefix
        self.specs: dict[str, HookSpec] = {spec.name: spec for spec in specs}
        self.additional_pattern = (
            re.compile(self.config.additional_hooks) if self.config.additional_hooks else None
        )
        self.stable_identifiers = frozenset(self.config.additional_stable_identifiers)
        self.stable_predicates: list[StablePredicate] = [
            is_allow_listed,
            is_const_literal,
            is_stable_hook_result,
        ]
        if self.prefix == "use":
            # The bare `use` API may be called conditionally
            self.specs["use"] = HookSpec("use", HookKind.STATE, order_exempt=True)

    @classmethod
    def from_config(cls, config: HooksConfig) -> "HookRegistry":
        return cls(config)

    def register(self, spec: HookSpec) -> None:
        self.specs[spec.name] = spec

    def add_stable_predicate(self, predicate: StablePredicate) -> None:
        self.stable_predicates.append(predicate)

    # ---- names -------------------------------------------------------

    def is_hook_name(self, name: str | None) -> bool:
        """``use``, ``useFoo`` or ``use2D``; ``user`` is not a hook."""
        if not name:
            return False
        prefix = self.prefix
        if name == prefix:
            return True
        if not name.startswith(prefix) or len(name) == len(prefix):
            return False
        following = name[len(prefix)]
        return following.isupper() or following.isdigit()

    def spec_for_name(self, name: str) -> HookSpec | None:
        spec = self.specs.get(name)
        if spec is not None:
            return spec
        if self.additional_pattern is not None and self.additional_pattern.search(name):
            return HookSpec(name, HookKind.EFFECT, callback_index=0, deps_index=1, is_effect=True)
        if self.is_hook_name(name):
            return HookSpec(name, HookKind.HELPER)
        return None

    # ---- calls -------------------------------------------------------

    def classify_call(self, call: dict[str, Any], scopes: ScopeManager) -> ResolvedHook | None:
        """Resolve a call expression to a hook, or None for ordinary calls."""
        if node_type(call) not in ("CallExpression", "OptionalCallExpression"):
            return None
        callee = _strip_chain(call.get("callee"))
        resolved = self._resolve_callee(callee, scopes, depth=0)
        if resolved is None:
            return None
        name, via_member = resolved
        spec = self.spec_for_name(name)
        if spec is None:
            return None
        return ResolvedHook(name=name, spec=spec, via_member=via_member)

    def _resolve_callee(self, callee, scopes: ScopeManager, depth: int) -> tuple[str, bool] | None:
        kind = node_type(callee)
        if kind == "Identifier":
            name = callee.get("name", "")
            if depth < 4:
                aliased = self._follow_alias(callee, scopes, depth)
                if aliased is not None:
                    return aliased
            return name, False
        if kind in MEMBER_TYPES and not callee.get("computed"):
            prop = callee.get("property") or {}
            obj = _strip_chain(callee.get("object"))
            if node_type(prop) != "Identifier" or node_type(obj) != "Identifier":
                return None
            name = prop.get("name", "")
            if not self.is_hook_name(name) and name not in self.specs:
                return None
            if is_component_name(obj.get("name")) or self._is_namespace(obj, scopes):
                return name, True
        return None

    def _follow_alias(self, identifier, scopes: ScopeManager, depth: int) -> tuple[str, bool] | None:
        binding = scopes.resolve(identifier)
        if binding is None:
            return None
        definition = binding.definition or {}
        if binding.kind == "import" and node_type(definition) == "ImportSpecifier":
            imported = definition.get("imported") or {}
            name = imported.get("name") or imported.get("value")
            if isinstance(name, str) and name != identifier.get("name"):
                return name, False
            return None
        if binding.kind == "const" and node_type(definition) == "VariableDeclarator":
            if definition.get("id") is not binding.identifier:
                return None
            init = _strip_chain(definition.get("init"))
            if node_type(init) == "Identifier" or node_type(init) in MEMBER_TYPES:
                return self._resolve_callee(init, scopes, depth + 1)
        return None

    def _is_namespace(self, identifier, scopes: ScopeManager) -> bool:
        binding = scopes.resolve(identifier)
        if binding is None or binding.kind != "import":
            return False
        return node_type(binding.definition) in ("ImportNamespaceSpecifier", "ImportDefaultSpecifier")

    def wrapper_name(self, call: dict[str, Any]) -> str | None:
        """``memo``/``forwardRef`` for ``memo(...)`` or ``React.memo(...)``."""
        callee = _strip_chain((call or {}).get("callee"))
        if node_type(callee) == "Identifier":
            name = callee.get("name")
        elif node_type(callee) in MEMBER_TYPES and not callee.get("computed"):
            name = (callee.get("property") or {}).get("name")
        else:
            return None
        return name if name in COMPONENT_WRAPPERS else None

    # ---- stability ---------------------------------------------------

    def is_stable_binding(self, binding: Binding, scopes: ScopeManager) -> bool:
        return any(predicate(binding, self, scopes) for predicate in self.stable_predicates)

    def hook_result(self, binding: Binding, scopes: ScopeManager) -> ResolvedHook | None:
        """The hook whose result initializes ``binding``, if any."""
        definition = binding.definition
        if node_type(definition) != "VariableDeclarator":
            return None
        init = unwrap(definition.get("init"))
        if node_type(init) not in ("CallExpression", "OptionalCallExpression"):
            return None
        return self.classify_call(init, scopes)

    def is_state_setter(self, binding: Binding, scopes: ScopeManager) -> bool:
        resolved = self.hook_result(binding, scopes)
        if resolved is None or not resolved.spec.returns_setter:
            return False
        return _is_destructured_at(binding, resolved.spec.stable_index)


# ---- stable predicates ---------------------------------------------------


def is_allow_listed(binding: Binding, registry: HookRegistry, scopes: ScopeManager) -> bool:
    return binding.name in registry.stable_identifiers


def is_const_literal(binding: Binding, registry: HookRegistry, scopes: ScopeManager) -> bool:
    """``const LIMIT = 10``; regex literals are objects and stay reactive."""
    if binding.kind != "const":
        return False
    definition = binding.definition
    if node_type(definition) != "VariableDeclarator" or definition.get("id") is not binding.identifier:
        return False
    init = unwrap(definition.get("init"))
    return node_type(init) == "Literal" and "regex" not in init


def is_stable_hook_result(binding: Binding, registry: HookRegistry, scopes: ScopeManager) -> bool:
    """Ref objects, state setters, reducer dispatch and similar."""
    if binding.kind != "const":
        return False
    resolved = registry.hook_result(binding, scopes)
    if resolved is None:
        return False
    spec = resolved.spec
    if spec.stable_whole:
        return binding.definition.get("id") is binding.identifier
    return _is_destructured_at(binding, spec.stable_index)


def _is_destructured_at(binding: Binding, index: int | None) -> bool:
    if index is None:
        return False
    pattern = binding.definition.get("id") or {}
    if node_type(pattern) != "ArrayPattern":
        return False
    elements = pattern.get("elements") or []
    return len(elements) > index and elements[index] is binding.identifier


def _strip_chain(node: dict[str, Any] | None) -> dict[str, Any] | None:
    node = unwrap(node)
    while node_type(node) == "ChainExpression":
        node = unwrap(node.get("expression"))
    return node
