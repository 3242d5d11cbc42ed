"""Hook call sites located in a unit's CFG."""

from dataclasses import dataclass
from typing import Any

from hookauditor.graph.cf_graph_js import CFG
from hookauditor.js_ast import node_location
from hookauditor.rules.hooks.hook_registry import HookRegistry, HookSpec
from hookauditor.scope_manager import ScopeManager


@dataclass(eq=False)
class HookCallSite:
    """One hook call and the program point that evaluates it."""

    call: dict[str, Any]
    name: str
    spec: HookSpec
    block_id: int
    ordinal: int

    @property
    def identity(self) -> str:
        return self.name

    @property
    def location(self) -> tuple[int, int, int, int]:
        return node_location(self.call)

    @property
    def arguments(self) -> list[dict[str, Any]]:
        return self.call.get("arguments") or []

    def argument(self, index: int | None) -> dict[str, Any] | None:
        if index is None or index >= len(self.arguments):
            return None
        return self.arguments[index]

    def __repr__(self) -> str:
        return f"<HookCallSite {self.name} block={self.block_id}#{self.ordinal} line={self.location[0]}>"


def collect_hook_sites(cfg: CFG, scopes: ScopeManager, registry: HookRegistry) -> list[HookCallSite]:
    """Hook calls in evaluation order within blocks, sorted by source position."""
    sites = []
    for block, ordinal, call in cfg.iter_calls():
        resolved = registry.classify_call(call, scopes)
        if resolved is None:
            continue
        sites.append(
            HookCallSite(
                call=call,
                name=resolved.name,
                spec=resolved.spec,
                block_id=block.id,
                ordinal=ordinal,
            )
        )
    sites.sort(key=lambda site: (site.location[0], site.location[1], site.block_id, site.ordinal))
    return sites
