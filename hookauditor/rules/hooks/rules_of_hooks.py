"""Call-order verification for hook call sites.

Hooks are identified at runtime by their call order, so a host function must
call the same hooks in the same order on every render. The verifier proves
this over the unit's CFG without enumerating paths:

* Loop placement: a site whose block lies on a cycle may run any number of
  times.
* Must-execute: the k-th call of callee ``X`` along a path occupies slot
  ``(X, k)``. Slots are computed by a forward set-valued dataflow. A site is
  unconditional when its slot is the same on every path reaching it and every
  entry-to-end path passes through a site holding that slot. For a single
  block this is post-dominance; for a group of blocks it is a
  reachability-with-removal cut.
* Order stability: a forward may-precede dataflow over slots. Seeing slot
  ``a`` before ``b`` on one path and ``b`` before ``a`` on another is an order
  mismatch.

Paths that end in an uncaught ``throw`` never complete a render and are not
counted.
"""

from collections import defaultdict

from hookauditor.graph.cf_graph_js import CFG, EdgeKind
from hookauditor.graph.dominators import DominatorTree, loop_blocks
from hookauditor.rules.base import (
    RULES_OF_HOOKS,
    Confidence,
    Diagnostic,
    RuleMetadata,
    ViolationKind,
)
from hookauditor.rules.hooks.call_sites import HookCallSite
from hookauditor.rules.hooks.function_units import FunctionUnit
from hookauditor.utils.logging import logger

METADATA = RuleMetadata(
    name=RULES_OF_HOOKS,
    category="correctness",
    kinds=(
        ViolationKind.LOOP_CALL,
        ViolationKind.CONDITIONAL_CALL,
        ViolationKind.ORDER_MISMATCH,
        ViolationKind.INVALID_HOST,
        ViolationKind.ASYNC_HOST,
    ),
    target_extensions=[".js", ".jsx", ".mjs", ".cjs"],
)

Slot = tuple[str, int]


def invalid_host_kind(unit: FunctionUnit) -> str | None:
    """Why a non-host unit cannot call hooks; None when it is not reported."""
    if unit.is_program:
        return "top-level"
    if unit.in_class:
        return "class"
    if unit.name:
        return "function"
    if unit.enclosing_host is not None:
        return "callback"
    return None


class RulesOfHooksVerifier:
    """Checks hook placement for one function unit."""

    def verify(self, unit: FunctionUnit, cfg: CFG, sites: list[HookCallSite]) -> list[Diagnostic]:
        if not sites:
            return []
        if not unit.is_host:
            return self._check_host(unit, sites)

        diagnostics: list[Diagnostic] = []
        if unit.is_async:
            for site in sites:
                diagnostics.append(
                    self._diagnostic(
                        ViolationKind.ASYNC_HOST,
                        site,
                        f'Hook "{site.name}" cannot be called in an async function.',
                        {"hook": site.name, "function": unit.display_name},
                    )
                )

        ordered = [site for site in sites if not site.spec.order_exempt]
        if ordered:
            diagnostics.extend(self._check_order(unit, cfg, ordered))

        if cfg.approximations:
            for diagnostic in diagnostics:
                diagnostic.confidence = Confidence.LOW
        return diagnostics

    # ---- host restriction ---------------------------------------------

    def _check_host(self, unit: FunctionUnit, sites: list[HookCallSite]) -> list[Diagnostic]:
        host_kind = invalid_host_kind(unit)
        if host_kind is None:
            return []
        diagnostics = []
        for site in sites:
            if host_kind == "top-level":
                message = f'Hook "{site.name}" cannot be called at the top level. Hooks must be called in a component or a custom hook.'
            elif host_kind == "class":
                message = f'Hook "{site.name}" cannot be called in a class. Hooks must be called in a function component or a custom hook.'
            elif host_kind == "function":
                message = (
                    f'Hook "{site.name}" is called in function "{unit.name}" that is neither a '
                    "component nor a custom hook. Component names must start with an uppercase "
                    "letter. Custom hook names must start with the hook prefix."
                )
            else:
                message = (
                    f'Hook "{site.name}" cannot be called inside a callback. Hooks must be called '
                    "at the top level of a component or custom hook."
                )
            diagnostics.append(
                self._diagnostic(
                    ViolationKind.INVALID_HOST,
                    site,
                    message,
                    {"hook": site.name, "host_kind": host_kind, "function": unit.name},
                )
            )
        return diagnostics

    # ---- placement and order --------------------------------------------

    def _check_order(self, unit: FunctionUnit, cfg: CFG, sites: list[HookCallSite]) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        domtree = DominatorTree(cfg)
        cyclic = loop_blocks(cfg, domtree) | cfg.loop_body_blocks

        straight: list[HookCallSite] = []
        for site in sites:
            if site.block_id in cyclic:
                diagnostics.append(
                    self._diagnostic(
                        ViolationKind.LOOP_CALL,
                        site,
                        f'Hook "{site.name}" may be executed more than once. Possibly because it '
                        "is called in a loop. Hooks must be called in the exact same order in "
                        "every render.",
                        {"hook": site.name},
                    )
                )
            else:
                straight.append(site)
        if not straight:
            return diagnostics

        by_block: dict[int, list[HookCallSite]] = defaultdict(list)
        for site in straight:
            by_block[site.block_id].append(site)
        for block_sites in by_block.values():
            block_sites.sort(key=lambda s: s.ordinal)

        slots = self._compute_slots(cfg, by_block)
        end_id = self._end_block(cfg)
        postdom = DominatorTree(cfg, reverse=True, root=end_id) if end_id is not None else None

        groups: dict[Slot, list[HookCallSite]] = defaultdict(list)
        for site in straight:
            site_slots = slots.get(id(site), set())
            if len(site_slots) == 1:
                groups[next(iter(site_slots))].append(site)

        unconditional: set[int] = set()
        entry_id = cfg.entry_node.id
        if end_id is not None:
            for slot, members in groups.items():
                blocks = {site.block_id for site in members}
                if len(blocks) == 1:
                    covered = postdom.dominates(next(iter(blocks)), entry_id)
                else:
                    covered = end_id not in cfg.reachable_from(entry_id, avoid=blocks)
                if covered:
                    unconditional.update(id(site) for site in members)
        else:
            logger.debug(f"{unit.display_name}: no reachable exit, must-execute check skipped")
            unconditional.update(id(site) for members in groups.values() for site in members)

        for site in straight:
            if id(site) in unconditional:
                continue
            if postdom is not None and postdom.dominates(site.block_id, entry_id):
                # On every completing path; a shifted slot is an ordering problem
                continue
            site_slots = slots.get(id(site), set())
            data = {"hook": site.name}
            if not site_slots:
                data["unreachable"] = True
                message = f'Hook "{site.name}" is called in unreachable code.'
            else:
                group = groups.get(next(iter(site_slots))) if len(site_slots) == 1 else None
                blocks = {s.block_id for s in group} if group else {site.block_id}
                early = self._bypassed_by_return(cfg, blocks)
                data["early_return"] = early
                message = (
                    f'Hook "{site.name}" is called conditionally. Hooks must be called in the '
                    "exact same order in every render."
                )
                if early:
                    message += " Did you accidentally call a hook after an early return?"
            diagnostics.append(self._diagnostic(ViolationKind.CONDITIONAL_CALL, site, message, data))

        diagnostics.extend(self._check_stability(cfg, by_block, slots))
        return diagnostics

    def _end_block(self, cfg: CFG) -> int | None:
        reachable = cfg.reachable_from(cfg.entry_node.id)
        if cfg.exit_node.id in reachable:
            return cfg.exit_node.id
        if cfg.throw_exit_node.id in reachable:
            return cfg.throw_exit_node.id
        return None

    def _compute_slots(self, cfg: CFG, by_block: dict[int, list[HookCallSite]]) -> dict[int, set[Slot]]:
        """Forward dataflow of per-callee counts; returns the slots of each site."""
        callees = {site.identity for sites in by_block.values() for site in sites}
        counts_in: dict[int, dict[str, frozenset[int]]] = {}
        entry_id = cfg.entry_node.id
        counts_in[entry_id] = {callee: frozenset([0]) for callee in callees}

        def transfer(block_id: int, state: dict[str, frozenset[int]]) -> dict[str, frozenset[int]]:
            out = dict(state)
            for site in by_block.get(block_id, ()):
                out[site.identity] = frozenset(c + 1 for c in out[site.identity])
            return out

        worklist = [entry_id]
        while worklist:
            block_id = worklist.pop()
            out = transfer(block_id, counts_in[block_id])
            for succ in cfg.successors(block_id):
                current = counts_in.get(succ)
                if current is None:
                    counts_in[succ] = out
                    worklist.append(succ)
                    continue
                merged = {callee: current[callee] | out[callee] for callee in callees}
                if merged != current:
                    counts_in[succ] = merged
                    worklist.append(succ)

        slots: dict[int, set[Slot]] = {}
        for block_id, block_sites in by_block.items():
            state = counts_in.get(block_id)
            if state is None:
                continue
            running = dict(state)
            for site in block_sites:
                running[site.identity] = frozenset(c + 1 for c in running[site.identity])
                slots[id(site)] = {(site.identity, c) for c in running[site.identity]}
        return slots

    def _bypassed_by_return(self, cfg: CFG, blocks: set[int]) -> bool:
        """True when a return reachable without passing ``blocks`` precedes them."""
        before = cfg.reachable_from(cfg.entry_node.id, avoid=blocks)
        after: set[int] = set()
        for block_id in blocks:
            after |= cfg.reachable_from(block_id)
        for block_id in before - after:
            for succ in cfg.successors(block_id):
                if EdgeKind.EARLY_RETURN in cfg.edge_kinds(block_id, succ):
                    return True
        return False

    def _check_stability(
        self,
        cfg: CFG,
        by_block: dict[int, list[HookCallSite]],
        slots: dict[int, set[Slot]],
    ) -> list[Diagnostic]:
        """Forward may-precede dataflow; flag sites where an observed order is reversed elsewhere."""
        seen_in: dict[int, frozenset[Slot]] = {cfg.entry_node.id: frozenset()}

        def transfer(block_id: int, seen: frozenset[Slot]) -> frozenset[Slot]:
            result = set(seen)
            for site in by_block.get(block_id, ()):
                result |= slots.get(id(site), set())
            return frozenset(result)

        worklist = [cfg.entry_node.id]
        while worklist:
            block_id = worklist.pop()
            out = transfer(block_id, seen_in[block_id])
            for succ in cfg.successors(block_id):
                current = seen_in.get(succ)
                merged = out if current is None else current | out
                if merged != current:
                    seen_in[succ] = merged
                    worklist.append(succ)

        observed: dict[int, set[tuple[Slot, Slot]]] = defaultdict(set)
        all_pairs: set[tuple[Slot, Slot]] = set()
        for block_id, block_sites in by_block.items():
            if block_id not in seen_in:
                continue
            seen = set(seen_in[block_id])
            for site in block_sites:
                site_slots = slots.get(id(site), set())
                for later in site_slots:
                    for earlier in seen:
                        if earlier != later:
                            observed[id(site)].add((earlier, later))
                seen |= site_slots
            for site in block_sites:
                all_pairs |= observed[id(site)]

        diagnostics = []
        for block_id in sorted(by_block):
            for site in by_block[block_id]:
                reversed_pairs = sorted(
                    (earlier, later)
                    for earlier, later in observed.get(id(site), ())
                    if (later, earlier) in all_pairs
                )
                if not reversed_pairs:
                    continue
                earlier, _ = reversed_pairs[0]
                diagnostics.append(
                    self._diagnostic(
                        ViolationKind.ORDER_MISMATCH,
                        site,
                        f'Hook "{site.name}" is called after "{earlier[0]}" on this path but '
                        "before it on another. Hooks must be called in the exact same order in "
                        "every render.",
                        {"hook": site.name, "other": earlier[0]},
                    )
                )
        return diagnostics

    def _diagnostic(self, kind: ViolationKind, site: HookCallSite, message: str, data: dict) -> Diagnostic:
        line, column, end_line, end_column = site.location
        return Diagnostic(
            kind=kind,
            rule=RULES_OF_HOOKS,
            message=message,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
            data=data,
        )
