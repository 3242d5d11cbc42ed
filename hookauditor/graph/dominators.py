"""Dominators, post-dominators and loop membership over a JS CFG.

Immediate dominators use the Cooper-Harvey-Kennedy iterative algorithm on
reverse post-order. Post-dominators are the same computation over the
reversed graph rooted at an exit block.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field

from hookauditor.graph.cf_graph_js import CFG


@dataclass
class NaturalLoop:
    """A natural loop: a header plus every block that reaches a back-edge tail."""

    header: int
    body: frozenset[int]
    back_edges: list[tuple[int, int]] = field(default_factory=list)


class DominatorTree:
    """Immediate-dominator tree for a CFG.

    Args:
        cfg: The graph.
        reverse: Compute post-dominators instead (edges followed backwards).
        root: Root block id; defaults to the entry block, or to the normal
            exit block when ``reverse`` is set.
    """

    def __init__(self, cfg: CFG, reverse: bool = False, root: int | None = None):
        self.cfg = cfg
        self.reverse = reverse
        if root is None:
            root = cfg.exit_node.id if reverse else cfg.entry_node.id
        self.root = root
        self.idom: dict[int, int] = {}
        self._rpo_num: dict[int, int] = {}
        self._compute_idom()

    def _succ(self, node_id: int) -> set[int]:
        node = self.cfg.nodes[node_id]
        return node.predecessors if self.reverse else node.successors

    def _pred(self, node_id: int) -> set[int]:
        node = self.cfg.nodes[node_id]
        return node.successors if self.reverse else node.predecessors

    def _compute_idom(self) -> None:
        # RPO numbering via iterative DFS
        finish: list[int] = []
        visited = {self.root}
        stack = [(self.root, iter(sorted(self._succ(self.root))))]
        while stack:
            node_id, children = stack[-1]
            for child in children:
                if child not in visited:
                    visited.add(child)
                    stack.append((child, iter(sorted(self._succ(child)))))
                    break
            else:
                stack.pop()
                finish.append(node_id)

        rpo_order = list(reversed(finish))
        self._rpo_num = {nid: i for i, nid in enumerate(rpo_order)}
        rpo_num = self._rpo_num
        idom: dict[int, int] = {self.root: self.root}

        def _intersect(b1: int, b2: int) -> int:
            """Walk two fingers up the idom tree until they meet."""
            while b1 != b2:
                while rpo_num[b1] > rpo_num[b2]:
                    b1 = idom[b1]
                while rpo_num[b2] > rpo_num[b1]:
                    b2 = idom[b2]
            return b1

        changed = True
        while changed:
            changed = False
            for nid in rpo_order:
                if nid == self.root:
                    continue
                preds = [p for p in self._pred(nid) if p in idom]
                if not preds:
                    continue
                new_idom = preds[0]
                for p in preds[1:]:
                    new_idom = _intersect(new_idom, p)
                if idom.get(nid) != new_idom:
                    idom[nid] = new_idom
                    changed = True

        self.idom = idom

    def is_reachable(self, node_id: int) -> bool:
        """True when ``node_id`` is reachable from the root in this direction."""
        return node_id in self.idom

    def dominates(self, a_id: int, b_id: int) -> bool:
        """True if every root-to-``b`` path passes through ``a`` (reflexive).

        Unreachable blocks are dominated by nothing.
        """
        if b_id not in self.idom or a_id not in self.idom:
            return False
        current = b_id
        while True:
            if current == a_id:
                return True
            parent = self.idom[current]
            if parent == current:
                return False
            current = parent

    def strictly_dominates(self, a_id: int, b_id: int) -> bool:
        return a_id != b_id and self.dominates(a_id, b_id)

    def all_dominators(self, node_id: int) -> set[int]:
        result: set[int] = set()
        if node_id not in self.idom:
            return result
        current = node_id
        while True:
            result.add(current)
            parent = self.idom[current]
            if parent == current:
                return result
            current = parent

    def children(self) -> dict[int, list[int]]:
        tree: dict[int, list[int]] = defaultdict(list)
        for nid, parent in self.idom.items():
            if nid != parent:
                tree[parent].append(nid)
        return tree


def natural_loops(cfg: CFG, domtree: DominatorTree | None = None) -> list[NaturalLoop]:
    """Return natural loops, one per header, outermost first."""
    domtree = domtree or DominatorTree(cfg)

    header_to_tails: dict[int, list[int]] = defaultdict(list)
    for node_id, node in cfg.nodes.items():
        for succ in node.successors:
            if domtree.dominates(succ, node_id):
                header_to_tails[succ].append(node_id)

    loops = []
    for header, tails in header_to_tails.items():
        body = {header}
        worklist = deque()
        for tail in tails:
            if tail not in body:
                body.add(tail)
                worklist.append(tail)
        while worklist:
            nid = worklist.popleft()
            for pred in cfg.nodes[nid].predecessors:
                if pred not in body:
                    body.add(pred)
                    worklist.append(pred)
        loops.append(
            NaturalLoop(header=header, body=frozenset(body), back_edges=[(t, header) for t in tails])
        )
    loops.sort(key=lambda loop: -len(loop.body))
    return loops


def cyclic_blocks(cfg: CFG) -> set[int]:
    """Blocks on some cycle: members of a non-trivial SCC or self-looping.

    Tarjan's algorithm, iterative. Catches cycles a dominator-based back-edge
    search misses, such as those in unreachable code.
    """
    index_of: dict[int, int] = {}
    lowlink: dict[int, int] = {}
    on_stack: set[int] = set()
    scc_stack: list[int] = []
    result: set[int] = set()
    counter = 0

    for start in sorted(cfg.nodes):
        if start in index_of:
            continue
        work = [(start, iter(sorted(cfg.nodes[start].successors)))]
        index_of[start] = lowlink[start] = counter
        counter += 1
        scc_stack.append(start)
        on_stack.add(start)
        while work:
            node_id, successors = work[-1]
            advanced = False
            for succ in successors:
                if succ not in index_of:
                    index_of[succ] = lowlink[succ] = counter
                    counter += 1
                    scc_stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, iter(sorted(cfg.nodes[succ].successors))))
                    advanced = True
                    break
                if succ in on_stack:
                    lowlink[node_id] = min(lowlink[node_id], index_of[succ])
            if advanced:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node_id])
            if lowlink[node_id] == index_of[node_id]:
                component = []
                while True:
                    member = scc_stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in cfg.nodes[node_id].successors:
                    result.update(component)
    return result


def loop_blocks(cfg: CFG, domtree: DominatorTree | None = None) -> set[int]:
    """Every block that may execute more than once per invocation."""
    blocks: set[int] = set()
    for loop in natural_loops(cfg, domtree):
        blocks.update(loop.body)
    blocks.update(cyclic_blocks(cfg))
    return blocks
