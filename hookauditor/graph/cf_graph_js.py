"""
Control Flow Graph (CFG) Builder for JavaScript.

Constructs a Control Flow Graph from an ESTree-compatible Abstract Syntax Tree
for a single function, method or Program body. Besides statements, every block
records the call expressions it evaluates in evaluation order, so that the
hook analyses can map a call site to its program point.

Expression-level control flow (``&&``, ``||``, ``??``, ``?:``, optional
chaining, destructuring defaults) splits blocks exactly like statement-level
branches. Syntax the builder does not model is wrapped in an approximate
region that may be skipped and may repeat.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hookauditor.js_ast import (
    CLASS_TYPES,
    FUNCTION_TYPES,
    TRANSPARENT_WRAPPERS,
    node_location,
    node_type,
    walk,
)
from hookauditor.utils.logging import logger

# --- Data Structures ---


class EdgeKind(str, Enum):
    """Why control may flow along an edge."""

    UNCONDITIONAL = "unconditional"
    TRUE = "true"
    FALSE = "false"
    CASE = "case"
    LOOP_BACK = "loop_back"
    LOOP_EXIT = "loop_exit"
    EXCEPTION = "exception"
    EARLY_RETURN = "early_return"
    THROW = "throw"
    BREAK = "break"
    CONTINUE = "continue"
    APPROXIMATE = "approximate"


@dataclass
class CFGNode:
    """A Basic Block in the Control Flow Graph."""

    id: int
    statements: list[dict[str, Any]] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)
    predecessors: set[int] = field(default_factory=set)
    successors: set[int] = field(default_factory=set)
    type: str = "block"

    def __repr__(self) -> str:
        stmt_types = [s.get("type", "Unknown") for s in self.statements]
        return f"<CFGNode id={self.id} type='{self.type}' stmts={stmt_types} calls={len(self.calls)}>"


@dataclass
class CFGEdge:
    """An edge representing control flow between two CFGNodes."""

    source_id: int
    target_id: int
    kind: EdgeKind = EdgeKind.UNCONDITIONAL

    def __repr__(self) -> str:
        return f"<CFGEdge {self.source_id} -> {self.target_id} ({self.kind.value})>"


class CFG:
    """Represents the complete Control Flow Graph for a JS function."""

    def __init__(self, name: str):
        self.name: str = name
        self.nodes: dict[int, CFGNode] = {}
        self.edges: list[CFGEdge] = []
        self.entry_node: CFGNode | None = None
        self.exit_node: CFGNode | None = None
        self.throw_exit_node: CFGNode | None = None
        self.approximations: list[dict[str, Any]] = []
        # Blocks created inside a loop body, cyclic or not (`for (;;) { ...; break; }`)
        self.loop_body_blocks: set[int] = set()
        self._call_index: dict[int, tuple[int, int]] = {}
        self._edge_kinds: dict[tuple[int, int], set[EdgeKind]] = {}

    def successors(self, node_id: int) -> set[int]:
        return self.nodes[node_id].successors

    def predecessors(self, node_id: int) -> set[int]:
        return self.nodes[node_id].predecessors

    def edge_kinds(self, source_id: int, target_id: int) -> set[EdgeKind]:
        return self._edge_kinds.get((source_id, target_id), set())

    def locate_call(self, call_node: dict[str, Any]) -> tuple[int, int] | None:
        """Return ``(block_id, ordinal_in_block)`` of a recorded call."""
        return self._call_index.get(id(call_node))

    def iter_calls(self):
        """Yield ``(block, ordinal, call)`` in block-id order."""
        for block_id in sorted(self.nodes):
            block = self.nodes[block_id]
            for ordinal, call in enumerate(block.calls):
                yield block, ordinal, call

    def reachable_from(self, start_id: int, avoid: set[int] | None = None) -> set[int]:
        """Blocks reachable from ``start_id`` without entering ``avoid``."""
        avoid = avoid or set()
        if start_id in avoid:
            return set()
        seen = {start_id}
        stack = [start_id]
        while stack:
            current = stack.pop()
            for succ in self.nodes[current].successors:
                if succ not in seen and succ not in avoid:
                    seen.add(succ)
                    stack.append(succ)
        return seen

    def to_dict(self) -> dict[str, Any]:
        """Convert the CFG to a serializable dictionary."""
        return {
            "name": self.name,
            "nodes": {
                nid: {
                    "id": node.id,
                    "type": node.type,
                    "statements": [
                        {"type": s.get("type"), "line": node_location(s)[0]} for s in node.statements
                    ],
                    "calls": [node_location(c)[0] for c in node.calls],
                    "predecessors": sorted(node.predecessors),
                    "successors": sorted(node.successors),
                }
                for nid, node in self.nodes.items()
            },
            "edges": [
                {"source": e.source_id, "target": e.target_id, "kind": e.kind.value}
                for e in self.edges
            ],
            "entry_node_id": self.entry_node.id if self.entry_node else None,
            "exit_node_id": self.exit_node.id if self.exit_node else None,
            "throw_exit_node_id": self.throw_exit_node.id if self.throw_exit_node else None,
            "approximations": list(self.approximations),
            "loop_body_blocks": sorted(self.loop_body_blocks),
        }


@dataclass
class _JumpTarget:
    """A loop, switch or labeled statement that break/continue can target."""

    label: str | None
    break_block: CFGNode
    continue_block: CFGNode | None
    finally_depth: int
    is_breakable: bool = True


@dataclass
class _FinallyFrame:
    """A try statement with a finalizer that jumps must pass through."""

    entry: CFGNode
    pending: list[tuple[CFGNode, EdgeKind, int]] = field(default_factory=list)


# Statement types that carry no control flow of their own
_SIMPLE_STATEMENTS = frozenset(
    [
        "EmptyStatement",
        "DebuggerStatement",
        "ImportDeclaration",
        "ExportAllDeclaration",
        "FunctionDeclaration",
        "TSTypeAliasDeclaration",
        "TSInterfaceDeclaration",
        "TSEnumDeclaration",
        "TSModuleDeclaration",
        "TSDeclareFunction",
    ]
)

# Expression types whose children are evaluated left to right without branching
_SEQUENTIAL_EXPRESSIONS = {
    "BinaryExpression": ("left", "right"),
    "UnaryExpression": ("argument",),
    "AwaitExpression": ("argument",),
    "YieldExpression": ("argument",),
    "SpreadElement": ("argument",),
    "SequenceExpression": ("expressions",),
    "TemplateLiteral": ("expressions",),
    "TaggedTemplateExpression": ("tag", "quasi"),
    "ArrayExpression": ("elements",),
    "ImportExpression": ("source",),
    "JSXExpressionContainer": ("expression",),
    "JSXSpreadAttribute": ("argument",),
    "JSXSpreadChild": ("expression",),
    "JSXAttribute": ("value",),
    "JSXFragment": ("children",),
}

_LEAF_EXPRESSIONS = frozenset(
    [
        "Identifier",
        "Literal",
        "RegExpLiteral",
        "StringLiteral",
        "NumericLiteral",
        "BooleanLiteral",
        "NullLiteral",
        "BigIntLiteral",
        "ThisExpression",
        "Super",
        "MetaProperty",
        "Import",
        "TemplateElement",
        "JSXText",
        "JSXEmptyExpression",
        "JSXIdentifier",
        "JSXMemberExpression",
        "JSXNamespacedName",
        "JSXClosingElement",
        "JSXClosingFragment",
        "JSXOpeningFragment",
        "PrivateIdentifier",
        "PrivateName",
    ]
)

_LOOP_TYPES = frozenset(
    ["ForStatement", "ForInStatement", "ForOfStatement", "WhileStatement", "DoWhileStatement"]
)


# --- The JavaScript Builder ---


class CFGBuilderJS:
    """Builds a CFG from a JavaScript function's (or Program's) AST."""

    def build(self, name: str, func_ast: dict[str, Any]) -> CFG:
        """
        Builds the CFG for a given function's ESTree AST.

        Args:
            name: The name of the function.
            func_ast: The AST node for the function (FunctionDeclaration,
                      ArrowFunctionExpression, FunctionExpression) or a Program.

        Returns:
            The constructed CFG object.
        """
        self.cfg = CFG(name)
        self._node_counter = 0
        self._targets: list[_JumpTarget] = []
        self._handlers: list[CFGNode] = []
        self._finally_stack: list[_FinallyFrame] = []
        self._chain_ends: list[CFGNode] = []
        self._terminated: set[int] = set()
        self._loop_depth = 0

        entry_block = self._new_block(block_type="entry")
        exit_block = self._new_block(block_type="exit")
        throw_exit_block = self._new_block(block_type="throw_exit")
        self.cfg.entry_node = entry_block
        self.cfg.exit_node = exit_block
        self.cfg.throw_exit_node = throw_exit_block

        block = entry_block
        if node_type(func_ast) == "Program":
            statements = func_ast.get("body", [])
        else:
            for param in func_ast.get("params") or []:
                block = self._visit_pattern(param, block)
            body_node = func_ast.get("body") or {}
            if body_node.get("type") == "BlockStatement":
                statements = body_node.get("body", [])
            else:
                # Concise arrow functions, e.g. () => value
                statements = [{"type": "ReturnStatement", "argument": body_node, "loc": body_node.get("loc")}]

        final_block = self._visit_statements(statements, block)

        if not self._is_terminated(final_block):
            self._add_edge(final_block, exit_block)

        return self.cfg

    # --- Graph Construction Helpers ---

    def _new_block(self, block_type: str = "block") -> CFGNode:
        """Creates a new basic block."""
        node_id = self._node_counter
        self._node_counter += 1
        block = CFGNode(id=node_id, type=block_type)
        self.cfg.nodes[node_id] = block
        if self._loop_depth:
            self.cfg.loop_body_blocks.add(node_id)
        return block

    def _add_edge(self, source: CFGNode, target: CFGNode, kind: EdgeKind = EdgeKind.UNCONDITIONAL):
        """Adds a directed edge."""
        kinds = self.cfg._edge_kinds.setdefault((source.id, target.id), set())
        if kind in kinds:
            return
        kinds.add(kind)
        self.cfg.edges.append(CFGEdge(source.id, target.id, kind))
        source.successors.add(target.id)
        target.predecessors.add(source.id)

    def _flow(self, source: CFGNode, target: CFGNode, kind: EdgeKind = EdgeKind.UNCONDITIONAL):
        """Fallthrough edge, only if the source block completes normally."""
        if not self._is_terminated(source):
            self._add_edge(source, target, kind)

    def _terminate(self, block: CFGNode) -> None:
        self._terminated.add(block.id)

    def _is_terminated(self, block: CFGNode) -> bool:
        return block.id in self._terminated

    def _record_call(self, block: CFGNode, call: dict[str, Any]) -> None:
        self.cfg._call_index[id(call)] = (block.id, len(block.calls))
        block.calls.append(call)

    def _approximate(self, node: dict[str, Any], block: CFGNode, reason: str) -> CFGNode:
        """Model an unsupported construct as a region that may skip or repeat."""
        region = self._new_block(block_type="approximate")
        after = self._new_block(block_type="merge")
        self._add_edge(block, region, EdgeKind.APPROXIMATE)
        self._add_edge(block, after, EdgeKind.APPROXIMATE)
        self._add_edge(region, region, EdgeKind.LOOP_BACK)
        self._add_edge(region, after)
        region.statements.append(node)
        for inner in walk(node, skip_functions=True):
            if node_type(inner) in ("CallExpression", "OptionalCallExpression", "NewExpression"):
                self._record_call(region, inner)
        line = node_location(node)[0]
        self.cfg.approximations.append({"type": node_type(node), "line": line, "reason": reason})
        logger.debug(f"CFG {self.cfg.name}: approximating {node_type(node)} at line {line} ({reason})")
        return after

    # --- Statement Visitor Logic ---

    def _visit_statements(self, statements: list[dict[str, Any]], current_block: CFGNode) -> CFGNode:
        """Processes a statement list; code after a jump lands in an unreachable block."""
        block = current_block
        for stmt in statements:
            if self._is_terminated(block):
                block = self._new_block(block_type="unreachable")
            block = self._visit(stmt, block)
        return block

    def _visit(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Dynamically dispatches to the correct visitor for a given AST node type."""
        node_kind = node.get("type")
        visitor = getattr(self, f"_visit_{node_kind}", None)
        if visitor is not None:
            return visitor(node, current_block)
        if node_kind in _SIMPLE_STATEMENTS:
            current_block.statements.append(node)
            return current_block
        return self._approximate(node, current_block, "unsupported statement")

    def _visit_body(self, node: dict[str, Any] | None, current_block: CFGNode) -> CFGNode:
        """Visit a statement that may or may not be a BlockStatement."""
        if node is None:
            return current_block
        return self._visit(node, current_block)

    def _visit_BlockStatement(self, node, current_block):
        return self._visit_statements(node.get("body", []), current_block)

    _visit_StaticBlock = _visit_BlockStatement

    def _visit_ExpressionStatement(self, node, current_block):
        current_block.statements.append(node)
        return self._visit_expr(node.get("expression"), current_block)

    def _visit_VariableDeclaration(self, node, current_block):
        current_block.statements.append(node)
        block = current_block
        for declarator in node.get("declarations") or []:
            block = self._visit_expr(declarator.get("init"), block)
            block = self._visit_pattern(declarator.get("id"), block)
        return block

    def _visit_ClassDeclaration(self, node, current_block):
        current_block.statements.append(node)
        return self._visit_expr(node.get("superClass"), current_block)

    def _visit_ExportNamedDeclaration(self, node, current_block):
        declaration = node.get("declaration")
        if declaration is None:
            current_block.statements.append(node)
            return current_block
        return self._visit(declaration, current_block)

    def _visit_ExportDefaultDeclaration(self, node, current_block):
        declaration = node.get("declaration") or {}
        if declaration.get("type") in ("FunctionDeclaration", "ClassDeclaration"):
            return self._visit(declaration, current_block)
        current_block.statements.append(node)
        return self._visit_expr(declaration, current_block)

    def _visit_ReturnStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `return`, connecting the path to the function's exit node (through finally)."""
        block = self._visit_expr(node.get("argument"), current_block)
        block.statements.append(node)
        self._jump(block, self.cfg.exit_node, EdgeKind.EARLY_RETURN, 0)
        self._terminate(block)
        return block

    def _visit_ThrowStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `throw`, flowing to the nearest handler or the throw exit."""
        block = self._visit_expr(node.get("argument"), current_block)
        block.statements.append(node)
        target = self._handlers[-1] if self._handlers else self.cfg.throw_exit_node
        self._add_edge(block, target, EdgeKind.THROW)
        self._terminate(block)
        return block

    def _visit_IfStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `if/else`, creating branches and a merge point."""
        current_block.statements.append(node.get("test", {}))
        cond_block = self._visit_expr(node.get("test"), current_block)
        cond_block.type = "if_condition"

        if_body_block = self._new_block(block_type="if_body")
        self._add_edge(cond_block, if_body_block, EdgeKind.TRUE)
        final_if_block = self._visit_body(node.get("consequent"), if_body_block)

        merge_block = self._new_block(block_type="merge")
        self._flow(final_if_block, merge_block)

        if node.get("alternate"):
            else_body_block = self._new_block(block_type="else_body")
            self._add_edge(cond_block, else_body_block, EdgeKind.FALSE)
            final_else_block = self._visit_body(node.get("alternate"), else_body_block)
            self._flow(final_else_block, merge_block)
        else:
            self._add_edge(cond_block, merge_block, EdgeKind.FALSE)

        return merge_block

    def _visit_LabeledStatement(self, node, current_block):
        label = (node.get("label") or {}).get("name")
        body = node.get("body") or {}
        if body.get("type") in _LOOP_TYPES:
            visitor = getattr(self, f"_visit_{body['type']}")
            return visitor(body, current_block, label=label)
        after = self._new_block(block_type="label_exit")
        self._targets.append(
            _JumpTarget(label, after, None, len(self._finally_stack), is_breakable=False)
        )
        final = self._visit_body(body, current_block)
        self._targets.pop()
        self._flow(final, after)
        return after

    # --- Loops ---

    def _enter_loop(self, label, exit_block, continue_block) -> None:
        self._targets.append(_JumpTarget(label, exit_block, continue_block, len(self._finally_stack)))

    def _leave_loop(self) -> None:
        self._targets.pop()
        self._loop_depth -= 1

    def _body_block(self) -> CFGNode:
        """First block of a loop body; it and every block made until _leave_loop are loop sites."""
        self._loop_depth += 1
        return self._new_block(block_type="loop_body")

    def _visit_WhileStatement(self, node, current_block, label=None):
        loop_header = self._new_block(block_type="loop_header")
        self._add_edge(current_block, loop_header)
        test_end = self._visit_expr(node.get("test"), loop_header)

        loop_exit_block = self._new_block(block_type="loop_exit")
        loop_body_block = self._body_block()
        self._add_edge(test_end, loop_body_block, EdgeKind.TRUE)
        self._add_edge(test_end, loop_exit_block, EdgeKind.LOOP_EXIT)

        self._enter_loop(label, loop_exit_block, loop_header)
        final_body_block = self._visit_body(node.get("body"), loop_body_block)
        self._leave_loop()
        self._flow(final_body_block, loop_header, EdgeKind.LOOP_BACK)
        return loop_exit_block

    def _visit_DoWhileStatement(self, node, current_block, label=None):
        loop_test = self._new_block(block_type="loop_test")
        loop_exit_block = self._new_block(block_type="loop_exit")
        loop_body_block = self._body_block()
        self._add_edge(current_block, loop_body_block)

        self._enter_loop(label, loop_exit_block, loop_test)
        final_body_block = self._visit_body(node.get("body"), loop_body_block)
        self._leave_loop()
        self._flow(final_body_block, loop_test)

        test_end = self._visit_expr(node.get("test"), loop_test)
        self._add_edge(test_end, loop_body_block, EdgeKind.LOOP_BACK)
        self._add_edge(test_end, loop_exit_block, EdgeKind.LOOP_EXIT)
        return loop_exit_block

    def _visit_ForStatement(self, node, current_block, label=None):
        block = current_block
        init = node.get("init")
        if init is not None:
            if init.get("type") == "VariableDeclaration":
                block = self._visit_VariableDeclaration(init, block)
            else:
                block = self._visit_expr(init, block)

        loop_header = self._new_block(block_type="loop_header")
        self._add_edge(block, loop_header)
        loop_update = self._new_block(block_type="loop_update")
        loop_exit_block = self._new_block(block_type="loop_exit")

        if node.get("test") is not None:
            test_end = self._visit_expr(node.get("test"), loop_header)
            loop_body_block = self._body_block()
            self._add_edge(test_end, loop_body_block, EdgeKind.TRUE)
            self._add_edge(test_end, loop_exit_block, EdgeKind.LOOP_EXIT)
        else:
            loop_body_block = self._body_block()
            self._add_edge(loop_header, loop_body_block)

        self._enter_loop(label, loop_exit_block, loop_update)
        final_body_block = self._visit_body(node.get("body"), loop_body_block)
        self._leave_loop()
        self._flow(final_body_block, loop_update)

        update_end = self._visit_expr(node.get("update"), loop_update)
        self._add_edge(update_end, loop_header, EdgeKind.LOOP_BACK)
        return loop_exit_block

    def _visit_for_each(self, node, current_block, label):
        block = self._visit_expr(node.get("right"), current_block)
        loop_header = self._new_block(block_type="loop_header")
        self._add_edge(block, loop_header)

        loop_exit_block = self._new_block(block_type="loop_exit")
        loop_body_block = self._body_block()
        self._add_edge(loop_header, loop_body_block, EdgeKind.TRUE)
        self._add_edge(loop_header, loop_exit_block, EdgeKind.LOOP_EXIT)

        left = node.get("left") or {}
        if left.get("type") == "VariableDeclaration":
            body_start = loop_body_block
            for declarator in left.get("declarations") or []:
                body_start = self._visit_pattern(declarator.get("id"), body_start)
        else:
            body_start = self._visit_pattern(left, loop_body_block)

        self._enter_loop(label, loop_exit_block, loop_header)
        final_body_block = self._visit_body(node.get("body"), body_start)
        self._leave_loop()
        self._flow(final_body_block, loop_header, EdgeKind.LOOP_BACK)
        return loop_exit_block

    def _visit_ForInStatement(self, node, current_block, label=None):
        return self._visit_for_each(node, current_block, label)

    def _visit_ForOfStatement(self, node, current_block, label=None):
        return self._visit_for_each(node, current_block, label)

    # --- Jumps ---

    def _jump(self, block: CFGNode, target: CFGNode, kind: EdgeKind, target_depth: int) -> None:
        """Connect a jump, routing it through every finally block it leaves."""
        if len(self._finally_stack) > target_depth:
            frame = self._finally_stack[-1]
            frame.pending.append((target, kind, target_depth))
            self._add_edge(block, frame.entry, kind)
        else:
            self._add_edge(block, target, kind)

    def _find_target(self, label: str | None, want_continue: bool) -> _JumpTarget | None:
        for target in reversed(self._targets):
            if label is not None:
                if target.label == label:
                    return target
                continue
            if want_continue and target.continue_block is None:
                continue
            if not target.is_breakable:
                continue
            return target
        return None

    def _visit_BreakStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `break`, jumping to the exit of the target loop, switch or label."""
        current_block.statements.append(node)
        label = (node.get("label") or {}).get("name")
        target = self._find_target(label, want_continue=False)
        if target is None:
            return self._approximate(node, current_block, "break without target")
        self._jump(current_block, target.break_block, EdgeKind.BREAK, target.finally_depth)
        self._terminate(current_block)
        return current_block

    def _visit_ContinueStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `continue`, jumping to the continue point of the target loop."""
        current_block.statements.append(node)
        label = (node.get("label") or {}).get("name")
        target = self._find_target(label, want_continue=True)
        if target is None or target.continue_block is None:
            return self._approximate(node, current_block, "continue without target")
        self._jump(current_block, target.continue_block, EdgeKind.CONTINUE, target.finally_depth)
        self._terminate(current_block)
        return current_block

    # --- Switch ---

    def _visit_SwitchStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `switch`: sequential case tests, fallthrough between bodies."""
        current_block.statements.append(node.get("discriminant", {}))
        dispatch = self._visit_expr(node.get("discriminant"), current_block)
        dispatch.type = "switch_discriminant"

        switch_exit_block = self._new_block(block_type="switch_exit")
        self._targets.append(_JumpTarget(None, switch_exit_block, None, len(self._finally_stack)))

        cases = node.get("cases") or []
        case_blocks = [self._new_block(block_type="case_body") for _ in cases]

        test_block = dispatch
        default_index = None
        for index, case in enumerate(cases):
            if case.get("test") is None:
                default_index = index
                continue
            test_end = self._visit_expr(case.get("test"), test_block)
            self._add_edge(test_end, case_blocks[index], EdgeKind.CASE)
            next_test = self._new_block(block_type="case_test")
            self._add_edge(test_end, next_test, EdgeKind.FALSE)
            test_block = next_test

        if default_index is not None:
            self._add_edge(test_block, case_blocks[default_index], EdgeKind.CASE)
        else:
            self._add_edge(test_block, switch_exit_block, EdgeKind.FALSE)

        previous_end = None
        for index, case in enumerate(cases):
            if previous_end is not None:
                # fallthrough from the previous case body
                self._flow(previous_end, case_blocks[index])
            previous_end = self._visit_statements(case.get("consequent") or [], case_blocks[index])
        if previous_end is not None:
            self._flow(previous_end, switch_exit_block)

        self._targets.pop()
        return switch_exit_block

    # --- Exceptions ---

    def _visit_TryStatement(self, node: dict[str, Any], current_block: CFGNode) -> CFGNode:
        """Handles `try/catch/finally` blocks.

        Every statement of the try body may throw, so the try entry and each
        statement block get an exception edge to the handler. The finally body
        is shared by all paths into it and fans out to each continuation.
        """
        handler = node.get("handler")
        finalizer = node.get("finalizer")

        frame = None
        finally_block = None
        if finalizer:
            finally_block = self._new_block(block_type="finally_body")
            frame = _FinallyFrame(entry=finally_block)

        catch_block = self._new_block(block_type="catch_clause") if handler else None
        exception_target = catch_block or finally_block
        merge_block = self._new_block(block_type="merge")
        normal_target = finally_block or merge_block

        try_body_block = self._new_block(block_type="try_body")
        self._add_edge(current_block, try_body_block)
        self._add_edge(try_body_block, exception_target, EdgeKind.EXCEPTION)

        if frame:
            self._finally_stack.append(frame)
        self._handlers.append(exception_target)
        block = try_body_block
        for stmt in (node.get("block") or {}).get("body", []):
            if self._is_terminated(block):
                block = self._new_block(block_type="unreachable")
            else:
                next_block = self._new_block(block_type="try_body")
                self._add_edge(block, next_block)
                block = next_block
            self._add_edge(block, exception_target, EdgeKind.EXCEPTION)
            block = self._visit(stmt, block)
        self._handlers.pop()
        final_try_block = block
        self._flow(final_try_block, normal_target)

        if handler:
            if finally_block is not None:
                self._handlers.append(finally_block)
                self._add_edge(catch_block, finally_block, EdgeKind.EXCEPTION)
            catch_end = self._visit_pattern(handler.get("param"), catch_block)
            catch_end = self._visit_body(handler.get("body"), catch_end)
            if finally_block is not None:
                self._handlers.pop()
            self._flow(catch_end, normal_target)

        if frame is None:
            return merge_block

        self._finally_stack.pop()
        finally_end = self._visit_body(finalizer, finally_block)
        if self._is_terminated(finally_end):
            return merge_block

        # Normal completion of try or catch
        self._add_edge(finally_end, merge_block)
        # Exceptional entry re-throws after the finally body
        rethrow_target = self._handlers[-1] if self._handlers else self.cfg.throw_exit_node
        self._add_edge(finally_end, rethrow_target, EdgeKind.THROW)
        for target, kind, depth in frame.pending:
            self._jump(finally_end, target, kind, depth)
        return merge_block

    def _visit_WithStatement(self, node, current_block):
        block = self._visit_expr(node.get("object"), current_block)
        return self._visit_body(node.get("body"), block)

    # --- Expressions ---

    def _visit_expr(self, node: dict[str, Any] | None, block: CFGNode) -> CFGNode:
        """Visit an expression in evaluation order, splitting at branches."""
        if node is None or not isinstance(node, dict):
            return block
        kind = node.get("type")

        if kind in FUNCTION_TYPES or kind in _LEAF_EXPRESSIONS:
            return block
        if kind in CLASS_TYPES:
            return self._visit_expr(node.get("superClass"), block)
        if kind in TRANSPARENT_WRAPPERS:
            return self._visit_expr(node.get("expression"), block)

        if kind in ("CallExpression", "NewExpression", "OptionalCallExpression"):
            return self._visit_call(node, block)
        if kind in ("MemberExpression", "OptionalMemberExpression"):
            return self._visit_member(node, block)
        if kind == "ChainExpression":
            chain_end = self._new_block(block_type="chain_end")
            self._chain_ends.append(chain_end)
            block = self._visit_expr(node.get("expression"), block)
            self._chain_ends.pop()
            self._add_edge(block, chain_end)
            return chain_end
        if kind == "LogicalExpression":
            block = self._visit_expr(node.get("left"), block)
            return self._branch_right(node.get("operator"), node.get("right"), block)
        if kind == "ConditionalExpression":
            block = self._visit_expr(node.get("test"), block)
            consequent = self._new_block(block_type="ternary_true")
            alternate = self._new_block(block_type="ternary_false")
            merge = self._new_block(block_type="merge")
            self._add_edge(block, consequent, EdgeKind.TRUE)
            self._add_edge(block, alternate, EdgeKind.FALSE)
            self._add_edge(self._visit_expr(node.get("consequent"), consequent), merge)
            self._add_edge(self._visit_expr(node.get("alternate"), alternate), merge)
            return merge
        if kind == "AssignmentExpression":
            return self._visit_assignment(node, block)
        if kind == "UpdateExpression":
            return self._visit_expr(node.get("argument"), block)
        if kind == "ObjectExpression":
            for prop in node.get("properties") or []:
                if prop.get("type") == "SpreadElement":
                    block = self._visit_expr(prop.get("argument"), block)
                    continue
                if prop.get("computed"):
                    block = self._visit_expr(prop.get("key"), block)
                block = self._visit_expr(prop.get("value"), block)
            return block
        if kind == "JSXElement":
            opening = node.get("openingElement") or {}
            for attr in opening.get("attributes") or []:
                block = self._visit_expr(attr, block)
            for child in node.get("children") or []:
                block = self._visit_expr(child, block)
            return block
        if kind in _SEQUENTIAL_EXPRESSIONS:
            for key in _SEQUENTIAL_EXPRESSIONS[kind]:
                value = node.get(key)
                if isinstance(value, list):
                    for item in value:
                        block = self._visit_expr(item, block)
                else:
                    block = self._visit_expr(value, block)
            return block
        if kind in ("ObjectPattern", "ArrayPattern", "AssignmentPattern", "RestElement"):
            return self._visit_pattern(node, block)

        has_calls = any(
            node_type(inner) in ("CallExpression", "OptionalCallExpression", "NewExpression")
            for inner in walk(node, skip_functions=True)
        )
        if not has_calls:
            return block
        return self._approximate(node, block, "unsupported expression")

    def _branch_right(self, operator: str | None, right: dict[str, Any], block: CFGNode) -> CFGNode:
        """The right operand of a short-circuit operator runs conditionally."""
        right_block = self._new_block(block_type="logical_right")
        merge = self._new_block(block_type="merge")
        taken = EdgeKind.FALSE if operator in ("||", "||=") else EdgeKind.TRUE
        skipped = EdgeKind.TRUE if taken is EdgeKind.FALSE else EdgeKind.FALSE
        self._add_edge(block, right_block, taken)
        self._add_edge(block, merge, skipped)
        self._add_edge(self._visit_expr(right, right_block), merge)
        return merge

    def _optional_branch(self, block: CFGNode) -> CFGNode:
        """Split at ``?.``: the rest of the chain is skipped on null/undefined."""
        cont = self._new_block(block_type="chain_continue")
        self._add_edge(block, cont, EdgeKind.TRUE)
        if self._chain_ends:
            self._add_edge(block, self._chain_ends[-1], EdgeKind.FALSE)
        return cont

    def _visit_member(self, node: dict[str, Any], block: CFGNode) -> CFGNode:
        implicit_chain = node.get("optional") and not self._chain_ends
        if implicit_chain:
            # Babel-style optional nodes outside a ChainExpression
            chain_end = self._new_block(block_type="chain_end")
            self._chain_ends.append(chain_end)
        block = self._visit_expr(node.get("object"), block)
        if node.get("optional"):
            block = self._optional_branch(block)
        if node.get("computed"):
            block = self._visit_expr(node.get("property"), block)
        if implicit_chain:
            chain_end = self._chain_ends.pop()
            self._add_edge(block, chain_end)
            return chain_end
        return block

    def _visit_call(self, node: dict[str, Any], block: CFGNode) -> CFGNode:
        implicit_chain = node.get("optional") and not self._chain_ends
        if implicit_chain:
            chain_end = self._new_block(block_type="chain_end")
            self._chain_ends.append(chain_end)
        block = self._visit_expr(node.get("callee"), block)
        if node.get("optional"):
            block = self._optional_branch(block)
        for argument in node.get("arguments") or []:
            block = self._visit_expr(argument, block)
        self._record_call(block, node)
        if implicit_chain:
            chain_end = self._chain_ends.pop()
            self._add_edge(block, chain_end)
            return chain_end
        return block

    def _visit_assignment(self, node: dict[str, Any], block: CFGNode) -> CFGNode:
        left = node.get("left") or {}
        operator = node.get("operator", "=")
        if left.get("type") in ("MemberExpression", "OptionalMemberExpression"):
            block = self._visit_expr(left.get("object"), block)
            if left.get("computed"):
                block = self._visit_expr(left.get("property"), block)
        if operator in ("&&=", "||=", "??="):
            return self._branch_right(operator, node.get("right"), block)
        block = self._visit_expr(node.get("right"), block)
        if left.get("type") in ("ObjectPattern", "ArrayPattern", "AssignmentPattern"):
            block = self._visit_pattern(left, block)
        return block

    def _visit_pattern(self, pattern: dict[str, Any] | None, block: CFGNode) -> CFGNode:
        """Destructuring: default values are evaluated only when needed."""
        if not pattern:
            return block
        kind = pattern.get("type")
        if kind == "AssignmentPattern":
            block = self._visit_pattern(pattern.get("left"), block)
            default_block = self._new_block(block_type="default_value")
            merge = self._new_block(block_type="merge")
            self._add_edge(block, default_block, EdgeKind.TRUE)
            self._add_edge(block, merge, EdgeKind.FALSE)
            self._add_edge(self._visit_expr(pattern.get("right"), default_block), merge)
            return merge
        if kind == "ObjectPattern":
            for prop in pattern.get("properties") or []:
                if prop.get("type") in ("RestElement", "RestProperty"):
                    block = self._visit_pattern(prop.get("argument"), block)
                    continue
                if prop.get("computed"):
                    block = self._visit_expr(prop.get("key"), block)
                block = self._visit_pattern(prop.get("value"), block)
            return block
        if kind == "ArrayPattern":
            for element in pattern.get("elements") or []:
                block = self._visit_pattern(element, block)
            return block
        if kind in ("RestElement", "RestProperty"):
            return self._visit_pattern(pattern.get("argument"), block)
        if kind in ("MemberExpression", "OptionalMemberExpression"):
            return self._visit_member(pattern, block)
        return block
