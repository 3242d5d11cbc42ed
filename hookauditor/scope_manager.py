"""Lexical scope resolution for ESTree dict ASTs.

Builds the scope tree of a Program (module, function, block, catch and
class scopes), declares every binding with hoisting applied, records every
identifier reference together with its read/write role and resolves the
references once the whole tree has been visited. Resolution is lazy so that
uses before a ``let``/``const``/function declaration in the same scope still
bind to it.

Unresolved references (implicit globals such as ``window``) resolve to None;
callers treat them conservatively.
"""

from dataclasses import dataclass, field
from typing import Any

from hookauditor.js_ast import (
    CLASS_TYPES,
    FUNCTION_TYPES,
    build_parent_map,
    iter_child_nodes,
    node_type,
)

PATTERN_TYPES = frozenset(
    ["Identifier", "ObjectPattern", "ArrayPattern", "AssignmentPattern", "RestElement"]
)


@dataclass(eq=False)
class Binding:
    """A declared name."""

    name: str
    kind: str
    scope: "Scope"
    identifier: dict[str, Any]
    definition: dict[str, Any] | None = None
    references: list["Reference"] = field(default_factory=list)

    @property
    def is_const(self) -> bool:
        return self.kind in ("const", "import")

    def __repr__(self) -> str:
        return f"<Binding {self.kind} {self.name} in {self.scope.kind}>"


@dataclass(eq=False)
class Reference:
    """One identifier occurrence that reads and/or writes a name."""

    identifier: dict[str, Any]
    scope: "Scope"
    is_read: bool = True
    is_write: bool = False
    binding: Binding | None = None

    @property
    def name(self) -> str:
        return self.identifier.get("name", "")


@dataclass(eq=False)
class Scope:
    """A lexical scope."""

    kind: str
    node: dict[str, Any]
    parent: "Scope | None" = None
    bindings: dict[str, Binding] = field(default_factory=dict)
    children: list["Scope"] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)

    @property
    def is_function_scope(self) -> bool:
        return self.kind in ("function", "module")

    def function_scope(self) -> "Scope":
        scope = self
        while not scope.is_function_scope and scope.parent is not None:
            scope = scope.parent
        return scope

    def lookup(self, name: str) -> Binding | None:
        scope = self
        while scope is not None:
            binding = scope.bindings.get(name)
            if binding is not None:
                return binding
            scope = scope.parent
        return None

    def is_within(self, other: "Scope") -> bool:
        """True when this scope equals ``other`` or is nested inside it."""
        scope = self
        while scope is not None:
            if scope is other:
                return True
            scope = scope.parent
        return False

    def declare(
        self,
        name: str,
        kind: str,
        identifier: dict[str, Any],
        definition: dict[str, Any] | None = None,
    ) -> Binding:
        existing = self.bindings.get(name)
        if existing is not None:
            # var redeclaration, or a function overriding a var
            if kind == "function" and existing.kind == "var":
                existing.kind = kind
                existing.definition = definition
            return existing
        binding = Binding(name, kind, self, identifier, definition)
        self.bindings[name] = binding
        return binding

    def __repr__(self) -> str:
        return f"<Scope {self.kind} bindings={sorted(self.bindings)}>"


class ScopeManager:
    """Scope analysis of one Program."""

    def __init__(self, program: dict[str, Any]):
        self.program = program
        self.parents = build_parent_map(program)
        self._scopes_by_node: dict[int, Scope] = {}
        self._references: dict[int, Reference] = {}
        self._declarations: dict[int, Binding] = {}
        self.global_scope = self._new_scope("module", program, None)
        self._visit_program(program)
        self._resolve_all()

    # ---- public API --------------------------------------------------

    def acquire(self, node: dict[str, Any]) -> Scope | None:
        """The scope created by ``node`` (function, block, program...)."""
        return self._scopes_by_node.get(id(node))

    def scope_for(self, node: dict[str, Any]) -> Scope:
        """Innermost scope that contains ``node``."""
        current = node
        while current is not None:
            scope = self._scopes_by_node.get(id(current))
            if scope is not None and current is not node:
                return scope
            if scope is not None and current is node and node_type(node) not in FUNCTION_TYPES:
                return scope
            current = self.parents.get(id(current))
        return self.global_scope

    def reference_for(self, identifier: dict[str, Any]) -> Reference | None:
        return self._references.get(id(identifier))

    def resolve(self, identifier: dict[str, Any]) -> Binding | None:
        """Binding an identifier refers to (reference or declaration site)."""
        reference = self._references.get(id(identifier))
        if reference is not None:
            return reference.binding
        return self._declarations.get(id(identifier))

    def declaration_of(self, identifier: dict[str, Any]) -> Binding | None:
        return self._declarations.get(id(identifier))

    def references_within(self, node: dict[str, Any]) -> list[Reference]:
        """All references whose identifier lies inside the scope of ``node``."""
        root = self.acquire(node)
        if root is None:
            return []
        result = []
        stack = [root]
        while stack:
            scope = stack.pop()
            result.extend(scope.references)
            stack.extend(scope.children)
        result.sort(key=lambda ref: _position(ref.identifier))
        return result

    def parent(self, node: dict[str, Any]) -> dict[str, Any] | None:
        return self.parents.get(id(node))

    # ---- construction ------------------------------------------------

    def _new_scope(self, kind: str, node: dict[str, Any], parent: Scope | None) -> Scope:
        scope = Scope(kind, node, parent)
        if parent is not None:
            parent.children.append(scope)
        self._scopes_by_node[id(node)] = scope
        return scope

    def _declare(self, scope: Scope, identifier: dict[str, Any], kind: str, definition) -> None:
        if node_type(identifier) != "Identifier":
            return
        binding = scope.declare(identifier.get("name", ""), kind, identifier, definition)
        self._declarations[id(identifier)] = binding

    def _add_reference(self, identifier: dict[str, Any], scope: Scope, read=True, write=False):
        reference = Reference(identifier, scope, is_read=read, is_write=write)
        scope.references.append(reference)
        self._references[id(identifier)] = reference

    def _resolve_all(self) -> None:
        for reference in self._references.values():
            binding = reference.scope.lookup(reference.name)
            reference.binding = binding
            if binding is not None:
                binding.references.append(reference)

    # ---- hoisting ----------------------------------------------------

    def _hoist_lexical(self, statements: list[dict[str, Any]], scope: Scope) -> None:
        """Declare let/const/class/function/import bindings of a statement list."""
        for stmt in statements:
            stmt = _unwrap_export(stmt)
            kind = node_type(stmt)
            if kind == "VariableDeclaration" and stmt.get("kind") in ("let", "const"):
                for declarator in stmt.get("declarations") or []:
                    for ident in _pattern_identifiers(declarator.get("id")):
                        self._declare(scope, ident, stmt["kind"], declarator)
            elif kind == "FunctionDeclaration" and stmt.get("id"):
                self._declare(scope, stmt["id"], "function", stmt)
            elif kind == "ClassDeclaration" and stmt.get("id"):
                self._declare(scope, stmt["id"], "class", stmt)
            elif kind == "ImportDeclaration":
                for spec in stmt.get("specifiers") or []:
                    if spec.get("local"):
                        self._declare(scope, spec["local"], "import", spec)

    def _hoist_var(self, body: Any, scope: Scope) -> None:
        """Declare ``var`` bindings anywhere in a function body."""
        stack = [body] if isinstance(body, dict) else list(body or [])
        while stack:
            node = stack.pop()
            if not isinstance(node, dict):
                continue
            kind = node_type(node)
            if kind in FUNCTION_TYPES or kind in CLASS_TYPES:
                continue
            if kind == "VariableDeclaration" and node.get("kind") == "var":
                for declarator in node.get("declarations") or []:
                    for ident in _pattern_identifiers(declarator.get("id")):
                        self._declare(scope, ident, "var", declarator)
            stack.extend(iter_child_nodes(node))

    # ---- visitors ----------------------------------------------------

    def _visit_program(self, program: dict[str, Any]) -> None:
        scope = self.global_scope
        body = program.get("body") or []
        self._hoist_var(body, scope)
        self._hoist_lexical(body, scope)
        for stmt in body:
            self._visit(stmt, scope)

    def _visit(self, node: Any, scope: Scope) -> None:
        if not isinstance(node, dict):
            return
        kind = node_type(node)
        visitor = getattr(self, f"_visit_{kind}", None)
        if visitor is not None:
            visitor(node, scope)
            return
        for child in iter_child_nodes(node):
            self._visit(child, scope)

    def _visit_Identifier(self, node, scope):
        self._add_reference(node, scope)

    def _visit_JSXIdentifier(self, node, scope):
        # Only capitalized element names refer to variables
        name = node.get("name") or ""
        if name[:1].isupper():
            self._add_reference(node, scope)

    def _visit_JSXOpeningElement(self, node, scope):
        name = node.get("name") or {}
        if node_type(name) == "JSXIdentifier":
            self._visit_JSXIdentifier(name, scope)
        elif node_type(name) == "JSXMemberExpression":
            root = name
            while node_type(root) == "JSXMemberExpression":
                root = root.get("object") or {}
            if node_type(root) == "JSXIdentifier":
                self._add_reference(root, scope)
        for attr in node.get("attributes") or []:
            self._visit(attr, scope)

    def _visit_JSXClosingElement(self, node, scope):
        return

    def _visit_JSXAttribute(self, node, scope):
        self._visit(node.get("value"), scope)

    def _visit_MemberExpression(self, node, scope):
        self._visit(node.get("object"), scope)
        if node.get("computed"):
            self._visit(node.get("property"), scope)

    _visit_OptionalMemberExpression = _visit_MemberExpression

    def _visit_MetaProperty(self, node, scope):
        return

    def _visit_LabeledStatement(self, node, scope):
        self._visit(node.get("body"), scope)

    def _visit_BreakStatement(self, node, scope):
        return

    _visit_ContinueStatement = _visit_BreakStatement

    def _visit_Property(self, node, scope):
        if node.get("computed"):
            self._visit(node.get("key"), scope)
        self._visit(node.get("value"), scope)

    def _visit_MethodDefinition(self, node, scope):
        if node.get("computed"):
            self._visit(node.get("key"), scope)
        self._visit(node.get("value"), scope)

    _visit_PropertyDefinition = _visit_MethodDefinition
    _visit_ClassProperty = _visit_MethodDefinition

    def _visit_ImportDeclaration(self, node, scope):
        return

    def _visit_ExportNamedDeclaration(self, node, scope):
        if node.get("declaration"):
            self._visit(node["declaration"], scope)
        elif not node.get("source"):
            for spec in node.get("specifiers") or []:
                if spec.get("local"):
                    self._add_reference(spec["local"], scope)

    def _visit_ExportAllDeclaration(self, node, scope):
        return

    def _visit_VariableDeclaration(self, node, scope):
        kind = node.get("kind", "var")
        for declarator in node.get("declarations") or []:
            target = scope.function_scope() if kind == "var" else scope
            for ident in _pattern_identifiers(declarator.get("id")):
                if id(ident) not in self._declarations:
                    self._declare(target, ident, kind, declarator)
            self._visit_pattern_expressions(declarator.get("id"), scope)
            self._visit(declarator.get("init"), scope)

    def _visit_AssignmentExpression(self, node, scope):
        left = node.get("left")
        compound = node.get("operator", "=") != "="
        if node_type(left) == "Identifier":
            self._add_reference(left, scope, read=compound, write=True)
        elif node_type(left) in PATTERN_TYPES:
            self._visit_assignment_target(left, scope)
        else:
            self._visit(left, scope)
        self._visit(node.get("right"), scope)

    def _visit_UpdateExpression(self, node, scope):
        argument = node.get("argument")
        if node_type(argument) == "Identifier":
            self._add_reference(argument, scope, read=True, write=True)
        else:
            self._visit(argument, scope)

    def _visit_FunctionDeclaration(self, node, scope):
        self._visit_function(node, scope)

    def _visit_FunctionExpression(self, node, scope):
        self._visit_function(node, scope)

    def _visit_ArrowFunctionExpression(self, node, scope):
        self._visit_function(node, scope)

    def _visit_function(self, node, scope):
        fscope = self._new_scope("function", node, scope)
        if node_type(node) == "FunctionExpression" and node.get("id"):
            self._declare(fscope, node["id"], "function-name", node)
        for param in node.get("params") or []:
            for ident in _pattern_identifiers(param):
                self._declare(fscope, ident, "param", node)
        for param in node.get("params") or []:
            self._visit_pattern_expressions(param, fscope)

        body = node.get("body")
        if node_type(body) == "BlockStatement":
            statements = body.get("body") or []
            self._hoist_var(statements, fscope)
            self._hoist_lexical(statements, fscope)
            self._scopes_by_node[id(body)] = fscope
            for stmt in statements:
                self._visit(stmt, fscope)
        else:
            self._visit(body, fscope)

    def _visit_ClassDeclaration(self, node, scope):
        self._visit_class(node, scope)

    def _visit_ClassExpression(self, node, scope):
        self._visit_class(node, scope)

    def _visit_class(self, node, scope):
        self._visit(node.get("superClass"), scope)
        cscope = self._new_scope("class", node, scope)
        if node_type(node) == "ClassExpression" and node.get("id"):
            self._declare(cscope, node["id"], "class", node)
        body = node.get("body") or {}
        for member in body.get("body") or []:
            self._visit(member, cscope)

    def _visit_BlockStatement(self, node, scope):
        bscope = self._new_scope("block", node, scope)
        statements = node.get("body") or []
        self._hoist_lexical(statements, bscope)
        for stmt in statements:
            self._visit(stmt, bscope)

    def _visit_StaticBlock(self, node, scope):
        self._visit_BlockStatement(node, scope)

    def _visit_loop_with_head(self, node, scope, head_key):
        head = node.get(head_key)
        lscope = scope
        if node_type(head) == "VariableDeclaration" and head.get("kind") in ("let", "const"):
            lscope = self._new_scope("block", node, scope)
            self._hoist_lexical([head], lscope)
        for key, value in node.items():
            if key in ("type", "loc", "range"):
                continue
            if key == "left" and node_type(value) in PATTERN_TYPES:
                self._visit_assignment_target(value, lscope)
            elif isinstance(value, dict):
                self._visit(value, lscope)

    def _visit_ForStatement(self, node, scope):
        self._visit_loop_with_head(node, scope, "init")

    def _visit_ForInStatement(self, node, scope):
        self._visit_loop_with_head(node, scope, "left")

    def _visit_ForOfStatement(self, node, scope):
        self._visit_loop_with_head(node, scope, "left")

    def _visit_SwitchStatement(self, node, scope):
        self._visit(node.get("discriminant"), scope)
        sscope = self._new_scope("block", node, scope)
        cases = node.get("cases") or []
        self._hoist_lexical([stmt for case in cases for stmt in case.get("consequent") or []], sscope)
        for case in cases:
            self._visit(case.get("test"), sscope)
            for stmt in case.get("consequent") or []:
                self._visit(stmt, sscope)

    def _visit_CatchClause(self, node, scope):
        cscope = self._new_scope("catch", node, scope)
        param = node.get("param")
        for ident in _pattern_identifiers(param):
            self._declare(cscope, ident, "catch", node)
        self._visit_pattern_expressions(param, cscope)
        self._visit(node.get("body"), cscope)

    # ---- patterns ----------------------------------------------------

    def _visit_pattern_expressions(self, pattern, scope):
        """Visit defaults and computed keys inside a binding pattern."""
        kind = node_type(pattern)
        if kind == "AssignmentPattern":
            self._visit_pattern_expressions(pattern.get("left"), scope)
            self._visit(pattern.get("right"), scope)
        elif kind == "ObjectPattern":
            for prop in pattern.get("properties") or []:
                if node_type(prop) == "RestElement":
                    self._visit_pattern_expressions(prop.get("argument"), scope)
                    continue
                if prop.get("computed"):
                    self._visit(prop.get("key"), scope)
                self._visit_pattern_expressions(prop.get("value"), scope)
        elif kind == "ArrayPattern":
            for element in pattern.get("elements") or []:
                self._visit_pattern_expressions(element, scope)
        elif kind == "RestElement":
            self._visit_pattern_expressions(pattern.get("argument"), scope)

    def _visit_assignment_target(self, pattern, scope):
        """Record writes for a destructuring assignment target."""
        kind = node_type(pattern)
        if kind == "Identifier":
            if id(pattern) not in self._declarations:
                self._add_reference(pattern, scope, read=False, write=True)
        elif kind == "AssignmentPattern":
            self._visit_assignment_target(pattern.get("left"), scope)
            self._visit(pattern.get("right"), scope)
        elif kind == "ObjectPattern":
            for prop in pattern.get("properties") or []:
                if node_type(prop) == "RestElement":
                    self._visit_assignment_target(prop.get("argument"), scope)
                    continue
                if prop.get("computed"):
                    self._visit(prop.get("key"), scope)
                self._visit_assignment_target(prop.get("value"), scope)
        elif kind == "ArrayPattern":
            for element in pattern.get("elements") or []:
                self._visit_assignment_target(element, scope)
        elif kind == "RestElement":
            self._visit_assignment_target(pattern.get("argument"), scope)
        elif kind == "VariableDeclaration":
            self._visit(pattern, scope)
        else:
            self._visit(pattern, scope)


def _unwrap_export(stmt: dict[str, Any]) -> dict[str, Any]:
    if node_type(stmt) in ("ExportNamedDeclaration", "ExportDefaultDeclaration"):
        declaration = stmt.get("declaration")
        if isinstance(declaration, dict):
            return declaration
    return stmt


def _pattern_identifiers(pattern: Any) -> list[dict[str, Any]]:
    """Binding identifiers introduced by a declaration pattern."""
    result = []
    stack = [pattern]
    while stack:
        node = stack.pop()
        kind = node_type(node)
        if kind == "Identifier":
            result.append(node)
        elif kind == "AssignmentPattern":
            stack.append(node.get("left"))
        elif kind == "ObjectPattern":
            for prop in node.get("properties") or []:
                if node_type(prop) == "RestElement":
                    stack.append(prop.get("argument"))
                else:
                    stack.append(prop.get("value"))
        elif kind == "ArrayPattern":
            stack.extend(el for el in node.get("elements") or [] if el)
        elif kind == "RestElement":
            stack.append(node.get("argument"))
    return result


def _position(node: dict[str, Any]) -> tuple[int, int]:
    rng = node.get("range")
    if isinstance(rng, (list, tuple)) and rng:
        return (rng[0], 0)
    loc = node.get("loc") or {}
    start = loc.get("start") or {}
    return (start.get("line", 0), start.get("column", 0))
