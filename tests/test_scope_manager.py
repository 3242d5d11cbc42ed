"""Tests for lexical scope resolution."""

from hookauditor.js_ast import walk
from hookauditor.scope_manager import ScopeManager


def identifiers(program, name):
    return [n for n in walk(program) if n.get("type") == "Identifier" and n.get("name") == name]


class TestBindings:
    def test_const_binding_and_reference(self, parse):
        program = parse(
            """
            const limit = 10;
            function f() { return limit; }
            """
        )
        scopes = ScopeManager(program)
        declaration, use = identifiers(program, "limit")
        binding = scopes.resolve(use)
        assert binding is scopes.resolve(declaration)
        assert binding.kind == "const"
        assert binding.is_const
        assert binding.scope is scopes.global_scope
        assert binding.definition["type"] == "VariableDeclarator"

    def test_shadowing_in_block(self, parse):
        program = parse(
            """
            function f(x) {
              {
                const x = 2;
                use(x);
              }
              return x;
            }
            """
        )
        scopes = ScopeManager(program)
        param, inner_decl, inner_use, outer_use = identifiers(program, "x")
        assert scopes.resolve(inner_use) is scopes.resolve(inner_decl)
        assert scopes.resolve(outer_use).kind == "param"

    def test_var_is_hoisted_to_function_scope(self, parse):
        program = parse(
            """
            function f(c) {
              if (c) { var v = 1; }
              return v;
            }
            """
        )
        scopes = ScopeManager(program)
        function = program["body"][0]
        use = identifiers(program, "v")[-1]
        binding = scopes.resolve(use)
        assert binding.kind == "var"
        assert binding.scope is scopes.acquire(function)

    def test_use_before_declaration_resolves(self, parse):
        program = parse(
            """
            function f() {
              const g = () => later;
              const later = 1;
              return g;
            }
            """
        )
        scopes = ScopeManager(program)
        use = identifiers(program, "later")[0]
        assert scopes.resolve(use).kind == "const"

    def test_imports(self, parse):
        program = parse("import React, { useState as useS } from 'react';\nuseS();\n")
        scopes = ScopeManager(program)
        call_callee = program["body"][1]["expression"]["callee"]
        binding = scopes.resolve(call_callee)
        assert binding.kind == "import"
        assert binding.definition["type"] == "ImportSpecifier"

    def test_globals_are_unresolved(self, parse):
        program = parse("window.alert(1);\n")
        scopes = ScopeManager(program)
        assert scopes.resolve(identifiers(program, "window")[0]) is None

    def test_catch_parameter(self, parse):
        program = parse("try { a(); } catch (err) { log(err); }\n")
        scopes = ScopeManager(program)
        assert scopes.resolve(identifiers(program, "err")[-1]).kind == "catch"


class TestReferences:
    def test_read_write_roles(self, parse):
        program = parse(
            """
            function f() {
              let n = 0;
              n = 1;
              n += 2;
              n++;
              return n;
            }
            """
        )
        scopes = ScopeManager(program)
        refs = [r for r in scopes.references_within(program["body"][0]) if r.name == "n"]
        roles = [(r.is_read, r.is_write) for r in refs]
        assert roles == [(False, True), (True, True), (True, True), (True, False)]

    def test_member_property_is_not_a_reference(self, parse):
        program = parse("function f(obj) { return obj.value; }\n")
        scopes = ScopeManager(program)
        names = [r.name for r in scopes.references_within(program["body"][0])]
        assert names == ["obj"]

    def test_jsx_component_names_are_references(self, parse):
        program = parse(
            """
            function A() {
              return <Button label={text}><div /></Button>;
            }
            """
        )
        scopes = ScopeManager(program)
        names = [r.name for r in scopes.references_within(program["body"][0])]
        assert "Button" in names
        assert "text" in names
        assert "div" not in names
        assert "label" not in names

    def test_scope_for_call_in_function_body(self, parse):
        program = parse("function f() { g(); }\n")
        scopes = ScopeManager(program)
        function = program["body"][0]
        call = function["body"]["body"][0]["expression"]
        assert scopes.scope_for(call) is scopes.acquire(function)
        assert scopes.scope_for(function) is scopes.global_scope
