"""Tests for the esprima-backed parser and the ESTree helpers."""

import pytest

from hookauditor.ast_parser import JSParseError, JSParser, parse_js
from hookauditor.js_ast import (
    build_parent_map,
    is_async,
    member_path,
    node_location,
    returns_jsx,
    root_identifier,
    source_text,
    walk,
)


class TestJSParser:
    def test_parses_jsx_module(self):
        parsed = JSParser().parse("import React from 'react';\nexport const A = () => <div />;\n", "a.jsx")
        assert parsed.source_type == "module"
        assert parsed.tree["type"] == "Program"
        assert parsed.file_path == "a.jsx"

    def test_falls_back_to_script_goal(self):
        parsed = JSParser().parse("with (obj) { run(); }\n")
        assert parsed.source_type == "script"

    def test_syntax_error_carries_position(self):
        with pytest.raises(JSParseError) as exc_info:
            JSParser().parse("function (\n", "broken.js")
        error = exc_info.value
        assert error.file_path == "broken.js"
        assert error.line == 1
        assert error.reason
        assert str(error).startswith("broken.js:1:")

    def test_parse_file(self, tmp_path):
        path = tmp_path / "x.js"
        path.write_text("const x = 1;\n")
        parsed = JSParser().parse_file(path)
        assert parsed.source == "const x = 1;\n"
        assert parsed.file_path == str(path)

    def test_nodes_carry_loc_and_range(self):
        program = parse_js("foo(bar);\n")
        call = program["body"][0]["expression"]
        assert node_location(call) == (1, 0, 1, 8)
        assert source_text(call, "foo(bar);\n") == "foo(bar)"


class TestHelpers:
    def test_member_path(self):
        program = parse_js("a.b.c; a[b]; a.b();\n")
        first, computed, called = (stmt["expression"] for stmt in program["body"])
        assert member_path(first) == "a.b.c"
        assert member_path(computed) is None
        assert member_path(called) is None
        assert root_identifier(computed)["name"] == "a"

    def test_optional_chain_path(self):
        chain = {
            "type": "ChainExpression",
            "expression": {
                "type": "MemberExpression",
                "object": {"type": "Identifier", "name": "props"},
                "property": {"type": "Identifier", "name": "user"},
                "computed": False,
                "optional": True,
            },
        }
        assert member_path(chain) == "props.user"
        assert root_identifier(chain)["name"] == "props"

    def test_returns_jsx_ignores_nested_functions(self):
        program = parse_js(
            "function A() { return <div />; }\n"
            "function b() { const r = () => <div />; return r; }\n"
        )
        component, helper = program["body"]
        assert returns_jsx(component)
        assert not returns_jsx(helper)

    def test_is_async(self):
        program = parse_js("async function f() {}\nfunction g() {}\n")
        assert is_async(program["body"][0])
        assert not is_async(program["body"][1])

    def test_walk_skip_functions(self):
        program = parse_js("outer(); function f() { inner(); }\n")
        callees = [
            n["callee"]["name"] for n in walk(program, skip_functions=True) if n.get("type") == "CallExpression"
        ]
        assert callees == ["outer"]

    def test_parent_map(self):
        program = parse_js("x = 1;\n")
        statement = program["body"][0]
        parents = build_parent_map(program)
        assert parents[id(statement)] is program
        assert parents[id(statement["expression"])] is statement
