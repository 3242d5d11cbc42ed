"""Pytest configuration and fixtures."""

import textwrap

import pytest

from hookauditor.analyzer import HooksAnalyzer
from hookauditor.ast_parser import JSParser
from hookauditor.config_runtime import HooksConfig
from hookauditor.graph.cf_graph_js import CFGBuilderJS
from hookauditor.rules.hooks.function_units import discover_units
from hookauditor.rules.hooks.hook_registry import HookRegistry
from hookauditor.scope_manager import ScopeManager


def dedent(source: str) -> str:
    return textwrap.dedent(source).strip() + "\n"


@pytest.fixture
def parse():
    """Parse JavaScript source into an ESTree Program dict."""
    parser = JSParser()

    def _parse(source: str):
        return parser.parse(dedent(source)).tree

    return _parse


@pytest.fixture
def analyzer():
    return HooksAnalyzer(HooksConfig(), workers=1)


@pytest.fixture
def analyze(analyzer):
    """Run both hook rules over a source snippet and return the diagnostics."""

    def _analyze(source: str):
        result = analyzer.analyze_source(dedent(source), "Component.jsx")
        assert not result.errors, result.errors
        return result.diagnostics

    return _analyze


@pytest.fixture
def kinds(analyze):
    """Sorted kind values of the diagnostics for a snippet."""

    def _kinds(source: str):
        return sorted(d.kind.value for d in analyze(source))

    return _kinds


@pytest.fixture
def function_cfg(parse):
    """Build the CFG of the first function named ``name`` in a snippet."""

    def _build(source: str, name: str):
        program = parse(source)
        scopes = ScopeManager(program)
        for unit in discover_units(program, scopes, HookRegistry()):
            if unit.name == name:
                return CFGBuilderJS().build(name, unit.node)
        raise LookupError(name)

    return _build


@pytest.fixture
def sample_project(tmp_path):
    """Minimal component tree with one clean file and one with findings."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "Clean.jsx").write_text(
        dedent(
            """
            import { useState } from 'react';

            export function Clean() {
              const [count, setCount] = useState(0);
              return <button onClick={() => setCount(count + 1)}>{count}</button>;
            }
            """
        )
    )
    (src / "Broken.jsx").write_text(
        dedent(
            """
            import { useState, useEffect } from 'react';

            export function Broken({ items, userId }) {
              for (const item of items) {
                useState(item);
              }
              useEffect(() => {
                console.log(userId);
              }, []);
              return null;
            }
            """
        )
    )
    modules = tmp_path / "node_modules" / "lib"
    modules.mkdir(parents=True)
    (modules / "index.js").write_text("function helper() { useState(); }\n")
    return tmp_path
