"""Tests for hook call-order verification.

Each case is a small component or custom hook; expectations are the kinds of
diagnostics the verifier reports for it.
"""

import pytest

from hookauditor.analyzer import HooksAnalyzer
from hookauditor.rules.base import Confidence, ViolationKind


class TestPlacement:
    def test_top_level_calls_are_clean(self, kinds):
        assert kinds(
            """
            function Counter() {
              const [count, setCount] = useState(0);
              const ref = useRef(null);
              return <span ref={ref}>{count}</span>;
            }
            """
        ) == []

    def test_call_in_loop(self, analyze):
        diagnostics = analyze(
            """
            function List({ items }) {
              for (const item of items) {
                useState(item);
              }
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.LOOP_CALL]
        assert diagnostics[0].line == 3
        assert diagnostics[0].rule == "rules-of-hooks"
        assert diagnostics[0].data == {"hook": "useState"}

    @pytest.mark.parametrize(
        "loop",
        [
            "for (;;) { useState(0); }",
            "for (;;) { useState(0); break; }",
            "for (let i = 0; i < n; i++) { useState(i); }",
            "for (const key in obj) { useState(key); }",
            "while (c) { useState(0); }",
            "while (true) { useState(0); break; }",
            "while (true) { const [a] = useState(0); return a; }",
            "do { useState(0); } while (c);",
        ],
    )
    def test_every_loop_kind_reports_once(self, analyze, loop):
        diagnostics = analyze(f"function List({{ c, n, obj }}) {{\n  {loop}\n  return null;\n}}\n")
        assert [d.kind for d in diagnostics] == [ViolationKind.LOOP_CALL]
        assert diagnostics[0].line == 2

    def test_call_after_conditional_call_of_same_hook(self, analyze):
        diagnostics = analyze(
            """
            function Form({ advanced }) {
              if (advanced) {
                useState(1);
              }
              useState(2);
              return null;
            }
            """
        )
        assert [(d.kind, d.line) for d in diagnostics] == [(ViolationKind.CONDITIONAL_CALL, 3)]

    def test_call_in_one_branch(self, analyze):
        diagnostics = analyze(
            """
            function Panel({ open }) {
              if (open) {
                useEffect(() => {}, []);
              }
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.CONDITIONAL_CALL]
        assert diagnostics[0].data["early_return"] is False

    def test_same_call_in_both_branches(self, kinds):
        assert kinds(
            """
            function Panel({ open }) {
              if (open) {
                useState(1);
              } else {
                useState(2);
              }
              return null;
            }
            """
        ) == []

    def test_call_after_early_return(self, analyze):
        diagnostics = analyze(
            """
            function Profile({ user }) {
              if (!user) {
                return null;
              }
              const [name] = useState(user.name);
              return name;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.CONDITIONAL_CALL]
        assert diagnostics[0].data["early_return"] is True
        assert "early return" in diagnostics[0].message

    def test_call_in_short_circuit(self, kinds):
        assert kinds(
            """
            function Flag({ on }) {
              const value = on && useContext(Ctx);
              return value;
            }
            """
        ) == ["conditional-call"]

    def test_call_in_ternary(self, kinds):
        assert kinds(
            """
            function Flag({ on }) {
              const value = on ? useMemo(() => 1, []) : null;
              return value;
            }
            """
        ) == ["conditional-call"]

    def test_call_in_try_block(self, kinds):
        assert kinds(
            """
            function Risky() {
              try {
                riskyWork();
                useState(0);
              } catch (e) {
                return null;
              }
              return null;
            }
            """
        ) == ["conditional-call"]

    def test_throw_paths_do_not_count(self, kinds):
        assert kinds(
            """
            function Guarded({ value }) {
              if (value == null) {
                throw new Error('value is required');
              }
              useState(value);
              return null;
            }
            """
        ) == []

    def test_custom_hook_in_condition(self, kinds):
        assert kinds(
            """
            function useData(enabled) {
              if (enabled) {
                useFetch('/api');
              }
            }
            """
        ) == ["conditional-call"]

    def test_plain_call_in_condition_is_not_flagged(self, kinds):
        assert kinds(
            """
            function Panel({ open }) {
              if (open) {
                track('open');
              }
              const [x] = useState(0);
              return x;
            }
            """
        ) == []

    def test_use_api_is_order_exempt(self, kinds):
        assert kinds(
            """
            function Theme({ show }) {
              if (show) {
                const theme = use(ThemeContext);
                return theme;
              }
              return null;
            }
            """
        ) == []

    def test_unreachable_call(self, analyze):
        diagnostics = analyze(
            """
            function Dead() {
              return null;
              useState(0);
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.CONDITIONAL_CALL]
        assert diagnostics[0].data["unreachable"] is True


class TestOrder:
    def test_reversed_order_in_switch(self, kinds):
        result = kinds(
            """
            function Mode({ mode }) {
              switch (mode) {
                case 'a':
                  useAlpha();
                  useBeta();
                  break;
                default:
                  useBeta();
                  useAlpha();
              }
              return null;
            }
            """
        )
        assert result
        assert set(result) == {"order-mismatch"}

    def test_consistent_order_in_switch(self, kinds):
        assert kinds(
            """
            function Mode({ mode }) {
              switch (mode) {
                case 'a':
                  useAlpha();
                  useBeta();
                  break;
                default:
                  useAlpha();
                  useBeta();
              }
              return null;
            }
            """
        ) == []


class TestHosts:
    def test_top_level_call(self, analyze):
        diagnostics = analyze("const [x] = useState(0);\n")
        assert [d.kind for d in diagnostics] == [ViolationKind.INVALID_HOST]
        assert diagnostics[0].data["host_kind"] == "top-level"

    def test_plain_function(self, analyze):
        diagnostics = analyze(
            """
            function helper() {
              return useState(0);
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.INVALID_HOST]
        assert diagnostics[0].data["host_kind"] == "function"
        assert '"helper"' in diagnostics[0].message

    def test_class_method(self, analyze):
        diagnostics = analyze(
            """
            class Widget {
              render() {
                useState(0);
                return null;
              }
            }
            """
        )
        assert diagnostics[0].data["host_kind"] == "class"

    def test_callback_inside_component(self, analyze):
        diagnostics = analyze(
            """
            function List({ items }) {
              return items.map((item) => {
                const [open] = useState(false);
                return open;
              });
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.INVALID_HOST]
        assert diagnostics[0].data["host_kind"] == "callback"

    def test_anonymous_function_outside_host_is_not_reported(self, kinds):
        assert kinds("setup(function () { useState(0); });\n") == []

    def test_async_component(self, kinds):
        assert kinds(
            """
            async function Page() {
              const [x] = useState(0);
              return x;
            }
            """
        ) == ["async-host"]

    def test_memo_wrapped_component(self, kinds):
        assert kinds(
            """
            const Card = memo(function ({ open }) {
              if (open) {
                useState(0);
              }
              return null;
            });
            """
        ) == ["conditional-call"]


class TestHandBuiltTrees:
    """Syntax the parser cannot produce, fed as ESTree dicts."""

    @staticmethod
    def component(*statements):
        return {
            "type": "Program",
            "sourceType": "module",
            "body": [
                {
                    "type": "FunctionDeclaration",
                    "id": {"type": "Identifier", "name": "Comp"},
                    "params": [{"type": "Identifier", "name": "props"}],
                    "body": {"type": "BlockStatement", "body": list(statements)},
                    "generator": False,
                    "async": False,
                }
            ],
        }

    @staticmethod
    def props_member(name, optional=False):
        return {
            "type": "MemberExpression",
            "object": {"type": "Identifier", "name": "props"},
            "property": {"type": "Identifier", "name": name},
            "computed": False,
            "optional": optional,
        }

    def test_nullish_coalescing_call(self):
        hook_call = {"type": "CallExpression", "callee": {"type": "Identifier", "name": "useFoo"}, "arguments": []}
        program = self.component(
            {
                "type": "ExpressionStatement",
                "expression": {
                    "type": "LogicalExpression",
                    "operator": "??",
                    "left": self.props_member("value"),
                    "right": hook_call,
                },
            }
        )
        result = HooksAnalyzer(workers=1).analyze_tree(program)
        assert [d.kind for d in result.diagnostics] == [ViolationKind.CONDITIONAL_CALL]

    def test_optional_call_argument(self):
        hook_call = {"type": "CallExpression", "callee": {"type": "Identifier", "name": "useBar"}, "arguments": []}
        program = self.component(
            {
                "type": "ExpressionStatement",
                "expression": {
                    "type": "ChainExpression",
                    "expression": {
                        "type": "CallExpression",
                        "callee": self.props_member("onLoad", optional=True),
                        "arguments": [hook_call],
                        "optional": False,
                    },
                },
            }
        )
        result = HooksAnalyzer(workers=1).analyze_tree(program)
        assert [d.kind for d in result.diagnostics] == [ViolationKind.CONDITIONAL_CALL]

    def test_approximated_region_lowers_confidence(self):
        hook_call = {"type": "CallExpression", "callee": {"type": "Identifier", "name": "useBar"}, "arguments": []}
        program = self.component({"type": "PipelineStatement", "expression": hook_call})
        result = HooksAnalyzer(workers=1).analyze_tree(program)
        assert [d.kind for d in result.diagnostics] == [ViolationKind.LOOP_CALL]
        assert result.diagnostics[0].confidence is Confidence.LOW
