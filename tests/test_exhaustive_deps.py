"""Tests for dependency-list validation of effect-like hooks."""

import textwrap

import pytest

from hookauditor.analyzer import HooksAnalyzer
from hookauditor.config_runtime import HooksConfig
from hookauditor.rules.base import ViolationKind
from hookauditor.rules.hooks.exhaustive_deps import format_list, is_ancestor_path


def source_of(snippet: str) -> str:
    return textwrap.dedent(snippet).strip() + "\n"


def apply_suggestion(source: str, suggestion) -> str:
    start, end = suggestion.range
    return source[:start] + suggestion.text + source[end:]


def dependency_findings(diagnostics):
    return [d for d in diagnostics if d.rule == "exhaustive-deps"]


class TestDeclaredList:
    def test_missing_dependency(self, analyze):
        diagnostics = analyze(
            """
            function Counter({ x }) {
              useEffect(() => {
                console.log(x);
              }, []);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.MISSING_DEPENDENCY]
        finding = diagnostics[0]
        assert finding.data["dependencies"] == ["x"]
        assert finding.suggestion.text == "[x]"
        assert "'x'" in finding.message

    def test_complete_list(self, kinds):
        assert kinds(
            """
            function Counter({ x }) {
              useEffect(() => {
                console.log(x);
              }, [x]);
              return null;
            }
            """
        ) == []

    def test_unnecessary_dependency(self, analyze):
        diagnostics = analyze(
            """
            function Counter({ x, y }) {
              useEffect(() => {
                console.log(x);
              }, [x, y]);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.UNNECESSARY_DEPENDENCY]
        assert diagnostics[0].data["dependencies"] == ["y"]
        assert diagnostics[0].suggestion.text == "[x]"

    def test_duplicate_entry(self, analyze):
        diagnostics = analyze(
            """
            function Counter({ x }) {
              const doubled = useMemo(() => x * 2, [x, x]);
              return doubled;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.UNNECESSARY_DEPENDENCY]
        assert diagnostics[0].suggestion.text == "[x]"

    def test_missing_dependencies_are_sorted(self, analyze):
        diagnostics = analyze(
            """
            function Form({ zeta, alpha, mid }) {
              const submit = useCallback(() => send(zeta, alpha, mid), []);
              return submit;
            }
            """
        )
        assert diagnostics[0].data["dependencies"] == ["alpha", "mid", "zeta"]
        assert diagnostics[0].suggestion.text == "[alpha, mid, zeta]"

    def test_kept_entries_keep_declared_order(self, analyze):
        diagnostics = analyze(
            """
            function Form({ b, a, c }) {
              const submit = useCallback(() => send(a, b, c), [b, a]);
              return submit;
            }
            """
        )
        assert diagnostics[0].suggestion.dependencies == ["b", "a", "c"]

    @pytest.mark.parametrize(
        "declared",
        ["[y]", "[]", "[x, y, x]", "[props.value]"],
    )
    def test_applying_suggestion_is_idempotent(self, analyzer, declared):
        source = source_of(
            f"""
            function Counter({{ x, y, props }}) {{
              useEffect(() => {{
                console.log(x);
              }}, {declared});
              return null;
            }}
            """
        )
        first = dependency_findings(analyzer.analyze_source(source).diagnostics)
        assert first
        fixed = apply_suggestion(source, first[0].suggestion)
        assert dependency_findings(analyzer.analyze_source(fixed).diagnostics) == []


class TestStability:
    def test_state_setter_and_ref_are_not_required(self, kinds):
        assert kinds(
            """
            function Counter() {
              const [count, setCount] = useState(0);
              const ref = useRef(null);
              useEffect(() => {
                setCount((c) => c + 1);
                ref.current.focus();
              }, []);
              return count;
            }
            """
        ) == []

    def test_declared_stable_values_are_accepted(self, kinds):
        assert kinds(
            """
            function Counter() {
              const [count, setCount] = useState(0);
              useEffect(() => {
                setCount(1);
              }, [setCount]);
              return count;
            }
            """
        ) == []

    def test_flag_stable_dependencies(self):
        analyzer = HooksAnalyzer(HooksConfig(flag_stable_dependencies=True), workers=1)
        result = analyzer.analyze_source(
            source_of(
                """
                function Counter() {
                  const [count, setCount] = useState(0);
                  useEffect(() => {
                    setCount(1);
                  }, [setCount]);
                  return count;
                }
                """
            )
        )
        assert [d.kind for d in result.diagnostics] == [ViolationKind.UNNECESSARY_DEPENDENCY]

    def test_const_literal_is_stable(self, kinds):
        assert kinds(
            """
            function Poller() {
              const INTERVAL = 1000;
              useEffect(() => {
                poll(INTERVAL);
              }, []);
              return null;
            }
            """
        ) == []

    def test_functions_declared_in_component_are_reactive(self, analyze):
        diagnostics = analyze(
            """
            function Search({ query }) {
              function load() {
                return fetch(query);
              }
              useEffect(() => {
                load();
              }, []);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.MISSING_DEPENDENCY]
        assert diagnostics[0].data["dependencies"] == ["load"]

    def test_outer_scope_values_are_unnecessary(self, analyze):
        diagnostics = analyze(
            """
            const defaults = { size: 1 };
            function Box() {
              useEffect(() => {
                render(defaults.size);
              }, [defaults]);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.UNNECESSARY_DEPENDENCY]
        assert diagnostics[0].suggestion.text == "[]"

    def test_ref_current_entry_is_unnecessary(self, analyze):
        diagnostics = analyze(
            """
            function Input() {
              const ref = useRef(null);
              useEffect(() => {
                ref.current.focus();
              }, [ref.current]);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.UNNECESSARY_DEPENDENCY]
        assert diagnostics[0].data["dependencies"] == ["ref.current"]

    def test_globals_are_ignored(self, kinds):
        assert kinds(
            """
            function Resize() {
              useEffect(() => {
                window.addEventListener('resize', onResize);
              }, [window]);
              return null;
            }
            """
        ) == []

    def test_allow_listed_identifier(self):
        analyzer = HooksAnalyzer(HooksConfig(additional_stable_identifiers=("store",)), workers=1)
        result = analyzer.analyze_source(
            source_of(
                """
                function View({ store }) {
                  useEffect(() => {
                    store.subscribe();
                  }, []);
                  return null;
                }
                """
            )
        )
        assert result.diagnostics == []


class TestMemberPaths:
    def test_member_path_is_required(self, analyze):
        diagnostics = analyze(
            """
            function Profile(props) {
              useEffect(() => {
                show(props.user.name);
              }, []);
              return null;
            }
            """
        )
        assert diagnostics[0].data["dependencies"] == ["props.user.name"]

    def test_ancestor_declaration_satisfies(self, kinds):
        assert kinds(
            """
            function Profile(props) {
              useEffect(() => {
                show(props.user.name);
              }, [props.user]);
              return null;
            }
            """
        ) == []

    def test_method_call_depends_on_object(self, analyze):
        diagnostics = analyze(
            """
            function Field(props) {
              useEffect(() => {
                props.onChange();
              }, []);
              return null;
            }
            """
        )
        assert diagnostics[0].data["dependencies"] == ["props"]

    def test_descendants_collapse_under_ancestor(self, analyze):
        diagnostics = analyze(
            """
            function Profile(props) {
              useEffect(() => {
                show(props.user.name, props.user);
              }, []);
              return null;
            }
            """
        )
        assert diagnostics[0].suggestion.dependencies == ["props.user"]

    def test_strict_member_dependencies(self):
        analyzer = HooksAnalyzer(HooksConfig(strict_member_dependencies=True), workers=1)
        result = analyzer.analyze_source(
            source_of(
                """
                function Profile(props) {
                  useEffect(() => {
                    show(props.user.name);
                  }, [props]);
                  return null;
                }
                """
            )
        )
        assert [d.kind for d in result.diagnostics] == [ViolationKind.MISSING_DEPENDENCY]
        assert result.diagnostics[0].suggestion.dependencies == ["props", "props.user.name"]

    def test_optional_chain_path(self):
        def ident(name):
            return {"type": "Identifier", "name": name}

        def member(obj, prop, optional=False):
            return {"type": "MemberExpression", "object": obj, "property": ident(prop), "computed": False, "optional": optional}

        chain = {"type": "ChainExpression", "expression": member(member(ident("props"), "user", optional=True), "name")}
        callback = {
            "type": "ArrowFunctionExpression",
            "params": [],
            "body": {
                "type": "BlockStatement",
                "body": [
                    {
                        "type": "ExpressionStatement",
                        "expression": {"type": "CallExpression", "callee": ident("show"), "arguments": [chain]},
                    }
                ],
            },
            "async": False,
            "expression": False,
        }
        effect = {
            "type": "CallExpression",
            "callee": ident("useEffect"),
            "arguments": [callback, {"type": "ArrayExpression", "elements": []}],
        }
        program = {
            "type": "Program",
            "sourceType": "module",
            "body": [
                {
                    "type": "FunctionDeclaration",
                    "id": ident("Profile"),
                    "params": [ident("props")],
                    "body": {"type": "BlockStatement", "body": [{"type": "ExpressionStatement", "expression": effect}]},
                    "generator": False,
                    "async": False,
                }
            ],
        }
        result = HooksAnalyzer(workers=1).analyze_tree(program)
        assert [d.kind for d in result.diagnostics] == [ViolationKind.MISSING_DEPENDENCY]
        assert result.diagnostics[0].data["dependencies"] == ["props.user.name"]


class TestListShape:
    def test_literal_entry(self, analyze):
        diagnostics = analyze(
            """
            function Counter({ a }) {
              useEffect(() => {
                log(a);
              }, [a, 1]);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.COMPLEX_DEPENDENCY]
        assert diagnostics[0].data["literal"] is True
        assert diagnostics[0].suggestion.text == "[a]"

    def test_complex_expression_entry(self, kinds):
        assert kinds(
            """
            function Counter({ a }) {
              useEffect(() => {
                log(a);
              }, [keyOf(a)]);
              return null;
            }
            """
        ) == ["complex-dependency", "missing-dependency"]

    def test_non_array_dependencies(self, kinds):
        assert kinds(
            """
            function Counter({ a, deps }) {
              useEffect(() => {
                log(a);
              }, deps);
              return null;
            }
            """
        ) == ["non-array-dependencies"]


class TestCallbacks:
    def test_unknown_callback(self, kinds):
        assert kinds(
            """
            function Search({ onSearch }) {
              const run = useCallback(debounce(onSearch, 100), []);
              return run;
            }
            """
        ) == ["unknown-callback"]

    def test_callback_from_prop(self, kinds):
        assert kinds(
            """
            function Search({ handler }) {
              useEffect(handler, []);
              return null;
            }
            """
        ) == ["unknown-callback"]

    def test_callback_listed_in_its_own_deps(self, kinds):
        assert kinds(
            """
            function Search({ handler }) {
              useEffect(handler, [handler]);
              return null;
            }
            """
        ) == []

    def test_named_function_callback_is_followed(self, analyze):
        diagnostics = analyze(
            """
            function Search({ query }) {
              function run() {
                fetch(query);
              }
              useEffect(run, []);
              return null;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.MISSING_DEPENDENCY]
        assert diagnostics[0].data["dependencies"] == ["query"]

    def test_async_effect(self, kinds):
        assert kinds(
            """
            function Loader() {
              useEffect(async () => {
                await load();
              }, []);
              return null;
            }
            """
        ) == ["async-effect"]

    def test_imperative_handle_callback_index(self, kinds):
        assert kinds(
            """
            function Input({ value }, ref) {
              useImperativeHandle(ref, () => ({ value }), []);
              return null;
            }
            """
        ) == ["missing-dependency"]

    def test_additional_effect_hook(self):
        analyzer = HooksAnalyzer(HooksConfig(additional_hooks="^useAsyncEffect$"), workers=1)
        result = analyzer.analyze_source(
            source_of(
                """
                function Loader({ id }) {
                  useAsyncEffect(() => {
                    load(id);
                  }, []);
                  return null;
                }
                """
            )
        )
        assert [d.kind for d in result.diagnostics] == [ViolationKind.MISSING_DEPENDENCY]


class TestWithoutList:
    def test_memo_without_dependencies(self, analyzer):
        source = source_of(
            """
            function Sum({ a, b }) {
              const total = useMemo(() => a + b);
              return total;
            }
            """
        )
        diagnostics = analyzer.analyze_source(source).diagnostics
        assert [d.kind for d in diagnostics] == [ViolationKind.MEMO_WITHOUT_DEPENDENCIES]
        suggestion = diagnostics[0].suggestion
        assert suggestion.text == ", [a, b]"
        fixed = apply_suggestion(source, suggestion)
        assert "useMemo(() => a + b, [a, b])" in fixed
        assert analyzer.analyze_source(fixed).diagnostics == []

    def test_setter_without_dependencies(self, analyze):
        diagnostics = analyze(
            """
            function Counter() {
              const [count, setCount] = useState(0);
              useEffect(() => {
                setCount(count + 1);
              });
              return count;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.SETTER_WITHOUT_DEPENDENCIES]
        assert diagnostics[0].data["setter"] == "setCount"
        assert "[count]" in diagnostics[0].message

    def test_effect_without_list_reading_props(self, kinds):
        assert kinds(
            """
            function Title({ text }) {
              useEffect(() => {
                document.title = text;
              });
              return null;
            }
            """
        ) == ["missing-dependency-array"]

    def test_effect_without_list_and_no_reactive_reads(self, kinds):
        assert kinds(
            """
            function Mount() {
              useEffect(() => {
                init();
              });
              return null;
            }
            """
        ) == []


class TestAssignments:
    def test_stale_assignment(self, analyze):
        diagnostics = analyze(
            """
            function Tracker({ x }) {
              let latest = null;
              useEffect(() => {
                latest = x;
              }, []);
              return latest;
            }
            """
        )
        assert [d.kind for d in diagnostics] == [ViolationKind.STALE_ASSIGNMENT]
        assert diagnostics[0].data["name"] == "latest"

    def test_ref_assignment_is_fine(self, kinds):
        assert kinds(
            """
            function Tracker({ x }) {
              const latest = useRef(null);
              useEffect(() => {
                latest.current = x;
              }, [x]);
              return null;
            }
            """
        ) == []


class TestHelpers:
    def test_is_ancestor_path(self):
        assert is_ancestor_path("a", "a.b")
        assert is_ancestor_path("a.b", "a.b.c")
        assert not is_ancestor_path("a", "ab.c")
        assert not is_ancestor_path("a.b", "a.b")

    def test_format_list(self):
        assert format_list(["x"]) == "'x'"
        assert format_list(["x", "y", "z"]) == "'x', 'y' and 'z'"
