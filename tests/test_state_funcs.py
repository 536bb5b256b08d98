"""Tests for functions bound to the running State."""

from __future__ import annotations

import pytest

from weft import ErrorCode, ExecError, LocalData

from builders import DOT, action, field, ident, make_template, p, render, var


class TestLocalData:
    """``set`` and ``get``."""

    def test_set_then_get(self):
        body = [action(ident("set"), "k", 1, "other", 2), action(ident("get"), "k"), action(ident("get"), "other")]
        assert render(body) == "12"

    def test_nested_get(self):
        body = [action(ident("set"), "user", field("u")), action(ident("get"), "user", "name")]
        assert render(body, {"u": {"name": "ana"}}) == "ana"

    def test_get_missing_prints_nothing(self):
        assert render(["[", action(ident("get"), "nope", "deeper"), "]"]) == "[]"

    def test_odd_arguments(self):
        with pytest.raises(ExecError) as exc_info:
            render([action(ident("set"), "k")])
        assert exc_info.value.message == "error calling set: set expects key/value pairs, got 1 arguments"

    def test_shared_across_template_calls(self):
        tmpl = make_template(
            "page",
            {"page": [action(ident("set"), "k", "v"), action(ident("tpl_yield"), "row")], "row": [action(ident("get"), "k")]},
        )
        assert tmpl.execute_string() == "v"

    def test_preset_on_executor(self):
        tmpl = make_template("page", {"page": [action(ident("get"), "k")]})
        executor = tmpl.create_executor()
        executor.local = LocalData(k="preset")
        assert executor.execute_string() == "preset"
        assert executor.local == {"k": "preset"}

    def test_local_data_merge(self):
        local = LocalData(a=1).merge({"b": 2}, {"a": 3})
        assert local == {"a": 3, "b": 2}
        assert local.lookup() is local


class TestNestedRender:
    """``tpl_render``, ``template_exec`` and ``tpl_yield``."""

    @pytest.mark.parametrize("name", ["tpl_render", "template_exec"])
    def test_render_returns_text(self, name):
        tmpl = make_template(
            "page",
            {"page": [action(ident("upper"), p(ident(name), "row", "x"))], "row": ["row:", action(DOT)]},
        )
        assert tmpl.execute_string(None, {"upper": lambda s: s.upper()}) == "ROW:X"

    def test_yield_sees_caller_variables(self):
        tmpl = make_template(
            "page",
            {
                "page": [action("v", decl=("$x",)), action(ident("tpl_yield"), "row", field("n"))],
                "row": [action(var("$x")), action(DOT)],
            },
        )
        assert tmpl.execute_string({"n": "N"}) == "vN"

    def test_yield_sees_caller_functions(self):
        tmpl = make_template(
            "page",
            {"page": [action(ident("tpl_yield"), "row")], "row": [action(ident("who"))]},
        )
        assert tmpl.execute_string(None, {"who": lambda: "me"}) == "me"

    def test_yield_variables_do_not_leak(self):
        tmpl = make_template(
            "page",
            {"page": [action(ident("tpl_yield"), "row"), action(var("$y"))], "row": [action(1, decl=("$y",))]},
        )
        with pytest.raises(ExecError, match=r"undefined variable: \$y"):
            tmpl.execute_string()

    def test_yield_unknown_template(self):
        with pytest.raises(ExecError) as exc_info:
            render([action(ident("tpl_yield"), "nope")])
        assert exc_info.value.message == 'template "nope" not defined'
        assert exc_info.value.code is ErrorCode.UNDEFINED_TEMPLATE

    def test_yield_depth_limited(self):
        tmpl = make_template("loop", {"loop": ["x", action(ident("tpl_yield"), "loop")]})
        executor = tmpl.create_executor()
        executor.options.max_depth = 4
        with pytest.raises(ExecError) as exc_info:
            executor.execute_string()
        err = exc_info.value
        assert err.message.startswith('error executing template "loop/loop"')
        assert err.root_cause.code is ErrorCode.MAX_DEPTH

    def test_yield_with_data_funcs(self):
        bundle = p(ident("_tpl_data_funcs"), field("user"), "loud", field("loud_fn"))
        tmpl = make_template(
            "page",
            {"page": [action(ident("tpl_yield"), "row", bundle)], "row": [action(ident("loud"), field("name"))]},
        )
        assert tmpl.execute_string({"user": {"name": "ana"}, "loud_fn": lambda s: s + "!"}) == "ana!"

    def test_data_funcs_copies_visible_function(self):
        bundle = p(ident("_tpl_data_funcs"), DOT, "len")
        tmpl = make_template(
            "page",
            {"page": [action(ident("tpl_yield"), "row", bundle)], "row": [action(ident("len"), DOT)]},
        )
        assert tmpl.execute_string([1, 2, 3]) == "3"

    def test_data_funcs_errors(self):
        with pytest.raises(ExecError, match="data funcs: invalid function name at 0: 1"):
            render([action(ident("_tpl_data_funcs"), DOT, 1)])
        with pytest.raises(ExecError, match='"nope" is not a defined function'):
            render([action(ident("_tpl_data_funcs"), DOT, "nope")])


class TestTrim:
    """``trim``."""

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            (("  a  ",), "a"),
            (("--a--", "-"), "a"),
            (("xya", "xy"), "ya"),
            ((["  a", "b  "],), "['a', 'b']"),
        ],
    )
    def test_trim(self, args, expected):
        assert render([action(ident("trim"), *args)]) == expected

    def test_trim_rejects_other_types(self):
        with pytest.raises(ExecError, match="trim: can't trim value of type int"):
            render([action(ident("trim"), 5)])


class TestJoin:
    """``join``."""

    @pytest.mark.parametrize(
        ("options", "expected"),
        [
            ((), "a, b, c"),
            (("-",), "a-b-c"),
            (("sep: / ",), "a / b / c"),
            (("and:",), "a, b and c"),
            (("sep:;", "and: & "), "a;b & c"),
        ],
    )
    def test_join_options(self, options, expected):
        assert render([action(ident("join"), DOT, *options)], ["a", "b", "c"]) == expected

    def test_single_item_ignores_and(self):
        assert render([action(ident("join"), DOT, "and:")], ["a"]) == "a"

    def test_empty_and_none(self):
        assert render(["[", action(ident("join"), DOT), "]"], []) == "[]"
        assert render(["[", action(ident("join"), DOT), "]"], None) == "[]"

    def test_items_printed_as_text(self):
        assert render([action(ident("join"), DOT)], [1, None, 2.5]) == "1, , 2.5"

    def test_invalid_option(self):
        with pytest.raises(ExecError, match='invalid join option "x"'):
            render([action(ident("join"), DOT, "x:1")], ["a"])


class TestIntrospection:
    """``_tpl_state`` and ``_tpl_funcs``."""

    def test_state(self):
        def name_of(state) -> str:
            return f"{state.template.name}@{state.depth}"

        assert render([action(ident("name_of"), p(ident("_tpl_state")))], None, {"name_of": name_of}) == "main@0"

    def test_funcs_filtered(self):
        assert render([action(ident("len"), p(ident("_tpl_funcs"), "len", "printf"))]) == "2"

    def test_funcs_unknown_name(self):
        with pytest.raises(ExecError) as exc_info:
            render([action(ident("_tpl_funcs"), "nope")])
        assert exc_info.value.code is ErrorCode.UNKNOWN_FUNCTION
        assert exc_info.value.message == 'function "nope" is not defined'

    def test_state_funcs_shadow_registered(self):
        assert render([action(ident("trim"), " a ")], None, {"trim": lambda s: "mine"}) == "a"
