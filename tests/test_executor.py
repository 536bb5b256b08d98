"""Tests for executors: function scopes, policies and the render boundary."""

from __future__ import annotations

import pytest

from weft import BUILTIN_FUNCS, DataFuncs, ErrorCode, ExecError, Executor, FuncValues, State
from weft.exceptions import FuncError
from weft.execution.types import Variable

from builders import DOT, action, field, ident, make_template, render, var


class BrokenWriter:
    def __init__(self, err: Exception):
        self.err = err

    def write(self, s: str) -> int:
        raise self.err


@pytest.fixture
def who():
    """Template printing the result of ``who``."""
    return make_template("page", {"page": [action(ident("who"))]})


class TestFunctionScopes:
    """Child executors layer functions over their parents."""

    def test_child_functions_stay_in_child(self, who):
        base = who.create_executor()
        child = base.funcs({"who": lambda: "child"})
        assert child.execute_string() == "child"
        with pytest.raises(ExecError) as exc_info:
            base.execute_string()
        assert exc_info.value.code is ErrorCode.UNDEFINED_FUNCTION

    def test_inner_scope_shadows_outer(self, who):
        executor = who.create_executor().funcs({"who": lambda: "outer"}).funcs({"who": lambda: "inner"})
        assert executor.execute_string() == "inner"

    def test_user_functions_shadow_builtins(self):
        tmpl = make_template("page", {"page": [action(ident("len"), DOT)]})
        executor = tmpl.create_executor().funcs({"len": lambda value: "mine"})
        assert executor.execute_string([1, 2]) == "mine"
        assert tmpl.execute_string([1, 2]) == "2"

    def test_nothing_to_add_returns_self(self, who):
        base = who.create_executor()
        assert base.funcs() is base
        assert base.funcs({}) is base
        assert base.funcs_values(FuncValues()) is base

    def test_funcs_values_child(self, who):
        child = who.create_executor().funcs_values(FuncValues({"who": lambda: "scoped"}))
        assert child.execute_string() == "scoped"

    def test_per_call_functions(self, who):
        assert who.create_executor().execute_string(None, {"who": lambda: "call"}) == "call"

    def test_find_func_walks_parents(self, who):
        child = who.create_executor().funcs({"who": lambda: ""})
        assert child.find_func("len") is BUILTIN_FUNCS.get("len")
        assert child.find_func("nope") is None

    def test_filter_funcs(self, who):
        child = who.create_executor().funcs({"who": lambda: ""})
        assert child.filter_funcs("who", "len").names() == ["len", "who"]
        assert "printf" in child.filter_funcs()
        with pytest.raises(FuncError):
            child.filter_funcs("nope")

    def test_append_funcs_on_builtin_scope(self, who):
        executor = who.create_executor()
        executor.append_funcs({"who": lambda: "appended"})
        assert executor.execute_string() == "appended"
        assert "who" not in BUILTIN_FUNCS
        assert executor.scope is not BUILTIN_FUNCS

    def test_invalid_functions_rejected(self, who):
        with pytest.raises(FuncError):
            who.create_executor().funcs({"bad name": lambda: ""})

    def test_data_funcs_unwrapped(self):
        tmpl = make_template("page", {"page": [action(ident("shout"), field("n"))]})
        bundle = DataFuncs({"n": "x"}, FuncValues({"shout": lambda s: s.upper()}))
        assert tmpl.create_executor().execute_string(bundle) == "X"


class TestPolicies:
    """Options and error-writing policy."""

    def test_options_copied_into_children(self, who):
        base = who.create_executor()
        child = base.funcs({"who": lambda: ""})
        child.options.max_depth = 1
        assert base.options.max_depth == 50

    def test_global_vars(self):
        tmpl = make_template("page", {"page": [action(var("$site"))]})
        executor = tmpl.create_executor()
        executor.options.global_vars = (Variable("$site", "S"),)
        assert executor.execute_string() == "S"

    def test_own_variables_shadow_globals(self):
        tmpl = make_template("page", {"page": [action("own", decl=("$site",)), action(var("$site"))]})
        executor = tmpl.create_executor()
        executor.options.global_vars = (Variable("$site", "S"),)
        assert executor.execute_string() == "own"

    def test_write_error_policy(self, out):
        tmpl = make_template("page", {"page": ["before|", action(var("$nope"))]})
        executor = tmpl.create_executor()
        assert not executor.is_write_error()
        writing = executor.write_error()
        assert writing.is_write_error()
        assert not writing.not_write_error().is_write_error()
        assert writing.funcs({"x": lambda: ""}).is_write_error()
        with pytest.raises(ExecError):
            writing.execute(out)
        assert out.getvalue().startswith("before|Execution Error: undefined variable: $nope")

    def test_errors_not_written_by_default(self, out):
        tmpl = make_template("page", {"page": ["before|", action(var("$nope"))]})
        with pytest.raises(ExecError):
            tmpl.execute(out)
        assert out.getvalue() == "before|"

    def test_context_reaches_functions(self, who):
        def who_fn(state: State) -> str:
            return state.context["user"]

        executor = who.create_executor().funcs({"who": who_fn})
        executor.context = {"user": "ana"}
        assert executor.execute_string() == "ana"


class TestRenderBoundary:
    """What escapes ``execute``."""

    def test_raw_data_executor(self):
        executor = Executor.of_raw_data(lambda writer: writer.write("raw"))
        assert executor.execute_string() == "raw"

    def test_executor_without_template(self):
        with pytest.raises(ExecError) as exc_info:
            Executor().execute_string()
        assert exc_info.value.code is ErrorCode.INCOMPLETE_TEMPLATE

    def test_exit_keeps_output(self):
        assert render(["a", action(ident("exit")), "b"]) == "a"

    def test_writer_failure_reraised_as_is(self):
        err = OSError("disk full")
        tmpl = make_template("page", {"page": ["x"]})
        with pytest.raises(OSError) as exc_info:
            tmpl.execute(BrokenWriter(err))
        assert exc_info.value is err

    def test_unexpected_exception_wrapped(self):
        tmpl = make_template("page", {"page": ["x"]})
        with pytest.raises(ExecError) as exc_info:
            tmpl.execute(BrokenWriter(RuntimeError("boom")))
        assert exc_info.value.message == "RuntimeError: boom"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.template_name == "page"

    def test_depth_starts_at_zero(self, who):
        executor = who.create_executor()
        assert executor.depth == 0
        assert repr(executor) == "<Executor template='page' depth=0>"
