"""Tests for the block statements ``wrap``, ``arg`` and ``callback``."""

from __future__ import annotations

import io

import pytest

from weft import ExecError, WalkHandler

from builders import (
    DOT,
    action,
    arg_block,
    callback,
    cmd,
    field,
    ident,
    if_,
    p,
    pipe,
    range_,
    render,
    var,
    wrap,
)

UPPER = {"upper": lambda s: s.upper()}


def each(dot, handler, *items):
    """Call the body once per item, with the item as dot and argument."""
    for item in items:
        handler(item, item)


class TestWrap:
    """``{{wrap}}`` writes begin/after only around non-blank output."""

    def _list(self, body, **kwargs):
        return wrap(body, begin=["<ul>"], after=["</ul>"], else_=["none"], **kwargs)

    def test_content_is_wrapped(self):
        assert render([self._list([action(DOT)])], "x") == "<ul>x</ul>"

    @pytest.mark.parametrize("value", ["", None, "  \n\t"])
    def test_blank_body_runs_else(self, value):
        assert render([self._list([action(DOT)])], value) == "none"

    def test_leading_whitespace_kept(self):
        assert render([self._list(["  ", action(DOT), " "])], "x") == "<ul>  x </ul>"

    def test_strip_drops_leading_whitespace(self):
        assert render([self._list(["  ", action(DOT)], strip=True)], "x") == "<ul>x</ul>"

    def test_strip_from_pipeline(self):
        node = self._list(["\n  ", action(DOT)], pipeline=p(ident("strip")))
        assert render([node], "x") == "<ul>x</ul>"

    def test_without_else(self):
        assert render(["a", wrap([" "], begin=["<"], after=[">"]), "b"]) == "ab"

    def test_begin_written_once(self):
        body = [range_(p(DOT), ["<li>", action(DOT), "</li>"])]
        assert render([self._list(body)], ["a", "b"]) == "<ul><li>a</li><li>b</li></ul>"

    def test_empty_range_inside(self):
        body = [range_(p(DOT), ["<li>", action(DOT), "</li>"])]
        assert render([self._list(body)], []) == "none"

    def test_begin_sees_dot(self):
        node = wrap([action(field("body"))], begin=[action(field("title")), ":"])
        assert render([node], {"title": "T", "body": "b"}) == "T:b"

    def test_variables_popped(self):
        node = wrap([action(1, decl=("$w",)), "x"])
        with pytest.raises(ExecError, match=r"undefined variable: \$w"):
            render([node, action(var("$w"))])


class TestArg:
    """``{{arg f}}body{{end}}`` passes the rendered body as last argument."""

    def test_body_becomes_last_argument(self):
        node = arg_block(p(ident("upper")), ["hello ", action(DOT)])
        assert render([node], "x", UPPER) == "HELLO X"

    def test_arguments_precede_body(self):
        node = arg_block(p(ident("around"), "*"), ["b"])
        assert render([node], None, {"around": lambda mark, text: f"{mark}{text}{mark}"}) == "*b*"

    def test_leading_commands_set_dot(self):
        node = arg_block(pipe(cmd(field("user")), cmd(ident("upper"))), [action(field("name"))])
        assert render([node], {"user": {"name": "ana"}}, UPPER) == "ANA"

    def test_body_not_written_directly(self):
        def swallow(text: str) -> None:
            return None

        assert render(["[", arg_block(p(ident("swallow")), ["hidden"]), "]"], None, {"swallow": swallow}) == "[]"

    def test_wrong_arity_reported(self):
        node = arg_block(p(ident("upper"), "extra"), ["x"])
        with pytest.raises(ExecError, match="wrong number of args for upper: want 1 got 2"):
            render([node], None, UPPER)


class TestCallback:
    """``{{callback f}}body{{end}}`` hands a re-entrant body to ``f``."""

    def test_body_walked_per_handler_call(self):
        node = callback(p(ident("each"), "a", "b"), ["[", action(var("$0")), ":", action(DOT), "]"])
        assert render([node], None, {"each": each}) == "[0:a][1:b]"

    def test_argument_variables(self):
        def pairs(dot, handler):
            handler(None, 1, 2)
            handler(None)

        body = [action(var("$!")), action(var("$@")), ";"]
        assert render([callback(p(ident("pairs")), body)], None, {"pairs": pairs}) == "2[1, 2];0[];"

    def test_dot_passed_to_function(self):
        def echo(dot, handler):
            handler(dot)

        assert render([callback(p(ident("echo")), [action(field("n"))])], {"n": "v"}, {"echo": echo}) == "v"

    def test_leading_commands_set_dot(self):
        def over(dot, handler):
            for item in dot:
                handler(item)

        node = callback(pipe(cmd(field("items")), cmd(ident("over"))), [action(DOT), ","])
        assert render([node], {"items": [1, 2]}, {"over": over}) == "1,2,"

    def test_handler_writer_capture(self):
        def shout(dot, handler) -> str:
            buffer = io.StringIO()
            handler(dot, writer=buffer)
            return buffer.getvalue().upper()

        assert render(["<", callback(p(ident("shout")), ["hi ", action(DOT)]), ">"], "x", {"shout": shout}) == "<HI X>"

    def test_function_result_printed(self):
        def twice(dot, handler: WalkHandler) -> int:
            handler(dot)
            handler(dot)
            return handler.calls

        assert render([callback(p(ident("twice")), ["x"])], None, {"twice": twice}) == "xx2"

    def test_variables_popped(self):
        body = [callback(p(ident("each"), "a"), ["x"]), action(var("$0"))]
        with pytest.raises(ExecError, match=r"undefined variable: \$0"):
            render(body, None, {"each": each})

    def test_range_callback(self):
        body = [
            action(field("index")),
            "=",
            action(field("value")),
            if_(p(field("is_last")), [], [","]),
        ]
        node = callback(p(ident("range_callback"), field("items")), body)
        assert render([node], {"items": ["a", "b"]}) == "0=a,1=b"

    def test_range_callback_extra_arguments(self):
        body = [action(field("key")), action(ident("index"), var("$@"), 0), ";"]
        node = callback(p(ident("range_callback"), DOT, ":"), body)
        assert render([node], {"b": 1, "a": 2}) == "a:;b:;"
