"""Tests for ``{{range}}``."""

from __future__ import annotations

import pytest
from hypothesis import given

from weft import ErrorCode, ExecError
from weft.execution.ranges import iter_range
from weft.nodes import VarDecl

from builders import DOT, action, field, ident, if_, p, range_, render, var

from strategies import int_keyed, sequences, str_keyed


class Countdown:
    """StatefulIterator from n down to 1."""

    def __init__(self, n: int):
        self.n = n

    def start(self) -> int:
        return self.n

    def done(self, state: int) -> bool:
        return state == 0

    def next(self, state: int) -> tuple[int, int]:
        return state, state - 1


class Launch:
    """IteratorGetter handing out a Countdown."""

    def iterator(self) -> Countdown:
        return Countdown(2)


def _each(value, *funcs) -> str:
    """``{{range .}}{{.}},{{end}}``"""
    return render([range_(p(DOT), [action(DOT), ","])], value, *funcs)


def _with_last(value) -> str:
    """``{{range $last, $i, $e := .}}{{$i}}={{$e}}{{if $last}}.{{else}},{{end}}{{end}}``"""
    body = [
        action(var("$i")),
        "=",
        action(var("$e")),
        if_(p(var("$last")), ["."], [","]),
    ]
    return render([range_(p(DOT, decl=("$last", "$i", "$e")), body)], value)


class TestCollectionKinds:
    """Every rangeable kind yields elements in its fixed order."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ([1, 2, 3], "1,2,3,"),
            (("a", "b"), "a,b,"),
            (3, "0,1,2,"),
            ({"b": 2, "a": 1}, "1,2,"),
            ({3, 1, 2}, "1,2,3,"),
            (frozenset({"y", "x"}), "x,y,"),
            (Countdown(3), "3,2,1,"),
            (Launch(), "2,1,"),
            (iter(["p", "q"]), "p,q,"),
        ],
    )
    def test_element_order(self, value, expected):
        assert _each(value) == expected

    def test_mapping_keys_sorted(self):
        body = [action(var("$k")), "=", action(var("$v")), ";"]
        assert render([range_(p(DOT, decl=("$k", "$v")), body)], {"b": 2, "a": 1, "c": 0}) == "a=1;b=2;c=0;"

    def test_mixed_keys_grouped_by_kind(self):
        body = [action(var("$k")), ";"]
        assert render([range_(p(DOT, decl=("$k", "$v")), body)], {"b": 1, 2: 1, 1.5: 1, "a": 1}) == "1.5;2;a;b;"

    def test_function_result(self):
        assert _each(None) == ""
        body = [range_(p(ident("nums")), [action(DOT)])]
        assert render(body, None, {"nums": lambda: [4, 5]}) == "45"

    @pytest.mark.parametrize("value", ["abc", b"abc", True])
    def test_unrangeable(self, value):
        with pytest.raises(ExecError) as exc_info:
            _each(value)
        assert exc_info.value.code is ErrorCode.BAD_RANGE
        assert exc_info.value.message.startswith("range can't iterate over")
        assert isinstance(exc_info.value.cause, TypeError)

    def test_plain_object_unrangeable(self):
        with pytest.raises(ExecError, match="of type object"):
            _each(object())


class TestElse:
    """``{{else}}`` runs when nothing was iterated."""

    @pytest.mark.parametrize("value", [[], {}, 0, None, set(), iter(()), Countdown(0)])
    def test_empty_runs_else(self, value):
        assert render([range_(p(DOT), ["x"], ["empty"])], value) == "empty"

    def test_else_skipped_when_iterated(self):
        assert render([range_(p(DOT), ["x"], ["empty"])], [0]) == "x"


class TestVariables:
    """Binding of one, two and three range variables."""

    def test_one_variable_also_sets_dot(self):
        body = [action(var("$e")), action(DOT), ";"]
        assert render([range_(p(field("items"), decl=("$e",)), body)], {"items": ["x", "y"]}) == "xx;yy;"

    def test_two_variables_keep_outer_dot(self):
        body = [action(var("$i")), action(field("sep")), action(var("$e")), " "]
        data = {"items": ["x", "y"], "sep": ":"}
        assert render([range_(p(field("items"), decl=("$i", "$e")), body)], data) == "0:x 1:y "

    def test_three_variables_flag_last(self):
        assert _with_last(["a", "b", "c"]) == "0=a,1=b,2=c."
        assert _with_last({"k": 1}) == "k=1."

    def test_last_flag_on_streamed_values(self):
        assert _with_last(x for x in "ab") == "0=a,1=b."

    def test_last_flag_on_stateful_iterator(self):
        assert _with_last(Countdown(2)) == "0=2,1=1."

    def test_too_many_variables(self):
        body = [range_(p(DOT, decl=("$a", "$b", "$c", "$d")), ["x"])]
        with pytest.raises(ExecError) as exc_info:
            render(body, [1])
        assert exc_info.value.message == "too many declarations in range: 4"

    def test_variables_popped_after_range(self):
        body = [range_(p(DOT, decl=("$e",)), [action(var("$e"))]), action(var("$e"))]
        with pytest.raises(ExecError, match=r"undefined variable: \$e"):
            render(body, [1])

    def test_body_variables_popped_each_iteration(self):
        body = [action(DOT, decl=("$x",)), action(var("$x"))]
        assert render([range_(p(DOT), body)], [1, 2]) == "12"


class TestElementState:
    """A single ``*$var`` receives loop metadata."""

    def test_metadata(self):
        body = [
            if_(p(var("$it", "is_first")), ["["]),
            action(var("$it", "index")),
            ":",
            action(var("$it", "key")),
            "=",
            action(var("$it", "value")),
            if_(p(var("$it", "is_last")), ["]"], [","]),
        ]
        decl = (VarDecl("$it", ptr=True),)
        assert render([range_(p(DOT, decl=decl), body)], {"b": 2, "a": 1}) == "[0:a=1,1:b=2]"

    def test_collection_and_dot(self):
        body = [action(ident("len"), var("$it", "collection")), action(field("tag"))]
        decl = (VarDecl("$it", ptr=True),)
        data = {"items": [1, 2], "tag": "!"}
        assert render([range_(p(field("items"), decl=decl), body)], data) == "2!2!"

    def test_data_slot_writable(self):
        def mark(it) -> str:
            it.data = (it.data or 0) + 1
            return str(it.data)

        body = [action(ident("mark"), var("$it"))]
        decl = (VarDecl("$it", ptr=True),)
        assert render([range_(p(DOT, decl=decl), body)], ["a", "b"], {"mark": mark}) == "12"


class TestStreaming:
    """Plain iterables are consumed one element ahead."""

    def test_reads_one_ahead(self):
        produced = []

        def numbers():
            for i in range(3):
                produced.append(i)
                yield i

        out = _each(numbers(), {"count": lambda: len(produced)})
        assert out == "0,1,2,"
        body = [range_(p(DOT), [action(ident("count")), ","])]
        produced.clear()
        assert render(body, numbers(), {"count": lambda: len(produced)}) == "2,3,3,"


class TestIterRangeProperties:
    """Property-based checks of the item stream."""

    @given(int_keyed)
    def test_int_keys_sorted(self, mapping):
        items = list(iter_range(mapping))
        assert [item.key for item in items] == sorted(mapping)
        assert [item.value for item in items] == [mapping[k] for k in sorted(mapping)]

    @given(str_keyed)
    def test_str_keys_sorted(self, mapping):
        assert [item.key for item in iter_range(mapping)] == sorted(mapping)

    @given(sequences)
    def test_sequence_items(self, seq):
        items = list(iter_range(seq))
        assert [item.value for item in items] == seq
        assert [item.index for item in items] == list(range(len(seq)))
        assert [item.is_last for item in items] == [i == len(seq) - 1 for i in range(len(seq))]

    @given(sequences)
    def test_streamed_matches_sequence(self, seq):
        assert list(iter_range(iter(seq))) == list(iter_range(seq))
