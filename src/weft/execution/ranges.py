"""``{{range}}`` iteration.

Every rangeable value is turned into a stream of items carrying index,
key, element and an is-last flag, so that each variable arity binds the
same way whatever the collection kind:

    ==============  =====================  ==========================
    value           order                  key
    ==============  =====================  ==========================
    None            empty                  -
    int N           0 .. N-1               index
    mapping         sorted keys            key
    set             sorted elements        index
    sequence        by index               index
    StatefulIter.   start/done/next        index
    other iterable  as produced            index (reads one ahead)
    ==============  =====================  ==========================

Strings, bytes and booleans cannot be ranged over.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence, Set
from numbers import Integral
from typing import TYPE_CHECKING, Any, NamedTuple

from weft.exceptions import ErrorCode
from weft.execution.truth import sort_keys
from weft.execution.types import IteratorGetter, RangeElemState, StatefulIterator

if TYPE_CHECKING:
    from weft.nodes import Range


class RangeItem(NamedTuple):
    index: int
    key: Any
    value: Any
    is_last: bool


def _counted(n: int) -> Iterator[RangeItem]:
    for i in range(n):
        yield RangeItem(i, i, i, i == n - 1)


def _indexed(seq: Sequence[Any]) -> Iterator[RangeItem]:
    n = len(seq)
    for i in range(n):
        yield RangeItem(i, i, seq[i], i == n - 1)


def _keyed(mapping: Mapping[Any, Any]) -> Iterator[RangeItem]:
    keys = sort_keys(mapping.keys())
    n = len(keys)
    for i, key in enumerate(keys):
        yield RangeItem(i, key, mapping[key], i == n - 1)


def _stateful(it: StatefulIterator[Any, Any]) -> Iterator[RangeItem]:
    state = it.start()
    i = 0
    while not it.done(state):
        item, state = it.next(state)
        yield RangeItem(i, i, item, it.done(state))
        i += 1


def _streamed(iterable: Iterable[Any]) -> Iterator[RangeItem]:
    it = iter(iterable)
    try:
        current = next(it)
    except StopIteration:
        return
    i = 0
    for following in it:
        yield RangeItem(i, i, current, False)
        current = following
        i += 1
    yield RangeItem(i, i, current, True)


def iter_range(value: Any) -> Iterator[RangeItem]:
    """Iterate ``value`` the way ``{{range}}`` does.

    Raises:
        TypeError: ``value`` cannot be ranged over.
    """
    if value is None:
        return iter(())
    if not isinstance(value, (bool, str, bytes)):
        if isinstance(value, Integral):
            return _counted(int(value))
        if isinstance(value, Mapping):
            return _keyed(value)
        if isinstance(value, Set):
            return _indexed(sort_keys(value))
        if isinstance(value, Sequence):
            return _indexed(value)
        if isinstance(value, StatefulIterator):
            return _stateful(value)
        if isinstance(value, IteratorGetter):
            return _stateful(value.iterator())
        if isinstance(value, Iterable):
            return _streamed(value)
    raise TypeError(f"range can't iterate over {value!r} of type {type(value).__name__}")


class RangeMixin:
    """Walks Range nodes. Mixed into State."""

    __slots__ = ()

    def range_items(self, value: Any) -> Iterator[RangeItem]:
        """Like ``iter_range``, raising ExecError at the current node."""
        try:
            return iter_range(value)
        except TypeError as err:
            self.error(str(err), cause=err, code=ErrorCode.BAD_RANGE)

    def _walk_range(self, dot: Any, node: Range) -> None:
        self.at(node)
        outer = self.mark()
        try:
            value = self.eval_pipeline(dot, node.pipe)
            # body-declared variables are popped back to here each iteration
            mark = self.mark()
            decl = node.pipe.decl
            if len(decl) > 3:
                self.error(f"too many declarations in range: {len(decl)}")
            elem_state = RangeElemState(collection=value) if len(decl) == 1 and decl[0].ptr else None

            ran = False
            for item in self.range_items(value):
                ran = True
                if elem_state is not None:
                    elem_state.value = item.value
                    elem_state.index = item.index
                    elem_state.key = item.key
                    elem_state.is_first = item.index == 0
                    elem_state.is_last = item.is_last
                    self.set_top_var(1, elem_state)
                    self.walk(dot, node.body)
                elif not decl:
                    self.walk(item.value, node.body)
                elif len(decl) == 1:
                    self.set_top_var(1, item.value)
                    self.walk(item.value, node.body)
                else:
                    self.set_top_var(1, item.value)
                    self.set_top_var(2, item.key)
                    if len(decl) == 3:
                        self.set_top_var(3, item.is_last)
                    self.walk(dot, node.body)
                self.pop(mark)

            if not ran and node.else_ is not None:
                self.walk(dot, node.else_)
        finally:
            self.pop(outer)
