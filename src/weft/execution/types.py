"""Value types and capability protocols seen by template data and host functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Protocol, TypeVar, runtime_checkable

S = TypeVar("S")
T_co = TypeVar("T_co", covariant=True)

#: Result of a function that returns nothing; prints as empty text.
BLANK: Final = ""


class Writer(Protocol):
    """Anything with a text ``write`` method (files, StringIO, sockets wrappers)."""

    def write(self, s: str, /) -> object: ...


@runtime_checkable
class AttrGetter(Protocol):
    """Data value that resolves its own fields.

    When a receiver implements ``get_attr``, field lookups on it use only
    this method. Returning ``(value, False)`` means the field is absent.
    """

    def get_attr(self, name: str) -> tuple[Any, bool]: ...


@runtime_checkable
class ZeroChecker(Protocol):
    """Value that knows whether it is empty; ``{{if}}`` uses ``not is_zero()``."""

    def is_zero(self) -> bool: ...


@runtime_checkable
class StatefulIterator(Protocol[S, T_co]):
    """Iteration driven by an explicit state value.

    ``range`` calls ``start()`` once, then ``next(state)`` until
    ``done(state)`` is true.

    Example:
        >>> class Countdown:
        ...     def __init__(self, n): self.n = n
        ...     def start(self): return self.n
        ...     def done(self, state): return state == 0
        ...     def next(self, state): return state, state - 1
    """

    def start(self) -> S: ...

    def done(self, state: S) -> bool: ...

    def next(self, state: S) -> tuple[T_co, S]: ...


@runtime_checkable
class IteratorGetter(Protocol):
    """Value that hands out a StatefulIterator for ``range``."""

    def iterator(self) -> StatefulIterator[Any, Any]: ...


@dataclass(frozen=True, slots=True)
class ResultOk:
    """Value paired with a presence flag.

    Functions annotated ``-> tuple[T, bool]`` produce this. ``{{if}}``
    tests the flag; printing shows the value.
    """

    value: Any
    ok: bool

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)


@dataclass(slots=True)
class Variable:
    """One binding of the variable stack."""

    name: str
    value: Any


@dataclass(slots=True)
class RangeElemState:
    """Loop metadata bound to a single ``*$var`` range variable.

    One instance is created per range and updated in place on every
    iteration; do not keep references to it after the loop.

    Attributes:
        value: Current element.
        index: Zero-based iteration count.
        key: Mapping key, or the index for sequences.
        is_first: True on the first iteration.
        is_last: True on the last iteration.
        collection: The value being ranged over.
        data: Free slot for host functions.
    """

    value: Any = None
    index: int = 0
    key: Any = None
    is_first: bool = False
    is_last: bool = False
    collection: Any = None
    data: Any = None
