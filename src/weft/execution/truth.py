"""Truthiness, printing and ordering rules for template values."""

from __future__ import annotations

import inspect
from collections.abc import Iterable, Mapping, Sized
from functools import partial
from numbers import Number, Real
from typing import Any

from weft.execution.types import ResultOk, ZeroChecker


def is_true(value: Any) -> bool:
    """Decide whether ``{{if}}``/``{{with}}`` take their main branch.

    - None is false.
    - Booleans are themselves; numbers are true when non-zero.
    - Strings and collections are true when non-empty.
    - ResultOk is its presence flag.
    - A value with ``is_zero()`` is true when that returns False.
    - Functions and any other object are true.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, Number):
        return value != 0
    if isinstance(value, ResultOk):
        return value.ok
    if isinstance(value, Sized):
        return len(value) > 0
    if isinstance(value, ZeroChecker):
        return not value.is_zero()
    return True


def is_function(value: Any) -> bool:
    """True for plain functions and methods, which printing invokes."""
    return inspect.isroutine(value) or isinstance(value, partial)


def to_text(value: Any) -> str:
    """Default text form of a printed value; None prints as nothing."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _key_rank(key: Any) -> tuple[int, Any]:
    # numbers by value, then strings, then everything else by repr
    if isinstance(key, Real) and not isinstance(key, bool):
        return (0, key)
    if isinstance(key, bool):
        return (1, int(key))
    if isinstance(key, str):
        return (2, key)
    return (3, f"{type(key).__name__}:{key!r}")


def sort_keys(keys: Iterable[Any]) -> list[Any]:
    """Sort mapping keys into the fixed order ``range`` uses.

    Numbers sort by value, strings lexicographically. Mixed key types are
    grouped by kind so the order stays total and deterministic.
    """
    return sorted(keys, key=_key_rank)


_ZEROS: dict[type, Any] = {int: 0, float: 0.0, str: "", bool: False, list: [], dict: {}, tuple: ()}


def zero_value(mapping: Mapping[Any, Any]) -> Any:
    """Zero value for a missing key, derived from the mapping's other values."""
    for value in mapping.values():
        for kind, zero in _ZEROS.items():
            if type(value) is kind:
                return type(zero)(zero) if isinstance(zero, (list, dict)) else zero
        return None
    return None
