"""Shared sentinel types."""

from __future__ import annotations

from typing import Final


class _Missing:
    """Marker for "no value at all", distinct from ``None``.

    Used as the identity element of the expression evaluator and as the
    absent final value when a pipeline command has no predecessor.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()
