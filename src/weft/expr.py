"""Binary operator evaluation for template arithmetic.

``evaluate(op, left, right)`` is a pure function over dynamically typed
operands. It backs the ``BinOp`` node and compound variable assignment
(``$x += 1``).

Operators:
    ``+``  addition, sequence append, or string concatenation
    ``-`` ``*`` ``/`` ``%``  arithmetic
    ``^``  power
    ``\\`` floor division

Numeric operands are normalized to ``int`` or ``float``; ``bool`` is not
arithmetic. When either side is a float, both sides are promoted to float.
``^`` and ``\\`` compute in float and convert the result back to the left
operand's kind.

Integer ``/`` and ``%`` use Python's floor semantics (``//`` and ``%``).
Division or modulo by zero raises ExprError rather than escaping as
``ZeroDivisionError``.

Example:
    >>> evaluate("+", 1, 2)
    3
    >>> evaluate("+", "a", 1)
    'a1'
    >>> evaluate("+", [1, 2], 3)
    [1, 2, 3]
    >>> evaluate("^", 2, 10)
    1024
"""

from __future__ import annotations

import math
from collections.abc import Callable
from numbers import Integral, Real
from typing import Any, Final

from weft._types import MISSING
from weft.exceptions import BadOperatorError, ExprError

SUM: Final = "+"
SUB: Final = "-"
MUL: Final = "*"
DIV: Final = "/"
MOD: Final = "%"
POW: Final = "^"
FLOOR: Final = "\\"

OPERATORS: Final = frozenset({SUM, SUB, MUL, DIV, MOD, POW, FLOOR})


def _kind(value: Any) -> type | None:
    """Return ``int`` or ``float`` for arithmetic values, None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Integral):
        return int
    if isinstance(value, Real):
        return float
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int_div(a: int, b: int) -> int:
    return a // b


_ARITH: dict[str, tuple[Callable[[Any, Any], Any], Callable[[Any, Any], Any]]] = {
    # op: (int implementation, float implementation)
    SUM: (lambda a, b: a + b, lambda a, b: a + b),
    SUB: (lambda a, b: a - b, lambda a, b: a - b),
    MUL: (lambda a, b: a * b, lambda a, b: a * b),
    DIV: (_int_div, lambda a, b: a / b),
    MOD: (lambda a, b: a % b, lambda a, b: a % b),
}


def _append(seq: list[Any] | tuple[Any, ...], item: Any) -> list[Any] | tuple[Any, ...]:
    if isinstance(seq, tuple):
        return (*seq, item)
    return [*seq, item]


def evaluate(op: str, left: Any, right: Any) -> Any:
    """Apply the binary operator ``op`` to ``left`` and ``right``.

    Args:
        op: One of ``+ - * / % ^ \\``.
        left: Left operand, or ``MISSING`` to return ``right`` unchanged.
        right: Right operand.

    Returns:
        The operator result. Operands are never mutated.

    Raises:
        BadOperatorError: ``op`` is unknown or undefined for the operand types.
        ExprError: Division or modulo by zero, or float overflow.
    """
    if left is MISSING:
        return right
    if op not in OPERATORS:
        raise BadOperatorError(op, left, right)

    lk, rk = _kind(left), _kind(right)
    if lk is None or rk is None:
        if op != SUM:
            raise BadOperatorError(op, left, right)
        if isinstance(left, (list, tuple)):
            return _append(left, right)
        return _text(left) + _text(right)

    try:
        if op in (POW, FLOOR):
            a, b = float(left), float(right)
            result = math.pow(a, b) if op == POW else math.floor(a / b)
            return int(result) if lk is int else float(result)

        int_impl, float_impl = _ARITH[op]
        if lk is float or rk is float:
            return float_impl(float(left), float(right))
        return int_impl(int(left), int(right))
    except ZeroDivisionError:
        raise ExprError(
            f'division by zero in "{op}"', op, left, right
        ) from None
    except (OverflowError, ValueError) as err:
        raise ExprError(
            f'cannot evaluate "{op}" of {left!r} and {right!r}: {err}', op, left, right
        ) from err


def is_arithmetic(value: Any) -> bool:
    """True for values the evaluator treats as numbers."""
    return _kind(value) is not None


__all__ = [
    "DIV",
    "FLOOR",
    "MOD",
    "MUL",
    "OPERATORS",
    "POW",
    "SUB",
    "SUM",
    "evaluate",
    "is_arithmetic",
]
