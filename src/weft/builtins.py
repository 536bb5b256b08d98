"""Builtin template functions.

Every executor created by a Template consults this table last, after
template overrides and host functions. The table is frozen; register
replacements on a Template or Executor instead.

Categories:
**Logic**:
    - `and`, `or`: first false (true) argument, or the last one
    - `not`: negated truth

**Collections**:
    - `index x 1 2`: ``x[1][2]``; missing mapping keys give None
    - `slice x 1 2`: ``x[1:2]``
    - `len`, `contains`
    - `array`, `append`, `map`, `dict`, `new_pair`

**Comparison**:
    - `eq a b c`: ``a == b or a == c``
    - `ne`, `lt`, `le`, `gt`, `ge`

**Formatting**:
    - `print`, `println`, `printf` (``%``-style), `to_s`
    - `html`, `js`, `urlquery`: escaped text of the arguments

**Values**:
    - `default`, `first_valid`, `is_null`, `not_null`, `nil`, `null`
    - `to_i`, `to_u`, `to_b`, `to_time`, `timef`
    - `pow`, `floor`: the ``^`` and ``\\`` operators

**Control**:
    - `call fn args...`: invoke a function value
    - `has_method`
    - `range_callback`: drive a ``{{callback}}`` body over a collection
    - `exit`: stop rendering, keeping the output so far

Failures raise ordinary Python exceptions; the interpreter reports them
as ``error calling <name>: ...`` at the calling node.
"""

from __future__ import annotations

import html as _html
import re
from collections.abc import Callable, Mapping, Sequence, Sized
from datetime import date, datetime, time
from numbers import Integral, Real
from typing import Any, NoReturn
from urllib.parse import quote_plus

from weft.exceptions import ExitRender
from weft.execution.ranges import iter_range
from weft.execution.resolve import MemberKind, resolve_member
from weft.execution.state import State, WalkHandler
from weft.execution.truth import is_true, to_text
from weft.execution.types import RangeElemState
from weft.expr import FLOOR, POW, evaluate
from weft.funcs.values import FuncValues

# ----------------------------------------------------------------------
# Logic
# ----------------------------------------------------------------------


def _and(arg0: Any, *args: Any) -> Any:
    """First false argument, or the last argument."""
    for arg in (arg0, *args):
        if not is_true(arg):
            return arg
    return arg


def _or(arg0: Any, *args: Any) -> Any:
    """First true argument, or the last argument."""
    for arg in (arg0, *args):
        if is_true(arg):
            return arg
    return arg


def _not(arg: Any) -> bool:
    return not is_true(arg)


def _call(state: State, fn: Any, *args: Any) -> Any:
    """Call the function value ``fn`` with ``args``."""
    if fn is None:
        raise TypeError("call of nil")
    if not callable(fn):
        raise TypeError(f"non-function of type {type(fn).__name__}")
    return state.invoke(fn, *args, name=getattr(fn, "__name__", ""))


# ----------------------------------------------------------------------
# Collections
# ----------------------------------------------------------------------


def _index_arg(index: Any, size: int) -> int:
    if index is None:
        raise TypeError("cannot index slice/array with nil")
    if isinstance(index, bool) or not isinstance(index, Integral):
        raise TypeError(f"cannot index slice/array with type {type(index).__name__}")
    x = int(index)
    if x < 0 or x > size:
        raise IndexError(f"index out of range: {x}")
    return x


def _index(item: Any, *indices: Any) -> Any:
    """``index x 1 2 3`` is ``x[1][2][3]``."""
    if item is None:
        raise TypeError("index of untyped nil")
    for index in indices:
        if item is None:
            raise TypeError("index of nil value")
        if isinstance(item, Mapping):
            item = item.get(index)
        elif isinstance(item, (str, Sequence)):
            x = _index_arg(index, len(item))
            if x == len(item):
                raise IndexError(f"index out of range: {x}")
            item = item[x]
        else:
            raise TypeError(f"can't index item of type {type(item).__name__}")
    return item


def _slice(item: Any, *indices: Any) -> Any:
    """``slice x 1 2`` is ``x[1:2]``; a third index bounds the second."""
    if item is None:
        raise TypeError("slice of untyped nil")
    if len(indices) > 3:
        raise ValueError(f"too many slice indexes: {len(indices)}")
    if isinstance(item, str):
        if len(indices) == 3:
            raise ValueError("cannot 3-index slice a string")
    elif not isinstance(item, Sequence):
        raise TypeError(f"can't slice item of type {type(item).__name__}")

    bounds = [0, len(item), len(item)]
    for i, index in enumerate(indices):
        bounds[i] = _index_arg(index, len(item))
    low, high, cap = bounds
    if low > high:
        raise IndexError(f"invalid slice index: {low} > {high}")
    if high > cap:
        raise IndexError(f"invalid slice index: {high} > {cap}")
    return item[low:high]


def _len(item: Any) -> int:
    if item is None:
        raise TypeError("len of nil value")
    if not isinstance(item, Sized):
        raise TypeError(f"len of type {type(item).__name__}")
    return len(item)


def _contains(item: Any, *subs: Any) -> bool:
    """True when ``item`` holds every one of ``subs``.

    Strings check substrings, mappings check keys, sequences check
    elements. An empty collection contains nothing.
    """
    if item is None:
        raise TypeError("contains of untyped nil")
    if isinstance(item, str):
        for i, sub in enumerate(subs):
            if not isinstance(sub, str):
                raise TypeError(f"arg {i + 1} is not a string value")
            if sub not in item:
                return False
        return True
    if isinstance(item, (Mapping, Sequence, set, frozenset)):
        if not item:
            return False
        return all(sub in item for sub in subs)
    raise TypeError(f"can't check contents of type {type(item).__name__}")


def _array(*items: Any) -> list[Any]:
    return list(items)


def _append(dest: Any, *values: Any) -> Any:
    """Copy of ``dest`` with ``values`` added; a tuple stays a tuple."""
    if dest is None:
        return list(values)
    if isinstance(dest, tuple):
        return (*dest, *values)
    if isinstance(dest, list):
        return [*dest, *values]
    raise TypeError(f"can't append to value of type {type(dest).__name__}")


def _map(*args: Any) -> dict[Any, Any]:
    """Mapping of key/value pairs; an odd argument count gives an empty mapping."""
    if len(args) % 2:
        return {}
    return dict(zip(args[::2], args[1::2]))


def _dict(*args: Any) -> dict[Any, Any]:
    if len(args) % 2:
        raise ValueError(f"dict: odd number of arguments ({len(args)})")
    return dict(zip(args[::2], args[1::2]))


def _new_pair(key: Any, value: Any) -> dict[str, Any]:
    return {"K": key, "V": value}


# ----------------------------------------------------------------------
# Comparison
# ----------------------------------------------------------------------


def _basic_kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (Integral, Real)):
        return "number"
    if isinstance(value, complex):
        return "complex"
    if isinstance(value, str):
        return "string"
    return None


def _eq(arg1: Any, *others: Any) -> bool:
    """``eq a b c`` is ``a == b or a == c``.

    Numbers compare across int and float. Booleans, numbers and strings
    may not be compared with each other; other values compare with
    ``==``.

    Raises:
        ValueError: No value to compare with.
        TypeError: Incompatible basic kinds.
    """
    if not others:
        raise ValueError("missing argument for comparison")
    k1 = _basic_kind(arg1)
    for arg in others:
        k2 = _basic_kind(arg)
        if k1 is not None and k2 is not None and k1 != k2:
            raise TypeError("incompatible types for comparison")
        if arg1 == arg:
            return True
    return False


def _ne(arg1: Any, arg2: Any) -> bool:
    return not _eq(arg1, arg2)


def _lt(arg1: Any, arg2: Any) -> bool:
    k1, k2 = _basic_kind(arg1), _basic_kind(arg2)
    if k1 in (None, "bool", "complex") or k2 in (None, "bool", "complex"):
        raise TypeError("invalid type for comparison")
    if k1 != k2:
        raise TypeError("incompatible types for comparison")
    return arg1 < arg2


def _le(arg1: Any, arg2: Any) -> bool:
    return _lt(arg1, arg2) or _eq(arg1, arg2)


def _gt(arg1: Any, arg2: Any) -> bool:
    return not _le(arg1, arg2)


def _ge(arg1: Any, arg2: Any) -> bool:
    return not _lt(arg1, arg2)


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------


def _sprint(*args: Any) -> str:
    """Concatenate ``args``, with a space between operands when neither is a string."""
    parts: list[str] = []
    for i, arg in enumerate(args):
        if i and not isinstance(arg, str) and not isinstance(args[i - 1], str):
            parts.append(" ")
        parts.append(to_text(arg))
    return "".join(parts)


def _sprintln(*args: Any) -> str:
    return " ".join(to_text(arg) for arg in args) + "\n"


_VERB_V = re.compile(r"%([-+ #0]*\d*(?:\.\d+)?)v")


def _sprintf(fmt: str, *args: Any) -> str:
    """``%``-style formatting; ``%v`` is accepted as ``%s``."""
    return _VERB_V.sub(r"%\1s", fmt) % args


def _html_escape(*args: Any) -> str:
    return _html.escape(_sprint(*args), quote=True)


_JS_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "<": "\\u003C",
    ">": "\\u003E",
    "&": "\\u0026",
    "=": "\\u003D",
}


def _js_escape(*args: Any) -> str:
    """Text of ``args`` escaped for a JavaScript string literal."""
    out: list[str] = []
    for ch in _sprint(*args):
        escaped = _JS_ESCAPES.get(ch)
        if escaped is not None:
            out.append(escaped)
        elif ch.isprintable():
            out.append(ch)
        else:
            out.append(f"\\u{ord(ch):04X}" if ord(ch) <= 0xFFFF else ch)
    return "".join(out)


def _urlquery(*args: Any) -> str:
    return quote_plus(_sprint(*args))


# ----------------------------------------------------------------------
# Values
# ----------------------------------------------------------------------


def _default(*items: Any) -> Any:
    """First true argument, or None."""
    for item in items:
        if is_true(item):
            return item
    return None


def _is_null(*items: Any) -> bool:
    return all(item is None for item in items)


def _not_null(*items: Any) -> bool:
    return any(item is not None for item in items)


def _first_valid(*items: Any) -> Any:
    """First argument other than None, ``""`` or the integer 0; else ``""``."""
    for item in items:
        if item is None or (isinstance(item, str) and not item):
            continue
        if type(item) is int and item == 0:
            continue
        return item
    return ""


def _nil() -> Any:
    return None


def _to_int(value: Any, kind: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Integral):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value, 10)
        except ValueError:
            raise ValueError(f"can't parse {value!r} as {kind}") from None
    raise TypeError(f"can't convert {type(value).__name__} to {kind}")


def _to_i(value: Any) -> int:
    """Integer from a bool, integer or base-10 string."""
    return _to_int(value, "int")


def _to_u(value: Any) -> int:
    """Like ``to_i``, rejecting negative results."""
    result = _to_int(value, "unsigned int")
    if result < 0:
        raise ValueError(f"can't convert negative value {result} to unsigned int")
    return result


def _to_time(item: Any) -> datetime:
    """Datetime from a datetime, a date or an ISO 8601 string."""
    if item is None:
        raise TypeError("to_time of untyped nil")
    if isinstance(item, datetime):
        return item
    if isinstance(item, date):
        return datetime.combine(item, time())
    if isinstance(item, str):
        return datetime.fromisoformat(item)
    raise TypeError(f"to_time of type {type(item).__name__}")


def _timef(item: Any, layout: str, *default: str) -> str:
    """Format a date or datetime with a strftime ``layout``.

    Anything else gives the optional default, or ``""``.
    """
    if isinstance(item, (datetime, date)):
        return item.strftime(layout)
    return default[0] if default else ""


def _pow(a: Any, b: Any) -> Any:
    return evaluate(POW, a, b)


def _floor(a: Any, b: Any) -> Any:
    return evaluate(FLOOR, a, b)


# ----------------------------------------------------------------------
# Control
# ----------------------------------------------------------------------


def _has_method(obj: Any, name: str) -> bool:
    """True when ``obj`` has a method, or a callable field, called ``name``."""
    member = resolve_member(obj, name)
    if member.kind is MemberKind.METHOD:
        return True
    if member.kind in (MemberKind.FIELD, MemberKind.ATTR):
        return callable(member.value)
    return False


def _range_callback(dot: Any, handler: WalkHandler, items: Any, *args: Any) -> None:
    """Walk a ``{{callback}}`` body once per element of ``items``.

    The body's dot is a RangeElemState describing the element.

    Example:
        >>> # {{callback range_callback .tags}}{{.index}}={{.value}} {{end}}
    """
    elem = RangeElemState(collection=items)
    for item in iter_range(items):
        elem.value = item.value
        elem.index = item.index
        elem.key = item.key
        elem.is_first = item.index == 0
        elem.is_last = item.is_last
        handler(elem, *args)


def _exit() -> NoReturn:
    """Stop rendering. Output written so far is kept."""
    raise ExitRender()


BUILTINS: dict[str, Callable[..., Any]] = {
    "and": _and,
    "or": _or,
    "not": _not,
    "call": _call,
    "index": _index,
    "slice": _slice,
    "len": _len,
    "contains": _contains,
    "array": _array,
    "append": _append,
    "map": _map,
    "dict": _dict,
    "new_pair": _new_pair,
    # Comparisons
    "eq": _eq,  # ==
    "ne": _ne,  # !=
    "lt": _lt,  # <
    "le": _le,  # <=
    "gt": _gt,  # >
    "ge": _ge,  # >=
    "print": _sprint,
    "println": _sprintln,
    "printf": _sprintf,
    "to_s": _sprint,
    "html": _html_escape,
    "js": _js_escape,
    "urlquery": _urlquery,
    "default": _default,
    "is_null": _is_null,
    "not_null": _not_null,
    "first_valid": _first_valid,
    "nil": _nil,
    "null": _nil,
    "to_i": _to_i,
    "to_u": _to_u,
    "to_b": is_true,
    "to_time": _to_time,
    "timef": _timef,
    "pow": _pow,
    "floor": _floor,
    "has_method": _has_method,
    "range_callback": _range_callback,
    "exit": _exit,
}

#: Frozen scope consulted after every other function scope.
BUILTIN_FUNCS = FuncValues(BUILTINS).freeze()
