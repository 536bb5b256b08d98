"""Member lookup on template data.

Field syntax (``.Name``) resolves against a receiver in a fixed priority
order. Each step only applies to some kinds of value:

1. AttrGetter receivers answer through ``get_attr`` and nothing else.
2. Methods defined on the receiver's class (any non-None value).
3. Attributes of record-like objects (dataclasses, plain objects,
   namedtuples, modules).
4. Keys of mappings.

Names starting with an underscore are never resolved through steps 2-3.
Methods of the mapping protocol itself (``keys``, ``items``, ``get``...)
are skipped on mappings so that data keys with those names stay
reachable.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping, Sequence, Set
from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Any

from weft._types import MISSING
from weft.execution.truth import is_function
from weft.execution.types import AttrGetter

_MAPPING_NAMES = frozenset(dir(dict)) | frozenset(dir(Mapping))


class ValueKind(Enum):
    OPTIONAL = "optional"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    ASSOCIATIVE = "associative"
    CALLABLE = "callable"
    RECORD = "record"


def value_kind(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.OPTIONAL
    if isinstance(value, (bool, Number, str, bytes)):
        return ValueKind.SCALAR
    if isinstance(value, Mapping):
        return ValueKind.ASSOCIATIVE
    if isinstance(value, (Sequence, Set)) and not hasattr(value, "_fields"):
        return ValueKind.SEQUENCE
    if is_function(value):
        return ValueKind.CALLABLE
    return ValueKind.RECORD


class MemberKind(Enum):
    ATTR = "attr"
    METHOD = "method"
    FIELD = "field"
    KEY = "key"
    NO_ATTR = "no_attr"
    NO_FIELD = "no_field"
    NO_KEY = "no_key"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Member:
    kind: MemberKind
    value: Any = None

    @property
    def found(self) -> bool:
        return self.kind in (MemberKind.ATTR, MemberKind.METHOD, MemberKind.FIELD, MemberKind.KEY)


def find_method(receiver: Any, name: str) -> Callable[..., Any] | None:
    """Bound method ``name`` defined on the receiver's class, or None."""
    if receiver is None or name.startswith("_"):
        return None
    if isinstance(receiver, Mapping) and name in _MAPPING_NAMES:
        return None
    static = inspect.getattr_static(type(receiver), name, MISSING)
    if static is MISSING:
        return None
    if isinstance(static, (staticmethod, classmethod)) or inspect.isroutine(static):
        return getattr(receiver, name)
    return None


def find_field(receiver: Any, name: str) -> Any:
    """Attribute ``name`` of a record-like receiver, or MISSING."""
    if name.startswith("_"):
        return MISSING
    return getattr(receiver, name, MISSING)


def find_key(receiver: Mapping[Any, Any], name: str) -> Any:
    """Value under ``name`` in a mapping, or MISSING."""
    if name in receiver:
        return receiver[name]
    return MISSING


def resolve_member(receiver: Any, name: str) -> Member:
    """Look up ``name`` on ``receiver`` following the priority order above.

    Property getters run here; their exceptions propagate.
    """
    if isinstance(receiver, AttrGetter):
        value, ok = receiver.get_attr(name)
        return Member(MemberKind.ATTR, value) if ok else Member(MemberKind.NO_ATTR)

    method = find_method(receiver, name)
    if method is not None:
        return Member(MemberKind.METHOD, method)

    kind = value_kind(receiver)
    if kind is ValueKind.RECORD:
        value = find_field(receiver, name)
        if value is MISSING:
            return Member(MemberKind.NO_FIELD)
        return Member(MemberKind.FIELD, value)
    if kind is ValueKind.ASSOCIATIVE:
        value = find_key(receiver, name)
        if value is MISSING:
            return Member(MemberKind.NO_KEY)
        return Member(MemberKind.KEY, value)
    return Member(MemberKind.NONE)


def has_method(receiver: Any, name: str) -> bool:
    return find_method(receiver, name) is not None
