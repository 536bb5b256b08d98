"""Function values and layered function scopes.

A FuncValue is one of two variants:

- DirectFunc wraps a callable that templates invoke as-is.
- ContextBoundFunc wraps a factory. The factory receives the run's
  FuncContext and returns the callable that is actually invoked. The
  interpreter resolves each factory once per render and caches the result.

FuncValues stacks name→FuncValue layers. Lookup walks the layers in order
and returns the first match; layer 0 is the innermost scope and receives
``set`` writes. Scopes are shared by reference between executors, so
code that wants different functions builds a new FuncValues or a child
executor instead of writing into a shared one. Frozen scopes (such as the
builtin table) reject writes outright.

Example:
    >>> funcs = FuncValues({"upper": str.upper})
    >>> funcs.get("upper").resolve(ctx)("a")
    'A'
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeAlias

from weft.exceptions import ErrorCode, FuncError
from weft.funcs.context import FuncContext
from weft.funcs.signature import ResultKind, annotation_names, inspect_callable, signature_of

logger = logging.getLogger(__name__)

FuncMap: TypeAlias = Mapping[str, Callable[..., Any]]

_CONTEXT_BOUND_ATTR = "__weft_context_bound__"


@dataclass(frozen=True, slots=True, eq=False)
class FuncValue:
    """A registered template function."""

    def resolve(self, context: FuncContext) -> Callable[..., Any]:
        """Return the callable to invoke within ``context``."""
        raise NotImplementedError

    @property
    def target(self) -> Callable[..., Any]:
        """The wrapped function or factory."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True, eq=False)
class DirectFunc(FuncValue):
    func: Callable[..., Any]

    def resolve(self, context: FuncContext) -> Callable[..., Any]:
        return self.func

    @property
    def target(self) -> Callable[..., Any]:
        return self.func


@dataclass(frozen=True, slots=True, eq=False)
class ContextBoundFunc(FuncValue):
    factory: Callable[[FuncContext], Callable[..., Any]]

    def resolve(self, context: FuncContext) -> Callable[..., Any]:
        func = self.factory(context)
        if not callable(func):
            name = getattr(self.factory, "__name__", repr(self.factory))
            raise FuncError(
                f"context-bound function {name} returned non-callable {type(func).__name__}",
                name=name,
                code=ErrorCode.NOT_CALLABLE,
            )
        return func

    @property
    def target(self) -> Callable[..., Any]:
        return self.factory


def context_bound(factory: Callable[[FuncContext], Callable[..., Any]]) -> Callable[..., Any]:
    """Mark ``factory`` as producing the real function from the run context.

    Example:
        >>> @context_bound
        ... def local_value(ctx):
        ...     return lambda key: ctx.local.get(key)
    """
    setattr(factory, _CONTEXT_BOUND_ATTR, True)
    return factory


def _takes_only_context(fn: Callable[..., Any]) -> bool:
    sig = signature_of(fn)
    if sig is None:
        return False
    params = list(sig.parameters.values())
    return (
        len(params) == 1
        and params[0].kind
        in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and annotation_names(params[0].annotation, FuncContext)
    )


def check_name(name: str) -> None:
    """Validate a function name.

    Names start with a letter or underscore and continue with letters,
    digits or underscores.

    Raises:
        FuncError: The name is not a valid identifier.
    """
    if not name or not (name[0].isalpha() or name[0] == "_") or not all(
        ch.isalnum() or ch == "_" for ch in name
    ):
        raise FuncError(
            f'function name "{name}" is not a valid identifier',
            name=name,
            code=ErrorCode.INVALID_NAME,
        )


def check_func(name: str, fn: Any) -> None:
    """Validate a function before registering it.

    Raises:
        FuncError: ``fn`` is not callable, or its return annotation
            declares a result shape templates cannot consume.
    """
    if isinstance(fn, FuncValue):
        return
    if not callable(fn):
        raise FuncError(f'value for "{name}" not a function', name=name)
    if inspect_callable(fn).result in (ResultKind.INVALID, ResultKind.MULTI):
        raise FuncError(
            f'can\'t install method/function "{name}": bad return type',
            name=name,
            code=ErrorCode.BAD_RETURN,
        )


def func_value(fn: Callable[..., Any] | FuncValue) -> FuncValue:
    """Wrap ``fn`` in the matching FuncValue variant.

    Functions decorated with ``@context_bound``, or whose only parameter
    is annotated FuncContext, become ContextBoundFunc.
    """
    if isinstance(fn, FuncValue):
        return fn
    if getattr(fn, _CONTEXT_BOUND_ATTR, False) or _takes_only_context(fn):
        return ContextBoundFunc(fn)
    return DirectFunc(fn)


def _validated_layer(funcs: Mapping[str, Any]) -> dict[str, FuncValue]:
    layer: dict[str, FuncValue] = {}
    for name, fn in funcs.items():
        check_name(name)
        check_func(name, fn)
        layer[name] = func_value(fn)
    return layer


class FuncValues:
    """Ordered layers of named functions, innermost first.

    Example:
        >>> outer = FuncValues({"greet": lambda: "hi"})
        >>> scope = FuncValues({"greet": lambda: "hello"})
        >>> scope.append_values(outer)
        >>> scope.get("greet").target()
        'hello'
    """

    __slots__ = ("_layers", "_frozen")

    def __init__(self, *funcs: Mapping[str, Any] | FuncValues):
        self._layers: list[dict[str, FuncValue]] = [{}]
        self._frozen = False
        for item in funcs:
            if isinstance(item, FuncValues):
                self._layers.extend(dict(layer) for layer in item._layers)
            else:
                self._layers.append(_validated_layer(item))

    @classmethod
    def _from_layers(cls, layers: list[dict[str, FuncValue]]) -> FuncValues:
        values = cls.__new__(cls)
        values._layers = layers or [{}]
        values._frozen = False
        return values

    @classmethod
    def combine(cls, *scopes: FuncValues) -> FuncValues:
        """View over the layers of ``scopes`` in order, sharing them."""
        return cls._from_layers([layer for scope in scopes for layer in scope._layers])

    def _check_writable(self) -> None:
        if self._frozen:
            raise FuncError("cannot modify a frozen function table", code=ErrorCode.NOT_CALLABLE)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def layers(self) -> tuple[Mapping[str, FuncValue], ...]:
        return tuple(MappingProxyType(layer) for layer in self._layers)

    def get(self, name: str) -> FuncValue | None:
        for layer in self._layers:
            value = layer.get(name)
            if value is not None:
                return value
        return None

    def has(self, name: str) -> bool:
        """Whether any layer defines ``name``."""
        return name in self

    def __contains__(self, name: object) -> bool:
        return any(name in layer for layer in self._layers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.names())

    def __bool__(self) -> bool:
        return any(self._layers)

    def names(self) -> list[str]:
        """Visible function names, sorted."""
        seen: set[str] = set()
        for layer in self._layers:
            seen.update(layer)
        return sorted(seen)

    def set(self, name: str, fn: Callable[..., Any] | FuncValue) -> None:
        """Validate and register ``fn`` in the innermost layer."""
        self._check_writable()
        check_name(name)
        check_func(name, fn)
        self._layers[0][name] = func_value(fn)

    def set_value(self, name: str, value: FuncValue) -> None:
        self._check_writable()
        check_name(name)
        self._layers[0][name] = value

    def update(self, funcs: Mapping[str, Any]) -> None:
        """Validate and register every entry of ``funcs`` in the innermost layer."""
        self._check_writable()
        self._layers[0].update(_validated_layer(funcs))

    def append(self, *funcs: Mapping[str, Any]) -> None:
        """Add validated outer layers, consulted after the existing ones."""
        self._check_writable()
        for item in funcs:
            self._layers.append(_validated_layer(item))

    def append_values(self, *values: FuncValues) -> None:
        """Add the layers of other scopes after the existing ones."""
        self._check_writable()
        for item in values:
            self._layers.extend(item._layers)

    def filter(self, *names: str) -> FuncValues:
        """Return a single-layer scope with only ``names``.

        With no names, returns a scope sharing every layer.

        Raises:
            FuncError: A name is not defined in this scope.
        """
        if not names:
            return FuncValues._from_layers([{}, *self._layers])
        layer: dict[str, FuncValue] = {}
        for name in names:
            value = self.get(name)
            if value is None:
                raise FuncError(
                    f'function "{name}" is not defined',
                    name=name,
                    code=ErrorCode.UNKNOWN_FUNCTION,
                )
            layer[name] = value
        return FuncValues._from_layers([layer])

    def copy(self) -> FuncValues:
        """Unfrozen copy with independent layer dicts."""
        return FuncValues._from_layers([dict(layer) for layer in self._layers])

    def freeze(self) -> FuncValues:
        """Freeze this scope in place and return it."""
        self._frozen = True
        logger.debug("froze function table with %d names", len(self))
        return self

    def __repr__(self) -> str:
        state = " frozen" if self._frozen else ""
        return f"<FuncValues{state} layers={len(self._layers)} names={len(self)}>"


@dataclass(frozen=True, slots=True)
class DataFuncs:
    """Render data bundled with the functions it needs.

    The executor unwraps it, installing ``funcs`` in a child scope and
    rendering ``data``.
    """

    data: Any
    funcs: FuncValues
