"""Call-signature introspection for template-callable functions.

Templates call host functions positionally. Before a call the interpreter
needs to know:

- how many template arguments the callable accepts,
- whether its first parameter asks for the interpreter state,
- how to interpret what it returns,
- which plain types its parameters declare, for argument validation.

Result kinds come from the return annotation:

    ``-> None``                       nothing is printed
    ``-> tuple[T, bool]``             value plus presence flag (ResultOk)
    ``-> tuple[T, Exception | None]`` value, or abort with the error
    ``-> tuple[A, B, C]``             packed into a list
    anything else                     the single returned value

Callables without an inspectable signature (some C builtins) accept any
number of arguments and return a single value.
"""

from __future__ import annotations

import inspect
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class ResultKind(Enum):
    NONE = "none"
    SINGLE = "single"
    VALUE_OK = "value_ok"
    VALUE_ERROR = "value_error"
    MULTI = "multi"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class CallSpec:
    """What the interpreter needs to know to call a function.

    Attributes:
        required: Positional parameters without defaults.
        maximum: Positional parameters in total, None when variadic.
        state_arg: First parameter receives the interpreter state.
        result: How the return value is interpreted.
        param_types: Declared plain-class type per positional parameter
            (None where undeclared or not a plain class).
        variadic_type: Declared plain-class type of ``*args``.
    """

    required: int = 0
    maximum: int | None = None
    state_arg: bool = False
    result: ResultKind = ResultKind.SINGLE
    param_types: tuple[type | None, ...] = ()
    variadic_type: type | None = None

    @property
    def variadic(self) -> bool:
        return self.maximum is None

    def accepts(self, count: int) -> bool:
        if count < self.required:
            return False
        return self.maximum is None or count <= self.maximum

    def describe_arity(self) -> str:
        """Expected argument count, as used in error messages."""
        if self.maximum is None:
            return f"at least {self.required}"
        if self.maximum == self.required:
            return str(self.required)
        return f"{self.required} to {self.maximum}"

    def param_type(self, index: int) -> type | None:
        if index < len(self.param_types):
            return self.param_types[index]
        return self.variadic_type


_UNKNOWN = CallSpec()


def annotation_names(annotation: Any, cls: type) -> bool:
    """True when ``annotation`` refers to ``cls`` or a subclass.

    String annotations (unresolvable forward references) are matched on
    their last dotted component.
    """
    if annotation is inspect.Parameter.empty:
        return False
    if isinstance(annotation, str):
        return annotation.strip("'\"").rsplit(".", 1)[-1] == cls.__name__
    return isinstance(annotation, type) and issubclass(annotation, cls)


def signature_of(fn: Callable[..., Any]) -> inspect.Signature | None:
    try:
        return inspect.signature(fn, eval_str=True)
    except (NameError, AttributeError, SyntaxError):
        # Forward references that cannot be resolved at runtime.
        pass
    except (TypeError, ValueError):
        return None
    try:
        return inspect.signature(fn)
    except (TypeError, ValueError):
        return None


def _is_error_type(tp: Any) -> bool:
    if isinstance(tp, type):
        return issubclass(tp, BaseException)
    if typing.get_origin(tp) in (typing.Union, types.UnionType):
        members = [arg for arg in typing.get_args(tp) if arg is not type(None)]
        return bool(members) and all(_is_error_type(arg) for arg in members)
    return False


def result_kind(annotation: Any) -> ResultKind:
    """Classify a return annotation."""
    if annotation is inspect.Signature.empty:
        return ResultKind.SINGLE
    if annotation is None or annotation is type(None) or annotation == "None":
        return ResultKind.NONE
    if typing.get_origin(annotation) is not tuple:
        return ResultKind.SINGLE
    args = typing.get_args(annotation)
    if len(args) == 2 and args[1] is not Ellipsis:
        if args[1] is bool:
            return ResultKind.VALUE_OK
        if _is_error_type(args[1]):
            return ResultKind.VALUE_ERROR
        return ResultKind.INVALID
    if len(args) > 2:
        return ResultKind.MULTI
    return ResultKind.SINGLE


def _plain_type(annotation: Any) -> type | None:
    if annotation is inspect.Parameter.empty:
        return None
    if isinstance(annotation, type) and not isinstance(annotation, types.GenericAlias):
        if annotation is object or annotation is Any or getattr(annotation, "_is_protocol", False):
            return None
        return annotation
    return None


def inspect_callable(fn: Callable[..., Any], *, state_type: type | None = None) -> CallSpec:
    """Build the CallSpec of ``fn``.

    Args:
        fn: Any callable.
        state_type: Interpreter state class; a first positional parameter
            annotated with it is injected rather than passed by templates.

    Returns:
        The call specification. Callables without a signature get a
        permissive spec.
    """
    sig = signature_of(fn)
    if sig is None:
        return _UNKNOWN

    params = list(sig.parameters.values())
    state_arg = bool(
        state_type is not None
        and params
        and params[0].kind in _POSITIONAL
        and annotation_names(params[0].annotation, state_type)
    )
    if state_arg:
        params = params[1:]

    required = 0
    maximum: int | None = 0
    types_: list[type | None] = []
    variadic_type: type | None = None
    for param in params:
        if param.kind in _POSITIONAL:
            types_.append(_plain_type(param.annotation))
            if maximum is not None:
                maximum += 1
            if param.default is inspect.Parameter.empty:
                required += 1
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            maximum = None
            variadic_type = _plain_type(param.annotation)

    return CallSpec(
        required=required,
        maximum=maximum,
        state_arg=state_arg,
        result=result_kind(sig.return_annotation),
        param_types=tuple(types_),
        variadic_type=variadic_type,
    )
