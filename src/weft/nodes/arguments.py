"""Pipeline and argument nodes.

A pipeline is one or more commands separated by ``|``; each command is a
sequence of argument nodes. The first argument of a command is what gets
evaluated or called, the rest are its arguments.

``str(node)`` reproduces template-like source text, used as the
expression context in error messages.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from weft.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for argument nodes."""


@dataclass(frozen=True, slots=True)
class Dot(Expr):
    """The current data value: ``.``"""

    def __str__(self) -> str:
        return "."


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Literal or pre-evaluated value: nil, true, 42, "text", or any host value."""

    value: Any

    def __str__(self) -> str:
        value = self.value
        if value is None:
            return "nil"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        return str(value)


@dataclass(frozen=True, slots=True)
class Factory(Expr):
    """Value produced by calling ``new()`` each time the node is evaluated."""

    new: Callable[[], Any]

    def __str__(self) -> str:
        return f"<{getattr(self.new, '__name__', 'factory')}>"


@dataclass(frozen=True, slots=True)
class Identifier(Expr):
    """Function name: ``printf``"""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Field(Expr):
    """Field chain on dot: ``.User.Name``

    ``not_required`` marks a field whose absence renders as empty text
    instead of an error.
    """

    idents: Sequence[str]
    not_required: bool = False

    def __str__(self) -> str:
        return "".join(f".{ident}" for ident in self.idents)


@dataclass(frozen=True, slots=True)
class Variable(Expr):
    """Variable with optional field chain: ``$x.Name``"""

    idents: Sequence[str]

    def __str__(self) -> str:
        return ".".join(self.idents)


@dataclass(frozen=True, slots=True)
class Chain(Expr):
    """Field chain on an arbitrary node: ``(pipeline).Field``"""

    node: Expr
    fields: Sequence[str]

    def __str__(self) -> str:
        inner = f"({self.node})" if isinstance(self.node, Pipeline) else str(self.node)
        return inner + "".join(f".{name}" for name in self.fields)


@dataclass(frozen=True, slots=True)
class Command(Node):
    """One step of a pipeline."""

    args: Sequence[Expr]

    def __str__(self) -> str:
        return " ".join(f"({arg})" if isinstance(arg, Pipeline) else str(arg) for arg in self.args)


@dataclass(frozen=True, slots=True)
class BinOp(Expr):
    """Binary operator between two commands: ``$a + 1``"""

    op: str
    left: Command
    right: Command

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


@dataclass(frozen=True, slots=True)
class VarDecl(Node):
    """Variable target of a pipeline.

    ``op`` is ``:=`` to declare, ``=`` to assign an existing variable, or a
    compound operator such as ``+=``. ``ptr`` marks the single loop variable
    that receives a RangeElemState.
    """

    name: str
    op: str = ":="
    ptr: bool = False

    def __str__(self) -> str:
        return ("*" if self.ptr else "") + self.name


@dataclass(frozen=True, slots=True)
class Pipeline(Expr):
    """Commands chained with ``|``, optionally assigning to variables."""

    cmds: Sequence[Command]
    decl: Sequence[VarDecl] = ()

    def __str__(self) -> str:
        text = " | ".join(str(cmd) for cmd in self.cmds)
        if self.decl:
            op = self.decl[0].op
            text = f"{', '.join(str(d) for d in self.decl)} {op} {text}"
        return text
