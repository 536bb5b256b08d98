"""Statement nodes: text, actions and control flow."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from weft.nodes.arguments import Pipeline
from weft.nodes.base import Node


@dataclass(frozen=True, slots=True)
class NodeList(Node):
    """Sequence of statements."""

    nodes: Sequence[Node] = ()

    def __str__(self) -> str:
        return "".join(str(node) for node in self.nodes)


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Literal output."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class Action(Node):
    """Evaluated pipeline: ``{{.Name}}`` or ``{{$x := 1}}``"""

    pipe: Pipeline

    def __str__(self) -> str:
        return f"{{{{{self.pipe}}}}}"


def _branch(keyword: str, pipe: Pipeline, body: NodeList, else_: NodeList | None) -> str:
    text = f"{{{{{keyword} {pipe}}}}}{body}"
    if else_ is not None:
        text += f"{{{{else}}}}{else_}"
    return text + "{{end}}"


@dataclass(frozen=True, slots=True)
class If(Node):
    """Conditional: ``{{if .X}}...{{else}}...{{end}}``"""

    pipe: Pipeline
    body: NodeList
    else_: NodeList | None = None

    def __str__(self) -> str:
        return _branch("if", self.pipe, self.body, self.else_)


@dataclass(frozen=True, slots=True)
class With(Node):
    """Rebinds dot when the value is true: ``{{with .User}}...{{end}}``"""

    pipe: Pipeline
    body: NodeList
    else_: NodeList | None = None

    def __str__(self) -> str:
        return _branch("with", self.pipe, self.body, self.else_)


@dataclass(frozen=True, slots=True)
class Range(Node):
    """Loop: ``{{range $i, $e := .Items}}...{{else}}...{{end}}``"""

    pipe: Pipeline
    body: NodeList
    else_: NodeList | None = None

    def __str__(self) -> str:
        return _branch("range", self.pipe, self.body, self.else_)


@dataclass(frozen=True, slots=True)
class TemplateCall(Node):
    """Invocation of a named template: ``{{template "row" . $a $b}}``

    The first argument of the pipeline's command is the data for the
    called template; the remaining arguments bind its declared arguments.
    """

    name: str
    pipe: Pipeline | None = None

    def __str__(self) -> str:
        if self.pipe is None:
            return f'{{{{template "{self.name}"}}}}'
        return f'{{{{template "{self.name}" {self.pipe}}}}}'


@dataclass(frozen=True, slots=True)
class Wrap(Node):
    """Output wrapper that only renders ``begin``/``after`` around non-blank output.

    Example:
        ``{{wrap}}<ul>{{begin}}...{{after}}</ul>{{else}}empty{{end}}``
    """

    pipe: Pipeline | None
    body: NodeList
    begin: NodeList | None = None
    after: NodeList | None = None
    else_: NodeList | None = None
    strip: bool = False

    def __str__(self) -> str:
        head = "{{wrap" + (f" {self.pipe}" if self.pipe else "") + "}}"
        text = head + (f"{{{{begin}}}}{self.begin}" if self.begin else "") + str(self.body)
        if self.after is not None:
            text += f"{{{{after}}}}{self.after}"
        if self.else_ is not None:
            text += f"{{{{else}}}}{self.else_}"
        return text + "{{end}}"


@dataclass(frozen=True, slots=True)
class Arg(Node):
    """Renders ``body`` and passes the text as last argument of the final command."""

    pipe: Pipeline
    body: NodeList

    def __str__(self) -> str:
        return f"{{{{arg {self.pipe}}}}}{self.body}{{{{end}}}}"


@dataclass(frozen=True, slots=True)
class Callback(Node):
    """Hands a re-entrant body handler to the final command."""

    pipe: Pipeline
    body: NodeList

    def __str__(self) -> str:
        return f"{{{{callback {self.pipe}}}}}{self.body}{{{{end}}}}"
