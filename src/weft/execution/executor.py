"""Executors: a template bound to functions and options.

An executor produces one State per ``execute`` call. Executors form a
tree through ``parent``; function lookup walks from the executor out
through its parents, so a child sees everything its parent sees and can
shadow it. Methods that change functions or policies return a new child
and leave the receiver untouched, so one base executor can serve
concurrent renders.

Example:
    >>> base = template.create_executor()
    >>> out = base.funcs({"shout": str.upper}).execute_string({"name": "x"})

Error boundary:
    ``execute`` is the capture boundary of a render. Host exceptions are
    wrapped in ExecError with the template path, ExitRender ends the
    render without error and writer failures are re-raised as the
    writer's own exception. Executors created for nested renders
    (``tpl_yield``) do not capture; the calling frame wraps their errors.
"""

from __future__ import annotations

import io
import logging
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Final

from weft.exceptions import (
    ErrorCode,
    ExecError,
    ExitRender,
    FatalError,
    StateLocation,
    TemplateError,
    TemplatePath,
    WriteError,
    is_fatal,
)
from weft.execution.local import LocalData
from weft.execution.state import State
from weft.execution.types import Variable, Writer
from weft.funcs.values import DataFuncs, FuncValue, FuncValues

if TYPE_CHECKING:
    from weft.template.core import Template

logger = logging.getLogger(__name__)

#: Default limit on nested template calls. Each call costs several Python
#: frames, so the limit stays well below the interpreter recursion limit.
MAX_EXEC_DEPTH: Final = 50


class WriteErrorPolicy(IntEnum):
    """Whether render errors are also written to the output."""

    INHERIT = 0
    FORCE = 1
    SUPPRESS = 2


@dataclass(slots=True)
class StateOptions:
    """Options applied to every State an executor creates.

    Attributes:
        require_fields: Treat optional fields (``.Name?``) as required.
        on_no_field: Hook ``(receiver, name) -> (value, ok)`` consulted
            when a field is absent; ``ok`` False falls through to the
            error.
        global_vars: Variables visible below every frame's own stack.
        max_depth: Maximum nesting of template calls.
    """

    require_fields: bool = False
    on_no_field: Callable[[Any, str], tuple[Any, bool]] | None = None
    global_vars: tuple[Variable, ...] = ()
    max_depth: int = MAX_EXEC_DEPTH


class Executor:
    """Runs one template with a function scope chain and options."""

    __slots__ = (
        "template",
        "parent",
        "options",
        "local",
        "context",
        "super",
        "depth",
        "_funcs",
        "_write_error",
        "_no_capture",
        "_raw",
    )

    def __init__(
        self,
        template: Template | None = None,
        *,
        funcs: FuncValues | None = None,
        options: StateOptions | None = None,
        parent: Executor | None = None,
        local: LocalData | None = None,
        context: Any = None,
    ):
        self.template = template
        self.parent = parent
        self.options = options if options is not None else StateOptions()
        self.local = local
        self.context = context
        self.super: State | None = None
        self.depth = 0
        self._funcs = funcs if funcs is not None else FuncValues()
        self._write_error = WriteErrorPolicy.INHERIT
        self._no_capture = False
        self._raw: Callable[[Writer], object] | None = None

    @classmethod
    def of_raw_data(cls, raw: Callable[[Writer], object]) -> Executor:
        """Executor whose render is ``raw(writer)``; no tree is walked."""
        executor = cls()
        executor._raw = raw
        return executor

    @property
    def scope(self) -> FuncValues:
        """This executor's own function scope."""
        return self._funcs

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def new_child(self) -> Executor:
        """Child sharing template, options, run context and error path."""
        child = Executor(
            self.template,
            options=replace(self.options),
            parent=self,
            local=self.local,
            context=self.context,
        )
        child.super = self.super
        child.depth = self.depth
        child._no_capture = self._no_capture
        return child

    def with_template(self, template: Template) -> Executor:
        child = self.new_child()
        child.template = template
        return child

    def write_error(self) -> Executor:
        """Child that also writes render errors to the output."""
        child = self.new_child()
        child._write_error = WriteErrorPolicy.FORCE
        return child

    def not_write_error(self) -> Executor:
        child = self.new_child()
        child._write_error = WriteErrorPolicy.SUPPRESS
        return child

    def is_write_error(self) -> bool:
        """First non-inherit policy on the way to the root; off by default."""
        executor: Executor | None = self
        while executor is not None:
            if executor._write_error is not WriteErrorPolicy.INHERIT:
                return executor._write_error is WriteErrorPolicy.FORCE
            executor = executor.parent
        return False

    def funcs(self, *maps: Mapping[str, Any]) -> Executor:
        """Child whose innermost scope holds ``maps``.

        Raises:
            FuncError: A name or function is invalid.
        """
        if not any(maps):
            return self
        child = self.new_child()
        child._funcs = FuncValues(*maps)
        logger.debug("child executor with functions %s", child._funcs.names())
        return child

    def funcs_values(self, *values: FuncValues) -> Executor:
        """Child whose innermost scope holds the layers of ``values``."""
        present = [value for value in values if value]
        if not present:
            return self
        child = self.new_child()
        child._funcs = FuncValues(*present)
        return child

    def set_funcs(self, funcs: FuncValues) -> Executor:
        """Replace this executor's own scope (by reference) and return self."""
        self._funcs = funcs
        return self

    def append_funcs(self, *maps: Mapping[str, Any]) -> Executor:
        """Add outer layers to this executor's own scope and return self."""
        if self._funcs.frozen:
            self._funcs = FuncValues(self._funcs)
        self._funcs.append(*maps)
        return self

    def set_super(self, state: State) -> Executor:
        """Record the frame this executor renders for, for error paths."""
        self.super = state
        return self

    def no_capture_error(self) -> Executor:
        """Let render errors propagate unwrapped to the caller."""
        self._no_capture = True
        return self

    def nested(self, template: Template, caller: State) -> Executor:
        """Child rendering ``template`` from inside ``caller``.

        The nested render sees the caller's variables as globals, shares
        its local storage and host context, and counts one level deeper.
        """
        child = self.with_template(template)
        child.options = replace(self.options, global_vars=caller.visible_vars())
        child.local = caller.local
        child.context = caller.context
        child.depth = caller.depth + 1
        return child.set_super(caller).no_capture_error()

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _chain(self) -> list[FuncValues]:
        scopes = []
        executor: Executor | None = self
        while executor is not None:
            scopes.append(executor._funcs)
            executor = executor.parent
        return scopes

    def find_func(self, name: str) -> FuncValue | None:
        """Look ``name`` up from this executor outwards."""
        executor: Executor | None = self
        while executor is not None:
            value = executor._funcs.get(name)
            if value is not None:
                return value
            executor = executor.parent
        return None

    def filter_funcs(self, *names: str) -> FuncValues:
        """Visible functions, limited to ``names`` when given.

        Raises:
            FuncError: A requested name is not defined.
        """
        return FuncValues.combine(*self._chain()).filter(*names)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def full_path(self) -> TemplatePath:
        head = self.super.trail() if self.super is not None else ()
        if self.template is None:
            return TemplatePath(head)
        return TemplatePath((*head, StateLocation(self.template.name, self.template.path)))

    def execute(self, writer: Writer, data: Any = None, *funcs: Mapping[str, Any] | FuncValues) -> None:
        """Render into ``writer``.

        Args:
            writer: Output target.
            data: Value of dot. A DataFuncs is unwrapped, its functions
                installed in a child scope.
            *funcs: Function maps or scopes for this call only.

        Raises:
            ExecError: Rendering failed.
            FatalError: A function aborted the render.
            FuncError: ``funcs`` holds an invalid function.
        """
        executor = self
        try:
            if funcs:
                executor = self.new_child()
                executor._funcs = FuncValues(*funcs)
            if isinstance(data, DataFuncs):
                executor = executor.funcs_values(data.funcs)
                data = data.data
            executor._execute(writer, data)
        except TemplateError as err:
            if not self._no_capture and executor.is_write_error():
                writer.write(str(err))
            raise

    def _execute(self, writer: Writer, data: Any) -> None:
        if self._raw is not None:
            self._raw(writer)
            return
        tmpl = self.template
        if tmpl is None or tmpl.tree is None:
            name = tmpl.name if tmpl is not None else ""
            raise ExecError(
                f'"{name}" is an incomplete or empty template',
                template_name=name,
                path=self.full_path(),
                code=ErrorCode.INCOMPLETE_TEMPLATE,
            )

        state = State(self, tmpl, writer, data)
        logger.debug("executing template %r at depth %d", tmpl.name, self.depth)
        if self._no_capture:
            state.walk(data, tmpl.tree.root)
            return
        try:
            state.walk(data, tmpl.tree.root)
        except ExitRender:
            logger.debug("render of %r stopped early", tmpl.name)
        except WriteError as err:
            raise err.err from None
        except (ExecError, FatalError):
            raise
        except Exception as err:
            if is_fatal(err):
                raise
            raise ExecError(
                f"{type(err).__name__}: {err}",
                template_name=tmpl.name,
                node=state.node,
                path=state.full_path(),
                trace=traceback.format_exc(),
            ) from err

    def execute_string(self, data: Any = None, *funcs: Mapping[str, Any] | FuncValues) -> str:
        """Render and return the output."""
        buffer = io.StringIO()
        self.execute(buffer, data, *funcs)
        return buffer.getvalue()

    def __repr__(self) -> str:
        name = self.template.name if self.template is not None else None
        return f"<Executor template={name!r} depth={self.depth}>"
