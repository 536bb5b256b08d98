"""Per-render context handed to context-bound function factories."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from weft.execution.executor import Executor
    from weft.execution.local import LocalData
    from weft.execution.state import State
    from weft.funcs.values import FuncValues


class FuncContext:
    """What a context-bound factory can see of the current render.

    One FuncContext exists per render run. It is created lazily the first
    time a context-bound function is resolved.

    Example:
        >>> def request_id(ctx: FuncContext):
        ...     rid = ctx.context.request_id
        ...     return lambda: rid
        >>> template.funcs({"request_id": request_id})
    """

    __slots__ = ("_state",)

    def __init__(self, state: State):
        self._state = state

    @property
    def state(self) -> State:
        """Root interpreter frame of the run."""
        return self._state

    @property
    def executor(self) -> Executor:
        return self._state.executor

    @property
    def funcs(self) -> FuncValues:
        """Functions registered on the executor chain."""
        return self._state.executor.filter_funcs()

    @property
    def local(self) -> LocalData:
        return self._state.local

    @property
    def context(self) -> Any:
        """Host-supplied context object (deadline, request, ...), or None."""
        return self._state.context

    @property
    def data(self) -> Any:
        return self._state.data

    def get(self, name: str) -> Callable[..., Any] | None:
        """Resolve a function visible to the run, or None."""
        return self._state.lookup_func(name)

    def __repr__(self) -> str:
        return f"<FuncContext template={self._state.template.name!r}>"
