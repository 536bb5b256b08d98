"""Functions bound to the running State.

These are looked up before any registered function, so every template
can use them without registration:

    ================  ==========================================
    name              does
    ================  ==========================================
    set / get         write and read the run's LocalData
    template_exec     render a named template, return the text
    tpl_render        alias of template_exec
    tpl_yield         render a named template into the writer
    trim              strip whitespace (or one character)
    join              print a sequence with separators
    _tpl_state        the current State
    _tpl_funcs        a filtered view of the visible functions
    _tpl_data_funcs   bundle data with functions (DataFuncs)
    ================  ==========================================

``tpl_yield`` differs from ``{{template}}``: the called template sees
every variable of the caller and every function of its executor chain.
"""

from __future__ import annotations

import io
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from weft.exceptions import ErrorCode, FuncError, WriteError, is_fatal
from weft.execution.truth import to_text
from weft.funcs.values import DataFuncs, FuncValues

if TYPE_CHECKING:
    from weft.execution.state import State

STATE_FUNCS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "set": "_local_set",
        "get": "_local_get",
        "template_exec": "template_exec",
        "tpl_render": "template_exec",
        "tpl_yield": "template_yield",
        "trim": "trim",
        "join": "join",
        "_tpl_state": "_self_state",
        "_tpl_funcs": "get_funcs",
        "_tpl_data_funcs": "data_funcs",
    }
)


class StateFuncsMixin:
    """State-bound template functions. Mixed into State."""

    __slots__ = ()

    def _local_set(self, *pairs: Any) -> str:
        return self.local.put(*pairs)

    def _local_get(self, *keys: str) -> Any:
        return self.local.lookup(*keys)

    def _self_state(self) -> State:
        return self

    def template_exec(self, name: str, data: Any = None) -> str:
        """Render template ``name`` and return its output."""
        buffer = io.StringIO()
        with self.with_writer(buffer):
            self.template_yield(name, data)
        return buffer.getvalue()

    def template_yield(self, name: str, data: Any = None) -> None:
        """Render template ``name`` into the current writer.

        The nested render runs in a child executor of this frame's
        executor, with this frame's variables as its globals. Its errors
        are re-raised here with this frame's location, keeping the nested
        error as the cause.
        """
        tmpl = self.template.lookup(name)
        if tmpl is None or tmpl.tree is None:
            self.error(f'template "{name}" not defined', code=ErrorCode.UNDEFINED_TEMPLATE)
        self._check_depth()
        executor = self.executor.nested(tmpl, self)
        try:
            executor.execute(self.writer, data)
        except WriteError:
            raise
        except Exception as err:
            if is_fatal(err):
                raise
            message = getattr(err, "message", str(err))
            self.error(f'error executing template "{self.template.name}/{name}": {message}', cause=err)

    def trim(self, value: Any, sep: str | None = None) -> Any:
        """Strip whitespace, or the first character of ``sep``, from both ends.

        Lists and tuples are trimmed element by element.
        """
        if isinstance(value, str):
            return value.strip(sep[0]) if sep else value.strip()
        if isinstance(value, (list, tuple)):
            return [self.trim(item, sep) for item in value]
        self.error(f"trim: can't trim value of type {type(value).__name__}")

    def join(self, value: Any, *options: str) -> None:
        """Print the items of ``value`` separated by ``sep``.

        Options are ``"sep:X"``, ``"and:X"`` (separator before the last
        item; empty means ``" and "``) or a bare separator.

        Example:
            >>> # {{join .Names "and:"}}  ->  a, b and c
        """
        sep = ", "
        last_sep = ""
        for option in options:
            key, colon, rest = option.partition(":")
            if not colon:
                sep = option
            elif key.strip() == "sep":
                sep = rest
            elif key.strip() == "and":
                last_sep = rest or " and "
            else:
                self.error(f'invalid join option "{key.strip()}"')

        items = [to_text(item) for item in value] if value is not None else []
        if not items:
            return
        if last_sep and len(items) > 1:
            text = sep.join(items[:-1]) + last_sep + items[-1]
        else:
            text = sep.join(items)
        self._write(text)

    def get_funcs(self, *names: str) -> FuncValues:
        """Functions of the executor chain, limited to ``names`` when given."""
        try:
            return self.executor.filter_funcs(*names)
        except FuncError as err:
            self.error(err.message, cause=err, code=err.code)

    def data_funcs(self, data: Any, *names_or_funcs: Any) -> DataFuncs:
        """Bundle ``data`` with functions for a nested render.

        A name followed by a callable registers that callable under the
        name; a name on its own copies the function currently visible
        under it.

        Example:
            >>> # {{tpl_yield "row" (_tpl_data_funcs . "fmt" "upper" $upper)}}
        """
        funcs = FuncValues()
        items = list(names_or_funcs)
        i = 0
        while i < len(items):
            name = items[i]
            if not isinstance(name, str):
                self.error(f"data funcs: invalid function name at {i}: {name!r}")
            following = items[i + 1] if i + 1 < len(items) else None
            if following is not None and not isinstance(following, str):
                try:
                    funcs.set(name, following)
                except FuncError as err:
                    self.error(f"data funcs: invalid function {name!r}: {err.message}", cause=err, code=err.code)
                i += 2
            else:
                funcs.set_value(name, self._func_value_of(name))
                i += 1
        return DataFuncs(data, funcs)
