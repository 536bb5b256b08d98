"""Writers used by the wrap and arg nodes."""

from __future__ import annotations

from collections.abc import Callable

from weft.execution.types import Writer


class WrapWriter:
    """Holds output back until something other than whitespace is written.

    The first non-whitespace write calls ``begin(target)`` once, then
    flushes any held whitespace (unless ``strip`` is set, in which case
    leading whitespace is dropped) and passes everything through to
    ``target`` from then on.

    Example:
        >>> out = io.StringIO()
        >>> w = WrapWriter(out, lambda target: target.write("<ul>"))
        >>> _ = w.write("  ")
        >>> w.not_empty
        False
        >>> _ = w.write("<li>")
        >>> out.getvalue()
        '<ul>  <li>'
    """

    __slots__ = ("_target", "_begin", "_strip", "_pending", "not_empty")

    def __init__(self, target: Writer, begin: Callable[[Writer], None], *, strip: bool = False):
        self._target = target
        self._begin = begin
        self._strip = strip
        self._pending: list[str] = []
        self.not_empty = False

    @property
    def target(self) -> Writer:
        return self._target

    def write(self, s: str) -> int:
        if self.not_empty:
            self._target.write(s)
            return len(s)
        text = s.lstrip()
        if not text:
            if not self._strip:
                self._pending.append(s)
            return len(s)

        self.not_empty = True
        self._begin(self._target)
        if self._strip:
            self._target.write(text)
        else:
            self._target.write("".join(self._pending) + s)
        self._pending.clear()
        return len(s)
