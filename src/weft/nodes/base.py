"""Base node class for the weft AST."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all AST nodes.

    All nodes track their source location for error reporting. Nodes are
    immutable, so one parsed tree can be walked by many renders at once.

    ``lineno`` and ``col_offset`` are keyword-only so that subclasses can
    declare required positional fields.
    """

    lineno: int = field(default=0, kw_only=True, compare=False)
    col_offset: int = field(default=0, kw_only=True, compare=False)
