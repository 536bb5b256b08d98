"""Parsed template tree as handed over by the parser."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from weft.nodes.base import Node
from weft.nodes.statements import NodeList, Text

#: Longest expression context shown in error messages.
MAX_CONTEXT = 20


@dataclass(frozen=True, slots=True)
class Tree:
    """Body of one named template.

    Attributes:
        name: Template name.
        root: Top-level statement list.
        args: Declared positional argument names (``$a``, ``$b``, ...).
        inherited_vars_len: Number of caller variables visible inside the
            template body. Computed by the parser from where the template
            was defined; the interpreter only slices with it.
        source: Template source text, used for error snippets.
        parse_name: Name of the top-level template being parsed when this
            tree was created, used in error locations.
    """

    name: str
    root: NodeList
    args: Sequence[str] = ()
    inherited_vars_len: int = 0
    source: str | None = None
    parse_name: str | None = None

    def error_context(self, node: Node) -> tuple[str, str]:
        """Return ``(location, context)`` for error messages.

        ``location`` is ``parse_name:line:col``; ``context`` is the node's
        source text, truncated.
        """
        location = f"{self.parse_name or self.name}:{node.lineno}:{node.col_offset}"
        context = str(node)
        if len(context) > MAX_CONTEXT:
            context = context[:MAX_CONTEXT] + "..."
        return location, context


def is_empty_tree(node: Node | None) -> bool:
    """True when ``node`` would render nothing but whitespace.

    Used to keep an existing template body when a later parse produces an
    empty definition under the same name.
    """
    if node is None:
        return True
    if isinstance(node, NodeList):
        return all(is_empty_tree(child) for child in node.nodes)
    if isinstance(node, Text):
        return not node.text.strip()
    return False
