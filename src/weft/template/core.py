"""Templates and the namespaces they share.

A Namespace holds every template parsed together; templates call each
other by name through it. Each Template carries one parsed Tree, its
declared argument names and its own function overrides.

Architecture:
    ```
    Namespace
    ├── _templates: name → Template   # replaced on write
    └── options: Options              # missingkey=...
    Template
    ├── tree: Tree | None             # None until a body is added
    ├── args: ("$a", "$b")
    └── _funcs: FuncValues            # consulted first while walked
    ```

Thread-Safety:
    The name map is copied on every write and swapped in whole, so
    concurrent renders reading a namespace never see a partial update.
    Adding templates or function overrides while renders run is the
    caller's responsibility to serialize.

Parsing is external: ``parse`` takes any callable ``(name, text) ->
{name: Tree}`` and merges its result.

Example:
    >>> t = Template("page")
    >>> t.add_parse_tree("page", tree)
    >>> t.execute_string({"title": "Hi"})
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from weft.exceptions import TemplateNotFoundError
from weft.funcs.values import FuncValues
from weft.nodes import Node, Tree, is_empty_tree
from weft.template.options import MissingKey, Options, apply_option

if TYPE_CHECKING:
    from weft.execution.executor import Executor
    from weft.execution.types import Writer

logger = logging.getLogger(__name__)

Parser = Callable[[str, str], Mapping[str, Tree]]


def _arg_names(args: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    return tuple(arg if arg.startswith("$") else "$" + arg for arg in args)


class Namespace:
    """Templates addressed by name, shared by every member template."""

    __slots__ = ("_templates", "options")

    def __init__(self, options: Options | None = None):
        self._templates: dict[str, Template] = {}
        self.options = options if options is not None else Options()

    def get(self, name: str) -> Template | None:
        return self._templates.get(name)

    def set(self, name: str, template: Template) -> None:
        templates = dict(self._templates)
        templates[name] = template
        self._templates = templates

    def names(self) -> list[str]:
        return sorted(self._templates)

    def values(self) -> list[Template]:
        return [self._templates[name] for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)


class Template:
    """A named template in a namespace.

    Args:
        name: Template name.
        *args: Declared positional argument names; ``$`` is prepended
            when missing.
        namespace: Namespace to join; a new one when omitted.
    """

    __slots__ = ("name", "args", "tree", "path", "_ns", "_funcs")

    def __init__(self, name: str, *args: str, namespace: Namespace | None = None):
        self.name = name
        self.args = _arg_names(args)
        self.tree: Tree | None = None
        self.path: str | None = None
        self._ns = namespace if namespace is not None else Namespace()
        self._funcs = FuncValues()

    @property
    def namespace(self) -> Namespace:
        return self._ns

    def new(self, name: str, *args: str) -> Template:
        """New template in the same namespace, with no body yet."""
        return Template(name, *args, namespace=self._ns)

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def add_parse_tree(self, name: str, tree: Tree) -> Template:
        """Install ``tree`` as the body of template ``name``.

        An existing non-empty body is kept when ``tree`` is empty.

        Returns:
            The template now registered under ``name``.
        """
        tmpl = self if name == self.name else self._ns.get(name)
        if tmpl is None:
            tmpl = Template(name, *tree.args, namespace=self._ns)
        if tmpl.tree is not None and is_empty_tree(tree.root) and not is_empty_tree(tmpl.tree.root):
            logger.debug("keeping body of template %r: new definition is empty", name)
        else:
            tmpl.tree = tree
            if tree.args:
                tmpl.args = _arg_names(tuple(tree.args))
        self._ns.set(name, tmpl)
        return tmpl

    def add_parse_trees(self, trees: Mapping[str, Tree]) -> Template:
        for name, tree in trees.items():
            self.add_parse_tree(name, tree)
        return self

    def parse(self, text: str, parser: Parser) -> Template:
        """Parse ``text`` with ``parser`` and merge the resulting trees."""
        return self.add_parse_trees(parser(self.name, text))

    def lookup(self, name: str) -> Template | None:
        return self._ns.get(name)

    def templates(self) -> list[Template]:
        """Every template of the namespace, sorted by name."""
        return self._ns.values()

    def defined_templates(self) -> str:
        """Suffix listing the templates with a body, for error messages.

        Example:
            >>> t.defined_templates()
            '; defined templates are: "footer", "page"'
        """
        names = [f'"{t.name}"' for t in self._ns.values() if t.tree is not None]
        if not names:
            return ""
        return "; defined templates are: " + ", ".join(names)

    def clone(self) -> Template:
        """Copy of the namespace with this template's counterpart returned.

        Bodies are shared; the name map, options and function overrides
        are copied, so additions to the clone stay out of the original.
        """
        ns = Namespace(self._ns.options.copy())
        templates = {name: t._copy_into(ns) for name, t in self._ns._templates.items()}
        ns._templates = templates
        own = templates.get(self.name)
        return own if own is not None else self._copy_into(ns)

    def _copy_into(self, ns: Namespace) -> Template:
        tmpl = Template.__new__(Template)
        tmpl.name = self.name
        tmpl.args = self.args
        tmpl.tree = self.tree
        tmpl.path = self.path
        tmpl._ns = ns
        tmpl._funcs = self._funcs.copy()
        return tmpl

    # ------------------------------------------------------------------
    # Functions and options
    # ------------------------------------------------------------------

    def funcs(self, funcs: Mapping[str, Any]) -> Template:
        """Add function overrides used while this template is walked.

        Raises:
            FuncError: A name or function is invalid.
        """
        self._funcs.update(funcs)
        return self

    def funcs_values(self, *values: FuncValues) -> Template:
        self._funcs.append_values(*values)
        return self

    def set_funcs(self, funcs: FuncValues) -> Template:
        self._funcs = funcs
        return self

    def get_funcs(self) -> FuncValues:
        return self._funcs

    def option(self, *opts: str) -> Template:
        """Set namespace options such as ``"missingkey=zero"``.

        Raises:
            ValueError: Unknown or malformed option.
        """
        for opt in opts:
            apply_option(self._ns.options, opt)
        return self

    @property
    def missing_key(self) -> MissingKey:
        return self._ns.options.missing_key

    def set_path(self, path: str | None) -> Template:
        """Record the source path shown in template paths of errors."""
        self.path = path
        return self

    @property
    def full_name(self) -> str:
        return f"{self.path}:{self.name}" if self.path else self.name

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def create_executor(self, *funcs: Mapping[str, Any] | FuncValues) -> Executor:
        """Executor over the builtins, this template's functions, then ``funcs``."""
        from weft.builtins import BUILTIN_FUNCS
        from weft.execution.executor import Executor

        executor = Executor(self, funcs=BUILTIN_FUNCS).funcs_values(self._funcs)
        if funcs:
            executor = executor.new_child().set_funcs(FuncValues(*funcs))
        return executor

    def execute(self, writer: Writer, data: Any = None, *funcs: Mapping[str, Any] | FuncValues) -> None:
        """Render into ``writer``.

        Raises:
            ExecError: Rendering failed.
            FatalError: A function aborted the render.
        """
        self.create_executor().execute(writer, data, *funcs)

    def execute_string(self, data: Any = None, *funcs: Mapping[str, Any] | FuncValues) -> str:
        buffer = io.StringIO()
        self.execute(buffer, data, *funcs)
        return buffer.getvalue()

    def execute_template(
        self,
        writer: Writer,
        name: str,
        data: Any = None,
        *funcs: Mapping[str, Any] | FuncValues,
    ) -> None:
        """Render the namespace template ``name`` into ``writer``.

        Raises:
            TemplateNotFoundError: No template with that name.
        """
        tmpl = self.lookup(name)
        if tmpl is None:
            raise TemplateNotFoundError(name, [t.name for t in self._ns.values() if t.tree is not None])
        tmpl.execute(writer, data, *funcs)

    def error_context(self, node: Node) -> tuple[str, str]:
        """``(location, context)`` of ``node`` within this template."""
        if self.tree is None:
            return self.name, str(node)
        return self.tree.error_context(node)

    def __repr__(self) -> str:
        return f"<Template {self.name!r} args={list(self.args)}>"
