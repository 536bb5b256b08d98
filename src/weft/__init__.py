"""Weft: tree-walking execution engine for pre-parsed text templates.

Weft renders template trees produced by an external parser. Templates
live in a shared namespace and call each other by name; data flows
through ``.Field`` lookups, pipelines and ``$variables``; host
functions are registered in layered scopes.

Quickstart:
    >>> from weft import Template
    >>> from weft.nodes import Tree, NodeList, Text, Action, Pipeline, Command, Field
    >>> root = NodeList((Text("Hello, "), Action(Pipeline((Command((Field(("Name",)),)),)))))
    >>> t = Template("hello").add_parse_tree("hello", Tree("hello", root))
    >>> t.execute_string({"Name": "World"})
    'Hello, World'

Architecture:
Parser (external) → Tree → Template/Namespace → Executor → State → Writer

Pieces:
1. **Template**: namespace of named trees plus per-template functions
2. **Executor**: function scopes, options and error policy for a render
3. **State**: the interpreter; walks nodes, evaluates pipelines
4. **FuncValues**: layered function registry with context-bound factories
5. **expr**: arithmetic for ``BinOp`` nodes and compound assignment

Errors:
Every execution failure is an ``ExecError`` carrying the node location,
the chain of template calls and a source snippet when the tree has
source. Functions raise ``FatalError`` (via ``State.fatal``) to abort
the whole render without re-wrapping.

"""

from weft.builtins import BUILTIN_FUNCS
from weft.exceptions import (
    ErrorCode,
    ExecError,
    ExprError,
    FatalError,
    FuncError,
    SourceSnippet,
    StateLocation,
    TemplateError,
    TemplateNotFoundError,
    TemplatePath,
    build_source_snippet,
    is_fatal,
)
from weft.execution import (
    GLOBALS,
    MAX_EXEC_DEPTH,
    SELF,
    AttrGetter,
    Executor,
    IteratorGetter,
    LocalData,
    RangeElemState,
    ResultOk,
    State,
    StatefulIterator,
    StateOptions,
    WalkHandler,
    WriteErrorPolicy,
)
from weft.funcs import (
    ContextBoundFunc,
    DataFuncs,
    DirectFunc,
    FuncContext,
    FuncValue,
    FuncValues,
    context_bound,
)
from weft.template import MissingKey, Namespace, Options, Template

__version__ = "0.1.0"

__all__ = [
    "BUILTIN_FUNCS",
    "GLOBALS",
    "MAX_EXEC_DEPTH",
    "SELF",
    "AttrGetter",
    "ContextBoundFunc",
    "DataFuncs",
    "DirectFunc",
    "ErrorCode",
    "ExecError",
    "Executor",
    "ExprError",
    "FatalError",
    "FuncContext",
    "FuncError",
    "FuncValue",
    "FuncValues",
    "IteratorGetter",
    "LocalData",
    "MissingKey",
    "Namespace",
    "Options",
    "RangeElemState",
    "ResultOk",
    "SourceSnippet",
    "State",
    "StateLocation",
    "StateOptions",
    "StatefulIterator",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplatePath",
    "WalkHandler",
    "WriteErrorPolicy",
    "__version__",
    "build_source_snippet",
    "context_bound",
    "is_fatal",
]
