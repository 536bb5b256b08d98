"""Template function registry.

Public API:
    FuncValue, DirectFunc, ContextBoundFunc: registered function variants
    FuncValues: layered function scope
    FuncContext: per-render context for context-bound factories
    DataFuncs: render data bundled with its functions
    context_bound: decorator marking a factory
    check_name, check_func: registration validation
    CallSpec, inspect_callable: call-signature introspection

"""

from weft.funcs.context import FuncContext
from weft.funcs.signature import CallSpec, ResultKind, inspect_callable
from weft.funcs.values import (
    ContextBoundFunc,
    DataFuncs,
    DirectFunc,
    FuncMap,
    FuncValue,
    FuncValues,
    check_func,
    check_name,
    context_bound,
    func_value,
)

__all__ = [
    "CallSpec",
    "ContextBoundFunc",
    "DataFuncs",
    "DirectFunc",
    "FuncContext",
    "FuncMap",
    "FuncValue",
    "FuncValues",
    "ResultKind",
    "check_func",
    "check_name",
    "context_bound",
    "func_value",
    "inspect_callable",
]
