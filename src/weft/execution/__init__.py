"""Render-time machinery: executors, the interpreter and value rules."""

from weft.execution.executor import MAX_EXEC_DEPTH, Executor, StateOptions, WriteErrorPolicy
from weft.execution.local import LocalData
from weft.execution.state import GLOBALS, SELF, State, WalkHandler
from weft.execution.truth import is_true
from weft.execution.types import (
    BLANK,
    AttrGetter,
    IteratorGetter,
    RangeElemState,
    ResultOk,
    StatefulIterator,
    Variable,
    Writer,
    ZeroChecker,
)
from weft.execution.writers import WrapWriter

__all__ = [
    "BLANK",
    "GLOBALS",
    "MAX_EXEC_DEPTH",
    "SELF",
    "AttrGetter",
    "Executor",
    "IteratorGetter",
    "LocalData",
    "RangeElemState",
    "ResultOk",
    "State",
    "StateOptions",
    "StatefulIterator",
    "Variable",
    "WalkHandler",
    "WrapWriter",
    "Writer",
    "WriteErrorPolicy",
    "ZeroChecker",
    "is_true",
]
