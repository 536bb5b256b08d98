"""Exceptions for the weft execution engine.

Exception Hierarchy:
TemplateError (base)
├── ExecError                 # Recoverable execution error at a node
├── FatalError                # Aborts the whole render tree, never re-wrapped
├── FuncError                 # Function registration/validation failure
├── ExprError                 # Binary operator evaluation failure
│   └── BadOperatorError      # Operator not defined for the operand types
└── TemplateNotFoundError     # Named template missing from the namespace

Internal signals (not template errors):
WriteError                    # The destination writer failed
ExitRender (BaseException)    # ``exit`` builtin, swallowed at the render boundary

Error Messages:
Execution errors carry the location inside the innermost template, the
path of template calls that led there, and the node that failed:

    ```
    Execution Error: wrong number of args for add: want 2 got 1
      Location: page:3:7
      Template path: "layout" at layout:1:2 » "page"
      Expression: <add 1>
    ```

"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from weft.utils import terminal

if TYPE_CHECKING:
    from weft.nodes import Node

_DOCS_BASE = "https://weft.readthedocs.io/en/latest/errors"


class ErrorCode(Enum):
    """Searchable error codes.

    Format: W-{CATEGORY}-{NUMBER}
    Categories: RUN (execution), FUN (function registry),
    EXP (expression evaluator), TPL (template namespace)
    """

    # Execution errors (W-RUN-xxx)
    EXEC_ERROR = "W-RUN-001"
    UNDEFINED_VARIABLE = "W-RUN-002"
    UNDEFINED_FUNCTION = "W-RUN-003"
    UNDEFINED_TEMPLATE = "W-RUN-004"
    MISSING_KEY = "W-RUN-005"
    WRONG_ARGS = "W-RUN-006"
    BAD_RANGE = "W-RUN-007"
    MAX_DEPTH = "W-RUN-008"
    CALL_FAILED = "W-RUN-009"
    FATAL = "W-RUN-010"

    # Function registry errors (W-FUN-xxx)
    INVALID_NAME = "W-FUN-001"
    NOT_CALLABLE = "W-FUN-002"
    BAD_RETURN = "W-FUN-003"
    UNKNOWN_FUNCTION = "W-FUN-004"

    # Evaluator errors (W-EXP-xxx)
    BAD_OPERATOR = "W-EXP-001"
    DIVISION_BY_ZERO = "W-EXP-002"

    # Namespace errors (W-TPL-xxx)
    TEMPLATE_NOT_FOUND = "W-TPL-001"
    INCOMPLETE_TEMPLATE = "W-TPL-002"

    @property
    def docs_url(self) -> str:
        """Documentation URL for this error code."""
        return f"{_DOCS_BASE}/#{self.value.lower()}"

    @property
    def category(self) -> str:
        """Error category (e.g., 'execution', 'functions')."""
        prefix = self.value.split("-")[1]
        return {
            "RUN": "execution",
            "FUN": "functions",
            "EXP": "expression",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Template paths
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StateLocation:
    """One frame of a template call path.

    Attributes:
        name: Template name.
        path: Source path of the template, when the host set one.
        location: ``name:line:col`` of the call site inside this frame.
        context: Source text of the node at ``location``.
    """

    name: str
    path: str | None = None
    location: str | None = None
    context: str | None = None

    def __str__(self) -> str:
        text = f'"{self.name}"'
        if self.path and self.path != self.name:
            text += f" ({self.path})"
        if self.location:
            text += f" at {self.location}"
        return text


@dataclass(frozen=True, slots=True)
class TemplatePath:
    """Outermost-to-innermost chain of template frames."""

    locations: tuple[StateLocation, ...] = ()

    def __str__(self) -> str:
        return " » ".join(str(loc) for loc in self.locations)

    def __len__(self) -> int:
        return len(self.locations)

    @property
    def innermost(self) -> StateLocation | None:
        return self.locations[-1] if self.locations else None

    def format(self) -> str:
        return " » ".join(terminal.template_name(str(loc)) for loc in self.locations)


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines surrounding an error.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for the caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text('   |')} {terminal.style(caret, 'bright_red')}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet | None:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional column offset for the caret pointer.

    Returns:
        The snippet, or None when ``error_line`` is outside the source.
    """
    all_lines = source.splitlines()
    if not 0 < error_line <= len(all_lines):
        return None
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all weft template errors.

    Example:
        >>> try:
        ...     template.execute_string(data)
        ... except TemplateError as e:
        ...     log.error("render failed: %s", e)

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a short diagnostic without traceback noise."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = terminal.format_error_header(self.code.value, header)
        return header


class ExecError(TemplateError):
    """Recoverable error raised while walking a template.

    Attributes:
        message: Error description.
        template_name: Name of the template being walked.
        node: The node that failed, if known.
        location: ``name:line:col`` of the failing node.
        context: Source text of the failing node.
        path: Chain of template calls that led to the failure.
        source_snippet: Template lines around the failure, when the
            tree carries its source.
        trace: Python stack captured when the error was raised.
    """

    code: ErrorCode | None = ErrorCode.EXEC_ERROR

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        node: Node | None = None,
        location: str | None = None,
        context: str | None = None,
        path: TemplatePath | None = None,
        source_snippet: SourceSnippet | None = None,
        trace: str | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.node = node
        self.location = location
        self.context = context
        self.path = path or TemplatePath()
        self.source_snippet = source_snippet
        self.trace = trace
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def cause(self) -> BaseException | None:
        """The underlying error, if this one wraps another."""
        return self.__cause__

    @property
    def root_cause(self) -> BaseException:
        """Innermost error of the cause chain."""
        err: BaseException = self
        while err.__cause__ is not None:
            err = err.__cause__
        return err

    def _format_message(self) -> str:
        parts = [f"Execution Error: {self.message}"]
        if self.location:
            parts.append(f"  Location: {terminal.location(self.location)}")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.path:
            parts.append(f"  Template path: {self.path.format()}")
        if self.context:
            parts.append(f"  Expression: {terminal.expression(f'<{self.context}>')}")
        if self.code:
            parts.append(f"  Docs: {terminal.docs_url(self.code.docs_url)}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        """One header line, location, path and expression."""
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message)
        ]
        if self.location:
            parts.append(f"  Location: {terminal.location(self.location)}")
        if self.path:
            parts.append(f"  Template path: {self.path.format()}")
        if self.context:
            parts.append(f"  Expression: {terminal.expression(f'<{self.context}>')}")
        return "\n".join(parts)


class FatalError(TemplateError):
    """Error that must abort the entire render tree.

    Recovery boundaries (function calls, nested executions, the top-level
    render call) re-raise it untouched instead of wrapping it in an
    ExecError.

    Example:
        >>> def checked(state: State, path: str) -> str:
        ...     if not os.path.exists(path):
        ...         state.fatal(FileNotFoundError(path))
        ...     return path
    """

    code: ErrorCode | None = ErrorCode.FATAL

    def __init__(self, cause: BaseException | str, *, trace: str | None = None):
        self.message = str(cause)
        self.trace = trace
        super().__init__(self.message)
        if isinstance(cause, BaseException):
            self.__cause__ = cause


def is_fatal(err: BaseException | None) -> bool:
    """Return True if ``err`` or anything in its cause chain is fatal."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, FatalError):
            return True
        seen.add(id(err))
        err = err.__cause__
    return False


class FuncError(TemplateError):
    """A function could not be registered or looked up."""

    code: ErrorCode | None = ErrorCode.NOT_CALLABLE

    def __init__(self, message: str, *, name: str | None = None, code: ErrorCode | None = None):
        self.message = message
        self.name = name
        if code is not None:
            self.code = code
        super().__init__(message)


class ExprError(TemplateError):
    """A binary operator could not be evaluated."""

    code: ErrorCode | None = ErrorCode.DIVISION_BY_ZERO

    def __init__(self, message: str, op: str, left: Any, right: Any):
        self.message = message
        self.op = op
        self.left = left
        self.right = right
        super().__init__(message)


class BadOperatorError(ExprError):
    """Operator not defined for the given operand types.

    Example:
        >>> evaluate("-", "a", 1)
        BadOperatorError: bad operator "-" of types str and int
    """

    code: ErrorCode | None = ErrorCode.BAD_OPERATOR

    def __init__(self, op: str, left: Any, right: Any):
        super().__init__(
            f'bad operator "{op}" of types {type(left).__name__} and {type(right).__name__}',
            op,
            left,
            right,
        )


class TemplateNotFoundError(TemplateError):
    """Named template is not defined in the namespace."""

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, name: str, defined: Sequence[str] = ()):
        self.name = name
        self.defined = tuple(defined)
        msg = f'no template "{name}" associated with this namespace'
        if self.defined:
            msg += "; defined templates are: " + ", ".join(f'"{n}"' for n in self.defined)
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Internal signals
# ---------------------------------------------------------------------------


class WriteError(Exception):
    """The output writer failed.

    Raised internally so writer failures are never reported as template
    errors; the top-level render call re-raises ``err`` itself.
    """

    def __init__(self, err: BaseException):
        self.err = err
        super().__init__(str(err))


class ExitRender(BaseException):
    """Stop rendering now, keeping whatever output was already written.

    Derives from BaseException so ordinary ``except Exception`` handlers
    in host functions never swallow it.
    """
