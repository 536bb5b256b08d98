"""ANSI styling for execution error output.

Colors are only emitted when stdout is a TTY, unless overridden by the
``FORCE_COLOR`` / ``NO_COLOR`` environment variables.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_CODES = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "magenta": "\033[35m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_blue": "\033[94m",
}

Style = Literal[
    "reset", "bold", "dim", "red", "yellow", "cyan", "magenta",
    "bright_red", "bright_green", "bright_blue",
]

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _detect_colors() -> bool:
    """Decide once whether to emit ANSI codes.

    ``FORCE_COLOR`` wins over ``NO_COLOR`` (https://no-color.org/);
    otherwise colors follow ``sys.stdout.isatty()``.
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _detect_colors()


def supports_color() -> bool:
    """Return True when styled output is enabled."""
    return _USE_COLORS


def style(text: str, *styles: Style) -> str:
    """Wrap ``text`` in the given ANSI styles.

    Example:
        >>> style("failed", "red", "bold")  # with colors enabled
        '\\033[31m\\033[1mfailed\\033[0m'
    """
    if not _USE_COLORS or not styles:
        return text
    prefix = "".join(_CODES[name] for name in styles if name in _CODES)
    if not prefix:
        return text
    return f"{prefix}{text}{_CODES['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences from ``text``."""
    return _ANSI_ESCAPE.sub("", text)


def error_code(text: str) -> str:
    return style(text, "bright_red", "bold")


def location(text: str) -> str:
    """Source location such as ``page:3:14``."""
    return style(text, "cyan")


def template_name(text: str) -> str:
    """One segment of a template call path."""
    return style(text, "magenta")


def expression(text: str) -> str:
    return style(text, "yellow")


def hint(text: str) -> str:
    return style(text, "bright_green")


def dim_text(text: str) -> str:
    return style(text, "dim")


def docs_url(text: str) -> str:
    return style(text, "bright_blue")


def format_error_header(code: str | None, message: str) -> str:
    """Join an optional error code and a message into a header line."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, *, is_error: bool = False) -> str:
    """Format one numbered source line, marking the failing one with ``>``.

    Args:
        lineno: 1-based line number.
        content: Raw line text.
        is_error: Whether this is the line the error points at.

    Returns:
        A line such as ``'> 12 | {{.Name}}'``.
    """
    marker = ">" if is_error else " "
    number = style(f"{marker}{lineno:>3}", "yellow")
    body = style(content, "bright_red") if is_error else dim_text(content)
    return f"{number} | {body}"
