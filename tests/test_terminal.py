"""Tests for ANSI styling of error output."""

from __future__ import annotations

import pytest

from weft.utils import terminal


class _Stream:
    def __init__(self, tty: bool):
        self._tty = tty

    def isatty(self) -> bool:
        return self._tty


@pytest.fixture
def colors(monkeypatch):
    monkeypatch.setattr(terminal, "_USE_COLORS", True)


class TestColorDetection:
    """Environment overrides and TTY detection."""

    def test_no_color_disables(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setenv("NO_COLOR", "1")
        assert terminal._detect_colors() is False

    def test_force_color_wins(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")
        monkeypatch.setenv("NO_COLOR", "1")
        assert terminal._detect_colors() is True

    @pytest.mark.parametrize("tty", [True, False])
    def test_follows_tty(self, monkeypatch, tty):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setattr(terminal.sys, "stdout", _Stream(tty))
        assert terminal._detect_colors() is tty

    def test_supports_color_reflects_setting(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        assert not terminal.supports_color()
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        assert terminal.supports_color()


class TestStyle:
    def test_plain_when_disabled(self):
        assert terminal.style("text", "red", "bold") == "text"

    def test_no_styles(self, colors):
        assert terminal.style("text") == "text"

    def test_unknown_style_ignored(self, colors):
        assert terminal.style("text", "unknown") == "text"

    def test_multiple_styles(self, colors):
        assert terminal.style("Error", "red", "bold", "dim") == "\033[31m\033[1m\033[2mError\033[0m"

    def test_strip_colors(self, colors):
        styled = terminal.style("page:1:2", "cyan")
        assert styled != "page:1:2"
        assert terminal.strip_colors(styled) == "page:1:2"


class TestSemanticHelpers:
    @pytest.mark.parametrize(
        ("helper", "code"),
        [
            (terminal.error_code, "\033[91m"),
            (terminal.location, "\033[36m"),
            (terminal.template_name, "\033[35m"),
            (terminal.expression, "\033[33m"),
            (terminal.hint, "\033[92m"),
            (terminal.dim_text, "\033[2m"),
            (terminal.docs_url, "\033[94m"),
        ],
    )
    def test_helper_codes(self, colors, helper, code):
        result = helper("value")
        assert result.startswith(code)
        assert result.endswith("value\033[0m")

    def test_error_code_is_bold(self, colors):
        assert "\033[1m" in terminal.error_code("W-RUN-001")

    def test_helpers_plain_without_colors(self):
        assert terminal.error_code("W-RUN-001") == "W-RUN-001"
        assert terminal.location("page:1:2") == "page:1:2"
        assert terminal.hint("Hint") == "Hint"


class TestErrorFormatting:
    def test_header_with_code(self):
        assert terminal.format_error_header("W-RUN-002", "undefined variable") == "W-RUN-002: undefined variable"

    def test_header_without_code(self, colors):
        assert terminal.format_error_header(None, "undefined variable") == "undefined variable"

    def test_header_code_styled(self, colors):
        result = terminal.format_error_header("W-RUN-002", "oops")
        assert terminal.strip_colors(result) == "W-RUN-002: oops"
        assert "\033[91m" in result

    def test_source_line(self):
        assert terminal.format_source_line(2, "{{ $x }}") == "   2 | {{ $x }}"
        assert terminal.format_source_line(12, "{{ $x }}", is_error=True) == "> 12 | {{ $x }}"

    def test_error_line_highlighted(self, colors):
        result = terminal.format_source_line(3, "{{ $x }}", is_error=True)
        assert "\033[91m{{ $x }}" in result
        assert terminal.strip_colors(result) == ">  3 | {{ $x }}"

    def test_plain_line_dimmed(self, colors):
        assert "\033[2m{{ $x }}" in terminal.format_source_line(3, "{{ $x }}")
