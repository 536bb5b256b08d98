"""Pytest configuration and fixtures for weft tests."""

from __future__ import annotations

import io
from dataclasses import dataclass, field

import pytest

from weft import Template
from weft.utils import terminal

from builders import DOT, action, call_template, make_template, tree


@dataclass
class User:
    name: str
    age: int = 30
    tags: list[str] = field(default_factory=list)

    def greet(self, other: str) -> str:
        return f"{self.name} greets {other}"

    @property
    def initials(self) -> str:
        return self.name[:1].upper()


@pytest.fixture(autouse=True)
def no_colors(monkeypatch):
    """Render error messages without ANSI codes."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def out():
    """In-memory writer."""
    return io.StringIO()


@pytest.fixture
def user():
    return User("ana", tags=["a", "b"])


@pytest.fixture
def layout():
    """Namespace where "page" calls "header" and "footer"."""
    return make_template(
        "page",
        {
            "page": [call_template("header", "Title"), "|body|", call_template("footer")],
            "header": ["<h1>", action(DOT), "</h1>"],
            "footer": ["<footer/>"],
        },
    )


@pytest.fixture
def looping():
    """Template that calls itself forever."""
    return make_template("loop", {"loop": tree("loop", "x", call_template("loop"))})


@pytest.fixture
def empty_template():
    """Template with no body."""
    return Template("empty")
