"""Template options set with ``Template.option("key=value")``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MissingKey(Enum):
    """What a field lookup yields when a mapping has no such key.

    INVALID (the default) yields no value, ZERO yields the zero value of
    the mapping's value type and ERROR stops execution.
    """

    INVALID = "invalid"
    ZERO = "zero"
    ERROR = "error"


_MISSING_KEY_VALUES = {
    "invalid": MissingKey.INVALID,
    "default": MissingKey.INVALID,
    "zero": MissingKey.ZERO,
    "error": MissingKey.ERROR,
}


@dataclass(slots=True)
class Options:
    missing_key: MissingKey = MissingKey.INVALID

    def copy(self) -> Options:
        return Options(missing_key=self.missing_key)


def apply_option(options: Options, opt: str) -> None:
    """Parse one ``key=value`` option string into ``options``.

    Raises:
        ValueError: Empty, malformed or unknown option.
    """
    if not opt:
        raise ValueError("empty option string")
    key, eq, value = opt.partition("=")
    mode = _MISSING_KEY_VALUES.get(value) if eq and key == "missingkey" else None
    if mode is None:
        raise ValueError(f"unrecognized option: {opt}")
    options.missing_key = mode
