"""Per-run key/value store exposed to templates as ``set`` and ``get``."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class LocalData(dict[str, Any]):
    """Scratch storage shared by every frame of one render.

    Templates write with ``{{set "k" 1 "other" 2}}`` and read with
    ``{{get "k"}}``. Nested keys read through mappings:
    ``{{get "user" "name"}}``.
    """

    def put(self, *pairs: Any) -> str:
        """Store alternating key/value arguments and print nothing."""
        if len(pairs) % 2:
            raise ValueError(f"set expects key/value pairs, got {len(pairs)} arguments")
        for i in range(0, len(pairs), 2):
            self[str(pairs[i])] = pairs[i + 1]
        return ""

    def lookup(self, *keys: str) -> Any:
        """Return the value under ``keys``; the store itself when no key is given."""
        value: Any = self
        for key in keys:
            if not isinstance(value, Mapping):
                return None
            value = value.get(key)
        return value

    def merge(self, *others: Mapping[str, Any]) -> LocalData:
        for other in others:
            self.update(other)
        return self
