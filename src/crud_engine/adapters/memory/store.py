"""MemoryStore — table name → ordered ``{key: record}`` mapping."""

from __future__ import annotations

from typing import Any

Rows = dict[tuple[Any, ...], dict[str, Any]]


class MemoryStore:
    """Plain dict storage; insertion order is the natural read order."""

    def __init__(self) -> None:
        self._tables: dict[str, Rows] = {}

    def table(self, name: str) -> Rows:
        return self._tables.setdefault(name, {})

    def clear(self) -> None:
        self._tables.clear()
