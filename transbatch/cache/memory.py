"""In-process LRU tier of the translation cache.

Responsibilities:
- Hold recent translations with a size bound and per-entry TTL.
- Refresh recency and age on read.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from time import monotonic
from typing import Callable, Iterable, Mapping


DEFAULT_MAX_ITEMS = 1000
DEFAULT_TTL_SECONDS = 24 * 60 * 60.0


@dataclass(slots=True)
class MemoryTranslationCache:
    """Least-recently-used map of source keys to translations with expiry."""

    max_items: int = DEFAULT_MAX_ITEMS
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    clock: Callable[[], float] = monotonic
    _entries: OrderedDict[str, tuple[str, float]] = field(default_factory=OrderedDict)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        """Return a live non-empty value and mark it most recently used."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        now = self.clock()
        if now - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries[key] = (value, now)
        self._entries.move_to_end(key)
        return value or None

    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        """Return live values for the keys that are present."""

        found: dict[str, str] = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                found[key] = value
        return found

    def set(self, key: str, value: str) -> None:
        """Store a value, evicting the least recently used entry when full."""

        self._entries[key] = (value, self.clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_items:
            self._entries.popitem(last=False)

    def set_many(self, entries: Mapping[str, str]) -> None:
        """Store several values."""

        for key, value in entries.items():
            self.set(key, value)

    def delete(self, key: str) -> None:
        """Remove a key if present."""

        self._entries.pop(key, None)

    def delete_many(self, keys: Iterable[str]) -> None:
        """Remove several keys."""

        for key in keys:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""

        self._entries.clear()
