"""Per-owner aggregate result cache."""

from __future__ import annotations

import threading
from typing import Any, Hashable


class CacheStore:
    """Thread-safe key-value store of computed aggregate results.

    One store belongs to one owner for the lifetime of its batch. The lock is
    held only for the dictionary operation itself; queries are never executed
    while it is held.
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def contains(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> dict[Hashable, Any]:
        """Return a copy of all entries."""
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"CacheStore(size={self.size()})"
