"""
In-process cache with per-entry time-to-live.

Entries are stored as immutable ``(value, expires_at)`` tuples. Writers
replace the whole tuple under a lock; readers never lock, so a read that
races a write sees either the old or the new entry.
"""

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any

_MISS = (None, False)


class TTLCache:
    """Keyed cache with explicit get / set / invalidate."""

    def __init__(self, default_ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> tuple[Any, bool]:
        """Return ``(value, True)`` for a live entry, ``(None, False)`` otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISS
        value, expires_at = entry
        if self._clock() >= expires_at:
            return _MISS
        return value, True

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        entry = (value, self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_matching(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key satisfies the predicate. Returns the number removed."""
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            live = {k: e for k, e in self._entries.items() if e[1] > now}
            removed = len(self._entries) - len(live)
            self._entries = live
        return removed

    def __len__(self) -> int:
        return len(self._entries)
