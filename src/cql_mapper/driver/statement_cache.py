"""
Prepared statement cache.

Least Recently Used cache keyed by CQL text. Entries are evicted when the cache
is full and, when `idle_seconds` is set, when they have not been used for that
long. A miss only costs a re-prepare, so eviction is always safe.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from src import settings


class PreparedStatementCache:
    """Thread-safe LRU of prepared statements with hit/miss statistics."""

    def __init__(
        self,
        max_size: int = settings.STATEMENT_CACHE_MAX_SIZE,
        idle_seconds: float | None = settings.STATEMENT_CACHE_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, query: str) -> Any | None:
        """Return the cached statement for `query`, marking it as recently used."""
        with self._lock:
            entry = self._entries.get(query)
            now = self._clock()
            if entry is None or self._expired(entry[1], now):
                self._entries.pop(query, None)
                self.misses += 1
                return None
            self.hits += 1
            self._entries[query] = (entry[0], now)
            self._entries.move_to_end(query)
            return entry[0]

    def put(self, query: str, prepared: Any) -> None:
        """Store a statement, evicting the least recently used entry when full."""
        with self._lock:
            if query in self._entries:
                self._entries.move_to_end(query)
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[query] = (prepared, self._clock())

    def get_or_prepare(self, query: str, prepare: Callable[[str], Any]) -> Any:
        """Cached statement for `query`, preparing (outside the lock) on a miss."""
        cached = self.get(query)
        if cached is not None:
            return cached
        prepared = prepare(query)
        self.put(query, prepared)
        return prepared

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, query: str) -> bool:
        with self._lock:
            return query in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Cache statistics for logging."""
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total > 0 else 0.0,
        }

    def _expired(self, last_used: float, now: float) -> bool:
        return self.idle_seconds is not None and now - last_used > self.idle_seconds
