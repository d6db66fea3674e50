# plantcare/utils/cache.py
"""Per-process cache for derived care views (task buckets, calendar ranges).

Entries expire after ``ttl_seconds`` and are evicted least-recently-used past
``maxsize``. Every ``clear()`` starts a new *generation*: a value computed
from data read before the clear is refused by ``set(..., generation=...)``,
so a view loaded concurrently with a write can never outlive that write.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable


class TTLCache:
    """TTL + LRU cache with generation-checked writes."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: int = 30,
        maxsize: int = 64,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enabled = enabled and ttl_seconds > 0 and maxsize > 0
        self.ttl = ttl_seconds if self.enabled else 0
        self.maxsize = maxsize if self.enabled else 0
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._lock = Lock()
        self._generation = 0
        self._counts = {"hits": 0, "misses": 0, "evictions": 0, "stale_drops": 0}

    @property
    def generation(self) -> int:
        """Bumped by every ``clear()``; pass it back to ``set`` to detect stale loads."""
        with self._lock:
            return self._generation

    def get(self, key: Hashable) -> Any:
        """Cached value for ``key``, or None when absent, expired or disabled."""
        with self._lock:
            entry = self._entries.get(key) if self.enabled else None
            if entry is not None and entry[0] > self._clock():
                self._entries.move_to_end(key)
                self._counts["hits"] += 1
                return entry[1]
            if entry is not None:
                del self._entries[key]
            self._counts["misses"] += 1
            return None

    def set(self, key: Hashable, value: Any, *, generation: int | None = None) -> bool:
        """Store ``value``. Returns False if it was refused (disabled, None or stale)."""
        if not self.enabled or value is None:
            return False
        with self._lock:
            if generation is not None and generation != self._generation:
                self._counts["stale_drops"] += 1
                return False
            self._entries[key] = (self._clock() + self.ttl, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
                self._counts["evictions"] += 1
        return True

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry and start a new generation."""
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            counts = dict(self._counts)
            size = len(self._entries)
            generation = self._generation
        lookups = counts["hits"] + counts["misses"]
        return {
            "enabled": self.enabled,
            "size": size,
            "maxsize": self.maxsize,
            "ttl_seconds": self.ttl,
            "generation": generation,
            "hit_rate": round(counts["hits"] / lookups * 100, 2) if lookups else 0.0,
            **counts,
        }
