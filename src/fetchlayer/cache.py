"""In-memory response cache with lazy TTL expiration."""

from __future__ import annotations

import re
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from fetchlayer.types import CacheEntry

DEFAULT_CACHE_TTL_MS = 60_000

# Sentinel for a cache miss; None is a legitimate cached body.
MISS: Any = object()


def _now_ms() -> int:
    return int(time.time() * 1000)


class ResponseCache:
    """Maps request fingerprints to previously fetched bodies.

    All methods are synchronous so that a lookup followed by an in-flight
    registration never yields to the event loop in between. Expired entries
    are evicted when they are next looked up. With ``max_items`` set, the
    least recently used entry is dropped once the cache grows past it.
    """

    def __init__(
        self,
        *,
        max_items: int | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._max_items = max_items
        self._clock = clock

    def lookup(self, key: str) -> Any:
        """Return the cached value for key, or :data:`MISS`."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return MISS
        self._entries.move_to_end(key)  # LRU touch
        return entry.value

    def insert(self, key: str, value: Any, ttl_ms: int = DEFAULT_CACHE_TTL_MS) -> None:
        """Store a value for ``ttl_ms`` milliseconds. A zero TTL is a no-op."""
        if ttl_ms <= 0:
            return
        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key, value=value, inserted_at=now, expires_at=now + ttl_ms
        )
        self._entries.move_to_end(key)
        if self._max_items and len(self._entries) > self._max_items:
            self._entries.popitem(last=False)

    def invalidate(self, matcher: str | re.Pattern[str]) -> int:
        """Drop every entry whose key matches; return how many were dropped.

        A string matches keys that start with it (an exact key is its own
        prefix). A compiled pattern matches keys it finds anywhere, like
        ``re.search``.
        """
        if isinstance(matcher, re.Pattern):
            doomed = [key for key in self._entries if matcher.search(key)]
        else:
            doomed = [key for key in self._entries if key.startswith(matcher)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def keys(self) -> list[str]:
        """Return the keys currently held, expired or not."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not MISS
