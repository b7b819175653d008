"""API response caching with TTL and LRU eviction.

Sits in front of the upstream client so repeated reads of the same resource
inside one validity window hit the API at most once. Keys are derived from the
resource scope and identifier, e.g. ``file:<fileKey>`` or
``file:<fileKey>:variables``.

Overlapping misses on a cold key are not coalesced: two concurrent calls may
each fetch and fill.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, TypeVar

DEFAULT_TTL: float = 300.0  # 5 minutes
DEFAULT_MAX_ENTRIES: int = 500
T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry:
    """A cached value with its creation time."""
    key: str
    value: object
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


def make_key(scope: str, identifier: str, facet: str | None = None) -> str:
    """Generate cache key from resource scope, identifier and optional facet."""
    return f"{scope}:{identifier}:{facet}" if facet else f"{scope}:{identifier}"


class ResponseCache(ABC):
    """Abstract base for response caches."""

    @abstractmethod
    def get(self, key: str) -> object | None:
        """Get cached value if present and not expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: object) -> None:
        """Store value, evicting as needed."""
        ...

    @abstractmethod
    def invalidate(self, key: str) -> bool:
        """Remove specific entry. Returns True if it existed."""
        ...

    @abstractmethod
    def invalidate_scope(self, scope_key: str) -> int:
        """Remove `scope_key` and every key nested under it. Returns count removed."""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryCache(ResponseCache):
    """In-memory LRU cache with lazy TTL expiration.

    Entries older than `ttl` are treated as absent and dropped on lookup.
    When the store is full, inserting a new key evicts the least recently
    accessed entry; both `get` and `set` refresh recency.

    Args:
        ttl: Entry lifetime in seconds
        max_entries: Maximum number of entries before eviction
        clock: Monotonic time source (injectable for tests)

    Example:
        >>> cache = MemoryCache(ttl=60)
        >>> cache.set("file:abc", {"name": "Design"})
        >>> cache.get("file:abc")
        {'name': 'Design'}
    """

    __slots__ = ("_entries", "_ttl", "_max_entries", "_clock", "_lock", "_hits", "_misses")

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> object | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.age(self._clock()) > self._ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: object) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._max_entries:
                self._evict_unlocked()
            self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock())

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_scope(self, scope_key: str) -> int:
        prefix = f"{scope_key}:"
        with self._lock:
            keys = [k for k in self._entries if k == scope_key or k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_unlocked(self) -> None:
        """Drop the least recently used entry. Caller must hold lock."""
        self._entries.popitem(last=False)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        """Keys in recency order, least recently used first."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> dict[str, object]:
        """Get cache statistics for monitoring."""
        with self._lock:
            now = self._clock()
            expired = sum(1 for e in self._entries.values() if e.age(now) > self._ttl)
            return {
                "total_entries": len(self._entries),
                "expired_entries": expired,
                "active_entries": len(self._entries) - expired,
                "hits": self._hits,
                "misses": self._misses,
                "ttl": self._ttl,
                "max_entries": self._max_entries,
            }


async def cache_through(
    cache: ResponseCache | None,
    key: str,
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Return the cached value for `key`, or await `operation` and fill on success.

    Failures propagate and nothing is cached. A None cache disables caching.

    Example:
        >>> data = await cache_through(cache, "file:abc", lambda: client.get("/files/abc"))
    """
    if cache is None:
        return await operation()
    cached = cache.get(key)
    if cached is not None:
        return cached  # type: ignore[return-value]
    result = await operation()
    cache.set(key, result)
    return result
