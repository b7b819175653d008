"""API response caching with TTL + LRU.

Backends:
    - MemoryCache: in-process LRU with lazy expiry (default)
"""

from .cache import (
    DEFAULT_MAX_ENTRIES,
    DEFAULT_TTL,
    CacheEntry,
    MemoryCache,
    ResponseCache,
    cache_through,
    make_key,
)

__all__ = [
    "ResponseCache",
    "MemoryCache",
    "CacheEntry",
    "cache_through",
    "make_key",
    "DEFAULT_TTL",
    "DEFAULT_MAX_ENTRIES",
]
