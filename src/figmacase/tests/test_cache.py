"""Tests for the TTL + LRU response cache.

Validates:
- Lazy expiry after TTL
- LRU eviction at capacity, recency refreshed on read and write
- Scope invalidation by file key
- cache_through fill and failure semantics
"""

from __future__ import annotations

import pytest

from figmacase.io.cache import MemoryCache, cache_through, make_key


# ═════════════════════════════════════════════════════════════════════════════
# Keys
# ═════════════════════════════════════════════════════════════════════════════


def test_make_key_formats() -> None:
    """Keys are scope:identifier with an optional facet."""
    assert make_key("file", "abc") == "file:abc"
    assert make_key("file", "abc", "variables") == "file:abc:variables"
    assert make_key("project", "42") == "project:42"


# ═════════════════════════════════════════════════════════════════════════════
# TTL
# ═════════════════════════════════════════════════════════════════════════════


def test_get_missing_returns_none(cache: MemoryCache) -> None:
    assert cache.get("file:nope") is None


def test_entry_visible_within_ttl(cache: MemoryCache, clock) -> None:
    """An entry set at t is returned at t + TTL."""
    cache.set("file:abc", {"name": "Design"})
    clock.advance(300)
    assert cache.get("file:abc") == {"name": "Design"}


def test_entry_expires_after_ttl(cache: MemoryCache, clock) -> None:
    """An entry set at t is absent at t + TTL + epsilon and is dropped."""
    cache.set("file:abc", {"name": "Design"})
    clock.advance(300.5)
    assert cache.get("file:abc") is None
    assert cache.size == 0


def test_set_resets_age(cache: MemoryCache, clock) -> None:
    cache.set("file:abc", 1)
    clock.advance(200)
    cache.set("file:abc", 2)
    clock.advance(200)
    assert cache.get("file:abc") == 2


# ═════════════════════════════════════════════════════════════════════════════
# LRU
# ═════════════════════════════════════════════════════════════════════════════


def test_capacity_evicts_least_recently_used(clock) -> None:
    """Inserting at capacity evicts the LRU entry; reads refresh recency."""
    cache = MemoryCache(ttl=300, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.size == 2


def test_write_refreshes_recency(clock) -> None:
    cache = MemoryCache(ttl=300, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.keys() == ["a", "c"]


def test_store_never_exceeds_capacity(clock) -> None:
    cache = MemoryCache(ttl=300, max_entries=3, clock=clock)
    for i in range(10):
        cache.set(f"file:{i}", i)
    assert cache.size == 3
    assert cache.keys() == ["file:7", "file:8", "file:9"]


def test_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        MemoryCache(max_entries=0)


# ═════════════════════════════════════════════════════════════════════════════
# Invalidation
# ═════════════════════════════════════════════════════════════════════════════


def test_invalidate_scope_drops_every_facet(cache: MemoryCache) -> None:
    """All reads of one file key go; similar keys and other scopes stay."""
    cache.set("file:abc", 1)
    cache.set("file:abc:variables", 2)
    cache.set("file:abc:components", 3)
    cache.set("file:abcd", 4)
    cache.set("project:abc", 5)

    assert cache.invalidate_scope("file:abc") == 3
    assert sorted(cache.keys()) == ["file:abcd", "project:abc"]


def test_invalidate_single_key(cache: MemoryCache) -> None:
    cache.set("file:abc", 1)
    assert cache.invalidate("file:abc") is True
    assert cache.invalidate("file:abc") is False


def test_stats_counts_hits_and_misses(cache: MemoryCache) -> None:
    cache.set("file:abc", 1)
    cache.get("file:abc")
    cache.get("file:missing")
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["total_entries"] == 1


# ═════════════════════════════════════════════════════════════════════════════
# cache_through
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cache_through_fetches_once(cache: MemoryCache) -> None:
    calls = 0

    async def fetch() -> dict[str, str]:
        nonlocal calls
        calls += 1
        return {"name": "Design"}

    first = await cache_through(cache, "file:abc", fetch)
    second = await cache_through(cache, "file:abc", fetch)

    assert first == second == {"name": "Design"}
    assert calls == 1


@pytest.mark.asyncio
async def test_cache_through_does_not_cache_failures(cache: MemoryCache) -> None:
    async def fail() -> None:
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        await cache_through(cache, "file:abc", fail)
    assert "file:abc" not in cache


@pytest.mark.asyncio
async def test_cache_through_without_cache_always_fetches() -> None:
    calls = 0

    async def fetch() -> int:
        nonlocal calls
        calls += 1
        return calls

    assert await cache_through(None, "file:abc", fetch) == 1
    assert await cache_through(None, "file:abc", fetch) == 2
