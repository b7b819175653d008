"""Tests for Dispatcher: routing, validation, error mapping, caching, accounting."""

from __future__ import annotations

import itertools

import pytest

from figmacase.foundation.registry import ToolRegistry
from figmacase.runtime.dispatch import Dispatcher
from figmacase.runtime.telemetry import Aggregator

FILE = {
    "name": "Design System",
    "lastModified": "2024-05-01T10:00:00Z",
    "version": "42",
    "editorType": "figma",
    "document": {"children": [{"id": "0:1"}, {"id": "0:2"}]},
    "components": {"1:1": {}},
    "styles": {},
}


# ═════════════════════════════════════════════════════════════════════════════
# Routing & Validation
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher: Dispatcher, aggregator: Aggregator, api) -> None:
    """Unknown names produce an error result without touching upstream telemetry."""
    result = await dispatcher.dispatch("bogus", {})

    assert result.to_wire() == {"isError": True, "content": [{"type": "text", "text": "Unknown tool: bogus"}]}
    assert aggregator.snapshot().total_calls == 0
    assert api.requests == []
    assert dispatcher.stats.failed_requests == 1


@pytest.mark.asyncio
async def test_missing_file_key_never_reaches_upstream(dispatcher: Dispatcher, api, cache) -> None:
    result = await dispatcher.dispatch("get-file", {})

    assert result.is_error
    assert result.text.startswith("Invalid arguments:")
    assert "fileKey" in result.text
    assert api.requests == []
    assert cache.size == 0


@pytest.mark.asyncio
async def test_none_arguments_treated_as_empty(dispatcher: Dispatcher) -> None:
    result = await dispatcher.dispatch("list-files", None)
    assert result.is_error
    assert "projectId" in result.text


@pytest.mark.asyncio
async def test_non_object_arguments_rejected(dispatcher: Dispatcher, api) -> None:
    result = await dispatcher.dispatch("get-file", ["abc"])
    assert result.is_error
    assert result.text.startswith("Invalid arguments:")
    assert api.requests == []


@pytest.mark.asyncio
async def test_every_failing_field_reported(dispatcher: Dispatcher) -> None:
    result = await dispatcher.dispatch("create-variables", {
        "fileKey": "abc",
        "variables": [{"name": "primary", "type": "BOOLEAN", "value": "x", "scope": "LOCAL"}],
    })
    assert result.is_error
    assert "variables.0.type" in result.text


@pytest.mark.asyncio
async def test_unusable_rate_limit_headers_do_not_fail_the_call(dispatcher: Dispatcher, aggregator: Aggregator,
                                                                api) -> None:
    api.route("GET", "/projects/7/files", json={"files": []},
              headers={"x-rate-limit-remaining": "inf", "x-rate-limit-reset": "1e400"})

    result = await dispatcher.dispatch("list-files", {"projectId": "7"})

    assert not result.is_error
    stats = aggregator.snapshot()
    assert stats.total_calls == 1
    assert stats.failed_calls == 0
    assert stats.rate_limit_remaining is None
    assert stats.rate_limit_reset_at is None


# ═════════════════════════════════════════════════════════════════════════════
# Upstream Error Mapping
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_404_maps_to_not_found(dispatcher: Dispatcher, aggregator: Aggregator) -> None:
    result = await dispatcher.dispatch("get-file", {"fileKey": "X"})

    assert result.is_error
    assert "not found" in result.text.lower()
    assert "X" in result.text
    stats = aggregator.snapshot()
    assert stats.total_calls == 1
    assert stats.failed_calls == 1
    assert stats.last_error is not None
    assert stats.last_error.endpoint == "/files/X"


@pytest.mark.asyncio
async def test_403_maps_to_access_denied(dispatcher: Dispatcher, api) -> None:
    api.route("GET", "/files/X", status=403, json={"status": 403, "err": "Forbidden"})
    result = await dispatcher.dispatch("get-file", {"fileKey": "X"})

    assert result.is_error
    assert "access denied" in result.text.lower()
    assert "permission" in result.text


@pytest.mark.asyncio
async def test_other_status_maps_to_generic_error(dispatcher: Dispatcher, api) -> None:
    api.route("GET", "/projects/7/files", status=500, json={"status": 500, "err": "Internal"})
    result = await dispatcher.dispatch("list-files", {"projectId": "7"})

    assert result.is_error
    assert result.text.startswith("Error accessing project:")
    assert "500" in result.text


@pytest.mark.asyncio
async def test_project_not_found_names_project(dispatcher: Dispatcher) -> None:
    result = await dispatcher.dispatch("list-files", {"projectId": "P9"})
    assert "Project not found: P9" in result.text


# ═════════════════════════════════════════════════════════════════════════════
# Caching
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_one_fetch_per_ttl_window(dispatcher: Dispatcher, api, clock, aggregator: Aggregator) -> None:
    """Repeated reads inside the window hit the cache; after expiry they refetch."""
    api.route("GET", "/files/abc", json=FILE)

    first = await dispatcher.dispatch("get-file", {"fileKey": "abc"})
    clock.advance(100)
    second = await dispatcher.dispatch("get-file", {"fileKey": "abc"})

    assert not first.is_error
    assert first.text == second.text
    assert api.calls("GET", "/files/abc") == 1
    assert aggregator.snapshot().total_calls == 1

    clock.advance(201)
    await dispatcher.dispatch("get-file", {"fileKey": "abc"})
    assert api.calls("GET", "/files/abc") == 2


@pytest.mark.asyncio
async def test_failures_are_not_cached(dispatcher: Dispatcher, api) -> None:
    await dispatcher.dispatch("get-file", {"fileKey": "abc"})
    api.route("GET", "/files/abc", json=FILE)
    result = await dispatcher.dispatch("get-file", {"fileKey": "abc"})

    assert not result.is_error
    assert api.calls("GET", "/files/abc") == 2


@pytest.mark.asyncio
async def test_write_invalidates_cached_reads(dispatcher: Dispatcher, api) -> None:
    api.route("GET", "/files/abc/variables/local", json={"meta": {"variables": {}, "variableCollections": {}}})
    api.route("POST", "/files/abc/variables", json={"status": 200})

    await dispatcher.dispatch("get-variables", {"fileKey": "abc"})
    await dispatcher.dispatch("delete-variables", {"fileKey": "abc", "variableIds": ["VariableID:1"]})
    await dispatcher.dispatch("get-variables", {"fileKey": "abc"})

    assert api.calls("GET", "/files/abc/variables/local") == 2


@pytest.mark.asyncio
async def test_failed_write_still_invalidates(dispatcher: Dispatcher, api) -> None:
    api.route("GET", "/files/abc", json=FILE)
    api.route("POST", "/files/abc/variables", status=500, json={"status": 500, "err": "Internal"})

    await dispatcher.dispatch("get-file", {"fileKey": "abc"})
    result = await dispatcher.dispatch("delete-variables", {"fileKey": "abc", "variableIds": ["VariableID:1"]})
    await dispatcher.dispatch("get-file", {"fileKey": "abc"})

    assert result.is_error
    assert result.text.startswith("Error deleting variables in file:")
    assert api.calls("GET", "/files/abc") == 2


# ═════════════════════════════════════════════════════════════════════════════
# Accounting
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_connection_stats_per_call(registry: ToolRegistry, aggregator: Aggregator, api) -> None:
    """Every call counts once; the mean covers successes and failures."""
    api.route("GET", "/files/abc", json=FILE)
    ticks = itertools.count(0.0, 0.1)
    dispatcher = Dispatcher(registry, aggregator, memory_probe=lambda: 4096, clock=lambda: next(ticks))

    await dispatcher.dispatch("get-file", {"fileKey": "abc"})
    await dispatcher.dispatch("get-file", {"fileKey": "missing"})
    await dispatcher.dispatch("bogus", {})

    stats = dispatcher.stats
    assert stats.total_requests == 3
    assert stats.successful_requests == 1
    assert stats.failed_requests == 2
    assert stats.avg_response_time_ms == pytest.approx(100.0)
    assert stats.peak_memory_bytes == 4096


@pytest.mark.asyncio
async def test_last_activity_refreshed(dispatcher: Dispatcher) -> None:
    assert dispatcher.last_activity is None
    await dispatcher.dispatch("bogus", {})
    assert dispatcher.last_activity is not None


@pytest.mark.asyncio
async def test_unexpected_tool_exception_becomes_error_result(dispatcher: Dispatcher, api) -> None:
    """A malformed upstream body surfaces as an error value, not an exception."""
    api.route("GET", "/files/abc", json=["not", "a", "file"])
    result = await dispatcher.dispatch("get-file", {"fileKey": "abc"})

    assert result.is_error
    assert result.text.startswith("Tool execution failed:")
    assert dispatcher.stats.failed_requests == 1


def test_list_tools_matches_registry(dispatcher: Dispatcher) -> None:
    names = [d.name for d in dispatcher.list_tools()]
    assert names == [
        "get-file", "list-files", "get-variables", "list-components",
        "create-variables", "update-variables", "delete-variables",
    ]
