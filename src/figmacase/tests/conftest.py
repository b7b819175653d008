"""Shared fixtures: a scripted Figma API behind httpx.MockTransport, a fake clock."""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import httpx
import orjson
import pytest

from figmacase.foundation.config import clear_settings_cache
from figmacase.foundation.registry import ToolRegistry
from figmacase.io.cache import MemoryCache
from figmacase.runtime.dispatch import Dispatcher
from figmacase.runtime.observability import configure_logging
from figmacase.runtime.telemetry import Aggregator
from figmacase.tools import FigmaClient, figma_tools

API_PREFIX = "/v1"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FigmaApi:
    """Route table for httpx.MockTransport. Unrouted paths answer 404."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any, dict[str, str]]] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, *, status: int = 200, json: Any = None,
              headers: dict[str, str] | None = None) -> None:
        self.routes[(method, path)] = (status, json, headers or {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        if (request.method, path) not in self.routes:
            return httpx.Response(404, json={"status": 404, "err": "Not found"})
        status, body, headers = self.routes[(request.method, path)]
        return httpx.Response(status, json=body, headers=headers)

    def calls(self, method: str, path: str) -> int:
        return len(self.sent(method, path))

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == API_PREFIX + path]

    def body(self, method: str, path: str, index: int = -1) -> Any:
        return orjson.loads(self.sent(method, path)[index].content)


@pytest.fixture(autouse=True)
def _quiet_logs() -> Iterator[None]:
    configure_logging("none")
    yield


@pytest.fixture
def settings_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """Clean FIGMA*/FIGMACASE_* environment with a fresh settings cache."""
    for var in list(os.environ):
        if var.startswith(("FIGMA_", "FIGMACASE_")):
            monkeypatch.delenv(var)
    monkeypatch.chdir(os.path.dirname(__file__))
    clear_settings_cache()
    yield monkeypatch
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> FigmaApi:
    return FigmaApi()


@pytest.fixture
def client(api: FigmaApi) -> FigmaClient:
    return FigmaClient("figd_test", client=httpx.AsyncClient(transport=httpx.MockTransport(api.handler)))


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(ttl=300, max_entries=500, clock=clock)


@pytest.fixture
def registry(client: FigmaClient, cache: MemoryCache) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_all(*figma_tools(client, cache))
    return registry


@pytest.fixture
def aggregator() -> Aggregator:
    return Aggregator()


@pytest.fixture
def dispatcher(registry: ToolRegistry, aggregator: Aggregator) -> Dispatcher:
    return Dispatcher(registry, aggregator, memory_probe=lambda: 1024)
