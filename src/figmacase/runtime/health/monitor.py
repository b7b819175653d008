"""Periodic health reporting.

A HealthSnapshot is derived on demand from the server state, the dispatcher's
ConnectionStats and the Aggregator's ApiCallStats. The monitor only reads: it
never changes state, it publishes each snapshot to every subscribed sink.

    isHealthy = state == "running" and connectionErrors < max_connection_errors
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt
from pydantic.alias_generators import to_camel

from figmacase.runtime.observability import BoundLogger, get_logger
from figmacase.runtime.telemetry import ApiCallStats, ConnectionStats

DEFAULT_INTERVAL = 10.0
DEFAULT_MAX_CONNECTION_ERRORS = 5

HealthSink = Callable[["HealthSnapshot"], None]


class HealthSnapshot(BaseModel):
    """Point-in-time view of server health."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    state: str
    uptime_s: NonNegativeFloat
    idle_s: NonNegativeFloat = Field(description="Seconds since the last completed tool call")
    connection_errors: NonNegativeInt = 0
    is_healthy: bool
    connections: ConnectionStats = Field(default_factory=ConnectionStats)
    api: ApiCallStats = Field(default_factory=ApiCallStats)
    memory_bytes: int | None = Field(default=None, description="Current resident set size")
    cpu_percent: float | None = Field(default=None, description="Process CPU use since the previous snapshot")
    system_memory_percent: float | None = None
    timestamp: float = Field(default_factory=time.time)

    def summary(self) -> dict[str, object]:
        """Flat fields for a single log line."""
        return {
            "state": self.state,
            "healthy": self.is_healthy,
            "uptime_s": round(self.uptime_s, 1),
            "idle_s": round(self.idle_s, 1),
            "connection_errors": self.connection_errors,
            "requests": self.connections.total_requests,
            "server_success_rate": _pct(self.connections.success_rate),
            "avg_response_ms": round(self.connections.avg_response_time_ms, 1),
            "api_calls": self.api.total_calls,
            "api_success_rate": _pct(self.api.success_rate),
            "api_avg_latency_ms": round(self.api.average_latency_ms, 1),
            "rate_limit_remaining": self.api.rate_limit_remaining,
            "memory_mb": None if self.memory_bytes is None else round(self.memory_bytes / 1_048_576, 1),
            "cpu_pct": None if self.cpu_percent is None else round(self.cpu_percent, 1),
            "system_memory_pct": self.system_memory_percent,
        }


def _pct(rate: float | None) -> str:
    return "n/a" if rate is None else f"{rate:.1f}%"


def is_healthy(state: str, connection_errors: int, max_connection_errors: int = DEFAULT_MAX_CONNECTION_ERRORS) -> bool:
    return state == "running" and connection_errors < max_connection_errors


class HealthMonitor:
    """Timer-driven publisher of HealthSnapshots.

    Args:
        source: Builds the current snapshot
        interval: Seconds between ticks
        sinks: Receivers of every published snapshot
        verbose: Log every tick, not only unhealthy ones

    Example:
        >>> monitor = HealthMonitor(server.health, interval=10.0, sinks=[snapshots.append])
        >>> monitor.start()
        >>> await monitor.stop()
    """

    __slots__ = ("_source", "_interval", "_sinks", "_verbose", "_task", "_log", "_ticks")

    def __init__(
        self,
        source: Callable[[], HealthSnapshot],
        *,
        interval: float = DEFAULT_INTERVAL,
        sinks: list[HealthSink] | None = None,
        verbose: bool = False,
        logger: BoundLogger | None = None,
    ) -> None:
        self._source = source
        self._interval = interval
        self._sinks: list[HealthSink] = list(sinks or [])
        self._verbose = verbose
        self._task: asyncio.Task[None] | None = None
        self._log = logger or get_logger("figmacase.health")
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        return self._ticks

    def subscribe(self, sink: HealthSink) -> None:
        self._sinks.append(sink)

    def publish(self, snapshot: HealthSnapshot) -> HealthSnapshot:
        """Deliver `snapshot` to every sink. A failing sink does not stop the others."""
        for sink in self._sinks:
            try:
                sink(snapshot)
            except Exception as e:
                self._log.error("health sink failed", error=str(e), error_type=type(e).__name__)
        return snapshot

    def tick(self) -> HealthSnapshot:
        """Build, publish and (when unhealthy or verbose) log one snapshot."""
        snapshot = self.publish(self._source())
        self._ticks += 1
        if not snapshot.is_healthy:
            self._log.warning("server unhealthy", **snapshot.summary())
        elif self._verbose:
            self._log.info("health report", **snapshot.summary())
        return snapshot

    def start(self) -> None:
        """Begin ticking every `interval` seconds on the running loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="figmacase-health")

    async def stop(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.tick()
            except Exception as e:
                self._log.error("health tick failed", error=str(e), error_type=type(e).__name__)
