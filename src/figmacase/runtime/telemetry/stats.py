"""Call statistics as immutable records with pure merge functions.

Two running snapshots exist per process:

- ApiCallStats: upstream API calls, folded from one StatsUpdate per call
- ConnectionStats: completed tool calls, owned by the dispatcher

Both are cumulative since process start and never reset. Updates are applied
in completion order; the latency means do not depend on that order.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def incremental_mean(mean: float, count: int, sample: float) -> float:
    """Fold one sample into a mean over `count` prior samples."""
    return (mean * count + sample) / (count + 1)


# ═══════════════════════════════════════════════════════════════════════════════
# Upstream API Stats
# ═══════════════════════════════════════════════════════════════════════════════


class ApiErrorRecord(BaseModel):
    """Most recent upstream failure."""

    model_config = _MODEL_CONFIG

    message: str
    endpoint: str
    time: float = Field(description="Unix timestamp of the failure")


class ApiCallStats(BaseModel):
    """Cumulative upstream call statistics.

    `average_latency_ms` is the incremental mean over successful calls that
    reported a latency; `latency_samples` is that count. Rate-limit fields are
    None while unknown.
    """

    model_config = _MODEL_CONFIG

    total_calls: NonNegativeInt = 0
    failed_calls: NonNegativeInt = 0
    average_latency_ms: NonNegativeFloat = 0.0
    latency_samples: NonNegativeInt = 0
    rate_limit_remaining: int | None = None
    rate_limit_reset_at: float | None = None
    last_error: ApiErrorRecord | None = None

    @property
    def success_rate(self) -> float | None:
        """Percentage of successful calls, None before the first call."""
        if not self.total_calls:
            return None
        return (self.total_calls - self.failed_calls) / self.total_calls * 100


class StatsUpdate(BaseModel):
    """Partial update produced by one upstream call.

    None fields are absent and leave the running value untouched.
    """

    model_config = _MODEL_CONFIG

    total_calls: NonNegativeInt = 0
    failed_calls: NonNegativeInt = 0
    latency_ms: NonNegativeFloat | None = None
    rate_limit_remaining: int | None = None
    rate_limit_reset_at: float | None = None
    last_error: ApiErrorRecord | None = None


def merge(stats: ApiCallStats, update: StatsUpdate) -> ApiCallStats:
    """Fold `update` into `stats`.

    Counters add, latency feeds the running mean when the update is a success,
    rate-limit fields and `last_error` are last-write-wins.
    """
    changes: dict[str, object] = {
        "total_calls": stats.total_calls + update.total_calls,
        "failed_calls": stats.failed_calls + update.failed_calls,
    }
    if update.latency_ms is not None and not update.failed_calls:
        changes["average_latency_ms"] = incremental_mean(
            stats.average_latency_ms, stats.latency_samples, update.latency_ms,
        )
        changes["latency_samples"] = stats.latency_samples + 1
    if update.rate_limit_remaining is not None:
        changes["rate_limit_remaining"] = update.rate_limit_remaining
    if update.rate_limit_reset_at is not None:
        changes["rate_limit_reset_at"] = update.rate_limit_reset_at
    if update.last_error is not None:
        changes["last_error"] = update.last_error
    return stats.model_copy(update=changes)


class Aggregator:
    """Holds the running ApiCallStats snapshot for the process.

    Example:
        >>> agg = Aggregator()
        >>> agg.merge(StatsUpdate(total_calls=1, latency_ms=120.0))
        >>> agg.snapshot().average_latency_ms
        120.0
    """

    __slots__ = ("_stats",)

    def __init__(self, initial: ApiCallStats | None = None) -> None:
        self._stats = initial or ApiCallStats()

    def merge(self, update: StatsUpdate) -> None:
        self._stats = merge(self._stats, update)

    def snapshot(self) -> ApiCallStats:
        return self._stats


# ═══════════════════════════════════════════════════════════════════════════════
# Dispatcher Connection Stats
# ═══════════════════════════════════════════════════════════════════════════════


class ConnectionStats(BaseModel):
    """Cumulative tool-call statistics owned by the dispatcher.

    `avg_response_time_ms` averages every completed request, success or
    failure, using each request's own latency.
    """

    model_config = _MODEL_CONFIG

    total_requests: NonNegativeInt = 0
    successful_requests: NonNegativeInt = 0
    failed_requests: NonNegativeInt = 0
    avg_response_time_ms: NonNegativeFloat = 0.0
    peak_memory_bytes: NonNegativeInt = 0

    @property
    def success_rate(self) -> float | None:
        if not self.total_requests:
            return None
        return self.successful_requests / self.total_requests * 100


def record_request(
    stats: ConnectionStats,
    *,
    success: bool,
    latency_ms: float,
    memory_bytes: int | None = None,
) -> ConnectionStats:
    """Fold one completed tool call into `stats`."""
    return stats.model_copy(update={
        "total_requests": stats.total_requests + 1,
        "successful_requests": stats.successful_requests + (1 if success else 0),
        "failed_requests": stats.failed_requests + (0 if success else 1),
        "avg_response_time_ms": incremental_mean(stats.avg_response_time_ms, stats.total_requests, latency_ms),
        "peak_memory_bytes": max(stats.peak_memory_bytes, memory_bytes or 0),
    })
