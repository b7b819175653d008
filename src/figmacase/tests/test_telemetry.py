"""Tests for call telemetry records and their pure merge functions."""

from __future__ import annotations

import itertools

import pytest

from figmacase.runtime.telemetry import (
    Aggregator,
    ApiCallStats,
    ApiErrorRecord,
    ConnectionStats,
    StatsUpdate,
    incremental_mean,
    merge,
    process_cpu_percent,
    process_memory,
    record_request,
)


def _fold(updates: list[StatsUpdate]) -> ApiCallStats:
    stats = ApiCallStats()
    for update in updates:
        stats = merge(stats, update)
    return stats


# ═════════════════════════════════════════════════════════════════════════════
# ApiCallStats
# ═════════════════════════════════════════════════════════════════════════════


def test_merge_counts_calls_and_failures() -> None:
    stats = _fold([
        StatsUpdate(total_calls=1, latency_ms=100.0),
        StatsUpdate(total_calls=1, failed_calls=1, latency_ms=5.0),
    ])
    assert stats.total_calls == 2
    assert stats.failed_calls == 1


def test_merge_incremental_mean() -> None:
    stats = _fold([StatsUpdate(total_calls=1, latency_ms=ms) for ms in (100.0, 200.0, 600.0)])
    assert stats.average_latency_ms == pytest.approx(300.0)
    assert stats.latency_samples == 3


def test_mean_independent_of_merge_order() -> None:
    """Any permutation of the same updates yields the same average latency."""
    updates = [StatsUpdate(total_calls=1, latency_ms=ms) for ms in (12.5, 80.0, 33.3, 240.0)]
    expected = (12.5 + 80.0 + 33.3 + 240.0) / 4
    for order in itertools.permutations(updates):
        assert _fold(list(order)).average_latency_ms == pytest.approx(expected)


def test_failed_call_latency_not_in_mean() -> None:
    stats = _fold([
        StatsUpdate(total_calls=1, latency_ms=100.0),
        StatsUpdate(total_calls=1, failed_calls=1, latency_ms=9000.0),
    ])
    assert stats.average_latency_ms == pytest.approx(100.0)


def test_rate_limit_last_write_wins_and_absent_keeps_value() -> None:
    stats = _fold([
        StatsUpdate(total_calls=1, rate_limit_remaining=90, rate_limit_reset_at=1_700_000_000.0),
        StatsUpdate(total_calls=1, rate_limit_remaining=89),
        StatsUpdate(total_calls=1),
    ])
    assert stats.rate_limit_remaining == 89
    assert stats.rate_limit_reset_at == 1_700_000_000.0


def test_last_error_kept_until_replaced() -> None:
    first = ApiErrorRecord(message="boom", endpoint="/files/a", time=1.0)
    second = ApiErrorRecord(message="bang", endpoint="/files/b", time=2.0)
    stats = _fold([
        StatsUpdate(total_calls=1, failed_calls=1, last_error=first),
        StatsUpdate(total_calls=1, latency_ms=10.0),
    ])
    assert stats.last_error == first
    assert merge(stats, StatsUpdate(total_calls=1, failed_calls=1, last_error=second)).last_error == second


def test_merge_is_pure() -> None:
    stats = ApiCallStats()
    merge(stats, StatsUpdate(total_calls=1, latency_ms=10.0))
    assert stats.total_calls == 0


def test_success_rate() -> None:
    assert ApiCallStats().success_rate is None
    stats = _fold([StatsUpdate(total_calls=1), StatsUpdate(total_calls=1, failed_calls=1)])
    assert stats.success_rate == pytest.approx(50.0)


def test_stats_serialize_camel_case() -> None:
    dumped = ApiCallStats().model_dump(by_alias=True)
    assert {"totalCalls", "failedCalls", "averageLatencyMs", "rateLimitRemaining", "lastError"} <= dumped.keys()


def test_aggregator_snapshot() -> None:
    agg = Aggregator()
    agg.merge(StatsUpdate(total_calls=1, latency_ms=120.0))
    before = agg.snapshot()
    agg.merge(StatsUpdate(total_calls=1, latency_ms=80.0))

    assert before.total_calls == 1
    assert agg.snapshot().total_calls == 2
    assert agg.snapshot().average_latency_ms == pytest.approx(100.0)


# ═════════════════════════════════════════════════════════════════════════════
# ConnectionStats
# ═════════════════════════════════════════════════════════════════════════════


def test_incremental_mean() -> None:
    assert incremental_mean(0.0, 0, 50.0) == 50.0
    assert incremental_mean(50.0, 1, 150.0) == 100.0


def test_record_request_averages_all_requests() -> None:
    """Failures count toward the response-time mean with their own latency."""
    stats = ConnectionStats()
    stats = record_request(stats, success=True, latency_ms=100.0, memory_bytes=2048)
    stats = record_request(stats, success=False, latency_ms=300.0, memory_bytes=1024)

    assert stats.total_requests == 2
    assert stats.successful_requests == 1
    assert stats.failed_requests == 1
    assert stats.avg_response_time_ms == pytest.approx(200.0)
    assert stats.peak_memory_bytes == 2048
    assert stats.success_rate == pytest.approx(50.0)


def test_record_request_without_memory_reading() -> None:
    stats = record_request(ConnectionStats(), success=True, latency_ms=1.0)
    assert stats.peak_memory_bytes == 0


def test_process_probes_read_this_process() -> None:
    assert process_memory() > 0
    process_cpu_percent()
    cpu = process_cpu_percent()
    assert cpu is not None and cpu >= 0.0
