"""Call telemetry: upstream API stats, dispatcher connection stats, process probes."""

from .memory import process_cpu_percent, process_memory, system_memory_percent
from .stats import (
    Aggregator,
    ApiCallStats,
    ApiErrorRecord,
    ConnectionStats,
    StatsUpdate,
    incremental_mean,
    merge,
    record_request,
)

__all__ = [
    "ApiCallStats",
    "ApiErrorRecord",
    "StatsUpdate",
    "Aggregator",
    "merge",
    "ConnectionStats",
    "record_request",
    "incremental_mean",
    "process_memory",
    "process_cpu_percent",
    "system_memory_percent",
]
