"""Health monitoring."""

from .monitor import (
    DEFAULT_INTERVAL,
    DEFAULT_MAX_CONNECTION_ERRORS,
    HealthMonitor,
    HealthSink,
    HealthSnapshot,
    is_healthy,
)

__all__ = [
    "HealthMonitor",
    "HealthSnapshot",
    "HealthSink",
    "is_healthy",
    "DEFAULT_INTERVAL",
    "DEFAULT_MAX_CONNECTION_ERRORS",
]
