"""Process memory and CPU probes backed by psutil."""

from __future__ import annotations

from functools import lru_cache

import psutil


@lru_cache(maxsize=1)
def _this_process() -> psutil.Process:
    # cpu_percent() measures against the previous call on the same Process object.
    return psutil.Process()


def process_memory() -> int | None:
    """Resident set size of this process in bytes, None when unavailable."""
    try:
        return _this_process().memory_info().rss
    except psutil.Error:
        return None


def process_cpu_percent() -> float | None:
    """CPU use of this process since the previous call, in percent. The first call reports 0.0."""
    try:
        return _this_process().cpu_percent(interval=None)
    except psutil.Error:
        return None


def system_memory_percent() -> float | None:
    """System-wide memory utilisation in percent."""
    try:
        return psutil.virtual_memory().percent
    except (psutil.Error, OSError):
        return None
