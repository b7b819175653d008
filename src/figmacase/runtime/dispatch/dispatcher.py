"""Tool dispatcher: name lookup, argument validation, execution, accounting.

`dispatch` never raises. Every failure leaves as an error ToolResult:

    unknown name      -> "Unknown tool: <name>"            (no upstream call)
    bad arguments     -> "Invalid arguments: <issues>"     (no cache, no upstream)
    tool failure      -> tool.error_result(exc, params)

Upstream outcomes recorded on the call context are folded into the
Aggregator once the tool returns, whether it succeeded or not.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from figmacase.foundation.core import Context, ToolDefinition, ToolResult
from figmacase.foundation.errors import ArgumentError, UnknownToolError
from figmacase.foundation.registry import ToolRegistry
from figmacase.runtime.observability import BoundLogger, get_logger, log_context
from figmacase.runtime.telemetry import Aggregator, ConnectionStats, process_memory, record_request

MemoryProbe = Callable[[], int | None]


class Dispatcher:
    """Routes tool calls to registered tools and keeps ConnectionStats.

    Args:
        registry: Tools that may be dispatched
        aggregator: Receives one StatsUpdate per upstream call
        memory_probe: Returns current process memory in bytes (None if unknown)
        clock: Monotonic clock for request latency
        wall_clock: Wall clock for last-activity time

    Example:
        >>> dispatcher = Dispatcher(registry, Aggregator())
        >>> result = await dispatcher.dispatch("get-file", {"fileKey": "abc123"})
        >>> result.is_error
        False
    """

    __slots__ = ("_registry", "_aggregator", "_memory_probe", "_clock", "_wall_clock",
                 "_stats", "_last_activity", "_log")

    def __init__(
        self,
        registry: ToolRegistry,
        aggregator: Aggregator,
        *,
        memory_probe: MemoryProbe = process_memory,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time,
        logger: BoundLogger | None = None,
    ) -> None:
        self._registry = registry
        self._aggregator = aggregator
        self._memory_probe = memory_probe
        self._clock = clock
        self._wall_clock = wall_clock
        self._stats = ConnectionStats()
        self._last_activity: float | None = None
        self._log = logger or get_logger("figmacase.dispatch")

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    @property
    def aggregator(self) -> Aggregator:
        return self._aggregator

    @property
    def last_activity(self) -> float | None:
        """Wall-clock time of the last completed call, None before the first."""
        return self._last_activity

    def list_tools(self) -> list[ToolDefinition]:
        return self._registry.definitions()

    async def dispatch(self, name: str, arguments: Any = None) -> ToolResult:
        """Run one tool call to completion and account for it."""
        start = self._clock()
        log = self._log
        try:
            with log_context(tool=name):
                result = await self._execute(name, arguments, log)
        finally:
            latency_ms = (self._clock() - start) * 1000
            self._last_activity = self._wall_clock()
        self._stats = record_request(
            self._stats,
            success=not result.is_error,
            latency_ms=latency_ms,
            memory_bytes=self._memory_probe(),
        )
        log.info("tool completed", tool=name, success=not result.is_error, duration_ms=latency_ms)
        return result

    async def _execute(self, name: str, arguments: Any, log: BoundLogger) -> ToolResult:
        tool = self._registry.get(name)
        if tool is None:
            log.warning("unknown tool")
            return ToolResult.error(str(UnknownToolError(name)))

        try:
            params = tool.validate(arguments)
        except ArgumentError as e:
            log.warning("invalid arguments", issues=e.issues)
            return ToolResult.error(str(e))

        ctx = Context(tool_name=name)
        try:
            return await tool.arun(params, ctx)
        except Exception as e:
            log.error("tool failed", error=str(e), error_type=type(e).__name__)
            return tool.error_result(e, params)
        finally:
            for outcome in ctx.outcomes:
                self._aggregator.merge(outcome.update)
            if "cache" in ctx:
                log.debug("cache lookup", cache=ctx["cache"], upstream_calls=len(ctx.outcomes))
