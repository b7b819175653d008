"""MCP stdio server for the Figma tools.

Wires the Dispatcher onto the low-level `mcp.server.Server`:

- `tools/list` publishes the registry's ToolDefinitions
- `tools/call` goes through `Dispatcher.dispatch`; error results are returned
  to the client with `isError: true`

Lifecycle:

    starting --serve()--> running --stop()--> stopping --> stopped
                             |
                             +--fatal transport fault--> error --stop()--> error

An exception delivered on the inbound stream (malformed frame, decode
failure) increments `connection_errors`. When the inbound stream itself breaks
the fault is fatal: the server moves to `error` and stays there, health timer
running, until it is cancelled. Both are reported through health; neither raises.

Example:
    >>> server = FigmaServer.from_settings(get_settings())
    >>> await server.run_stdio()
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable

import anyio
import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from figmacase.foundation.errors import TransportFault
from figmacase.foundation.registry import ToolRegistry
from figmacase.io.cache import MemoryCache
from figmacase.runtime.dispatch import Dispatcher
from figmacase.runtime.health import (
    DEFAULT_INTERVAL,
    DEFAULT_MAX_CONNECTION_ERRORS,
    HealthMonitor,
    HealthSink,
    HealthSnapshot,
    is_healthy,
)
from figmacase.runtime.observability import get_logger
from figmacase.runtime.telemetry import Aggregator, process_cpu_percent, process_memory, system_memory_percent
from figmacase.tools import FigmaClient, figma_tools

if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

    from figmacase.foundation.config import FigmacaseSettings

log = get_logger("figmacase.server")


class ServerState(StrEnum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


class ToolCallError(Exception):
    """Carries an error ToolResult's text; the MCP server returns it with isError set."""


def build_registry(client: FigmaClient, cache: MemoryCache | None = None) -> ToolRegistry:
    """Registry holding every Figma tool."""
    registry = ToolRegistry()
    registry.register_all(*figma_tools(client, cache))
    return registry


# ═══════════════════════════════════════════════════════════════════════════════
# Server
# ═══════════════════════════════════════════════════════════════════════════════


class FigmaServer:
    """Figma tool server: dispatcher, health monitor and MCP transport."""

    __slots__ = (
        "_name", "_version", "_dispatcher", "_monitor", "_max_connection_errors",
        "_clock", "_started_at", "_state", "_connection_errors", "_client", "_mcp",
        "_memory_probe", "_cpu_probe", "_stopped",
    )

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        name: str = "figma-mcp-server",
        version: str = "1.0.0",
        aggregator: Aggregator | None = None,
        health_interval: float = DEFAULT_INTERVAL,
        max_connection_errors: int = DEFAULT_MAX_CONNECTION_ERRORS,
        verbose: bool = False,
        sinks: list[HealthSink] | None = None,
        memory_probe: Callable[[], int | None] = process_memory,
        cpu_probe: Callable[[], float | None] = process_cpu_percent,
        clock: Callable[[], float] = time.time,
        client: FigmaClient | None = None,
    ) -> None:
        self._name = name
        self._version = version
        self._clock = clock
        self._started_at = clock()
        self._state = ServerState.STARTING
        self._connection_errors = 0
        self._max_connection_errors = max_connection_errors
        self._client = client
        self._memory_probe = memory_probe
        self._cpu_probe = cpu_probe
        self._stopped = False
        self._dispatcher = Dispatcher(
            registry, aggregator or Aggregator(), memory_probe=memory_probe, wall_clock=clock,
        )
        self._monitor = HealthMonitor(self.health, interval=health_interval, sinks=sinks, verbose=verbose)
        self._mcp = self._build_mcp()

    @classmethod
    def from_settings(cls, settings: FigmacaseSettings, **kwargs: Any) -> FigmaServer:
        """Server with client, cache and registry built from settings. Raises ConfigurationError without a token."""
        client = FigmaClient.from_settings(settings.api)
        cache = MemoryCache(settings.cache.ttl, settings.cache.max_entries) if settings.cache.enabled else None
        return cls(
            build_registry(client, cache),
            name=settings.server_name,
            version=settings.server_version,
            health_interval=settings.health.interval,
            max_connection_errors=settings.health.max_connection_errors,
            verbose=settings.debug,
            client=client,
            **kwargs,
        )

    # ─────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def connection_errors(self) -> int:
        return self._connection_errors

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def monitor(self) -> HealthMonitor:
        return self._monitor

    @property
    def mcp(self) -> Server:
        """Underlying low-level MCP server."""
        return self._mcp

    def record_transport_fault(self, exc: BaseException, *, fatal: bool = False) -> TransportFault:
        """Count an inbound channel failure. Fatal faults also move the server to `error`."""
        fault = TransportFault(exc)
        self._connection_errors += 1
        if fatal and self._state not in (ServerState.STOPPING, ServerState.STOPPED):
            self._state = ServerState.ERROR
        log.error("transport fault", error=str(fault), error_type=type(exc).__name__,
                  fatal=fatal, connection_errors=self._connection_errors)
        self._monitor.tick()
        return fault

    def health(self) -> HealthSnapshot:
        now = self._clock()
        last = self._dispatcher.last_activity
        return HealthSnapshot(
            state=self._state.value,
            uptime_s=max(0.0, now - self._started_at),
            idle_s=max(0.0, now - (last if last is not None else self._started_at)),
            connection_errors=self._connection_errors,
            is_healthy=is_healthy(self._state.value, self._connection_errors, self._max_connection_errors),
            connections=self._dispatcher.stats,
            api=self._dispatcher.aggregator.snapshot(),
            memory_bytes=self._memory_probe(),
            cpu_percent=self._cpu_probe(),
            system_memory_percent=system_memory_percent(),
        )

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def start(self) -> HealthSnapshot:
        """Enter `running`, publish an initial snapshot and start the health timer."""
        self._state = ServerState.RUNNING
        log.info("server running", name=self._name, version=self._version,
                 tools=len(self._dispatcher.list_tools()))
        snapshot = self._monitor.publish(self.health())
        self._monitor.start()
        return snapshot

    async def stop(self) -> HealthSnapshot | None:
        """Stop the health timer, close the client, enter `stopped`. Later calls are no-ops.

        A server in `error` stays in `error` so the final snapshot still reports the failure.
        """
        if self._stopped:
            return None
        self._stopped = True
        failed = self._state is ServerState.ERROR
        if not failed:
            self._state = ServerState.STOPPING
        await self._monitor.stop()
        if self._client is not None:
            await self._client.aclose()
        if not failed:
            self._state = ServerState.STOPPED
        snapshot = self._monitor.publish(self.health())
        log.info("server stopped", **snapshot.summary())
        return snapshot

    async def serve(self, read_stream: Any, write_stream: Any) -> None:
        """Run the MCP session on the given streams until the inbound side closes.

        After a fatal inbound fault the server stays in `error`, health timer
        running, until the caller cancels it.
        """
        send, receive = anyio.create_memory_object_stream(0)
        try:
            await self.start()
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._pump, read_stream, send)
                await self._mcp.run(receive, write_stream, self._mcp.create_initialization_options())
                tg.cancel_scope.cancel()
            if self._state is ServerState.ERROR:
                log.error("inbound stream lost, holding error state until terminated",
                          connection_errors=self._connection_errors)
                await anyio.sleep_forever()
        finally:
            with anyio.CancelScope(shield=True):
                await self.stop()

    async def run_stdio(self) -> None:
        """Attach to stdin/stdout and serve."""
        async with stdio_server() as (read_stream, write_stream):
            await self.serve(read_stream, write_stream)

    async def _pump(
        self,
        source: MemoryObjectReceiveStream[Any],
        sink: MemoryObjectSendStream[Any],
    ) -> None:
        async with sink:
            while True:
                try:
                    item = await source.receive()
                except anyio.EndOfStream:
                    return
                except (anyio.BrokenResourceError, anyio.ClosedResourceError, OSError) as e:
                    self.record_transport_fault(e, fatal=True)
                    return
                if isinstance(item, Exception):
                    self.record_transport_fault(item)
                try:
                    await sink.send(item)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    return

    # ─────────────────────────────────────────────────────────────────
    # MCP Handlers
    # ─────────────────────────────────────────────────────────────────

    def _build_mcp(self) -> Server:
        server: Server = Server(self._name, version=self._version)
        dispatcher = self._dispatcher

        @server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return [
                types.Tool(name=d.name, description=d.description, inputSchema=d.input_schema)
                for d in dispatcher.list_tools()
            ]

        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
            result = await dispatcher.dispatch(name, arguments)
            if result.is_error:
                raise ToolCallError(result.text)
            return [types.TextContent(type="text", text=block.text) for block in result.content]

        return server
