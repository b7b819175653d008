"""figmacase - Figma design-file operations as MCP tools.

Exposes Figma files, projects, components and variables to an agent as named
tools over MCP stdio. Reads are served from a TTL + LRU cache in front of a
rate-limit-aware client; every call feeds telemetry that a health monitor
publishes on a timer.

Quick Start:
    $ export FIGMA_ACCESS_TOKEN=figd_...
    $ figmacase --debug

Programmatic:
    >>> from figmacase import FigmaClient, MemoryCache, ToolRegistry, figma_tools
    >>> from figmacase import Aggregator, Dispatcher
    >>>
    >>> registry = ToolRegistry()
    >>> registry.register_all(*figma_tools(FigmaClient("figd_..."), MemoryCache()))
    >>> dispatcher = Dispatcher(registry, Aggregator())
    >>> result = await dispatcher.dispatch("get-file", {"fileKey": "abc123"})
    >>> print(result.text)
"""

from __future__ import annotations

__version__ = "1.0.0"

# Core
from .foundation.core import BaseTool, Context, TextContent, ToolDefinition, ToolMetadata, ToolResult

# Errors
from .foundation.errors import (
    ArgumentError,
    ConfigurationError,
    ErrorCode,
    ToolError,
    TransportFault,
    UnknownToolError,
    UpstreamError,
    classify_exception,
)

# Config
from .foundation.config import FigmacaseSettings, clear_settings_cache, get_settings

# Registry
from .foundation.registry import ToolRegistry

# Cache
from .io.cache import DEFAULT_TTL, MemoryCache, ResponseCache, cache_through, make_key

# Runtime
from .runtime.dispatch import Dispatcher
from .runtime.health import HealthMonitor, HealthSnapshot
from .runtime.observability import configure_logging, get_logger
from .runtime.telemetry import Aggregator, ApiCallStats, ConnectionStats, StatsUpdate, merge

# Tools
from .tools import CallOutcome, FigmaClient, figma_tools

# Server
from .ext.mcp import FigmaServer, ServerState, build_registry

__all__ = [
    "__version__",
    # Core
    "BaseTool", "Context", "TextContent", "ToolDefinition", "ToolMetadata", "ToolResult",
    # Errors
    "ArgumentError", "ConfigurationError", "ErrorCode", "ToolError", "TransportFault",
    "UnknownToolError", "UpstreamError", "classify_exception",
    # Config
    "FigmacaseSettings", "get_settings", "clear_settings_cache",
    # Registry
    "ToolRegistry",
    # Cache
    "DEFAULT_TTL", "MemoryCache", "ResponseCache", "cache_through", "make_key",
    # Runtime
    "Dispatcher", "HealthMonitor", "HealthSnapshot", "configure_logging", "get_logger",
    "Aggregator", "ApiCallStats", "ConnectionStats", "StatsUpdate", "merge",
    # Tools
    "CallOutcome", "FigmaClient", "figma_tools",
    # Server
    "FigmaServer", "ServerState", "build_registry",
]
