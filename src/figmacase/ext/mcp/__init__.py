"""MCP server integration (stdio transport via the `mcp` SDK)."""

from .server import FigmaServer, ServerState, ToolCallError, build_registry

__all__ = ["FigmaServer", "ServerState", "ToolCallError", "build_registry"]
