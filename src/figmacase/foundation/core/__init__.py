"""Core tool abstractions."""

from .base import (
    BaseTool,
    TextContent,
    ToolDefinition,
    ToolMetadata,
    ToolResult,
    TParams,
    format_validation_error,
)
from .context import Context

__all__ = [
    "BaseTool",
    "Context",
    "ToolMetadata",
    "ToolDefinition",
    "ToolResult",
    "TextContent",
    "TParams",
    "format_validation_error",
]
