"""Figma tools and the REST client they share."""

from .figma import (
    VARIABLE_COLLECTION_NAME,
    CreateVariablesTool,
    DeleteVariablesTool,
    FigmaTool,
    GetFileTool,
    GetVariablesTool,
    ListComponentsTool,
    ListFilesTool,
    UpdateVariablesTool,
    figma_tools,
    format_file_summary,
    upstream_error_message,
)
from .http import CallOutcome, FigmaClient, parse_rate_limit_remaining, parse_rate_limit_reset

__all__ = [
    "FigmaClient",
    "CallOutcome",
    "parse_rate_limit_remaining",
    "parse_rate_limit_reset",
    "FigmaTool",
    "GetFileTool",
    "ListFilesTool",
    "GetVariablesTool",
    "ListComponentsTool",
    "CreateVariablesTool",
    "UpdateVariablesTool",
    "DeleteVariablesTool",
    "figma_tools",
    "format_file_summary",
    "upstream_error_message",
    "VARIABLE_COLLECTION_NAME",
]
