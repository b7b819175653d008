"""Unified error handling for figmacase.

- ErrorCode: Standard error codes for tool failures
- ToolError: Structured error rendered into error results
- ArgumentError/UnknownToolError/UpstreamError/TransportFault: runtime taxonomy
"""

from .errors import (
    ArgumentError,
    ConfigurationError,
    ErrorCode,
    FigmacaseError,
    ToolError,
    TransportFault,
    UnknownToolError,
    UpstreamError,
    classify_exception,
    code_for_status,
)

__all__ = [
    "ErrorCode", "ToolError", "classify_exception", "code_for_status",
    "FigmacaseError", "ArgumentError", "UnknownToolError", "UpstreamError",
    "TransportFault", "ConfigurationError",
]
