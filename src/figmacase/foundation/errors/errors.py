"""Error codes, the ToolError value, and the exceptions raised inside the runtime.

None of these exceptions reach the MCP client. The dispatcher turns each one
into an error ToolResult whose text is the exception message.
"""

from __future__ import annotations

import time
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCode(StrEnum):
    API_KEY_MISSING = "API_KEY_MISSING"
    API_KEY_INVALID = "API_KEY_INVALID"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_PARAMS = "INVALID_PARAMS"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    PARSE_ERROR = "PARSE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UNKNOWN = "UNKNOWN"


# First match wins; matched against "<ExceptionType> <message>" in lower case.
_KEYWORD_RULES: tuple[tuple[tuple[str, ...], ErrorCode], ...] = (
    (("timeout", "timed out"), ErrorCode.TIMEOUT),
    (("connect", "network", "reset by peer", "unreachable"), ErrorCode.NETWORK_ERROR),
    (("rate limit", "too many requests"), ErrorCode.RATE_LIMITED),
    (("unauthorized", "invalid token", "x-figma-token"), ErrorCode.API_KEY_INVALID),
    (("forbidden", "permission", "access denied"), ErrorCode.PERMISSION_DENIED),
    (("jsondecode", "decode", "malformed"), ErrorCode.PARSE_ERROR),
    (("validation",), ErrorCode.INVALID_PARAMS),
    (("not found", "notfound"), ErrorCode.NOT_FOUND),
)

_STATUS_CODES: dict[int, ErrorCode] = {
    401: ErrorCode.API_KEY_INVALID,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMITED,
}

_RETRYABLE_CODES = frozenset({ErrorCode.RATE_LIMITED, ErrorCode.TIMEOUT, ErrorCode.NETWORK_ERROR})


@lru_cache(maxsize=256)
def _match_keywords(text: str) -> ErrorCode:
    for keywords, code in _KEYWORD_RULES:
        if any(k in text for k in keywords):
            return code
    return ErrorCode.EXTERNAL_SERVICE_ERROR


def classify_exception(exc: Exception) -> ErrorCode:
    """ErrorCode for `exc`; runtime exceptions carry their own, others match on type name and message."""
    if isinstance(exc, FigmacaseError):
        return exc.code
    return _match_keywords(f"{type(exc).__name__} {exc}".lower())


def code_for_status(status: int | None) -> ErrorCode:
    """ErrorCode for a Figma API status; None means no response arrived."""
    if status is None:
        return ErrorCode.NETWORK_ERROR
    return _STATUS_CODES.get(status, ErrorCode.EXTERNAL_SERVICE_ERROR)


class ToolError(BaseModel):
    """A tool failure as a value: which tool, what to tell the caller, and how to classify it."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, validate_default=True)

    tool_name: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1, description="Text returned to the MCP client")]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True

    @field_validator("message", mode="before")
    @classmethod
    def _stringify(cls, v: str | Exception) -> str:
        return str(v) if isinstance(v, Exception) else v

    @computed_field
    @property
    def is_retryable(self) -> bool:
        return self.code in _RETRYABLE_CODES

    @classmethod
    def create(cls, tool_name: str, message: str, code: ErrorCode = ErrorCode.UNKNOWN, *,
               recoverable: bool = True) -> Self:
        return cls(tool_name=tool_name, message=message, code=code, recoverable=recoverable)

    @classmethod
    def from_exception(cls, tool_name: str, exc: Exception, context: str = "") -> Self:
        """Classified error for `exc`, its message prefixed with `context` when given."""
        code = classify_exception(exc)
        message = f"{context}: {exc}" if context else str(exc)
        return cls(tool_name=tool_name, message=message, code=code, recoverable=code in _RETRYABLE_CODES)

    def render(self) -> str:
        return self.message

    __str__ = render


# ═══════════════════════════════════════════════════════════════════════════════
# Runtime Exceptions
# ═══════════════════════════════════════════════════════════════════════════════


class FigmacaseError(Exception):
    """Base for runtime exceptions carrying an ErrorCode."""

    code: ErrorCode = ErrorCode.UNKNOWN


class ArgumentError(FigmacaseError):
    """Caller-supplied arguments failed the tool's declared shape.

    Carries one `<field-path>: <reason>` entry per failing field.
    """

    code = ErrorCode.INVALID_PARAMS
    __slots__ = ("tool_name", "issues")

    def __init__(self, tool_name: str, issues: list[str]) -> None:
        self.tool_name = tool_name
        self.issues = issues
        super().__init__(f"Invalid arguments: {', '.join(issues)}")


class UnknownToolError(FigmacaseError):
    """Tool name is not in the registry."""

    code = ErrorCode.UNKNOWN_TOOL
    __slots__ = ("tool_name",)

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class UpstreamError(FigmacaseError):
    """Non-success HTTP status or network failure talking to the Figma API.

    Attributes:
        status: HTTP status code, or None when no response was received
        endpoint: API path relative to the base URL
    """

    __slots__ = ("status", "endpoint")

    def __init__(self, message: str, *, endpoint: str, status: int | None = None) -> None:
        self.status = status
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def code(self) -> ErrorCode:  # type: ignore[override]
        return code_for_status(self.status)

    @property
    def not_found(self) -> bool:
        return self.status == 404

    @property
    def forbidden(self) -> bool:
        return self.status == 403


class TransportFault(FigmacaseError):
    """Failure in the inbound protocol channel itself."""

    code = ErrorCode.TRANSPORT_ERROR
    __slots__ = ("cause", "occurred_at")

    def __init__(self, cause: BaseException | str) -> None:
        self.cause = cause
        self.occurred_at = time.time()
        super().__init__(str(cause))


class ConfigurationError(FigmacaseError):
    """Unrecoverable startup configuration problem (e.g. missing credential)."""

    code = ErrorCode.API_KEY_MISSING
