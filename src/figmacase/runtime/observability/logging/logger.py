"""Structured logging for the server process.

stdout carries the MCP protocol, so every renderer writes to stderr. Loggers
are immutable: `bind()` returns a new logger with merged fields. Fields set by
`log_context` follow the current task across awaits, which is how client
log lines pick up the tool call they belong to.

Values under credential-like keys (token, authorization, secret) are masked
before rendering.

Quick Start:
    >>> from figmacase.runtime.observability import get_logger, configure_logging
    >>>
    >>> configure_logging(format="json", level="DEBUG")
    >>> log = get_logger("figmacase.dispatch")
    >>> log.info("tool completed", tool="get-file", duration_ms=41.2)
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, TextIO, runtime_checkable

import orjson

if TYPE_CHECKING:
    from types import TracebackType

Fields = dict[str, Any]

_MASK = "***"
_SECRET_KEYS = ("token", "authorization", "secret", "password")

_scoped_fields: ContextVar[Fields] = ContextVar("figmacase_log_fields", default={})
_active_renderer: ContextVar[LogRenderer | None] = ContextVar("figmacase_log_renderer", default=None)
_threshold: ContextVar[int] = ContextVar("figmacase_log_level", default=logging.INFO)


def redact(fields: Fields) -> Fields:
    """Copy of `fields` with credential-like values masked."""
    return {k: _MASK if any(s in k.lower() for s in _SECRET_KEYS) else v for k, v in fields.items()}


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying a fixed set of fields.

    Example:
        >>> log = get_logger("figmacase.http").bind(endpoint="/files/abc")
        >>> log.warning("figma api call failed", status=404)
        # => 10:30:45.120 [warning] figma api call failed endpoint=/files/abc logger=figmacase.http status=404
    """

    fields: Fields = field(default_factory=dict)
    renderer: LogRenderer | None = None
    level: int | None = None

    def bind(self, **kw: Any) -> BoundLogger:
        return BoundLogger(fields={**self.fields, **kw}, renderer=self.renderer, level=self.level)

    def is_enabled_for(self, level: int) -> bool:
        return level >= (_threshold.get() if self.level is None else self.level)

    def log(self, level: int, event: str, **kw: Any) -> None:
        if not self.is_enabled_for(level):
            return
        entry = LogEntry(
            timestamp=time.time(),
            level=logging.getLevelName(level).lower(),
            event=event,
            fields=redact({**_scoped_fields.get(), **self.fields, **kw}),
        )
        (self.renderer or current_renderer()).render(entry)

    def debug(self, event: str, **kw: Any) -> None:
        self.log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self.log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self.log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self.log(logging.ERROR, event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Error entry with the active traceback attached as `exc_info`."""
        self.log(logging.ERROR, event, exc_info=traceback.format_exc(), **kw)


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    fields: Fields

    @property
    def iso_time(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def clock_time(self) -> str:
        """HH:MM:SS.mmm in UTC."""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


_ANSI = {"reset": "\033[0m", "dim": "\033[2m", "bold": "\033[1m", "key": "\033[36m", "trace": "\033[31m"}
_PLAIN = dict.fromkeys(_ANSI, "")
_LEVEL_ANSI = {"debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}


def _console_value(v: Any) -> str:
    if isinstance(v, float):
        return f"{v:.2f}"
    if isinstance(v, str) and (" " in v or not v):
        return f'"{v}"'
    return str(v)


@dataclass(slots=True)
class ConsoleRenderer:
    """`time [level] event key=value ...` lines, colored when stderr is a tty."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None
    show_timestamp: bool = True

    def __post_init__(self) -> None:
        if self.colors is None:
            isatty = getattr(self.output, "isatty", None)
            self.colors = bool(isatty and isatty())

    def render(self, entry: LogEntry) -> None:
        a = _ANSI if self.colors else _PLAIN
        level = _LEVEL_ANSI.get(entry.level, "") if self.colors else ""
        head = [f"{a['dim']}{entry.clock_time}{a['reset']}"] if self.show_timestamp else []
        head.append(f"{level}[{entry.level}]{a['reset']} {a['bold']}{entry.event}{a['reset']}")
        pairs = [f"{a['key']}{k}{a['reset']}={_console_value(v)}"
                 for k, v in sorted(entry.fields.items()) if k != "exc_info"]
        print(" ".join(head + pairs), file=self.output, flush=True)
        if trace := entry.fields.get("exc_info"):
            print(f"{a['trace']}{trace}{a['reset']}", file=self.output, flush=True)


@dataclass(slots=True)
class JsonRenderer:
    """One JSON object per line."""

    output: TextIO = field(default_factory=lambda: sys.stderr)

    def render(self, entry: LogEntry) -> None:
        record = {"timestamp": entry.iso_time, "level": entry.level, "event": entry.event, **entry.fields}
        print(orjson.dumps(record, option=orjson.OPT_NON_STR_KEYS, default=str).decode(),
              file=self.output, flush=True)


@dataclass(slots=True)
class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Select the process renderer ("console", "json" or "none") and threshold."""
    renderers: dict[str, Any] = {
        "console": lambda: ConsoleRenderer(output=output or sys.stderr, colors=colors),
        "json": lambda: JsonRenderer(output=output or sys.stderr),
        "none": NoOpRenderer,
    }
    if format not in renderers:
        raise ValueError(f"Unknown log format {format!r}; expected one of {sorted(renderers)}")
    renderer: LogRenderer = renderers[format]()
    numeric = logging.getLevelName(level.upper())
    _threshold.set(numeric if isinstance(numeric, int) else logging.INFO)
    _active_renderer.set(renderer)
    return renderer


def current_renderer() -> LogRenderer:
    """Configured renderer, defaulting to a console renderer on stderr."""
    renderer = _active_renderer.get()
    if renderer is None:
        renderer = ConsoleRenderer()
        _active_renderer.set(renderer)
    return renderer


def get_logger(name: str | None = None, **fields: Any) -> BoundLogger:
    """Logger with `fields` bound; `name` is bound as `logger`."""
    if name:
        fields["logger"] = name
    return BoundLogger(fields=fields)


class log_context:
    """Adds fields to every entry logged inside the block, across awaits.

    Example:
        >>> with log_context(tool="get-file"):
        ...     await client.request("/files/abc")  # client logs carry tool=get-file
    """

    __slots__ = ("_fields", "_reset")

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._reset: Any = None

    def __enter__(self) -> log_context:
        self._reset = _scoped_fields.set({**_scoped_fields.get(), **self._fields})
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        if self._reset is not None:
            _scoped_fields.reset(self._reset)
            self._reset = None
