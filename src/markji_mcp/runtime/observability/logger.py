"""Structured event logging for the batch core and tool calls.

Events are short phrases ("batch started", "item failed") with key/value
context attached. Keywords passed to the call override values bound on the
logger, which in turn override the ambient ``log_context`` scope.

Nothing here writes to stdout. Under the stdio transport stdout is the MCP
protocol stream, so every renderer defaults to stderr.

    >>> log = get_logger("markji_mcp.batch")
    >>> with log_context(tool="getCards"):
    ...     log.info("batch started", items=3)
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import orjson

from markji_mcp.foundation.errors import JsonDict, JsonValue

if TYPE_CHECKING:
    from collections.abc import Iterator

_scope: ContextVar[JsonDict] = ContextVar("markji_log_scope", default={})
_active: ContextVar[LogRenderer | None] = ContextVar("markji_log_renderer", default=None)
_threshold: ContextVar[int] = ContextVar("markji_log_threshold", default=logging.INFO)


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    def clock(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]

    def as_record(self) -> JsonDict:
        stamp = datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()
        return {"timestamp": stamp, "level": self.level, "event": self.event, **self.context}


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying fixed context, such as its name.

    ``_renderer`` and ``_level`` pin this logger to a renderer and threshold.
    Left unset, it follows whatever ``configure_logging`` last installed.
    """

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int | None = None

    def _emit(self, level: int, event: str, kw: JsonDict) -> None:
        floor = _threshold.get() if self._level is None else self._level
        if level < floor:
            return
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event,
                         {**_scope.get(), **self.context, **kw})
        (self._renderer or _current_renderer()).render(entry)

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.INFO, event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.WARNING, event, kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.ERROR, event, kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error-level event with the active traceback under ``exc_info``."""
        self._emit(logging.ERROR, event, {**kw, "exc_info": traceback.format_exc()})


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────

_ANSI = {"debug": "2", "info": "32", "warning": "33", "error": "31"}


def _paint(text: str, code: str, on: bool) -> str:
    return f"\033[{code}m{text}\033[0m" if on else text


@dataclass(slots=True)
class ConsoleRenderer:
    """``12:00:01.250 [info] batch completed failed=1 succeeded=2``"""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None

    def __post_init__(self) -> None:
        if self.colors is None:
            isatty = getattr(self.output, "isatty", None)
            self.colors = bool(isatty and isatty())

    def render(self, entry: LogEntry) -> None:
        on = bool(self.colors)
        ctx = dict(entry.context)
        exc_info = ctx.pop("exc_info", None)
        line = [
            _paint(entry.clock(), "2", on),
            _paint(f"[{entry.level}]", _ANSI.get(entry.level, "2"), on),
            _paint(entry.event, "1", on),
            *(f"{_paint(k, '36', on)}={v!r}" if isinstance(v, str) else f"{_paint(k, '36', on)}={v}"
              for k, v in sorted(ctx.items())),
        ]
        print(" ".join(line), file=self.output)
        if exc_info:
            print(_paint(str(exc_info), "31", on), file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """One JSON object per line."""

    output: TextIO = field(default_factory=lambda: sys.stderr)

    def render(self, entry: LogEntry) -> None:
        self.output.write(orjson.dumps(entry.as_record(), default=str).decode() + "\n")


class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        return None


@dataclass(slots=True)
class MemoryRenderer:
    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self) -> list[str]:
        return [e.event for e in self.entries]


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
    """Install a renderer ("console", "json" or "none") and the level threshold.

    The stdlib root logger is pointed at the same stream, which covers the
    plain ``logging`` records of the retry executor.
    """
    stream = output or sys.stderr
    renderers = {
        "console": lambda: ConsoleRenderer(stream, colors),
        "json": lambda: JsonRenderer(stream),
        "none": NoOpRenderer,
    }
    if format not in renderers:
        raise ValueError(f"Unknown log format {format!r}; expected one of {', '.join(renderers)}")
    renderer: LogRenderer = renderers[format]()
    threshold = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    _threshold.set(threshold)
    _active.set(renderer)
    logging.basicConfig(
        level=logging.CRITICAL if format == "none" else threshold,
        stream=stream,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    return renderer


def set_renderer(renderer: LogRenderer | None) -> None:
    _active.set(renderer)


def _current_renderer() -> LogRenderer:
    renderer = _active.get()
    if renderer is None:
        renderer = ConsoleRenderer()
        _active.set(renderer)
    return renderer


def get_logger(name: str | None = None, **context: JsonValue) -> BoundLogger:
    if name:
        context["logger"] = name
    return BoundLogger(context)


@contextmanager
def log_context(**kw: JsonValue) -> Iterator[None]:
    """Attach ``kw`` to every event logged inside the block."""
    token = _scope.set({**_scope.get(), **kw})
    try:
        yield
    finally:
        _scope.reset(token)
