"""Logging helpers: structured event context, formatters and line compaction."""

from __future__ import annotations

import copy
import logging

from .constants import COLOR_RESET, LOG_LEVEL_COLORS

EVENT_CONTEXT_FIELDS = ("probe", "trial", "state", "host")
"""Structured context attributes attached to every record after `evt`."""

_DEFAULT_EVENT = "GEN"
_DEFAULT_CONTEXT_VALUE = "-"


class EventContextFilter(logging.Filter):
    """Ensure every record carries the structured event attributes."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "evt", None):
            record.evt = _DEFAULT_EVENT
        for field in EVENT_CONTEXT_FIELDS:
            if getattr(record, field, None) in (None, ""):
                setattr(record, field, _DEFAULT_CONTEXT_VALUE)
        return True


def _context_value(record: logging.LogRecord, field: str) -> str:
    return str(getattr(record, field, _DEFAULT_CONTEXT_VALUE) or _DEFAULT_CONTEXT_VALUE)


class EventFormatter(logging.Formatter):
    """Render the base format followed by every structured context field."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts = [f"evt={getattr(record, 'evt', _DEFAULT_EVENT) or _DEFAULT_EVENT}"]
        parts.extend(f"{field}={_context_value(record, field)}" for field in EVENT_CONTEXT_FIELDS)
        return f"{base} {' '.join(parts)}"


class ConciseEventFormatter(logging.Formatter):
    """Render only context fields that carry information."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts: list[str] = []
        evt = getattr(record, "evt", _DEFAULT_EVENT) or _DEFAULT_EVENT
        if evt != _DEFAULT_EVENT:
            parts.append(f"evt={evt}")
        for field in EVENT_CONTEXT_FIELDS:
            value = _context_value(record, field)
            if value != _DEFAULT_CONTEXT_VALUE:
                parts.append(f"{field}={value}")
        if not parts:
            return base
        return f"{base} {' '.join(parts)}"


def _colorize(record: logging.LogRecord) -> logging.LogRecord:
    color = LOG_LEVEL_COLORS.get(record.levelno)
    if color is None:
        return record
    colored = copy.copy(record)
    colored.levelname = f"{color}{record.levelname}{COLOR_RESET}"
    return colored


class ColoredEventFormatter(EventFormatter):
    """EventFormatter with ANSI-colored level names."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_colorize(record))


class ColoredConciseEventFormatter(ConciseEventFormatter):
    """ConciseEventFormatter with ANSI-colored level names."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_colorize(record))


class CompactingHandler(logging.Handler):
    """Collapse consecutive identical INFO/DEBUG lines into one `+N line` record.

    The latest record is held back until a different message arrives or the
    handler is flushed. WARNING and above are never held back.
    """

    def __init__(self, delegate: logging.Handler) -> None:
        super().__init__(level=delegate.level)
        self.delegate = delegate
        self._pending: logging.LogRecord | None = None
        self._pending_text: str | None = None
        self._count = 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = record.getMessage()
        except Exception:  # pragma: no cover - malformed format args
            self.handleError(record)
            return
        if record.levelno >= logging.WARNING:
            self._emit_pending()
            self.delegate.handle(record)
            return
        if self._pending is not None and text == self._pending_text:
            self._count += 1
            return
        self._emit_pending()
        self._pending = record
        self._pending_text = text
        self._count = 1

    def _emit_pending(self) -> None:
        record = self._pending
        if record is None:
            return
        if self._count > 1:
            summary = copy.copy(record)
            summary.msg = f"+{self._count} {self._pending_text}"
            summary.args = None
            record = summary
        self._pending = None
        self._pending_text = None
        self._count = 0
        self.delegate.handle(record)

    def flush(self) -> None:
        self.acquire()
        try:
            self._emit_pending()
            self.delegate.flush()
        finally:
            self.release()

    def close(self) -> None:
        self.flush()
        self.delegate.close()
        super().close()


__all__ = [
    "EVENT_CONTEXT_FIELDS",
    "EventContextFilter",
    "EventFormatter",
    "ConciseEventFormatter",
    "ColoredEventFormatter",
    "ColoredConciseEventFormatter",
    "CompactingHandler",
]
