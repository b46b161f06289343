"""Contextual logging for framebridge.

Modules log through standard ``logging`` loggers. This module adds a small
structured layer on top:

- ``log_context(**fields)`` pushes fields (frame key, operation) that are
  attached to every record logged inside the block
- ``configure_logging`` installs a handler with a console, logfmt or JSON
  formatter on the ``framebridge`` logger

Example:
    >>> from framebridge.logging import configure_logging, log_context
    >>> configure_logging(level="DEBUG", format="logfmt")
    >>> with log_context(frame_key="frame_1a2b"):
    ...     logger.info("Dispatching partitions")
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

ROOT_LOGGER = "framebridge"

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


# =============================================================================
# Log Context
# =============================================================================


class LogContext:
    """Thread-local stack of context fields."""

    _local = threading.local()

    @classmethod
    def get_current(cls) -> dict[str, Any]:
        """Get current context fields."""
        if not hasattr(cls._local, "stack"):
            cls._local.stack = [{}]
        result: dict[str, Any] = {}
        for ctx in cls._local.stack:
            result.update(ctx)
        return result

    @classmethod
    def push(cls, **fields: Any) -> None:
        if not hasattr(cls._local, "stack"):
            cls._local.stack = [{}]
        cls._local.stack.append(fields)

    @classmethod
    def pop(cls) -> dict[str, Any]:
        if hasattr(cls._local, "stack") and len(cls._local.stack) > 1:
            return cls._local.stack.pop()
        return {}

    @classmethod
    def clear(cls) -> None:
        cls._local.stack = [{}]


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Context manager for adding fields to log records.

    Args:
        **fields: Key-value pairs to add to context.
    """
    LogContext.push(**fields)
    try:
        yield
    finally:
        LogContext.pop()


class ContextFilter(logging.Filter):
    """Attach the current log context to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get_current().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED}


# =============================================================================
# Formatters
# =============================================================================


class ConsoleFormatter(logging.Formatter):
    """Human-readable single-line format with context fields appended."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = f"{timestamp} {record.levelname:<7} {record.name}: {record.getMessage()}"
        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class LogfmtFormatter(logging.Formatter):
    """``key=value`` format."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields.update(_extra_fields(record))
        parts = []
        for key, value in fields.items():
            text = str(value)
            if " " in text or '"' in text or "=" in text:
                text = '"' + text.replace('"', '\\"') + '"'
            parts.append(f"{key}={text}")
        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(_extra_fields(record))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "console": ConsoleFormatter,
    "logfmt": LogfmtFormatter,
    "json": JSONFormatter,
}


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    *,
    level: int | str = logging.INFO,
    format: str = "console",
    stream: TextIO | None = None,
) -> logging.Handler:
    """Install a handler on the ``framebridge`` logger.

    Calling again replaces the previously installed handler.

    Args:
        level: Log level name or number.
        format: Output format ("console", "logfmt", "json").
        stream: Output stream (defaults to stderr).

    Returns:
        The installed handler.
    """
    if format not in _FORMATTERS:
        raise ValueError(f"Unknown log format: {format}")

    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_framebridge", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_FORMATTERS[format]())
    handler.addFilter(ContextFilter())
    handler._framebridge = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the context filter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, ContextFilter) for f in logger.filters):
        logger.addFilter(ContextFilter())
    return logger
