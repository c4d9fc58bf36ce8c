"""
Logging utilities for the classification pipeline.

Items run on thread pools, so every line carries the worker thread name and
whatever correlation fields are set for the item being processed (content
id, run id, provider, action, resolved category).
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional


CORRELATION_FIELDS = (
    "content_id",
    "run_id",
    "correlation_id",
    "provider",
    "action",
    "handler_key",
    "category",
    "tier",
)

# Fields shown in the human-readable suffix; the rest are JSON-only
SUFFIX_FIELDS = ("content_id", "provider", "action", "category")


def _record_context(record: logging.LogRecord, fields=CORRELATION_FIELDS) -> Dict[str, Any]:
    """Correlation fields set on a record, in field order."""
    context = {}
    for name in fields:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Keys: ``ts`` (optional), ``level``, ``logger``, ``thread``, ``msg``,
    ``context`` (correlation fields, omitted when empty) and ``exc``.
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {}
        if self.include_timestamp:
            entry["ts"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        entry.update({
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        })

        context = _record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Plain text lines for terminals.

    Format: ``TIME LEVEL [thread] logger: message (content_id=.. action=..)``
    """

    def __init__(self, include_timestamp: bool = True):
        fmt = "%(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
        if include_timestamp:
            fmt = "%(asctime)s " + fmt
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record, SUFFIX_FIELDS)
        if not context:
            return line
        return f"{line} ({' '.join(f'{k}={v}' for k, v in context.items())})"


def configure_logging(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    include_timestamp: bool = True,
    structured: bool = False,
    stream=None,
) -> None:
    """
    Configure logging for the pipeline packages.

    Attaches a single stream handler to each pipeline package logger.

    Args:
        level: Logging level (default: INFO)
        format_string: Custom format string (optional, ignored if structured=True)
        include_timestamp: Whether to include timestamp in log messages
        structured: If True, output JSON-structured logs; if False, human-readable
        stream: Output stream (default: stdout)

    Example:
        >>> from classify.core.logging import configure_logging
        >>> configure_logging(level=logging.DEBUG, structured=True)
    """
    if structured:
        formatter = StructuredFormatter(include_timestamp=include_timestamp)
    elif format_string:
        formatter = logging.Formatter(format_string)
    else:
        formatter = HumanReadableFormatter(include_timestamp=include_timestamp)

    for package in ("classify", "taxonomy", "actions", "pipeline"):
        package_logger = logging.getLogger(package)
        package_logger.setLevel(level)

        # Only add handler if none exist (avoid duplicate handlers)
        if not package_logger.handlers:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setLevel(level)
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)


class CorrelationContext:
    """
    Context manager for adding correlation fields to log records.

    The context is thread-local, so concurrent pipeline runs on a
    thread pool do not see each other's fields.

    Example:
        >>> with CorrelationContext(content_id="42", run_id="abc"):
        ...     log_with_context(logger, logging.INFO, "Classifying")
    """

    _local = threading.local()

    def __init__(
        self,
        content_id: Optional[str] = None,
        run_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ):
        self.context = {
            "content_id": content_id,
            "run_id": run_id,
            "correlation_id": correlation_id,
            **extra,
        }
        self.context = {k: v for k, v in self.context.items() if v is not None}
        self._previous: Optional["CorrelationContext"] = None

    def __enter__(self) -> "CorrelationContext":
        self._previous = getattr(CorrelationContext._local, "current", None)
        CorrelationContext._local.current = self
        return self

    def __exit__(self, *args) -> None:
        CorrelationContext._local.current = self._previous

    @classmethod
    def get_current(cls) -> Dict[str, Any]:
        """Get the current correlation context."""
        current = getattr(cls._local, "current", None)
        if current is None:
            return {}
        return current.context.copy()


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    exc_info: bool = False,
    **extra: Any,
) -> None:
    """
    Log a message with correlation context.

    Merges the current CorrelationContext with any extra fields provided.

    Args:
        logger: The logger to use
        level: Log level (e.g., logging.INFO)
        message: Log message
        exc_info: Attach the exception being handled
        **extra: Additional fields to include
    """
    context = CorrelationContext.get_current()
    context.update({k: v for k, v in extra.items() if v is not None})
    logger.log(level, message, exc_info=exc_info, extra=context)
