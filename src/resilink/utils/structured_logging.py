r"""Structured logging utilities for machine-readable log output.

The resilience components log through the standard ``logging`` module
with structured ``extra`` fields (operation context, error kind,
connectivity state). This module provides an opt-in JSON formatter
that renders those fields, and a context variable holding the operation
context of the call currently being executed.

Example:
    Enable structured logging for resilink:

    ```python
    import logging
    from resilink.utils.structured_logging import StructuredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger("resilink")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    ```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "clear_operation_context",
    "get_operation_context",
    "log_structured",
    "operation_context",
    "set_operation_context",
]

import contextvars
import json
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

_operation_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation_context", default=None
)

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "msecs",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "sinfo",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


def get_operation_context() -> str | None:
    """Get the operation context of the current task.

    Returns:
        The current operation context, or None if not set.
    """
    return _operation_context.get()


def set_operation_context(context: str) -> None:
    """Set the operation context for the current task.

    The value lives in a context variable, so concurrent asyncio tasks
    each see their own context.

    Args:
        context: The operation context (e.g. ``"loadFeed"``).

    Example:
        ```pycon
        >>> from resilink.utils.structured_logging import (
        ...     clear_operation_context,
        ...     get_operation_context,
        ...     set_operation_context,
        ... )
        >>> set_operation_context("likePost:123")
        >>> get_operation_context()
        'likePost:123'
        >>> clear_operation_context()
        >>> get_operation_context()

        ```
    """
    _operation_context.set(context)


def clear_operation_context() -> None:
    """Clear the operation context for the current task."""
    _operation_context.set(None)


@contextmanager
def operation_context(context: str) -> Iterator[None]:
    """Set the operation context for the duration of a block.

    The previous value is restored on exit.

    Args:
        context: The operation context.
    """
    token = _operation_context.set(context)
    try:
        yield
    finally:
        _operation_context.reset(token)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Standard fields in the JSON output:
        - timestamp: ISO 8601 UTC timestamp
        - level: Log level name
        - logger: Logger name
        - message: Log message
        - operation_context: The operation context, if set
        - module, function, line: Origin of the log call

    Fields passed through ``extra`` are included as-is; values that are
    not JSON serializable are rendered with ``str``.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from resilink.utils.structured_logging import StructuredFormatter
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("doctest_structured")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.INFO)
        >>> logger.info("Queued", extra={"operation_type": "likePost"})
        >>> "operation_type" in stream.getvalue()
        True

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = get_operation_context()
        if context is not None:
            log_data["operation_context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: ARG002
        """Format timestamp as ISO 8601 with millisecond precision."""
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log a message with structured data.

    Args:
        logger: Logger to use.
        level: Log level (e.g., logging.INFO).
        message: Log message.
        **extra: Additional structured fields to include in the log.
    """
    logger.log(level, message, extra=extra)
