"""
Structured JSON logging for the cellar kernel.

Every record under the ``cellar_kernel`` logger is written as one JSON line:
timestamp, level, logger, event name, the request context bound through
``LogContext``, the record's ``extra`` fields and, for exceptions, the error
code and structured details of a ``CellarKernelError``.

Usage::

    logger = get_logger("services.allocation")
    with LogContext.bind(correlation_id=cid, tenant_id=tenant_id):
        logger.info("allocation_started", extra={"batch_count": 2})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ROOT_LOGGER = "cellar_kernel"

# Request-scoped fields, in output order
CONTEXT_FIELDS = ("correlation_id", "tenant_id", "actor_id", "scenario", "lot_id")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"cellar_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _as_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Values may be any object; they are stored as text (enums by value).
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context.  None values are skipped."""
        unknown = set(fields) - set(_context)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        for name, value in fields.items():
            if value is not None:
                _context[name].set(_as_text(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        values = ((name, var.get()) for name, var in _context.items())
        return {name: value for name, value in values if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in _context.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Set fields for the duration of a ``with`` block, then restore them.

        Unknown names and None values are ignored.
        """
        tokens = [
            (_context[name], _context[name].set(_as_text(value)))
            for name, value in fields.items()
            if value is not None and name in _context
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """Type, message and, for kernel errors, code, HTTP status and details."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields["exc_http_status"] = getattr(exc, "http_status", None)
    details = getattr(exc, "details", None)
    if callable(details):
        for key, value in details().items():
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``cellar_kernel`` namespace; ``name`` may already be qualified."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Logger:
    """
    Attach a JSON handler to the ``cellar_kernel`` logger.

    Only the first call takes effect until ``reset_logging()``.
    """
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    with _lock:
        if _configured:
            return root
        _configured = True
        if handler is None:
            handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False
    return root


def reset_logging() -> None:
    """Detach all handlers and allow ``configure_logging`` again.  Test support."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    with _lock:
        _configured = False
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.setLevel(logging.WARNING)
        root.propagate = True
