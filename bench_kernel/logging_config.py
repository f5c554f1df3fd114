"""
Structured JSON logging for the engagement lifecycle.

Every record under the ``bench_kernel`` logger namespace is written as one
JSON object per line:

    {"ts": ..., "level": "INFO", "logger": "bench_kernel.modules...",
     "message": "offer_sent", "correlation_id": ..., "operation": "send_offer",
     "request_id": ..., "offered_rate": "95"}

Messages are event names.  Identifiers and amounts go in ``extra=``.  The
operation boundary binds the operation-scoped fields (correlation id,
operation name, acting company and user, entity id) through
``LogContext`` so services never pass them around.
"""

__all__ = [
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

_LOGGER_PREFIX = "bench_kernel"

_CONTEXT_FIELDS = (
    "correlation_id",
    "operation",
    "actor_company_id",
    "actor_user_id",
    "entity_id",
    "trace_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("bench_log_context", default={})


class LogContext:
    """Operation-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def _merged(fields: dict[str, Any]) -> dict[str, str]:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context; None leaves a field as is."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields inside the ``with`` block and restore the previous ones after."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


# Attributes every LogRecord carries; anything else on a record came from extra=
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        envelope = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload: dict[str, Any] = {**envelope, **LogContext.get_all()}
        # extra= fields win over bound context, never over the envelope
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in envelope:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            payload["exc_type"] = type(error).__name__
            payload["exc_message"] = str(error)
            code = getattr(error, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # Kernel errors keep their context as attributes (entity_type, field, ...)
            for key, value in vars(error).items():
                if not key.startswith("_") and key != "code":
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``bench_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``bench_kernel`` namespace once per process."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.setLevel(level)
    namespace.propagate = False
    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging() again; used by tests."""
    global _configured
    with _lock:
        _configured = False
    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
