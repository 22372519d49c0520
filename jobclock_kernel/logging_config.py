"""
Structured JSON logging for the jobclock kernel.

Every kernel module logs through ``get_logger("<layer>.<module>")`` under the
``jobclock_kernel`` namespace.  Messages are short snake_case event names
(``clock_out_completed``); details travel in ``extra``.  Per-call fields
(job, actor, operation, correlation id) are bound once with
``LogContext.bind()`` and appear on every line emitted inside the block,
including lines from the coordinator and audit logger.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "OperationTimer",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "jobclock_kernel"


# ---------------------------------------------------------------------------
# Per-call context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "job_id", "actor_id", "operation")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"jobclock_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Context-variable backed fields added to every log line (thread and task safe)."""

    fields = _CONTEXT_FIELDS

    @classmethod
    def set(cls, **values: str | None) -> None:
        """Set fields for the rest of the current context.  None values are ignored."""
        for name, value in values.items():
            if value is not None:
                _context_vars[cls._check(name)].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **values: str | None) -> Iterator[None]:
        """Set fields for the duration of the block, restoring previous values after."""
        tokens = [
            (_context_vars[cls._check(name)], _context_vars[name].set(value))
            for name, value in values.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @staticmethod
    def _check(name: str) -> str:
        if name not in _context_vars:
            raise KeyError(f"Unknown log context field: {name}")
        return name


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Keys: ``ts``, ``level``, ``logger``, ``message``, the bound LogContext
    fields, then every ``extra`` field.  When an exception is attached its
    type, ``code`` and public attributes are added as ``exc_*`` keys along
    with the traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger named ``jobclock_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


class OperationTimer:
    """
    Logs ``<operation>_started`` on creation and ``<operation>_completed``,
    with ``duration_ms``, when ``completed()`` is called.
    """

    def __init__(self, logger: logging.Logger, operation: str, **fields: Any):
        self._logger = logger
        self._operation = operation
        self._start = time.monotonic()
        logger.info(f"{operation}_started", extra=fields)

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self._start) * 1000, 2)

    def completed(self, **fields: Any) -> None:
        self._logger.info(
            f"{self._operation}_completed",
            extra={**fields, "duration_ms": self.elapsed_ms},
        )


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_configured = False
_setup_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``jobclock_kernel`` logger.  Later calls are no-ops."""
    global _configured
    with _setup_lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    handler = handler or logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging().  Tests only."""
    global _configured
    with _setup_lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
