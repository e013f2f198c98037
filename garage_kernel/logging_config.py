"""
Structured JSON logging for the garage reconciliation kernel.

Every log line is one JSON object: timestamp, level, logger, message, the
report-scoped fields held in ``LogContext`` and any ``extra`` keys passed at
the call site.  Report fan-out copies the caller's context into worker
threads, so a part reconciled on a pool thread still logs the ``report_id``
of the report that asked for it.

Usage:
    logger = get_logger("services.reporting")
    with LogContext.bind(report_id=report_id, part_id=part_id):
        logger.info("stock_reconciled", extra={"end_stock": 50})
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any
from uuid import UUID

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar("garage_log_context", default=_EMPTY)


class LogContext:
    """
    Report-scoped log fields carried by a ContextVar.

    The whole field set lives in one immutable mapping, so copying a
    context (``contextvars.copy_context``) hands a worker a consistent
    snapshot.
    """

    FIELDS = frozenset({
        "correlation_id",
        "report_id",
        "part_id",
        "vehicle_id",
        "actor_id",
    })

    @classmethod
    def _merge(cls, fields: Mapping[str, str | None]) -> Mapping[str, str]:
        unknown = set(fields) - cls.FIELDS
        if unknown:
            raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set fields for the rest of the current context.  None is ignored."""
        _context.set(cls._merge(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type[LogContext]]:
        """Set fields on entry and restore the previous set on exit."""
        token = _context.set(cls._merge(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatting
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Quantities and money keep their exact text form.
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Kernel errors keep their context as public attributes (part_id, ...).
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_ROOT = "garage_kernel"

_state = {"configured": False}
_state_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger named ``garage_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``garage_kernel`` logger.

    Only the first call has an effect; later calls (engine start-up, facade
    construction) keep whatever the application configured first.
    """
    with _state_lock:
        if _state["configured"]:
            return
        _state["configured"] = True

        root = logging.getLogger(_ROOT)
        root.setLevel(level)
        root.propagate = False
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and forget configuration.  For tests."""
    with _state_lock:
        _state["configured"] = False
        root = logging.getLogger(_ROOT)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
