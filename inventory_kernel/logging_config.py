"""
Module: inventory_kernel.logging_config
Responsibility: One JSON object per log line for everything under the
    ``inventory_kernel`` logger, with the current event's identifiers
    (correlation id, idempotency key, product, producer) attached.
Architecture position: Kernel.  Imported by every layer; imports nothing
    from the project.

Events are snake_case messages (``sale_processed``, ``event_rejected``) with
their data passed through ``extra``.  Exceptions logged with ``exc_info``
contribute ``exc_code`` and their public attributes as ``exc_<name>``.
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
from datetime import UTC, datetime
from typing import Any

_LOGGER_PREFIX = "inventory_kernel"

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"inventory_log_{name}", default=None)
    for name in ("correlation_id", "idempotency_key", "product_id", "producer")
}


class LogContext:
    """
    Per-thread / per-task fields merged into every record.

    ``correlation_id`` is the transport position of the message being
    handled, ``producer`` the source it came from.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set the given fields; None leaves a field unchanged."""
        for name, value in fields.items():
            if value is not None:
                _var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _CONTEXT_VARS.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a block, then restore them."""
        tokens = [
            (_var(name), _var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT_VARS[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name}") from None


# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(obj: Any) -> Any:
    # Decimal amounts keep their scale as strings
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # available / requested / product_id and friends on kernel errors
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.inventory")`` -> ``inventory_kernel.services.inventory``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``inventory_kernel`` logger.

    Only the first call has an effect.  Records do not propagate to the
    root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False
    kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and forget configure_logging().  Used by tests."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
