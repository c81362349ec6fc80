"""
inventory_engines.tracer -- ENGINE_TRACE records for pure engine calls.

Responsibility:
    ``@traced_engine`` logs one record per successful engine call with the
    engine name and version, a fingerprint of the inputs that determine
    the result, the call duration and an optional summary of the result.
    Two calls with the same fingerprint must have produced the same
    allocation, which is what makes a sale's costing reproducible from
    the logs.

Architecture position:
    Engines.  Writes a log record; adds no other I/O to the engine.

Failure modes:
    - Exceptions raised by the engine propagate unchanged and no trace is
      written for the failed call.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from typing import Any

from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")


def _stable_repr(value: Any) -> str:
    if value is None:
        return "null"
    if is_dataclass(value) and not isinstance(value, type):
        inner = ",".join(
            f"{f.name}:{_stable_repr(getattr(value, f.name))}" for f in fields(value)
        )
        return f"{type(value).__name__}({inner})"
    if isinstance(value, Mapping):
        return "{" + ",".join(
            f"{k}:{_stable_repr(v)}" for k, v in sorted(value.items())
        ) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_stable_repr(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over ``name=value`` pairs; unbound names are null."""
    canonical = "|".join(
        f"{name}={_stable_repr(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], dict[str, Any]] | None = None,
) -> Callable:
    """
    Decorate a pure engine function.

    Args:
        engine_name: e.g. "fifo".
        engine_version: bumped whenever the same inputs could produce a
            different result.
        fingerprint_fields: parameter names, positional or keyword, that
            feed the fingerprint.
        summarize: maps the result to extra fields for the trace record.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                try:
                    bound = signature.bind(*args, **kwargs)
                except TypeError:
                    # Let the call itself raise the usual error
                    return func(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.monotonic()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.monotonic() - started) * 1000, 3)

            extra: dict[str, Any] = {
                "trace_type": "ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "duration_ms": elapsed_ms,
                "function": func.__qualname__,
            }
            if summarize is not None:
                extra.update(summarize(result))
            logger.info("ENGINE_TRACE", extra=extra)
            return result

        return wrapper

    return decorator
