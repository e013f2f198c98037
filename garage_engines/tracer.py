"""
garage_engines.tracer -- GARAGE_ENGINE_TRACE records for engine calls.

Each decorated engine method logs one record per call naming the engine,
its version, how long the call took and a fingerprint of the keyword inputs
that identify the calculation (part id, live stock, period and so on).
Two reports over an unchanged event log produce the same fingerprints, so a
diverging figure can be traced to diverging inputs.

The decorator only observes.  It never touches arguments or results and
adds no I/O beyond the log record.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

TRACE_TYPE = "GARAGE_ENGINE_TRACE"

_FINGERPRINT_CHARS = 16

_logger = logging.getLogger("garage_kernel.engines.tracer")


def _stable_text(value: Any) -> str:
    # Mappings are key-sorted; sequences keep their order.
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        body = ",".join(
            f"{key}:{_stable_text(value[key])}"
            for key in sorted(value, key=str)
        )
        return f"{{{body}}}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(map(_stable_text, value)) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return type(value).__name__ + _stable_text(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """Short SHA-256 digest of the named keyword inputs; absent ones hash as null."""
    canonical = "|".join(
        f"{name}={_stable_text(kwargs.get(name))}" for name in fingerprint_fields
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:_FINGERPRINT_CHARS]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap an engine entry point so every call logs a GARAGE_ENGINE_TRACE.

    ``fingerprint_fields`` names keyword arguments; engines take their inputs
    keyword-only so the fingerprint sees them.
    """

    def decorate(func: Callable) -> Callable:
        static = {
            "trace_type": TRACE_TYPE,
            "engine_name": engine_name,
            "engine_version": engine_version,
            "function": func.__qualname__,
        }

        @functools.wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000

            _logger.info(TRACE_TYPE, extra={
                **static,
                "input_fingerprint": fingerprint,
                "duration_ms": round(elapsed_ms, 2),
            })
            return result

        return traced

    return decorate
