"""
bench_engines.tracer -- BENCH_ENGINE_TRACE records for pure engine calls.

``@traced_engine`` wraps a keyword-only engine function and logs one
record per call: engine name and version, a fingerprint of the inputs
that decide the result (rate, currency, founding-member state), and the
wall time.  Two calls with the same deciding inputs share a fingerprint,
so a trace can be matched to the invoice or fee quote it produced.

Decimals are normalised before hashing: ``Decimal("50")`` and the
``Decimal("50.000000000")`` read back from ``Numeric(38, 9)`` columns
fingerprint the same.
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any

from bench_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _stable_text(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return "{" + ",".join(
            f"{key}:{_stable_text(value[key])}" for key in sorted(value)
        ) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_stable_text(v) for v in value) + "]"
    return str(value)


def input_fingerprint(fields: tuple[str, ...], inputs: dict[str, Any]) -> str:
    """Short SHA-256 digest of the named keyword inputs, in field order."""
    joined = ";".join(f"{name}={_stable_text(inputs.get(name))}" for name in fields)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Log a BENCH_ENGINE_TRACE record around every call of the engine.

    A call that raises is logged as ``engine_rejected_input`` at WARNING
    and the exception propagates unchanged.
    """

    def decorator(engine: Callable) -> Callable:
        @functools.wraps(engine)
        def traced(*args: Any, **kwargs: Any) -> Any:
            fingerprint = input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            started = time.perf_counter()
            try:
                result = engine(*args, **kwargs)
            except ValueError as e:
                logger.warning(
                    "engine_rejected_input",
                    extra={
                        "engine_name": engine_name,
                        "input_fingerprint": fingerprint,
                        "error": str(e),
                    },
                )
                raise
            logger.info(
                "BENCH_ENGINE_TRACE",
                extra={
                    "trace_type": "BENCH_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                },
            )
            return result

        return traced

    return decorator
