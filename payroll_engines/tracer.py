"""
payroll_engines.tracer -- PAYROLL_ENGINE_TRACE records for engine calls.

Every payroll engine is wrapped by ``@traced_engine``.  Each call leaves one
record naming the engine, its version, a fingerprint of the inputs that
determine the result and how long it took.  Two calls with the same
fingerprint under the same engine version must produce the same payslip
line, which is what makes a disputed payslip replayable.

The employee, period and rule set being computed are not repeated here;
the pipeline binds them on ``LogContext`` and the formatter adds them.

Failure modes:
    - A fingerprint field that is not a parameter of the engine raises
      TypeError when the decorator is applied, not on the first payroll run.
    - An engine that raises still leaves a trace, with ``outcome`` set to
      ``"failed"`` and the error code when the exception carries one.  The
      exception propagates unchanged.

Usage:
    from payroll_engines.tracer import traced_engine

    @traced_engine("contributions", "1.0", fingerprint_fields=("gross_salary",))
    def compute_contributions(gross_salary, rates, scale=2):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import json
import time
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_MESSAGE = "PAYROLL_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce payroll inputs to JSON values with one spelling per amount.

    ``Decimal("1.50")`` and ``Decimal("1.5")`` fingerprint alike; enums
    become their value; requests, rules and attendance become field maps.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if value is None or isinstance(value, (bool, int, str)):
        return value
    return str(value)


def input_fingerprint(arguments: dict[str, Any]) -> str:
    """First 16 hex chars of the SHA-256 of the canonical JSON of ``arguments``."""
    canonical = json.dumps(_plain(arguments), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits PAYROLL_ENGINE_TRACE for each engine call.

    Args:
        engine_name: Engine identifier (e.g., "income_tax").
        engine_version: Bump when the same inputs start producing
            different amounts.
        fingerprint_fields: Parameter names whose values determine the
            result.  Positional and keyword arguments are both covered.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)
        unknown = [name for name in fingerprint_fields if name not in signature.parameters]
        if unknown:
            raise TypeError(
                f"{func.__qualname__} has no parameter(s) {unknown} to fingerprint"
            )

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            fingerprint = input_fingerprint(
                {name: bound.arguments[name] for name in fingerprint_fields}
            )
            trace = {
                "trace_type": TRACE_MESSAGE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
            }

            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                logger.warning(TRACE_MESSAGE, extra={
                    **trace,
                    "outcome": "failed",
                    "error_type": type(exc).__name__,
                    "error_code": getattr(exc, "code", None),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                })
                raise

            logger.info(TRACE_MESSAGE, extra={
                **trace,
                "outcome": "ok",
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return result

        return wrapper

    return decorator
