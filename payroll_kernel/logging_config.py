"""
Structured JSON logging for payroll runs.

Every record under the ``payroll_kernel`` logger is written as one JSON
line.  Records are tagged with the payroll run they belong to (batch,
employee, pay period and rule set) from a ``RunContext`` held in a
ContextVar, so engines deep in a calculation log without being handed any
of those ids.

Usage::

    from payroll_kernel.logging_config import LogContext, get_logger

    logger = get_logger("services.pipeline")
    with LogContext.bind(employee_id="EMP-001", period="2024-01"):
        logger.info("payroll_calculation_started", extra={"base_salary": "500000"})

Worker threads start with an empty context; the bulk orchestrator binds
``batch_id`` and ``employee_id`` inside each worker.
"""

__all__ = [
    "RunContext",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

LOGGER_NAMESPACE = "payroll_kernel"

# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class RunContext:
    """Identifiers of the payroll run a log record belongs to."""

    batch_id: str | None = None
    employee_id: str | None = None
    period: str | None = None
    rule_set_id: str | None = None

    def as_fields(self) -> dict[str, str]:
        """The identifiers that are set, keyed by field name."""
        fields: dict[str, str] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is not None:
                fields[f.name] = value
        return fields


_run_context: ContextVar[RunContext] = ContextVar(
    "payroll_run_context", default=RunContext()
)


class LogContext:
    """Read and narrow the run context of the current thread or task."""

    @staticmethod
    def current() -> RunContext:
        return _run_context.get()

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return cls.current().as_fields()

    @staticmethod
    def clear() -> None:
        _run_context.set(RunContext())

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[RunContext]:
        """Set run identifiers for the duration of a block.

        ``None`` leaves a field as it was.  The previous context is restored
        on exit, also when the block raises.

        Raises:
            TypeError: If a name is not a ``RunContext`` field.
        """
        updates = {name: value for name, value in fields.items() if value is not None}
        token = _run_context.set(dataclasses.replace(_run_context.get(), **updates))
        try:
            yield _run_context.get()
        finally:
            _run_context.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """Amounts stay exact strings; dates are ISO; periods render as YYYY-MM."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_"):
            continue
        if name == "validation_result":
            fields["exc_error_codes"] = list(value.error_codes)
            fields["exc_warning_codes"] = list(value.warning_codes)
        else:
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line.

    Key order: envelope (ts, level, logger, message), run context, then the
    record's ``extra`` fields.  An extra never overwrites an envelope or
    context key.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the payroll_kernel namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Send payroll_kernel records to one JSON handler.

    Only the first call has an effect until ``reset_logging()``.  Records do
    not propagate to the root logger, so the embedding application's own
    handlers never see them twice.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.setLevel(level)
        namespace.propagate = False

        h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        h.setFormatter(StructuredFormatter())
        namespace.addHandler(h)


def reset_logging() -> None:
    """Remove the handlers installed by ``configure_logging``."""
    global _configured
    with _lock:
        _configured = False
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.handlers.clear()
        namespace.setLevel(logging.WARNING)
