"""
BulkPayrollOrchestrator -- bounded thread-pool fan-out for payroll batches.

Contract:
    ``compute_bulk(requests)`` computes every request against ONE rule
    snapshot resolved at batch start and merges the outcomes into maps
    keyed by employee id.  The snapshot is the one in force on the last
    day of the latest period in the batch, or today if that day has not
    come yet, matching single-employee runs.

Architecture: payroll_batch.  Imports payroll_services and the kernel.
    Nothing imports from payroll_batch.

Invariants enforced:
    - Per-item isolation: a PayrollError for one employee is recorded in
      ``errors`` and never aborts the batch.  Any other exception is a
      defect; it is logged with its traceback and recorded under
      UNEXPECTED_ERROR.
    - Bounded concurrency: at most ``max_workers`` items run at once.
    - Cancellation: once ``cancel_event`` is set, no item that has not
      started is run; it is reported in ``cancelled``.  Finished results
      are kept.
    - Duplicate employee ids are each reported once as DUPLICATE_EMPLOYEE
      and none of them is computed.
    - Completeness: every distinct employee id lands in exactly one of
      ``results``, ``errors`` or ``cancelled``.

Non-goals:
    - No retries and no timeouts.
    - No persistence; the caller stores what it needs.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Sequence
from uuid import uuid4

from payroll_batch.domain.types import (
    DUPLICATE_EMPLOYEE,
    UNEXPECTED_ERROR,
    BulkItemError,
    BulkOperationResult,
    resolve_status,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import PayrollRequest, PayrollResult
from payroll_kernel.exceptions import PayrollError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_services.pipeline import calculate_payroll_result
from payroll_services.sources import RuleTableSource

logger = get_logger("batch.orchestrator")

# Marker returned by a worker that found the batch cancelled before starting.
_CANCELLED = object()


def _rules_date(requests: Sequence[PayrollRequest], today: date) -> date:
    if not requests:
        return today
    return min(max(request.period.last_day for request in requests), today)


class BulkPayrollOrchestrator:
    """Run many payroll requests concurrently against one snapshot.

    Contract:
        - ``compute_bulk()`` never raises for item failures; it raises only
          when the rule snapshot itself cannot be resolved.
        - The returned maps follow the input order of the requests.
    """

    def __init__(
        self,
        rule_source: RuleTableSource,
        clock: Clock | None = None,
    ):
        self._rule_source = rule_source
        self._clock = clock or SystemClock()

    def compute_bulk(
        self,
        requests: Sequence[PayrollRequest],
        *,
        max_workers: int = 4,
        cancel_event: threading.Event | None = None,
        batch_id: str | None = None,
    ) -> BulkOperationResult:
        """Compute payroll for every request.

        Args:
            requests: Requests to compute; employee ids should be unique.
            max_workers: Upper bound on concurrently running items.
            cancel_event: Set it to stop dispatching unstarted items.
            batch_id: Identifier for logs and the result.  Generated
                when omitted.

        Raises:
            ValueError: If ``max_workers`` is less than 1.
            RuleConfigurationError: If no usable snapshot can be resolved.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        batch_id = batch_id or str(uuid4())
        cancel_event = cancel_event or threading.Event()
        started_at = self._clock.now()
        today = self._clock.today()
        t0 = time.monotonic()

        with LogContext.bind(batch_id=batch_id):
            counts = Counter(request.employee_id for request in requests)
            order = list(dict.fromkeys(request.employee_id for request in requests))
            duplicates = {employee_id for employee_id, n in counts.items() if n > 1}
            unique_requests = [r for r in requests if r.employee_id not in duplicates]

            rules_as_of = _rules_date(unique_requests, today)
            snapshot = self._rule_source.get_snapshot(rules_as_of)

            logger.info("bulk_payroll_started", extra={
                "request_count": len(requests),
                "distinct_employee_count": len(order),
                "duplicate_employee_count": len(duplicates),
                "max_workers": max_workers,
                "rules_as_of": rules_as_of.isoformat(),
                "rule_set_id": snapshot.rule_set_id,
                "rule_set_fingerprint": snapshot.fingerprint,
            })

            results: dict[str, PayrollResult] = {}
            errors: dict[str, BulkItemError] = {}
            cancelled: set[str] = set()

            for employee_id in duplicates:
                errors[employee_id] = BulkItemError(
                    employee_id=employee_id,
                    error_code=DUPLICATE_EMPLOYEE,
                    error_type="DuplicateEmployee",
                    message=(
                        f"Employee {employee_id} appears {counts[employee_id]} "
                        f"times in batch {batch_id}"
                    ),
                )
                logger.warning("bulk_duplicate_employee", extra={
                    "employee_id": employee_id,
                    "occurrences": counts[employee_id],
                })

            with ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"payroll-{batch_id[:8]}",
            ) as pool:
                futures = {}
                for request in unique_requests:
                    if cancel_event.is_set():
                        cancelled.add(request.employee_id)
                        continue
                    future = pool.submit(
                        self._run_item, request, snapshot, today, batch_id, cancel_event
                    )
                    futures[future] = request.employee_id

                for future in as_completed(futures):
                    employee_id = futures[future]
                    outcome = future.result()
                    if outcome is _CANCELLED:
                        cancelled.add(employee_id)
                    elif isinstance(outcome, BulkItemError):
                        errors[employee_id] = outcome
                    else:
                        results[employee_id] = outcome

            result = BulkOperationResult(
                batch_id=batch_id,
                status=resolve_status(len(results), len(errors), len(cancelled)),
                results={eid: results[eid] for eid in order if eid in results},
                errors={eid: errors[eid] for eid in order if eid in errors},
                cancelled=tuple(eid for eid in order if eid in cancelled),
                rule_set_id=snapshot.rule_set_id,
                rule_set_fingerprint=snapshot.fingerprint,
                started_at=started_at,
                completed_at=self._clock.now(),
            )

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("bulk_payroll_completed", extra={
                "status": result.status.value,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
                "cancelled_count": result.cancelled_count,
                "duration_ms": duration_ms,
            })
            return result

    def _run_item(
        self,
        request: PayrollRequest,
        snapshot: RuleTableSnapshot,
        as_of: date,
        batch_id: str,
        cancel_event: threading.Event,
    ) -> PayrollResult | BulkItemError | object:
        """Compute one item in a worker thread, capturing its failure."""
        if cancel_event.is_set():
            return _CANCELLED

        with LogContext.bind(batch_id=batch_id, employee_id=request.employee_id):
            try:
                return calculate_payroll_result(request, snapshot, as_of)
            except PayrollError as exc:
                logger.warning("bulk_item_failed", extra={
                    "error_code": exc.code,
                    "error_type": type(exc).__name__,
                })
                return BulkItemError(
                    employee_id=request.employee_id,
                    error_code=exc.code,
                    error_type=type(exc).__name__,
                    message=str(exc),
                    validation_result=getattr(exc, "validation_result", None),
                )
            except Exception as exc:
                logger.exception("bulk_item_unexpected_error", extra={
                    "error_type": type(exc).__name__,
                })
                return BulkItemError(
                    employee_id=request.employee_id,
                    error_code=UNEXPECTED_ERROR,
                    error_type=type(exc).__name__,
                    message=str(exc),
                )
