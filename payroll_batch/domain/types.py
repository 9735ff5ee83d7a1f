"""
payroll_batch.domain.types -- Pure frozen dataclasses for bulk payroll runs.

ZERO I/O.  Frozen dataclasses with enum status fields and mappings owned
by the frozen value.

Invariants enforced:
    - Completeness: every distinct employee id of a batch appears in
      exactly one of ``results``, ``errors`` or ``cancelled``.
    - Partial failure is a status, not an exception;
      ``raise_for_failures()`` converts it on request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping

from payroll_kernel.domain.types import PayrollResult, ValidationResult
from payroll_kernel.exceptions import PartialBulkFailure

# Item error codes produced by the orchestrator itself
DUPLICATE_EMPLOYEE = "DUPLICATE_EMPLOYEE"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class BulkStatus(str, Enum):
    """Outcome of a bulk payroll run."""

    COMPLETED = "completed"  # Every employee computed
    PARTIALLY_COMPLETED = "partially_completed"  # Some employees failed
    FAILED = "failed"  # No employee computed
    CANCELLED = "cancelled"  # Cancelled before every employee was dispatched


@dataclass(frozen=True)
class BulkItemError:
    """Why one employee of a batch has no result."""

    employee_id: str
    error_code: str
    error_type: str
    message: str
    validation_result: ValidationResult | None = None


@dataclass(frozen=True)
class BulkOperationResult:
    """Merged outcome of a bulk payroll run, keyed by employee id."""

    batch_id: str
    status: BulkStatus
    results: Mapping[str, PayrollResult] = field(default_factory=dict)
    errors: Mapping[str, BulkItemError] = field(default_factory=dict)
    cancelled: tuple[str, ...] = ()
    rule_set_id: str = ""
    rule_set_fingerprint: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count + self.cancelled_count

    def raise_for_failures(self) -> None:
        """Raise PartialBulkFailure if any employee failed."""
        if self.errors:
            raise PartialBulkFailure(
                self.batch_id,
                self.failure_count,
                {employee_id: error.error_code for employee_id, error in self.errors.items()},
            )


def resolve_status(success_count: int, failure_count: int, cancelled_count: int) -> BulkStatus:
    """Derive the batch status from its item counts."""
    if cancelled_count:
        return BulkStatus.CANCELLED
    if failure_count == 0:
        return BulkStatus.COMPLETED
    if success_count == 0:
        return BulkStatus.FAILED
    return BulkStatus.PARTIALLY_COMPLETED
