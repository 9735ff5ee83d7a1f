"""
Payroll value types -- requests, results and validation outcomes.

Responsibility:
    Defines the immutable values that flow through a payroll calculation:
    the ``PayrollRequest`` consumed by the pipeline, the ``PayrollResult``
    it produces, the ``AttendanceInput`` feeding attendance adjustments,
    and the ``ValidationResult`` returned by the business-rule validator.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All values are frozen dataclasses; maps are copied on construction
      and never mutated afterwards.
    - Amounts and hours are ``Decimal``; floats are rejected at the
      boundary by ``to_decimal``.

Failure modes:
    - TypeError / ValueError when a field cannot be converted to Decimal
      or an overtime category name is unknown.
    - Negative values are NOT rejected here.  The validator reports them
      as ``NEGATIVE_VALUE`` issues so that every problem is collected.

Audit relevance:
    ``PayrollResult.calculation_details`` is the human-readable breakdown
    printed on a payslip.  ``rule_set_id`` and ``rule_set_fingerprint``
    identify exactly which rule tables produced the figures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from payroll_kernel.domain.period import PayPeriod
from payroll_kernel.domain.values import ZERO, sum_amounts, to_decimal


class OvertimeCategory(str, Enum):
    """Overtime category. Declaration order is the reporting order."""

    REGULAR = "regular"  # Weekday hours beyond the standard schedule
    NIGHT = "night"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"  # Public holidays


class DelayTier(str, Enum):
    """Severity tier for a late arrival."""

    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


def _decimal_map(values: Mapping[str, Any] | None) -> dict[str, Decimal]:
    return {str(k): to_decimal(v) for k, v in (values or {}).items()}


def _category_map(values: Mapping[Any, Any] | None) -> dict[OvertimeCategory, Decimal]:
    return {
        OvertimeCategory(k): to_decimal(v) for k, v in (values or {}).items()
    }


# =============================================================================
# Attendance
# =============================================================================


@dataclass(frozen=True)
class AttendanceInput:
    """
    Attendance facts for one employee and one period.

    ``absence_days`` may be fractional (half days).  ``is_paid_absence``
    applies to the whole absence.
    """

    delay_minutes: int = 0
    absence_days: Decimal = ZERO
    is_paid_absence: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.delay_minutes, bool) or not isinstance(self.delay_minutes, int):
            raise TypeError("delay_minutes must be an int")
        object.__setattr__(self, "absence_days", to_decimal(self.absence_days))


def attendance_input_from_times(
    scheduled_start: time | datetime,
    actual_start: time | datetime,
    absence_days: Decimal | int | str = 0,
    is_paid_absence: bool = False,
) -> AttendanceInput:
    """Build an AttendanceInput from scheduled and actual clock-in times.

    Early arrival counts as zero delay.  Seconds are truncated, so a
    clock-in at 08:15:59 against 08:00 is a 15 minute delay.
    """
    if isinstance(scheduled_start, datetime) != isinstance(actual_start, datetime):
        raise TypeError("scheduled_start and actual_start must be the same type")
    if isinstance(scheduled_start, datetime):
        seconds = (actual_start - scheduled_start).total_seconds()
    else:
        seconds = (
            (actual_start.hour * 3600 + actual_start.minute * 60 + actual_start.second)
            - (scheduled_start.hour * 3600 + scheduled_start.minute * 60 + scheduled_start.second)
        )
    delay = max(0, int(seconds // 60))
    return AttendanceInput(
        delay_minutes=delay,
        absence_days=to_decimal(absence_days),
        is_paid_absence=is_paid_absence,
    )


# =============================================================================
# Request
# =============================================================================


@dataclass(frozen=True)
class PayrollRequest:
    """
    Everything needed to compute one employee's pay for one period.

    Contract:
        Consumed exactly once by the pipeline.  ``regular_hours`` of None
        means "the snapshot's standard monthly hours".  A correction is a
        new request built with ``dataclasses.replace``.
    """

    employee_id: str
    period: PayPeriod
    base_salary: Decimal
    regular_hours: Decimal | None = None
    hours_by_category: Mapping[OvertimeCategory, Decimal] = field(default_factory=dict)
    allowances: Mapping[str, Decimal] = field(default_factory=dict)
    deductions: Mapping[str, Decimal] = field(default_factory=dict)
    attendance: AttendanceInput = field(default_factory=AttendanceInput)

    def __post_init__(self) -> None:
        if not self.employee_id:
            raise ValueError("employee_id is required")
        if isinstance(self.period, str):
            object.__setattr__(self, "period", PayPeriod.parse(self.period))
        object.__setattr__(self, "base_salary", to_decimal(self.base_salary))
        if self.regular_hours is not None:
            object.__setattr__(self, "regular_hours", to_decimal(self.regular_hours))
        object.__setattr__(self, "hours_by_category", _category_map(self.hours_by_category))
        object.__setattr__(self, "allowances", _decimal_map(self.allowances))
        object.__setattr__(self, "deductions", _decimal_map(self.deductions))

    @property
    def total_allowances(self) -> Decimal:
        return sum_amounts(self.allowances.values())

    @property
    def total_explicit_deductions(self) -> Decimal:
        return sum_amounts(self.deductions.values())

    @property
    def total_overtime_hours(self) -> Decimal:
        return sum_amounts(self.hours_by_category.values())


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True)
class CalculationLine:
    """One line of the payslip breakdown."""

    label: str
    formula: str
    amount: Decimal


@dataclass(frozen=True)
class PayrollResult:
    """
    Computed pay for one employee and one period.

    Guarantees:
        - net_salary == gross_salary - income_tax - total_contributions
          - total_deductions
        - net_salary >= 0
        - total_deductions <= gross_salary

    ``contributions_by_scheme`` is the employee side only; the employer
    side is reported separately and never reduces net pay.
    """

    employee_id: str
    period: PayPeriod
    base_salary: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    income_tax: Decimal
    contributions_by_scheme: Mapping[str, Decimal]
    employer_contributions_by_scheme: Mapping[str, Decimal]
    total_contributions: Decimal
    overtime_amount_by_category: Mapping[OvertimeCategory, Decimal]
    overtime_total: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    delay_penalty: Decimal = ZERO
    absence_deduction: Decimal = ZERO
    delay_tier: DelayTier = DelayTier.NONE
    requires_approval: bool = False
    calculation_details: tuple[CalculationLine, ...] = ()
    warnings: tuple[str, ...] = ()
    rule_set_id: str = ""
    rule_set_fingerprint: str = ""

    @property
    def employer_contributions_total(self) -> Decimal:
        return sum_amounts(self.employer_contributions_by_scheme.values())

    @property
    def employer_cost(self) -> Decimal:
        """Gross salary plus the employer's share of every scheme."""
        return self.gross_salary + self.employer_contributions_total

    def detail(self, label: str) -> CalculationLine | None:
        """Return the first calculation line with ``label``, if any."""
        for line in self.calculation_details:
            if line.label == label:
                return line
        return None


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding.  ``field`` names the offending input."""

    code: str
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a request: errors block, warnings do not."""

    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def error_codes(self) -> tuple[str, ...]:
        return tuple(issue.code for issue in self.errors)

    @property
    def warning_codes(self) -> tuple[str, ...]:
        return tuple(issue.code for issue in self.warnings)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls()
