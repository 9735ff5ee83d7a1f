"""
Attendance Adjustment Engine - delay penalties and absence deductions.

Pure functions with no I/O - the attendance policy is a parameter.

Delay tiers (default policy)::

    NONE      0 minutes          no penalty
    MINOR     1-15 minutes       policy.minor_delay_penalty (0: warning only)
    MODERATE  16-60 minutes      daily_rate * delay / workday_minutes
    SEVERE    over 60 minutes    daily_rate * min(1, escalation * delay / workday_minutes)
                                 and the adjustment requires approval

Unpaid absence costs ``absence_days * daily_rate``.  Paid absence costs
nothing but is still reported.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.rules import AttendancePolicy
from payroll_kernel.domain.types import AttendanceInput, DelayTier
from payroll_kernel.domain.values import ONE, ZERO, quantize
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.attendance")


@dataclass(frozen=True)
class AttendanceAdjustment:
    """Deductions derived from one period's attendance."""

    delay_penalty: Decimal
    absence_deduction: Decimal
    tier: DelayTier
    requires_approval: bool
    requires_justification: bool
    absence_days: Decimal
    paid_absence_days: Decimal

    @property
    def total(self) -> Decimal:
        return self.delay_penalty + self.absence_deduction


def classify_delay(minutes: int, policy: AttendancePolicy) -> DelayTier:
    """Map a delay in minutes to its tier."""
    if minutes <= 0:
        return DelayTier.NONE
    if minutes <= policy.minor_delay_max_minutes:
        return DelayTier.MINOR
    if minutes <= policy.moderate_delay_max_minutes:
        return DelayTier.MODERATE
    return DelayTier.SEVERE


def _delay_penalty(
    tier: DelayTier,
    minutes: int,
    daily_rate: Decimal,
    policy: AttendancePolicy,
) -> Decimal:
    if tier == DelayTier.NONE:
        return ZERO
    if tier == DelayTier.MINOR:
        return policy.minor_delay_penalty
    fraction = Decimal(minutes) / Decimal(policy.workday_minutes)
    if tier == DelayTier.MODERATE:
        return daily_rate * fraction
    return daily_rate * min(ONE, policy.severe_delay_escalation * fraction)


def daily_rate_for(base_salary: Decimal, policy: AttendancePolicy) -> Decimal:
    """Base salary per working day (unrounded)."""
    return base_salary / Decimal(policy.working_days_per_month)


def attendance_deductions(
    attendance: AttendanceInput,
    daily_rate: Decimal,
    policy: AttendancePolicy,
    scale: int = 2,
) -> tuple[Decimal, Decimal]:
    """(delay penalty, absence deduction) at ledger scale."""
    tier = classify_delay(attendance.delay_minutes, policy)
    penalty = quantize(
        _delay_penalty(tier, attendance.delay_minutes, daily_rate, policy), scale
    )
    if attendance.is_paid_absence:
        return penalty, quantize(ZERO, scale)
    return penalty, quantize(attendance.absence_days * daily_rate, scale)


@traced_engine("attendance", "1.0", fingerprint_fields=("attendance", "daily_rate"))
def compute_adjustment(
    attendance: AttendanceInput,
    daily_rate: Decimal,
    policy: AttendancePolicy,
    scale: int = 2,
) -> AttendanceAdjustment:
    """Compute delay penalty and absence deduction for one period.

    Raises:
        ValueError: if the delay, absence days or daily rate are negative.
    """
    if attendance.delay_minutes < 0:
        raise ValueError(f"Delay cannot be negative: {attendance.delay_minutes}")
    if attendance.absence_days < ZERO:
        raise ValueError(f"Absence days cannot be negative: {attendance.absence_days}")
    if daily_rate < ZERO:
        raise ValueError(f"Daily rate cannot be negative: {daily_rate}")

    tier = classify_delay(attendance.delay_minutes, policy)
    penalty, absence_deduction = attendance_deductions(attendance, daily_rate, policy, scale)
    paid_days = attendance.absence_days if attendance.is_paid_absence else ZERO

    adjustment = AttendanceAdjustment(
        delay_penalty=penalty,
        absence_deduction=absence_deduction,
        tier=tier,
        requires_approval=tier == DelayTier.SEVERE,
        requires_justification=(
            attendance.delay_minutes > policy.justification_required_after_minutes
        ),
        absence_days=attendance.absence_days,
        paid_absence_days=paid_days,
    )

    if tier != DelayTier.NONE or attendance.absence_days > ZERO:
        logger.debug("attendance_adjustment_calculated", extra={
            "delay_minutes": attendance.delay_minutes,
            "tier": tier.value,
            "delay_penalty": str(penalty),
            "absence_days": str(attendance.absence_days),
            "is_paid_absence": attendance.is_paid_absence,
            "absence_deduction": str(absence_deduction),
        })
    return adjustment
