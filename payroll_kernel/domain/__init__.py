"""
Pure domain layer.

Immutable payroll values with NO dependencies on:
- Database
- Time/clock (except the Clock abstraction itself)
- I/O
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.period import PayPeriod
from payroll_kernel.domain.rules import (
    AttendancePolicy,
    ContributionKind,
    OvertimeRule,
    RuleTableSnapshot,
    SocialContributionRate,
    TaxBracket,
)
from payroll_kernel.domain.types import (
    AttendanceInput,
    CalculationLine,
    DelayTier,
    OvertimeCategory,
    PayrollRequest,
    PayrollResult,
    ValidationIssue,
    ValidationResult,
    attendance_input_from_times,
)

__all__ = [
    "AttendanceInput",
    "AttendancePolicy",
    "CalculationLine",
    "Clock",
    "ContributionKind",
    "DelayTier",
    "DeterministicClock",
    "OvertimeCategory",
    "OvertimeRule",
    "PayPeriod",
    "PayrollRequest",
    "PayrollResult",
    "RuleTableSnapshot",
    "SocialContributionRate",
    "SystemClock",
    "TaxBracket",
    "ValidationIssue",
    "ValidationResult",
    "attendance_input_from_times",
]
