"""
Business Rule Validator (``payroll_engines.validation``).

Responsibility
--------------
Pure pre-flight checks on a ``PayrollRequest`` against the rule snapshot
it will be computed with.  Every problem is collected; validation never
stops at the first error.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO clock reads.
The "period in the future" rule receives ``as_of`` explicitly from the
calling service.

Failure modes
-------------
* Returns a ``ValidationResult`` (not exceptions) for rule violations.
  Turning a failed result into ``ValidationError`` / ``BusinessRuleViolation``
  is the pipeline's job.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from payroll_engines.attendance import attendance_deductions, daily_rate_for
from payroll_engines.contributions import employee_contribution_total
from payroll_engines.tax import period_income_tax
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import (
    PayrollRequest,
    ValidationIssue,
    ValidationResult,
)
from payroll_kernel.domain.values import ZERO, quantize, sum_amounts

# Error codes
BASE_SALARY_NOT_POSITIVE = "BASE_SALARY_NOT_POSITIVE"
BELOW_MINIMUM_WAGE = "BELOW_MINIMUM_WAGE"
NEGATIVE_VALUE = "NEGATIVE_VALUE"
OVERTIME_WITHOUT_REGULAR_HOURS = "OVERTIME_WITHOUT_REGULAR_HOURS"
NO_OVERTIME_RULE = "NO_OVERTIME_RULE"
DEDUCTIONS_EXCEED_ESTIMATED_GROSS = "DEDUCTIONS_EXCEED_ESTIMATED_GROSS"
DEDUCTIONS_EXCEED_ESTIMATED_NET = "DEDUCTIONS_EXCEED_ESTIMATED_NET"
PERIOD_IN_FUTURE = "PERIOD_IN_FUTURE"
DELAY_OUT_OF_BOUNDS = "DELAY_OUT_OF_BOUNDS"
ABSENCE_OUT_OF_BOUNDS = "ABSENCE_OUT_OF_BOUNDS"
ABSENCE_EXCEEDS_WORKING_DAYS = "ABSENCE_EXCEEDS_WORKING_DAYS"

# Warning codes
OVERTIME_ABOVE_CAP = "OVERTIME_ABOVE_CAP"
DELAY_REQUIRES_JUSTIFICATION = "DELAY_REQUIRES_JUSTIFICATION"
PAID_ABSENCE_RECORDED = "PAID_ABSENCE_RECORDED"
REGULAR_HOURS_ABOVE_STANDARD = "REGULAR_HOURS_ABOVE_STANDARD"

# Codes for well-formed input that breaks a legal or business rule.
# A result whose errors all carry one of these raises BusinessRuleViolation.
BUSINESS_RULE_CODES = frozenset({
    BELOW_MINIMUM_WAGE,
    OVERTIME_WITHOUT_REGULAR_HOURS,
    DEDUCTIONS_EXCEED_ESTIMATED_GROSS,
    DEDUCTIONS_EXCEED_ESTIMATED_NET,
    PERIOD_IN_FUTURE,
    ABSENCE_EXCEEDS_WORKING_DAYS,
})

# Any of these makes the net estimate meaningless or redundant.
_NET_ESTIMATE_BLOCKERS = frozenset({
    BASE_SALARY_NOT_POSITIVE,
    NEGATIVE_VALUE,
    DEDUCTIONS_EXCEED_ESTIMATED_GROSS,
    DELAY_OUT_OF_BOUNDS,
    ABSENCE_OUT_OF_BOUNDS,
    ABSENCE_EXCEEDS_WORKING_DAYS,
})

MAX_DELAY_MINUTES = 24 * 60


def is_business_rule_failure(result: ValidationResult) -> bool:
    """True when the result failed and every error is a business rule."""
    return bool(result.errors) and all(
        issue.code in BUSINESS_RULE_CODES for issue in result.errors
    )


def _check_salary(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    errors: list[ValidationIssue],
) -> None:
    if request.base_salary <= ZERO:
        errors.append(ValidationIssue(
            BASE_SALARY_NOT_POSITIVE,
            "base_salary",
            f"Base salary must be positive, got {request.base_salary}",
        ))
    elif request.base_salary < snapshot.minimum_wage:
        errors.append(ValidationIssue(
            BELOW_MINIMUM_WAGE,
            "base_salary",
            f"Base salary {request.base_salary} is below the minimum wage "
            f"{snapshot.minimum_wage} {snapshot.currency}",
        ))


def _check_non_negative(
    request: PayrollRequest,
    errors: list[ValidationIssue],
) -> None:
    values: list[tuple[str, Decimal | int]] = []
    if request.regular_hours is not None:
        values.append(("regular_hours", request.regular_hours))
    for category, hours in request.hours_by_category.items():
        values.append((f"hours_by_category.{category.value}", hours))
    for name, amount in request.allowances.items():
        values.append((f"allowances.{name}", amount))
    for name, amount in request.deductions.items():
        values.append((f"deductions.{name}", amount))
    values.append(("attendance.delay_minutes", request.attendance.delay_minutes))
    values.append(("attendance.absence_days", request.attendance.absence_days))

    for field, value in values:
        if value < 0:
            errors.append(ValidationIssue(
                NEGATIVE_VALUE, field, f"{field} cannot be negative, got {value}"
            ))


def _check_overtime(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    regular_hours: Decimal,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    worked = {c: h for c, h in request.hours_by_category.items() if h > ZERO}
    if worked and regular_hours == ZERO:
        errors.append(ValidationIssue(
            OVERTIME_WITHOUT_REGULAR_HOURS,
            "regular_hours",
            "Overtime recorded but no regular hours worked",
        ))

    rules = snapshot.overtime_rules_by_category
    for category, hours in worked.items():
        field = f"hours_by_category.{category.value}"
        rule = rules.get(category)
        if rule is None:
            errors.append(ValidationIssue(
                NO_OVERTIME_RULE,
                field,
                f"No overtime rule for category {category.value} "
                f"in rule set {snapshot.rule_set_id}",
            ))
        elif rule.max_hours_per_period is not None and hours > rule.max_hours_per_period:
            warnings.append(ValidationIssue(
                OVERTIME_ABOVE_CAP,
                field,
                f"{hours}h of {category.value} overtime exceeds the "
                f"{rule.max_hours_per_period}h cap and will be clamped",
            ))


def _check_attendance(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    attendance = request.attendance
    policy = snapshot.attendance_policy

    if attendance.delay_minutes > MAX_DELAY_MINUTES:
        errors.append(ValidationIssue(
            DELAY_OUT_OF_BOUNDS,
            "attendance.delay_minutes",
            f"Delay of {attendance.delay_minutes} minutes exceeds one day",
        ))
    elif attendance.delay_minutes > policy.justification_required_after_minutes:
        warnings.append(ValidationIssue(
            DELAY_REQUIRES_JUSTIFICATION,
            "attendance.delay_minutes",
            f"Delay of {attendance.delay_minutes} minutes requires a justification",
        ))

    days_in_period = request.period.days_in_period
    if attendance.absence_days > days_in_period:
        errors.append(ValidationIssue(
            ABSENCE_OUT_OF_BOUNDS,
            "attendance.absence_days",
            f"{attendance.absence_days} absence days exceed the "
            f"{days_in_period} days of {request.period}",
        ))
    elif (
        not attendance.is_paid_absence
        and attendance.absence_days > policy.working_days_per_month
    ):
        errors.append(ValidationIssue(
            ABSENCE_EXCEEDS_WORKING_DAYS,
            "attendance.absence_days",
            f"{attendance.absence_days} unpaid absence days exceed the "
            f"{policy.working_days_per_month} working days in a month",
        ))
    elif attendance.is_paid_absence and attendance.absence_days > ZERO:
        warnings.append(ValidationIssue(
            PAID_ABSENCE_RECORDED,
            "attendance.absence_days",
            f"{attendance.absence_days} paid absence days recorded; no deduction applied",
        ))


def _check_estimated_net(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    errors: list[ValidationIssue],
) -> None:
    """Net pay before overtime must cover every deduction.

    Amounts are rounded exactly as the engines round them.  Overtime only
    adds to gross, and the rule set validator rejects tables that withhold
    a whole unit of every extra unit earned, so a non-negative estimate
    keeps the computed net non-negative.
    """
    scale = snapshot.amount_scale
    policy = snapshot.attendance_policy

    gross = quantize(request.base_salary, scale) + sum_amounts(
        quantize(amount, scale) for amount in request.allowances.values()
    )
    penalty, absence = attendance_deductions(
        request.attendance,
        daily_rate_for(request.base_salary, policy),
        policy,
        scale,
    )
    deductions = sum_amounts(
        quantize(amount, scale) for amount in request.deductions.values()
    ) + penalty + absence
    withheld = period_income_tax(gross, snapshot) + employee_contribution_total(
        gross, snapshot.contribution_rates, scale
    )

    if gross - withheld - deductions < ZERO:
        errors.append(ValidationIssue(
            DEDUCTIONS_EXCEED_ESTIMATED_NET,
            "deductions",
            f"Deductions {deductions} (attendance {penalty + absence}) exceed "
            f"estimated net pay {gross - withheld} before overtime",
        ))


def validate_payroll_request(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    as_of: date,
) -> ValidationResult:
    """Run every business rule against a request.

    Args:
        request: The payroll request to check.
        snapshot: Rule tables the request will be computed with.
        as_of: Today's date as seen by the caller.

    Returns:
        ValidationResult with every error and warning found.
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    _check_salary(request, snapshot, errors)
    _check_non_negative(request, errors)

    regular_hours = (
        request.regular_hours
        if request.regular_hours is not None
        else snapshot.standard_monthly_hours
    )
    if regular_hours > snapshot.standard_monthly_hours:
        warnings.append(ValidationIssue(
            REGULAR_HOURS_ABOVE_STANDARD,
            "regular_hours",
            f"{regular_hours} regular hours exceed the standard "
            f"{snapshot.standard_monthly_hours} monthly hours",
        ))
    _check_overtime(request, snapshot, regular_hours, errors, warnings)

    # Estimate excludes overtime.
    estimated_gross = request.base_salary + request.total_allowances
    explicit_deductions = request.total_explicit_deductions
    if explicit_deductions > estimated_gross:
        errors.append(ValidationIssue(
            DEDUCTIONS_EXCEED_ESTIMATED_GROSS,
            "deductions",
            f"Deductions {explicit_deductions} exceed base salary plus "
            f"allowances {estimated_gross}",
        ))

    if request.period.first_day > as_of:
        errors.append(ValidationIssue(
            PERIOD_IN_FUTURE,
            "period",
            f"Pay period {request.period} starts after {as_of.isoformat()}",
        ))

    _check_attendance(request, snapshot, errors, warnings)

    if not any(issue.code in _NET_ESTIMATE_BLOCKERS for issue in errors):
        _check_estimated_net(request, snapshot, errors)

    if not errors and not warnings:
        return ValidationResult.success()
    return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))
