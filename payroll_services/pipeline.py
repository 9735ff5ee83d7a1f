"""
Single-employee payroll pipeline.

Contract:
    ``calculate_payroll_result(request, snapshot, as_of)`` runs one request
    through every engine against one rule snapshot and returns exactly one
    PayrollResult:

        1. validate_payroll_request      (reject early, collect everything)
        2. compute_overtime              hourly = base / standard hours
        3. gross                         base + allowances + overtime
        4. IncomeTaxCalculator           on gross
        5. compute_contributions         on gross
        6. compute_adjustment            daily = base / working days
        7. aggregate                     net pay and invariants

Architecture: payroll_services.  Imports kernel and engines only.  Pure and
    synchronous with no shared mutable state, so bulk workers may call it
    concurrently with one shared snapshot.

Failure modes:
    - ValidationError / BusinessRuleViolation when validation fails.
    - CalculationError subclasses from aggregation.
"""

from __future__ import annotations

import dataclasses
import time
from datetime import date
from decimal import Decimal

from payroll_engines.aggregation import aggregate, compute_gross
from payroll_engines.attendance import compute_adjustment, daily_rate_for
from payroll_engines.contributions import compute_contributions
from payroll_engines.overtime import compute_overtime
from payroll_engines.tax import IncomeTaxCalculator
from payroll_engines.validation import (
    OVERTIME_ABOVE_CAP,
    is_business_rule_failure,
    validate_payroll_request,
)
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import PayrollRequest, PayrollResult
from payroll_kernel.exceptions import BusinessRuleViolation, ValidationError
from payroll_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.pipeline")

_income_tax = IncomeTaxCalculator()


def hourly_rate(base_salary: Decimal, snapshot: RuleTableSnapshot) -> Decimal:
    """Base salary per standard hour (unrounded)."""
    return base_salary / snapshot.standard_monthly_hours


def daily_rate(base_salary: Decimal, snapshot: RuleTableSnapshot) -> Decimal:
    """Base salary per working day (unrounded)."""
    return daily_rate_for(base_salary, snapshot.attendance_policy)


def calculate_payroll_result(
    request: PayrollRequest,
    snapshot: RuleTableSnapshot,
    as_of: date,
) -> PayrollResult:
    """Validate and compute one request against one snapshot.

    Raises:
        BusinessRuleViolation: If only business-rule checks failed.
        ValidationError: If any other validation check failed.
        CalculationError: If a pay invariant is broken.
    """
    with LogContext.bind(
        employee_id=request.employee_id,
        period=str(request.period),
        rule_set_id=snapshot.rule_set_id,
    ):
        t0 = time.monotonic()
        logger.info("payroll_calculation_started", extra={
            "base_salary": str(request.base_salary),
            "overtime_categories": sorted(c.value for c in request.hours_by_category),
            "allowance_count": len(request.allowances),
            "deduction_count": len(request.deductions),
        })

        validation = validate_payroll_request(request, snapshot, as_of)
        if not validation.valid:
            logger.warning("payroll_validation_failed", extra={
                "error_codes": list(validation.error_codes),
                "warning_codes": list(validation.warning_codes),
            })
            if is_business_rule_failure(validation):
                raise BusinessRuleViolation(request.employee_id, validation)
            raise ValidationError(request.employee_id, validation)

        scale = snapshot.amount_scale

        overtime = compute_overtime(
            hours_by_category=request.hours_by_category,
            hourly_rate=hourly_rate(request.base_salary, snapshot),
            rules=snapshot.overtime_rules,
            scale=scale,
        )
        gross = compute_gross(request, overtime, scale)
        tax = _income_tax.calculate(gross_income=gross, snapshot=snapshot)
        contributions = compute_contributions(
            gross_salary=gross,
            rates=snapshot.contribution_rates,
            scale=scale,
        )
        adjustment = compute_adjustment(
            attendance=request.attendance,
            daily_rate=daily_rate(request.base_salary, snapshot),
            policy=snapshot.attendance_policy,
            scale=scale,
        )

        result = aggregate(
            request=request,
            tax_result=tax,
            contribution_result=contributions,
            overtime_result=overtime,
            adjustment_result=adjustment,
            snapshot=snapshot,
        )

        # Cap overruns are already reported by the overtime engine.
        validation_warnings = tuple(
            issue.message for issue in validation.warnings
            if issue.code != OVERTIME_ABOVE_CAP
        )
        if validation_warnings:
            result = dataclasses.replace(
                result, warnings=validation_warnings + result.warnings
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("payroll_calculation_completed", extra={
            "gross_salary": str(result.gross_salary),
            "income_tax": str(result.income_tax),
            "total_contributions": str(result.total_contributions),
            "total_deductions": str(result.total_deductions),
            "net_salary": str(result.net_salary),
            "delay_tier": result.delay_tier.value,
            "requires_approval": result.requires_approval,
            "warning_count": len(result.warnings),
            "duration_ms": duration_ms,
        })
        return result
