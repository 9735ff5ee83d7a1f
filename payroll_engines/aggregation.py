"""
Payroll Aggregation Engine - assemble gross, deductions and net pay.

Responsibility:
    Combine the outputs of the tax, contribution, overtime and attendance
    engines into one ``PayrollResult`` and enforce the cross-field pay
    invariants.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Last step of the
    single-employee pipeline.

Invariants enforced:
    - gross            = base + sum(allowances) + overtime
    - total_deductions = sum(explicit deductions) + delay penalty + absence
    - net              = gross - income tax - employee contributions
                         - total_deductions
    - total_deductions <= gross, else DeductionsExceedGrossError
    - net >= 0, else NegativeNetPayError
    Values are never clamped to make an invariant hold.

Failure modes:
    - CalculationError subclasses for broken invariants, and plain
      CalculationError when the component results were computed on a
      different gross than the one aggregated here.

Audit relevance:
    ``calculation_details`` lists every term in a fixed order (base,
    allowances by name, overtime by category, gross, tax, contributions
    in snapshot order, deductions by name, delay, absence, total
    deductions, net), each with the formula that produced it.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_engines.attendance import AttendanceAdjustment
from payroll_engines.contributions import ContributionResult
from payroll_engines.overtime import OvertimeResult
from payroll_engines.tax import IncomeTaxResult
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import CalculationLine, PayrollRequest, PayrollResult
from payroll_kernel.domain.values import ZERO, quantize, sum_amounts
from payroll_kernel.exceptions import (
    CalculationError,
    DeductionsExceedGrossError,
    NegativeNetPayError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")


def _pct(rate: Decimal) -> str:
    return f"{format((rate * 100).normalize(), 'f')}%"


def compute_gross(
    request: PayrollRequest,
    overtime_result: OvertimeResult,
    scale: int = 2,
) -> Decimal:
    """Gross salary: base plus allowances plus overtime, at ledger scale."""
    base = quantize(request.base_salary, scale)
    allowances = sum_amounts(quantize(v, scale) for v in request.allowances.values())
    return base + allowances + overtime_result.total_amount


@traced_engine("aggregation", "1.0", fingerprint_fields=("request",))
def aggregate(
    request: PayrollRequest,
    tax_result: IncomeTaxResult,
    contribution_result: ContributionResult,
    overtime_result: OvertimeResult,
    adjustment_result: AttendanceAdjustment,
    snapshot: RuleTableSnapshot,
) -> PayrollResult:
    """Assemble the final PayrollResult from the component results.

    Raises:
        DeductionsExceedGrossError: if total deductions exceed gross.
        NegativeNetPayError: if net salary would be negative.
        CalculationError: if tax or contributions were computed on a
            different gross salary.
    """
    scale = snapshot.amount_scale
    lines: list[CalculationLine] = []

    base = quantize(request.base_salary, scale)
    lines.append(CalculationLine("Base salary", "base_salary", base))

    allowance_amounts = {
        name: quantize(amount, scale) for name, amount in request.allowances.items()
    }
    for name in sorted(allowance_amounts):
        lines.append(
            CalculationLine(f"Allowance: {name}", f"allowances[{name}]", allowance_amounts[name])
        )
    total_allowances = sum_amounts(allowance_amounts.values())

    hourly = quantize(overtime_result.hourly_rate, scale)
    for line in overtime_result.lines:
        lines.append(
            CalculationLine(
                f"Overtime: {line.category.value}",
                f"{line.paid_hours}h x {hourly} x {line.multiplier}",
                line.amount,
            )
        )
    overtime_total = overtime_result.total_amount

    gross = base + total_allowances + overtime_total
    lines.append(
        CalculationLine(
            "Gross salary",
            f"{base} + {total_allowances} + {overtime_total}",
            gross,
        )
    )

    if tax_result.gross_income != gross or contribution_result.gross_salary != gross:
        raise CalculationError(
            f"Component results for employee {request.employee_id} were computed "
            f"on gross {tax_result.gross_income}/{contribution_result.gross_salary}, "
            f"aggregated gross is {gross}"
        )

    if tax_result.periods_per_year > 1:
        tax_formula = (
            f"tax({gross} x {tax_result.periods_per_year}) / {tax_result.periods_per_year}"
        )
    else:
        tax_formula = f"tax({gross})"
    lines.append(CalculationLine("Income tax", tax_formula, tax_result.tax))

    for line in contribution_result.lines:
        lines.append(
            CalculationLine(
                f"Contribution: {line.scheme_name}",
                f"{line.base} x {_pct(line.employee_rate)}",
                line.employee_amount,
            )
        )
    contributions_total = contribution_result.employee_total

    deduction_amounts = {
        name: quantize(amount, scale) for name, amount in request.deductions.items()
    }
    for name in sorted(deduction_amounts):
        lines.append(
            CalculationLine(f"Deduction: {name}", f"deductions[{name}]", deduction_amounts[name])
        )
    explicit_deductions = sum_amounts(deduction_amounts.values())

    lines.append(
        CalculationLine(
            "Delay penalty",
            f"{adjustment_result.tier.value} delay",
            adjustment_result.delay_penalty,
        )
    )
    absence_formula = (
        f"{adjustment_result.absence_days} days paid"
        if adjustment_result.paid_absence_days > ZERO
        else f"{adjustment_result.absence_days} days unpaid"
    )
    lines.append(
        CalculationLine("Absence deduction", absence_formula, adjustment_result.absence_deduction)
    )

    total_deductions = (
        explicit_deductions
        + adjustment_result.delay_penalty
        + adjustment_result.absence_deduction
    )
    lines.append(
        CalculationLine(
            "Total deductions",
            f"{explicit_deductions} + {adjustment_result.delay_penalty} "
            f"+ {adjustment_result.absence_deduction}",
            total_deductions,
        )
    )

    if total_deductions > gross:
        logger.error("deductions_exceed_gross", extra={
            "employee_id": request.employee_id,
            "gross_salary": str(gross),
            "total_deductions": str(total_deductions),
        })
        raise DeductionsExceedGrossError(
            request.employee_id, str(gross), str(total_deductions)
        )

    net = gross - tax_result.tax - contributions_total - total_deductions
    lines.append(
        CalculationLine(
            "Net salary",
            f"{gross} - {tax_result.tax} - {contributions_total} - {total_deductions}",
            net,
        )
    )

    if net < ZERO:
        logger.error("negative_net_pay", extra={
            "employee_id": request.employee_id,
            "gross_salary": str(gross),
            "net_salary": str(net),
        })
        raise NegativeNetPayError(request.employee_id, str(gross), str(net))

    return PayrollResult(
        employee_id=request.employee_id,
        period=request.period,
        base_salary=base,
        gross_salary=gross,
        net_salary=net,
        income_tax=tax_result.tax,
        contributions_by_scheme=contribution_result.employee_by_scheme,
        employer_contributions_by_scheme=contribution_result.employer_by_scheme,
        total_contributions=contributions_total,
        overtime_amount_by_category=overtime_result.amount_by_category,
        overtime_total=overtime_total,
        total_allowances=total_allowances,
        total_deductions=total_deductions,
        delay_penalty=adjustment_result.delay_penalty,
        absence_deduction=adjustment_result.absence_deduction,
        delay_tier=adjustment_result.tier,
        requires_approval=adjustment_result.requires_approval,
        calculation_details=tuple(lines),
        warnings=overtime_result.warnings,
        rule_set_id=snapshot.rule_set_id,
        rule_set_fingerprint=snapshot.fingerprint,
    )
