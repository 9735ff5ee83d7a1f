"""
Social Contribution Engine - capped employee and employer contributions.

Pure functions with no I/O - scheme rates provided as parameters.

For every scheme the contribution base is the gross salary capped at the
scheme's income ceiling; the employee and employer shares are each that
base times their rate, rounded ROUND_HALF_UP to the ledger scale.  Only the
employee share is withheld from pay.

Usage:
    from decimal import Decimal
    from payroll_engines.contributions import compute_contributions

    result = compute_contributions(
        gross_salary=Decimal("615000"),
        rates=snapshot.contribution_rates,
        scale=2,
    )
    result.employee_by_scheme  # {"pension": Decimal("30750.00"), ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.rules import ContributionKind, SocialContributionRate
from payroll_kernel.domain.values import ZERO, quantize, sum_amounts
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.contributions")


@dataclass(frozen=True)
class ContributionLine:
    """Contribution computed for one scheme."""

    scheme_name: str
    kind: ContributionKind
    base: Decimal  # Gross capped at the ceiling
    employee_rate: Decimal
    employer_rate: Decimal
    employee_amount: Decimal
    employer_amount: Decimal
    is_capped: bool = False


@dataclass(frozen=True)
class ContributionResult:
    """All scheme contributions for one gross salary, in scheme order."""

    gross_salary: Decimal
    lines: tuple[ContributionLine, ...]

    @property
    def employee_by_scheme(self) -> dict[str, Decimal]:
        return {line.scheme_name: line.employee_amount for line in self.lines}

    @property
    def employer_by_scheme(self) -> dict[str, Decimal]:
        return {line.scheme_name: line.employer_amount for line in self.lines}

    @property
    def employee_total(self) -> Decimal:
        return sum_amounts(line.employee_amount for line in self.lines)

    @property
    def employer_total(self) -> Decimal:
        return sum_amounts(line.employer_amount for line in self.lines)

    def total_by_kind(self, kind: ContributionKind) -> Decimal:
        """Employee share summed over schemes of one kind."""
        return sum_amounts(
            line.employee_amount for line in self.lines if line.kind == kind
        )


def _contribution_base(gross_salary: Decimal, rate: SocialContributionRate) -> Decimal:
    if rate.income_ceiling is not None and gross_salary > rate.income_ceiling:
        return rate.income_ceiling
    return gross_salary


def employee_contribution_total(
    gross_salary: Decimal,
    rates: Sequence[SocialContributionRate],
    scale: int = 2,
) -> Decimal:
    """Employee share withheld across all schemes, rounded per scheme."""
    return sum_amounts(
        quantize(_contribution_base(gross_salary, rate) * rate.employee_rate, scale)
        for rate in rates
    )


@traced_engine("contributions", "1.0", fingerprint_fields=("gross_salary", "rates"))
def compute_contributions(
    gross_salary: Decimal,
    rates: Sequence[SocialContributionRate],
    scale: int = 2,
) -> ContributionResult:
    """Compute employee and employer contributions for every scheme.

    Raises:
        ValueError: if ``gross_salary`` is negative or two schemes share a name.
    """
    if gross_salary < ZERO:
        raise ValueError(f"Gross salary cannot be negative: {gross_salary}")

    names = [rate.scheme_name for rate in rates]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate contribution scheme names: {names}")

    lines: list[ContributionLine] = []
    for rate in rates:
        base = _contribution_base(gross_salary, rate)
        capped = base != gross_salary
        lines.append(
            ContributionLine(
                scheme_name=rate.scheme_name,
                kind=rate.kind,
                base=base,
                employee_rate=rate.employee_rate,
                employer_rate=rate.employer_rate,
                employee_amount=quantize(base * rate.employee_rate, scale),
                employer_amount=quantize(base * rate.employer_rate, scale),
                is_capped=capped,
            )
        )

    result = ContributionResult(gross_salary=gross_salary, lines=tuple(lines))
    logger.debug("contributions_calculated", extra={
        "gross_salary": str(gross_salary),
        "scheme_count": len(lines),
        "capped_schemes": [line.scheme_name for line in lines if line.is_capped],
        "employee_total": str(result.employee_total),
        "employer_total": str(result.employer_total),
    })
    return result
