"""
Income Tax Engine - Progressive bracket tax (IRPP).

Pure functions with no I/O - bracket tables provided as parameters.

Two formulations of the same tax are provided and must always agree:

    compute_income_tax           closed form: fixed_amount of the containing
                                 bracket plus the marginal part inside it
    compute_income_tax_marginal  walks the brackets from the bottom, taxing
                                 each slice at its own rate

Because every bracket's ``fixed_amount`` equals the cumulative tax of the
brackets below it, the closed form has no cliff: crossing a boundary from
``a`` to ``b`` increases the tax by exactly ``(b - a) * higher_rate``.

Usage:
    from decimal import Decimal
    from payroll_engines.tax import build_brackets, compute_income_tax

    brackets = build_brackets([(0, "0"), (240000, "0.20")])
    compute_income_tax(Decimal("615000"), brackets)  # Decimal("75000.00")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.rules import RuleTableSnapshot, TaxBracket
from payroll_kernel.domain.values import ZERO, quantize, to_decimal
from payroll_kernel.exceptions import MalformedBracketTableError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

# Largest gap allowed between a bracket's fixed_amount and the cumulative
# marginal tax below it (one minor unit).
FIXED_AMOUNT_TOLERANCE = Decimal("0.01")


def validate_brackets(
    brackets: Sequence[TaxBracket],
    tolerance: Decimal = FIXED_AMOUNT_TOLERANCE,
) -> None:
    """Check table-level bracket rules.

    Raises:
        MalformedBracketTableError: if the table is empty, not contiguous,
            unbounded anywhere but the end, bounded at the end, or carries
            fixed amounts that disagree with the brackets below them.
    """
    if not brackets:
        raise MalformedBracketTableError("bracket table is empty")

    expected_fixed = ZERO
    for index, bracket in enumerate(brackets):
        if index > 0:
            previous = brackets[index - 1]
            if previous.max_income is None:
                raise MalformedBracketTableError(
                    "only the last bracket may be unbounded", index - 1
                )
            if previous.max_income != bracket.min_income:
                kind = "gap" if previous.max_income < bracket.min_income else "overlap"
                raise MalformedBracketTableError(
                    f"{kind} between {previous.max_income} and {bracket.min_income}",
                    index,
                )
            expected_fixed += (previous.max_income - previous.min_income) * previous.rate

        if abs(bracket.fixed_amount - expected_fixed) > tolerance:
            raise MalformedBracketTableError(
                f"fixed_amount {bracket.fixed_amount} does not match cumulative "
                f"tax {expected_fixed} of lower brackets",
                index,
            )

    if brackets[-1].max_income is not None:
        raise MalformedBracketTableError(
            "last bracket must be unbounded", len(brackets) - 1
        )


def build_brackets(schedule: Sequence[tuple[Any, Any]]) -> tuple[TaxBracket, ...]:
    """Build a contiguous bracket table from ``(lower_threshold, rate)`` pairs.

    Each threshold starts a bracket that ends at the next threshold; the
    last bracket is unbounded.  Fixed amounts are derived so the table
    passes ``validate_brackets`` exactly.
    """
    if not schedule:
        raise MalformedBracketTableError("bracket schedule is empty")

    thresholds = [to_decimal(threshold) for threshold, _ in schedule]
    rates = [to_decimal(rate) for _, rate in schedule]
    for index in range(1, len(thresholds)):
        if thresholds[index] <= thresholds[index - 1]:
            raise MalformedBracketTableError(
                "thresholds must be strictly ascending", index
            )

    brackets: list[TaxBracket] = []
    fixed = ZERO
    for index, (lower, rate) in enumerate(zip(thresholds, rates)):
        upper = thresholds[index + 1] if index + 1 < len(thresholds) else None
        brackets.append(
            TaxBracket(min_income=lower, max_income=upper, rate=rate, fixed_amount=fixed)
        )
        if upper is not None:
            fixed += (upper - lower) * rate
    return tuple(brackets)


def _check_income(taxable_income: Decimal) -> None:
    if taxable_income < ZERO:
        raise ValueError(f"Taxable income cannot be negative: {taxable_income}")


def find_bracket(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> int | None:
    """Index of the bracket containing ``taxable_income``.

    None when the income sits below the first bracket.
    """
    for index, bracket in enumerate(brackets):
        if bracket.contains(taxable_income):
            return index
    return None


def compute_income_tax(
    taxable_income: Decimal,
    brackets: Sequence[TaxBracket],
) -> Decimal:
    """Closed-form progressive tax: ``fixed + (income - min) * rate``.

    The result is not rounded; callers quantize at the ledger scale.

    Raises:
        ValueError: if ``taxable_income`` is negative.
        MalformedBracketTableError: if the table is malformed.
    """
    validate_brackets(brackets)
    _check_income(taxable_income)

    if taxable_income <= brackets[0].min_income:
        return ZERO

    index = find_bracket(taxable_income, brackets)
    bracket = brackets[index]
    return bracket.fixed_amount + (taxable_income - bracket.min_income) * bracket.rate


def compute_income_tax_marginal(
    taxable_income: Decimal,
    brackets: Sequence[TaxBracket],
) -> Decimal:
    """Progressive tax computed slice by slice from the lowest bracket.

    Raises:
        ValueError: if ``taxable_income`` is negative.
        MalformedBracketTableError: if the table is malformed.
    """
    validate_brackets(brackets)
    _check_income(taxable_income)

    tax = ZERO
    for bracket in brackets:
        if taxable_income <= bracket.min_income:
            break
        upper = taxable_income
        if bracket.max_income is not None and bracket.max_income < upper:
            upper = bracket.max_income
        tax += (upper - bracket.min_income) * bracket.rate
    return tax


def period_income_tax(gross_income: Decimal, snapshot: RuleTableSnapshot) -> Decimal:
    """Quantized tax on one period's gross, annualising when the brackets are annual."""
    periods = snapshot.tax_periods_per_year
    bracket_tax = compute_income_tax(gross_income * periods, snapshot.brackets)
    return quantize(bracket_tax / periods, snapshot.amount_scale)


@dataclass(frozen=True)
class IncomeTaxResult:
    """
    Income tax due for one pay period.

    Immutable value object with the intermediate figures shown on a payslip.
    """

    gross_income: Decimal  # Period income the tax was assessed on
    taxable_income: Decimal  # Income run through the brackets (annualised if applicable)
    periods_per_year: int
    bracket_tax: Decimal  # Unrounded tax on taxable_income
    tax: Decimal  # Period tax, quantized
    bracket_index: int | None  # None when below the first bracket
    marginal_rate: Decimal

    @property
    def effective_rate(self) -> Decimal:
        """Period tax divided by period income."""
        if self.gross_income == ZERO:
            return ZERO
        return self.tax / self.gross_income


class IncomeTaxCalculator:
    """
    Calculate period income tax from a rule table snapshot.

    Pure functions - no I/O, no database access.

    When the snapshot's brackets are annual (``tax_periods_per_year`` > 1)
    the period income is annualised, taxed, and the annual tax divided back
    to one period before rounding.
    """

    @traced_engine("income_tax", "1.0", fingerprint_fields=("gross_income",))
    def calculate(
        self,
        gross_income: Decimal,
        snapshot: RuleTableSnapshot,
    ) -> IncomeTaxResult:
        """
        Calculate income tax for one period.

        Args:
            gross_income: Period gross salary (taxable income base)
            snapshot: Rule tables in force

        Returns:
            IncomeTaxResult with the quantized period tax

        Raises:
            ValueError: If gross_income is negative
            MalformedBracketTableError: If the bracket table is malformed
        """
        t0 = time.monotonic()
        periods = snapshot.tax_periods_per_year
        taxable = gross_income * periods
        bracket_tax = compute_income_tax(taxable, snapshot.brackets)
        tax = quantize(bracket_tax / periods, snapshot.amount_scale)

        index = find_bracket(taxable, snapshot.brackets) if taxable > ZERO else None
        marginal_rate = snapshot.brackets[index].rate if index is not None else ZERO

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.debug("income_tax_calculated", extra={
            "gross_income": str(gross_income),
            "taxable_income": str(taxable),
            "periods_per_year": periods,
            "tax": str(tax),
            "bracket_index": index,
            "duration_ms": duration_ms,
        })

        return IncomeTaxResult(
            gross_income=gross_income,
            taxable_income=taxable,
            periods_per_year=periods,
            bracket_tax=bracket_tax,
            tax=tax,
            bracket_index=index,
            marginal_rate=marginal_rate,
        )
