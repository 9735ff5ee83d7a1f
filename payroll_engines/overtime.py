"""
Overtime Engine - multi-tier overtime pay with per-period caps.

Pure functions with no I/O - overtime rules provided as parameters.

Each category is paid independently::

    paid_hours = min(hours, max_hours_per_period)   (when a cap is set)
    amount     = paid_hours * hourly_rate * multiplier

Hours above a cap are not paid this period.  They are reported in
``clamped_hours_by_category`` together with a warning so that they can be
carried forward or approved; they are never dropped silently.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.rules import OvertimeRule
from payroll_kernel.domain.types import OvertimeCategory
from payroll_kernel.domain.values import ZERO, quantize, sum_amounts
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.overtime")


@dataclass(frozen=True)
class OvertimeLine:
    """Overtime pay for one category."""

    category: OvertimeCategory
    requested_hours: Decimal
    paid_hours: Decimal
    clamped_hours: Decimal
    multiplier: Decimal
    amount: Decimal


@dataclass(frozen=True)
class OvertimeResult:
    """Overtime pay across categories, in category declaration order."""

    hourly_rate: Decimal
    lines: tuple[OvertimeLine, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def amount_by_category(self) -> dict[OvertimeCategory, Decimal]:
        return {line.category: line.amount for line in self.lines}

    @property
    def paid_hours_by_category(self) -> dict[OvertimeCategory, Decimal]:
        return {line.category: line.paid_hours for line in self.lines}

    @property
    def clamped_hours_by_category(self) -> dict[OvertimeCategory, Decimal]:
        return {
            line.category: line.clamped_hours
            for line in self.lines
            if line.clamped_hours > ZERO
        }

    @property
    def total_amount(self) -> Decimal:
        return sum_amounts(line.amount for line in self.lines)

    @property
    def total_paid_hours(self) -> Decimal:
        return sum_amounts(line.paid_hours for line in self.lines)


@traced_engine(
    "overtime", "1.0", fingerprint_fields=("hours_by_category", "hourly_rate")
)
def compute_overtime(
    hours_by_category: Mapping[OvertimeCategory, Decimal],
    hourly_rate: Decimal,
    rules: Sequence[OvertimeRule],
    scale: int = 2,
) -> OvertimeResult:
    """Pay each overtime category at its multiplier, clamping to caps.

    Categories with zero hours produce no line.

    Raises:
        ValueError: if hours or the hourly rate are negative, or a category
            with hours has no rule.
    """
    if hourly_rate < ZERO:
        raise ValueError(f"Hourly rate cannot be negative: {hourly_rate}")

    rules_by_category = {rule.category: rule for rule in rules}
    lines: list[OvertimeLine] = []
    warnings: list[str] = []

    for category in OvertimeCategory:
        hours = hours_by_category.get(category, ZERO)
        if hours < ZERO:
            raise ValueError(f"Overtime hours for {category.value} cannot be negative: {hours}")
        if hours == ZERO:
            continue

        rule = rules_by_category.get(category)
        if rule is None:
            raise ValueError(f"No overtime rule for category {category.value}")

        paid = hours
        clamped = ZERO
        cap = rule.max_hours_per_period
        if cap is not None and hours > cap:
            paid = cap
            clamped = hours - cap
            warnings.append(
                f"Overtime {category.value}: {hours}h requested exceeds the "
                f"{cap}h cap; {clamped}h not paid"
            )
            logger.warning("overtime_hours_clamped", extra={
                "category": category.value,
                "requested_hours": str(hours),
                "cap": str(cap),
                "clamped_hours": str(clamped),
            })

        lines.append(
            OvertimeLine(
                category=category,
                requested_hours=hours,
                paid_hours=paid,
                clamped_hours=clamped,
                multiplier=rule.multiplier,
                amount=quantize(paid * hourly_rate * rule.multiplier, scale),
            )
        )

    return OvertimeResult(
        hourly_rate=hourly_rate,
        lines=tuple(lines),
        warnings=tuple(warnings),
    )
