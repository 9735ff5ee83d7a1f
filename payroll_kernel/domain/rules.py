"""
Rule tables -- immutable statutory parameters for one effective window.

Responsibility:
    Defines the rule values the engines are parameterised with: income tax
    brackets, social contribution schemes, overtime multipliers and the
    attendance policy.  ``RuleTableSnapshot`` bundles one consistent set of
    them, taken once per calculation (or once per batch).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Snapshots are built
    by ``payroll_config`` from YAML, or directly in tests.

Invariants enforced:
    - Rates lie in [0, 1]; overtime multipliers are > 1.
    - Bracket bounds are non-negative and ``max_income > min_income``.
      Table-level rules (ordering, contiguity, fixed amounts) are checked
      by ``payroll_engines.tax.validate_brackets``.
    - Scheme names are unique within a snapshot; overtime categories too.

Failure modes:
    - ValueError on construction with out-of-range values or duplicates.

Audit relevance:
    ``canonical_content()`` is the input of the snapshot fingerprint, which
    is stamped on every PayrollResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_kernel.domain.types import OvertimeCategory
from payroll_kernel.domain.values import ONE, ZERO, to_decimal


class ContributionKind(str, Enum):
    """Social protection branch a scheme belongs to."""

    PENSION = "pension"
    HEALTH = "health"
    FAMILY_ALLOWANCE = "family_allowance"
    OTHER = "other"


@dataclass(frozen=True)
class TaxBracket:
    """
    One income tax bracket covering ``[min_income, max_income)``.

    ``max_income`` of None means unbounded.  ``fixed_amount`` is the
    cumulative tax due on all lower brackets.
    """

    min_income: Decimal
    max_income: Decimal | None
    rate: Decimal
    fixed_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_income", to_decimal(self.min_income))
        object.__setattr__(self, "rate", to_decimal(self.rate))
        object.__setattr__(self, "fixed_amount", to_decimal(self.fixed_amount))
        if self.max_income is not None:
            object.__setattr__(self, "max_income", to_decimal(self.max_income))

        if self.min_income < ZERO:
            raise ValueError(f"Bracket min_income cannot be negative: {self.min_income}")
        if self.max_income is not None and self.max_income <= self.min_income:
            raise ValueError(
                f"Bracket max_income {self.max_income} must exceed "
                f"min_income {self.min_income}"
            )
        if not ZERO <= self.rate <= ONE:
            raise ValueError(f"Bracket rate must be within [0, 1]: {self.rate}")
        if self.fixed_amount < ZERO:
            raise ValueError(f"Bracket fixed_amount cannot be negative: {self.fixed_amount}")

    @property
    def is_unbounded(self) -> bool:
        return self.max_income is None

    def contains(self, income: Decimal) -> bool:
        if income < self.min_income:
            return False
        return self.max_income is None or income < self.max_income


@dataclass(frozen=True)
class SocialContributionRate:
    """
    One contribution scheme (e.g. IPRES pension, CSS family allowance).

    ``income_ceiling`` of None means the whole gross is subject.
    """

    scheme_name: str
    employee_rate: Decimal
    employer_rate: Decimal
    income_ceiling: Decimal | None = None
    kind: ContributionKind = ContributionKind.OTHER

    def __post_init__(self) -> None:
        if not self.scheme_name:
            raise ValueError("scheme_name is required")
        object.__setattr__(self, "employee_rate", to_decimal(self.employee_rate))
        object.__setattr__(self, "employer_rate", to_decimal(self.employer_rate))
        object.__setattr__(self, "kind", ContributionKind(self.kind))
        if self.income_ceiling is not None:
            object.__setattr__(self, "income_ceiling", to_decimal(self.income_ceiling))
            if self.income_ceiling <= ZERO:
                raise ValueError(
                    f"Ceiling for {self.scheme_name} must be positive: {self.income_ceiling}"
                )
        for name in ("employee_rate", "employer_rate"):
            rate = getattr(self, name)
            if not ZERO <= rate <= ONE:
                raise ValueError(f"{self.scheme_name}.{name} must be within [0, 1]: {rate}")


@dataclass(frozen=True)
class OvertimeRule:
    """Pay multiplier (and optional per-period cap) for one overtime category."""

    category: OvertimeCategory
    multiplier: Decimal
    max_hours_per_period: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", OvertimeCategory(self.category))
        object.__setattr__(self, "multiplier", to_decimal(self.multiplier))
        if self.multiplier <= ONE:
            raise ValueError(
                f"Overtime multiplier for {self.category.value} must exceed 1: {self.multiplier}"
            )
        if self.max_hours_per_period is not None:
            object.__setattr__(
                self, "max_hours_per_period", to_decimal(self.max_hours_per_period)
            )
            if self.max_hours_per_period < ZERO:
                raise ValueError(
                    f"Overtime cap for {self.category.value} cannot be negative"
                )


@dataclass(frozen=True)
class AttendancePolicy:
    """Delay tiers and absence parameters."""

    minor_delay_max_minutes: int = 15
    moderate_delay_max_minutes: int = 60
    workday_minutes: int = 480
    working_days_per_month: int = 22
    minor_delay_penalty: Decimal = ZERO
    severe_delay_escalation: Decimal = Decimal("2")
    justification_required_after_minutes: int = 15

    def __post_init__(self) -> None:
        object.__setattr__(self, "minor_delay_penalty", to_decimal(self.minor_delay_penalty))
        object.__setattr__(
            self, "severe_delay_escalation", to_decimal(self.severe_delay_escalation)
        )
        if not 0 < self.minor_delay_max_minutes < self.moderate_delay_max_minutes:
            raise ValueError(
                "Delay tiers must satisfy 0 < minor_delay_max_minutes "
                "< moderate_delay_max_minutes"
            )
        if self.workday_minutes <= 0:
            raise ValueError("workday_minutes must be positive")
        if self.working_days_per_month <= 0:
            raise ValueError("working_days_per_month must be positive")
        if self.minor_delay_penalty < ZERO:
            raise ValueError("minor_delay_penalty cannot be negative")
        if self.severe_delay_escalation < ONE:
            raise ValueError("severe_delay_escalation must be at least 1")


@dataclass(frozen=True)
class RuleTableSnapshot:
    """
    One immutable, consistent set of payroll rules.

    Contract:
        A snapshot is effective on ``[effective_from, effective_to]``
        (``effective_to`` None = open-ended).  ``tax_periods_per_year`` of 1
        means the brackets apply to a single pay period; 12 means annual
        brackets, with monthly income annualised before taxing.

    Guarantees:
        Engines read a snapshot but never modify it, so one snapshot can be
        shared by every worker of a bulk run.
    """

    rule_set_id: str
    version: str
    effective_from: date
    currency: str
    minimum_wage: Decimal
    standard_monthly_hours: Decimal
    brackets: tuple[TaxBracket, ...]
    contribution_rates: tuple[SocialContributionRate, ...]
    overtime_rules: tuple[OvertimeRule, ...]
    attendance_policy: AttendancePolicy = field(default_factory=AttendancePolicy)
    effective_to: date | None = None
    tax_periods_per_year: int = 1
    amount_scale: int = 2
    fingerprint: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "minimum_wage", to_decimal(self.minimum_wage))
        object.__setattr__(
            self, "standard_monthly_hours", to_decimal(self.standard_monthly_hours)
        )
        object.__setattr__(self, "brackets", tuple(self.brackets))
        object.__setattr__(self, "contribution_rates", tuple(self.contribution_rates))
        object.__setattr__(self, "overtime_rules", tuple(self.overtime_rules))

        if self.standard_monthly_hours <= ZERO:
            raise ValueError("standard_monthly_hours must be positive")
        if self.minimum_wage < ZERO:
            raise ValueError("minimum_wage cannot be negative")
        if self.tax_periods_per_year < 1:
            raise ValueError("tax_periods_per_year must be at least 1")
        if not 0 <= self.amount_scale <= 8:
            raise ValueError(f"amount_scale out of range: {self.amount_scale}")
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError("effective_to precedes effective_from")

        schemes = [r.scheme_name for r in self.contribution_rates]
        if len(schemes) != len(set(schemes)):
            raise ValueError(f"Duplicate contribution scheme names: {schemes}")
        categories = [r.category for r in self.overtime_rules]
        if len(categories) != len(set(categories)):
            raise ValueError("Duplicate overtime rules for one category")

    def is_effective(self, on_date: date) -> bool:
        if on_date < self.effective_from:
            return False
        return self.effective_to is None or on_date <= self.effective_to

    @property
    def overtime_rules_by_category(self) -> dict[OvertimeCategory, OvertimeRule]:
        return {rule.category: rule for rule in self.overtime_rules}

    def overtime_rule_for(self, category: OvertimeCategory) -> OvertimeRule | None:
        return self.overtime_rules_by_category.get(category)

    def canonical_content(self) -> dict[str, Any]:
        """Deterministic JSON-friendly view of every rule value.

        Excludes ``fingerprint`` itself.  Decimals are rendered normalised
        so that ``0.20`` and ``0.2`` fingerprint identically.
        """

        def d(value: Decimal | None) -> str | None:
            return None if value is None else format(value.normalize(), "f")

        policy = self.attendance_policy
        return {
            "rule_set_id": self.rule_set_id,
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
            "effective_to": self.effective_to.isoformat() if self.effective_to else None,
            "currency": self.currency,
            "minimum_wage": d(self.minimum_wage),
            "standard_monthly_hours": d(self.standard_monthly_hours),
            "tax_periods_per_year": self.tax_periods_per_year,
            "amount_scale": self.amount_scale,
            "brackets": [
                [d(b.min_income), d(b.max_income), d(b.rate), d(b.fixed_amount)]
                for b in self.brackets
            ],
            "contribution_rates": [
                [
                    r.scheme_name,
                    r.kind.value,
                    d(r.employee_rate),
                    d(r.employer_rate),
                    d(r.income_ceiling),
                ]
                for r in self.contribution_rates
            ],
            "overtime_rules": [
                [r.category.value, d(r.multiplier), d(r.max_hours_per_period)]
                for r in self.overtime_rules
            ],
            "attendance_policy": {
                "minor_delay_max_minutes": policy.minor_delay_max_minutes,
                "moderate_delay_max_minutes": policy.moderate_delay_max_minutes,
                "workday_minutes": policy.workday_minutes,
                "working_days_per_month": policy.working_days_per_month,
                "minor_delay_penalty": d(policy.minor_delay_penalty),
                "severe_delay_escalation": d(policy.severe_delay_escalation),
                "justification_required_after_minutes": (
                    policy.justification_required_after_minutes
                ),
            },
        }
