"""
Rule Set Validator (``payroll_config.validator``).

Responsibility
--------------
Validates a ``RuleTableSnapshot`` at build time, before it is handed to
any calculation.  Value-level ranges are already enforced by the kernel
dataclasses; this module checks the table as a whole.

Invariants enforced
-------------------
* Bracket table integrity -- ordered, contiguous, last bracket unbounded,
  fixed amounts equal to the cumulative tax below them.
* At least one contribution scheme and one overtime rule.
* Top marginal tax rate plus employee contribution rates below 100%, so a
  higher gross never lowers net pay.

Failure modes
-------------
* Validation errors (``RuleSetValidationResult.errors``)  -> the rule set
  MUST NOT be used.
* Validation warnings  -> the rule set may be used but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from payroll_engines.tax import validate_brackets
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import OvertimeCategory
from payroll_kernel.exceptions import MalformedBracketTableError

# Combined employee rate above which a rule set is flagged for review.
_HIGH_EMPLOYEE_RATE = Decimal("0.25")


@dataclass
class RuleSetValidationResult:
    """
    Result of rule set validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_rule_set(snapshot: RuleTableSnapshot) -> RuleSetValidationResult:
    """
    Validate a rule set snapshot.

    Postconditions:
        - Returns a ``RuleSetValidationResult`` with all errors and
          warnings found.  Never raises for invalid rules.
    """
    result = RuleSetValidationResult()

    try:
        validate_brackets(snapshot.brackets)
    except MalformedBracketTableError as exc:
        result.add_error(str(exc))

    if len(snapshot.currency) != 3 or not snapshot.currency.isalpha():
        result.add_error(f"Currency must be a three-letter code: {snapshot.currency!r}")

    if not snapshot.contribution_rates:
        result.add_error("Rule set defines no contribution schemes")
    if not snapshot.overtime_rules:
        result.add_error("Rule set defines no overtime rules")

    if snapshot.minimum_wage == 0:
        result.add_warning("Minimum wage is zero; BELOW_MINIMUM_WAGE can never fire")

    if snapshot.tax_periods_per_year not in (1, 12):
        result.add_warning(
            f"Unusual tax_periods_per_year for monthly payroll: "
            f"{snapshot.tax_periods_per_year}"
        )

    employee_rate = sum(
        (rate.employee_rate for rate in snapshot.contribution_rates), Decimal("0")
    )
    top_rate = max((bracket.rate for bracket in snapshot.brackets), default=Decimal("0"))
    if top_rate + employee_rate >= 1:
        result.add_error(
            f"Top tax rate {top_rate} plus employee contributions {employee_rate} "
            f"withhold all of every extra unit earned"
        )
    if employee_rate > _HIGH_EMPLOYEE_RATE:
        result.add_warning(
            f"Combined employee contribution rate {employee_rate} exceeds "
            f"{_HIGH_EMPLOYEE_RATE}"
        )

    covered = {rule.category for rule in snapshot.overtime_rules}
    missing = [c.value for c in OvertimeCategory if c not in covered]
    if snapshot.overtime_rules and missing:
        result.add_warning(f"No overtime rule for categories: {', '.join(missing)}")

    return result
