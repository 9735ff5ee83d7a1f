"""
Rule Set Loader (``payroll_config.loader``).

Responsibility
--------------
Loads a rule set's ``rules.yaml`` and parses it into an immutable
``RuleTableSnapshot``.  This is **build/test tooling only** -- services
obtain snapshots through ``payroll_config.get_active_rule_set()`` or a
``RuleTableSource``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel value
types and on ``payroll_engines.tax.build_brackets`` for deriving bracket
fixed amounts.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``payroll_kernel.domain``.
* Amounts never pass through ``float``: YAML numbers are converted to
  ``Decimal`` through their shortest string form.
* No silent defaults for required keys.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` from the kernel dataclasses.

File layout
-----------
::

    rule_set_id: senegal_2024
    version: "1.0"
    effective_from: 2024-01-01
    effective_to: null
    currency: XOF
    minimum_wage: "60000"
    standard_monthly_hours: "173.33"
    amount_scale: 2
    income_tax:
      periods_per_year: 12
      brackets:
        - {min_income: "0", max_income: "630000", rate: "0"}
        - {min_income: "630000", max_income: null, rate: "0.20"}
    contributions:
      - {scheme_name: ipres, kind: pension, employee_rate: "0.06",
         employer_rate: "0.084", income_ceiling: "1800000"}
    overtime:
      - {category: regular, multiplier: "1.25", max_hours_per_period: "80"}
    attendance: {...}            # optional, AttendancePolicy fields

Bracket ``fixed_amount`` may be omitted; when every bracket omits it the
amounts are derived from the lower brackets.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_engines.tax import build_brackets
from payroll_kernel.domain.rules import (
    AttendancePolicy,
    ContributionKind,
    OvertimeRule,
    RuleTableSnapshot,
    SocialContributionRate,
    TaxBracket,
)
from payroll_kernel.domain.types import OvertimeCategory
from payroll_kernel.domain.values import to_decimal

RULES_FILE_NAME = "rules.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Parse an amount or rate from YAML.

    YAML floats are read back through ``repr`` so ``0.06`` becomes
    ``Decimal("0.06")`` rather than its binary approximation.
    """
    if isinstance(value, float):
        return to_decimal(repr(value))
    return to_decimal(value)


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_brackets(data: list[dict[str, Any]]) -> tuple[TaxBracket, ...]:
    """Parse the ``income_tax.brackets`` list."""
    if not data:
        return ()
    if all("fixed_amount" not in item for item in data):
        return build_brackets(
            [(parse_decimal(item["min_income"]), parse_decimal(item["rate"])) for item in data]
        )
    return tuple(
        TaxBracket(
            min_income=parse_decimal(item["min_income"]),
            max_income=_optional_decimal(item.get("max_income")),
            rate=parse_decimal(item["rate"]),
            fixed_amount=parse_decimal(item.get("fixed_amount", 0)),
        )
        for item in data
    )


def parse_contribution(data: dict[str, Any]) -> SocialContributionRate:
    """Parse one ``contributions`` entry."""
    return SocialContributionRate(
        scheme_name=data["scheme_name"],
        employee_rate=parse_decimal(data["employee_rate"]),
        employer_rate=parse_decimal(data["employer_rate"]),
        income_ceiling=_optional_decimal(data.get("income_ceiling")),
        kind=ContributionKind(data.get("kind", ContributionKind.OTHER.value)),
    )


def parse_overtime_rule(data: dict[str, Any]) -> OvertimeRule:
    """Parse one ``overtime`` entry."""
    return OvertimeRule(
        category=OvertimeCategory(data["category"]),
        multiplier=parse_decimal(data["multiplier"]),
        max_hours_per_period=_optional_decimal(data.get("max_hours_per_period")),
    )


def parse_attendance_policy(data: dict[str, Any] | None) -> AttendancePolicy:
    """Parse the optional ``attendance`` mapping; absent keys keep defaults."""
    if not data:
        return AttendancePolicy()
    kwargs: dict[str, Any] = {}
    for key in (
        "minor_delay_max_minutes",
        "moderate_delay_max_minutes",
        "workday_minutes",
        "working_days_per_month",
        "justification_required_after_minutes",
    ):
        if key in data:
            kwargs[key] = int(data[key])
    for key in ("minor_delay_penalty", "severe_delay_escalation"):
        if key in data:
            kwargs[key] = parse_decimal(data[key])
    return AttendancePolicy(**kwargs)


def parse_rule_set(data: dict[str, Any]) -> RuleTableSnapshot:
    """
    Parse a rule set mapping into a RuleTableSnapshot.

    The returned snapshot carries no fingerprint yet; see
    ``payroll_config.integrity.with_fingerprint``.

    Raises:
        KeyError: if a required key is missing.
        ValueError: if a value is out of range.
    """
    income_tax = data["income_tax"]
    return RuleTableSnapshot(
        rule_set_id=data["rule_set_id"],
        version=str(data["version"]),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
        currency=data["currency"],
        minimum_wage=parse_decimal(data["minimum_wage"]),
        standard_monthly_hours=parse_decimal(data["standard_monthly_hours"]),
        tax_periods_per_year=int(income_tax.get("periods_per_year", 1)),
        amount_scale=int(data.get("amount_scale", 2)),
        brackets=parse_brackets(income_tax["brackets"]),
        contribution_rates=tuple(
            parse_contribution(item) for item in data.get("contributions", [])
        ),
        overtime_rules=tuple(
            parse_overtime_rule(item) for item in data.get("overtime", [])
        ),
        attendance_policy=parse_attendance_policy(data.get("attendance")),
    )


def load_rule_set(rule_set_dir: Path) -> RuleTableSnapshot:
    """Load ``rules.yaml`` from a rule set directory."""
    return parse_rule_set(load_yaml_file(Path(rule_set_dir) / RULES_FILE_NAME))
