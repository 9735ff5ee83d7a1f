"""Tests for rule set loading, validation, fingerprinting and selection.

Covers the shipped senegal_2024 rule set, YAML parsing, the
APPROVED_FINGERPRINT pin and effective-date selection across rule sets.
"""
from __future__ import annotations

import dataclasses
import shutil
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from payroll_config import (
    StaticRuleTableSource,
    YamlRuleTableSource,
    compute_fingerprint,
    get_active_rule_set,
    validate_rule_set,
    with_fingerprint,
)
from payroll_config.integrity import PINFILE_NAME, read_pinned_fingerprint
from payroll_config.loader import load_rule_set, parse_brackets, parse_decimal
from payroll_engines.tax import IncomeTaxCalculator, build_brackets
from payroll_kernel.domain.rules import ContributionKind, OvertimeRule
from payroll_kernel.domain.types import OvertimeCategory
from payroll_kernel.exceptions import (
    RuleConfigurationError,
    RuleSetIntegrityError,
    RuleSetNotFoundError,
)
from tests.factories import build_snapshot

SHIPPED_SETS = Path(__file__).resolve().parents[2] / "payroll_config" / "sets"


def _rule_set_data(**overrides) -> dict:
    data = {
        "rule_set_id": "test_set",
        "version": "1",
        "effective_from": "2024-01-01",
        "effective_to": None,
        "currency": "XOF",
        "minimum_wage": "60000",
        "standard_monthly_hours": "173.33",
        "income_tax": {
            "periods_per_year": 1,
            "brackets": [
                {"min_income": "0", "rate": "0"},
                {"min_income": "100000", "rate": "0.10"},
            ],
        },
        "contributions": [
            {"scheme_name": "pension", "kind": "pension",
             "employee_rate": "0.05", "employer_rate": "0.08"},
        ],
        "overtime": [
            {"category": "regular", "multiplier": "1.25"},
            {"category": "night", "multiplier": "1.5"},
            {"category": "weekend", "multiplier": "1.5"},
            {"category": "holiday", "multiplier": "2"},
        ],
    }
    data.update(overrides)
    return data


def _write_rule_set(sets_dir: Path, name: str, data: dict) -> Path:
    rule_set_dir = sets_dir / name
    rule_set_dir.mkdir(parents=True)
    with open(rule_set_dir / "rules.yaml", "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    return rule_set_dir


class TestShippedRuleSet:
    """The senegal_2024 rule set shipped with the package."""

    def test_loads_and_validates(self, senegal_snapshot):
        assert senegal_snapshot.rule_set_id == "senegal_2024"
        assert senegal_snapshot.currency == "XOF"
        assert senegal_snapshot.tax_periods_per_year == 12
        assert validate_rule_set(senegal_snapshot).is_valid

    def test_bracket_fixed_amounts_cumulative(self, senegal_snapshot):
        assert [b.fixed_amount for b in senegal_snapshot.brackets] == [
            Decimal("0"),
            Decimal("0"),
            Decimal("174000"),
            Decimal("924000"),
            Decimal("2324000"),
        ]
        assert senegal_snapshot.brackets[-1].is_unbounded

    def test_contribution_schemes(self, senegal_snapshot):
        schemes = {r.scheme_name: r for r in senegal_snapshot.contribution_rates}
        assert set(schemes) == {"ipres", "css", "family_allowance"}
        assert schemes["ipres"].kind == ContributionKind.PENSION
        assert schemes["ipres"].employee_rate == Decimal("0.06")
        assert schemes["family_allowance"].employee_rate == Decimal("0")
        assert all(r.income_ceiling == Decimal("1800000") for r in schemes.values())

    def test_overtime_rules_cover_every_category(self, senegal_snapshot):
        rules = senegal_snapshot.overtime_rules_by_category
        assert set(rules) == set(OvertimeCategory)
        assert rules[OvertimeCategory.REGULAR].max_hours_per_period == Decimal("80")
        assert rules[OvertimeCategory.HOLIDAY].multiplier == Decimal("2.0")

    def test_annual_brackets_applied_to_monthly_gross(self, senegal_snapshot):
        """400000 x 12 = 4.8M: 924000 + 800000 x 35% = 1204000 per year."""
        result = IncomeTaxCalculator().calculate(
            gross_income=Decimal("400000"), snapshot=senegal_snapshot
        )
        assert result.taxable_income == Decimal("4800000")
        assert result.tax == Decimal("100333.33")

    def test_fingerprint_is_deterministic(self, senegal_snapshot):
        again = get_active_rule_set(date(2024, 12, 31))
        assert len(senegal_snapshot.fingerprint) == 64
        assert again.fingerprint == senegal_snapshot.fingerprint
        assert again == senegal_snapshot

    def test_not_effective_before_2024(self):
        with pytest.raises(RuleSetNotFoundError) as exc_info:
            get_active_rule_set(date(2023, 12, 31))
        assert exc_info.value.code == "RULE_SET_NOT_FOUND"
        assert exc_info.value.as_of == "2023-12-31"

    def test_config_trace_logged(self, captured_logs):
        snapshot = get_active_rule_set(date(2024, 6, 1))
        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["rule_set_id"] == "senegal_2024"
        assert traces[0]["fingerprint"] == snapshot.fingerprint
        assert traces[0]["bracket_count"] == 5


class TestLoader:
    """Tests for YAML parsing."""

    def test_yaml_floats_become_exact_decimals(self):
        assert parse_decimal(0.06) == Decimal("0.06")
        assert parse_decimal("0.084") == Decimal("0.084")
        assert parse_decimal(1800000) == Decimal("1800000")

    @pytest.mark.parametrize("text", [".inf", "-.inf", ".nan"])
    def test_yaml_non_finite_floats_rejected(self, text):
        with pytest.raises(ValueError, match="finite"):
            parse_decimal(yaml.safe_load(text))

    def test_fixed_amounts_derived_when_omitted(self):
        brackets = parse_brackets([
            {"min_income": "0", "rate": "0"},
            {"min_income": "100000", "rate": "0.10"},
            {"min_income": "200000", "rate": "0.20"},
        ])
        assert [b.max_income for b in brackets] == [
            Decimal("100000"), Decimal("200000"), None,
        ]
        assert brackets[2].fixed_amount == Decimal("10000")

    def test_load_rule_set(self, tmp_path):
        rule_set_dir = _write_rule_set(tmp_path, "test_set", _rule_set_data())
        snapshot = load_rule_set(rule_set_dir)

        assert snapshot.rule_set_id == "test_set"
        assert snapshot.effective_from == date(2024, 1, 1)
        assert snapshot.fingerprint == ""
        assert snapshot.attendance_policy.workday_minutes == 480
        assert snapshot.contribution_rates[0].income_ceiling is None

    def test_missing_required_key(self, tmp_path):
        data = _rule_set_data()
        del data["currency"]
        rule_set_dir = _write_rule_set(tmp_path, "test_set", data)
        with pytest.raises(KeyError):
            load_rule_set(rule_set_dir)

    def test_attendance_overrides(self, tmp_path):
        data = _rule_set_data(attendance={"minor_delay_max_minutes": 10,
                                          "minor_delay_penalty": "250"})
        snapshot = load_rule_set(_write_rule_set(tmp_path, "test_set", data))
        assert snapshot.attendance_policy.minor_delay_max_minutes == 10
        assert snapshot.attendance_policy.minor_delay_penalty == Decimal("250")
        assert snapshot.attendance_policy.moderate_delay_max_minutes == 60


class TestRuleSetSelection:
    """Tests for get_active_rule_set over a custom directory."""

    def test_latest_effective_set_wins(self, tmp_path):
        _write_rule_set(tmp_path, "a_2024", _rule_set_data(rule_set_id="a_2024"))
        _write_rule_set(tmp_path, "b_2024_07", _rule_set_data(
            rule_set_id="b_2024_07", effective_from="2024-07-01",
        ))

        assert get_active_rule_set(date(2024, 3, 1), tmp_path).rule_set_id == "a_2024"
        assert get_active_rule_set(date(2024, 7, 1), tmp_path).rule_set_id == "b_2024_07"

    def test_higher_version_breaks_tie(self, tmp_path):
        _write_rule_set(tmp_path, "v1", _rule_set_data(rule_set_id="v1", version="1"))
        _write_rule_set(tmp_path, "v2", _rule_set_data(rule_set_id="v2", version="2"))
        assert get_active_rule_set(date(2024, 3, 1), tmp_path).rule_set_id == "v2"

    def test_effective_to_is_inclusive(self, tmp_path):
        _write_rule_set(tmp_path, "closed", _rule_set_data(effective_to="2024-06-30"))

        assert get_active_rule_set(date(2024, 6, 30), tmp_path).rule_set_id == "test_set"
        with pytest.raises(RuleSetNotFoundError):
            get_active_rule_set(date(2024, 7, 1), tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(RuleSetNotFoundError):
            get_active_rule_set(date(2024, 3, 1), tmp_path / "nowhere")

    def test_invalid_rule_set_rejected(self, tmp_path):
        _write_rule_set(tmp_path, "bad", _rule_set_data(currency="XO"))
        with pytest.raises(RuleConfigurationError, match="validation failed"):
            get_active_rule_set(date(2024, 3, 1), tmp_path)

    def test_gapped_brackets_rejected(self, tmp_path):
        data = _rule_set_data()
        data["income_tax"]["brackets"] = [
            {"min_income": "0", "max_income": "100000", "rate": "0", "fixed_amount": "0"},
            {"min_income": "150000", "max_income": None, "rate": "0.1", "fixed_amount": "0"},
        ]
        _write_rule_set(tmp_path, "gapped", data)
        with pytest.raises(RuleConfigurationError, match="gap"):
            get_active_rule_set(date(2024, 3, 1), tmp_path)

    def test_yaml_source(self, tmp_path):
        _write_rule_set(tmp_path, "test_set", _rule_set_data())
        snapshot = YamlRuleTableSource(tmp_path).get_snapshot(date(2024, 3, 1))
        assert snapshot.rule_set_id == "test_set"
        assert snapshot.fingerprint == compute_fingerprint(snapshot)


class TestFingerprintPin:
    """Tests for APPROVED_FINGERPRINT enforcement."""

    def _copy_shipped(self, tmp_path: Path) -> Path:
        target = tmp_path / "senegal_2024"
        shutil.copytree(SHIPPED_SETS / "senegal_2024", target)
        return target

    def test_no_pin_is_draft_mode(self, tmp_path):
        rule_set_dir = self._copy_shipped(tmp_path)
        assert read_pinned_fingerprint(rule_set_dir) is None
        get_active_rule_set(date(2024, 6, 1), tmp_path)

    def test_matching_pin_accepted(self, tmp_path, senegal_snapshot):
        rule_set_dir = self._copy_shipped(tmp_path)
        (rule_set_dir / PINFILE_NAME).write_text(senegal_snapshot.fingerprint + "\n")

        snapshot = get_active_rule_set(date(2024, 6, 1), tmp_path)
        assert snapshot.fingerprint == senegal_snapshot.fingerprint

    def test_mismatched_pin_rejected(self, tmp_path):
        rule_set_dir = self._copy_shipped(tmp_path)
        (rule_set_dir / PINFILE_NAME).write_text("0" * 64)

        with pytest.raises(RuleSetIntegrityError) as exc_info:
            get_active_rule_set(date(2024, 6, 1), tmp_path)
        assert exc_info.value.code == "RULE_SET_INTEGRITY_MISMATCH"
        assert exc_info.value.expected == "0" * 64
        assert isinstance(exc_info.value, RuleConfigurationError)

    def test_edited_rate_breaks_pin(self, tmp_path, senegal_snapshot):
        rule_set_dir = self._copy_shipped(tmp_path)
        (rule_set_dir / PINFILE_NAME).write_text(senegal_snapshot.fingerprint)
        rules_path = rule_set_dir / "rules.yaml"
        rules_path.write_text(
            rules_path.read_text().replace('employee_rate: "0.06"', 'employee_rate: "0.065"')
        )

        with pytest.raises(RuleSetIntegrityError):
            get_active_rule_set(date(2024, 6, 1), tmp_path)


class TestFingerprint:
    """Tests for compute_fingerprint."""

    def test_excludes_fingerprint_field(self):
        snapshot = build_snapshot()
        assert compute_fingerprint(snapshot) == snapshot.fingerprint
        assert compute_fingerprint(dataclasses.replace(snapshot, fingerprint="x")) == (
            snapshot.fingerprint
        )

    def test_equivalent_decimals_fingerprint_identically(self):
        a = build_snapshot(minimum_wage=Decimal("60000"))
        b = build_snapshot(minimum_wage=Decimal("60000.00"))
        assert a.fingerprint == b.fingerprint

    def test_any_rate_change_changes_fingerprint(self):
        base = build_snapshot()
        changed = build_snapshot(
            overtime_rules=(OvertimeRule(OvertimeCategory.REGULAR, Decimal("1.5")),)
        )
        assert base.fingerprint != changed.fingerprint

    def test_static_source_fills_fingerprint(self):
        bare = dataclasses.replace(build_snapshot(), fingerprint="")
        source = StaticRuleTableSource(bare)
        assert source.snapshot.fingerprint == compute_fingerprint(bare)
        assert source.get_snapshot(date(2030, 1, 1)) is source.snapshot


class TestValidateRuleSet:
    """Tests for whole-table validation."""

    def test_documented_example_valid(self):
        result = validate_rule_set(build_snapshot())
        assert result.is_valid
        assert result.warnings == []

    def test_no_schemes_or_overtime_rules(self):
        result = validate_rule_set(build_snapshot(contribution_rates=(), overtime_rules=()))
        assert not result.is_valid
        assert len(result.errors) == 2

    def test_warnings(self):
        snapshot = build_snapshot(
            minimum_wage=Decimal("0"),
            tax_periods_per_year=4,
            overtime_rules=(OvertimeRule(OvertimeCategory.REGULAR, Decimal("1.25")),),
        )
        result = validate_rule_set(snapshot)
        assert result.is_valid
        assert len(result.warnings) == 3
        assert any("night, weekend, holiday" in w for w in result.warnings)

    def test_full_marginal_withholding_rejected(self):
        """Top bracket 91.5% plus 8.5% employee contributions."""
        snapshot = build_snapshot(brackets=build_brackets([(0, "0"), (240000, "0.915")]))
        result = validate_rule_set(snapshot)
        assert not result.is_valid
        assert any("withhold all" in e for e in result.errors)
