"""
Tests for PayrollService and the single-employee pipeline.

Covers:
- The documented payslip scenario end to end
- Rule snapshot resolution date
- BusinessRuleViolation vs ValidationError
- Warning merging and idempotence
- Structured log output
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_config import StaticRuleTableSource, YamlRuleTableSource
from payroll_engines.validation import (
    ABSENCE_EXCEEDS_WORKING_DAYS,
    BELOW_MINIMUM_WAGE,
    DEDUCTIONS_EXCEED_ESTIMATED_NET,
    NEGATIVE_VALUE,
    PERIOD_IN_FUTURE,
)
from payroll_kernel.domain.period import PayPeriod
from payroll_kernel.domain.types import AttendanceInput, DelayTier, OvertimeCategory
from payroll_kernel.exceptions import (
    BusinessRuleViolation,
    EmployeeDataNotFoundError,
    RuleSetNotFoundError,
    ValidationError,
)
from payroll_services import (
    EmployeeDataSource,
    InMemoryEmployeeDataSource,
    PayrollService,
    RuleTableSource,
)
from tests.factories import JANUARY_2024, build_plain_request, build_request


class _RecordingRuleSource:
    """Rule source that records every date it is asked for."""

    def __init__(self, inner):
        self._inner = inner
        self.requested: list[date] = []

    def get_snapshot(self, as_of):
        self.requested.append(as_of)
        return self._inner.get_snapshot(as_of)


@pytest.fixture
def data_source():
    return InMemoryEmployeeDataSource([build_request()])


@pytest.fixture
def service(data_source, rule_source, deterministic_clock):
    return PayrollService(data_source, rule_source, clock=deterministic_clock)


class TestDocumentedScenario:
    """The worked payslip example."""

    def test_net_salary(self, service):
        result = service.calculate_payroll("EMP-001", JANUARY_2024)

        assert result.gross_salary == Decimal("615000.00")
        assert result.income_tax == Decimal("75000.00")
        assert result.contributions_by_scheme == {
            "pension": Decimal("30750.00"),
            "health": Decimal("21525.00"),
        }
        assert result.total_contributions == Decimal("52275.00")
        # 615000 - 75000 - 52275; the published figure of 487500 does not
        # follow from its own inputs.
        assert result.net_salary == Decimal("487725.00")
        assert result.employer_cost == Decimal("685725.00")
        assert result.delay_tier == DelayTier.NONE
        assert result.warnings == ()

    def test_period_as_string(self, service):
        result = service.calculate_payroll("EMP-001", "2024-01")
        assert result.period == JANUARY_2024
        assert result.net_salary == Decimal("487725.00")

    def test_result_traces_rule_set(self, service, snapshot):
        result = service.calculate_payroll("EMP-001", JANUARY_2024)
        assert result.rule_set_id == snapshot.rule_set_id
        assert result.rule_set_fingerprint == snapshot.fingerprint

    def test_idempotent(self, service):
        first = service.calculate_payroll("EMP-001", JANUARY_2024)
        second = service.calculate_payroll("EMP-001", JANUARY_2024)
        assert first == second

    def test_request_not_mutated(self, service):
        request = build_request(attendance=AttendanceInput(delay_minutes=30))
        before = build_request(attendance=AttendanceInput(delay_minutes=30))
        service.calculate_request(request)
        assert request == before


class TestSnapshotResolution:
    """Rules are resolved for the period end, or today for the open period."""

    def test_closed_period_uses_last_day(self, snapshot, deterministic_clock):
        rules = _RecordingRuleSource(StaticRuleTableSource(snapshot))
        service = PayrollService(InMemoryEmployeeDataSource(), rules, deterministic_clock)

        service.calculate_request(build_request())
        assert rules.requested == [date(2024, 1, 31)]

    def test_open_period_uses_today(self, snapshot, deterministic_clock):
        rules = _RecordingRuleSource(StaticRuleTableSource(snapshot))
        service = PayrollService(InMemoryEmployeeDataSource(), rules, deterministic_clock)

        service.calculate_request(build_request(period=PayPeriod(2024, 3)))
        assert rules.requested == [date(2024, 3, 15)]

    def test_explicit_snapshot_skips_source(self, snapshot, deterministic_clock):
        rules = _RecordingRuleSource(StaticRuleTableSource(snapshot))
        service = PayrollService(InMemoryEmployeeDataSource(), rules, deterministic_clock)

        service.calculate_request(build_request(), snapshot=snapshot)
        assert rules.requested == []

    def test_no_effective_rule_set(self, deterministic_clock):
        service = PayrollService(
            InMemoryEmployeeDataSource(), YamlRuleTableSource(), deterministic_clock
        )
        with pytest.raises(RuleSetNotFoundError):
            service.calculate_request(build_request(period=PayPeriod(2023, 12)))


class TestFailures:
    """Tests for error classification."""

    def test_missing_employee_data(self, service):
        with pytest.raises(EmployeeDataNotFoundError) as exc_info:
            service.calculate_payroll("EMP-404", JANUARY_2024)
        assert exc_info.value.employee_id == "EMP-404"
        assert exc_info.value.period == "2024-01"

    def test_below_minimum_wage_is_business_rule_violation(self, service):
        with pytest.raises(BusinessRuleViolation) as exc_info:
            service.calculate_request(build_plain_request(base_salary=Decimal("50000")))
        assert exc_info.value.code == "BUSINESS_RULE_VIOLATION"
        assert exc_info.value.validation_result.error_codes == (BELOW_MINIMUM_WAGE,)

    def test_future_period_is_business_rule_violation(self, service):
        with pytest.raises(BusinessRuleViolation) as exc_info:
            service.calculate_request(build_request(period=PayPeriod(2024, 4)))
        assert exc_info.value.validation_result.error_codes == (PERIOD_IN_FUTURE,)

    def test_malformed_input_is_plain_validation_error(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.calculate_request(build_request(allowances={"bonus": Decimal("-1")}))
        assert not isinstance(exc_info.value, BusinessRuleViolation)
        assert exc_info.value.code == "VALIDATION_FAILED"
        assert NEGATIVE_VALUE in exc_info.value.validation_result.error_codes

    def test_mixed_failures_are_plain_validation_error(self, service):
        request = build_request(
            base_salary=Decimal("50000"),
            deductions={"loan": Decimal("-5")},
        )
        with pytest.raises(ValidationError) as exc_info:
            service.calculate_request(request)
        assert not isinstance(exc_info.value, BusinessRuleViolation)
        assert set(exc_info.value.validation_result.error_codes) == {
            BELOW_MINIMUM_WAGE,
            NEGATIVE_VALUE,
        }

    @pytest.mark.parametrize("absence_days,code", [
        ("25", ABSENCE_EXCEEDS_WORKING_DAYS),
        ("20", DEDUCTIONS_EXCEED_ESTIMATED_NET),
    ])
    def test_unpayable_absence_rejected_before_calculation(self, service, absence_days, code):
        request = build_plain_request(
            attendance=AttendanceInput(absence_days=Decimal(absence_days))
        )
        with pytest.raises(BusinessRuleViolation) as exc_info:
            service.calculate_request(request)
        assert exc_info.value.validation_result.error_codes == (code,)


class TestWarnings:
    """Validation and engine warnings surface on the result."""

    def test_delay_justification_warning(self, service):
        result = service.calculate_request(
            build_request(attendance=AttendanceInput(delay_minutes=30))
        )
        assert result.delay_tier == DelayTier.MODERATE
        assert len(result.warnings) == 1
        assert "justification" in result.warnings[0]

    def test_overtime_cap_reported_once(self, service):
        result = service.calculate_request(
            build_request(hours_by_category={OvertimeCategory.REGULAR: Decimal("45")})
        )
        assert len(result.warnings) == 1
        assert "regular" in result.warnings[0]
        # Only the 40 capped hours are paid: 40 x 500000 / 262.5 x 1.25
        assert result.overtime_amount_by_category[OvertimeCategory.REGULAR] == (
            Decimal("95238.10")
        )

    def test_severe_delay_requires_approval(self, service):
        result = service.calculate_request(
            build_request(attendance=AttendanceInput(delay_minutes=90))
        )
        assert result.delay_tier == DelayTier.SEVERE
        assert result.requires_approval is True


class TestSenegalRuleSet:
    """End to end against the shipped senegal_2024 rules."""

    def test_monthly_payslip(self, deterministic_clock):
        request = build_plain_request("SN-001", period=PayPeriod(2024, 2),
                                      base_salary=Decimal("400000"))
        service = PayrollService(
            InMemoryEmployeeDataSource([request]),
            YamlRuleTableSource(),
            deterministic_clock,
        )

        result = service.calculate_payroll("SN-001", "2024-02")

        assert result.rule_set_id == "senegal_2024"
        assert result.gross_salary == Decimal("400000.00")
        assert result.income_tax == Decimal("100333.33")
        assert result.contributions_by_scheme["ipres"] == Decimal("24000.00")
        assert result.contributions_by_scheme["css"] == Decimal("28000.00")
        assert result.net_salary == Decimal("247666.67")
        assert result.employer_cost == Decimal("489600.00")


class TestLogging:
    """Structured log output of one calculation."""

    def test_lifecycle_events(self, service, captured_logs):
        service.calculate_payroll("EMP-001", JANUARY_2024)
        logs = captured_logs()
        messages = [r["message"] for r in logs]

        assert "payroll_calculation_started" in messages
        completed = next(r for r in logs if r["message"] == "payroll_calculation_completed")
        assert completed["net_salary"] == "487725.00"
        assert completed["employee_id"] == "EMP-001"
        assert completed["period"] == "2024-01"
        assert completed["rule_set_id"] == "documented_example"

    def test_engine_traces(self, service, captured_logs):
        service.calculate_payroll("EMP-001", JANUARY_2024)
        engines = {
            r["engine_name"] for r in captured_logs()
            if r["message"] == "PAYROLL_ENGINE_TRACE"
        }
        assert engines == {
            "overtime", "income_tax", "contributions", "attendance", "aggregation",
        }

    def test_validation_failure_logged(self, service, captured_logs):
        with pytest.raises(BusinessRuleViolation):
            service.calculate_request(build_plain_request(base_salary=Decimal("50000")))
        failed = [r for r in captured_logs() if r["message"] == "payroll_validation_failed"]
        assert failed[0]["error_codes"] == [BELOW_MINIMUM_WAGE]
        assert failed[0]["level"] == "WARNING"


class TestProtocols:
    """Built-in collaborators satisfy the service protocols."""

    def test_sources_conform(self, rule_source):
        assert isinstance(InMemoryEmployeeDataSource(), EmployeeDataSource)
        assert isinstance(rule_source, RuleTableSource)
        assert isinstance(YamlRuleTableSource(), RuleTableSource)
