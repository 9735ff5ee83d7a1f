"""
Pytest fixtures for the payroll test suite.

Provides:
- Structured logging configuration and log capture
- Deterministic clocks
- Rule snapshot and payroll request factories
"""

import json
import logging
from datetime import date, datetime, timezone
from io import StringIO

import pytest

from payroll_config import StaticRuleTableSource, get_active_rule_set
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.factories import TODAY, build_request, build_snapshot

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.calculate_request(request)
            logs = captured_logs()
            assert any(r["message"] == "payroll_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at noon UTC on ``tests.factories.TODAY``."""
    return DeterministicClock(
        datetime(TODAY.year, TODAY.month, TODAY.day, 12, 0, 0, tzinfo=timezone.utc)
    )


# =============================================================================
# Rule snapshot and request fixtures
# =============================================================================


@pytest.fixture
def snapshot() -> RuleTableSnapshot:
    return build_snapshot()


@pytest.fixture
def make_snapshot():
    """Factory fixture: ``make_snapshot(minimum_wage=Decimal("0"))``."""
    return build_snapshot


@pytest.fixture
def make_request():
    """Factory fixture: ``make_request("EMP-7", base_salary=Decimal("80000"))``."""
    return build_request


@pytest.fixture
def rule_source(snapshot) -> StaticRuleTableSource:
    return StaticRuleTableSource(snapshot)


@pytest.fixture(scope="session")
def senegal_snapshot() -> RuleTableSnapshot:
    """The shipped senegal_2024 rule set."""
    return get_active_rule_set(date(2024, 6, 1))
