"""
PayrollService -- single-employee payroll facade.

Contract:
    ``calculate_payroll(employee_id, period)`` loads the employee's request
    from the data source, resolves the rule snapshot and runs the pipeline.
    ``calculate_request(request)`` does the same for a request the caller
    already holds.

Architecture: payroll_services.  Collaborators are injected: an
    EmployeeDataSource, a RuleTableSource and a Clock.

Rule selection:
    Rules are resolved for the last day of the pay period, or for today
    when the period has not ended yet.  A period that has not started is
    still resolved against today's rules so that validation can report
    PERIOD_IN_FUTURE.
"""

from __future__ import annotations

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.period import PayPeriod
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import PayrollRequest, PayrollResult
from payroll_kernel.logging_config import get_logger
from payroll_services.pipeline import calculate_payroll_result
from payroll_services.sources import EmployeeDataSource, RuleTableSource

logger = get_logger("services.payroll")


class PayrollService:
    """Compute payroll for one employee at a time.

    Non-goals:
        - Does NOT persist results, render payslips or write audit trails.
        - Does NOT retry; errors propagate to the caller.
    """

    def __init__(
        self,
        data_source: EmployeeDataSource,
        rule_source: RuleTableSource,
        clock: Clock | None = None,
    ):
        self._data_source = data_source
        self._rule_source = rule_source
        self._clock = clock or SystemClock()

    def calculate_payroll(
        self,
        employee_id: str,
        period: PayPeriod | str,
    ) -> PayrollResult:
        """Load the employee's input for ``period`` and compute pay.

        Raises:
            EmployeeDataNotFoundError: If the data source has no input.
            RuleSetNotFoundError: If no rule set is effective.
            ValidationError: If the request fails validation.
            CalculationError: If a pay invariant is broken.
        """
        if isinstance(period, str):
            period = PayPeriod.parse(period)
        request = self._data_source.get_payroll_request(employee_id, period)
        return self.calculate_request(request)

    def calculate_request(
        self,
        request: PayrollRequest,
        snapshot: RuleTableSnapshot | None = None,
    ) -> PayrollResult:
        """Compute pay for a request, optionally against a given snapshot."""
        today = self._clock.today()
        if snapshot is None:
            snapshot = self._rule_source.get_snapshot(
                min(request.period.last_day, today)
            )
        return calculate_payroll_result(request, snapshot, today)
