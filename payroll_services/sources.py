"""Collaborator protocols for the payroll services.

EmployeeDataSource supplies the per-employee request; RuleTableSource
supplies rule snapshots.  ``payroll_config`` provides YamlRuleTableSource
and StaticRuleTableSource; HR integrations provide their own data source.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, runtime_checkable

from payroll_kernel.domain.period import PayPeriod
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.domain.types import PayrollRequest
from payroll_kernel.exceptions import EmployeeDataNotFoundError
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.sources")


@runtime_checkable
class EmployeeDataSource(Protocol):
    """Protocol for loading one employee's payroll input for a period."""

    def get_payroll_request(
        self,
        employee_id: str,
        period: PayPeriod,
    ) -> PayrollRequest:
        """Return the payroll request for the employee and period.

        Raises:
            EmployeeDataNotFoundError: When no data exists.
        """
        ...


@runtime_checkable
class RuleTableSource(Protocol):
    """Protocol for resolving the rule snapshot effective on a date."""

    def get_snapshot(self, as_of: date) -> RuleTableSnapshot:
        """Return the rule snapshot effective on ``as_of``.

        Raises:
            RuleSetNotFoundError: When no rule set is effective.
        """
        ...


class InMemoryEmployeeDataSource:
    """EmployeeDataSource over a fixed collection of requests."""

    def __init__(self, requests: Iterable[PayrollRequest] = ()):
        self._requests: dict[tuple[str, PayPeriod], PayrollRequest] = {}
        for request in requests:
            self.add(request)

    def add(self, request: PayrollRequest) -> None:
        self._requests[(request.employee_id, request.period)] = request

    def get_payroll_request(
        self,
        employee_id: str,
        period: PayPeriod,
    ) -> PayrollRequest:
        request = self._requests.get((employee_id, period))
        if request is None:
            logger.warning("employee_data_not_found", extra={
                "employee_id": employee_id,
                "period": str(period),
            })
            raise EmployeeDataNotFoundError(employee_id, str(period))
        return request
