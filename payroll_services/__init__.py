"""
payroll_services -- single-employee payroll pipeline and service facade.

Sits above payroll_kernel, payroll_engines and payroll_config.
MUST NOT import payroll_batch.
"""

from payroll_services.payroll_service import PayrollService
from payroll_services.pipeline import calculate_payroll_result, daily_rate, hourly_rate
from payroll_services.sources import (
    EmployeeDataSource,
    InMemoryEmployeeDataSource,
    RuleTableSource,
)

__all__ = [
    "EmployeeDataSource",
    "InMemoryEmployeeDataSource",
    "PayrollService",
    "RuleTableSource",
    "calculate_payroll_result",
    "daily_rate",
    "hourly_rate",
]
