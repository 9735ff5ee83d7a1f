"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll callers (REST layer, payslip generator, batch runners) must react
to failures by category, never by parsing messages:

  - A ValidationError is recoverable by the caller correcting its input.
  - A CalculationError is a defect: an internal invariant broke.
  - A RuleConfigurationError means the rule tables themselves are unusable.

Every exception therefore has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        result = service.calculate_payroll(employee_id, period)
    except ValidationError as e:
        return {"error": e.code, "errors": [i.message for i in e.validation_result.errors]}
    except CalculationError as e:
        alert_on_call(e)   # never expected in normal operation
        raise

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollError (base)
    |
    +-- ValidationError
    |   +-- BusinessRuleViolation
    |
    +-- CalculationError
    |   +-- NegativeNetPayError
    |   +-- DeductionsExceedGrossError
    |   +-- MalformedBracketTableError
    |
    +-- RuleConfigurationError
    |   +-- RuleSetNotFoundError
    |   +-- RuleSetIntegrityError
    |
    +-- EmployeeDataNotFoundError
    |
    +-- PartialBulkFailure

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                         | When Raised
--------------|------------------------------|-----------------------------------------
Validation    | VALIDATION_FAILED            | Request rejected by pre-flight checks
              | BUSINESS_RULE_VIOLATION      | Only legal/business rules failed
--------------|------------------------------|-----------------------------------------
Calculation   | NEGATIVE_NET_PAY             | Aggregated net pay below zero
              | DEDUCTIONS_EXCEED_GROSS      | Deductions larger than gross pay
              | MALFORMED_BRACKET_TABLE      | Brackets unordered, gapped, bad fixed
--------------|------------------------------|-----------------------------------------
Configuration | RULE_SET_NOT_FOUND           | No rule set effective on the date
              | RULE_SET_INTEGRITY_MISMATCH  | Fingerprint differs from approved pin
--------------|------------------------------|-----------------------------------------
Data source   | EMPLOYEE_DATA_NOT_FOUND      | No payroll input for employee/period
--------------|------------------------------|-----------------------------------------
Bulk          | PARTIAL_BULK_FAILURE         | Caller asked a partial batch to raise

PartialBulkFailure is never raised by the batch runner itself. A batch with
failures is a normal outcome; callers needing all-or-nothing semantics call
``BulkOperationResult.raise_for_failures()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from payroll_kernel.domain.types import ValidationResult


class PayrollError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_ERROR"


# Validation exceptions


class ValidationError(PayrollError):
    """Request failed pre-flight validation; calculation did not run."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, employee_id: str, validation_result: ValidationResult):
        self.employee_id = employee_id
        self.validation_result = validation_result
        messages = "; ".join(issue.message for issue in validation_result.errors)
        super().__init__(
            f"Payroll request for employee {employee_id} is invalid: {messages}"
        )


class BusinessRuleViolation(ValidationError):
    """Input is well-formed but breaks a legal or business rule."""

    code: str = "BUSINESS_RULE_VIOLATION"


# Calculation exceptions


class CalculationError(PayrollError):
    """Internal invariant broken during calculation. Always a defect."""

    code: str = "CALCULATION_ERROR"


class NegativeNetPayError(CalculationError):
    """Aggregated net salary is below zero."""

    code: str = "NEGATIVE_NET_PAY"

    def __init__(self, employee_id: str, gross_salary: str, net_salary: str):
        self.employee_id = employee_id
        self.gross_salary = gross_salary
        self.net_salary = net_salary
        super().__init__(
            f"Net salary for employee {employee_id} would be negative: "
            f"gross={gross_salary}, net={net_salary}"
        )


class DeductionsExceedGrossError(CalculationError):
    """Total deductions are larger than gross salary."""

    code: str = "DEDUCTIONS_EXCEED_GROSS"

    def __init__(self, employee_id: str, gross_salary: str, total_deductions: str):
        self.employee_id = employee_id
        self.gross_salary = gross_salary
        self.total_deductions = total_deductions
        super().__init__(
            f"Deductions for employee {employee_id} exceed gross salary: "
            f"deductions={total_deductions}, gross={gross_salary}"
        )


class MalformedBracketTableError(CalculationError):
    """Tax bracket table violates ordering, contiguity or fixed-amount rules."""

    code: str = "MALFORMED_BRACKET_TABLE"

    def __init__(self, reason: str, bracket_index: int | None = None):
        self.reason = reason
        self.bracket_index = bracket_index
        where = f" (bracket {bracket_index})" if bracket_index is not None else ""
        super().__init__(f"Malformed tax bracket table{where}: {reason}")


# Rule configuration exceptions


class RuleConfigurationError(PayrollError):
    """Base exception for rule-table configuration errors."""

    code: str = "RULE_CONFIGURATION_ERROR"


class RuleSetNotFoundError(RuleConfigurationError):
    """No rule set is effective on the requested date."""

    code: str = "RULE_SET_NOT_FOUND"

    def __init__(self, as_of: str, searched: str):
        self.as_of = as_of
        self.searched = searched
        super().__init__(f"No payroll rule set effective on {as_of} in {searched}")


class RuleSetIntegrityError(RuleConfigurationError):
    """Rule set fingerprint does not match its approved pin."""

    code: str = "RULE_SET_INTEGRITY_MISMATCH"

    def __init__(self, rule_set_id: str, expected: str, actual: str, pin_path: str):
        self.rule_set_id = rule_set_id
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Rule set integrity check failed for '{rule_set_id}': "
            f"pinned fingerprint {expected[:16]}... != "
            f"computed fingerprint {actual[:16]}... "
            f"(pin file: {pin_path})"
        )


# Data source exceptions


class EmployeeDataNotFoundError(PayrollError):
    """Employee data source has no payroll input for the employee/period."""

    code: str = "EMPLOYEE_DATA_NOT_FOUND"

    def __init__(self, employee_id: str, period: str):
        self.employee_id = employee_id
        self.period = period
        super().__init__(f"No payroll data for employee {employee_id} in {period}")


# Bulk exceptions


class PartialBulkFailure(PayrollError):
    """A bulk run finished with at least one failed employee."""

    code: str = "PARTIAL_BULK_FAILURE"

    def __init__(self, batch_id: str, failure_count: int, errors: dict[str, Any]):
        self.batch_id = batch_id
        self.failure_count = failure_count
        self.errors = errors
        super().__init__(
            f"Bulk payroll {batch_id} had {failure_count} failed employee(s): "
            f"{sorted(errors)}"
        )
