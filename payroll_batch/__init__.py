"""
payroll_batch -- bulk payroll runs.

Top of the dependency stack: imports payroll_services and payroll_kernel.
Nothing imports from payroll_batch.
"""

from payroll_batch.domain.types import (
    DUPLICATE_EMPLOYEE,
    UNEXPECTED_ERROR,
    BulkItemError,
    BulkOperationResult,
    BulkStatus,
)
from payroll_batch.orchestrator import BulkPayrollOrchestrator

__all__ = [
    "BulkItemError",
    "BulkOperationResult",
    "BulkPayrollOrchestrator",
    "BulkStatus",
    "DUPLICATE_EMPLOYEE",
    "UNEXPECTED_ERROR",
]
