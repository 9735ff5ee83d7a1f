"""
Payroll Kernel

Value types and infrastructure shared by every payroll layer:
- Immutable requests, results and pay periods
- Immutable rule-table snapshots (brackets, schemes, overtime rules)
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging and an injectable clock

The kernel has zero I/O and imports nothing from the other payroll packages.
"""

__version__ = "0.1.0"
