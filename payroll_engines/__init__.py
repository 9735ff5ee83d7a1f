"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculators.  This is the canonical import surface for higher
    layers (payroll_config, payroll_services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel (and sibling engine modules).
    MUST NOT import payroll_config, payroll_services or payroll_batch.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via the ``@traced_engine`` decorator
    (see ``payroll_engines.tracer``), emitting PAYROLL_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.
"""

from payroll_engines.aggregation import aggregate, compute_gross
from payroll_engines.attendance import (
    AttendanceAdjustment,
    classify_delay,
    compute_adjustment,
)
from payroll_engines.contributions import (
    ContributionLine,
    ContributionResult,
    compute_contributions,
)
from payroll_engines.overtime import OvertimeLine, OvertimeResult, compute_overtime
from payroll_engines.tax import (
    IncomeTaxCalculator,
    IncomeTaxResult,
    build_brackets,
    compute_income_tax,
    compute_income_tax_marginal,
    validate_brackets,
)
from payroll_engines.tracer import traced_engine
from payroll_engines.validation import (
    BUSINESS_RULE_CODES,
    is_business_rule_failure,
    validate_payroll_request,
)

__all__ = [
    "AttendanceAdjustment",
    "BUSINESS_RULE_CODES",
    "ContributionLine",
    "ContributionResult",
    "IncomeTaxCalculator",
    "IncomeTaxResult",
    "OvertimeLine",
    "OvertimeResult",
    "aggregate",
    "build_brackets",
    "classify_delay",
    "compute_adjustment",
    "compute_contributions",
    "compute_gross",
    "compute_income_tax",
    "compute_income_tax_marginal",
    "compute_overtime",
    "is_business_rule_failure",
    "traced_engine",
    "validate_brackets",
    "validate_payroll_request",
]
