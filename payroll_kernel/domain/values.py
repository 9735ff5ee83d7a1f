"""
Values -- Decimal helpers for payroll amounts.

Responsibility:
    Central place for turning user-facing numbers into ``Decimal`` and for
    rounding monetary amounts to the ledger scale.  Every engine rounds
    through ``quantize`` so that rounding behaviour cannot drift between
    calculators.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is never ``float``: ``to_decimal`` rejects floats outright.
    - Rounding is always ROUND_HALF_UP at the snapshot's ``amount_scale``.

Failure modes:
    - TypeError when a float is passed to ``to_decimal``.
    - ValueError when a string is not a valid decimal literal.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")


def _finite(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise ValueError(f"Amount must be finite: {value}")
    return value


def to_decimal(value: Any) -> Decimal:
    """Coerce an int, str or Decimal to ``Decimal``.

    Floats are refused: binary floating point cannot represent most
    currency amounts exactly.  NaN and infinities are refused too.
    """
    if isinstance(value, Decimal):
        return _finite(value)
    if isinstance(value, bool):
        raise TypeError("bool is not a valid amount")
    if isinstance(value, float):
        raise TypeError(
            f"Amounts must be Decimal, int or str, not float: {value!r}"
        )
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal literal: {value!r}") from exc
        return _finite(parsed)
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def quantum(scale: int) -> Decimal:
    """Smallest unit at ``scale`` decimal places (``2`` -> ``0.01``)."""
    return Decimal(1).scaleb(-scale)


def quantize(amount: Decimal, scale: int) -> Decimal:
    """Round ``amount`` ROUND_HALF_UP to ``scale`` decimal places."""
    return amount.quantize(quantum(scale), rounding=ROUND_HALF_UP)


def sum_amounts(amounts: Any) -> Decimal:
    """Sum an iterable of Decimals, starting from an exact zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total
