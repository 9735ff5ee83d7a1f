"""
PayPeriod -- calendar month a payroll run covers.

Periods are written ``YYYY-MM`` on the wire and in logs.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class PayPeriod:
    """
    One monthly pay period.

    Contract:
        ``year`` is 1..9999 and ``month`` is 1..12.  Ordering follows the
        calendar, so periods can be sorted and compared directly.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.year <= 9999:
            raise ValueError(f"Invalid pay period year: {self.year}")
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid pay period month: {self.month}")

    @classmethod
    def parse(cls, text: str) -> PayPeriod:
        """Parse ``"2024-01"`` into a PayPeriod."""
        match = _PERIOD_RE.match(text.strip()) if text else None
        if match is None:
            raise ValueError(f"Pay period must look like YYYY-MM, got {text!r}")
        return cls(year=int(match.group(1)), month=int(match.group(2)))

    @classmethod
    def containing(cls, day: date) -> PayPeriod:
        return cls(year=day.year, month=day.month)

    @property
    def days_in_period(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days_in_period)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
