"""
Dues Engine - Billing Value Types

Period keys are carried as PeriodKey values everywhere inside the engine and
only become "YYYY-MM" strings at the HTTP and storage boundary.
"""

from __future__ import annotations
import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional, Union


_PERIOD_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})")


@dataclass(frozen=True, order=True)
class PeriodKey:
    """One calendar month of billing."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month {self.month} for period key")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"Invalid year {self.year} for period key")

    @classmethod
    def parse(cls, value: str) -> "PeriodKey":
        """Parse a strict YYYY-MM string. Anything else is a ValueError."""
        match = _PERIOD_KEY_RE.fullmatch(value or "")
        if not match:
            raise ValueError(f"Malformed period key: {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, moment: Union[date, datetime]) -> "PeriodKey":
        """Period containing the given date or timestamp."""
        return cls(moment.year, moment.month)

    def previous(self) -> "PeriodKey":
        if self.month == 1:
            return PeriodKey(self.year - 1, 12)
        return PeriodKey(self.year, self.month - 1)

    def next(self) -> "PeriodKey":
        if self.month == 12:
            return PeriodKey(self.year + 1, 1)
        return PeriodKey(self.year, self.month + 1)

    def shift(self, months: int) -> "PeriodKey":
        index = self.year * 12 + (self.month - 1) + months
        return PeriodKey(index // 12, index % 12 + 1)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def display(self) -> str:
        """Human label, e.g. "January 2025"."""
        return f"{calendar.month_name[self.month]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass
class DelinquencyVerdict:
    """
    Computed per member per evaluation. Never persisted, never cached.

    missed_months is ordered most recent first.
    """
    user: Any
    missed_months: List[PeriodKey] = field(default_factory=list)
    amount_owed: Decimal = Decimal("0.00")
    last_payment_date: Optional[datetime] = None

    @property
    def is_delinquent(self) -> bool:
        return len(self.missed_months) > 0

    @property
    def missed_month_keys(self) -> List[str]:
        return [str(period) for period in self.missed_months]


@dataclass
class ReminderStatus:
    """Self-service view of a verdict for the reminder banner."""
    verdict: DelinquencyVerdict
    next_billing_date: date
    grace_period_ends: Optional[date] = None

    @property
    def is_delinquent(self) -> bool:
        return self.verdict.is_delinquent
