"""
Billing Period Calculator

Produces the recently-elapsed calendar months that must each carry a
completed payment. Pure functions of the reference time.
"""
from datetime import date, datetime
from typing import List, Optional

from ...models.billing import PeriodKey


DEFAULT_LOOKBACK_MONTHS = 3


def period_of(moment: Optional[datetime] = None) -> PeriodKey:
    """Period containing the given moment (defaults to now, UTC)."""
    if moment is None:
        moment = datetime.utcnow()
    return PeriodKey.of(moment)


def recent_periods(
    now: Optional[datetime] = None,
    count: int = DEFAULT_LOOKBACK_MONTHS,
) -> List[PeriodKey]:
    """
    Return the last `count` periods, current month first.

    Each entry is exactly one calendar month before the previous one, with
    year rollover: January 2025 -> [2025-01, 2024-12, 2024-11].
    """
    if count < 1:
        raise ValueError(f"Lookback count must be positive, got {count}")

    periods = [period_of(now)]
    while len(periods) < count:
        periods.append(periods[-1].previous())
    return periods


def next_billing_date(now: Optional[datetime] = None) -> date:
    """First day of the month after `now`."""
    return period_of(now).next().first_day()
