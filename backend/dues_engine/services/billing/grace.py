"""
Grace Period Gate

A missing payment for the current month is not flagged during the first
`grace_days` days of that month. Past months never get grace.
"""
import calendar
from datetime import date, datetime
from typing import Optional


DEFAULT_GRACE_PERIOD_DAYS = 5


def in_grace_period(
    now: Optional[datetime] = None,
    grace_days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> bool:
    """True when the day-of-month of `now` is within the grace window."""
    if now is None:
        now = datetime.utcnow()
    return now.day <= grace_days


def grace_period_ends(
    now: Optional[datetime] = None,
    grace_days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> Optional[date]:
    """Last day of the current month's grace window, or None once it has passed."""
    if now is None:
        now = datetime.utcnow()
    if not in_grace_period(now, grace_days):
        return None
    last_day = calendar.monthrange(now.year, now.month)[1]
    return date(now.year, now.month, min(grace_days, last_day))
