"""
Delinquency Evaluator

AUTHORITY: SYSTEM
Decides, per member, which recent billing months lack a completed payment.

Key behaviors:
- Candidate periods are the current month plus the preceding months of the
  lookback window (3 months by default)
- Periods before the member's account-creation month are never missing
- The current month is treated as paid while inside the grace window
  (first 5 days by default); past months never get grace
- amount_owed = missed months x pricing tier, no proration
- Ledger failures propagate as PaymentLookupError; a verdict is never
  produced from partial data

Verdicts are recomputed on every call. Nothing is cached.
"""
import os
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
import logging

from ...models.billing import PeriodKey, DelinquencyVerdict, ReminderStatus
from ...models.db_models import UserDB
from .grace import DEFAULT_GRACE_PERIOD_DAYS, in_grace_period, grace_period_ends
from .ledger import PaymentLedger
from .periods import DEFAULT_LOOKBACK_MONTHS, recent_periods, next_billing_date


logger = logging.getLogger(__name__)


# =============================================================================
# POLICY CONFIGURATION (per deployment)
# =============================================================================

def check_policy(grace_days: int, lookback_months: int):
    """Reject policy values the period calculator cannot work with."""
    if grace_days < 0:
        raise ValueError(f"Grace period must be 0 or more days, got {grace_days}")
    if lookback_months < 1:
        raise ValueError(f"Lookback must be at least 1 month, got {lookback_months}")


GRACE_PERIOD_DAYS = int(os.getenv("PAYMENT_GRACE_PERIOD_DAYS", str(DEFAULT_GRACE_PERIOD_DAYS)))
LOOKBACK_MONTHS = int(os.getenv("PAYMENT_LOOKBACK_MONTHS", str(DEFAULT_LOOKBACK_MONTHS)))

# Validated at import so a bad deployment setting stops the service from starting
check_policy(GRACE_PERIOD_DAYS, LOOKBACK_MONTHS)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Normalize a currency amount to a 2dp Decimal."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class DelinquencyEvaluator:
    """
    Combines the period calculator, grace gate and payment ledger into a
    DelinquencyVerdict per member.

    Usage:
        evaluator = DelinquencyEvaluator(PaymentLedger(db))
        verdict = evaluator.evaluate(user)
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        grace_days: Optional[int] = None,
        lookback_months: Optional[int] = None,
    ):
        self.ledger = ledger
        self.grace_days = GRACE_PERIOD_DAYS if grace_days is None else grace_days
        self.lookback_months = LOOKBACK_MONTHS if lookback_months is None else lookback_months
        check_policy(self.grace_days, self.lookback_months)

    def candidate_periods(self, user: UserDB, now: datetime) -> List[PeriodKey]:
        """Lookback periods that may be billed to this member, most recent first."""
        periods = recent_periods(now, self.lookback_months)
        if user.created_at is None:
            return periods
        joined = PeriodKey.of(user.created_at)
        return [period for period in periods if period >= joined]

    def evaluate(self, user: UserDB, now: Optional[datetime] = None) -> DelinquencyVerdict:
        """Compute the verdict for one member at `now`."""
        if now is None:
            now = datetime.utcnow()

        current = PeriodKey.of(now)
        grace_active = in_grace_period(now, self.grace_days)

        missed: List[PeriodKey] = []
        for period in self.candidate_periods(user, now):
            if period == current and grace_active:
                continue
            if self.ledger.find_completed_payment(user.id, period) is None:
                missed.append(period)

        pricing_tier = to_money(user.pricing_tier or 0)
        verdict = DelinquencyVerdict(
            user=user,
            missed_months=missed,
            amount_owed=to_money(pricing_tier * len(missed)),
            last_payment_date=self.ledger.last_completed_payment_date(user.id),
        )

        if verdict.is_delinquent:
            logger.debug(
                f"User {user.id} delinquent for {verdict.missed_month_keys}, owes {verdict.amount_owed}"
            )
        return verdict

    def evaluate_user_id(self, user_id: str, now: Optional[datetime] = None) -> DelinquencyVerdict:
        """Resolve the member first; unknown ids raise UserNotFoundError."""
        return self.evaluate(self.ledger.get_user(user_id), now)

    def delinquency_report(self, now: Optional[datetime] = None) -> List[DelinquencyVerdict]:
        """
        Verdicts for every delinquent active member, in member insertion order.

        A failure on any member aborts the whole report so the admin view
        never undercounts.
        """
        if now is None:
            now = datetime.utcnow()

        users = self.ledger.active_users()
        report = []
        for user in users:
            verdict = self.evaluate(user, now)
            if verdict.is_delinquent:
                report.append(verdict)

        logger.info(
            f"Delinquency report: {len(report)} of {len(users)} active members delinquent "
            f"(grace={self.grace_days}d, lookback={self.lookback_months}m)"
        )
        return report

    def reminder_status(self, user_id: str, now: Optional[datetime] = None) -> ReminderStatus:
        """Verdict plus billing dates for the member's own reminder banner."""
        if now is None:
            now = datetime.utcnow()

        verdict = self.evaluate_user_id(user_id, now)
        return ReminderStatus(
            verdict=verdict,
            next_billing_date=next_billing_date(now),
            grace_period_ends=grace_period_ends(now, self.grace_days),
        )
