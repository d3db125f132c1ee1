"""
Billing Stats

Dashboard figures for the admin console:
- total_users: every member, any status
- collected_monthly_revenue: completed payments dated in the current month
- outstanding_revenue: pricing tiers summed over active members
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .delinquency import to_money
from .ledger import PaymentLedger
from .periods import period_of


@dataclass
class BillingStats:
    total_users: int
    collected_monthly_revenue: Decimal
    outstanding_revenue: Decimal


def compute_billing_stats(ledger: PaymentLedger, now: Optional[datetime] = None) -> BillingStats:
    current = period_of(now)
    start = datetime.combine(current.first_day(), datetime.min.time())
    end = datetime.combine(current.next().first_day(), datetime.min.time())

    collected = sum(
        (to_money(payment.amount) for payment in ledger.payments_between(start, end)),
        Decimal("0"),
    )
    outstanding = sum(
        (to_money(user.pricing_tier or 0) for user in ledger.active_users()),
        Decimal("0"),
    )

    return BillingStats(
        total_users=ledger.count_users(),
        collected_monthly_revenue=to_money(collected),
        outstanding_revenue=to_money(outstanding),
    )
