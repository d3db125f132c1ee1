"""
Delinquency Policy - Dry-Run Script

Seeds a throwaway in-memory ledger with reference members and prints the
admin delinquency report at a few reference dates, to show:
1. Grace suppression of the current month early in the month
2. Past months are never graced
3. Months before a member joined are never owed
4. Yearly payments cover twelve months
5. Pending/failed payments do not count

Run with: python dry_run_delinquency.py
"""
import os
import sys
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

# Add app to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dues_engine.database import Base
from dues_engine.models.billing import PeriodKey
from dues_engine.models.db_models import (
    UserDB, UserRole, PaymentStatus, BillingPeriod, SubscriptionStatus,
)
from dues_engine.services.billing import DelinquencyEvaluator, PaymentLedger


engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
SessionLocal = sessionmaker(bind=engine)

REFERENCE_DATES = [
    datetime(2025, 3, 2, 12, 0),
    datetime(2025, 3, 10, 12, 0),
    datetime(2025, 1, 15, 12, 0),
]


def print_header(title: str):
    """Print a formatted section header."""
    print(f"\n{'='*70}")
    print(title)
    print('='*70)


def print_info(msg: str):
    """Print info message."""
    print(f"  [INFO] {msg}")


def seed(db):
    """Create an admin and four members with different payment histories."""
    admin = UserDB(id=str(uuid4()), email="admin@example.org", role=UserRole.ADMIN.value,
                   subscription_status=SubscriptionStatus.INACTIVE, created_at=datetime(2024, 1, 1))
    db.add(admin)

    members = {
        "feb-only": UserDB(id=str(uuid4()), email="feb@example.org", first_name="Feb", last_name="Only",
                           pricing_tier=Decimal("20.00"), created_at=datetime(2024, 6, 1)),
        "new-member": UserDB(id=str(uuid4()), email="new@example.org", first_name="New", last_name="Member",
                             pricing_tier=Decimal("15.00"), created_at=datetime(2025, 3, 1)),
        "yearly": UserDB(id=str(uuid4()), email="yearly@example.org", first_name="Year", last_name="Ly",
                         pricing_tier=Decimal("10.00"), created_at=datetime(2024, 1, 1)),
        "pending": UserDB(id=str(uuid4()), email="pending@example.org", first_name="Pen", last_name="Ding",
                          pricing_tier=Decimal("25.00"), created_at=datetime(2024, 1, 1)),
    }
    db.add_all(members.values())
    db.flush()

    ledger = PaymentLedger(db)
    ledger.record_payment(members["feb-only"].id, Decimal("20.00"), datetime(2025, 2, 3),
                          admin.id, billing_month=PeriodKey(2025, 2))
    ledger.record_payment(members["yearly"].id, Decimal("120.00"), datetime(2024, 6, 20),
                          admin.id, billing_period=BillingPeriod.YEARLY)
    for month in (1, 2, 3):
        ledger.record_payment(members["pending"].id, Decimal("25.00"), datetime(2025, month, 1),
                              admin.id, billing_month=PeriodKey(2025, month), status=PaymentStatus.PENDING)
    db.commit()
    return members


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed(db)
        evaluator = DelinquencyEvaluator(PaymentLedger(db), grace_days=5, lookback_months=3)

        for now in REFERENCE_DATES:
            print_header(f"DELINQUENCY REPORT AT {now.date().isoformat()}")
            report = evaluator.delinquency_report(now)
            if not report:
                print_info("No delinquent members")
            for verdict in report:
                last = verdict.last_payment_date.date().isoformat() if verdict.last_payment_date else "never"
                months = ", ".join(p.display() for p in verdict.missed_months)
                print_info(f"{verdict.user.email:<22} owes ${verdict.amount_owed:>7}  missed: {months}  last paid: {last}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
