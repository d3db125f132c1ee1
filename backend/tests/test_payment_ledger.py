"""
Tests for the Payment Ledger against an in-memory database.

Covers:
1. Only completed payments satisfy a period
2. Monthly payments match their billing month exactly
3. Yearly payments cover twelve months from their payment month
4. Last payment date across all history
5. Payment recording validation
6. Database errors surface as PaymentLookupError
"""
import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from dues_engine.models.billing import PeriodKey
from dues_engine.models.db_models import BillingPeriod, PaymentStatus, SubscriptionStatus
from dues_engine.services.billing import (
    DelinquencyEvaluator,
    InvalidPaymentError,
    PaymentLedger,
    PaymentLookupError,
    UserNotFoundError,
    compute_billing_stats,
)


@pytest.fixture
def ledger(db):
    return PaymentLedger(db)


@pytest.fixture
def member(make_user):
    return make_user(pricing_tier="20.00", created_at=datetime(2024, 6, 1))


def record(ledger, db, user, admin, month=None, when=None, **kwargs):
    payment = ledger.record_payment(
        user_id=user.id,
        amount=kwargs.pop("amount", Decimal("20.00")),
        payment_date=when or datetime(2025, 2, 3),
        recorded_by=admin.id,
        billing_month=PeriodKey.parse(month) if month else None,
        **kwargs,
    )
    db.commit()
    return payment


# =============================================================================
# PAYMENT PRESENCE
# =============================================================================

class TestFindCompletedPayment:

    def test_monthly_payment_matches_its_month_only(self, ledger, db, member, admin_user):
        payment = record(ledger, db, member, admin_user, month="2025-02")

        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 2)).id == payment.id
        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 1)) is None
        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 3)) is None

    @pytest.mark.parametrize("status", [PaymentStatus.PENDING, PaymentStatus.FAILED])
    def test_incomplete_payments_do_not_count(self, ledger, db, member, admin_user, status):
        record(ledger, db, member, admin_user, month="2025-02", status=status)

        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 2)) is None

    def test_other_members_payments_do_not_count(self, ledger, db, member, make_user, admin_user):
        other = make_user()
        record(ledger, db, other, admin_user, month="2025-02")

        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 2)) is None

    def test_yearly_payment_covers_twelve_months(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, when=datetime(2024, 6, 20),
               billing_period=BillingPeriod.YEARLY, amount=Decimal("240.00"))

        assert ledger.find_completed_payment(member.id, PeriodKey(2024, 6)) is not None
        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 5)) is not None
        assert ledger.find_completed_payment(member.id, PeriodKey(2025, 6)) is None
        assert ledger.find_completed_payment(member.id, PeriodKey(2024, 5)) is None

    def test_yearly_payment_ignores_billing_month(self, ledger, db, member, admin_user):
        payment = record(ledger, db, member, admin_user, month="2025-01", when=datetime(2024, 6, 20),
                         billing_period=BillingPeriod.YEARLY)

        assert payment.billing_month is None


class TestLastPaymentDate:

    def test_most_recent_completed_payment_any_time(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, month="2023-01", when=datetime(2023, 1, 4))
        record(ledger, db, member, admin_user, month="2023-05", when=datetime(2023, 5, 9))
        record(ledger, db, member, admin_user, month="2025-02", when=datetime(2025, 2, 9),
               status=PaymentStatus.FAILED)

        assert ledger.last_completed_payment_date(member.id) == datetime(2023, 5, 9)

    def test_none_without_history(self, ledger, member):
        assert ledger.last_completed_payment_date(member.id) is None


# =============================================================================
# RECORDING
# =============================================================================

class TestRecordPayment:

    def test_monthly_payment_requires_billing_month(self, ledger, member, admin_user):
        with pytest.raises(InvalidPaymentError):
            ledger.record_payment(member.id, Decimal("20.00"), datetime(2025, 2, 3), admin_user.id)

    def test_amount_must_be_positive(self, ledger, member, admin_user):
        with pytest.raises(InvalidPaymentError):
            ledger.record_payment(member.id, Decimal("0"), datetime(2025, 2, 3), admin_user.id,
                                  billing_month=PeriodKey(2025, 2))

    def test_unknown_member_rejected(self, ledger, admin_user):
        with pytest.raises(InvalidPaymentError):
            ledger.record_payment("nobody", Decimal("20.00"), datetime(2025, 2, 3), admin_user.id,
                                  billing_month=PeriodKey(2025, 2))

    def test_history_is_newest_first(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, month="2025-01", when=datetime(2025, 1, 3))
        record(ledger, db, member, admin_user, month="2025-02", when=datetime(2025, 2, 3))

        history = ledger.payments_for_user(member.id)

        assert [p.billing_month for p in history] == ["2025-02", "2025-01"]


# =============================================================================
# MEMBERS
# =============================================================================

class TestMembers:

    def test_get_user_unknown(self, ledger):
        with pytest.raises(UserNotFoundError):
            ledger.get_user("nobody")

    def test_active_users_in_insertion_order(self, ledger, make_user, admin_user):
        first = make_user(created_at=datetime(2024, 1, 1))
        make_user(subscription_status=SubscriptionStatus.OVERDUE, created_at=datetime(2024, 2, 1))
        second = make_user(created_at=datetime(2024, 3, 1))

        assert [u.id for u in ledger.active_users()] == [first.id, second.id]


# =============================================================================
# FAILURES
# =============================================================================

class TestLedgerFailures:

    @pytest.fixture
    def broken_ledger(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        return PaymentLedger(db)

    def test_payment_lookup_failure_is_surfaced(self, broken_ledger):
        with pytest.raises(PaymentLookupError):
            broken_ledger.find_completed_payment("user-1", PeriodKey(2025, 3))

    def test_user_lookup_failure_is_not_a_not_found(self, broken_ledger):
        with pytest.raises(PaymentLookupError):
            broken_ledger.get_user("user-1")

    def test_report_fails_instead_of_reporting_nobody(self, broken_ledger):
        with pytest.raises(PaymentLookupError):
            DelinquencyEvaluator(broken_ledger, grace_days=5).delinquency_report(datetime(2025, 3, 10))


# =============================================================================
# END TO END
# =============================================================================

class TestLedgerBackedEvaluation:

    def test_reference_scenario(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, month="2025-02", when=datetime(2025, 2, 3))
        evaluator = DelinquencyEvaluator(ledger, grace_days=5, lookback_months=3)

        verdict = evaluator.evaluate(member, datetime(2025, 3, 10))

        assert verdict.missed_month_keys == ["2025-03", "2025-01"]
        assert verdict.amount_owed == Decimal("40.00")
        assert verdict.last_payment_date == datetime(2025, 2, 3)

    def test_last_payment_date_not_bounded_by_reference_time(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, month="2025-02", when=datetime(2025, 2, 3))
        evaluator = DelinquencyEvaluator(ledger, grace_days=5, lookback_months=3)

        verdict = evaluator.evaluate(member, datetime(2025, 1, 15))

        assert verdict.last_payment_date == datetime(2025, 2, 3)

    def test_yearly_payer_not_delinquent(self, ledger, db, member, admin_user):
        record(ledger, db, member, admin_user, when=datetime(2024, 12, 1),
               billing_period=BillingPeriod.YEARLY, amount=Decimal("240.00"))
        evaluator = DelinquencyEvaluator(ledger, grace_days=5, lookback_months=3)

        assert evaluator.evaluate(member, datetime(2025, 2, 10)).is_delinquent is False

    def test_billing_stats(self, ledger, db, member, make_user, admin_user):
        make_user(pricing_tier="5.00")
        make_user(pricing_tier="7.50", subscription_status=SubscriptionStatus.INACTIVE)
        record(ledger, db, member, admin_user, month="2025-03", when=datetime(2025, 3, 2))
        record(ledger, db, member, admin_user, month="2025-02", when=datetime(2025, 2, 2))
        record(ledger, db, member, admin_user, month="2025-03", when=datetime(2025, 3, 4),
               status=PaymentStatus.PENDING, amount=Decimal("99.00"))

        stats = compute_billing_stats(ledger, datetime(2025, 3, 10))

        assert stats.total_users == 4
        assert stats.collected_monthly_revenue == Decimal("20.00")
        assert stats.outstanding_revenue == Decimal("25.00")
