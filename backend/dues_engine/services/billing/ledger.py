"""
Payment Ledger

Read/write access to recorded payments and the members they belong to.
This is the payment-presence collaborator the delinquency evaluator queries.

Key behaviors:
- Only COMPLETED payments satisfy a billing period
- Monthly payments cover their billing_month
- Yearly payments cover the twelve periods starting at their payment month
- Any database failure is surfaced as PaymentLookupError, never as "no payment"
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.billing import PeriodKey
from ...models.db_models import (
    UserDB, PaymentDB, PaymentStatus, BillingPeriod, SubscriptionStatus,
)


logger = logging.getLogger(__name__)

YEARLY_COVERAGE_MONTHS = 12


class BillingServiceError(Exception):
    """Base class for billing service failures."""
    pass


class PaymentLookupError(BillingServiceError):
    """The payment ledger could not be read. Transient; callers may retry."""
    pass


class UserNotFoundError(BillingServiceError):
    """Raised when a user id does not resolve to a member."""

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidPaymentError(BillingServiceError):
    """Raised when a payment fails business validation before recording."""
    pass


class PaymentLedger:
    """
    Payment ledger backed by a SQLAlchemy session.

    Usage:
        ledger = PaymentLedger(db)
        payment = ledger.find_completed_payment(user_id, PeriodKey(2025, 3))
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def get_user(self, user_id: str) -> UserDB:
        try:
            user = self.db.query(UserDB).filter(UserDB.id == user_id).first()
        except SQLAlchemyError as e:
            logger.error(f"User lookup failed for {user_id}: {e}")
            raise PaymentLookupError("User lookup is temporarily unavailable") from e

        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def active_users(self) -> List[UserDB]:
        """Active members in insertion order."""
        try:
            return self.db.query(UserDB).filter(
                UserDB.subscription_status == SubscriptionStatus.ACTIVE
            ).order_by(UserDB.created_at, UserDB.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Active user listing failed: {e}")
            raise PaymentLookupError("User listing is temporarily unavailable") from e

    def count_users(self) -> int:
        try:
            return self.db.query(UserDB).count()
        except SQLAlchemyError as e:
            raise PaymentLookupError("User listing is temporarily unavailable") from e

    # =========================================================================
    # PAYMENT PRESENCE
    # =========================================================================

    def find_completed_payment(self, user_id: str, period: PeriodKey) -> Optional[PaymentDB]:
        """
        Return a completed payment covering `period`, or None.

        Pending and failed payments never satisfy a period.
        """
        # A yearly payment made up to 11 months before the period still covers it
        window_start = period.shift(-(YEARLY_COVERAGE_MONTHS - 1)).first_day()
        window_end = period.next().first_day()

        try:
            return self.db.query(PaymentDB).filter(
                PaymentDB.user_id == user_id,
                PaymentDB.status == PaymentStatus.COMPLETED,
                or_(
                    and_(
                        PaymentDB.billing_period == BillingPeriod.MONTHLY,
                        PaymentDB.billing_month == str(period),
                    ),
                    and_(
                        PaymentDB.billing_period == BillingPeriod.YEARLY,
                        PaymentDB.payment_date >= datetime.combine(window_start, datetime.min.time()),
                        PaymentDB.payment_date < datetime.combine(window_end, datetime.min.time()),
                    ),
                ),
            ).order_by(PaymentDB.payment_date.desc()).first()
        except SQLAlchemyError as e:
            logger.error(f"Payment lookup failed for user={user_id} period={period}: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

    def last_completed_payment_date(self, user_id: str) -> Optional[datetime]:
        """
        Most recent completed payment across all time.

        Not bounded by any reference time: evaluating at a past date can
        return a payment made after that date.
        """
        try:
            payment = self.db.query(PaymentDB).filter(
                PaymentDB.user_id == user_id,
                PaymentDB.status == PaymentStatus.COMPLETED,
            ).order_by(PaymentDB.payment_date.desc()).first()
        except SQLAlchemyError as e:
            logger.error(f"Last payment lookup failed for user={user_id}: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

        return payment.payment_date if payment else None

    # =========================================================================
    # HISTORY
    # =========================================================================

    def payments_for_user(self, user_id: str) -> List[PaymentDB]:
        try:
            return self.db.query(PaymentDB).filter(
                PaymentDB.user_id == user_id
            ).order_by(PaymentDB.payment_date.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Payment history lookup failed for user={user_id}: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

    def all_payments(self) -> List[PaymentDB]:
        try:
            return self.db.query(PaymentDB).order_by(PaymentDB.payment_date.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Payment listing failed: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

    def payments_between(self, start: datetime, end: datetime) -> List[PaymentDB]:
        """Completed payments with start <= payment_date < end."""
        try:
            return self.db.query(PaymentDB).filter(
                PaymentDB.status == PaymentStatus.COMPLETED,
                PaymentDB.payment_date >= start,
                PaymentDB.payment_date < end,
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Payment range lookup failed: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record_payment(
        self,
        user_id: str,
        amount: Decimal,
        payment_date: datetime,
        recorded_by: str,
        billing_period: BillingPeriod = BillingPeriod.MONTHLY,
        billing_month: Optional[PeriodKey] = None,
        payment_method: str = "cash",
        status: PaymentStatus = PaymentStatus.COMPLETED,
        notes: Optional[str] = None,
    ) -> PaymentDB:
        """
        Add a payment to the ledger. Caller commits.

        Monthly payments must name their billing month; yearly payments
        must not (their coverage follows from payment_date).
        """
        if amount is None or amount <= 0:
            raise InvalidPaymentError("Payment amount must be positive")
        if billing_period == BillingPeriod.MONTHLY and billing_month is None:
            raise InvalidPaymentError("Monthly payments require a billing month")
        if billing_period == BillingPeriod.YEARLY:
            billing_month = None

        try:
            self.get_user(user_id)
        except UserNotFoundError as e:
            raise InvalidPaymentError(str(e)) from e

        payment = PaymentDB(
            id=str(uuid4()),
            user_id=user_id,
            amount=amount,
            status=status,
            billing_period=billing_period,
            billing_month=str(billing_month) if billing_month else None,
            payment_date=payment_date,
            payment_method=payment_method,
            notes=notes,
            recorded_by=recorded_by,
        )
        try:
            self.db.add(payment)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Recording payment for user={user_id} failed: {e}")
            raise PaymentLookupError("Payment ledger is temporarily unavailable") from e

        logger.info(
            f"Recorded {billing_period.value} payment {payment.id} for user={user_id} "
            f"amount={amount} period={payment.billing_month or payment_date.date().isoformat()}"
        )
        return payment
