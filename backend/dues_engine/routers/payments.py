"""
Dues Engine - Member Payments Router
Self-service payment history and the payment reminder banner status.
"""
from datetime import date, datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models.db_models import UserDB, PaymentDB
from ..services.billing import (
    DelinquencyEvaluator,
    PaymentLedger,
    PaymentLookupError,
    UserNotFoundError,
    to_money,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CamelModel(BaseModel):
    """Wire models use camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentItem(CamelModel):
    id: str
    user_id: str
    amount: str  # 2dp decimal string
    status: str
    billing_period: str
    billing_month: Optional[str] = None  # YYYY-MM, monthly payments only
    payment_date: datetime
    payment_method: str
    notes: Optional[str] = None
    recorded_by: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, payment: PaymentDB) -> "PaymentItem":
        return cls(
            id=payment.id,
            user_id=payment.user_id,
            amount=str(to_money(payment.amount)),
            status=payment.status.value,
            billing_period=payment.billing_period.value,
            billing_month=payment.billing_month,
            payment_date=payment.payment_date,
            payment_method=payment.payment_method,
            notes=payment.notes,
            recorded_by=payment.recorded_by,
            created_at=payment.created_at,
        )


class PaymentStatusResponse(CamelModel):
    """Reminder banner payload."""
    is_delinquent: bool
    missed_months: List[str]
    amount_owed: str
    next_billing_date: Optional[date] = None
    grace_period_ends: Optional[date] = None


# =============================================================================
# ERROR MAPPING
# =============================================================================

def ledger_unavailable(e: PaymentLookupError) -> HTTPException:
    """Ledger failures are retryable and must never read as 'paid up'."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{e}. Please retry shortly.",
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Delinquency status for the authenticated member.
    Drives the payment reminder banner.
    """
    evaluator = DelinquencyEvaluator(PaymentLedger(db))
    try:
        reminder = evaluator.reminder_status(current_user.id)
    except UserNotFoundError as e:
        logger.warning(f"Payment status requested for unknown user {current_user.id}")
        raise HTTPException(status_code=404, detail=str(e))
    except PaymentLookupError as e:
        raise ledger_unavailable(e)

    verdict = reminder.verdict
    return PaymentStatusResponse(
        is_delinquent=verdict.is_delinquent,
        missed_months=verdict.missed_month_keys,
        amount_owed=str(verdict.amount_owed),
        next_billing_date=reminder.next_billing_date,
        grace_period_ends=reminder.grace_period_ends,
    )


@router.get("", response_model=List[PaymentItem])
async def get_my_payments(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Payment history for the authenticated member, newest first."""
    try:
        payments = PaymentLedger(db).payments_for_user(current_user.id)
    except PaymentLookupError as e:
        raise ledger_unavailable(e)
    return [PaymentItem.from_db(p) for p in payments]
