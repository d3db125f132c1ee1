"""
Dues Engine - Admin Router
Delinquency report, payment recording, pricing tiers and activity log.
Every mutation is written to the admin action log in the same transaction.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, field_validator, model_validator
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models.billing import PeriodKey
from ..models.db_models import (
    UserDB, PricingTierDB, AdminActionLogDB, BillingPeriod, PaymentStatus,
)
from ..services.audit_log import AdminActionLogService
from ..services.billing import (
    BillingServiceError,
    DelinquencyEvaluator,
    InvalidPaymentError,
    PaymentLedger,
    PaymentLookupError,
    PricingTierNotFoundError,
    PricingTierService,
    compute_billing_stats,
    to_money,
)
from .payments import CamelModel, PaymentItem, ledger_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Ledger timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class UserSummary(CamelModel):
    """Member fields shown in admin tables."""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    pricing_tier: str
    subscription_status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, user: UserDB) -> "UserSummary":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            pricing_tier=str(to_money(user.pricing_tier or 0)),
            subscription_status=user.subscription_status.value,
            created_at=user.created_at,
        )


class DelinquentUserItem(CamelModel):
    user: UserSummary
    missed_months: List[str]
    amount_owed: str
    last_payment_date: Optional[datetime] = None


class RecordPaymentRequest(CamelModel):
    """Request to record a manually received payment."""
    user_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_date: datetime
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    billing_month: Optional[str] = Field(None, description="YYYY-MM, required for monthly payments")
    payment_method: str = Field(default="cash", max_length=50)
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: Optional[str] = None

    @field_validator("payment_date")
    @classmethod
    def normalize_payment_date(cls, v):
        return _naive_utc(v)

    @field_validator("billing_month")
    @classmethod
    def validate_billing_month(cls, v):
        if v is not None:
            PeriodKey.parse(v)
        return v

    @model_validator(mode="after")
    def check_period_fields(self):
        if self.billing_period == BillingPeriod.MONTHLY and not self.billing_month:
            raise ValueError("billingMonth is required for monthly payments")
        if self.billing_period == BillingPeriod.YEARLY:
            # Yearly coverage follows from paymentDate
            self.billing_month = None
        return self


class BillingStatsResponse(CamelModel):
    total_users: int
    collected_monthly_revenue: str
    outstanding_revenue: str


class PricingTierItem(CamelModel):
    id: str
    amount: str
    effective_date: datetime
    is_current_tier: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, tier: PricingTierDB) -> "PricingTierItem":
        return cls(
            id=tier.id,
            amount=str(to_money(tier.amount)),
            effective_date=tier.effective_date,
            is_current_tier=tier.is_current_tier,
            created_at=tier.created_at,
        )


class CreatePricingTierRequest(CamelModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    effective_date: Optional[datetime] = None

    @field_validator("effective_date")
    @classmethod
    def normalize_effective_date(cls, v):
        return _naive_utc(v)


class ActivityItem(CamelModel):
    id: str
    admin_id: str
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    @classmethod
    def from_db(cls, entry: AdminActionLogDB) -> "ActivityItem":
        return cls(
            id=entry.id,
            admin_id=entry.admin_id,
            action=entry.action,
            target_type=entry.target_type,
            target_id=entry.target_id,
            details=entry.details,
            created_at=entry.created_at,
        )


# =============================================================================
# DELINQUENCY
# =============================================================================

@router.get("/payments/delinquent", response_model=List[DelinquentUserItem])
async def get_delinquent_users(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """
    Every active member with missed payments in the lookback window.
    Ledger failures fail the whole report rather than undercounting.
    """
    evaluator = DelinquencyEvaluator(PaymentLedger(db))
    try:
        verdicts = evaluator.delinquency_report()
    except PaymentLookupError as e:
        raise ledger_unavailable(e)

    return [
        DelinquentUserItem(
            user=UserSummary.from_db(v.user),
            missed_months=v.missed_month_keys,
            amount_owed=str(v.amount_owed),
            last_payment_date=v.last_payment_date,
        )
        for v in verdicts
    ]


# =============================================================================
# PAYMENTS
# =============================================================================

@router.get("/payments", response_model=List[PaymentItem])
async def get_all_payments(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """All recorded payments, newest first."""
    try:
        payments = PaymentLedger(db).all_payments()
    except PaymentLookupError as e:
        raise ledger_unavailable(e)
    return [PaymentItem.from_db(p) for p in payments]


@router.post("/payments", response_model=PaymentItem, status_code=status.HTTP_201_CREATED)
async def record_payment(
    request: RecordPaymentRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Record a payment received outside the portal (cash, transfer, ...)."""
    ledger = PaymentLedger(db)
    try:
        payment = ledger.record_payment(
            user_id=request.user_id,
            amount=request.amount,
            payment_date=request.payment_date,
            recorded_by=admin.id,
            billing_period=request.billing_period,
            billing_month=PeriodKey.parse(request.billing_month) if request.billing_month else None,
            payment_method=request.payment_method,
            status=request.status,
            notes=request.notes,
        )
        AdminActionLogService(db).log_action(
            admin_id=admin.id,
            action="record_payment",
            target_type="payment",
            target_id=payment.id,
            details={"userId": payment.user_id, "amount": str(to_money(payment.amount))},
        )
        db.commit()
    except InvalidPaymentError as e:
        db.rollback()
        logger.warning(f"Rejected payment from admin {admin.id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentLookupError as e:
        db.rollback()
        raise ledger_unavailable(e)

    db.refresh(payment)
    return PaymentItem.from_db(payment)


# =============================================================================
# STATS
# =============================================================================

@router.get("/stats", response_model=BillingStatsResponse)
async def get_billing_stats(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Dashboard revenue figures."""
    try:
        stats = compute_billing_stats(PaymentLedger(db))
    except PaymentLookupError as e:
        raise ledger_unavailable(e)

    return BillingStatsResponse(
        total_users=stats.total_users,
        collected_monthly_revenue=str(stats.collected_monthly_revenue),
        outstanding_revenue=str(stats.outstanding_revenue),
    )


# =============================================================================
# PRICING TIERS
# =============================================================================

@router.get("/pricing-tiers", response_model=List[PricingTierItem])
async def get_pricing_tiers(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    return [PricingTierItem.from_db(t) for t in PricingTierService(db).list_tiers()]


@router.get("/pricing-tiers/current", response_model=PricingTierItem)
async def get_current_pricing_tier(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    tier = PricingTierService(db).get_current()
    if tier is None:
        raise HTTPException(status_code=404, detail="No current pricing tier")
    return PricingTierItem.from_db(tier)


@router.post("/pricing-tiers", response_model=PricingTierItem, status_code=status.HTTP_201_CREATED)
async def create_pricing_tier(
    request: CreatePricingTierRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Create a tier; it becomes the current one."""
    try:
        tier = PricingTierService(db).create_tier(request.amount, request.effective_date)
    except BillingServiceError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    AdminActionLogService(db).log_action(
        admin_id=admin.id,
        action="create_pricing_tier",
        target_type="pricing_tier",
        target_id=tier.id,
        details={"amount": str(to_money(tier.amount))},
    )
    db.commit()
    db.refresh(tier)
    return PricingTierItem.from_db(tier)


@router.put("/pricing-tiers/{tier_id}/current", response_model=PricingTierItem)
async def set_current_pricing_tier(
    tier_id: str,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    try:
        tier = PricingTierService(db).set_current(tier_id)
    except PricingTierNotFoundError as e:
        db.rollback()
        logger.warning(f"Admin {admin.id} tried to select unknown pricing tier {tier_id}")
        raise HTTPException(status_code=404, detail=str(e))

    AdminActionLogService(db).log_action(
        admin_id=admin.id,
        action="set_current_pricing_tier",
        target_type="pricing_tier",
        target_id=tier.id,
    )
    db.commit()
    db.refresh(tier)
    return PricingTierItem.from_db(tier)


# =============================================================================
# ACTIVITY
# =============================================================================

@router.get("/activity", response_model=List[ActivityItem])
async def get_activity(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Most recent admin actions, newest first."""
    return [ActivityItem.from_db(e) for e in AdminActionLogService(db).recent()]
