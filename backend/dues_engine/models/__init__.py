"""Dues Engine - Data Models"""
from .billing import PeriodKey, DelinquencyVerdict, ReminderStatus
from .db_models import (
    # Enums
    SubscriptionStatus, PaymentStatus, BillingPeriod, UserRole,
    # ORM
    UserDB, PaymentDB, PricingTierDB, AdminActionLogDB,
)

__all__ = [
    "PeriodKey", "DelinquencyVerdict", "ReminderStatus",
    "SubscriptionStatus", "PaymentStatus", "BillingPeriod", "UserRole",
    "UserDB", "PaymentDB", "PricingTierDB", "AdminActionLogDB",
]
