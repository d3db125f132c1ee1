"""
Dues Engine - SQLAlchemy ORM Models
PostgreSQL database models for members, the payment ledger and admin activity
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean, Numeric
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS FOR BILLING
# =============================================================================

class SubscriptionStatus(str, Enum):
    """Membership subscription status, owned by the identity/billing side."""
    ACTIVE = "active"
    OVERDUE = "overdue"
    INACTIVE = "inactive"


class PaymentStatus(str, Enum):
    """Only COMPLETED payments satisfy a billing period."""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class BillingPeriod(str, Enum):
    """Span a single payment covers."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserDB(Base):
    """Portal member with billing attributes."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID, issued by the identity provider
    email = Column(String(255), unique=True, nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    # Flat monthly amount billed to this member
    pricing_tier = Column(Numeric(10, 2), nullable=False, default=Decimal("1.00"))
    subscription_status = Column(
        SQLEnum(SubscriptionStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
        index=True,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payments = relationship(
        "PaymentDB",
        back_populates="user",
        foreign_keys="PaymentDB.user_id",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class PaymentDB(Base):
    """Recorded payment event. Immutable once completed."""
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        SQLEnum(PaymentStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.COMPLETED,
    )
    billing_period = Column(
        SQLEnum(BillingPeriod, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=BillingPeriod.MONTHLY,
    )
    # Period key (YYYY-MM). Required for monthly payments, NULL for yearly ones.
    billing_month = Column(String(7), nullable=True, index=True)

    payment_date = Column(DateTime, nullable=False, index=True)
    payment_method = Column(String(50), nullable=False, default="cash")
    notes = Column(Text, nullable=True)
    recorded_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("UserDB", back_populates="payments", foreign_keys=[user_id])


class PricingTierDB(Base):
    """Portal-wide price points. At most one row has is_current_tier set."""
    __tablename__ = "pricing_tiers"

    id = Column(String(36), primary_key=True)  # UUID
    amount = Column(Numeric(10, 2), nullable=False)
    effective_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    is_current_tier = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AdminActionLogDB(Base):
    """Append-only record of admin mutations."""
    __tablename__ = "admin_action_logs"

    id = Column(String(36), primary_key=True)  # UUID
    admin_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False)  # record_payment, create_pricing_tier, ...
    target_type = Column(String(50), nullable=False)  # payment, pricing_tier, user
    target_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
