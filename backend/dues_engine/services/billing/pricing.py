"""
Pricing Tier Service

Portal-wide price points. Creating a tier makes it current; exactly one
tier is current at a time.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ...models.db_models import PricingTierDB
from .ledger import BillingServiceError


logger = logging.getLogger(__name__)


class PricingTierNotFoundError(BillingServiceError):
    """Raised when a pricing tier id does not exist."""
    pass


class PricingTierService:

    def __init__(self, db: Session):
        self.db = db

    def get_current(self) -> Optional[PricingTierDB]:
        return self.db.query(PricingTierDB).filter(
            PricingTierDB.is_current_tier.is_(True)
        ).order_by(PricingTierDB.effective_date.desc()).first()

    def list_tiers(self) -> List[PricingTierDB]:
        return self.db.query(PricingTierDB).order_by(PricingTierDB.effective_date.desc()).all()

    def create_tier(self, amount: Decimal, effective_date: Optional[datetime] = None) -> PricingTierDB:
        """Insert a tier and make it the current one. Caller commits."""
        if amount is None or amount <= 0:
            raise BillingServiceError("Pricing tier amount must be positive")

        self._clear_current()
        tier = PricingTierDB(
            id=str(uuid4()),
            amount=amount,
            effective_date=effective_date or datetime.utcnow(),
            is_current_tier=True,
        )
        self.db.add(tier)
        self.db.flush()

        logger.info(f"Created pricing tier {tier.id} amount={amount}")
        return tier

    def set_current(self, tier_id: str) -> PricingTierDB:
        tier = self.db.query(PricingTierDB).filter(PricingTierDB.id == tier_id).first()
        if tier is None:
            raise PricingTierNotFoundError(f"Pricing tier {tier_id} not found")

        self._clear_current(keep_id=tier.id)
        tier.is_current_tier = True
        self.db.flush()

        logger.info(f"Pricing tier {tier.id} is now current")
        return tier

    def _clear_current(self, keep_id: Optional[str] = None):
        query = self.db.query(PricingTierDB).filter(PricingTierDB.is_current_tier.is_(True))
        if keep_id is not None:
            # Bulk update bypasses the identity map; the kept row must not be touched
            query = query.filter(PricingTierDB.id != keep_id)
        query.update({PricingTierDB.is_current_tier: False}, synchronize_session=False)
