"""
Admin Action Log

Append-only record of admin mutations (payments recorded, tiers changed).
Entries are written in the same transaction as the change they describe.
"""
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ..models.db_models import AdminActionLogDB


logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 100


class AdminActionLogService:

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        admin_id: str,
        action: str,
        target_type: str,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AdminActionLogDB:
        entry = AdminActionLogDB(
            id=str(uuid4()),
            admin_id=admin_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(f"Admin {admin_id} {action} {target_type}:{target_id}")
        return entry

    def recent(self, limit: int = RECENT_ACTIVITY_LIMIT) -> List[AdminActionLogDB]:
        return self.db.query(AdminActionLogDB).order_by(
            AdminActionLogDB.created_at.desc()
        ).limit(limit).all()
