from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.models.notification import Notification
from app.services import realtime  # noqa: F401  (purged rows are published as DELETE events)
import logging

logger = logging.getLogger(__name__)

class ComplianceService:
    @staticmethod
    def enforce_notification_retention(db: Session, retention_days: Optional[int] = None, now: Optional[datetime] = None):
        """
        Hard-delete notifications soft-deleted more than retention_days ago.
        Active rows are never touched. retention_days <= 0 disables the purge.
        """
        if retention_days is None:
            retention_days = settings.notifications.retention_days
        if retention_days <= 0:
            logger.info("Notification retention purge disabled.")
            return {"notifications_purged": 0, "cutoff_date": None}

        cutoff_date = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

        try:
            # Loaded and deleted through the ORM so each removal emits a change event
            expired = db.query(Notification).filter(
                Notification.deleted_at.isnot(None),
                Notification.deleted_at < cutoff_date,
            ).all()
            for notification in expired:
                db.delete(notification)
            db.commit()

            logger.info(f"Notification retention enforced. Purged {len(expired)} soft-deleted notifications older than {cutoff_date}.")
            return {
                "notifications_purged": len(expired),
                "cutoff_date": cutoff_date.isoformat()
            }
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to enforce notification retention: {e}")
            raise
