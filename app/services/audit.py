from app.services.base import BaseService
from app.models.audit_log import AuditLog
from typing import Any, Optional
import uuid

class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[Any],
        user_id: Optional[uuid.UUID],
        details: dict,
    ):
        """
        Add an audit entry to the current transaction.
        Strictly append-only. Not committed here so it lands atomically with the action it describes.
        """
        db_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            user_id=user_id,
            details=details,
        )
        self.db.add(db_log)
        return db_log

    def log_delivery(self, notification, actor_id: Optional[uuid.UUID], policy_name: str):
        """
        Sender attribution for inserts. The notifications table has no sender
        column, so cross-user deliveries are only traceable through this trail.
        """
        return self.log_action(
            action="notification_delivered",
            entity_type="notification",
            entity_id=notification.id,
            user_id=actor_id,
            details={
                "recipient_id": str(notification.user_id),
                "type": notification.type,
                "policy": policy_name,
                "cross_user": actor_id is not None and actor_id != notification.user_id,
            },
        )
