"""
Notification Service Layer

All reads and writes of notifications go through here. Every operation
evaluates the row-level policies for the caller before it touches storage,
and the lookup, the policy check and the write share one transaction.

Architecture:
- Router -> NotificationService (this module) -> Models
- Policies live in app.core.policies and are evaluated, never re-implemented here
- Committed writes reach subscribers through app.services.realtime
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import policies
from app.core.config import settings
from app.core.exceptions import AccessDeniedError, ConstraintViolationError, NotFoundError
from app.core.policies import NOTIFICATION_POLICIES, Operation, Policy
from app.models.notification import IMMUTABLE_COLUMNS, Notification
from app.models.profile import Profile
from app.services.audit import AuditService
from app.services.base import BaseService
from app.services import realtime  # noqa: F401  (registers change capture hooks)

REQUIRED_FIELDS = ("user_id", "type", "content")
EDITABLE_FIELDS = ("type", "content", "reference_id", "read")
UNAVAILABLE_MESSAGE = "Notification not found or access denied"


def _coerce_uuid(value: Any, field: str) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ConstraintViolationError(f"{field} must be a UUID", details={"field": field})


class NotificationService(BaseService):

    def __init__(self, db: Session, policy_set: Tuple[Policy, ...] = NOTIFICATION_POLICIES):
        super().__init__(db)
        self.policies = policy_set

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        user_id: Any,
        type: Optional[str],
        content: Optional[str],
        reference_id: Any = None,
        read: bool = False,
        caller_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """
        Insert a notification addressed to user_id.

        caller_id is the authenticated sender, or None for trusted system
        writes. Anyone may address anyone; the sender is recorded in the
        audit trail.
        """
        payload = {
            "user_id": _coerce_uuid(user_id, "user_id"),
            "type": type,
            "content": content,
            "reference_id": _coerce_uuid(reference_id, "reference_id"),
            "read": bool(read) if read is not None else False,
        }
        missing = [field for field in REQUIRED_FIELDS if payload[field] is None]
        if missing:
            raise ConstraintViolationError(
                f"Missing required field(s): {', '.join(missing)}",
                details={"fields": missing},
            )

        policy = policies.enforce(Operation.INSERT, caller_id, payload, self.policies)

        try:
            if self.db.get(Profile, payload["user_id"]) is None:
                raise ConstraintViolationError(
                    "user_id does not reference an existing profile",
                    details={"field": "user_id"},
                )
            notification = Notification(**payload)
            self.db.add(notification)
            self.db.flush()
            AuditService(self.db).log_delivery(notification, caller_id, policy.name)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConstraintViolationError("Notification violates a schema constraint") from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(notification)
        self.log_info(
            f"Notification {notification.id} delivered",
            notification_id=str(notification.id),
            recipient_id=str(notification.user_id),
            caller_id=str(caller_id) if caller_id else None,
            policy=policy.name,
        )
        return notification

    def notify(self, user_id: Any, type: str, content: str, reference_id: Any = None) -> Notification:
        """System-originated delivery, e.g. from background jobs."""
        return self.create(user_id, type, content, reference_id=reference_id, caller_id=None)

    def mark_read(self, caller_id: Optional[uuid.UUID], notification_id: Any) -> Notification:
        notification = self._load(caller_id, notification_id, Operation.UPDATE, for_update=True)
        if not notification.read:
            notification.read = True
        self._commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, caller_id: Optional[uuid.UUID]) -> int:
        """Mark every active unread notification of the caller as read. Returns the count."""
        if caller_id is None:
            return 0
        rows = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == caller_id,
                Notification.read == False,  # noqa: E712
                Notification.deleted_at.is_(None),
            )
            .with_for_update()
            .all()
        )
        # Row by row so each change reaches the change feed
        updated = 0
        for notification in rows:
            if policies.is_allowed(Operation.UPDATE, caller_id, notification, self.policies):
                notification.read = True
                updated += 1
        self._commit()
        return updated

    def update(self, caller_id: Optional[uuid.UUID], notification_id: Any, changes: Dict[str, Any]) -> Notification:
        """Owner edit of the mutable fields. id, user_id and created_at are rejected."""
        immutable = [key for key in changes if key in IMMUTABLE_COLUMNS]
        if immutable:
            raise ConstraintViolationError(
                f"Immutable column(s) cannot be modified: {', '.join(immutable)}",
                details={"columns": immutable},
            )
        unknown = [key for key in changes if key not in EDITABLE_FIELDS]
        if unknown:
            raise ConstraintViolationError(
                f"Column(s) not editable: {', '.join(unknown)}",
                details={"columns": unknown},
            )
        nulled = [key for key in ("type", "content", "read") if key in changes and changes[key] is None]
        if nulled:
            raise ConstraintViolationError(
                f"Required field(s) cannot be null: {', '.join(nulled)}",
                details={"fields": nulled},
            )

        notification = self._load(caller_id, notification_id, Operation.UPDATE, for_update=True)
        for key, value in changes.items():
            if key == "reference_id":
                value = _coerce_uuid(value, key)
            setattr(notification, key, value)
        self._commit()
        self.db.refresh(notification)
        return notification

    def soft_delete(self, caller_id: Optional[uuid.UUID], notification_id: Any) -> Notification:
        """Stamp deleted_at. Repeating it keeps the first timestamp."""
        notification = self._load(caller_id, notification_id, Operation.UPDATE, for_update=True)
        return self._stamp_deleted(notification)

    def delete(self, caller_id: Optional[uuid.UUID], notification_id: Any) -> Notification:
        """
        Delete request from the owner. Gated by the DELETE policy; there is
        no hard-delete path for callers, so an admitted request soft-deletes.
        """
        notification = self._load(caller_id, notification_id, Operation.DELETE, for_update=True)
        return self._stamp_deleted(notification)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, caller_id: Optional[uuid.UUID], notification_id: Any) -> Notification:
        return self._load(caller_id, notification_id, Operation.SELECT)

    def list_notifications(
        self,
        caller_id: Optional[uuid.UUID],
        unread_only: bool = False,
        include_deleted: bool = False,
        type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        """The caller's notifications, most recent first."""
        if caller_id is None:
            return []
        if limit is None:
            limit = settings.notifications.page_size
        limit = min(max(limit, 0), settings.notifications.max_page_size)

        query = self.db.query(Notification).filter(Notification.user_id == caller_id)
        if unread_only:
            query = query.filter(Notification.read == False)  # noqa: E712
        if not include_deleted:
            query = query.filter(Notification.deleted_at.is_(None))
        if type:
            query = query.filter(Notification.type == type)

        rows = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
            .all()
        )
        return [n for n in rows if policies.is_allowed(Operation.SELECT, caller_id, n, self.policies)]

    def unread_count(self, caller_id: Optional[uuid.UUID]) -> int:
        if caller_id is None:
            return 0
        return (
            self.db.query(Notification)
            .filter(
                Notification.user_id == caller_id,
                Notification.read == False,  # noqa: E712
                Notification.deleted_at.is_(None),
            )
            .count()
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _load(
        self,
        caller_id: Optional[uuid.UUID],
        notification_id: Any,
        operation: Operation,
        for_update: bool = False,
    ) -> Notification:
        notification_id = self._lookup_id(notification_id)
        query = self.db.query(Notification).filter(Notification.id == notification_id)
        if for_update:
            query = query.with_for_update()
        notification = query.first()

        if notification is None:
            self.log_info(
                f"{operation.value} on missing notification",
                notification_id=str(notification_id),
                caller_id=str(caller_id) if caller_id else None,
            )
            if settings.notifications.conceal_existence:
                raise AccessDeniedError(UNAVAILABLE_MESSAGE)
            raise NotFoundError("Notification not found")

        message = UNAVAILABLE_MESSAGE if settings.notifications.conceal_existence else "Access denied"
        policies.enforce(operation, caller_id, notification, self.policies, message=message)
        return notification

    def _lookup_id(self, notification_id: Any) -> uuid.UUID:
        try:
            return _coerce_uuid(notification_id, "id")
        except ConstraintViolationError:
            # A malformed id can never match a row; answer like any other miss
            if settings.notifications.conceal_existence:
                raise AccessDeniedError(UNAVAILABLE_MESSAGE)
            raise NotFoundError("Notification not found")

    def _stamp_deleted(self, notification: Notification) -> Notification:
        if notification.deleted_at is None:
            notification.deleted_at = datetime.now(timezone.utc)
        self._commit()
        self.db.refresh(notification)
        return notification

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
