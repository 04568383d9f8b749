import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Text, Uuid, event, false, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.exceptions import ConstraintViolationError
from app.database import Base

IMMUTABLE_COLUMNS = ("id", "user_id", "created_at")
MUTABLE_COLUMNS = ("type", "content", "reference_id", "read", "deleted_at")


def _utcnow():
    return datetime.now(timezone.utc)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # free-form tag, e.g. comment, follow, system
    content = Column(Text, nullable=False)
    reference_id = Column(Uuid, nullable=True)  # soft pointer, no FK
    read = Column(Boolean, default=False, server_default=false(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    # Relationships
    profile = relationship("Profile", back_populates="notifications")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_image(self) -> dict:
        """Full row image, every column."""
        return {attr.key: getattr(self, attr.key) for attr in inspect(type(self)).column_attrs}

    def __repr__(self):
        return f"<Notification {self.id} user={self.user_id} type={self.type}>"


Index("ix_notifications_user_id", Notification.user_id)
Index("ix_notifications_created_at", Notification.created_at.desc())
Index("ix_notifications_read", Notification.read)
Index("ix_notifications_deleted_at", Notification.deleted_at)


@event.listens_for(Notification, "before_update")
def _guard_immutable_columns(mapper, connection, target):
    state = inspect(target)
    changed = [key for key in IMMUTABLE_COLUMNS if state.attrs[key].history.has_changes()]
    if changed:
        raise ConstraintViolationError(
            f"Immutable column(s) cannot be modified: {', '.join(changed)}",
            details={"columns": changed},
        )


def _load_previous_value(target, value, oldvalue, initiator):
    pass


# Load the prior value on assignment so UPDATE events carry a complete before-image.
for _key in IMMUTABLE_COLUMNS + MUTABLE_COLUMNS:
    event.listen(getattr(Notification, _key), "set", _load_previous_value, active_history=True)
