"""
Profile Model.
Profiles are owned by the identity subsystem; only the identifier and the
presentation preferences stored alongside it are modelled here.
"""
import uuid

from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String, nullable=True)

    # Presentation preferences
    theme_preference = Column(String, default="light", server_default="light")
    color_theme = Column(String, default="green", server_default="green")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # ORM-side cascade loads and deletes each row so every removal is
    # observable by the change feed; the FK cascade covers raw SQL deletes.
    notifications = relationship("Notification", back_populates="profile", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Profile {self.id}>"
