from sqlalchemy import Column, Integer, String, DateTime, JSON, Uuid
from sqlalchemy.sql import func
from app.database import Base

class AuditLog(Base):
    """Append-only attribution trail, e.g. who delivered which notification to whom."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=True, index=True)
    user_id = Column(Uuid, nullable=True, index=True)  # actor; null for system writes
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
