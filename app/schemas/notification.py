from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional
import uuid

class NotificationCreate(BaseModel):
    user_id: uuid.UUID
    type: str = Field(min_length=1)
    content: str = Field(min_length=1)
    reference_id: Optional[uuid.UUID] = None
    read: bool = False

class NotificationUpdate(BaseModel):
    # Only fields present in the request body are applied
    model_config = ConfigDict(extra="forbid")

    type: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    reference_id: Optional[uuid.UUID] = None
    read: Optional[bool] = None

class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    content: str
    reference_id: Optional[uuid.UUID] = None
    read: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime

class NotificationList(BaseModel):
    items: List[NotificationResponse]
    unread_count: int

class UnreadCount(BaseModel):
    unread_count: int

class MarkAllReadResult(BaseModel):
    updated: int
