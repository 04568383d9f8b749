from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
import uuid

class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    full_name: Optional[str] = None
    theme_preference: str
    color_theme: str
    created_at: Optional[datetime] = None

class PreferencesUpdate(BaseModel):
    theme_preference: Optional[str] = None
    color_theme: Optional[str] = None
