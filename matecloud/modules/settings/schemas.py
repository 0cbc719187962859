# matecloud/modules/settings/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class SettingOut(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SettingUpdate(BaseModel):
    value: str
    description: Optional[str] = Field(None, max_length=255)
