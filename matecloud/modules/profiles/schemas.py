# matecloud/modules/profiles/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class ProfileOut(BaseModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    active_plan: Optional[str] = None
    active_plan_until: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, max_length=200)
    avatar_url: Optional[str] = Field(None, max_length=500)


class SubscriptionOut(BaseModel):
    id: int
    user_id: str
    plan_id: str
    plan_name: str
    start_date: datetime
    end_date: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivePlanOut(BaseModel):
    plan_id: str
    plan_name: str
    price: str
    description: Optional[str] = None
    expiration_date: datetime
    days_remaining: int
    is_active: bool
    is_expired: bool
