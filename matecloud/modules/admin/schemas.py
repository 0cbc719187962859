# matecloud/modules/admin/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class MaintenanceIn(BaseModel):
    enabled: bool
    message: Optional[str] = None


class UserPlanUpdate(BaseModel):
    # None remove o plano ativo
    plan_id: Optional[str] = None
    duration_days: Optional[int] = Field(None, ge=1)


class AdminUserOut(BaseModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    active_plan: Optional[str] = None
    active_plan_until: Optional[datetime] = None
    is_admin: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatsOut(BaseModel):
    total_users: int
    total_subscriptions: int
    active_subscriptions: int
    open_orders: int
    waiting_review_orders: int
