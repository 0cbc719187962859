# matecloud/modules/pix_orders/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, computed_field, ConfigDict

from matecloud.modules.profiles.schemas import SubscriptionOut
from .models import legacy_status


class OrderCreate(BaseModel):
    plan_id: str
    amount: float = Field(gt=0)
    description: Optional[str] = Field(None, max_length=1000)


class ManualOrderIn(BaseModel):
    plan_id: str = Field(alias="planId")
    email: EmailStr
    amount: float = Field(gt=0)
    description: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class RejectIn(BaseModel):
    notes: str = ""


class OrderOut(BaseModel):
    id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    amount: float
    description: Optional[str] = None
    payment_status: str
    pix_type: Optional[str] = None
    pix_code: Optional[str] = None
    payment_proof_filename: Optional[str] = None
    payment_proof_mime: Optional[str] = None
    payment_confirmed_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # só indicadores na listagem; o conteúdo vem no detalhe
    has_qr_image: bool = False
    has_payment_proof: bool = False

    @computed_field
    @property
    def status(self) -> str:
        return legacy_status(self.payment_status)

    @classmethod
    def from_order(cls, order) -> "OrderOut":
        out = cls.model_validate(order)
        out.has_qr_image = bool(order.pix_qr_image)
        out.has_payment_proof = bool(order.payment_proof)
        return out

    model_config = ConfigDict(from_attributes=True)


class OrderDetailOut(OrderOut):
    pix_qr_image: Optional[str] = None
    payment_proof: Optional[str] = None


class ApproveOut(BaseModel):
    status: str = "ok"
    message: str
    order_id: str
    subscription: SubscriptionOut
    active_plan_until: datetime
    stock_decremented: bool


class OrderActionOut(BaseModel):
    status: str = "ok"
    message: str
    order: Optional[OrderOut] = None
