# matecloud/modules/plans/schemas.py
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field, ConfigDict, field_validator

PlanStatus = Literal["Online", "Offline", "Maintenance"]


class PlanBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    price: str
    description: Optional[str] = None
    stock: int = Field(0, ge=0)
    memory: Optional[str] = None
    cpu: Optional[str] = None
    storage: Optional[str] = None
    gpu: Optional[str] = None
    resolution: Optional[str] = None
    status: PlanStatus = "Online"
    duration_days: Optional[int] = Field(None, ge=1)


class PlanCreate(PlanBase):
    pass


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    price: Optional[str] = None
    description: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    memory: Optional[str] = None
    cpu: Optional[str] = None
    storage: Optional[str] = None
    gpu: Optional[str] = None
    resolution: Optional[str] = None
    status: Optional[PlanStatus] = None
    duration_days: Optional[int] = Field(None, ge=1)

    # colunas NOT NULL: omitir é ok, null explícito não
    @field_validator("name", "price", "stock", "status")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("não pode ser nulo")
        return v


class PlanOut(PlanBase):
    id: str

    @computed_field
    @property
    def available(self) -> bool:
        return self.stock > 0

    model_config = ConfigDict(from_attributes=True)


class StockUpdate(BaseModel):
    stock: int = Field(ge=0)


class PlanStockOut(BaseModel):
    id: str
    name: str
    status: str
    stock: int
    is_low: bool
    is_empty: bool
