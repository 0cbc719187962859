# matecloud/modules/plans/models.py
from uuid import uuid4

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, CheckConstraint
from matecloud.db.base import Base, TimestampMixin

PLAN_STATUSES = ("Online", "Offline", "Maintenance")


class Plan(Base, TimestampMixin):
    __tablename__ = "plans"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_plans_stock_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    price: Mapped[str] = mapped_column(String(50), nullable=False)  # texto de vitrine, ex.: "R$ 49,90"
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # specs da VM
    memory: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cpu: Mapped[str | None] = mapped_column(String(100), nullable=True)
    storage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gpu: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resolution: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Online")  # Online | Offline | Maintenance
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
