# matecloud/modules/pix_orders/models.py
import enum
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Numeric, DateTime, CheckConstraint
from matecloud.db.base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    WAITING_PAYMENT = "waiting_payment"
    WAITING_REVIEW = "waiting_review"
    APPROVED = "approved"
    REJECTED = "rejected"


OPEN_STATUSES = (PaymentStatus.WAITING_PAYMENT.value, PaymentStatus.WAITING_REVIEW.value)
TERMINAL_STATUSES = (PaymentStatus.APPROVED.value, PaymentStatus.REJECTED.value)

# status antigo (pending/paid/canceled, também em espanhol) -> payment_status
LEGACY_STATUS_MAP = {
    "pending": PaymentStatus.WAITING_PAYMENT,
    "pendiente": PaymentStatus.WAITING_PAYMENT,
    "paid": PaymentStatus.APPROVED,
    "pagado": PaymentStatus.APPROVED,
    "canceled": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.REJECTED,
    "cancelado": PaymentStatus.REJECTED,
}


def normalize_payment_status(value: str) -> PaymentStatus:
    v = (value or "").strip().lower()
    if v in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[v]
    return PaymentStatus(v)


def statuses_for_filter(value: str) -> tuple[str, ...]:
    """
    Filtro de listagem. "pending" legado cobre os dois estados abertos,
    do mesmo jeito que `legacy_status` exibe ambos como "pending".
    """
    status = normalize_payment_status(value)
    if status is PaymentStatus.WAITING_PAYMENT and (value or "").strip().lower() in LEGACY_STATUS_MAP:
        return OPEN_STATUSES
    return (status.value,)


def legacy_status(payment_status: str) -> str:
    if payment_status == PaymentStatus.APPROVED.value:
        return "paid"
    if payment_status == PaymentStatus.REJECTED.value:
        return "canceled"
    return "pending"


class PixType(str, enum.Enum):
    CODE = "code"
    QR_IMAGE = "qr_image"


class PixOrder(Base, TimestampMixin):
    __tablename__ = "pix_orders"
    __table_args__ = (
        CheckConstraint(
            "pix_code IS NULL OR pix_qr_image IS NULL",
            name="ck_pix_orders_single_pix_payload",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    plan_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    plan_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.WAITING_PAYMENT.value, index=True
    )

    # dados PIX: ou chave/código ou imagem do QR (base64), nunca os dois
    pix_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pix_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    pix_qr_image: Mapped[str | None] = mapped_column(Text, nullable=True)

    # comprovante enviado pelo usuário (base64)
    payment_proof: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_proof_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_proof_mime: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # revisão do admin
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def status(self) -> str:
        return legacy_status(self.payment_status)
