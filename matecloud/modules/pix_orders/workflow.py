# matecloud/modules/pix_orders/workflow.py
"""
Ciclo de vida do pedido PIX.

    waiting_payment --(comprovante)--> waiting_review --(admin)--> approved | rejected

A aprovação concede o plano: atualiza o perfil, grava a assinatura, baixa o
estoque e apaga o pedido, tudo na mesma transação. Pedido rejeitado fica
guardado com as notas do admin.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matecloud.core.config import settings
from matecloud.modules.plans.crud import decrement_stock
from matecloud.modules.plans.models import Plan
from matecloud.modules.profiles.crud import grant_plan, has_unexpired_plan
from matecloud.modules.profiles.models import Profile, Subscription
from matecloud.modules.settings.crud import get_setting
from matecloud.utils.dates import plan_window, utcnow
from .models import (
    OPEN_STATUSES,
    PaymentStatus,
    PixOrder,
    PixType,
    statuses_for_filter,
)

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"


class OrderError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OrderValidationError(OrderError):
    status_code = 400


class OrderNotFound(OrderError):
    status_code = 404


class OrderConflict(OrderError):
    status_code = 409


class InvalidTransition(OrderConflict):
    pass


class OrderCascadeError(OrderError):
    status_code = 500


@dataclass
class ApprovalResult:
    order_id: str
    plan: Plan
    subscription: Subscription
    active_plan_until: datetime
    stock_decremented: bool


def validate_upload(
    content: bytes,
    content_type: Optional[str],
    *,
    allow_pdf: bool = True,
    max_bytes: Optional[int] = None,
) -> str:
    """Valida tamanho e MIME antes de qualquer acesso ao banco. Devolve o MIME normalizado."""
    limit = max_bytes or settings.MAX_PROOF_BYTES
    if not content:
        raise OrderValidationError("Arquivo vazio")
    if len(content) > limit:
        raise OrderValidationError(f"Arquivo muito grande (máximo {limit // (1024 * 1024)}MB)")

    mime = (content_type or "").split(";")[0].strip().lower()
    if mime.startswith("image/"):
        return mime
    if allow_pdf and mime == PDF_MIME:
        return mime
    allowed = "imagem ou PDF" if allow_pdf else "imagem"
    raise OrderValidationError(f"Tipo de arquivo não suportado ({mime or 'desconhecido'}); envie {allowed}")


def _encode(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


async def _get_order(db: AsyncSession, order_id: str, *, for_update: bool = False) -> PixOrder:
    stmt = select(PixOrder).where(PixOrder.id == order_id)
    if for_update:
        stmt = stmt.with_for_update()
    order = (await db.execute(stmt)).scalar_one_or_none()
    if not order:
        raise OrderNotFound("Pedido não encontrado")
    return order


async def get_order(db: AsyncSession, order_id: str) -> PixOrder:
    return await _get_order(db, order_id)


async def list_orders(db: AsyncSession, payment_status: Optional[str] = None) -> list[PixOrder]:
    stmt = select(PixOrder)
    if payment_status:
        try:
            wanted = statuses_for_filter(payment_status)
        except ValueError:
            raise OrderValidationError(f"payment_status inválido: {payment_status}")
        stmt = stmt.where(PixOrder.payment_status.in_(wanted))
    stmt = stmt.order_by(PixOrder.created_at.desc(), PixOrder.id.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_user_orders(db: AsyncSession, user_id: str) -> list[PixOrder]:
    res = await db.execute(
        select(PixOrder)
        .where(PixOrder.user_id == user_id)
        .order_by(PixOrder.created_at.desc(), PixOrder.id.desc())
    )
    return list(res.scalars().all())


async def _find_open_order(
    db: AsyncSession, plan_id: str, *, user_id: Optional[str] = None, email: Optional[str] = None
) -> Optional[PixOrder]:
    stmt = select(PixOrder).where(
        PixOrder.plan_id == plan_id,
        PixOrder.payment_status.in_(OPEN_STATUSES),
    )
    if user_id:
        stmt = stmt.where(PixOrder.user_id == user_id)
    else:
        stmt = stmt.where(PixOrder.email == email)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none()


async def create_order(
    db: AsyncSession,
    *,
    plan_id: str,
    amount: float | Decimal,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    description: Optional[str] = None,
    order_id: Optional[str] = None,
    check_availability: bool = False,
    dedupe_by_email: bool = False,
) -> PixOrder:
    """
    Cria o pedido em waiting_payment.
    Conflito quando já existe pedido aberto para o mesmo plano e usuário (ou e-mail, no fluxo manual).
    `check_availability` liga as regras da compra pelo próprio usuário.
    """
    if not user_id and not email:
        raise OrderValidationError("Pedido precisa de usuário ou e-mail")
    email = email.strip().lower() if email else None

    if order_id and await db.get(PixOrder, order_id):
        raise OrderConflict("Pedido já existe")

    plan = await db.get(Plan, plan_id)
    if not plan:
        raise OrderNotFound("Plano não encontrado")

    if check_availability:
        if plan.status != "Online":
            raise OrderValidationError(f"Plano {plan.name} indisponível no momento")
        if plan.stock <= 0:
            msg = await get_setting(db, "stock_empty_message")
            raise OrderValidationError(msg or "Plano sem estoque")
        profile = await db.get(Profile, user_id) if user_id else None
        if profile and has_unexpired_plan(profile):
            raise OrderConflict("Você já possui um plano ativo. Aguarde até o vencimento para adquirir um novo plano.")

    lookup_user = None if dedupe_by_email else user_id
    if await _find_open_order(db, plan.id, user_id=lookup_user, email=email):
        raise OrderConflict("Já existe um pedido pendente para este plano")

    order = PixOrder(
        user_id=user_id,
        email=email,
        plan_id=plan.id,
        plan_name=plan.name,
        amount=Decimal(str(amount)),
        description=description,
        payment_status=PaymentStatus.WAITING_PAYMENT.value,
    )
    if order_id:
        order.id = order_id
    db.add(order)
    await db.commit()
    await db.refresh(order)

    logger.info(
        "Novo pedido PIX pendente: pedido=%s plano=%s usuario=%s valor=%s",
        order.id, order.plan_name, order.user_id or order.email, order.amount,
    )
    return order


async def attach_pix_details(
    db: AsyncSession,
    order_id: str,
    *,
    pix_code: Optional[str] = None,
    qr_image: Optional[bytes] = None,
    qr_mime: Optional[str] = None,
) -> PixOrder:
    """Admin informa a chave PIX ou a imagem do QR; o outro campo é limpo. Estado não muda."""
    code = (pix_code or "").strip()
    if bool(code) == (qr_image is not None):
        raise OrderValidationError("Informe a chave PIX ou a imagem do QR Code (apenas um dos dois)")
    if qr_image is not None:
        validate_upload(qr_image, qr_mime, allow_pdf=False)

    order = await _get_order(db, order_id)
    if order.payment_status != PaymentStatus.WAITING_PAYMENT.value:
        raise InvalidTransition("Dados PIX só podem ser alterados enquanto o pedido aguarda pagamento")

    if code:
        order.pix_type = PixType.CODE.value
        order.pix_code = code
        order.pix_qr_image = None
    else:
        order.pix_type = PixType.QR_IMAGE.value
        order.pix_qr_image = _encode(qr_image)
        order.pix_code = None

    await db.commit()
    await db.refresh(order)
    logger.info("Dados PIX (%s) anexados ao pedido %s", order.pix_type, order.id)
    return order


async def submit_payment_proof(
    db: AsyncSession,
    order_id: str,
    user_id: str,
    *,
    content: bytes,
    filename: Optional[str],
    content_type: Optional[str],
    now: Optional[datetime] = None,
) -> PixOrder:
    mime = validate_upload(content, content_type)

    order = await _get_order(db, order_id)
    if order.user_id != user_id:
        # não revela pedidos de outros usuários
        raise OrderNotFound("Pedido não encontrado")
    if order.payment_status not in OPEN_STATUSES:
        raise InvalidTransition("Pedido já foi revisado")

    order.payment_proof = _encode(content)
    order.payment_proof_filename = filename or "comprovante"
    order.payment_proof_mime = mime
    order.payment_confirmed_at = now or utcnow()
    order.payment_status = PaymentStatus.WAITING_REVIEW.value

    await db.commit()
    await db.refresh(order)
    logger.info("Comprovante recebido para o pedido %s (%s, %d bytes)", order.id, mime, len(content))
    return order


async def approve_order(
    db: AsyncSession,
    order_id: str,
    *,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    """
    Concede o plano do pedido numa única transação:
    perfil -> assinatura -> baixa de estoque -> remoção do pedido.
    Qualquer falha desfaz tudo.
    """
    try:
        order = await _get_order(db, order_id, for_update=True)
        if not order.user_id or not order.plan_id:
            raise OrderValidationError("Pedido sem usuário ou plano associado")
        if order.payment_status not in OPEN_STATUSES:
            raise InvalidTransition("Pedido já foi revisado")

        plan = await db.get(Plan, order.plan_id)
        if not plan:
            raise OrderNotFound("Plano do pedido não encontrado")
        profile = await db.get(Profile, order.user_id)
        if not profile:
            raise OrderNotFound("Perfil do usuário não encontrado")

        duration = plan.duration_days or settings.DEFAULT_PLAN_DURATION_DAYS
        start, end = plan_window(duration, now)

        subscription = await grant_plan(db, profile, plan, start, end)

        decremented = await decrement_stock(db, plan.id)
        if not decremented:
            logger.warning("Estoque do plano %s já estava zerado; aprovação do pedido %s segue", plan.name, order_id)

        res = await db.execute(
            delete(PixOrder)
            .where(PixOrder.id == order_id)
            .execution_options(synchronize_session=False)
        )
        if (res.rowcount or 0) == 0:
            raise OrderConflict("Pedido já foi processado por outra requisição")

        await db.commit()
    except OrderError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Falha na aprovação do pedido %s; transação desfeita", order_id)
        raise OrderCascadeError(f"Falha ao aprovar pedido: {e.__class__.__name__}") from e

    await db.refresh(subscription)
    logger.info(
        "Pedido %s aprovado: plano %s ativo para %s até %s",
        order_id, plan.name, subscription.user_id, end.isoformat(),
    )
    return ApprovalResult(
        order_id=order_id,
        plan=plan,
        subscription=subscription,
        active_plan_until=end,
        stock_decremented=decremented,
    )


async def reject_order(
    db: AsyncSession,
    order_id: str,
    notes: str,
    *,
    now: Optional[datetime] = None,
) -> PixOrder:
    notes = (notes or "").strip()
    if not notes:
        raise OrderValidationError("Informe o motivo da rejeição")

    order = await _get_order(db, order_id)
    if order.payment_status not in OPEN_STATUSES:
        raise InvalidTransition("Pedido já foi revisado")

    order.payment_status = PaymentStatus.REJECTED.value
    order.reviewed_at = now or utcnow()
    order.admin_notes = notes
    await db.commit()
    await db.refresh(order)
    logger.info("Pedido %s rejeitado: %s", order.id, notes)
    return order


async def delete_order(db: AsyncSession, order_id: str) -> None:
    res = await db.execute(delete(PixOrder).where(PixOrder.id == order_id))
    if (res.rowcount or 0) == 0:
        raise OrderNotFound("Pedido não encontrado")
    await db.commit()
    logger.info("Pedido %s removido", order_id)
