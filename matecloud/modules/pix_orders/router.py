# matecloud/modules/pix_orders/router.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from matecloud.core.config import settings
from matecloud.core.dependencies import AuthUser, get_current_admin, get_current_user, get_db
from matecloud.modules.profiles.crud import get_profile_by_email_or_none
from matecloud.modules.profiles.models import Admin
from matecloud.modules.profiles.schemas import SubscriptionOut
from . import workflow
from .schemas import (
    ApproveOut,
    ManualOrderIn,
    OrderActionOut,
    OrderCreate,
    OrderDetailOut,
    OrderOut,
    RejectIn,
)

router = APIRouter()        # incluído com prefix "/pix"
admin_router = APIRouter()  # incluído com prefix "/admin/pix"


def _http_error(e: workflow.OrderError, status_code: Optional[int] = None) -> HTTPException:
    return HTTPException(status_code=status_code or e.status_code, detail=e.message)


async def _read_upload(file: UploadFile) -> bytes:
    # lê no máximo limite+1 bytes: o excedente já basta para recusar
    return await file.read(settings.MAX_PROOF_BYTES + 1)


# ---------- Usuário ----------

@router.post("/orders", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    try:
        order = await workflow.create_order(
            db,
            plan_id=payload.plan_id,
            amount=payload.amount,
            user_id=me.id,
            email=me.email,
            description=payload.description,
            check_availability=True,
        )
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderOut.from_order(order)


@router.get("/orders/mine", response_model=list[OrderOut])
async def my_orders(
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    return [OrderOut.from_order(o) for o in await workflow.list_user_orders(db, me.id)]


@router.get("/orders/{order_id}", response_model=OrderDetailOut)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    try:
        order = await workflow.get_order(db, order_id)
    except workflow.OrderError as e:
        raise _http_error(e)
    if order.user_id != me.id and not await db.get(Admin, me.id):
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    return OrderDetailOut.from_order(order)


@router.post("/orders/{order_id}/proof", response_model=OrderOut)
async def submit_proof(
    order_id: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    content = await _read_upload(file)
    try:
        order = await workflow.submit_payment_proof(
            db,
            order_id,
            me.id,
            content=content,
            filename=file.filename,
            content_type=file.content_type,
        )
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderOut.from_order(order)


# Entrada manual pelo admin (por e-mail do cliente)
@router.post("/manual", response_model=OrderActionOut, status_code=status.HTTP_201_CREATED)
async def create_manual_order(
    payload: ManualOrderIn,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    email = str(payload.email).lower()
    profile = await get_profile_by_email_or_none(db, email)
    try:
        # duplicidade é checada por plano + e-mail, mesmo quando o perfil existe
        order = await workflow.create_order(
            db,
            plan_id=payload.plan_id,
            amount=payload.amount,
            user_id=profile.id if profile else None,
            email=email,
            description=payload.description,
            dedupe_by_email=True,
        )
    except workflow.OrderConflict as e:
        raise _http_error(e, status.HTTP_400_BAD_REQUEST)
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderActionOut(message="Pedido PIX criado com sucesso", order=OrderOut.from_order(order))


# ---------- Admin ----------

@admin_router.get("/orders", response_model=list[OrderOut])
async def list_orders(
    payment_status: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    try:
        orders = await workflow.list_orders(db, payment_status)
    except workflow.OrderError as e:
        raise _http_error(e)
    return [OrderOut.from_order(o) for o in orders]


@admin_router.put("/orders/{order_id}/pix", response_model=OrderOut)
async def attach_pix(
    order_id: str,
    pix_code: Optional[str] = Form(None),
    qr_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    image = await _read_upload(qr_image) if qr_image is not None else None
    try:
        order = await workflow.attach_pix_details(
            db,
            order_id,
            pix_code=pix_code,
            qr_image=image,
            qr_mime=qr_image.content_type if qr_image is not None else None,
        )
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderOut.from_order(order)


@admin_router.post("/orders/{order_id}/approve", response_model=ApproveOut)
async def approve_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    try:
        result = await workflow.approve_order(db, order_id)
    except workflow.OrderError as e:
        raise _http_error(e)
    return ApproveOut(
        message=f"Plano {result.plan.name} ativado",
        order_id=result.order_id,
        subscription=SubscriptionOut.model_validate(result.subscription),
        active_plan_until=result.active_plan_until,
        stock_decremented=result.stock_decremented,
    )


@admin_router.post("/orders/{order_id}/reject", response_model=OrderActionOut)
async def reject_order(
    order_id: str,
    payload: RejectIn,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    try:
        order = await workflow.reject_order(db, order_id, payload.notes)
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderActionOut(message="Pedido rejeitado", order=OrderOut.from_order(order))


@admin_router.delete("/orders/{order_id}", response_model=OrderActionOut)
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    try:
        await workflow.delete_order(db, order_id)
    except workflow.OrderError as e:
        raise _http_error(e)
    return OrderActionOut(message="Pedido removido")
