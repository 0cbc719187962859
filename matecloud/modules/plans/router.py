# matecloud/modules/plans/router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from matecloud.core.dependencies import AuthUser, get_db, get_current_admin
from matecloud.modules.settings.crud import get_setting
from .crud import get_plan_or_404, get_plan_by_name_or_none
from .models import Plan
from .schemas import PlanOut, PlanCreate, PlanUpdate, PlanStockOut, StockUpdate

logger = logging.getLogger(__name__)

router = APIRouter()        # incluído com prefix "/plans" (vitrine)
admin_router = APIRouter()  # incluído com prefix "/admin/plans"


# LIST (vitrine: só Online)
@router.get("", response_model=list[PlanOut])
async def list_online_plans(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(Plan).where(Plan.status == "Online").order_by(Plan.name.asc()))
    return res.scalars().all()


# LIST (admin: todos)
@admin_router.get("", response_model=list[PlanOut])
async def list_plans(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    res = await db.execute(select(Plan).order_by(Plan.name.asc()))
    return res.scalars().all()


@admin_router.get("/stock", response_model=list[PlanStockOut])
async def plan_stock(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    try:
        threshold = int(await get_setting(db, "stock_low_threshold") or 5)
    except ValueError:
        threshold = 5
    res = await db.execute(select(Plan).order_by(Plan.name.asc()))
    return [
        PlanStockOut(
            id=p.id,
            name=p.name,
            status=p.status,
            stock=p.stock,
            is_low=p.stock <= threshold,
            is_empty=p.stock == 0,
        )
        for p in res.scalars().all()
    ]


# CREATE
@admin_router.post("", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreate,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    if await get_plan_by_name_or_none(db, payload.name):
        raise HTTPException(status_code=409, detail="Já existe um plano com este nome")
    obj = Plan(**payload.model_dump())
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    logger.info("Plano criado: %s (%s)", obj.name, obj.id)
    return obj


# UPDATE
@admin_router.put("/{plan_id}", response_model=PlanOut)
async def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    obj = await get_plan_or_404(db, plan_id)
    data = payload.model_dump(exclude_unset=True)

    if "name" in data and data["name"] != obj.name:
        if await get_plan_by_name_or_none(db, data["name"]):
            raise HTTPException(status_code=409, detail="Já existe um plano com este nome")

    for k, v in data.items():
        setattr(obj, k, v)

    await db.commit()
    await db.refresh(obj)
    return obj


# STOCK (valor absoluto)
@admin_router.put("/{plan_id}/stock", response_model=PlanOut)
async def set_stock(
    plan_id: str,
    payload: StockUpdate,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    obj = await get_plan_or_404(db, plan_id)
    obj.stock = payload.stock
    await db.commit()
    await db.refresh(obj)
    logger.info("Estoque do plano %s ajustado para %d", obj.name, obj.stock)
    return obj


# DELETE
@admin_router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(
    plan_id: str,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    await get_plan_or_404(db, plan_id)
    await db.execute(delete(Plan).where(Plan.id == plan_id))
    await db.commit()
    return
