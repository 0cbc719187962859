# matecloud/modules/plans/crud.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from fastapi import HTTPException, status
from .models import Plan


async def get_plan_or_404(db: AsyncSession, plan_id: str) -> Plan:
    plan = await db.get(Plan, plan_id)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plano não encontrado")
    return plan


async def get_plan_by_name_or_none(db: AsyncSession, name: str) -> Plan | None:
    q = await db.execute(select(Plan).where(Plan.name == name))
    return q.scalar_one_or_none()


async def decrement_stock(db: AsyncSession, plan_id: str) -> bool:
    """
    Baixa atômica de 1 unidade: só decrementa se ainda houver estoque.
    Retorna False quando nenhuma linha foi afetada (estoque zerado ou plano sumiu).
    Não faz commit; quem chama controla a transação.
    """
    res = await db.execute(
        update(Plan)
        .where(Plan.id == plan_id, Plan.stock > 0)
        .values(stock=Plan.stock - 1)
        .execution_options(synchronize_session=False)
    )
    return (res.rowcount or 0) > 0
