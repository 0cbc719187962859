# matecloud/modules/profiles/crud.py
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from fastapi import HTTPException, status

from matecloud.modules.plans.models import Plan
from matecloud.utils.dates import as_utc, days_remaining, utcnow
from .models import Profile, Subscription
from .schemas import ActivePlanOut

logger = logging.getLogger(__name__)


async def get_profile_or_404(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Perfil não encontrado")
    return profile


async def get_profile_by_email_or_none(db: AsyncSession, email: str) -> Profile | None:
    q = await db.execute(select(Profile).where(Profile.email == email.strip().lower()))
    return q.scalars().first()


def has_unexpired_plan(profile: Profile, now: datetime | None = None) -> bool:
    if not profile.active_plan or not profile.active_plan_until:
        return False
    return as_utc(profile.active_plan_until) > (now or utcnow())


async def get_active_plan_view(
    db: AsyncSession, profile: Profile, now: datetime | None = None
) -> ActivePlanOut | None:
    """
    Projeção calculada a cada leitura: nada disso é gravado.
    Retorna None quando não há plano ou o plano referenciado não existe mais.
    """
    if not profile.active_plan or not profile.active_plan_until:
        return None
    plan = await db.get(Plan, profile.active_plan)
    if not plan:
        return None

    now = now or utcnow()
    until = as_utc(profile.active_plan_until)
    active = until > now
    return ActivePlanOut(
        plan_id=plan.id,
        plan_name=plan.name,
        price=plan.price,
        description=plan.description,
        expiration_date=until,
        days_remaining=days_remaining(until, now) if active else 0,
        is_active=active,
        is_expired=not active,
    )


async def grant_plan(
    db: AsyncSession,
    profile: Profile,
    plan: Plan,
    start: datetime,
    end: datetime,
) -> Subscription:
    """
    Aponta o perfil para o novo plano (sobrescreve o anterior) e registra a assinatura.
    Não faz commit; roda dentro da transação de quem chama.
    """
    profile.active_plan = plan.id
    profile.active_plan_until = end
    await db.flush()

    sub = Subscription(
        user_id=profile.id,
        plan_id=plan.id,
        plan_name=plan.name,
        start_date=start,
        end_date=end,
    )
    db.add(sub)
    await db.flush()
    logger.info("Plano %s concedido a %s até %s", plan.name, profile.id, end.isoformat())
    return sub


def clear_plan(profile: Profile) -> None:
    profile.active_plan = None
    profile.active_plan_until = None
