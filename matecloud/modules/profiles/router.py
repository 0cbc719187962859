# matecloud/modules/profiles/router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from matecloud.core.dependencies import AuthUser, get_db, get_current_user
from matecloud.modules.settings.crud import registrations_enabled
from .crud import get_profile_or_404, get_active_plan_view
from .models import Profile, Subscription
from .schemas import ProfileOut, ProfileUpdate, SubscriptionOut, ActivePlanOut

router = APIRouter()  # incluído com prefix "/profile"


@router.get("/me", response_model=ProfileOut)
async def my_profile(
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    return await get_profile_or_404(db, me.id)


@router.post("/me", response_model=ProfileOut)
async def sync_my_profile(
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    """Garante o perfil do usuário logado (primeiro login). Respeita o bloqueio de novos registros."""
    profile = await db.get(Profile, me.id)
    if profile:
        if me.email and profile.email != me.email:
            profile.email = me.email
            await db.commit()
            await db.refresh(profile)
        return profile

    if not await registrations_enabled(db):
        raise HTTPException(status_code=403, detail="Novos registros estão bloqueados")

    profile = Profile(id=me.id, email=me.email, username=me.email.split("@")[0] if me.email else None)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    profile = await get_profile_or_404(db, me.id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(profile, k, v)
    await db.commit()
    await db.refresh(profile)
    return profile


@router.get("/me/plan", response_model=Optional[ActivePlanOut])
async def my_active_plan(
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    # recalculado a cada chamada (dias restantes / expirado)
    profile = await get_profile_or_404(db, me.id)
    return await get_active_plan_view(db, profile)


@router.get("/me/subscriptions", response_model=list[SubscriptionOut])
async def my_subscriptions(
    db: AsyncSession = Depends(get_db),
    me: AuthUser = Depends(get_current_user),
):
    res = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == me.id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    return res.scalars().all()
