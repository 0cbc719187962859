# matecloud/modules/admin/router.py
import logging
import time

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, text
from sqlalchemy.exc import SQLAlchemyError

from matecloud.core.config import settings
from matecloud.core.dependencies import AuthUser, get_db, get_current_admin
from matecloud.integrations.supabase_admin import SupabaseAdminError, get_supabase_admin
from matecloud.modules.plans.crud import get_plan_or_404
from matecloud.modules.pix_orders.models import OPEN_STATUSES, PaymentStatus, PixOrder
from matecloud.modules.plans.models import Plan
from matecloud.modules.profiles.crud import clear_plan, get_profile_or_404, grant_plan
from matecloud.modules.profiles.models import Admin, Profile, Subscription
from matecloud.modules.profiles.schemas import ProfileOut, SubscriptionOut
from matecloud.modules.settings.crud import (
    DEFAULT_SETTINGS,
    MAINTENANCE_MESSAGE,
    get_settings_map,
    init_default_settings,
    invalidate_settings_cache,
    list_settings,
    registrations_enabled,
    upsert_setting,
)
from matecloud.modules.settings.models import AdminSetting
from matecloud.modules.settings.schemas import SettingOut, SettingUpdate
from matecloud.utils.dates import plan_window, utcnow
from .schemas import AdminUserOut, MaintenanceIn, StatsOut, UserPlanUpdate

logger = logging.getLogger(__name__)

router = APIRouter()  # incluído com prefix "/admin"

STARTED_AT = time.monotonic()


def _now_iso() -> str:
    return utcnow().isoformat()


# ---------- Sistema ----------

@router.get("/test-db")
async def test_db(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    probes = {
        "profiles": select(Profile.id).limit(1),
        "admin_settings": select(AdminSetting.key).limit(1),
        "plans": select(Plan.name).limit(1),
    }
    results = {}
    for table, stmt in probes.items():
        try:
            rows = (await db.execute(stmt)).all()
            results[table] = {"status": "ok", "count": len(rows)}
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("Teste de conexão falhou em %s: %s", table, e)
            results[table] = {"status": "error", "message": str(e.__class__.__name__)}

    has_errors = any(r["status"] == "error" for r in results.values())
    return {
        "status": "error" if has_errors else "ok",
        "message": "Some database connections failed" if has_errors else "All database connections successful",
        "details": results,
        "timestamp": _now_iso(),
    }


@router.post("/init-settings")
async def init_settings(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    existing, inserted = await init_default_settings(db)
    return {
        "status": "ok",
        "message": "Settings initialized successfully",
        "existing_count": existing,
        "inserted_count": inserted,
        "total_settings": len(DEFAULT_SETTINGS),
        "timestamp": _now_iso(),
    }


@router.post("/clear-cache")
async def clear_cache(_: AuthUser = Depends(get_current_admin)):
    had_entries = invalidate_settings_cache()
    actions = ["Settings cache cleared" if had_entries else "Settings cache already empty"]
    logger.info("Cache limpo pelo admin")
    return {
        "status": "ok",
        "message": "Server cache cleared successfully",
        "actions": actions,
        "timestamp": _now_iso(),
    }


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError as e:
        logger.error("Banco indisponível no health check: %s", e)
        database = "unhealthy"
    return {
        "status": "ok",
        "message": "Health check completed",
        "health": {
            "database": database,
            "uptime": round(time.monotonic() - STARTED_AT, 3),
            "timestamp": _now_iso(),
        },
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.post("/maintenance")
async def maintenance(
    payload: MaintenanceIn,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    await upsert_setting(db, "maintenance_mode", "true" if payload.enabled else "false", "Ativar modo de manutenção")
    if payload.message:
        await upsert_setting(db, "maintenance_message", payload.message, "Mensagem exibida durante manutenção")
    await db.commit()
    invalidate_settings_cache()

    message = payload.message or (await get_settings_map(db)).get("maintenance_message", MAINTENANCE_MESSAGE)
    logger.info("Modo de manutenção %s", "ativado" if payload.enabled else "desativado")
    return {
        "status": "ok",
        "message": f"Maintenance mode {'enabled' if payload.enabled else 'disabled'}",
        "maintenance_enabled": payload.enabled,
        "maintenance_message": message,
        "timestamp": _now_iso(),
    }


@router.get("/registration-status")
async def registration_status(db: AsyncSession = Depends(get_db)):
    enabled = await registrations_enabled(db)
    return {
        "status": "ok",
        "message": "Registrations enabled" if enabled else "Registrations blocked",
        "enabled": enabled,
        "timestamp": _now_iso(),
    }


# ---------- Usuários ----------

@router.get("/users", response_model=list[AdminUserOut])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    res = await db.execute(select(Profile).order_by(Profile.created_at.desc(), Profile.id.asc()))
    profiles = res.scalars().all()
    admin_ids = set((await db.execute(select(Admin.user_id))).scalars().all())

    out = []
    for p in profiles:
        item = AdminUserOut.model_validate(p)
        item.is_admin = p.id in admin_ids
        out.append(item)
    return out


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: AuthUser = Depends(get_current_admin),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Você não pode excluir a si mesmo.")
    await get_profile_or_404(db, user_id)

    # 1) assinaturas primeiro, 2) depois o perfil
    subs = await db.execute(delete(Subscription).where(Subscription.user_id == user_id))
    deleted_subscriptions = subs.rowcount or 0
    await db.execute(delete(Admin).where(Admin.user_id == user_id))
    await db.execute(delete(Profile).where(Profile.id == user_id))
    await db.commit()
    logger.info("Usuário %s removido (%d assinaturas)", user_id, deleted_subscriptions)

    # 3) conta no Supabase Auth, quando a service key está configurada
    auth_deleted = False
    client = get_supabase_admin()
    if client:
        try:
            await client.delete_user(user_id)
            auth_deleted = True
        except (SupabaseAdminError, httpx.HTTPError) as e:
            logger.warning("Perfil removido, mas a conta %s segue no Auth: %s", user_id, e)

    return {
        "status": "ok",
        "message": "User deleted successfully",
        "deletedUserId": user_id,
        "deletedSubscriptions": deleted_subscriptions,
        "authUserDeleted": auth_deleted,
        "timestamp": _now_iso(),
    }


@router.put("/users/{user_id}/plan", response_model=ProfileOut)
async def update_user_plan(
    user_id: str,
    payload: UserPlanUpdate,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    profile = await get_profile_or_404(db, user_id)

    if payload.plan_id is None:
        clear_plan(profile)
        logger.info("Plano ativo removido de %s", user_id)
    else:
        plan = await get_plan_or_404(db, payload.plan_id)
        duration = payload.duration_days or plan.duration_days or settings.DEFAULT_PLAN_DURATION_DAYS
        start, end = plan_window(duration)
        await grant_plan(db, profile, plan, start, end)

    await db.commit()
    await db.refresh(profile)
    return profile


@router.get("/subscriptions", response_model=list[SubscriptionOut])
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    res = await db.execute(select(Subscription).order_by(Subscription.created_at.desc(), Subscription.id.desc()))
    return res.scalars().all()


@router.get("/stats", response_model=StatsOut)
async def stats(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    async def _count(stmt) -> int:
        return int((await db.execute(stmt)).scalar_one() or 0)

    return StatsOut(
        total_users=await _count(select(func.count()).select_from(Profile)),
        total_subscriptions=await _count(select(func.count()).select_from(Subscription)),
        active_subscriptions=await _count(
            select(func.count()).select_from(Profile).where(Profile.active_plan.is_not(None))
        ),
        open_orders=await _count(
            select(func.count()).select_from(PixOrder).where(PixOrder.payment_status.in_(OPEN_STATUSES))
        ),
        waiting_review_orders=await _count(
            select(func.count()).select_from(PixOrder)
            .where(PixOrder.payment_status == PaymentStatus.WAITING_REVIEW.value)
        ),
    )


# ---------- Configurações ----------

@router.get("/settings", response_model=list[SettingOut])
async def admin_settings(
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    return await list_settings(db)


@router.put("/settings/{key}", response_model=SettingOut)
async def update_setting(
    key: str,
    payload: SettingUpdate,
    db: AsyncSession = Depends(get_db),
    _: AuthUser = Depends(get_current_admin),
):
    obj = await upsert_setting(db, key, payload.value, payload.description)
    await db.commit()
    invalidate_settings_cache()
    await db.refresh(obj)
    return obj
