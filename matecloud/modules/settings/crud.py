# matecloud/modules/settings/crud.py
import logging

from cachetools import TTLCache
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from matecloud.core.config import settings as app_settings
from matecloud.utils.dates import utcnow
from .models import AdminSetting

logger = logging.getLogger(__name__)

MAINTENANCE_MESSAGE = "O site está em manutenção. Voltaremos em breve!"

# (key, value, description)
DEFAULT_SETTINGS: list[tuple[str, str, str]] = [
    ("site_name", "MateCloud", "Nome do site"),
    ("site_description", "A melhor plataforma de cloud gaming do Brasil", "Descrição do site"),
    ("maintenance_mode", "false", "Ativar modo de manutenção"),
    ("maintenance_message", MAINTENANCE_MESSAGE, "Mensagem exibida durante manutenção"),
    ("max_concurrent_users", "100", "Máximo de usuários simultâneos"),
    ("default_plan_duration", "30", "Duração padrão dos planos em dias"),
    ("support_email", "suporte@matecloud.com.br", "Email de suporte"),
    ("discord_invite", "https://discord.gg/matecloud", "Link do Discord"),
    ("enable_registrations", "true", "Permitir novos registros"),
    ("stock_low_threshold", "5", "Limite para alerta de estoque baixo"),
    ("stock_empty_message", "Este plano está temporariamente indisponível.", "Mensagem quando estoque esgotado"),
    ("vm_default_password", "matecloud123", "Senha padrão das VMs"),
    ("vm_session_timeout", "60", "Timeout de sessão da VM em minutos"),
]

# nunca expostas no endpoint público
PRIVATE_KEYS = {"vm_default_password"}

SETTINGS_CACHE_KEY = "settings"

# mapa completo (defaults + gravados) numa única entrada
settings_cache: TTLCache = TTLCache(maxsize=1, ttl=app_settings.SETTINGS_CACHE_TTL_SECONDS)

# incrementado a cada invalidação; leitura iniciada antes dela não repopula o cache
_cache_generation = 0


def invalidate_settings_cache() -> bool:
    """Limpa o cache. Chamar depois do commit que alterou configurações."""
    global _cache_generation
    _cache_generation += 1
    had_value = SETTINGS_CACHE_KEY in settings_cache
    settings_cache.clear()
    return had_value


def default_settings_map() -> dict[str, str]:
    return {key: value for key, value, _ in DEFAULT_SETTINGS}


async def list_settings(db: AsyncSession) -> list[AdminSetting]:
    res = await db.execute(select(AdminSetting).order_by(AdminSetting.key))
    return list(res.scalars().all())


async def get_settings_map(db: AsyncSession, use_cache: bool = True) -> dict[str, str]:
    """Defaults + valores gravados (os gravados vencem)."""
    if use_cache:
        cached = settings_cache.get(SETTINGS_CACHE_KEY)
        if cached is not None:
            return dict(cached)
    generation = _cache_generation
    merged = default_settings_map()
    for s in await list_settings(db):
        merged[s.key] = s.value
    if generation == _cache_generation:
        settings_cache[SETTINGS_CACHE_KEY] = dict(merged)
    return merged


async def get_setting(db: AsyncSession, key: str) -> str | None:
    return (await get_settings_map(db)).get(key)


async def upsert_setting(
    db: AsyncSession, key: str, value: str, description: str | None = None
) -> AdminSetting:
    """Grava sem commit. Quem chama faz o commit e depois `invalidate_settings_cache()`."""
    obj = await db.get(AdminSetting, key)
    if obj:
        obj.value = value
        if description:
            obj.description = description
        obj.updated_at = utcnow()
    else:
        obj = AdminSetting(key=key, value=value, description=description, updated_at=utcnow())
        db.add(obj)
    await db.flush()
    return obj


async def init_default_settings(db: AsyncSession) -> tuple[int, int]:
    """Insere só as chaves que faltam. Retorna (existentes, inseridas)."""
    res = await db.execute(select(AdminSetting.key))
    existing = set(res.scalars().all())
    missing = [(k, v, d) for k, v, d in DEFAULT_SETTINGS if k not in existing]
    for key, value, description in missing:
        db.add(AdminSetting(key=key, value=value, description=description, updated_at=utcnow()))
    await db.commit()
    invalidate_settings_cache()
    if missing:
        logger.info("Configurações inseridas: %s", ", ".join(k for k, _, _ in missing))
    return len(existing), len(missing)


async def registrations_enabled(db: AsyncSession) -> bool:
    # qualquer valor diferente de "false" mantém os registros abertos
    value = await get_setting(db, "enable_registrations")
    return (value or "true").strip().lower() != "false"
