# matecloud/main.py
import sys
import asyncio

# Event loop compatível no Windows (safe em outros SOs também)
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from contextlib import asynccontextmanager
import json
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from matecloud.core.config import settings
from matecloud.core.errors import register_exception_handlers
from matecloud.core.logging import configure_logging
from matecloud.api.router import api_router
from matecloud.db.session import engine
from matecloud.db.base import Base

configure_logging()
logger = logging.getLogger(__name__)


def _normalize_origins(value) -> list[str]:
    """Aceita lista, JSON string ou CSV e devolve lista de origens."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(o).strip() for o in value if str(o).strip()]
    if isinstance(value, str):
        # tenta JSON primeiro
        try:
            as_json = json.loads(value)
            if isinstance(as_json, (list, tuple)):
                return [str(o).strip() for o in as_json if str(o).strip()]
        except ValueError:
            pass
        # fallback: CSV
        return [o.strip() for o in value.split(",") if o.strip()]
    return [str(value).strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Em desenvolvimento cria as tabelas que faltam; em produção o schema é do Supabase."""
    env = (settings.ENVIRONMENT or "").lower().strip()
    if env == "dev":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Tabelas verificadas (ambiente dev)")
    logger.info("MateCloud API %s pronta (%s)", settings.APP_VERSION, env or "dev")
    yield
    await engine.dispose()


# --- App ---
app = FastAPI(title="MateCloud API", version=settings.APP_VERSION, lifespan=lifespan)

# --- CORS (colocado ANTES dos routers) ---
origins = _normalize_origins(settings.CORS_ORIGINS)

if not origins:
    origins = [
        "http://localhost:5000",
        "http://localhost:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Healthcheck simples (liveness)
@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.API_PREFIX)
