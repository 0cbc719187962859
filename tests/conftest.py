"""
Fixtures compartilhadas
=======================
Cada teste roda contra um SQLite novo em arquivo temporário.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from matecloud.core.config import settings
from matecloud.core.dependencies import get_db
from matecloud.core.security import create_access_token
from matecloud.db.base import Base
from matecloud.main import app
from matecloud.modules.plans.models import Plan
from matecloud.modules.profiles.models import Admin, Profile
from matecloud.modules.settings.crud import invalidate_settings_cache

ADMIN_ID = "00000000-0000-0000-0000-00000000a001"
USER_ID = "00000000-0000-0000-0000-00000000u001"
OTHER_ID = "00000000-0000-0000-0000-00000000u002"


def token_for(user_id: str, email: str | None = None) -> str:
    claims = {"sub": user_id}
    if email:
        claims["email"] = email
    return create_access_token(
        claims,
        secret_key=settings.SUPABASE_JWT_SECRET,
        audience=settings.JWT_AUDIENCE,
    )


def auth(user_id: str, email: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user_id, email)}"}


# ═══════════════════════════════════════════════════════════
# BANCO
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{(tmp_path / 'test.db').as_posix()}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    invalidate_settings_cache()
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    invalidate_settings_cache()


@pytest.fixture
def run_db(session_factory):
    """Executa `fn(session)` num loop próprio e devolve o resultado."""
    def _run(fn):
        async def _inner():
            async with session_factory() as session:
                return await fn(session)
        return asyncio.run(_inner())
    return _run


@pytest.fixture
def add_rows(run_db):
    def _add(*rows):
        async def _fn(session):
            session.add_all(rows)
            await session.commit()
        run_db(_fn)
    return _add


@pytest.fixture
def seeded(add_rows):
    """Admin, um usuário comum e o plano p1 (Mate Core, 30 dias, estoque 5)."""
    add_rows(
        Profile(id=ADMIN_ID, username="admin", email="admin@matecloud.com.br"),
        Admin(user_id=ADMIN_ID),
        Profile(id=USER_ID, username="u1", email="u1@example.com"),
        Profile(id=OTHER_ID, username="u2", email="u2@example.com"),
        Plan(
            id="p1",
            name="Mate Core",
            price="R$ 49,90",
            stock=5,
            duration_days=30,
            status="Online",
            memory="16GB",
            cpu="8 vCPU",
            gpu="RTX 4060",
        ),
    )


# ═══════════════════════════════════════════════════════════
# HTTP
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def client(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return auth(ADMIN_ID, "admin@matecloud.com.br")


@pytest.fixture
def user_headers():
    return auth(USER_ID, "u1@example.com")


@pytest.fixture
def other_headers():
    return auth(OTHER_ID, "u2@example.com")
