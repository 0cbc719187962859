# matecloud/core/dependencies.py
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from matecloud.db.session import AsyncSessionLocal
from matecloud.core.config import settings
from matecloud.core.security import decode_token
from matecloud.modules.profiles.models import Admin

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    """Usuário autenticado pelo Supabase Auth (só o que vem no token)."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthUser:
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Missing token")
    try:
        payload = decode_token(
            credentials.credentials,
            settings.SUPABASE_JWT_SECRET,
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    email = payload.get("email")
    return AuthUser(
        id=str(user_id),
        email=email.lower() if email else None,
        role=payload.get("role"),
    )


async def get_current_admin(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    # admin = existe linha em "admins" para o usuário; não há atalho
    if not await db.get(Admin, user.id):
        raise HTTPException(status_code=403, detail="Admin only")
    return user
