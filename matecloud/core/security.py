# matecloud/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt

SECRET_ALG = "HS256"


def create_access_token(
    data: dict[str, Any],
    expires_minutes: int = 60,
    secret_key: str = "change-me",
    audience: Optional[str] = "authenticated",
) -> str:
    """Emite um token no mesmo formato do Supabase Auth (usado em dev e nos testes)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    if audience:
        to_encode.setdefault("aud", audience)
    return jwt.encode(to_encode, secret_key, algorithm=SECRET_ALG)


def decode_token(token: str, secret_key: str, audience: Optional[str] = None) -> dict[str, Any]:
    return jwt.decode(
        token,
        secret_key,
        algorithms=[SECRET_ALG],
        audience=audience,
        options={"verify_aud": audience is not None},
    )
