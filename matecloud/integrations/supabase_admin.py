# matecloud/integrations/supabase_admin.py
from __future__ import annotations
from typing import Any, Optional
import httpx

from matecloud.core.config import settings


class SupabaseAdminClient:
    """Chamadas à API admin do Supabase Auth. Usa a service role key: só no servidor."""

    def __init__(self, base_url: str, service_key: str, timeout: float = 20.0):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {
            "accept": "application/json",
            "apikey": service_key,
            "authorization": f"Bearer {service_key}",
        }

    async def delete_user(self, user_id: str) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            r = await client.delete(f"{self.base_url}/auth/v1/admin/users/{user_id}", headers=self._headers)
            # 404: conta já não existe no Auth, nada a fazer
            if r.status_code == 404:
                return
            if r.status_code >= 400:
                try:
                    data = r.json()
                except ValueError:
                    data = {"error": r.text}
                data["_status_code"] = r.status_code
                raise SupabaseAdminError("delete_user_failed", data)


class SupabaseAdminError(RuntimeError):
    def __init__(self, code: str, data: Any):
        super().__init__(code)
        self.code = code
        self.data = data


def get_supabase_admin() -> Optional[SupabaseAdminClient]:
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        return None
    return SupabaseAdminClient(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
