"""
Perfil e plano ativo
====================
"""

from datetime import datetime, timedelta, timezone

from matecloud.modules.profiles.crud import get_active_plan_view, has_unexpired_plan
from matecloud.modules.profiles.models import Profile
from matecloud.modules.settings.models import AdminSetting
from matecloud.utils.dates import days_remaining
from tests.conftest import USER_ID, auth

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════
# PROJEÇÃO DO PLANO ATIVO
# ═══════════════════════════════════════════════════════════

class TestActivePlan:

    def test_days_remaining_rounds_up(self):
        assert days_remaining(NOW + timedelta(days=2, hours=1), NOW) == 3
        assert days_remaining(NOW + timedelta(days=2), NOW) == 2
        assert days_remaining(NOW - timedelta(seconds=1), NOW) == 0

    def test_projection_for_active_plan(self, seeded, run_db):
        async def _view(db):
            profile = await db.get(Profile, USER_ID)
            profile.active_plan = "p1"
            profile.active_plan_until = NOW + timedelta(days=10)
            return await get_active_plan_view(db, profile, now=NOW)

        view = run_db(_view)
        assert view.plan_name == "Mate Core"
        assert view.days_remaining == 10
        assert view.is_active is True
        assert view.is_expired is False

    def test_projection_for_expired_plan(self, seeded, run_db):
        async def _view(db):
            profile = await db.get(Profile, USER_ID)
            profile.active_plan = "p1"
            profile.active_plan_until = NOW - timedelta(days=1)
            return await get_active_plan_view(db, profile, now=NOW)

        view = run_db(_view)
        assert view.is_expired is True
        assert view.days_remaining == 0

    def test_projection_without_plan_or_missing_plan(self, seeded, run_db):
        async def _views(db):
            profile = await db.get(Profile, USER_ID)
            empty = await get_active_plan_view(db, profile, now=NOW)
            profile.active_plan = "ghost"
            profile.active_plan_until = NOW + timedelta(days=5)
            missing = await get_active_plan_view(db, profile, now=NOW)
            return empty, missing

        assert run_db(_views) == (None, None)

    def test_has_unexpired_plan(self):
        profile = Profile(id="x", active_plan="p1", active_plan_until=NOW + timedelta(hours=1))
        assert has_unexpired_plan(profile, NOW) is True
        assert has_unexpired_plan(profile, NOW + timedelta(hours=2)) is False
        assert has_unexpired_plan(Profile(id="y"), NOW) is False


# ═══════════════════════════════════════════════════════════
# ROTAS /profile
# ═══════════════════════════════════════════════════════════

class TestProfileRoutes:

    def test_get_and_patch_me(self, client, seeded, user_headers):
        assert client.get("/api/profile/me", headers=user_headers).json()["username"] == "u1"

        r = client.patch("/api/profile/me", json={"username": "gamer"}, headers=user_headers)
        assert r.status_code == 200
        assert r.json()["username"] == "gamer"

    def test_me_plan_is_null_without_plan(self, client, seeded, user_headers):
        r = client.get("/api/profile/me/plan", headers=user_headers)
        assert r.status_code == 200
        assert r.json() is None

    def test_first_login_creates_profile(self, client, seeded):
        headers = auth("11111111-2222-3333-4444-555555555555", "New@Example.com")

        assert client.get("/api/profile/me", headers=headers).status_code == 404
        r = client.post("/api/profile/me", headers=headers)
        assert r.status_code == 200
        assert r.json()["email"] == "new@example.com"
        assert r.json()["username"] == "new"

    def test_blocked_registrations(self, client, seeded, add_rows):
        add_rows(AdminSetting(key="enable_registrations", value="false", description="Permitir novos registros"))
        headers = auth("11111111-2222-3333-4444-555555555555", "late@example.com")

        r = client.post("/api/profile/me", headers=headers)
        assert r.status_code == 403

    def test_existing_profile_syncs_even_when_blocked(self, client, seeded, add_rows, user_headers):
        add_rows(AdminSetting(key="enable_registrations", value="false", description="Permitir novos registros"))
        assert client.post("/api/profile/me", headers=user_headers).status_code == 200

    def test_subscriptions_history(self, client, seeded, user_headers, admin_headers):
        client.put(f"/api/admin/users/{USER_ID}/plan", json={"plan_id": "p1"}, headers=admin_headers)

        subs = client.get("/api/profile/me/subscriptions", headers=user_headers).json()
        assert len(subs) == 1
        assert subs[0]["plan_name"] == "Mate Core"
