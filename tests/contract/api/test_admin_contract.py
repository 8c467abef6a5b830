"""
Contract tests for the admin console: server-tracked sessions sent in the
admin session header, dashboard reads and user management.
"""

import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_PASSWORD, admin_login, bearer, register_user
from src.core.service.auth.models.user import UserRole
from src.infra.config.settings import settings

SECOND_ADMIN_EMAIL = "ops@example.com"


def _session(session_id: str):
    return {settings.ADMIN_SESSION_HEADER: session_id}


@pytest.fixture
def admin_headers(client, admin_user):
    return _session(admin_login(client))


@pytest.fixture
async def second_admin(user_repository, password_service):
    return await user_repository.create(
        first_name="Ops",
        last_name="Admin",
        email=SECOND_ADMIN_EMAIL,
        password_hash=password_service.hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    )


class TestAdminSessionContract:
    def test_login_returns_session(self, client, admin_user):
        response = client.post("/api/admin/admin-login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["admin_id"] == str(admin_user.id)
        assert data["remaining_ttl"] == settings.ADMIN_SESSION_TTL_MINUTES * 60
        assert data["session_id"]

    def test_failed_logins_look_the_same(self, client, admin_user):
        register_user(client)
        wrong = client.post("/api/admin/admin-login", json={"email": ADMIN_EMAIL, "password": "Wr0ng!Pass"})
        not_admin = client.post("/api/admin/admin-login", json={"email": "jane@example.com", "password": TEST_PASSWORD})

        assert wrong.status_code == not_admin.status_code == 401
        assert wrong.json()["error"]["message"] == not_admin.json()["error"]["message"]

    def test_status_without_session_is_inactive(self, client):
        response = client.get("/api/admin/admin-session-status")

        assert response.status_code == 200
        assert response.json() == {"active": False, "remaining_ttl": 0, "admin_id": None, "expires_at": None}

    def test_status_does_not_extend_session(self, client, clock, admin_headers):
        clock.advance(minutes=10)
        first = client.get("/api/admin/admin-session-status", headers=admin_headers).json()
        clock.advance(minutes=10)
        second = client.get("/api/admin/admin-session-status", headers=admin_headers).json()

        assert first["active"] is second["active"] is True
        assert second["remaining_ttl"] == first["remaining_ttl"] - 600

    def test_activity_extends_session(self, client, clock, admin_headers):
        clock.advance(minutes=20)
        assert client.get("/api/admin/dashboard/overview", headers=admin_headers).status_code == 200
        clock.advance(minutes=20)

        assert client.get("/api/admin/dashboard/overview", headers=admin_headers).status_code == 200

    def test_idle_session_expires(self, client, clock, admin_headers):
        clock.advance(minutes=settings.ADMIN_SESSION_TTL_MINUTES)

        response = client.get("/api/admin/dashboard/overview", headers=admin_headers)

        assert response.status_code == 401
        assert client.get("/api/admin/admin-session-status", headers=admin_headers).json()["active"] is False

    def test_new_login_ends_previous_session(self, client, admin_user):
        first = _session(admin_login(client))
        second = _session(admin_login(client))

        assert client.get("/api/admin/dashboard/overview", headers=first).status_code == 401
        assert client.get("/api/admin/dashboard/overview", headers=second).status_code == 200

    def test_logout_is_idempotent(self, client, admin_headers):
        assert client.post("/api/admin/admin-logout", headers=admin_headers).status_code == 200
        assert client.post("/api/admin/admin-logout", headers=admin_headers).status_code == 200
        assert client.post("/api/admin/admin-logout").status_code == 200
        assert client.get("/api/admin/dashboard/overview", headers=admin_headers).status_code == 401

    def test_user_access_token_is_not_an_admin_session(self, client):
        tokens = register_user(client)

        response = client.get("/api/admin/dashboard/overview", headers=bearer(tokens["access_token"]))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"


class TestAdminConsoleContract:
    @pytest.mark.parametrize("path", [
        "/api/admin/dashboard/overview",
        "/api/admin/security/auth-metrics",
        "/api/admin/system/health-metrics",
        "/api/admin/alerts/active-alerts",
        "/api/admin/admin-activity-log",
        "/api/admin/users",
    ])
    def test_reads_require_session(self, client, admin_headers, path):
        assert client.get(path).status_code == 401

        response = client.get(path, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_list_users(self, client, admin_headers):
        register_user(client)
        register_user(client, email="john@example.com")

        data = client.get(
            "/api/admin/users",
            params={"role": "user", "sort_by": "email", "sort_order": "asc"},
            headers=admin_headers,
        ).json()["data"]

        assert [u["email"] for u in data["users"]] == ["jane@example.com", "john@example.com"]
        assert data["pagination"]["total"] == 2

    @pytest.mark.parametrize("params", [{"sort_by": "password_hash"}, {"sort_order": "sideways"}])
    def test_list_users_rejects_bad_sorting(self, client, admin_headers, params):
        response = client.get("/api/admin/users", params=params, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_update_tier_is_audited(self, client, admin_headers):
        tokens = register_user(client)
        user_id = tokens["user"]["id"]

        response = client.put(
            f"/api/admin/users/{user_id}/tier",
            json={"tier": "standard", "duration_days": 30},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["tier"] == "standard"
        usage = client.get("/api/user/usage", headers=bearer(tokens["access_token"])).json()
        assert usage["limit"] == 5

        log = client.get("/api/admin/admin-activity-log", headers=admin_headers).json()["data"]
        actions = [e["details"].get("action") for e in log["events"] if e["event_type"] == "admin_action"]
        assert actions == ["update_tier"]

    def test_update_tier_of_unknown_user(self, client, admin_headers):
        response = client.put(
            "/api/admin/users/00000000-0000-0000-0000-000000000000/tier",
            json={"tier": "premium"},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_deactivated_user_is_locked_out(self, client, admin_headers):
        tokens = register_user(client)

        response = client.put(
            f"/api/admin/users/{tokens['user']['id']}/status",
            json={"is_active": False},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["is_active"] is False
        assert client.get("/api/user/profile", headers=bearer(tokens["access_token"])).status_code == 401
        login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": TEST_PASSWORD})
        assert login.status_code == 401

    @pytest.mark.parametrize("spelling", [str, lambda u: u.hex, lambda u: "{%s}" % u, lambda u: str(u).upper()])
    def test_admin_cannot_deactivate_self(self, client, admin_user, admin_headers, spelling):
        response = client.put(
            f"/api/admin/users/{spelling(admin_user.id)}/status",
            json={"is_active": False},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert client.get("/api/admin/dashboard/overview", headers=admin_headers).status_code == 200

    def test_malformed_user_id_is_not_found(self, client, admin_headers):
        response = client.put("/api/admin/users/not-a-uuid/status", json={"is_active": False}, headers=admin_headers)

        assert response.status_code == 404

    def test_deactivating_an_admin_ends_their_session(self, client, admin_headers, second_admin):
        other_headers = _session(admin_login(client, email=SECOND_ADMIN_EMAIL))
        assert client.get("/api/admin/dashboard/overview", headers=other_headers).status_code == 200

        response = client.put(
            f"/api/admin/users/{second_admin.id}/status",
            json={"is_active": False},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert client.get("/api/admin/dashboard/overview", headers=other_headers).status_code == 401
        status = client.get("/api/admin/admin-session-status", headers=other_headers).json()
        assert status["active"] is False

