"""
Contract tests for authentication API endpoints.
Tests API contracts, request/response schemas, and error handling.
"""

from conftest import TEST_PASSWORD, bearer, register_user


class TestRegisterContract:
    def test_register_returns_token_pair_and_profile(self, client):
        data = register_user(client)

        assert data["token_type"] == "bearer"
        assert data["access_token"] and data["refresh_token"]
        assert data["expires_in"] == 15 * 60
        assert data["refresh_expires_in"] == 7 * 24 * 60 * 60
        assert data["user"]["email"] == "jane@example.com"
        assert data["user"]["tier"] == "free"
        assert data["user"]["role"] == "user"
        assert "password_hash" not in data["user"]

    def test_duplicate_email_is_conflict(self, client):
        register_user(client)
        response = client.post("/api/auth/register", json={
            "first_name": "Other",
            "last_name": "Person",
            "email": "JANE@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_weak_password_lists_violations(self, client):
        response = client.post("/api/auth/register", json={
            "first_name": "Jane",
            "last_name": "Doe",
            "email": "jane@example.com",
            "password": "alllowercase",
        })

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert {"missing_uppercase", "missing_digit", "missing_special"} <= set(error["details"]["violations"])

    def test_missing_fields_are_validation_errors(self, client):
        response = client.post("/api/auth/register", json={"email": "jane@example.com"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["error"]["details"]["validation_errors"]}
        assert {"first_name", "last_name", "password"} <= fields


class TestLoginContract:
    def test_login_returns_tokens(self, client):
        register_user(client)
        response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["last_login_at"] is not None

    def test_failures_are_indistinguishable(self, client):
        register_user(client)
        wrong_password = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Wr0ng!Pass"})
        unknown_email = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "Wr0ng!Pass"})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json()["error"]["code"] == unknown_email.json()["error"]["code"] == "AUTH_ERROR"
        assert wrong_password.json()["error"]["message"] == unknown_email.json()["error"]["message"]


class TestTokenContract:
    def test_refresh_returns_access_token_only(self, client):
        tokens = register_user(client)
        response = client.post("/api/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"access_token", "token_type", "expires_in"}
        assert client.get("/api/user/profile", headers=bearer(data["access_token"])).status_code == 200

    def test_refresh_rejects_access_token(self, client):
        tokens = register_user(client)
        response = client.post("/api/refresh", json={"refresh_token": tokens["access_token"]})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    def test_refresh_token_cannot_authorize_requests(self, client):
        tokens = register_user(client)
        response = client.get("/api/user/profile", headers=bearer(tokens["refresh_token"]))

        assert response.status_code == 401

    def test_logout_always_succeeds(self, client):
        assert client.post("/api/logout").status_code == 200
        assert client.post("/api/logout", json={"refresh_token": "anything"}).json()["success"] is True


class TestPasswordResetContract:
    def test_forgot_password_answer_does_not_reveal_accounts(self, client, mailer):
        register_user(client)
        known = client.post("/api/auth/forgot-password", json={"email": "jane@example.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert len(mailer.sent) == 1

    def test_reset_then_login_with_new_password(self, client, mailer):
        register_user(client)
        client.post("/api/auth/forgot-password", json={"email": "jane@example.com"})

        response = client.post("/api/auth/reset-password", json={"token": mailer.last_token, "password": "N3w!Passw"})
        assert response.status_code == 200

        old = client.post("/api/auth/login", json={"email": "jane@example.com", "password": TEST_PASSWORD})
        new = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "N3w!Passw"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_password_policy_describes_rules(self, client):
        data = client.get("/api/auth/password-policy").json()

        assert data["allowed_special_characters"] == "!$%&*?@"
        assert data["min_length"] == 8
