import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from src.api.middleware.security.rate_limiter import EnhancedRateLimiter, EnhancedRateLimitMiddleware
from src.infra.config.settings import settings


@pytest.fixture
def limited_app():
    app = FastAPI()
    app.add_middleware(EnhancedRateLimitMiddleware, enabled=True)

    @app.post("/api/auth/register")
    async def register():
        return {"ok": True}

    @app.post("/api/auth/login")
    async def login():
        return JSONResponse(status_code=401, content={"success": False})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


@pytest.fixture
def client(limited_app):
    return TestClient(limited_app)


def test_rate_limit_exceeded(client):
    """Endpoint-specific limit answers 429 with retry information"""
    for _ in range(settings.RATE_LIMIT_AUTH_REGISTER):
        response = client.post("/api/auth/register")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" in response.headers

    response = client.post("/api/auth/register")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["limit"] == settings.RATE_LIMIT_AUTH_REGISTER
    assert body["remaining"] == 0


def test_limits_are_per_client_ip(client):
    for _ in range(settings.RATE_LIMIT_AUTH_REGISTER):
        client.post("/api/auth/register", headers={"X-Forwarded-For": "10.0.0.1"})

    assert client.post("/api/auth/register", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
    assert client.post("/api/auth/register", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200


def test_health_is_never_limited(client):
    for _ in range(settings.RATE_LIMIT_DEFAULT + 5):
        assert client.get("/health").status_code == 200


def test_suspicious_ip_blocking(client):
    """Repeated credential failures block the IP on every endpoint"""
    headers = {"X-Forwarded-For": "10.0.0.9"}
    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD):
        assert client.post("/api/auth/login", headers=headers).status_code == 401

    response = client.post("/api/auth/register", headers=headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_BLOCKED"


def test_limiter_tracks_endpoints_separately():
    limiter = EnhancedRateLimiter()
    for _ in range(settings.RATE_LIMIT_ADMIN_LOGIN):
        limiter.add_request("1.2.3.4", "/api/admin/admin-login")

    limited, count, limit, _ = limiter.is_rate_limited("1.2.3.4", "/api/admin/admin-login")
    assert limited is True
    assert count == limit == settings.RATE_LIMIT_ADMIN_LOGIN

    limited, count, _, _ = limiter.is_rate_limited("1.2.3.4", "/api/auth/register")
    assert limited is False
    assert count == 0


def test_disabled_middleware_passes_everything():
    app = FastAPI()
    app.add_middleware(EnhancedRateLimitMiddleware, enabled=False)

    @app.post("/api/auth/register")
    async def register():
        return {"ok": True}

    client = TestClient(app)
    for _ in range(settings.RATE_LIMIT_AUTH_REGISTER + 2):
        assert client.post("/api/auth/register").status_code == 200
