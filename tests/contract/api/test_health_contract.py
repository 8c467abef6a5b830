from unittest.mock import AsyncMock

from src.core import dependencies
from src.infra.config.settings import settings


def test_health_check_contract(client):
    """Response schema of the liveness endpoint"""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == settings.APP_NAME
    assert isinstance(data["version"], str)
    assert data["services"] == {"database": "healthy", "storage": "healthy"}
    assert data["timestamp"].endswith("Z")


def test_health_check_degrades_when_storage_is_down(app, client):
    storage = AsyncMock()
    storage.ping.return_value = False
    app.dependency_overrides[dependencies.get_usage_store] = lambda: storage

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["storage"] == "unhealthy"


def test_health_check_needs_no_authentication(client):
    assert client.get("/health", headers={"Authorization": "Bearer garbage"}).status_code == 200
