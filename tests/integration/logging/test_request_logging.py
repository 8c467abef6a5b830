import json
import logging

import pytest

from src.core.logger.logger import JsonFormatter


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Capture the service logger at INFO"""
    caplog.set_level(logging.INFO, logger="json4ai")
    yield


def _request_logs(caplog):
    return [r for r in caplog.records if r.getMessage() in ("Request completed", "Request failed")]


def test_request_is_logged_with_correlation_id(client, caplog):
    correlation_id = "test-correlation-id"
    response = client.get("/api/auth/password-policy", headers={"X-Request-ID": correlation_id})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    logs = _request_logs(caplog)
    assert len(logs) == 1
    record = logs[0]
    assert record.request_id == correlation_id
    assert record.method == "GET"
    assert record.path == "/api/auth/password-policy"
    assert record.status_code == 200
    assert record.duration_ms >= 0


def test_correlation_id_is_generated_when_missing(client):
    response = client.get("/api/auth/password-policy")

    assert response.headers["X-Request-ID"]


def test_error_envelope_carries_request_id(client, caplog):
    response = client.post(
        "/api/auth/login",
        json={"email": "nobody@example.com", "password": "Wr0ng!Pass"},
        headers={"X-Request-ID": "req-401"},
    )

    assert response.status_code == 401
    assert response.json()["error"]["request_id"] == "req-401"
    assert _request_logs(caplog)[0].status_code == 401


def test_requests_feed_metrics(client):
    from src.api.utils.metrics import get_metrics

    client.get("/api/auth/password-policy")
    client.get("/api/does-not-exist")

    stats = get_metrics().get_request_stats()
    assert stats["requests"] == 2
    assert stats["server_errors"] == 0


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("json4ai", logging.INFO, __file__, 1, "Request completed", None, None)
    record.request_id = "abc"
    record.status_code = 200

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Request completed"
    assert data["level"] == "INFO"
    assert data["request_id"] == "abc"
    assert data["status_code"] == 200
    assert "timestamp" in data


def test_json_formatter_merges_json_messages():
    record = logging.LogRecord("json4ai", logging.INFO, __file__, 1, '{"event": "health_check"}', None, None)

    data = json.loads(JsonFormatter().format(record))

    assert data["event"] == "health_check"
    assert "message" not in data
