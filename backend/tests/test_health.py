from __future__ import annotations

from sqlalchemy.exc import OperationalError

from mindclear.api.routes import health as health_routes
from mindclear.db.deps import get_db


def test_health_endpoint_returns_ok(api) -> None:
    test_client, _, _ = api

    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_request_id_generated_and_echoed(api) -> None:
    test_client, _, _ = api

    assert test_client.get("/health").headers.get("X-Request-Id")
    echoed = test_client.get("/health", headers={"X-Request-Id": "req-123"})
    assert echoed.headers.get("X-Request-Id") == "req-123"


def test_ready_checks_database(api) -> None:
    test_client, _, _ = api

    response = test_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"ready": True}


def test_detailed_health_without_ai_key(api, monkeypatch) -> None:
    test_client, llm, _ = api
    monkeypatch.setattr(health_routes.settings, "groq_api_key", None)
    monkeypatch.setattr(health_routes.settings, "openai_api_key", None)

    response = test_client.get("/health/detailed")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["checks"]["database"] == {"status": "ok"}
    assert body["checks"]["ai"]["status"] == "unconfigured"
    assert llm.calls == []


def test_detailed_health_probes_configured_ai(api, monkeypatch) -> None:
    test_client, llm, _ = api
    monkeypatch.setattr(health_routes.settings, "groq_api_key", "gsk-test")
    llm.replies.append('{"status": "ok"}')

    response = test_client.get("/health/detailed")

    assert response.status_code == 200
    assert response.json()["checks"]["ai"] == {"status": "ok", "model": "scripted-model"}


def test_detailed_health_reports_degraded_database(api) -> None:
    test_client, _, _ = api

    class _BrokenSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    test_client.app.dependency_overrides[get_db] = lambda: _BrokenSession()

    detailed = test_client.get("/health/detailed")
    ready = test_client.get("/health/ready")

    assert detailed.status_code == 503
    assert detailed.json()["status"] == "degraded"
    assert ready.status_code == 503
    assert ready.json() == {"ready": False, "reason": "database"}
