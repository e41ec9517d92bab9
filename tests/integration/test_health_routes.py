from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from launch_ledger.main import create_app

pytestmark = pytest.mark.integration


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "launch-ledger"}


def test_readyz_ok(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    body = response.json()
    assert body["overall_ok"] is True
    assert body["checks"]["redis"]["ok"] is True
    assert body["checks"]["database"]["ok"] is True


def test_readyz_reports_redis_down(client, counter_store):
    counter_store.fail_on.add("ping")

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["redis"]["ok"] is False


def test_readyz_reports_database_down(client, services):
    services.db_pool.health_check = AsyncMock(return_value={"healthy": False, "error": "refused"})

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["database"]["error"] == "refused"


def test_readyz_flags_missing_secret(client, test_settings):
    test_settings.CRON_SECRET = None

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["configuration"]["issues"] == ["CRON_SECRET not set"]


def test_cors_preflight(services):
    services.settings.CORS_ORIGINS = "https://site.example.com"
    client = TestClient(create_app(services))

    allowed = client.options(
        "/vote",
        headers={"Origin": "https://site.example.com", "Access-Control-Request-Method": "POST"},
    )
    denied = client.options(
        "/vote",
        headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
    )

    assert allowed.status_code == 204
    assert allowed.headers["Access-Control-Allow-Origin"] == "https://site.example.com"
    assert denied.status_code == 403
