from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from healthmon.core.config import Settings
from healthmon.main import create_app
from healthmon.services.monitoring import HealthMonitor

MAINTENANCE_TOKEN = "maintenance-secret"


@pytest.fixture
def monitor() -> HealthMonitor:
    return HealthMonitor()


@pytest.fixture
def app(monitor: HealthMonitor) -> FastAPI:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    test_settings = Settings(
        app_name="Riskzap Health API - Test",
        database_url="sqlite://",
        environment="test",
        maintenance_token=MAINTENANCE_TOKEN,
    )
    app = create_app(test_settings, monitor=monitor, engine=engine)

    @app.get("/api/boom")
    def boom() -> None:
        raise RuntimeError("handler exploded")

    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def _database_down(engine: object) -> None:
    raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))


def test_health_reports_connected_database(client: TestClient, monitor: HealthMonitor) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "OK"
    assert body["database"] == "connected"
    assert body["environment"] == "test"
    assert body["auto_restart"] is False
    assert body["error"] is None
    assert body["monitoring"]["requests"] == 1
    assert body["monitoring"]["db_connections"] == 1
    assert body["monitoring"]["db_error_rate"] == "0.00%"
    assert body["monitoring"]["last_health_check"] is not None


def test_health_recovers_after_pool_reset(
    client: TestClient,
    monitor: HealthMonitor,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    attempts: list[int] = []

    def flaky_ping(engine: object) -> None:
        attempts.append(1)
        if len(attempts) == 1:
            _database_down(engine)

    monkeypatch.setattr("healthmon.api.health.ping_database", flaky_ping)

    response = client.get("/api/health")
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "OK"
    assert body["database"] == "connected (auto-restarted)"
    assert body["auto_restart"] is True
    assert "unable to open database file" in body["error"]
    assert body["monitoring"]["db_connections"] == 2
    assert body["monitoring"]["db_error_rate"] == "50.00%"


def test_health_reports_error_when_retry_fails(
    client: TestClient,
    monitor: HealthMonitor,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("healthmon.api.health.ping_database", _database_down)

    response = client.get("/api/health")
    assert response.status_code == 500

    body = response.json()
    assert body["status"] == "ERROR"
    assert body["database"] == "disconnected"
    assert body["auto_restart"] is False

    metrics = monitor.get_health_status()["metrics"]
    assert metrics["db_connections"] == 2
    assert metrics["db_errors"] == 2
    # two database failures plus the 500 response itself
    assert metrics["error_count"] == 3
    assert metrics["last_error"]["context"] == "GET /api/health"


def test_middleware_counts_every_request(client: TestClient, monitor: HealthMonitor) -> None:
    for _ in range(3):
        client.get("/api/monitoring/status")

    metrics = monitor.get_health_status()["metrics"]
    assert metrics["request_count"] == 3
    assert metrics["error_count"] == 0


def test_middleware_records_not_found(client: TestClient, monitor: HealthMonitor) -> None:
    response = client.get("/api/policies/0xabc/status")
    assert response.status_code == 404

    metrics = monitor.get_health_status()["metrics"]
    assert metrics["request_count"] == 1
    assert metrics["error_count"] == 1
    assert metrics["last_error"]["context"] == "GET /api/policies/0xabc/status"
    assert metrics["last_error"]["message"] == "HTTP 404 on GET"


def test_middleware_leaves_response_untouched(client: TestClient) -> None:
    response = client.get("/api/policies/0xabc/status")

    assert response.json() == {"detail": "Not Found"}
    assert "x-request-id" not in response.headers


def test_middleware_records_unhandled_exception(client: TestClient, monitor: HealthMonitor) -> None:
    response = client.get("/api/boom")
    assert response.status_code == 500

    metrics = monitor.get_health_status()["metrics"]
    assert metrics["request_count"] == 1
    assert metrics["error_count"] == 1
    assert metrics["last_error"]["context"] == "GET /api/boom"
    assert metrics["last_error"]["message"] == "HTTP 500 on GET"


def test_status_endpoint_classifies_health(client: TestClient, monitor: HealthMonitor) -> None:
    for _ in range(4):
        client.get("/api/missing")

    response = client.get("/api/monitoring/status")
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "unhealthy"
    assert body["metrics"]["request_count"] == 5
    assert body["metrics"]["error_count"] == 4
    assert body["metrics"]["error_rate_pct"] == "80.00%"
    assert body["metrics"]["last_error"]["context"] == "GET /api/missing"
    assert body["uptime"]["human"].endswith("s")


def test_reset_requires_maintenance_token(client: TestClient, monitor: HealthMonitor) -> None:
    client.get("/api/missing")

    response = client.post("/api/monitoring/reset")
    assert response.status_code == 401

    response = client.post("/api/monitoring/reset", headers={"X-Maintenance-Token": "wrong"})
    assert response.status_code == 401

    metrics = monitor.get_health_status()["metrics"]
    assert metrics["request_count"] == 3
    assert metrics["error_count"] == 3


def test_reset_clears_counters(client: TestClient, monitor: HealthMonitor) -> None:
    client.get("/api/missing")
    client.get("/api/health")
    uptime_start = monitor.get_health_status()["metrics"]["uptime_start"]

    response = client.post("/api/monitoring/reset", headers={"X-Maintenance-Token": MAINTENANCE_TOKEN})
    assert response.status_code == 200

    body = response.json()
    assert body["status"] == "healthy"
    assert body["metrics"]["request_count"] == 0
    assert body["metrics"]["error_count"] == 0
    assert body["metrics"]["db_connections"] == 0
    assert body["metrics"]["last_error"] is None
    assert body["metrics"]["last_health_check"] is None
    assert body["metrics"]["uptime_start"] == uptime_start


def test_reset_disabled_without_configured_token(monitor: HealthMonitor) -> None:
    app = create_app(Settings(database_url="sqlite://", maintenance_token=None), monitor=monitor)

    with TestClient(app) as client:
        response = client.post("/api/monitoring/reset", headers={"X-Maintenance-Token": "anything"})

    assert response.status_code == 503
