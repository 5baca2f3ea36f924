"""Tests for the HTTP status API."""

import pytest
from conftest import make_definition
from fastapi.testclient import TestClient

from module_runtime.app import create_app
from module_runtime.catalog import build_catalog
from module_runtime.registry import ModuleRegistry
from module_runtime.settings import Settings


@pytest.fixture
def registry(settings: Settings) -> ModuleRegistry:
    return ModuleRegistry(settings=settings, factories=build_catalog())


@pytest.fixture
def client(registry: ModuleRegistry, settings: Settings):
    with TestClient(create_app(registry, settings)) as test_client:
        yield test_client


def test_ping(client: TestClient):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"ping": "pong"}


def test_health_check_ok_then_degraded(client: TestClient):
    response = client.get("/health-check")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    client.app.state.module_registry.register_factory("broken", lambda: 42)
    client.post("/modules/broken/load")

    body = client.get("/health-check").json()
    assert body["status"] == "degraded"
    assert body["modules"]["failed"] == 1


def test_load_and_get_module(client: TestClient):
    response = client.post("/modules/auth/load")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "auth"
    assert body["active"] is True
    assert body["error"] is None

    response = client.get("/modules/auth")
    assert response.status_code == 200
    assert response.json()["version"] == "1.0.0"


def test_failed_load_reports_error(client: TestClient):
    client.app.state.module_registry.register_factory("broken", lambda: 42)

    body = client.post("/modules/broken/load").json()

    assert body["loaded"] is False
    assert body["error"]["code"] == "CONSTRUCTION_FAILED"


def test_unknown_module_returns_404(client: TestClient):
    assert client.get("/modules/ghost").status_code == 404
    assert client.post("/modules/ghost/load").status_code == 404
    assert client.post("/modules/ghost/unload").status_code == 404


def test_unload_module(client: TestClient):
    client.post("/modules/auth/load")

    body = client.post("/modules/auth/unload").json()

    assert body["active"] is False
    assert body["loaded"] is True


def test_status_summary_statistics_diagnose(client: TestClient):
    client.post("/modules/auth/load")
    client.post("/modules/dashboard/load")

    status = client.get("/modules").json()
    assert status["total_modules"] == 2
    assert {row["name"] for row in status["modules"]} == {"auth", "dashboard"}

    summary = client.get("/modules/summary").json()
    assert summary == {"total": 2, "initialized": 0, "loaded": 2, "active": 2, "failed": 0}

    statistics = client.get("/modules/statistics").json()
    assert statistics["by_version"] == {"1.0.0": 2}

    report = client.get("/modules/diagnose").json()["report"]
    assert "total modules: 2" in report


def test_unregister_module(client: TestClient):
    client.post("/modules/auth/load")

    assert client.delete("/modules/auth").status_code == 204
    assert client.get("/modules/auth").status_code == 404
    assert client.delete("/modules/auth").status_code == 404


def test_registry_errors_return_409(settings: Settings):
    registry = ModuleRegistry(settings=settings)
    registry.register_definition(make_definition("auth"))
    registry.register_definition(make_definition("dashboard", "auth"))

    with TestClient(create_app(registry, settings)) as client:
        response = client.delete("/modules/auth")

    assert response.status_code == 409
    assert "dashboard" in response.json()["detail"]
    assert registry.is_registered("auth")
