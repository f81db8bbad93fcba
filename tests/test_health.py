"""Health endpoint tests."""

import pytest
from falcon.asgi import App
from falcon.testing import TestClient

from querygate.interfaces.api.resources.health import HealthResource


@pytest.fixture
def client(registry) -> TestClient:
    """Create test client with health endpoints."""
    app = App()
    health = HealthResource(None, registry)
    app.add_route("/v1/health", health)
    app.add_route("/v1/health/ready", health, suffix="ready")
    return TestClient(app)


def test_health_liveness(client: TestClient) -> None:
    """GET /v1/health returns 200."""
    result = client.simulate_get("/v1/health")
    assert result.status_code == 200
    assert result.json["status"] == "ok"


def test_health_ready(client: TestClient) -> None:
    """GET /v1/health/ready returns 200 and the number of loaded collections."""
    result = client.simulate_get("/v1/health/ready")
    assert result.status_code == 200
    assert result.json == {"status": "ready", "collections": 8}


def test_health_not_ready_when_pool_closed(registry) -> None:
    """GET /v1/health/ready returns 503 once the pool is closed."""

    class _ClosedPool:
        closed = True

    app = App()
    app.add_route("/v1/health/ready", HealthResource(_ClosedPool(), registry), suffix="ready")
    result = TestClient(app).simulate_get("/v1/health/ready")
    assert result.status_code == 503
