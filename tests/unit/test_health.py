"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from kinship.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "kinship"


def test_readyz_endpoint_database_healthy():
    """Test readiness endpoint when the database pool is healthy."""
    health = {
        "healthy": True,
        "service": "database_pool",
        "connection_time_ms": 1.2,
        "pool_stats": {"pool_size": 2, "pool_available": 2},
    }
    with (
        patch("kinship.routes.health.db_health_check", AsyncMock(return_value=health)),
        patch("kinship.routes.health.settings.GMAIL_ACCESS_TOKEN", "token"),
        patch("kinship.routes.health.settings.OPENAI_API_KEY", None),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True

    checks = data["checks"]
    assert checks["database"]["ok"] is True
    assert checks["database"]["pool_stats"]["pool_size"] == 2
    assert checks["configuration"]["gmail_configured"] is True
    assert checks["configuration"]["summarizer_configured"] is False


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when the pool reports unhealthy."""
    with patch(
        "kinship.routes.health.db_health_check",
        AsyncMock(return_value={"healthy": False, "error": "Pool not initialized"}),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "Pool not initialized"


def test_readyz_endpoint_database_exception():
    """Test readiness endpoint when the health check itself raises."""
    with patch(
        "kinship.routes.health.db_health_check",
        AsyncMock(side_effect=RuntimeError("boom")),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "RuntimeError: boom"
