"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from pickleclub.main import app

client = TestClient(app)


def _redis(enabled=True, ping=True):
    cache = MagicMock()
    cache.enabled = enabled
    cache.ping = AsyncMock(return_value=ping)
    return cache


def _db(healthy=True, error=None):
    result = {"healthy": healthy, "pool_stats": {"pool_size": 2, "pool_available": 2}}
    if error:
        result["error"] = error
    return AsyncMock(return_value=result)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "pickleclub"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when all services are healthy."""
    with (
        patch("pickleclub.routes.health.db_health_check", _db()),
        patch("pickleclub.routes.health.redis_cache", _redis()),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["database"]["ok"] is True
    assert checks["database"]["pool_size"] == 2
    assert checks["redis"]["ok"] is True
    assert checks["configuration"]["ok"] is True


def test_readyz_endpoint_redis_unhealthy():
    """Test readiness endpoint when Redis is down."""
    with (
        patch("pickleclub.routes.health.db_health_check", _db()),
        patch("pickleclub.routes.health.redis_cache", _redis(ping=False)),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_redis_disabled_does_not_fail_readiness():
    with (
        patch("pickleclub.routes.health.db_health_check", _db()),
        patch("pickleclub.routes.health.redis_cache", _redis(enabled=False)),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["redis"]["enabled"] is False


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when Postgres is down."""
    with (
        patch("pickleclub.routes.health.db_health_check", _db(healthy=False, error="Connection failed")),
        patch("pickleclub.routes.health.redis_cache", _redis()),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_readyz_database_check_raising():
    with (
        patch("pickleclub.routes.health.db_health_check", AsyncMock(side_effect=RuntimeError("pool closed"))),
        patch("pickleclub.routes.health.redis_cache", _redis()),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert "pool closed" in data["checks"]["database"]["error"]


def test_readyz_includes_latency_metrics():
    """Test that readiness checks include latency metrics."""
    with (
        patch("pickleclub.routes.health.db_health_check", _db()),
        patch("pickleclub.routes.health.redis_cache", _redis()),
    ):
        response = client.get("/readyz")

    checks = response.json()["checks"]
    assert isinstance(checks["database"]["latency_ms"], (int, float))
    assert isinstance(checks["redis"]["latency_ms"], (int, float))
