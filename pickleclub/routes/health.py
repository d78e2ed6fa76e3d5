"""
Health check endpoints with database pool and Redis monitoring.
"""

import time

from fastapi import APIRouter

from pickleclub.config import settings
from pickleclub.db.pool import db_health_check
from pickleclub.infrastructure.observability.logging import log_health_check
from pickleclub.services.redis_client import redis_cache

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "pickleclub"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check across dependencies.

    The database is required. Redis only backs the profile cache, so it
    counts against readiness only when it is configured.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                }
            )
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False
    log_health_check(
        "database", checks["database"]["ok"], checks["database"]["latency_ms"],
        checks["database"].get("error"),
    )

    # 2) Redis profile cache
    if redis_cache.enabled:
        t0 = time.time()
        redis_ok = await redis_cache.ping()
        checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and redis_ok
    else:
        checks["redis"] = {"ok": True, "enabled": False}

    # 3) Configuration
    config_issues = []
    if not settings.SUPABASE_DB_URL:
        config_issues.append("SUPABASE_DB_URL not set")
    if not settings.EXPO_PUSH_URL:
        config_issues.append("EXPO_PUSH_URL not set")
    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
