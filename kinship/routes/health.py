"""
Health check endpoints with database pool monitoring.
"""

import time

from fastapi import APIRouter

from kinship.config import settings
from kinship.db.pool import db_health_check
from kinship.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "kinship"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering the relationship store and configuration."""
    checks = {}

    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = bool(db_health.get("healthy", False))
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

    except Exception as e:
        is_healthy = False
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

    log_health_check(
        "database",
        is_healthy,
        checks["database"]["latency_ms"],
        error=checks["database"].get("error"),
    )

    # Missing transport/summarizer credentials degrade ingestion but not reads
    checks["configuration"] = {
        "ok": bool(settings.DATABASE_URL),
        "gmail_configured": settings.has_gmail_credentials(),
        "summarizer_configured": settings.has_openai(),
        "environment": settings.environment,
    }

    overall_ok = checks["database"]["ok"] and checks["configuration"]["ok"]
    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
