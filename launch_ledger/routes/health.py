# launch_ledger/routes/health.py
"""
Health check endpoints with Redis and database pool monitoring.
"""

import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from launch_ledger.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "launch-ledger"}


@router.get("/readyz")
async def readyz(services: ServiceContainer = Depends(get_services)):
    """
    Readiness check covering both stores and required configuration.
    """
    checks = {}
    overall_ok = True

    # 1) Redis health check
    t0 = time.time()
    redis_ok = await services.counter_store.ping()
    checks["redis"] = {
        "ok": redis_ok,
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    overall_ok = overall_ok and redis_ok

    # 2) Database pool health check
    t0 = time.time()
    db_health = await services.db_pool.health_check()
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
                "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
            }
        )

    if not is_healthy:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")

    overall_ok = overall_ok and is_healthy

    # 3) Configuration checks
    settings = services.settings
    config_issues = [
        f"{name} not set"
        for name in ("VOTING_TOKEN_SECRET", "ADMIN_JWT_SECRET", "CRON_SECRET")
        if not getattr(settings, name)
    ]
    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    body = {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
    if not overall_ok:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
