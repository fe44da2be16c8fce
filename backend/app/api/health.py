"""
Health probes.

    GET /health        — deep report (database, cache, last source fetches)
    GET /health/live   — process is up
    GET /health/ready  — 503 while the post/profile store is unreachable
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backend.app.core.health import HealthStatus, run_health_check

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_report():
    report = await run_health_check()
    return report.to_dict()


@router.get("/live")
async def liveness():
    return {"status": "alive"}


@router.get("/ready")
async def readiness():
    report = await run_health_check()
    if report.status is HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
