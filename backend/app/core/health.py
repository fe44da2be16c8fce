"""
Health check aggregation — deep health probe for the feed service.

Components:
    postgresql    — post / profile store answers `SELECT 1`
    redis         — feed payload cache answers PING (DEGRADED when down or
                    disabled: the feed still works, only slower)
    feed_sources  — outcome of the last fetch of each upstream source
                    (DEGRADED when any failed; never UNHEALTHY, a source
                    outage is absorbed by the feed itself)

Only the database can make the service UNHEALTHY: without posts and
profiles there is nothing local to serve.

Returns a structured report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from sqlalchemy import text

from backend.app.core.cache import ping_redis
from backend.app.core.config import settings
from backend.app.core.database import engine
from backend.app.feeds.base import source_status

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


async def check_database() -> ComponentHealth:
    """Round-trip `SELECT 1` through the connection pool."""
    comp = ComponentHealth(name="postgresql")
    start = time.monotonic()
    try:
        async def _ping() -> None:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

        await asyncio.wait_for(_ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        comp.message = "Connection OK"
    except Exception as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        logger.error("Database health check failed: %s", comp.message)
    comp.details = {"url": engine.url.render_as_string(hide_password=True)}
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_redis() -> ComponentHealth:
    """PING the feed cache."""
    comp = ComponentHealth(name="redis")
    start = time.monotonic()
    try:
        reachable = await asyncio.wait_for(ping_redis(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        reachable = False

    if reachable is None:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Feed cache disabled"
    elif reachable:
        comp.message = "PONG"
        comp.details = {"ttl_seconds": settings.FEED_CACHE_TTL}
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Feed cache unreachable — serving uncached"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_feed_sources() -> ComponentHealth:
    """Last fetch outcome of each source; no network calls are made here."""
    comp = ComponentHealth(name="feed_sources")
    status = source_status()
    failing = sorted(name for name, s in status.items() if not s["ok"])

    if not status:
        comp.message = "No fetches yet"
    elif failing:
        comp.status = HealthStatus.DEGRADED
        comp.message = f"Last fetch failed: {', '.join(failing)}"
    else:
        comp.message = "All sources OK on last fetch"
    comp.details = status
    return comp


async def run_health_check() -> HealthReport:
    """Run all health checks concurrently and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )
    report.components = list(await asyncio.gather(
        check_database(), check_redis(), check_feed_sources(),
    ))
    report.status = max(
        (c.status for c in report.components),
        key=_SEVERITY.__getitem__,
        default=HealthStatus.HEALTHY,
    )
    return report
