"""
Redis cache layer — async Redis client with JSON helpers.

The external feeds (NWS active alerts, USGS summary feed) change on the
order of minutes, while every dashboard refresh triggers a full pipeline
run. Raw feed payloads are therefore cached under `feed:<source>` keys for
FEED_CACHE_TTL seconds.

Every helper is best effort: when Redis is missing or erroring, reads are
misses and writes are no-ops. A cache problem never fails a feed request.

Usage:
    from backend.app.core.cache import cache_get, cache_set

    await cache_set("feed:nws", payload, ttl=120)
    cached = await cache_get("feed:nws")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Lazy Redis client — initialised on first use
_redis_client = None


async def _get_redis():
    """Get or create async Redis client."""
    global _redis_client
    if not settings.FEED_CACHE_ENABLED:
        return None
    if _redis_client is None:
        try:
            import redis.asyncio as aioredis
            _redis_client = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis client created: %s", settings.REDIS_URL)
        except Exception as e:
            logger.warning("Redis unavailable: %s — caching disabled", e)
            return None
    return _redis_client


def feed_cache_key(source: str) -> str:
    """Namespace for cached raw feed payloads."""
    return f"feed:{source}"


async def cache_get(key: str) -> Optional[Any]:
    """Get a cached value by key. Returns None on miss or error."""
    client = await _get_redis()
    if not client:
        return None
    try:
        raw = await client.get(key)
        if raw is not None:
            return json.loads(raw)
    except Exception as e:
        logger.warning("Cache GET error for %s: %s", key, e)
    return None


async def cache_set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """Set a cached value with optional TTL (seconds)."""
    client = await _get_redis()
    if not client:
        return False
    try:
        serialised = json.dumps(value, default=str)
        await client.set(key, serialised, ex=ttl or settings.FEED_CACHE_TTL)
        return True
    except Exception as e:
        logger.warning("Cache SET error for %s: %s", key, e)
        return False


async def ping_redis() -> Optional[bool]:
    """True/False for a reachable/unreachable Redis, None when caching is off."""
    client = await _get_redis()
    if not client:
        return None
    try:
        return bool(await client.ping())
    except Exception as e:
        logger.warning("Redis PING failed: %s", e)
        return False


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
