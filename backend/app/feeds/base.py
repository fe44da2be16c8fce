"""
base.py — Common contract for every feed source adapter.

An adapter turns one upstream into NormalizedRecords. Subclasses only
implement `_fetch`; the base class owns the failure policy:

    Level 1 — whole-source failure (network error, HTTP error status,
              payload that is not the expected document)
        → SourceFetchFailure, logged at WARNING, empty result

    Level 2 — one malformed item inside an otherwise good payload
        → item skipped by the subclass parser, logged at DEBUG

There is no retry. The next feed request is the retry.

HTTP adapters share one httpx.AsyncClient per request and may cache the raw
payload in Redis (see `HttpFeedAdapter._get_json`).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.cache import cache_get, cache_set, feed_cache_key
from backend.app.core.config import settings
from backend.app.core.errors import SourceFetchFailure
from backend.app.feeds.models import NormalizedRecord, SourceKind, SourceResult
from backend.app.spatial.location_resolver import OriginSpec

logger = logging.getLogger(__name__)

# Last outcome per source name, reported by the health probe
_last_results: Dict[str, SourceResult] = {}


def source_status() -> Dict[str, Dict[str, Any]]:
    """Most recent fetch outcome of every source seen by this process."""
    return {
        name: {
            "ok": result.ok,
            "records": len(result.records),
            "duration_ms": round(result.duration_ms, 1),
            "fetched_at": result.fetched_at.isoformat(),
            **({"error": result.error} if result.error else {}),
        }
        for name, result in _last_results.items()
    }


class SourceAdapter:
    """Base class: failure-tolerant fetch of one upstream."""

    name: str = "source"
    source_kind: SourceKind = SourceKind.COMMUNITY

    async def _fetch(self, origin: OriginSpec) -> List[NormalizedRecord]:
        raise NotImplementedError

    async def fetch_result(self, origin: OriginSpec) -> SourceResult:
        """Fetch and normalise; never raises."""
        start = time.perf_counter()
        result = SourceResult(source_kind=self.source_kind, source_name=self.name)
        try:
            result.records = list(await self._fetch(origin))
        except SourceFetchFailure as exc:
            result.error = exc.message
        except Exception as exc:
            result.error = SourceFetchFailure(self.name, f"{type(exc).__name__}: {exc}").message
        result.duration_ms = (time.perf_counter() - start) * 1000
        _last_results[self.name] = result

        if result.error:
            logger.warning(
                "Source %s failed after %.0fms — continuing without it: %s",
                self.name, result.duration_ms, result.error,
                extra={"source": self.name, "duration_ms": result.duration_ms},
            )
        else:
            logger.info(
                "Source %s returned %d records (%.0fms)",
                self.name, len(result.records), result.duration_ms,
                extra={
                    "source": self.name,
                    "record_count": len(result.records),
                    "duration_ms": result.duration_ms,
                },
            )
        return result

    async def fetch(self, origin: OriginSpec) -> List[NormalizedRecord]:
        """Normalised records, or an empty list if the source failed."""
        return (await self.fetch_result(origin)).records


class HttpFeedAdapter(SourceAdapter):
    """Adapter backed by an external GeoJSON feed."""

    url: str = ""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        url: Optional[str] = None,
        use_cache: bool = True,
    ):
        self._client = client
        self._owns_client = client is None
        if url is not None:
            self.url = url
        self.use_cache = use_cache

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.FEED_FETCH_TIMEOUT)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    def _request_headers(self) -> dict:
        return {"Accept": "application/geo+json"}

    async def _get_json(self) -> Any:
        """GET the feed document, going through the Redis cache if enabled."""
        cache_key = feed_cache_key(self.name)
        if self.use_cache:
            cached = await cache_get(cache_key)
            if cached is not None:
                logger.debug("Cache HIT for %s", cache_key)
                return cached

        client = await self._get_client()
        try:
            response = await client.get(
                self.url,
                headers=self._request_headers(),
                timeout=settings.FEED_FETCH_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceFetchFailure(
                self.name, f"HTTP {e.response.status_code}", url=self.url,
            ) from e
        except httpx.HTTPError as e:
            raise SourceFetchFailure(
                self.name, f"{type(e).__name__}: {e}", url=self.url,
            ) from e
        except ValueError as e:
            raise SourceFetchFailure(self.name, "response is not JSON", url=self.url) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
            raise SourceFetchFailure(
                self.name, "payload is not a GeoJSON FeatureCollection", url=self.url,
            )

        if self.use_cache:
            await cache_set(cache_key, payload, ttl=settings.FEED_CACHE_TTL)
        return payload
