"""
feed_service.py — The single entry point of the feed pipeline.

    resolve_origin ──► adapters (concurrently) ──► filter_records (per source)
                   ──► aggregate ──► Feed

Every adapter is awaited at the same time with asyncio.gather, so a
request takes as long as its slowest source rather than the sum. Adapters
never raise (see feeds.base); a failed source contributes no records and
its name is listed in `Feed.failed_sources`. If every source fails, the
feed is empty and `Feed.available` is False. The HTTP layer decides how to
show that; this module does not raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import httpx

from backend.app.feeds.aggregator import aggregate
from backend.app.feeds.base import SourceAdapter
from backend.app.feeds.community import CommunityAdapter, PostLoader
from backend.app.feeds.earthquakes import EarthquakeAdapter
from backend.app.feeds.models import Feed, NormalizedRecord, SourceKind, SourceResult
from backend.app.feeds.weather_alerts import WeatherAlertAdapter
from backend.app.spatial.geo_math import compute_distance
from backend.app.spatial.location_resolver import (
    LocationOverride,
    OriginSpec,
    UserLocationProfile,
    resolve_origin,
)
from backend.app.spatial.radius_filter import filter_records

logger = logging.getLogger(__name__)

__all__ = ["build_default_adapters", "compute_distance", "get_feed"]


def build_default_adapters(
    post_loader: PostLoader,
    http_client: Optional[httpx.AsyncClient] = None,
) -> List[SourceAdapter]:
    """The three production sources, sharing one HTTP client."""
    return [
        CommunityAdapter(post_loader),
        WeatherAlertAdapter(http_client),
        EarthquakeAdapter(http_client),
    ]


async def _fetch_all(
    adapters: Sequence[SourceAdapter],
    origin: OriginSpec,
) -> List[SourceResult]:
    outcomes = await asyncio.gather(
        *(adapter.fetch_result(origin) for adapter in adapters),
        return_exceptions=True,
    )
    results: List[SourceResult] = []
    for adapter, outcome in zip(adapters, outcomes):
        if isinstance(outcome, BaseException):
            # fetch_result already traps Exception; this only sees cancellation-style errors
            logger.error("Source %s aborted: %r", adapter.name, outcome)
            outcome = SourceResult(adapter.source_kind, adapter.name, error=repr(outcome))
        results.append(outcome)
    return results


async def get_feed(
    profile: Optional[UserLocationProfile],
    query_override: Optional[LocationOverride],
    bounded_preview: bool,
    adapters: Sequence[SourceAdapter],
) -> Feed:
    """
    Build the feed for one request.

    Parameters
    ----------
    profile : UserLocationProfile | None
        Caller's stored location and radius.
    query_override : LocationOverride | None
        Raw `lat` / `lng` / `radius` query values.
    bounded_preview : bool
        True for the dashboard preview, False for list/map views.
    adapters : sequence of SourceAdapter
        Sources to fetch (see `build_default_adapters`).

    Returns
    -------
    Feed
        Never raises because of a source or record failure.
    """
    origin = resolve_origin(profile, query_override)
    results = await _fetch_all(adapters, origin)

    per_source: Dict[SourceKind, List[NormalizedRecord]] = {}
    for result in results:
        per_source.setdefault(result.source_kind, []).extend(
            filter_records(result.records, origin)
        )

    feed = aggregate(per_source, bounded_preview)
    feed.origin = origin
    feed.source_count = len(results)
    feed.failed_sources = [r.source_name for r in results if not r.ok]

    if not feed.available:
        logger.error("All %d feed sources failed", feed.source_count)

    logger.info(
        "Feed built: %d community, %d alerts (origin=%s, radius=%d mi, preview=%s)",
        len(feed.community_reports), len(feed.alerts_and_news),
        "none" if origin.coordinate is None else origin.source.value,
        origin.radius_miles, bounded_preview,
        extra={"radius_miles": origin.radius_miles},
    )
    return feed
