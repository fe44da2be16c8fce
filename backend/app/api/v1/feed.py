"""
FastAPI route: disaster feed — radius-filtered community reports plus
weather and earthquake alerts.

Endpoints:
    GET /api/v1/feed                — feed for the dashboard, list or map view
    GET /api/v1/feed/origin         — resolved origin + radius (diagnostic)
    GET /api/v1/feed/distance       — Haversine distance in miles (diagnostic)
    GET /api/v1/feed/radius-options — radius picker presets and bounds
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import AuthContext, get_current_user, get_http_client
from backend.app.api.schemas import (
    CoordinateOut,
    DistanceResponse,
    FeedResponse,
    FeedView,
    OriginOut,
    RadiusOptionsResponse,
)
from backend.app.core.config import settings
from backend.app.core.database import get_db, load_all_posts, load_profile
from backend.app.core.errors import FeedUnavailableError
from backend.app.feeds.feed_service import build_default_adapters, get_feed
from backend.app.spatial.geo_math import compute_distance, format_distance
from backend.app.spatial.location_resolver import (
    LocationOverride,
    RadiusPreset,
    UserLocationProfile,
    resolve_origin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/feed", tags=["feed"])


async def _caller_profile(
    db: AsyncSession,
    user: Optional[AuthContext],
) -> Optional[UserLocationProfile]:
    if user is None:
        return None
    try:
        profile = await load_profile(db, user.user_id)
    except (SQLAlchemyError, OSError) as exc:
        # posts go through the same store; the community source reports its own failure
        logger.warning(
            "Profile store unavailable for user %s, serving without stored location: %s",
            user.user_id, exc,
        )
        return None
    if profile is None:
        logger.info("No profile for user %s — using unfiltered feed", user.user_id)
    return profile


def _override(
    lat: Optional[str], lng: Optional[str], radius: Optional[str],
) -> Optional[LocationOverride]:
    override = LocationOverride(lat=lat, lng=lng, radius=radius)
    return None if override.is_empty else override


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=FeedResponse,
    summary="Disaster feed around the caller",
    description=(
        "Community reports and official alerts within the caller's alert "
        "radius, newest first. `view=dashboard` returns at most 5 items per "
        "section; `list` and `map` return everything. `lat`/`lng`/`radius` "
        "override the stored profile; malformed values are ignored."
    ),
)
async def read_feed(
    view: FeedView = Query(FeedView.DASHBOARD),
    lat: Optional[str] = Query(None, description="Override latitude"),
    lng: Optional[str] = Query(None, description="Override longitude"),
    radius: Optional[str] = Query(None, description="Override radius in miles (1-200)"),
    db: AsyncSession = Depends(get_db),
    user: Optional[AuthContext] = Depends(get_current_user),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    **Flow:**
    1. Load the caller's stored location + radius (if authenticated)
    2. Resolve origin with any query overrides
    3. Fetch posts, NWS alerts and USGS quakes concurrently
    4. Filter each by radius, partition, sort newest first
    """
    profile = await _caller_profile(db, user)

    async def post_loader():
        return await load_all_posts(db)

    feed = await get_feed(
        profile,
        _override(lat, lng, radius),
        view.bounded_preview,
        build_default_adapters(post_loader, http_client),
    )

    if not feed.available:
        raise FeedUnavailableError(feed.failed_sources)

    return FeedResponse.from_feed(feed, view)


@router.get(
    "/origin",
    response_model=OriginOut,
    summary="Resolve the origin used for filtering",
)
async def read_origin(
    lat: Optional[str] = Query(None),
    lng: Optional[str] = Query(None),
    radius: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: Optional[AuthContext] = Depends(get_current_user),
):
    """Show which coordinate and radius a feed request would use."""
    profile = await _caller_profile(db, user)
    origin = resolve_origin(profile, _override(lat, lng, radius))
    return OriginOut.from_origin(origin)


@router.get(
    "/distance",
    response_model=DistanceResponse,
    summary="Calculate distance between two points",
    description="Great-circle (Haversine) distance in miles.",
)
async def read_distance(
    lat1: float = Query(..., description="Origin latitude"),
    lon1: float = Query(..., description="Origin longitude"),
    lat2: float = Query(..., description="Target latitude"),
    lon2: float = Query(..., description="Target longitude"),
):
    """Out-of-range values are rejected with 422 (INVALID_COORDINATE)."""
    miles = compute_distance(lat1, lon1, lat2, lon2)
    return DistanceResponse(
        origin=CoordinateOut(latitude=lat1, longitude=lon1),
        target=CoordinateOut(latitude=lat2, longitude=lon2),
        distance_miles=miles,
        distance_display=format_distance(miles),
    )


@router.get("/radius-options", response_model=RadiusOptionsResponse)
async def read_radius_options():
    return RadiusOptionsResponse(
        options=[preset.value for preset in RadiusPreset],
        default=settings.DEFAULT_RADIUS_MILES,
        minimum=settings.MIN_RADIUS_MILES,
        maximum=settings.MAX_RADIUS_MILES,
    )
