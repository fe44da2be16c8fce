"""
Pydantic schemas for the feed API.

Separated from the route handler so they are reusable across
the codebase (route handlers, tests).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from backend.app.feeds.models import Feed, NormalizedRecord
from backend.app.spatial.location_resolver import OriginSpec


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FeedView(str, Enum):
    """Which screen the feed is for; only the dashboard is truncated."""
    DASHBOARD = "dashboard"
    LIST      = "list"
    MAP       = "map"

    @property
    def bounded_preview(self) -> bool:
        return self is FeedView.DASHBOARD


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class CoordinateOut(BaseModel):
    latitude: float
    longitude: float


class OriginOut(BaseModel):
    """The origin and radius a feed was filtered against."""
    coordinate: Optional[CoordinateOut] = Field(
        None, description="Null when no location is set (unfiltered view)",
    )
    radius_miles: int
    source: str = Field(..., description="'profile' or 'query-override'")

    @classmethod
    def from_origin(cls, origin: OriginSpec) -> "OriginOut":
        return cls(
            coordinate=(
                CoordinateOut(**origin.coordinate.to_dict())
                if origin.coordinate else None
            ),
            radius_miles=origin.radius_miles,
            source=origin.source.value,
        )


class FeedItemOut(BaseModel):
    """A single record in either feed partition."""
    id: str
    title: str
    description: str = ""
    category: str
    coordinate: Optional[CoordinateOut] = None
    occurred_at: datetime
    source_kind: str
    source_label: str
    severity: Optional[str] = None
    external_link: Optional[str] = None
    author: Optional[str] = None
    area_description: Optional[str] = None
    magnitude: Optional[float] = None
    distance_miles: Optional[float] = Field(
        None, description="Distance from the origin; null in the unfiltered view",
    )
    distance_display: str = Field(
        "", description="Human-readable distance string",
    )

    @classmethod
    def from_record(cls, record: NormalizedRecord) -> "FeedItemOut":
        return cls(**record.to_dict())


class FeedResponse(BaseModel):
    """Response for GET /api/v1/feed."""
    view: FeedView
    origin: OriginOut
    community_reports: List[FeedItemOut]
    alerts_and_news: List[FeedItemOut]
    failed_sources: List[str] = Field(default_factory=list)

    @classmethod
    def from_feed(cls, feed: Feed, view: FeedView) -> "FeedResponse":
        return cls(
            view=view,
            origin=OriginOut.from_origin(feed.origin),
            community_reports=[FeedItemOut.from_record(r) for r in feed.community_reports],
            alerts_and_news=[FeedItemOut.from_record(r) for r in feed.alerts_and_news],
            failed_sources=feed.failed_sources,
        )


class DistanceResponse(BaseModel):
    """Response for GET /api/v1/feed/distance."""
    origin: CoordinateOut = Field(..., alias="from")
    target: CoordinateOut = Field(..., alias="to")
    distance_miles: float
    distance_display: str

    model_config = {"populate_by_name": True}


class RadiusOptionsResponse(BaseModel):
    options: List[int]
    default: int
    minimum: int
    maximum: int
