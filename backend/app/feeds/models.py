"""
models.py — Shared data structures for the disaster feed.

Defines:
    • SourceKind        — which upstream a record came from
    • Severity          — normalised severity scale
    • DisasterCategory  — disaster types a community post can carry
    • NormalizedRecord  — the one record shape every source maps into
    • SourceResult      — what a single adapter fetch produced
    • Feed              — the partitioned, ordered output of the pipeline

═══════════════════════════════════════════════════════════════════════════
RECORD LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    adapter ──► NormalizedRecord (distance_miles = None)
            ──► radius filter ──► copy with distance_miles set
            ──► aggregator    ──► Feed.community_reports / alerts_and_news

Records are frozen. The filter never mutates its input; it returns
annotated copies so the same fetched records can be filtered against a
different origin without leaking distances between passes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from backend.app.spatial.geo_math import Coordinate, format_distance


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class SourceKind(str, Enum):
    """Upstream a record was fetched from."""
    COMMUNITY     = "community"
    WEATHER_ALERT = "weather-alert"
    EARTHQUAKE    = "earthquake"


# Fixed visiting order; defines "fetch order" for stable tie-breaking
SOURCE_ORDER: List[SourceKind] = [
    SourceKind.COMMUNITY,
    SourceKind.WEATHER_ALERT,
    SourceKind.EARTHQUAKE,
]


class Severity(str, Enum):
    """Severity scale shared by weather alerts and earthquakes."""
    EXTREME  = "extreme"
    SEVERE   = "severe"
    MODERATE = "moderate"
    MINOR    = "minor"
    UNKNOWN  = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Map a free-form feed value onto the scale; unknown → UNKNOWN."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


class DisasterCategory(str, Enum):
    """Disaster types a community report can be filed under."""
    FIRE       = "fire"
    FLOOD      = "flood"
    EARTHQUAKE = "earthquake"
    HURRICANE  = "hurricane"
    TORNADO    = "tornado"
    OTHER      = "other"
    NEWS       = "news"


# Source labels of official feeds
NWS_SOURCE_LABEL = "National Weather Service"
USGS_SOURCE_LABEL = "USGS Earthquake Hazards Program"
COMMUNITY_SOURCE_LABEL = "Community"


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NormalizedRecord:
    """
    A source-agnostic disaster item: community post, weather alert or
    earthquake.

    `category` is free text: the post's disaster type verbatim, the NWS
    event name ("Flood Warning"), or a magnitude class ("Minor Earthquake").
    `coordinate` is None when the upstream item has no usable location.
    """
    id: str
    title: str
    description: str
    category: str
    coordinate: Optional[Coordinate]
    occurred_at: datetime
    source_kind: SourceKind
    source_label: str
    severity: Optional[Severity] = None
    external_link: Optional[str] = None

    # Source-specific extras
    author: Optional[str] = None
    area_description: Optional[str] = None
    magnitude: Optional[float] = None

    # Set only by the radius filter, relative to the origin of that pass
    distance_miles: Optional[float] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "occurred_at", ensure_utc(self.occurred_at))

    @property
    def has_location(self) -> bool:
        return self.coordinate is not None

    def with_distance(self, miles: float) -> "NormalizedRecord":
        """Return a copy annotated with its distance from the origin."""
        return replace(self, distance_miles=miles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "coordinate": self.coordinate.to_dict() if self.coordinate else None,
            "occurred_at": self.occurred_at.isoformat(),
            "source_kind": self.source_kind.value,
            "source_label": self.source_label,
            "severity": self.severity.value if self.severity else None,
            "external_link": self.external_link,
            "author": self.author,
            "area_description": self.area_description,
            "magnitude": self.magnitude,
            "distance_miles": (
                round(self.distance_miles, 2)
                if self.distance_miles is not None else None
            ),
            "distance_display": format_distance(self.distance_miles),
        }


@dataclass
class SourceResult:
    """Outcome of one adapter fetch. `error` is set when the source failed."""
    source_kind: SourceKind
    source_name: str
    records: List[NormalizedRecord] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: float = 0.0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Feed:
    """
    Pipeline output handed to presentation.

    `origin` is the OriginSpec used for filtering (None when the feed was
    aggregated without one). `available` is False only when every source
    failed.
    """
    community_reports: List[NormalizedRecord] = field(default_factory=list)
    alerts_and_news: List[NormalizedRecord] = field(default_factory=list)
    origin: Optional[Any] = None
    failed_sources: List[str] = field(default_factory=list)
    source_count: int = 0

    @property
    def available(self) -> bool:
        return self.source_count == 0 or len(self.failed_sources) < self.source_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "community_reports": [r.to_dict() for r in self.community_reports],
            "alerts_and_news": [r.to_dict() for r in self.alerts_and_news],
            "origin": self.origin.to_dict() if self.origin is not None else None,
            "failed_sources": list(self.failed_sources),
            "available": self.available,
        }
