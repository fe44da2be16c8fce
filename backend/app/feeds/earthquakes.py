"""
earthquakes.py — Recent seismic events from the USGS summary GeoJSON feed.

Feed reference:
    https://earthquake.usgs.gov/earthquakes/feed/v1.0/geojson.php

Each feature looks like:

    {
      "id": "us7000abcd",
      "properties": {"mag": 4.6, "place": "10 km SW of X", "time": 1714550400000,
                     "url": "https://earthquake.usgs.gov/...", "title": "M 4.6 - ..."},
      "geometry": {"type": "Point", "coordinates": [lon, lat, depth_km]}
    }

Magnitude classification
========================
    Events below M 2.5 (or without a magnitude) are dropped: generally not
    felt, and thousands per day worldwide.

    category                        severity
    ────────                        ────────
    M ≥ 7.0   Major Earthquake      M ≥ 7.0   extreme
    M ≥ 5.0   Moderate Earthquake   M ≥ 5.0   severe
    M ≥ 2.5   Minor Earthquake      M ≥ 3.0   moderate
                                    else      minor
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

import httpx

from backend.app.core.config import settings
from backend.app.feeds.base import HttpFeedAdapter
from backend.app.feeds.models import (
    USGS_SOURCE_LABEL,
    NormalizedRecord,
    Severity,
    SourceKind,
)
from backend.app.spatial.geo_math import Coordinate, coordinate_or_none
from backend.app.spatial.location_resolver import OriginSpec

logger = logging.getLogger(__name__)

MAJOR_MAGNITUDE = 7.0
MODERATE_MAGNITUDE = 5.0
MODERATE_SEVERITY_MAGNITUDE = 3.0


def classify_magnitude(magnitude: float) -> str:
    """
    Category label for a magnitude.

    >>> classify_magnitude(7.2)
    'Major Earthquake'
    >>> classify_magnitude(5.0)
    'Moderate Earthquake'
    >>> classify_magnitude(2.5)
    'Minor Earthquake'
    """
    if magnitude >= MAJOR_MAGNITUDE:
        return "Major Earthquake"
    if magnitude >= MODERATE_MAGNITUDE:
        return "Moderate Earthquake"
    return "Minor Earthquake"


def magnitude_severity(magnitude: float) -> Severity:
    """
    Severity for a magnitude.

    >>> magnitude_severity(3.2)
    <Severity.MODERATE: 'moderate'>
    >>> magnitude_severity(2.7)
    <Severity.MINOR: 'minor'>
    """
    if magnitude >= MAJOR_MAGNITUDE:
        return Severity.EXTREME
    if magnitude >= MODERATE_MAGNITUDE:
        return Severity.SEVERE
    if magnitude >= MODERATE_SEVERITY_MAGNITUDE:
        return Severity.MODERATE
    return Severity.MINOR


def _safe_float(val: Any) -> Optional[float]:
    if val is None or isinstance(val, bool):
        return None
    try:
        number = float(val)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _normalise_longitude(longitude: float) -> float:
    if longitude > 180:
        longitude -= 360
    elif longitude < -180:
        longitude += 360
    return longitude


def _feature_coordinate(geometry: Any) -> Optional[Coordinate]:
    if not isinstance(geometry, dict):
        return None
    coords = geometry.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    lon = _safe_float(coords[0])
    lat = _safe_float(coords[1])
    if lon is None or lat is None:
        return None
    return coordinate_or_none(lat, _normalise_longitude(lon))


def parse_earthquake_feature(
    feature: dict,
    min_magnitude: float = 2.5,
) -> Optional[NormalizedRecord]:
    """
    Map one USGS feature to a NormalizedRecord.

    Returns None for events below `min_magnitude` or without a finite
    magnitude. Raises KeyError /
    TypeError / ValueError for structurally broken features.
    """
    props = feature["properties"]
    if not isinstance(props, Mapping):
        raise TypeError(f"event properties is {type(props).__name__}, not an object")
    magnitude = _safe_float(props.get("mag"))
    if magnitude is None or magnitude < min_magnitude:
        return None

    time_ms = props["time"]
    occurred_at = datetime.fromtimestamp(float(time_ms) / 1000, tz=timezone.utc)

    place = props.get("place") or "Unknown location"
    title = props.get("title") or f"M {magnitude:.1f} - {place}"
    category = classify_magnitude(magnitude)

    return NormalizedRecord(
        id=f"usgs:{feature['id']}",
        title=title,
        description=f"{category} of magnitude {magnitude:.1f}, {place}.",
        category=category,
        coordinate=_feature_coordinate(feature.get("geometry")),
        occurred_at=occurred_at,
        source_kind=SourceKind.EARTHQUAKE,
        source_label=USGS_SOURCE_LABEL,
        severity=magnitude_severity(magnitude),
        external_link=props.get("url"),
        magnitude=magnitude,
    )


class EarthquakeAdapter(HttpFeedAdapter):
    """USGS earthquake feed → NormalizedRecords (M ≥ 2.5)."""

    name = "usgs"
    source_kind = SourceKind.EARTHQUAKE

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        url: Optional[str] = None,
        min_magnitude: Optional[float] = None,
        use_cache: bool = True,
    ):
        super().__init__(client, url=url or settings.USGS_FEED_URL, use_cache=use_cache)
        self.min_magnitude = (
            settings.MIN_EARTHQUAKE_MAGNITUDE if min_magnitude is None else min_magnitude
        )

    async def _fetch(self, origin: OriginSpec) -> List[NormalizedRecord]:
        payload = await self._get_json()
        records: List[NormalizedRecord] = []
        skipped = 0
        for feature in payload["features"]:
            try:
                record = parse_earthquake_feature(feature, self.min_magnitude)
            except (KeyError, TypeError, ValueError, OverflowError) as exc:
                skipped += 1
                logger.debug("Skipping malformed USGS feature: %s", exc)
                continue
            if record is not None:
                records.append(record)
        if skipped:
            logger.info("Skipped %d malformed USGS features", skipped)
        return records
