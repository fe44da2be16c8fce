"""
weather_alerts.py — Active severe-weather alerts from the National Weather
Service (api.weather.gov).

API reference:
    https://www.weather.gov/documentation/services-web-api

The active-alerts endpoint returns a GeoJSON FeatureCollection. The fields
consumed here:

    feature.id / properties["@id"]   → record id, external link
    properties.event                 → category ("Flood Warning", ...)
    properties.headline              → title (falls back to event)
    properties.description           → description
    properties.severity              → Extreme | Severe | Moderate | Minor | Unknown
    properties.sent / effective      → occurred_at
    properties.areaDesc              → area_description
    geometry                         → representative coordinate

Representative coordinate
=========================
    Point         → the point itself
    Polygon       → arithmetic mean of the outer-ring vertices
    MultiPolygon  → arithmetic mean of every polygon's outer-ring vertices
    null          → no coordinate (zone-based alert; excluded whenever the
                    request has an origin)

The vertex mean is a centroid approximation, not the true area centroid.
For the county/zone-sized polygons NWS issues, the difference is far below
any radius a user can pick. The closing vertex GeoJSON repeats at the end of
a ring is counted like any other vertex.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import httpx

from backend.app.core.config import settings
from backend.app.feeds.base import HttpFeedAdapter
from backend.app.feeds.models import (
    NWS_SOURCE_LABEL,
    NormalizedRecord,
    Severity,
    SourceKind,
)
from backend.app.spatial.geo_math import Coordinate, coordinate_or_none
from backend.app.spatial.location_resolver import OriginSpec

logger = logging.getLogger(__name__)


def _vertex_mean(vertices: Iterable[Sequence[Any]]) -> Optional[Coordinate]:
    lat_sum = 0.0
    lon_sum = 0.0
    count = 0
    for vertex in vertices:
        lon, lat = float(vertex[0]), float(vertex[1])
        lat_sum += lat
        lon_sum += lon
        count += 1
    if count == 0:
        return None
    return coordinate_or_none(lat_sum / count, lon_sum / count)


def representative_coordinate(geometry: Any) -> Optional[Coordinate]:
    """
    Single coordinate standing in for an alert geometry.

    >>> representative_coordinate({"type": "Point", "coordinates": [-75.0, 40.0]})
    Coordinate(latitude=40.0, longitude=-75.0)
    >>> square = [[-75.0, 40.0], [-74.0, 40.0], [-74.0, 41.0], [-75.0, 41.0]]
    >>> representative_coordinate({"type": "Polygon", "coordinates": [square]})
    Coordinate(latitude=40.5, longitude=-74.5)
    >>> representative_coordinate(None) is None
    True
    """
    if not isinstance(geometry, dict):
        return None

    kind = geometry.get("type")
    coords = geometry.get("coordinates")

    if kind == "Point":
        if not isinstance(coords, (list, tuple)) or len(coords) < 2:
            return None
        return coordinate_or_none(coords[1], coords[0])

    if kind == "Polygon":
        if not coords:
            return None
        return _vertex_mean(coords[0])

    if kind == "MultiPolygon":
        if not coords:
            return None
        return _vertex_mean(
            vertex for polygon in coords if polygon for vertex in polygon[0]
        )

    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    # NWS uses ISO-8601 with offsets; older Pythons reject a trailing "Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_alert_feature(feature: dict) -> NormalizedRecord:
    """
    Map one NWS alert feature to a NormalizedRecord.

    Raises KeyError / TypeError / ValueError for structurally broken
    features (no properties, no timestamp, unparseable timestamp).
    """
    props = feature["properties"]
    if not isinstance(props, Mapping):
        raise TypeError(f"alert properties is {type(props).__name__}, not an object")

    occurred_at = (
        _parse_timestamp(props.get("sent"))
        or _parse_timestamp(props.get("effective"))
        or _parse_timestamp(props.get("onset"))
    )
    if occurred_at is None:
        raise ValueError("alert has no sent/effective/onset timestamp")

    event = props.get("event") or "Weather Alert"
    link = props.get("@id") or feature.get("id")

    return NormalizedRecord(
        id=str(props.get("id") or feature["id"]),
        title=props.get("headline") or event,
        description=props.get("description") or "",
        category=event,
        coordinate=representative_coordinate(feature.get("geometry")),
        occurred_at=occurred_at,
        source_kind=SourceKind.WEATHER_ALERT,
        source_label=NWS_SOURCE_LABEL,
        severity=Severity.parse(props.get("severity")),
        external_link=link,
        area_description=props.get("areaDesc"),
    )


class WeatherAlertAdapter(HttpFeedAdapter):
    """NWS active alerts → NormalizedRecords."""

    name = "nws"
    source_kind = SourceKind.WEATHER_ALERT

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        url: Optional[str] = None,
        user_agent: Optional[str] = None,
        use_cache: bool = True,
    ):
        super().__init__(client, url=url or settings.NWS_ALERTS_URL, use_cache=use_cache)
        self.user_agent = user_agent or settings.NWS_USER_AGENT

    def _request_headers(self) -> dict:
        return {"Accept": "application/geo+json", "User-Agent": self.user_agent}

    async def _fetch(self, origin: OriginSpec) -> List[NormalizedRecord]:
        payload = await self._get_json()
        records: List[NormalizedRecord] = []
        for feature in payload["features"]:
            try:
                records.append(parse_alert_feature(feature))
            except (KeyError, TypeError, ValueError, IndexError) as exc:
                logger.debug("Skipping malformed NWS alert: %s", exc)
        return records
