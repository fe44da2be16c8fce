"""
geo_math.py — Great-circle distance for every radius decision in the feed.

Provides:
    - Coordinate, a validated (latitude, longitude) pair
    - Haversine distance in **miles** between two coordinates
    - Parsing of raw lat/lon values into an optional Coordinate, with the
      legacy (0, 0) "no location set" sentinel mapped to None
    - Human-readable distance formatting

Every "is this record within the user's radius?" answer in the system is
derived from `distance_miles`. There is exactly one implementation; the
dashboard, list and map views all go through it.

Mathematical Foundation — Haversine Formula
============================================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂) in radians:

    h = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√h, √(1 − h))
    d_km = R · c                       R = 6371 km
    d_mi = d_km · 0.621371

The radius and the km→mile factor are fixed constants. Changing either
moves the inclusion boundary for every user, so both are kept exactly as
stored user radii were calibrated against.

Sentinel Coordinate
===================
Older profiles and posts stored (0, 0) when no location had been chosen.
That point is in the Gulf of Guinea and is never a real origin here:
`coordinate_or_none` converts it to None at every ingestion boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from backend.app.core.errors import InvalidCoordinate


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_KM: float = 6371.0
KM_TO_MILES: float = 0.621371

SENTINEL_LATITUDE: float = 0.0
SENTINEL_LONGITUDE: float = 0.0


def _validate(latitude: Any, longitude: Any) -> None:
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        raise InvalidCoordinate(latitude, longitude, "boolean is not a coordinate")
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinate(latitude, longitude, "not a number") from None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(latitude, longitude, "not finite")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(latitude, longitude, "latitude outside [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(latitude, longitude, "longitude outside [-180, 180]")


@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        _validate(self.latitude, self.longitude)
        # normalise ints / numeric strings to float on the frozen instance
        object.__setattr__(self, "latitude", float(self.latitude))
        object.__setattr__(self, "longitude", float(self.longitude))

    @property
    def lat_rad(self) -> float:
        return math.radians(self.latitude)

    @property
    def lon_rad(self) -> float:
        return math.radians(self.longitude)

    @property
    def is_sentinel(self) -> bool:
        return (
            self.latitude == SENTINEL_LATITUDE
            and self.longitude == SENTINEL_LONGITUDE
        )

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def distance_miles(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates, in miles.

    Parameters
    ----------
    a, b : Coordinate
        Origin and target. Anything exposing `latitude`/`longitude` works;
        values are re-validated so a malformed duck-typed point still
        raises InvalidCoordinate rather than returning NaN.

    Returns
    -------
    float
        Unrounded distance in miles.

    Raises
    ------
    InvalidCoordinate
        If either point has a NaN or out-of-range component.

    Examples
    --------
    >>> round(distance_miles(Coordinate(40.0, -75.0), Coordinate(40.05, -75.0)), 2)
    3.45
    >>> distance_miles(Coordinate(40.0, -75.0), Coordinate(40.0, -75.0))
    0.0
    """
    _validate(a.latitude, a.longitude)
    _validate(b.latitude, b.longitude)

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2.0) ** 2
    )
    central_angle = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))

    return EARTH_RADIUS_KM * central_angle * KM_TO_MILES


def compute_distance(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> float:
    """Distance in miles between two raw lat/lon pairs (diagnostic helper)."""
    return distance_miles(Coordinate(lat1, lon1), Coordinate(lat2, lon2))


# ---------------------------------------------------------------------------
# Ingestion helpers
# ---------------------------------------------------------------------------

def coordinate_or_none(latitude: Any, longitude: Any) -> Optional[Coordinate]:
    """
    Parse raw values into a Coordinate, or None when they do not describe
    a usable location.

    None is returned for missing values, unparseable strings, NaN,
    out-of-range values and the (0, 0) sentinel.

    >>> coordinate_or_none("40.0", "-75.0")
    Coordinate(latitude=40.0, longitude=-75.0)
    >>> coordinate_or_none(0, 0) is None
    True
    >>> coordinate_or_none(None, -75.0) is None
    True
    """
    if latitude is None or longitude is None:
        return None
    if isinstance(latitude, str) and not latitude.strip():
        return None
    if isinstance(longitude, str) and not longitude.strip():
        return None
    try:
        point = Coordinate(latitude, longitude)
    except InvalidCoordinate:
        return None
    if point.is_sentinel:
        return None
    return point


def coordinate_from_geojson_point(point: Any) -> Optional[Coordinate]:
    """
    Read a GeoJSON Point (`{"type": "Point", "coordinates": [lng, lat]}`)
    as stored on posts and profiles. Malformed or sentinel points → None.
    """
    if not isinstance(point, dict):
        return None
    coords = point.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    return coordinate_or_none(coords[1], coords[0])


# ---------------------------------------------------------------------------
# Utility: Human-readable distance
# ---------------------------------------------------------------------------

def format_distance(miles: Optional[float]) -> str:
    """
    Format a distance for display.

    >>> format_distance(3.4547)
    '3.5 miles away'
    >>> format_distance(1.0)
    '1.0 mile away'
    >>> format_distance(None)
    ''
    """
    if miles is None:
        return ""
    rounded = round(miles, 1)
    unit = "mile" if rounded == 1.0 else "miles"
    return f"{rounded:.1f} {unit} away"
