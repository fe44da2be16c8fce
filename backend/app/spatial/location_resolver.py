"""
location_resolver.py — Decide the origin and radius for one feed request.

Inputs:
    profile         — what the user profile store holds for the caller
                      (home coordinate + saved alert radius), or None for
                      anonymous requests
    query_override  — raw `lat` / `lng` / `radius` query values, used for
                      diagnostics and testing

Precedence
==========
    coordinate:  override (both lat and lng parse, valid, not sentinel)
                 → profile coordinate (present, not sentinel)
                 → None  ("no location": caller shows the global feed)

    radius:      override radius (integer in [1, 200])
                 → profile radius (integer in [1, 200])
                 → DEFAULT_RADIUS_MILES (50)

A malformed override radius is never reported to the caller. It raises
InvalidRadiusOverride internally, is logged at debug level, and the chain
continues with the profile radius.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from backend.app.core.config import settings
from backend.app.core.errors import InvalidRadiusOverride
from backend.app.spatial.geo_math import Coordinate, coordinate_or_none

logger = logging.getLogger(__name__)


class RadiusPreset(IntEnum):
    """Radius options offered by the alert-radius picker, in miles."""
    MILES_5   = 5
    MILES_10  = 10
    MILES_25  = 25
    MILES_50  = 50
    MILES_100 = 100
    MILES_200 = 200


class OriginSource(str, Enum):
    PROFILE        = "profile"
    QUERY_OVERRIDE = "query-override"


@dataclass(frozen=True)
class UserLocationProfile:
    """Location fields of a stored user profile."""
    coordinate: Optional[Coordinate] = None
    radius_miles: Optional[int] = None


@dataclass(frozen=True)
class LocationOverride:
    """Raw, unvalidated override values straight from the query string."""
    lat: Any = None
    lng: Any = None
    radius: Any = None

    @property
    def is_empty(self) -> bool:
        return self.lat is None and self.lng is None and self.radius is None


@dataclass(frozen=True)
class OriginSpec:
    """Origin + radius for one filtering pass. Never persisted."""
    coordinate: Optional[Coordinate]
    radius_miles: int
    source: OriginSource = OriginSource.PROFILE

    @property
    def has_location(self) -> bool:
        return self.coordinate is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coordinate": self.coordinate.to_dict() if self.coordinate else None,
            "radius_miles": self.radius_miles,
            "source": self.source.value,
        }


def parse_radius(value: Any) -> int:
    """
    Parse a radius as an integer number of miles within the allowed range.

    Accepts ints, integral floats and integer strings ("25"). Raises
    InvalidRadiusOverride for anything else.

    >>> parse_radius("25")
    25
    >>> parse_radius(10.0)
    10
    """
    if value is None or isinstance(value, bool):
        raise InvalidRadiusOverride(value, "not a number")

    if isinstance(value, int):
        radius = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidRadiusOverride(value, "not an integer")
        radius = int(value)
    else:
        try:
            radius = int(str(value).strip())
        except ValueError:
            raise InvalidRadiusOverride(value, "not an integer") from None

    if not settings.MIN_RADIUS_MILES <= radius <= settings.MAX_RADIUS_MILES:
        raise InvalidRadiusOverride(
            value,
            f"outside [{settings.MIN_RADIUS_MILES}, {settings.MAX_RADIUS_MILES}]",
        )
    return radius


def _resolve_radius(
    profile: Optional[UserLocationProfile],
    query_override: Optional[LocationOverride],
) -> int:
    if query_override is not None and query_override.radius is not None:
        try:
            return parse_radius(query_override.radius)
        except InvalidRadiusOverride as exc:
            logger.debug("Ignoring radius override: %s", exc.message)

    if profile is not None and profile.radius_miles is not None:
        try:
            return parse_radius(profile.radius_miles)
        except InvalidRadiusOverride:
            logger.debug(
                "Stored profile radius %r out of range — using default",
                profile.radius_miles,
            )

    return settings.DEFAULT_RADIUS_MILES


def resolve_origin(
    profile: Optional[UserLocationProfile],
    query_override: Optional[LocationOverride] = None,
) -> OriginSpec:
    """
    Resolve the OriginSpec for one feed request.

    Parameters
    ----------
    profile : UserLocationProfile | None
        Caller's stored location, None for anonymous requests.
    query_override : LocationOverride | None
        Raw query-string overrides.

    Returns
    -------
    OriginSpec
        `coordinate` is None when nothing usable was found; callers must
        then return the unfiltered feed.

    Examples
    --------
    >>> profile = UserLocationProfile(Coordinate(40.0, -75.0), 25)
    >>> resolve_origin(profile).radius_miles
    25
    >>> resolve_origin(profile, LocationOverride(radius="abc")).radius_miles
    25
    >>> resolve_origin(UserLocationProfile(Coordinate(0, 0), 10)).coordinate is None
    True
    """
    radius = _resolve_radius(profile, query_override)

    if query_override is not None:
        override_point = coordinate_or_none(query_override.lat, query_override.lng)
        if override_point is not None:
            return OriginSpec(override_point, radius, OriginSource.QUERY_OVERRIDE)

    coordinate: Optional[Coordinate] = None
    if profile is not None and profile.coordinate is not None:
        if not profile.coordinate.is_sentinel:
            coordinate = profile.coordinate

    return OriginSpec(coordinate, radius, OriginSource.PROFILE)
