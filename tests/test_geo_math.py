"""
test_geo_math.py — Tests for the Haversine distance and coordinate parsing.

Covers:
    • Known distances (miles, unrounded)
    • Symmetry and zero self-distance
    • InvalidCoordinate for NaN, infinite, out-of-range and non-numeric input
    • (0, 0) sentinel handling and GeoJSON point parsing
    • Human-readable distance formatting

Run with:
    pytest tests/test_geo_math.py -v
"""

from __future__ import annotations

import math

import pytest

from backend.app.core.errors import InvalidCoordinate
from backend.app.spatial.geo_math import (
    EARTH_RADIUS_KM,
    KM_TO_MILES,
    Coordinate,
    compute_distance,
    coordinate_from_geojson_point,
    coordinate_or_none,
    distance_miles,
    format_distance,
)


ORIGIN = Coordinate(40.0, -75.0)


class TestCoordinate:

    def test_converts_to_float(self):
        c = Coordinate(40, "-75.5")
        assert c.latitude == 40.0
        assert c.longitude == -75.5
        assert isinstance(c.latitude, float)

    def test_boundaries_accepted(self):
        Coordinate(90.0, 180.0)
        Coordinate(-90.0, -180.0)

    @pytest.mark.parametrize("lat, lon", [
        (90.01, 0.0),
        (-91.0, 0.0),
        (0.0, 180.5),
        (0.0, -181.0),
        (float("nan"), 0.0),
        (0.0, float("inf")),
        ("north", 0.0),
        (None, 0.0),
        (True, 0.0),
    ])
    def test_invalid_rejected(self, lat, lon):
        with pytest.raises(InvalidCoordinate):
            Coordinate(lat, lon)

    def test_sentinel(self):
        assert Coordinate(0, 0).is_sentinel
        assert not Coordinate(0.0, 1.0).is_sentinel

    def test_to_dict(self):
        assert ORIGIN.to_dict() == {"latitude": 40.0, "longitude": -75.0}


class TestDistanceMiles:

    def test_zero_for_same_point(self):
        assert distance_miles(ORIGIN, Coordinate(40.0, -75.0)) == 0.0

    def test_short_hop_north(self):
        # 0.05° of latitude ≈ 5.56 km ≈ 3.45 mi
        d = distance_miles(ORIGIN, Coordinate(40.05, -75.0))
        assert d == pytest.approx(3.4546, abs=1e-3)

    def test_half_degree_north(self):
        d = distance_miles(ORIGIN, Coordinate(40.5, -75.0))
        assert d == pytest.approx(34.546, abs=1e-2)

    def test_symmetric(self):
        a = Coordinate(13.0827, 80.2707)
        b = Coordinate(51.5074, -0.1278)
        assert distance_miles(a, b) == pytest.approx(distance_miles(b, a), rel=1e-12)

    def test_antipodal_is_half_circumference(self):
        d = distance_miles(Coordinate(0.0, 0.0), Coordinate(0.0, 180.0))
        assert d == pytest.approx(math.pi * EARTH_RADIUS_KM * KM_TO_MILES, rel=1e-9)

    def test_not_rounded(self):
        d = distance_miles(ORIGIN, Coordinate(40.05, -75.0))
        assert d != round(d, 2)

    def test_revalidates_duck_typed_points(self):
        class _Point:
            latitude = float("nan")
            longitude = 0.0

        with pytest.raises(InvalidCoordinate):
            distance_miles(ORIGIN, _Point())


class TestComputeDistance:

    def test_matches_distance_miles(self):
        assert compute_distance(40.0, -75.0, 40.05, -75.0) == distance_miles(
            ORIGIN, Coordinate(40.05, -75.0),
        )

    def test_invalid_latitude_raises(self):
        with pytest.raises(InvalidCoordinate) as exc_info:
            compute_distance(95.0, 0.0, 0.0, 0.0)
        assert exc_info.value.status_code == 422
        assert exc_info.value.error_code == "INVALID_COORDINATE"


class TestCoordinateOrNone:

    def test_parses_strings(self):
        assert coordinate_or_none("40.0", "-75.0") == ORIGIN

    @pytest.mark.parametrize("lat, lon", [
        (None, -75.0),
        (40.0, None),
        ("", "-75.0"),
        ("  ", "-75.0"),
        ("abc", "-75.0"),
        (91.0, 0.0),
        (float("nan"), 0.0),
        (0, 0),
        ("0", "0.0"),
    ])
    def test_unusable_values_are_none(self, lat, lon):
        assert coordinate_or_none(lat, lon) is None


class TestGeoJsonPoint:

    def test_lng_lat_order(self):
        point = {"type": "Point", "coordinates": [-75.0, 40.0]}
        assert coordinate_from_geojson_point(point) == ORIGIN

    def test_sentinel_point_is_none(self):
        assert coordinate_from_geojson_point({"type": "Point", "coordinates": [0, 0]}) is None

    @pytest.mark.parametrize("point", [
        None,
        "40,-75",
        {"type": "Point"},
        {"type": "Point", "coordinates": [-75.0]},
        {"type": "Point", "coordinates": "bad"},
    ])
    def test_malformed_is_none(self, point):
        assert coordinate_from_geojson_point(point) is None


class TestFormatDistance:

    def test_plural(self):
        assert format_distance(3.4546) == "3.5 miles away"

    def test_singular(self):
        assert format_distance(1.0) == "1.0 mile away"
        assert format_distance(0.96) == "1.0 mile away"

    def test_zero(self):
        assert format_distance(0.0) == "0.0 miles away"

    def test_none(self):
        assert format_distance(None) == ""
