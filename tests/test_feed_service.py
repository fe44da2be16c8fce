"""
test_feed_service.py — End-to-end tests for the feed pipeline with stub
sources.

Covers:
    • Origin → fetch → filter → aggregate on a realistic mix of sources
    • Partial source failure (feed still served, failure listed)
    • Total source failure (empty, unavailable feed, no exception)
    • Unfiltered feed when the caller has no location
    • Distances annotated relative to the resolved origin

Run with:
    pytest tests/test_feed_service.py -v
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from conftest import make_record

from backend.app.core.errors import SourceFetchFailure
from backend.app.feeds.base import SourceAdapter
from backend.app.feeds.community import CommunityAdapter
from backend.app.feeds.earthquakes import EarthquakeAdapter
from backend.app.feeds.feed_service import build_default_adapters, compute_distance, get_feed
from backend.app.feeds.models import NWS_SOURCE_LABEL, NormalizedRecord, SourceKind
from backend.app.feeds.weather_alerts import WeatherAlertAdapter
from backend.app.spatial.geo_math import Coordinate
from backend.app.spatial.location_resolver import (
    LocationOverride,
    OriginSource,
    UserLocationProfile,
)


class _StubAdapter(SourceAdapter):

    def __init__(self, name: str, kind: SourceKind, records: List[NormalizedRecord]):
        self.name = name
        self.source_kind = kind
        self._records = records

    async def _fetch(self, origin):
        return self._records


class _FailingAdapter(SourceAdapter):

    def __init__(self, name: str, kind: SourceKind):
        self.name = name
        self.source_kind = kind

    async def _fetch(self, origin):
        raise SourceFetchFailure(self.name, "HTTP 500")


HOME = UserLocationProfile(Coordinate(40.0, -75.0), 10)


def _adapters():
    return [
        _StubAdapter("community", SourceKind.COMMUNITY, [
            make_record("near-post", 40.05, -75.0, hour=9),
            make_record("far-post", 40.5, -75.0, hour=10),
            make_record("no-location-post", None, None, hour=11),
            make_record("repost", 40.01, -75.0, hour=8,
                        title="Flood Warning issued by NWS for County X"),
        ]),
        _StubAdapter("nws", SourceKind.WEATHER_ALERT, [
            make_record("alert", 40.02, -75.01, hour=7,
                        kind=SourceKind.WEATHER_ALERT, label=NWS_SOURCE_LABEL),
        ]),
        _StubAdapter("usgs", SourceKind.EARTHQUAKE, []),
    ]


def _feed(profile, override=None, bounded=True, adapters=None):
    return asyncio.run(get_feed(profile, override, bounded, adapters or _adapters()))


class TestGetFeed:

    def test_filters_and_partitions(self):
        feed = _feed(HOME)
        assert [r.id for r in feed.community_reports] == ["near-post"]
        assert [r.id for r in feed.alerts_and_news] == ["repost", "alert"]
        assert feed.failed_sources == []
        assert feed.available

    def test_distances_annotated(self):
        feed = _feed(HOME)
        assert feed.community_reports[0].distance_miles == pytest.approx(3.4546, abs=1e-3)
        assert all(r.distance_miles is not None for r in feed.alerts_and_news)

    def test_origin_attached(self):
        feed = _feed(HOME)
        assert feed.origin.coordinate == Coordinate(40.0, -75.0)
        assert feed.origin.radius_miles == 10

    def test_radius_override_widens_feed(self):
        feed = _feed(HOME, LocationOverride(radius="50"))
        assert [r.id for r in feed.community_reports] == ["far-post", "near-post"]

    def test_coordinate_override(self):
        feed = _feed(HOME, LocationOverride(lat="40.5", lng="-75.0", radius="5"))
        assert [r.id for r in feed.community_reports] == ["far-post"]
        assert feed.origin.source is OriginSource.QUERY_OVERRIDE

    def test_no_location_returns_everything(self):
        feed = _feed(None)
        assert [r.id for r in feed.community_reports] == [
            "no-location-post", "far-post", "near-post",
        ]
        assert all(r.distance_miles is None for r in feed.community_reports)
        assert feed.origin.coordinate is None

    def test_partial_failure(self):
        adapters = _adapters()[:2] + [_FailingAdapter("usgs", SourceKind.EARTHQUAKE)]
        feed = _feed(HOME, adapters=adapters)
        assert feed.failed_sources == ["usgs"]
        assert feed.available
        assert [r.id for r in feed.community_reports] == ["near-post"]

    def test_all_sources_failing_gives_empty_unavailable_feed(self):
        adapters = [
            _FailingAdapter("community", SourceKind.COMMUNITY),
            _FailingAdapter("nws", SourceKind.WEATHER_ALERT),
            _FailingAdapter("usgs", SourceKind.EARTHQUAKE),
        ]
        feed = _feed(HOME, adapters=adapters)
        assert feed.community_reports == []
        assert feed.alerts_and_news == []
        assert not feed.available
        assert feed.failed_sources == ["community", "nws", "usgs"]

    def test_unbounded_view(self):
        many = [make_record(f"p{i}", 40.0, -75.0, minute=i) for i in range(9)]
        adapters = [_StubAdapter("community", SourceKind.COMMUNITY, many)]
        assert len(_feed(HOME, bounded=True, adapters=adapters).community_reports) == 5
        assert len(_feed(HOME, bounded=False, adapters=adapters).community_reports) == 9

    def test_to_dict(self):
        d = _feed(HOME).to_dict()
        assert d["available"] is True
        assert d["origin"]["radius_miles"] == 10
        assert d["community_reports"][0]["distance_display"] == "3.5 miles away"


class TestDefaults:

    def test_build_default_adapters(self):
        async def loader():
            return []

        adapters = build_default_adapters(loader)
        assert [type(a) for a in adapters] == [
            CommunityAdapter, WeatherAlertAdapter, EarthquakeAdapter,
        ]
        assert [a.name for a in adapters] == ["community", "nws", "usgs"]

    def test_compute_distance_exported(self):
        assert compute_distance(40.0, -75.0, 40.05, -75.0) == pytest.approx(3.4546, abs=1e-3)
