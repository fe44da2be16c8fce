"""
test_api_feed.py — HTTP-level tests for the feed API.

The database session, the caller's profile and the post store are
replaced with in-memory stubs; NWS and USGS are served by an
httpx.MockTransport, so the real adapters run end to end.

Run with:
    pytest tests/test_api_feed.py -v
"""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.api import deps
from backend.app.api.v1 import feed as feed_routes
from backend.app.core import health
from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.main import app
from backend.app.spatial.geo_math import Coordinate
from backend.app.spatial.location_resolver import UserLocationProfile


POSTS = [
    {
        "id": "p-near",
        "title": "Water over the road on Main St",
        "description": "",
        "type": "flood",
        "location": {"type": "Point", "coordinates": [-75.0, 40.05]},
        "author": "jdoe",
        "created_at": "2024-05-01T12:00:00Z",
    },
    {
        "id": "p-far",
        "title": "Brush fire near the quarry",
        "description": "",
        "type": "fire",
        "location": {"type": "Point", "coordinates": [-75.0, 40.5]},
        "author": "asmith",
        "created_at": "2024-05-01T13:00:00Z",
    },
]

NWS_PAYLOAD = {
    "type": "FeatureCollection",
    "features": [{
        "id": "https://api.weather.gov/alerts/nws-1",
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [[
            [-75.1, 39.9], [-74.9, 39.9], [-74.9, 40.1], [-75.1, 40.1],
        ]]},
        "properties": {
            "id": "nws-1",
            "@id": "https://api.weather.gov/alerts/nws-1",
            "event": "Flood Warning",
            "headline": "Flood Warning issued May 1 by NWS Mount Holly NJ",
            "severity": "Severe",
            "sent": "2024-05-01T11:00:00Z",
            "areaDesc": "Bucks, PA",
        },
    }],
}

USGS_PAYLOAD = {
    "type": "FeatureCollection",
    "features": [{
        "id": "us1",
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [-75.02, 40.01, 5.0]},
        "properties": {"mag": 3.4, "place": "2 km E of Town", "time": 1714564800000,
                       "url": "https://earthquake.usgs.gov/earthquakes/eventpage/us1",
                       "title": "M 3.4 - 2 km E of Town"},
    }],
}

HOME = UserLocationProfile(Coordinate(40.0, -75.0), 10)


def _feed_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "api.weather.gov":
        return httpx.Response(200, json=NWS_PAYLOAD)
    return httpx.Response(200, json=USGS_PAYLOAD)


@pytest.fixture
def stub_backends(monkeypatch):
    """Wire the app to in-memory posts/profiles and a mock HTTP transport."""
    state = {"handler": _feed_handler, "posts": list(POSTS), "post_error": None,
             "profile_error": None}

    async def fake_db():
        yield None

    async def fake_http_client():
        transport = httpx.MockTransport(lambda request: state["handler"](request))
        async with httpx.AsyncClient(transport=transport) as client:
            yield client

    async def fake_load_all_posts(db):
        if state["post_error"]:
            raise state["post_error"]
        return state["posts"]

    async def fake_load_profile(db, user_id):
        if state["profile_error"]:
            raise state["profile_error"]
        return HOME if user_id == "u-home" else None

    monkeypatch.setattr(feed_routes, "load_all_posts", fake_load_all_posts)
    monkeypatch.setattr(feed_routes, "load_profile", fake_load_profile)
    app.dependency_overrides[get_db] = fake_db
    app.dependency_overrides[deps.get_http_client] = fake_http_client
    yield state
    app.dependency_overrides.clear()


@pytest.fixture
def client(stub_backends):
    with TestClient(app) as c:
        yield c


AS_HOME_USER = {"X-User-Id": "u-home", "X-User-Role": "user"}


async def _db_up():
    return health.ComponentHealth(name="postgresql", message="Connection OK")


class TestFeedEndpoint:

    def test_dashboard_for_profile(self, client):
        r = client.get("/api/v1/feed", headers=AS_HOME_USER)
        assert r.status_code == 200
        body = r.json()

        assert body["view"] == "dashboard"
        assert body["origin"]["coordinate"] == {"latitude": 40.0, "longitude": -75.0}
        assert body["origin"]["radius_miles"] == 10
        assert body["origin"]["source"] == "profile"

        assert [i["id"] for i in body["community_reports"]] == ["p-near"]
        near = body["community_reports"][0]
        assert near["distance_miles"] == pytest.approx(3.45, abs=0.01)
        assert near["distance_display"] == "3.5 miles away"

        alert_ids = [i["id"] for i in body["alerts_and_news"]]
        assert alert_ids == ["usgs:us1", "nws-1"]  # 12:00 quake, 11:00 alert
        assert body["failed_sources"] == []

    def test_anonymous_gets_everything(self, client):
        body = client.get("/api/v1/feed?view=list").json()
        assert body["origin"]["coordinate"] is None
        assert [i["id"] for i in body["community_reports"]] == ["p-far", "p-near"]
        assert all(i["distance_miles"] is None for i in body["community_reports"])

    def test_query_override(self, client):
        r = client.get("/api/v1/feed?lat=40.5&lng=-75.0&radius=5", headers=AS_HOME_USER)
        body = r.json()
        assert body["origin"]["source"] == "query-override"
        assert body["origin"]["radius_miles"] == 5
        assert [i["id"] for i in body["community_reports"]] == ["p-far"]
        assert body["alerts_and_news"] == []

    def test_malformed_override_ignored(self, client):
        r = client.get("/api/v1/feed?lat=abc&lng=-75.0&radius=9999", headers=AS_HOME_USER)
        assert r.status_code == 200
        body = r.json()
        assert body["origin"]["source"] == "profile"
        assert body["origin"]["radius_miles"] == 10

    def test_dashboard_truncates_list_does_not(self, client, stub_backends):
        stub_backends["posts"] = [
            {**POSTS[0], "id": f"p{i}", "created_at": f"2024-05-01T12:{i:02d}:00Z"}
            for i in range(8)
        ]
        dashboard = client.get("/api/v1/feed", headers=AS_HOME_USER).json()
        full = client.get("/api/v1/feed?view=map", headers=AS_HOME_USER).json()
        assert [i["id"] for i in dashboard["community_reports"]] == ["p7", "p6", "p5", "p4", "p3"]
        assert len(full["community_reports"]) == 8

    def test_partial_failure_still_served(self, client, stub_backends):
        def handler(request):
            if request.url.host == "api.weather.gov":
                return httpx.Response(503)
            return httpx.Response(200, json=USGS_PAYLOAD)

        stub_backends["handler"] = handler
        r = client.get("/api/v1/feed", headers=AS_HOME_USER)
        assert r.status_code == 200
        body = r.json()
        assert body["failed_sources"] == ["nws"]
        assert [i["id"] for i in body["alerts_and_news"]] == ["usgs:us1"]

    def test_profile_store_down_serves_unfiltered_feed(self, client, stub_backends):
        stub_backends["profile_error"] = ConnectionRefusedError("connection refused")
        r = client.get("/api/v1/feed?view=list", headers=AS_HOME_USER)
        assert r.status_code == 200
        body = r.json()
        assert body["origin"]["coordinate"] is None
        assert body["origin"]["radius_miles"] == settings.DEFAULT_RADIUS_MILES
        assert [i["id"] for i in body["alerts_and_news"]] == ["usgs:us1", "nws-1"]
        assert [i["id"] for i in body["community_reports"]] == ["p-far", "p-near"]
        assert body["failed_sources"] == []

    def test_profile_store_down_keeps_query_override(self, client, stub_backends):
        stub_backends["profile_error"] = ConnectionRefusedError("connection refused")
        r = client.get("/api/v1/feed?lat=40.5&lng=-75.0&radius=5", headers=AS_HOME_USER)
        assert r.status_code == 200
        body = r.json()
        assert body["origin"]["source"] == "query-override"
        assert [i["id"] for i in body["community_reports"]] == ["p-far"]

    def test_all_sources_failing_is_503(self, client, stub_backends):
        stub_backends["handler"] = lambda request: httpx.Response(500)
        stub_backends["post_error"] = ConnectionError("database is down")
        r = client.get("/api/v1/feed", headers=AS_HOME_USER)
        assert r.status_code == 503
        error = r.json()["error"]
        assert error["code"] == "FEED_UNAVAILABLE"
        assert error["details"]["failed_sources"] == ["community", "nws", "usgs"]
        assert r.headers["Retry-After"] == "30"

    def test_unknown_view_rejected(self, client):
        r = client.get("/api/v1/feed?view=calendar")
        assert r.status_code == 422
        error = r.json()["error"]
        assert error["code"] == "INVALID_QUERY"
        assert error["details"]["problems"][0]["field"] == "view"

    def test_request_id_header(self, client):
        r = client.get("/api/v1/feed", headers={"X-Request-ID": "abc123"})
        assert r.headers["X-Request-ID"] == "abc123"
        assert "X-Process-Time" in r.headers


class TestOriginEndpoint:

    def test_profile_origin(self, client):
        body = client.get("/api/v1/feed/origin", headers=AS_HOME_USER).json()
        assert body["radius_miles"] == 10
        assert body["source"] == "profile"

    def test_unknown_user_falls_back_to_default(self, client):
        body = client.get("/api/v1/feed/origin", headers={"X-User-Id": "nobody"}).json()
        assert body["coordinate"] is None
        assert body["radius_miles"] == settings.DEFAULT_RADIUS_MILES


class TestDistanceEndpoint:

    def test_distance(self, client):
        r = client.get("/api/v1/feed/distance?lat1=40&lon1=-75&lat2=40.05&lon2=-75")
        assert r.status_code == 200
        body = r.json()
        assert body["distance_miles"] == pytest.approx(3.4546, abs=1e-3)
        assert body["distance_display"] == "3.5 miles away"
        assert body["from"] == {"latitude": 40.0, "longitude": -75.0}
        assert body["to"] == {"latitude": 40.05, "longitude": -75.0}

    def test_out_of_range(self, client):
        r = client.get("/api/v1/feed/distance?lat1=95&lon1=0&lat2=0&lon2=0")
        assert r.status_code == 422
        assert r.json()["error"]["code"] == "INVALID_COORDINATE"

    def test_missing_parameter(self, client):
        r = client.get("/api/v1/feed/distance?lat1=40&lon1=-75")
        assert r.status_code == 422
        fields = {p["field"] for p in r.json()["error"]["details"]["problems"]}
        assert fields == {"lat2", "lon2"}


class TestMiscEndpoints:

    def test_radius_options(self, client):
        body = client.get("/api/v1/feed/radius-options").json()
        assert body["options"] == [5, 10, 25, 50, 100, 200]
        assert body["default"] == 50
        assert (body["minimum"], body["maximum"]) == (1, 200)

    def test_root(self, client):
        body = client.get("/").json()
        assert "radius-filter" in body["modules"]

    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_health_reports_components(self, client, monkeypatch):
        monkeypatch.setattr(health, "check_database", _db_up)
        client.get("/api/v1/feed", headers=AS_HOME_USER)
        body = client.get("/health").json()
        components = {c["name"]: c for c in body["components"]}
        assert set(components) == {"postgresql", "redis", "feed_sources"}
        assert set(components["feed_sources"]["details"]) >= {"community", "nws", "usgs"}
        # feed cache is disabled for the test-suite
        assert components["redis"]["status"] == "degraded"
        assert body["status"] == "degraded"

    def test_ready_while_degraded(self, client, monkeypatch):
        monkeypatch.setattr(health, "check_database", _db_up)
        assert client.get("/health/ready").status_code == 200

    def test_not_ready_without_database(self, client, monkeypatch):
        async def db_down():
            return health.ComponentHealth(
                name="postgresql", status=health.HealthStatus.UNHEALTHY, message="refused",
            )

        monkeypatch.setattr(health, "check_database", db_down)
        r = client.get("/health/ready")
        assert r.status_code == 503
        assert r.json()["status"] == "unhealthy"
