"""
Shared fixtures for the feed test-suite.

Every test runs offline: the Redis feed cache is switched off and HTTP
sources are driven through httpx.MockTransport.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from backend.app.core.config import settings
from backend.app.feeds.models import (
    COMMUNITY_SOURCE_LABEL,
    NormalizedRecord,
    SourceKind,
)
from backend.app.spatial.geo_math import Coordinate

# Philadelphia-ish origin used across the suite
ORIGIN_LAT = 40.0
ORIGIN_LON = -75.0


@pytest.fixture(autouse=True)
def _no_feed_cache(monkeypatch):
    """Keep tests away from Redis."""
    monkeypatch.setattr(settings, "FEED_CACHE_ENABLED", False)


def make_record(
    rid: str = "R1",
    lat: Optional[float] = ORIGIN_LAT,
    lon: Optional[float] = ORIGIN_LON,
    *,
    title: str = "Flooded underpass",
    kind: SourceKind = SourceKind.COMMUNITY,
    label: str = COMMUNITY_SOURCE_LABEL,
    hour: int = 12,
    minute: int = 0,
) -> NormalizedRecord:
    """Create a test record on 2024-05-01 at the given time (UTC)."""
    coordinate = Coordinate(lat, lon) if lat is not None and lon is not None else None
    return NormalizedRecord(
        id=rid,
        title=title,
        description="",
        category="flood",
        coordinate=coordinate,
        occurred_at=datetime(2024, 5, 1, hour, minute, tzinfo=timezone.utc),
        source_kind=kind,
        source_label=label,
    )
