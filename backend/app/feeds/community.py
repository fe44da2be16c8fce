"""
community.py — User-submitted posts as NormalizedRecords.

Posts come from the post store through an injected async loader that
returns plain dicts (see `backend.app.core.database.load_all_posts`).
The loader always returns every post: geo filtering is never pushed down
to the store, so the store and the feed can never disagree about what
"within 25 miles" means.

Post → record mapping
=====================
    id                          → id
    title / description         → title / description
    type                        → category, verbatim
    location (GeoJSON Point)    → coordinate; missing, malformed or the
                                  (0, 0) sentinel → None
    published_at or created_at  → occurred_at (news items carry the
                                  upstream publication time)
    source                      → source_label ("Community" when absent)
    link                        → external_link
    author                      → author
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from backend.app.feeds.base import SourceAdapter
from backend.app.feeds.models import (
    COMMUNITY_SOURCE_LABEL,
    NormalizedRecord,
    SourceKind,
)
from backend.app.spatial.geo_math import coordinate_from_geojson_point
from backend.app.spatial.location_resolver import OriginSpec

logger = logging.getLogger(__name__)

PostLoader = Callable[[], Awaitable[Sequence[Mapping[str, Any]]]]


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return None


def parse_post(post: Mapping[str, Any]) -> NormalizedRecord:
    """
    Map one stored post to a NormalizedRecord.

    Raises KeyError / ValueError when the post has no id or no usable
    timestamp, TypeError when it is not a mapping at all.
    """
    if not isinstance(post, Mapping):
        raise TypeError(f"post is {type(post).__name__}, not a mapping")
    occurred_at = _as_datetime(post.get("published_at")) or _as_datetime(post.get("created_at"))
    if occurred_at is None:
        raise ValueError(f"post {post.get('id')!r} has no timestamp")

    return NormalizedRecord(
        id=str(post["id"]),
        title=post.get("title") or "",
        description=post.get("description") or "",
        category=post.get("type") or "other",
        coordinate=coordinate_from_geojson_point(post.get("location")),
        occurred_at=occurred_at,
        source_kind=SourceKind.COMMUNITY,
        source_label=post.get("source") or COMMUNITY_SOURCE_LABEL,
        external_link=post.get("link"),
        author=post.get("author"),
    )


class CommunityAdapter(SourceAdapter):
    """All stored posts → NormalizedRecords."""

    name = "community"
    source_kind = SourceKind.COMMUNITY

    def __init__(self, post_loader: PostLoader):
        self.post_loader = post_loader

    async def _fetch(self, origin: OriginSpec) -> List[NormalizedRecord]:
        posts = await self.post_loader()
        records: List[NormalizedRecord] = []
        for post in posts:
            try:
                records.append(parse_post(post))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed post: %s", exc)
        return records
