"""
aggregator.py — Merge filtered records into the two feed partitions.

    Step 1 — partition
        community records        → alerts_and_news if is_alert_like(),
                                   else community_reports
        weather-alert/earthquake → alerts_and_news

    Step 2 — order
        newest first by occurred_at. Python's sort is stable, so ties keep
        fetch order (sources visited community → weather → earthquake,
        records in the order each source returned them).

    Step 3 — truncate
        dashboard preview keeps the first `preview_size` of each partition;
        list and map views keep everything.

Pure: same input, same output, no I/O.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from backend.app.core.config import settings
from backend.app.feeds.models import SOURCE_ORDER, Feed, NormalizedRecord, SourceKind
from backend.app.spatial.radius_filter import is_alert_like


def _newest_first(records: List[NormalizedRecord]) -> List[NormalizedRecord]:
    return sorted(records, key=lambda r: r.occurred_at, reverse=True)


def aggregate(
    per_source: Mapping[SourceKind, Sequence[NormalizedRecord]],
    bounded_preview: bool,
    preview_size: Optional[int] = None,
) -> Feed:
    """
    Partition, order and optionally truncate filtered records.

    Parameters
    ----------
    per_source : mapping SourceKind → records
        Output of the radius filter for each source.
    bounded_preview : bool
        True for the dashboard (at most `preview_size` per partition).
    preview_size : int | None
        Defaults to settings.DASHBOARD_PREVIEW_SIZE (5).

    Returns
    -------
    Feed
    """
    community_reports: List[NormalizedRecord] = []
    alerts_and_news: List[NormalizedRecord] = []

    kinds = SOURCE_ORDER + [k for k in per_source if k not in SOURCE_ORDER]
    for kind in kinds:
        for record in per_source.get(kind, ()):
            if record.source_kind is SourceKind.COMMUNITY and not is_alert_like(record):
                community_reports.append(record)
            else:
                alerts_and_news.append(record)

    community_reports = _newest_first(community_reports)
    alerts_and_news = _newest_first(alerts_and_news)

    if bounded_preview:
        limit = settings.DASHBOARD_PREVIEW_SIZE if preview_size is None else preview_size
        community_reports = community_reports[:limit]
        alerts_and_news = alerts_and_news[:limit]

    return Feed(community_reports=community_reports, alerts_and_news=alerts_and_news)
