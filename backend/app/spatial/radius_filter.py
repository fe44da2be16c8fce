"""
radius_filter.py — Keep only the records within the caller's alert radius.

Filtering rules
===============
    origin.coordinate is None   → every record is returned unchanged, with
                                  no distance (global "no location" view)
    record.coordinate is None   → excluded (cannot be placed)
    distance ≤ radius_miles     → kept, annotated with distance_miles
    distance > radius_miles     → excluded

The boundary is inclusive. Input order is preserved; ordering by time is
the aggregator's job.

A record whose distance cannot be computed (InvalidCoordinate) is dropped
on its own and logged; the rest of the batch is still filtered.

Alert-like heuristic
====================
Some community posts are re-posted official alerts. `is_alert_like` flags
them so the aggregator routes them to "alerts & news" rather than counting
them as user reports. It is string matching and therefore approximate: a
genuine report that mentions "NWS" in its source label is reclassified.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from backend.app.core.errors import InvalidCoordinate
from backend.app.feeds.models import (
    NWS_SOURCE_LABEL,
    USGS_SOURCE_LABEL,
    NormalizedRecord,
    SourceKind,
)
from backend.app.spatial.geo_math import distance_miles
from backend.app.spatial.location_resolver import OriginSpec

logger = logging.getLogger(__name__)

OFFICIAL_SOURCE_LABELS = frozenset({NWS_SOURCE_LABEL, USGS_SOURCE_LABEL})


def filter_records(
    records: Iterable[NormalizedRecord],
    origin: OriginSpec,
) -> List[NormalizedRecord]:
    """
    Filter records against an origin and radius.

    Parameters
    ----------
    records : iterable of NormalizedRecord
        Records from a single source (or several, order is kept).
    origin : OriginSpec
        Result of `resolve_origin` for this request.

    Returns
    -------
    list of NormalizedRecord
        Kept records. With an origin, each is a copy carrying
        `distance_miles`; without one, the inputs themselves.

    Examples
    --------
    >>> from datetime import datetime
    >>> from backend.app.spatial.geo_math import Coordinate
    >>> origin = OriginSpec(Coordinate(40.0, -75.0), 10)
    >>> near = NormalizedRecord("A", "Near", "", "flood", Coordinate(40.05, -75.0),
    ...                         datetime(2024, 5, 1), SourceKind.COMMUNITY, "Community")
    >>> far = NormalizedRecord("B", "Far", "", "flood", Coordinate(40.5, -75.0),
    ...                        datetime(2024, 5, 1), SourceKind.COMMUNITY, "Community")
    >>> [r.id for r in filter_records([near, far], origin)]
    ['A']
    """
    if origin.coordinate is None:
        return list(records)

    kept: List[NormalizedRecord] = []
    checked = 0
    for record in records:
        checked += 1
        if record.coordinate is None:
            continue
        try:
            dist = distance_miles(origin.coordinate, record.coordinate)
        except InvalidCoordinate as exc:
            logger.warning("Dropping record %s: %s", record.id, exc.message)
            continue
        if dist <= origin.radius_miles:
            kept.append(record.with_distance(dist))

    logger.debug(
        "Radius filter: %d of %d records within %d mi of (%.4f, %.4f)",
        len(kept), checked, origin.radius_miles,
        origin.coordinate.latitude, origin.coordinate.longitude,
    )
    return kept


def is_alert_like(record: NormalizedRecord) -> bool:
    """
    True if a community record is really a copy of an official alert.

    Matches when the source label is one of the official feed labels,
    contains "NWS", or the title contains both "issued" and "NWS".
    Records from the weather/earthquake feeds return False: they are
    alerts by kind, not by this heuristic.

    >>> from datetime import datetime
    >>> rec = NormalizedRecord("1", "Flood Warning issued by NWS for County X", "",
    ...                        "flood", None, datetime(2024, 5, 1),
    ...                        SourceKind.COMMUNITY, "Community")
    >>> is_alert_like(rec)
    True
    """
    if record.source_kind is not SourceKind.COMMUNITY:
        return False

    label = record.source_label or ""
    if label in OFFICIAL_SOURCE_LABELS or "NWS" in label:
        return True

    title = record.title or ""
    return "issued" in title and "NWS" in title
