"""
feeds — Disaster signal ingestion and aggregation.

Sub-modules:
    models          — record / result / feed data structures
    base            — SourceAdapter: failure-tolerant fetch contract
    community       — user-submitted posts from the post store
    weather_alerts  — National Weather Service active alerts
    earthquakes     — USGS earthquake summary feed
    aggregator      — partition, order and truncate filtered records
    feed_service    — get_feed(): resolve → fetch → filter → aggregate
"""
