"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON / pretty console logging
    middleware      — request correlation IDs and timing
    errors          — exception hierarchy & handlers
    health          — health check aggregation
    database        — async PostgreSQL access to posts and user profiles
    cache           — Redis cache for external feed payloads
"""
