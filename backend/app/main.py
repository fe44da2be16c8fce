"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 8000

Or from the project root:
    python -m uvicorn backend.app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api.health import router as health_router
from backend.app.api.v1.feed import router as feed_router
from backend.app.core.cache import close_redis
from backend.app.core.config import settings
from backend.app.core.database import close_db, init_db
from backend.app.core.errors import register_error_handlers
from backend.app.core.logging_config import get_logger, setup_logging
from backend.app.core.middleware import RequestLoggingMiddleware

setup_logging()
logger = get_logger(__name__)

SOURCES = ["community", "nws", "usgs"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s v%s [%s] — sources: %s",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT, ", ".join(SOURCES),
    )
    if settings.DATABASE_CREATE_TABLES:
        await init_db()
    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.APP_NAME)
        await close_redis()
        await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Community disaster feed.\n\n"
            "Merges community reports, National Weather Service alerts and "
            "USGS earthquakes into one feed, filtered to the caller's alert "
            "radius and sorted newest first."
        ),
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(feed_router)
    app.include_router(health_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "modules": [
                "geo-math",
                "location-resolver",
                "source-adapters",
                "radius-filter",
                "feed-aggregator",
            ],
            "sources": SOURCES,
            "docs": "/docs",
        }

    return app


app = create_app()
