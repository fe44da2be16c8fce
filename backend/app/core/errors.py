"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

Error taxonomy of the feed pipeline:

    InvalidCoordinate       — malformed lat/lon handed to the distance maths.
                              Fatal to that one computation only; the record
                              it belongs to is dropped.
    InvalidRadiusOverride   — a query radius that does not parse or is out
                              of range. Swallowed by the location resolver,
                              which falls back to the profile/default radius.
    SourceFetchFailure      — one external source failed (network, HTTP
                              status, bad payload). Recovered inside the
                              adapter as an empty result set.
    FeedUnavailableError    — every source failed at once. Raised only by
                              the HTTP layer so the user sees a 503.

Usage:
    from backend.app.core.errors import InvalidCoordinate, register_error_handlers

    raise InvalidCoordinate(latitude=91.0, longitude=0.0)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class DisasterFeedError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(DisasterFeedError):
    """Input validation failed (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class InvalidCoordinate(ValidationError):
    """Latitude/longitude missing, NaN, infinite or out of range."""

    def __init__(self, latitude: Any = None, longitude: Any = None, reason: str = ""):
        message = f"Invalid coordinate ({latitude}, {longitude})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, latitude=str(latitude), longitude=str(longitude))
        self.error_code = "INVALID_COORDINATE"
        self.latitude = latitude
        self.longitude = longitude


class InvalidRadiusOverride(ValidationError):
    """A radius override that is not an integer in the allowed range."""

    def __init__(self, value: Any, reason: str = ""):
        super().__init__(
            f"Invalid radius override {value!r}" + (f": {reason}" if reason else ""),
            field="radius",
            value=str(value),
        )
        self.error_code = "INVALID_RADIUS"
        self.value = value


class ExternalServiceError(DisasterFeedError):
    """External API call failed (502)."""

    def __init__(self, service: str, message: str = "", **details: Any):
        super().__init__(
            message=f"External service '{service}' failed: {message}",
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            details={"service": service, **details},
        )


class SourceFetchFailure(ExternalServiceError):
    """A feed source could not be fetched or parsed."""

    def __init__(self, source: str, message: str = "", **details: Any):
        super().__init__(source, message, **details)
        self.error_code = "SOURCE_FETCH_FAILURE"
        self.source = source


class FeedUnavailableError(DisasterFeedError):
    """Every feed source failed simultaneously (503)."""

    def __init__(self, failed_sources: List[str]):
        super().__init__(
            message="Feed temporarily unavailable",
            status_code=503,
            error_code="FEED_UNAVAILABLE",
            details={"failed_sources": list(failed_sources)},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

# Seconds a client should wait before retrying an unavailable feed
FEED_RETRY_AFTER_SECONDS = 30


def error_body(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> Dict[str, Any]:
    """The `{"error": {...}}` envelope every failed request returns."""
    error: Dict[str, Any] = {
        "code": error_code,
        "message": message,
        "status": status_code,
    }
    if details:
        error["details"] = details
    if request is not None and not settings.is_production:
        error["path"] = request.url.path
        error["method"] = request.method
    return {"error": error}


def _json_error(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, error_code, message, details, request),
        headers=headers,
    )


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(DisasterFeedError)
    async def handle_feed_error(request: Request, exc: DisasterFeedError):
        level = logging.WARNING if exc.status_code < 500 else logging.ERROR
        logger.log(level, "%s: %s | details=%s", exc.error_code, exc.message, exc.details)

        headers = None
        if isinstance(exc, FeedUnavailableError):
            headers = {"Retry-After": str(FEED_RETRY_AFTER_SECONDS)}
        return _json_error(
            request, exc.status_code, exc.error_code, exc.message, exc.details, headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        problems = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "query"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        logger.info("Rejected query for %s: %s", request.url.path, problems)
        return _json_error(
            request, 422, "INVALID_QUERY", "Query parameters failed validation",
            {"problems": problems},
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        # RequestLoggingMiddleware has already logged the traceback
        message = f"{type(exc).__name__}: {exc}" if settings.DEBUG else "Internal server error"
        return _json_error(request, 500, "INTERNAL_ERROR", message)
