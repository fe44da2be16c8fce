"""
Request middleware — correlation IDs, timing and one access log line per
feed request.

Every request gets:
    • X-Request-ID   (echoed from the caller or generated)
    • X-Process-Time (wall time spent in the app)

and, while it is being served, a log context carrying the request id, the
forwarded caller (`X-User-Id`) and the requested feed view, so adapter and
filter logs can be tied back to the request that caused them.

Requests slower than SLOW_REQUEST_MS are logged at WARNING: the feed waits
for its slowest upstream, so this is where a hanging NWS/USGS call shows up.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.config import settings
from backend.app.core.logging_config import reset_request_context, set_request_context

logger = logging.getLogger(__name__)

_UNLOGGED_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health")
_OVERRIDE_PARAMS = ("lat", "lng", "radius")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind per-request log context and emit an access log line."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        path = request.url.path
        params = request.query_params

        token = set_request_context(
            request_id=request_id,
            method=request.method,
            endpoint=path,
            user_id=request.headers.get("X-User-Id"),
            view=params.get("view"),
            override=any(p in params for p in _OVERRIDE_PARAMS) or None,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

            if not path.startswith(_UNLOGGED_PREFIXES):
                self._log_access(request, response.status_code, duration_ms)
            return response
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "%s %s → unhandled error (%.1fms)", request.method, path, duration_ms,
                extra={"duration_ms": duration_ms, "status_code": 500},
            )
            raise
        finally:
            reset_request_context(token)

    @staticmethod
    def _log_access(request: Request, status_code: int, duration_ms: float) -> None:
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400 or duration_ms >= settings.SLOW_REQUEST_MS:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s → %d (%.1fms)",
            request.method, request.url.path, status_code, duration_ms,
            extra={"duration_ms": duration_ms, "status_code": status_code},
        )
