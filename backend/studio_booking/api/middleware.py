"""
Request middleware for logging, timing, and request ID tracking.

An incoming X-Request-ID (set by the public booking page or the payment
gateway integration) is kept so one checkout can be followed across services.
Probe traffic (/health, /metrics) is logged at debug level only.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_request

logger = get_logger(__name__)

PROBE_PATHS = ("/health", "/metrics")


def _route_template(request: Request) -> str:
    # "/api/v1/bookings/{booking_id}" rather than the concrete id keeps label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds request context, logs the outcome and records request latency."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error("request_failed", error=str(e), duration_ms=duration_ms)
            record_request(request.method, _route_template(request), 500, duration_ms / 1000)
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.debug if request.url.path in PROBE_PATHS else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        record_request(request.method, _route_template(request), response.status_code, duration_ms / 1000)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
