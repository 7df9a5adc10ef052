"""Structured logging middleware."""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response with timing information."""
        start_time = time.perf_counter()

        # Get request ID from state (set by RequestIDMiddleware)
        request_id = getattr(request.state, "request_id", "unknown")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        # Report filters arrive as query params; keep them on the start line
        logger.info("request_started", query=str(request.query_params) or None)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=_elapsed_ms(start_time),
            )
            raise

        duration_ms = _elapsed_ms(start_time)
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request_completed",
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Process-Time"] = str(duration_ms)
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)
