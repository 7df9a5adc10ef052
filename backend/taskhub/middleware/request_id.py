"""Request ID middleware for request tracing."""

import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Ensure every request carries an ID that is echoed back to the caller."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        # Oversized client IDs are replaced rather than trusted into log lines
        if not incoming or len(incoming) > MAX_REQUEST_ID_LENGTH:
            incoming = str(uuid.uuid4())

        request.state.request_id = incoming
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = incoming
        return response
