"""
Request context middleware

Binds a request id to ``structlog.contextvars`` so every log line emitted
while handling the request carries it. The id is taken from an incoming
``X-Request-ID`` header when the caller supplies one, otherwise generated,
and is echoed back on the response.
"""

import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(**{"request.id": request_id})

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            # Context must not leak into the next request on this worker
            structlog.contextvars.clear_contextvars()
