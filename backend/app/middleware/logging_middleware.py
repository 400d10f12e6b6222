"""
HTTP access logging

One structured ``http_request_completed`` event per request, using ECS field
names. Runs inside RequestContextMiddleware so the request id is already
bound when the line is written.
"""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

logger = structlog.get_logger(__name__)

SLOW_REQUEST_MS = 1000

# Probe and scrape traffic, logged at debug
QUIET_PATHS = ("/metrics", "/api/v1/health/live")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Structured HTTP access log.

    Levels:
        5xx               error (with stack trace when an exception escaped)
        slow 2xx/3xx      warning (``http_request_slow``)
        everything else   info
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        start_time = time.time()

        method = request.method
        path = request.url.path
        query_params = str(request.url.query) if request.url.query else None
        client_ip = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")

        logger.debug(
            "http_request_received",
            **{"http.request.method": method},
            **{"url.path": path},
            **{"client.ip": client_ip},
        )

        response = None
        exception_raised = None

        try:
            response = await call_next(request)
        except Exception as e:
            exception_raised = e
            response = Response(
                content="Internal Server Error",
                status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            )

        duration_ms = (time.time() - start_time) * 1000
        status_code = response.status_code

        log_data = {
            "http.request.method": method,
            "url.path": path,
            "url.query": query_params,
            "http.response.status_code": status_code,
            "event.duration": round(duration_ms * 1_000_000, 0),  # ECS uses nanoseconds
            "duration_ms": round(duration_ms, 2),
            "client.ip": client_ip,
            "user_agent.original": user_agent,
        }

        if exception_raised:
            log_data["error_type"] = type(exception_raised).__name__
            log_data["error_message"] = str(exception_raised)

        if status_code >= 500:
            logger.error("http_request_completed", **log_data, exc_info=exception_raised)
        elif status_code < 400 and duration_ms > SLOW_REQUEST_MS:
            logger.warning("http_request_slow", **log_data)
        elif path in QUIET_PATHS:
            logger.debug("http_request_completed", **log_data)
        else:
            logger.info("http_request_completed", **log_data)

        # Let FastAPI's exception handlers produce the JSON error body
        if exception_raised:
            raise exception_raised

        return response
