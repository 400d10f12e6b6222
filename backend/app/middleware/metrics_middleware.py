"""
HTTP Metrics Middleware for FastAPI

Tracks request counts by method, endpoint and status group, request duration
and in-flight requests. Endpoints are templated so order ids and payment
references do not explode label cardinality.
"""

import time
import re
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.config import settings
from app.core.metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.uuid_pattern = re.compile(
            r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(/|$)"
        )
        self.reference_pattern = re.compile(
            rf"/(?:{re.escape(settings.PAYMENT_REFERENCE_PREFIX)}|"
            rf"{re.escape(settings.ORDER_NUMBER_PREFIX)})-[\w-]+(/|$)"
        )
        self.numeric_pattern = re.compile(r"/\d+(/|$)")

    def _template_path(self, path: str) -> str:
        """
        Examples:
            /api/v1/orders/123e4567-e89b-12d3-a456-426614174000 -> /api/v1/orders/{id}
            /api/v1/checkout/verify-payment/PAY-ORD-1700000000000-42
                -> /api/v1/checkout/verify-payment/{reference}
            /api/v1/health/ready -> /api/v1/health/ready
        """
        templated = self.uuid_pattern.sub(r"/{id}\1", path)
        templated = self.reference_pattern.sub(r"/{reference}\1", templated)
        templated = self.numeric_pattern.sub(r"/{id}\1", templated)
        return templated

    def _get_status_group(self, status_code: int) -> str:
        return f"{status_code // 100}xx"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and track metrics"""
        method = request.method
        endpoint = self._template_path(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.time() - start_time

            http_requests_total.labels(
                method=method, endpoint=endpoint, status_code=self._get_status_group(status_code)
            ).inc()

            http_request_duration_seconds.labels(
                method=method, endpoint=endpoint
            ).observe(duration)

            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        return response
