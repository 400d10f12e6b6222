"""
Paystack API client

Thin wrapper over the two transaction endpoints the checkout uses plus the
webhook signature check. Responses are returned as Paystack's own envelope
(``{"status": bool, "message": str, "data": {...}}``) so callers can decide
what a falsy ``status`` means for them.
"""

import hashlib
import hmac
import time
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.core.errors import PaymentGatewayError
from app.core.logging import get_logger
from app.core.metrics import (
    payment_gateway_requests_total,
    payment_gateway_duration_seconds,
)

logger = get_logger(__name__)


class PaystackClient:
    """Async client for the Paystack transaction API"""

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = base_url or settings.PAYSTACK_BASE_URL
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.secret_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any],
        currency: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a hosted-checkout transaction.

        Args:
            amount: Integer amount in the currency's minor unit (kobo for NGN)

        Raises:
            PaymentGatewayError: On transport failure or a non-JSON response.
            Not retried; a retry could create a second transaction.
        """
        payload = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
            "currency": currency or settings.CURRENCY,
        }
        return await self._send("initialize", "POST", "/transaction/initialize", json=payload)

    async def verify_transaction(self, reference: str) -> dict[str, Any]:
        """
        Fetch the current state of a transaction. Read-only, so transport
        errors are retried.
        """
        return await self._send(
            "verify", "GET", f"/transaction/verify/{reference}", retry_transport=True
        )

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> bool:
        """HMAC-SHA512 of the raw request body, keyed with the secret key."""
        if not signature:
            return False
        expected = hmac.new(self.secret_key.encode(), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._get_client().request(method, path, **kwargs)

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        retry_transport: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any]:
        start_time = time.time()
        try:
            if retry_transport:
                response = await self._request_with_retry(method, path, **kwargs)
            else:
                response = await self._get_client().request(method, path, **kwargs)
        except httpx.HTTPError as e:
            payment_gateway_requests_total.labels(operation=operation, status="error").inc()
            logger.error(
                "paystack_request_failed",
                operation=operation,
                path=path,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise PaymentGatewayError(
                f"Payment provider unavailable: {type(e).__name__}", operation=operation
            ) from e
        finally:
            payment_gateway_duration_seconds.labels(operation=operation).observe(
                time.time() - start_time
            )

        try:
            body = response.json()
        except ValueError as e:
            payment_gateway_requests_total.labels(operation=operation, status="error").inc()
            logger.error(
                "paystack_invalid_response",
                operation=operation,
                status_code=response.status_code,
            )
            raise PaymentGatewayError(
                "Payment provider returned an invalid response", operation=operation
            ) from e

        outcome = "success" if body.get("status") else "rejected"
        payment_gateway_requests_total.labels(operation=operation, status=outcome).inc()
        logger.info(
            "paystack_request_completed",
            operation=operation,
            status_code=response.status_code,
            gateway_status=bool(body.get("status")),
            gateway_message=body.get("message"),
        )
        return body


paystack_client = PaystackClient()
