"""
Payment reconciliation

Both the client-polled verify endpoint and the Paystack webhook end up in
``apply_success`` / ``apply_failure``. Each is a compare-and-set on
``payment_status = 'pending'`` executed as one UPDATE, so when verify and
webhook race (or Paystack redelivers), exactly one caller wins the
transition and decrements stock. Losers see ``rowcount == 0`` and do nothing.
"""

from typing import Any

import orjson
from sqlalchemy import case, update
from sqlmodel import Session, select

from app.clients.paystack_client import PaystackClient
from app.core.config import settings
from app.core.errors import (
    InvalidSignatureError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import payment_reconciliations_total, webhook_events_total
from app.core.redis import RedisClient
from app.models import Order, OrderStatus, PaymentStatus, User, get_datetime_utc
from app.services.catalog_service import CatalogService
from app.services.notification_service import NotificationService

logger = get_logger(__name__)

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"


class PaymentService:
    def __init__(
        self,
        session: Session,
        gateway: PaystackClient,
        notifier: NotificationService,
        redis: RedisClient | None = None,
    ):
        self.session = session
        self.gateway = gateway
        self.notifier = notifier
        self.redis = redis

    def get_order_by_reference(self, reference: str) -> Order:
        order = self.session.exec(
            select(Order).where(Order.payment_reference == reference)
        ).first()
        if order is None:
            raise NotFoundError(f"Order not found for payment reference {reference}")
        return order

    async def verify_payment(self, reference: str) -> Order:
        """
        Ask Paystack for the transaction state and reconcile the order.

        Raises:
            PaymentGatewayError: Paystack did not return a truthy status
            NotFoundError: No order carries this reference
        """
        response = await self.gateway.verify_transaction(reference)
        if not response.get("status"):
            raise PaymentGatewayError(
                response.get("message") or "Payment verification failed", operation="verify"
            )

        order = self.get_order_by_reference(reference)
        data = response.get("data") or {}
        if data.get("status") == "success":
            await self.apply_success(order, data, source="verify")
        else:
            await self.apply_failure(order, data, source="verify")

        self.session.refresh(order)
        return order

    async def handle_webhook(self, raw_body: bytes, signature: str | None) -> str:
        """
        Process one Paystack webhook delivery.

        Returns a short outcome label (processed, duplicate, ignored,
        unknown_order). Every outcome is acknowledged with 200.

        Raises:
            InvalidSignatureError: Signature header missing or wrong
        """
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            webhook_events_total.labels(event="unknown", result="invalid_signature").inc()
            logger.warning("webhook_signature_invalid", signature_present=bool(signature))
            raise InvalidSignatureError()

        try:
            event = orjson.loads(raw_body)
        except orjson.JSONDecodeError:
            raise ValidationError("Malformed webhook payload")
        if not isinstance(event, dict) or not isinstance(event.get("data") or {}, dict):
            raise ValidationError("Malformed webhook payload")

        event_name = event.get("event") or "unknown"
        data = event.get("data") or {}
        reference = data.get("reference")

        if event_name not in (CHARGE_SUCCESS, CHARGE_FAILED) or not reference:
            webhook_events_total.labels(event=event_name, result="ignored").inc()
            logger.info("webhook_ignored", webhook_event=event_name, reference=reference)
            return "ignored"

        marker = f"paystack_event:{event_name}:{reference}"
        if await self._already_processed(marker):
            webhook_events_total.labels(event=event_name, result="duplicate").inc()
            logger.info("webhook_duplicate", webhook_event=event_name, reference=reference)
            return "duplicate"

        order = self.session.exec(
            select(Order).where(Order.payment_reference == reference)
        ).first()
        if order is None:
            payment_reconciliations_total.labels(source="webhook", outcome="unknown_order").inc()
            webhook_events_total.labels(event=event_name, result="unknown_order").inc()
            logger.warning("webhook_order_not_found", webhook_event=event_name, reference=reference)
            return "unknown_order"

        if event_name == CHARGE_SUCCESS:
            applied = await self.apply_success(order, data, source="webhook")
        else:
            applied = await self.apply_failure(order, data, source="webhook")

        await self._mark_processed(marker)
        result = "processed" if applied else "duplicate"
        webhook_events_total.labels(event=event_name, result=result).inc()
        return result

    def _details(self, order: Order, payload: dict[str, Any], source: str) -> dict[str, Any]:
        raw_key = "verification" if source == "verify" else "webhook"
        return {
            **(order.payment_details or {}),
            "transaction_id": payload.get("id"),
            "gateway_response": payload.get("gateway_response"),
            "channel": payload.get("channel"),
            "paid_at": payload.get("paid_at"),
            raw_key: payload,
        }

    async def apply_success(self, order: Order, payload: dict[str, Any], *, source: str) -> bool:
        """
        pending -> completed, then decrement stock for every item in the same
        transaction. Returns False when another caller already reconciled.
        """
        items = list(order.items)
        now = get_datetime_utc()

        result = self.session.exec(  # type: ignore[call-overload]
            update(Order)
            .where(
                Order.id == order.id,
                Order.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=PaymentStatus.COMPLETED.value,
                status=case(
                    (Order.status == OrderStatus.PENDING.value, OrderStatus.PROCESSING.value),
                    else_=Order.status,
                ),
                payment_details=self._details(order, payload, source),
                paid_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            self._log_noop(order, source, attempted=PaymentStatus.COMPLETED.value)
            return False

        for item in items:
            CatalogService.decrement_stock(
                self.session, item.product_id, item.selection, item.quantity
            )
        self.session.commit()
        self.session.refresh(order)

        payment_reconciliations_total.labels(source=source, outcome="completed").inc()
        logger.info(
            "payment_reconciled",
            order_id=str(order.id),
            order_number=order.order_number,
            reference=order.payment_reference,
            source=source,
            transaction_id=payload.get("id"),
            items_count=len(items),
        )

        user = self.session.get(User, order.user_id)
        if user is not None:
            await self.notifier.order_confirmed(order, user)
            await self.notifier.admin_new_order(order, user)
        return True

    async def apply_failure(self, order: Order, payload: dict[str, Any], *, source: str) -> bool:
        """pending -> failed. Returns False when the order was not pending."""
        result = self.session.exec(  # type: ignore[call-overload]
            update(Order)
            .where(
                Order.id == order.id,
                Order.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=PaymentStatus.FAILED.value,
                payment_details=self._details(order, payload, source),
                updated_at=get_datetime_utc(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            self._log_noop(order, source, attempted=PaymentStatus.FAILED.value)
            return False

        self.session.commit()
        self.session.refresh(order)

        gateway_response = payload.get("gateway_response")
        payment_reconciliations_total.labels(source=source, outcome="failed").inc()
        logger.warning(
            "payment_failed",
            order_id=str(order.id),
            order_number=order.order_number,
            reference=order.payment_reference,
            source=source,
            gateway_response=gateway_response,
        )

        user = self.session.get(User, order.user_id)
        if user is not None:
            await self.notifier.payment_failed(order, user, gateway_response)
        return True

    def _log_noop(self, order: Order, source: str, *, attempted: str) -> None:
        self.session.refresh(order)
        payment_reconciliations_total.labels(source=source, outcome="duplicate").inc()
        if (
            attempted == PaymentStatus.COMPLETED.value
            and order.payment_status == PaymentStatus.FAILED.value
        ):
            # Paystack reports money taken on an order we already failed
            logger.warning(
                "payment_success_on_failed_order",
                order_id=str(order.id),
                order_number=order.order_number,
                reference=order.payment_reference,
                source=source,
            )
            return
        logger.info(
            "payment_already_reconciled",
            order_id=str(order.id),
            order_number=order.order_number,
            payment_status=order.payment_status,
            attempted=attempted,
            source=source,
        )

    async def _already_processed(self, key: str) -> bool:
        if self.redis is None:
            return False
        try:
            return await self.redis.exists(key)
        except Exception as e:
            # The order row guard still holds without Redis
            logger.warning(
                "webhook_dedupe_check_failed",
                key=key,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return False

    async def _mark_processed(self, key: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, "1", ttl=settings.PROCESSED_EVENT_TTL)
        except Exception as e:
            logger.warning(
                "webhook_dedupe_mark_failed",
                key=key,
                error_type=type(e).__name__,
                error_message=str(e),
            )
