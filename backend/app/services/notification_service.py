"""
Notification dispatcher

One coroutine per business event. Every dispatch runs inside a failure
boundary: building or sending a message may fail, the caller never sees it.
Failures are logged and counted, not retried.
"""

from collections.abc import Callable, Sequence
from datetime import datetime

from app.clients.email_client import EmailClient, email_client
from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import notifications_total
from app.models import Cart, Order, Product, User

logger = get_logger(__name__)

Message = tuple[str, str, str]  # to, subject, body


def format_amount(amount: float) -> str:
    return f"{settings.CURRENCY} {amount:,.2f}"


def _item_lines(order: Order) -> str:
    lines = []
    for item in order.items:
        variant = ""
        if item.color != "default" or item.size != "default":
            variant = f" ({item.color}/{item.size})"
        lines.append(
            f"- {item.product_name}{variant} x{item.quantity}: {format_amount(item.price * item.quantity)}"
        )
    return "\n".join(lines)


def _totals(order: Order) -> str:
    shipping = "Free" if order.shipping_cost == 0 or order.is_pickup else format_amount(order.shipping_cost)
    return (
        f"Subtotal: {format_amount(order.product_amount)}\n"
        f"Shipping: {shipping}\n"
        f"Total: {format_amount(order.total_amount)}"
    )


def _delivery_block(order: Order) -> str:
    if order.is_pickup:
        return (
            f"Pickup at: {order.shipping.get('store_address', '')}\n"
            f"Hours: {order.shipping.get('working_hours', '')}\n"
            f"{order.shipping.get('pickup_instructions', '')}"
        )
    address = order.shipping_address or {}
    parts = [address.get("street"), address.get("city"), address.get("state"), address.get("country")]
    return (
        f"Deliver to: {', '.join(part for part in parts if part)}\n"
        f"Method: {order.shipping.get('method', '')} "
        f"({order.shipping.get('estimated_delivery_time', '')})"
    )


class NotificationService:
    def __init__(self, client: EmailClient | None = None):
        self.client = client or email_client

    async def _dispatch(self, event: str, build: Callable[[], Message]) -> bool:
        try:
            to, subject, body = build()
            await self.client.send(to, subject, body)
        except Exception as e:
            notifications_total.labels(event=event, status="failed").inc()
            logger.error(
                "notification_failed",
                notification=event,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            return False

        notifications_total.labels(event=event, status="sent").inc()
        logger.info("notification_sent", notification=event, to=to)
        return True

    async def order_confirmed(self, order: Order, user: User) -> bool:
        def build() -> Message:
            body = (
                f"Hi {user.name},\n\n"
                f"Thank you for your order {order.order_number}. Your payment was received.\n\n"
                f"{_item_lines(order)}\n\n{_totals(order)}\n\n{_delivery_block(order)}\n"
            )
            return user.email, f"Order Confirmation - {order.order_number}", body

        return await self._dispatch("order_confirmed", build)

    async def admin_new_order(self, order: Order, user: User) -> bool:
        def build() -> Message:
            body = (
                f"New paid order {order.order_number}\n"
                f"Customer: {user.name} <{user.email}> {user.phone or ''}\n\n"
                f"{_item_lines(order)}\n\n{_totals(order)}\n\n{_delivery_block(order)}\n"
                f"Note: {order.note or '-'}\n"
            )
            return settings.ADMIN_EMAIL, f"New Order Received - {order.order_number}", body

        return await self._dispatch("admin_new_order", build)

    async def payment_failed(self, order: Order, user: User, gateway_response: str | None) -> bool:
        def build() -> Message:
            body = (
                f"Payment failed for order {order.order_number}\n"
                f"Customer: {user.name} <{user.email}>\n"
                f"Amount: {format_amount(order.total_amount)}\n"
                f"Reference: {order.payment_reference or '-'}\n"
                f"Gateway response: {gateway_response or 'unknown'}\n"
            )
            return settings.ADMIN_EMAIL, f"Payment Failed - {order.order_number}", body

        return await self._dispatch("payment_failed", build)

    async def order_status_changed(self, order: Order, user: User, previous_status: str) -> bool:
        def build() -> Message:
            body = (
                f"Hi {user.name},\n\n"
                f"Your order {order.order_number} is now {order.status} "
                f"(was {previous_status}).\n"
            )
            return user.email, f"Order Update - {order.order_number}", body

        return await self._dispatch("order_status_changed", build)

    async def order_shipped(self, order: Order, user: User) -> bool:
        def build() -> Message:
            tracking = order.tracking_info or {}
            body = (
                f"Hi {user.name},\n\n"
                f"Your order {order.order_number} has been shipped.\n"
                f"Courier: {tracking.get('courier') or order.shipping.get('carrier') or '-'}\n"
                f"Tracking number: {tracking.get('tracking_number') or '-'}\n"
            )
            if tracking.get("tracking_url"):
                body += f"Track it here: {tracking['tracking_url']}\n"
            if tracking.get("estimated_delivery"):
                body += f"Estimated delivery: {tracking['estimated_delivery']}\n"
            return user.email, f"Your Order Has Shipped - {order.order_number}", body

        return await self._dispatch("order_shipped", build)

    async def order_delivered(self, order: Order, user: User) -> bool:
        def build() -> Message:
            body = (
                f"Hi {user.name},\n\n"
                f"Your order {order.order_number} has been delivered. Enjoy!\n"
            )
            return user.email, f"Order Delivered - {order.order_number}", body

        return await self._dispatch("order_delivered", build)

    async def low_stock(self, products: Sequence[Product]) -> bool:
        def build() -> Message:
            lines = "\n".join(f"- {p.name} (SKU {p.sku}): {p.stock} left" for p in products)
            body = f"The following products are running low on stock:\n\n{lines}\n"
            return settings.ADMIN_EMAIL, f"Low Stock Alert - {len(products)} product(s)", body

        return await self._dispatch("low_stock", build)

    async def order_summary(
        self, period: str, orders: Sequence[Order], since: datetime
    ) -> bool:
        def build() -> Message:
            revenue = sum(order.total_amount for order in orders)
            paid = [o for o in orders if o.payment_status == "completed"]
            body = (
                f"{period.capitalize()} order summary since {since:%Y-%m-%d %H:%M} UTC\n\n"
                f"Orders placed: {len(orders)}\n"
                f"Orders paid: {len(paid)}\n"
                f"Revenue (paid): {format_amount(sum(o.total_amount for o in paid))}\n"
                f"Gross value (all): {format_amount(revenue)}\n"
            )
            return settings.ADMIN_EMAIL, f"{period.capitalize()} Order Summary", body

        return await self._dispatch(f"{period}_summary", build)

    async def abandoned_cart(self, cart: Cart, user: User) -> bool:
        def build() -> Message:
            lines = "\n".join(
                f"- {item.product_name} x{item.quantity}: {format_amount(item.price * item.quantity)}"
                for item in cart.items
            )
            body = (
                f"Hi {user.name},\n\n"
                f"You left some items in your cart:\n\n{lines}\n\n"
                f"Complete your purchase: {settings.FRONTEND_URL}/cart\n"
            )
            return user.email, "You left something in your cart", body

        return await self._dispatch("abandoned_cart", build)


notification_service = NotificationService()
