"""
Checkout orchestration

Turns a guest item list or an authenticated user's cart into a pending
order and a hosted-checkout payment session. All catalog checks happen
before anything is written; stock is only decremented later, when the
payment is reconciled.
"""

import secrets
import time
import uuid
from collections.abc import Sequence
from typing import Any

from sqlmodel import Session, SQLModel, select

from app.clients.paystack_client import PaystackClient
from app.core.config import settings
from app.core.errors import PaymentGatewayError, StorefrontError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import checkouts_total
from app.models import (
    Cart,
    Order,
    OrderItem,
    PaymentStatus,
    User,
    VariantKey,
    get_datetime_utc,
)
from app.schemas import CheckoutLine, GuestCheckoutRequest, UserCheckoutRequest
from app.services.cart_service import CartService
from app.services.catalog_service import CatalogService, ResolvedLine
from app.services.shipping_service import ShippingQuote, ShippingService
from app.services.user_service import UserService

logger = get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


class CheckoutResult(SQLModel):
    authorization_url: str
    reference: str
    order_id: uuid.UUID
    order_number: str


def to_minor_units(amount: float) -> int:
    """Naira to kobo."""
    return int(round(amount * 100))


class CheckoutService:
    def __init__(self, session: Session, gateway: PaystackClient):
        self.session = session
        self.gateway = gateway

    async def checkout_guest(self, request: GuestCheckoutRequest) -> CheckoutResult:
        try:
            lines = self._resolve_lines(request.cart_items)
            product_amount = self._product_amount(lines)
            quote = ShippingService.resolve(
                self.session,
                zone_id=request.shipping_method,
                state=request.state,
                is_pickup=request.is_pickup,
                order_subtotal=product_amount,
            )

            address: dict[str, Any] | None = None
            if not quote.is_pickup:
                if not request.shipping_address or not request.state:
                    raise ValidationError("Shipping address and state are required for delivery")
                address = {
                    "street": request.shipping_address,
                    "city": request.city,
                    "state": request.state,
                    "zip_code": "",
                    "country": request.country,
                    "phone": request.phone,
                    "alternative_phone": request.alternative_phone or "",
                }

            name = f"{request.first_name} {request.last_name or ''}".strip()
            user = UserService.find_or_create_guest(
                self.session, email=request.email, name=name, phone=request.phone
            )
            if request.save_address and address:
                UserService.save_shipping_address(self.session, user, address)
        except StorefrontError:
            checkouts_total.labels(flow="guest", result="rejected").inc()
            self.session.rollback()
            raise

        return await self._place_order(
            flow="guest",
            user=user,
            lines=lines,
            product_amount=product_amount,
            quote=quote,
            address=address,
            note=request.note,
        )

    async def checkout_user(self, user: User, request: UserCheckoutRequest) -> CheckoutResult:
        try:
            cart = CartService.get_for_user(self.session, user.id)
            if cart is None or not cart.items:
                raise ValidationError("Your cart is empty")

            lines = self._resolve_lines(
                [
                    CheckoutLine(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        color=item.color,
                        size=item.size,
                    )
                    for item in cart.items
                ]
            )
            product_amount = self._product_amount(lines)
            state = request.shipping_address.state if request.shipping_address else None
            quote = ShippingService.resolve(
                self.session,
                zone_id=request.shipping_method,
                state=state,
                is_pickup=request.is_pickup,
                order_subtotal=product_amount,
            )

            address: dict[str, Any] | None = None
            if not quote.is_pickup:
                if request.shipping_address is None:
                    raise ValidationError("Shipping address is required for delivery")
                address = request.shipping_address.model_dump()
        except StorefrontError:
            checkouts_total.labels(flow="user", result="rejected").inc()
            self.session.rollback()
            raise

        return await self._place_order(
            flow="user",
            user=user,
            lines=lines,
            product_amount=product_amount,
            quote=quote,
            address=address,
            note=request.note,
            cart=cart,
        )

    def _resolve_lines(self, items: Sequence[CheckoutLine]) -> list[ResolvedLine]:
        if not items:
            raise ValidationError("No items to check out")

        # Repeated selections share one stock pool
        quantities: dict[tuple[uuid.UUID, VariantKey], int] = {}
        for item in items:
            key = (item.product_id, VariantKey(item.color, item.size))
            quantities[key] = quantities.get(key, 0) + item.quantity

        lines = [
            CatalogService.resolve_selection(self.session, product_id, selection, quantity)
            for (product_id, selection), quantity in quantities.items()
        ]
        for line in lines:
            CatalogService.check_stock(line)
        return lines

    @staticmethod
    def _product_amount(lines: Sequence[ResolvedLine]) -> float:
        return round(sum(line.line_total for line in lines), 2)

    def _generate_order_number(self) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = (
                f"{settings.ORDER_NUMBER_PREFIX}-{int(time.time() * 1000)}-{secrets.randbelow(1000)}"
            )
            taken = self.session.exec(
                select(Order.id).where(Order.order_number == candidate)
            ).first()
            if taken is None:
                return candidate
        # The unique index still guards the insert
        return f"{settings.ORDER_NUMBER_PREFIX}-{int(time.time() * 1000)}-{secrets.randbelow(1_000_000)}"

    async def _place_order(
        self,
        *,
        flow: str,
        user: User,
        lines: Sequence[ResolvedLine],
        product_amount: float,
        quote: ShippingQuote,
        address: dict[str, Any] | None,
        note: str | None,
        cart: Cart | None = None,
    ) -> CheckoutResult:
        shipping_cost = quote.cost
        total_amount = round(product_amount + (0 if quote.is_pickup else shipping_cost), 2)

        order = Order(
            order_number=self._generate_order_number(),
            user_id=user.id,
            product_amount=product_amount,
            shipping_cost=shipping_cost,
            total_amount=total_amount,
            currency=settings.CURRENCY,
            shipping_address=address,
            shipping=quote.snapshot(),
            note=note,
            product_names=", ".join(line.product.name for line in lines),
            items=[
                OrderItem(
                    product_id=line.product.id,
                    product_name=line.product.name,
                    quantity=line.quantity,
                    price=line.unit_price,
                    color=line.selection.color,
                    size=line.selection.size,
                    variant_key=str(line.selection),
                    variant_sku=line.sku,
                    variant_image=line.image,
                )
                for line in lines
            ],
        )
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)

        logger.info(
            "order_created",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(user.id),
            flow=flow,
            product_amount=order.product_amount,
            shipping_cost=order.shipping_cost,
            total_amount=order.total_amount,
            is_pickup=quote.is_pickup,
            items_count=len(lines),
        )

        reference = f"{settings.PAYMENT_REFERENCE_PREFIX}-{order.order_number}"
        try:
            response = await self.gateway.initialize_transaction(
                email=user.email,
                amount=to_minor_units(order.total_amount),
                reference=reference,
                callback_url=f"{settings.FRONTEND_URL}/payment/verify/{order.id}",
                metadata={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "custom_fields": [
                        {
                            "display_name": "Order Number",
                            "variable_name": "order_number",
                            "value": order.order_number,
                        }
                    ],
                },
            )
        except PaymentGatewayError as e:
            self._mark_initialization_failed(order, flow, e.message)
            raise

        data = response.get("data") or {}
        if not response.get("status") or not data.get("authorization_url"):
            message = response.get("message") or "Payment initialization failed"
            self._mark_initialization_failed(order, flow, message)
            raise PaymentGatewayError(message, operation="initialize")

        order.payment_reference = reference
        order.payment_details = {
            "reference": reference,
            "authorization_url": data["authorization_url"],
            "access_code": data.get("access_code"),
            "payment_provider": "paystack",
        }
        order.updated_at = get_datetime_utc()
        self.session.add(order)
        if cart is not None:
            CartService.clear(self.session, cart)
        self.session.commit()

        checkouts_total.labels(flow=flow, result="initialized").inc()
        logger.info(
            "payment_initialized",
            order_id=str(order.id),
            order_number=order.order_number,
            reference=reference,
            amount_minor=to_minor_units(order.total_amount),
        )

        return CheckoutResult(
            authorization_url=data["authorization_url"],
            reference=reference,
            order_id=order.id,
            order_number=order.order_number,
        )

    def _mark_initialization_failed(self, order: Order, flow: str, message: str) -> None:
        order.payment_status = PaymentStatus.FAILED.value
        order.payment_details = {
            **(order.payment_details or {}),
            "payment_provider": "paystack",
            "error": message,
        }
        order.updated_at = get_datetime_utc()
        self.session.add(order)
        self.session.commit()

        checkouts_total.labels(flow=flow, result="gateway_failed").inc()
        logger.warning(
            "payment_initialization_failed",
            order_id=str(order.id),
            order_number=order.order_number,
            gateway_message=message,
        )
