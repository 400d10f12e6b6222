import uuid
from typing import Any

from fastapi import APIRouter

from app.core.logging import get_logger
from app.deps import (
    CurrentUser,
    NotifierDep,
    PaymentGatewayDep,
    RedisDep,
    SessionDep,
)
from app.models import OrderPublic, ZoneType
from app.schemas import CouponValidationRequest, GuestCheckoutRequest, UserCheckoutRequest
from app.services import (
    CheckoutService,
    CouponService,
    OrderService,
    PaymentService,
    ShippingConfigStore,
    ShippingService,
)

router = APIRouter(prefix="/checkout", tags=["checkout"])
logger = get_logger(__name__)

CHECKOUT_MESSAGE = "Checkout successful, redirecting to payment"


@router.post("/guest")
async def guest_checkout(
    *, session: SessionDep, gateway: PaymentGatewayDep, checkout_in: GuestCheckoutRequest
) -> Any:
    """Check out a client-supplied item list without an account"""
    logger.info(
        "checkout_started",
        flow="guest",
        items_count=len(checkout_in.cart_items),
        shipping_method=checkout_in.shipping_method,
        state=checkout_in.state,
    )
    result = await CheckoutService(session, gateway).checkout_guest(checkout_in)
    return {"success": True, "message": CHECKOUT_MESSAGE, "data": result.model_dump(mode="json")}


@router.post("/user")
async def user_checkout(
    *,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    user: CurrentUser,
    checkout_in: UserCheckoutRequest,
) -> Any:
    """Check out the authenticated user's cart"""
    logger.info(
        "checkout_started",
        flow="user",
        user_id=str(user.id),
        shipping_method=checkout_in.shipping_method,
    )
    result = await CheckoutService(session, gateway).checkout_user(user, checkout_in)
    return {"success": True, "message": CHECKOUT_MESSAGE, "data": result.model_dump(mode="json")}


@router.get("/verify-payment/{reference}")
async def verify_payment(
    reference: str,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    notifier: NotifierDep,
    redis: RedisDep,
) -> Any:
    order = await PaymentService(session, gateway, notifier, redis).verify_payment(reference)
    return {
        "success": True,
        "data": {
            "paymentStatus": order.payment_status,
            "orderStatus": order.status,
            "order": OrderPublic.model_validate(order).model_dump(mode="json"),
        },
    }


@router.get("/payment-status/{order_id}")
async def payment_status(order_id: uuid.UUID, session: SessionDep, user: CurrentUser) -> Any:
    order = OrderService.get_order_for(session, order_id, user)
    return {
        "success": True,
        "data": {
            "status": order.status,
            "paymentStatus": order.payment_status,
            "paymentDetails": order.payment_details,
        },
    }


@router.get("/shipping-methods")
async def shipping_methods(session: SessionDep, state: str | None = None) -> Any:
    """Delivery zones serving ``state`` plus store pickup when enabled"""
    zones = ShippingService.list_zones(session, state=state)
    shipping_settings = ShippingConfigStore.ensure_settings(session)
    pickup = ShippingConfigStore.ensure_pickup(session)
    session.commit()

    methods: list[dict[str, Any]] = [
        {
            "id": str(zone.id),
            "name": zone.name,
            "type": zone.type,
            "price": zone.price,
            "estimated_delivery": zone.estimated_delivery_time,
            "courier_partner": zone.courier_partner or shipping_settings.default_courier_partner,
        }
        for zone in zones
        if zone.type != ZoneType.PICKUP.value
    ]
    if pickup.is_enabled:
        methods.append(
            {
                "id": "pickup",
                "name": "Store Pickup",
                "type": ZoneType.PICKUP.value,
                "price": 0,
                "estimated_delivery": pickup.preparation_time,
                "store_address": pickup.store_address,
                "working_hours": pickup.working_hours,
            }
        )

    return {
        "success": True,
        "data": methods,
        "free_delivery_threshold": shipping_settings.free_delivery_threshold,
    }


@router.post("/validate-coupon")
async def validate_coupon(coupon_in: CouponValidationRequest) -> Any:
    coupon = CouponService.validate(coupon_in.code, coupon_in.total_amount)
    logger.info("coupon_validated", code=coupon["code"], discount=coupon["discount"])
    return {"success": True, "data": coupon}
