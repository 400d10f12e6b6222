"""
Business services
"""

from app.services.cart_service import CartService
from app.services.catalog_service import CatalogService, ResolvedLine
from app.services.checkout_service import CheckoutResult, CheckoutService
from app.services.coupon_service import CouponService
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.settings_store import ShippingConfigStore
from app.services.shipping_service import ShippingQuote, ShippingService
from app.services.user_service import UserService

__all__ = [
    "CartService",
    "CatalogService",
    "CheckoutResult",
    "CheckoutService",
    "CouponService",
    "NotificationService",
    "OrderService",
    "PaymentService",
    "ResolvedLine",
    "ShippingConfigStore",
    "ShippingQuote",
    "ShippingService",
    "UserService",
]
