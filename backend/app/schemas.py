"""
Request bodies. Storefront clients send camelCase; snake_case is accepted too.
"""

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from app.models import DEFAULT_VARIANT, OrderStatus, ZoneType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutLine(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(ge=1)
    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT


class ShippingAddressIn(CamelModel):
    street: str
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str = "Nigeria"
    phone: str | None = None
    alternative_phone: str | None = None


class GuestCheckoutRequest(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    email: EmailStr
    phone: str = Field(min_length=1)
    alternative_phone: str | None = None
    shipping_address: str | None = None  # street line; omitted for pickup
    country: str = "Nigeria"
    state: str | None = None
    city: str | None = None
    save_address: bool = False
    note: str | None = None
    shipping_method: str  # zone id or "pickup"
    is_pickup: bool = False
    cart_items: list[CheckoutLine] = Field(min_length=1)


class UserCheckoutRequest(CamelModel):
    shipping_address: ShippingAddressIn | None = None
    shipping_method: str
    is_pickup: bool = False
    note: str | None = None


class CouponValidationRequest(CamelModel):
    code: str
    total_amount: float = Field(ge=0)


class ShippingCalculationRequest(CamelModel):
    zone_id: str | None = None
    state: str | None = None
    is_pickup: bool = False
    order_value: float = Field(default=0, ge=0)
    weight: float | None = Field(default=None, ge=0)
    item_count: int | None = Field(default=None, ge=0)


class ShippingZoneCreate(CamelModel):
    name: str = Field(min_length=1)
    type: ZoneType = ZoneType.INTERSTATE
    areas: list[str] = []
    price: float = Field(ge=0)
    estimated_delivery_time: str
    is_active: bool = True
    courier_partner: str | None = None
    preparation_time: str | None = None


class ShippingZoneUpdate(CamelModel):
    name: str | None = None
    type: ZoneType | None = None
    areas: list[str] | None = None
    price: float | None = Field(default=None, ge=0)
    estimated_delivery_time: str | None = None
    is_active: bool | None = None
    courier_partner: str | None = None
    preparation_time: str | None = None


class StorePickupUpdate(CamelModel):
    is_enabled: bool | None = None
    store_address: str | None = None
    working_hours: str | None = None
    preparation_time: str | None = None
    pickup_instructions: str | None = None


class ShippingSettingsUpdate(CamelModel):
    free_delivery_threshold: float | None = Field(default=None, ge=0)
    default_courier_partner: str | None = None
    max_delivery_days: int | None = Field(default=None, ge=1)
    enable_cash_on_delivery: bool | None = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus
    tracking_info: dict[str, Any] | None = None


class CartItemAdd(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)
    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT


class CartItemUpdate(CamelModel):
    quantity: int = Field(ge=1)
