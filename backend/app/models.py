import uuid
from enum import Enum
from datetime import datetime, timezone
from typing import Any, NamedTuple

from sqlalchemy import DateTime, JSON, UniqueConstraint
from sqlmodel import Field, SQLModel, Column, String, Relationship


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_VARIANT = "default"


class VariantKey(NamedTuple):
    """(color, size) selection identifying one cell of a product's variant matrix."""

    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT

    def __str__(self) -> str:
        return f"{self.color}:{self.size}"

    @property
    def is_default(self) -> bool:
        return self.color == DEFAULT_VARIANT and self.size == DEFAULT_VARIANT


class OrderStatus(str, Enum):
    """Order fulfilment states"""

    PENDING = "pending"  # Created, awaiting payment
    PROCESSING = "processing"  # Paid, being prepared
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.DELIVERED.value, OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value}
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class ZoneType(str, Enum):
    ABUJA = "abuja"
    INTERSTATE = "interstate"
    PICKUP = "pickup"


# USER


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    phone: str | None = Field(default=None)
    role: str = Field(default=UserRole.USER.value)
    password_hash: str
    shipping_addresses: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.SUPERADMIN.value)


# CATALOG


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    sku: str = Field(index=True, unique=True)
    name: str
    description: str = Field(default="")
    price: float
    stock: int = Field(default=0)
    image_url: str | None = Field(default=None)
    status: str = Field(default="active")
    last_low_stock_alert: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    created_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )

    variants: list["ProductVariant"] = Relationship(
        back_populates="product",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def variant_matrix(self) -> dict[VariantKey, "ProductVariant"]:
        return {variant.key: variant for variant in self.variants}


class ProductVariant(SQLModel, table=True):
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "color", "size", name="uq_product_variants_selection"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: uuid.UUID = Field(foreign_key="products.id", index=True, nullable=False)
    color: str = Field(default=DEFAULT_VARIANT)
    size: str = Field(default=DEFAULT_VARIANT)
    price: float | None = Field(default=None)  # falls back to Product.price
    stock: int = Field(default=0)
    sku: str | None = Field(default=None)
    image: str | None = Field(default=None)

    product: Product | None = Relationship(back_populates="variants")

    @property
    def key(self) -> VariantKey:
        return VariantKey(self.color, self.size)


# CART


class Cart(SQLModel, table=True):
    __tablename__ = "carts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", unique=True, nullable=False)
    created_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )
    last_reminder_sent_at: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True)
    )

    items: list["CartItem"] = Relationship(
        back_populates="cart",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class CartItem(SQLModel, table=True):
    __tablename__ = "cart_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cart_id: uuid.UUID = Field(foreign_key="carts.id", index=True, nullable=False)
    product_id: uuid.UUID = Field(foreign_key="products.id", nullable=False)
    product_name: str
    quantity: int
    price: float
    color: str = Field(default=DEFAULT_VARIANT)
    size: str = Field(default=DEFAULT_VARIANT)
    variant_sku: str | None = Field(default=None)
    variant_image: str | None = Field(default=None)

    cart: Cart | None = Relationship(back_populates="items")

    @property
    def variant_key(self) -> VariantKey:
        return VariantKey(self.color, self.size)


# SHIPPING CONFIGURATION


class ShippingZone(SQLModel, table=True):
    __tablename__ = "shipping_zones"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    areas: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    price: float = Field(ge=0)
    estimated_delivery_time: str
    is_active: bool = Field(default=True, index=True)
    type: str = Field(
        default=ZoneType.INTERSTATE.value,
        sa_column=Column(String, nullable=False, index=True),
    )
    courier_partner: str | None = Field(default=None)
    preparation_time: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )


class StorePickup(SQLModel, table=True):
    """Singleton row (id=1), created lazily with configured defaults."""

    __tablename__ = "store_pickup"

    id: int = Field(default=1, primary_key=True)
    is_enabled: bool = Field(default=True)
    store_address: str
    working_hours: str
    preparation_time: str
    pickup_instructions: str
    updated_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )


class ShippingSettings(SQLModel, table=True):
    """Singleton row (id=1), created lazily with configured defaults."""

    __tablename__ = "shipping_settings"

    id: int = Field(default=1, primary_key=True)
    free_delivery_threshold: float
    default_courier_partner: str
    max_delivery_days: int
    enable_cash_on_delivery: bool = Field(default=True)
    updated_at: datetime = Field(
        default_factory=get_datetime_utc, sa_type=DateTime(timezone=True)
    )


# ORDER MODELS


class OrderItemBase(SQLModel):
    product_id: uuid.UUID
    product_name: str
    quantity: int
    price: float
    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT
    variant_key: str = str(VariantKey())
    variant_sku: str | None = None
    variant_image: str | None = None


class Order(SQLModel, table=True):
    """Order database model"""

    __tablename__ = "orders"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_number: str = Field(index=True, unique=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, nullable=False)

    # Amounts are fixed at creation
    product_amount: float
    shipping_cost: float = Field(default=0)
    total_amount: float
    currency: str = Field(default="NGN", max_length=3)

    # Null for pickup orders
    shipping_address: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    shipping: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    status: str = Field(
        default=OrderStatus.PENDING.value,
        sa_column=Column(String, nullable=False, index=True),
    )
    payment_status: str = Field(
        default=PaymentStatus.PENDING.value,
        sa_column=Column(String, nullable=False, index=True),
    )
    payment_method: str = Field(default="paystack")
    payment_reference: str | None = Field(default=None, index=True, unique=True)
    payment_details: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    tracking_info: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )

    note: str | None = Field(default=None)
    product_names: str = Field(default="")

    created_at: datetime = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),
    )
    paid_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )

    items: list["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def is_pickup(self) -> bool:
        return bool(self.shipping.get("is_pickup"))


class OrderItem(OrderItemBase, table=True):
    """Order item database model"""

    __tablename__ = "order_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="orders.id", index=True, nullable=False)
    product_id: uuid.UUID = Field(foreign_key="products.id", nullable=False)
    order: Order | None = Relationship(back_populates="items")

    @property
    def selection(self) -> VariantKey:
        return VariantKey(self.color, self.size)


class OrderItemPublic(OrderItemBase):
    id: uuid.UUID


class OrderPublic(SQLModel):
    """Public order schema"""

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    product_amount: float
    shipping_cost: float
    total_amount: float
    currency: str
    shipping_address: dict[str, Any] | None
    shipping: dict[str, Any]
    status: str
    payment_status: str
    payment_method: str
    payment_reference: str | None
    payment_details: dict[str, Any]
    tracking_info: dict[str, Any] | None
    note: str | None
    created_at: datetime
    updated_at: datetime
    paid_at: datetime | None
    items: list[OrderItemPublic] = []


class OrdersPublic(SQLModel):
    """List of orders with count"""

    data: list[OrderPublic]
    count: int


class ShippingZonePublic(SQLModel):
    id: uuid.UUID
    name: str
    areas: list[str]
    price: float
    estimated_delivery_time: str
    is_active: bool
    type: str
    courier_partner: str | None
    preparation_time: str | None


class StorePickupPublic(SQLModel):
    is_enabled: bool
    store_address: str
    working_hours: str
    preparation_time: str
    pickup_instructions: str
    updated_at: datetime


class ShippingSettingsPublic(SQLModel):
    free_delivery_threshold: float
    default_courier_partner: str
    max_delivery_days: int
    enable_cash_on_delivery: bool
    updated_at: datetime


class CartItemPublic(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    price: float
    color: str
    size: str
    variant_sku: str | None
    variant_image: str | None


class CartPublic(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    items: list[CartItemPublic] = []
    total_amount: float = 0
    updated_at: datetime
