import os

os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_USER", "test")
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("POSTGRES_DB", "test")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import hashlib  # noqa: E402
import hmac  # noqa: E402
import uuid  # noqa: E402
from typing import Any  # noqa: E402

import orjson  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.api.main import api_router  # noqa: E402
from app.clients.email_client import EmailClient  # noqa: E402
from app.clients.paystack_client import PaystackClient  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.errors import register_exception_handlers  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.deps import get_db, get_notifier, get_payment_gateway, get_redis  # noqa: E402
from app.models import (  # noqa: E402
    Product,
    ProductVariant,
    ShippingZone,
    User,
    UserRole,
    ZoneType,
)
from app.services.notification_service import NotificationService  # noqa: E402


def create_test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


def fixture_session(engine) -> Session:
    """Session for building fixtures; rows stay readable after the block closes."""
    return Session(engine, expire_on_commit=False)


class FakeGateway(PaystackClient):
    """Paystack stand-in; transactions are settled by the test with ``settle``."""

    def __init__(self, fail_initialize: bool = False):
        super().__init__(secret_key=settings.PAYSTACK_SECRET_KEY, base_url="https://paystack.test")
        self.fail_initialize = fail_initialize
        self.initialized: list[dict[str, Any]] = []
        self.transactions: dict[str, dict[str, Any]] = {}
        self.verify_calls = 0

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
        self.initialized.append(
            {
                "email": email,
                "amount": amount,
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata,
            }
        )
        if self.fail_initialize:
            return {"status": False, "message": "Invalid key"}
        return {
            "status": True,
            "message": "Authorization URL created",
            "data": {
                "authorization_url": f"https://checkout.paystack.test/{reference}",
                "access_code": "ac_test",
                "reference": reference,
            },
        }

    async def verify_transaction(self, reference: str) -> dict[str, Any]:
        self.verify_calls += 1
        data = self.transactions.get(reference)
        if data is None:
            return {"status": False, "message": "Transaction reference not found"}
        return {"status": True, "message": "Verification successful", "data": data}

    def settle(self, reference: str, status: str = "success") -> dict[str, Any]:
        data = transaction_data(reference, status)
        self.transactions[reference] = data
        return data


def transaction_data(reference: str, status: str = "success") -> dict[str, Any]:
    return {
        "id": 4099260516,
        "status": status,
        "reference": reference,
        "gateway_response": "Successful" if status == "success" else "Declined",
        "channel": "card",
        "paid_at": "2026-10-19T10:00:00.000Z",
    }


def sign(body: bytes) -> str:
    return hmac.new(settings.PAYSTACK_SECRET_KEY.encode(), body, hashlib.sha512).hexdigest()


def webhook_body(event: str, reference: str) -> bytes:
    status = "success" if event == "charge.success" else "failed"
    return orjson.dumps({"event": event, "data": transaction_data(reference, status)})


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def ping(self) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return key in self.store

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        self.store[key] = value
        return True


class RecordingEmailClient(EmailClient):
    def __init__(self):
        super().__init__(transport="console")
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> str:
        self.sent.append((to, subject, body))
        return f"<{len(self.sent)}@test>"

    def subjects(self) -> list[str]:
        return [subject for _, subject, _ in self.sent]


class FailingEmailClient(EmailClient):
    def __init__(self):
        super().__init__(transport="console")

    async def send(self, to: str, subject: str, body: str) -> str:
        raise ConnectionError("SMTP server unavailable")


def create_test_client(
    engine,
    gateway: PaystackClient | None = None,
    notifier: NotificationService | None = None,
    redis: FakeRedis | None = None,
) -> TestClient:
    def override_get_db():
        with Session(engine) as session:
            yield session

    gateway = gateway or FakeGateway()
    notifier = notifier or NotificationService(RecordingEmailClient())
    redis = redis or FakeRedis()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_redis] = lambda: redis
    return TestClient(app)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'id': str(user.id)})}"}


def create_user(
    session: Session, email: str = "ada@example.com", role: UserRole = UserRole.USER
) -> User:
    user = User(
        name="Ada Obi",
        email=email,
        phone="08030000000",
        role=role.value,
        password_hash="not-a-real-hash",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_product(
    session: Session,
    *,
    name: str = "Ankara Shirt",
    price: float = 2000,
    stock: int = 10,
    variants: list[dict[str, Any]] | None = None,
) -> Product:
    product = Product(sku=f"SKU-{uuid.uuid4().hex[:8]}", name=name, price=price, stock=stock)
    product.variants = [ProductVariant(**variant) for variant in variants or []]
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def create_zone(
    session: Session,
    *,
    name: str = "Lagos Delivery",
    zone_type: ZoneType = ZoneType.INTERSTATE,
    areas: list[str] | None = None,
    price: float = 2000,
    is_active: bool = True,
) -> ShippingZone:
    zone = ShippingZone(
        name=name,
        type=zone_type.value,
        areas=areas if areas is not None else ["Lagos"],
        price=price,
        estimated_delivery_time="2-3 business days",
        is_active=is_active,
    )
    session.add(zone)
    session.commit()
    session.refresh(zone)
    return zone


def guest_checkout_payload(product: Product, zone: ShippingZone | None = None, **overrides) -> dict:
    payload = {
        "firstName": "Chidi",
        "lastName": "Okeke",
        "email": "chidi@example.com",
        "phone": "08031234567",
        "shippingAddress": "12 Allen Avenue",
        "country": "Nigeria",
        "state": "Lagos",
        "city": "Ikeja",
        "shippingMethod": str(zone.id) if zone else "pickup",
        "isPickup": zone is None,
        "cartItems": [{"productId": str(product.id), "quantity": 2}],
    }
    payload.update(overrides)
    return payload
