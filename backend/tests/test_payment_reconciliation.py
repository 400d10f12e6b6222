import unittest
import uuid

from sqlmodel import Session, select

from support import (
    FailingEmailClient,
    FakeGateway,
    FakeRedis,
    RecordingEmailClient,
    create_product,
    create_test_client,
    create_test_engine,
    create_zone,
    fixture_session,
    guest_checkout_payload,
    sign,
    webhook_body,
)

from app.models import Order, Product, ProductVariant, VariantKey
from app.services import CatalogService
from app.services.notification_service import NotificationService


class ReconciliationTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_test_engine()
        self.gateway = FakeGateway()
        self.redis = FakeRedis()
        self.email = RecordingEmailClient()
        self.client = create_test_client(
            self.engine,
            gateway=self.gateway,
            notifier=NotificationService(self.email),
            redis=self.redis,
        )
        with fixture_session(self.engine) as session:
            self.product = create_product(session, price=2000, stock=10)
            self.zone = create_zone(session, areas=["Lagos"], price=2000)

    def checkout(self, payload: dict | None = None) -> tuple[str, str]:
        response = self.client.post(
            "/api/v1/checkout/guest",
            json=payload or guest_checkout_payload(self.product, self.zone),
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        return data["reference"], data["order_id"]

    def post_webhook(self, event: str, reference: str, signature: str | None = None):
        body = webhook_body(event, reference)
        return self.client.post(
            "/api/v1/webhook/paystack",
            content=body,
            headers={
                "Content-Type": "application/json",
                "x-paystack-signature": signature if signature is not None else sign(body),
            },
        )

    def get_order(self, order_id: str) -> Order:
        with Session(self.engine) as session:
            order = session.get(Order, uuid.UUID(order_id))
            session.expunge(order)
            return order

    def product_stock(self) -> int:
        with Session(self.engine) as session:
            return session.get(Product, self.product.id).stock


class TestVerifyPayment(ReconciliationTestCase):
    def test_successful_verification_completes_order(self) -> None:
        reference, order_id = self.checkout()
        self.gateway.settle(reference)

        response = self.client.get(f"/api/v1/checkout/verify-payment/{reference}")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["paymentStatus"], "completed")
        self.assertEqual(data["orderStatus"], "processing")
        self.assertEqual(data["order"]["id"], order_id)

        order = self.get_order(order_id)
        self.assertIsNotNone(order.paid_at)
        self.assertEqual(order.payment_details["transaction_id"], 4099260516)
        self.assertEqual(order.payment_details["channel"], "card")
        self.assertEqual(self.product_stock(), 8)

        subjects = self.email.subjects()
        self.assertIn(f"Order Confirmation - {order.order_number}", subjects)
        self.assertIn(f"New Order Received - {order.order_number}", subjects)

    def test_repeated_verification_decrements_once(self) -> None:
        reference, _ = self.checkout()
        self.gateway.settle(reference)

        self.client.get(f"/api/v1/checkout/verify-payment/{reference}")
        response = self.client.get(f"/api/v1/checkout/verify-payment/{reference}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["paymentStatus"], "completed")
        self.assertEqual(self.product_stock(), 8)
        self.assertEqual(len(self.email.sent), 2)

    def test_failed_transaction_marks_payment_failed(self) -> None:
        reference, order_id = self.checkout()
        self.gateway.settle(reference, status="failed")

        response = self.client.get(f"/api/v1/checkout/verify-payment/{reference}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["paymentStatus"], "failed")
        self.assertEqual(response.json()["data"]["orderStatus"], "pending")
        self.assertEqual(self.product_stock(), 10)

        order = self.get_order(order_id)
        self.assertIn(f"Payment Failed - {order.order_number}", self.email.subjects())

    def test_gateway_rejection_is_reported(self) -> None:
        reference, _ = self.checkout()

        response = self.client.get(f"/api/v1/checkout/verify-payment/{reference}")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Transaction reference not found")

    def test_unknown_reference_is_not_found(self) -> None:
        self.gateway.settle("PAY-UNKNOWN")
        response = self.client.get("/api/v1/checkout/verify-payment/PAY-UNKNOWN")
        self.assertEqual(response.status_code, 404)

    def test_variant_stock_is_decremented(self) -> None:
        with fixture_session(self.engine) as session:
            shirt = create_product(
                session, name="Polo", stock=50, variants=[{"color": "Red", "size": "M", "stock": 5}]
            )
        payload = guest_checkout_payload(shirt, self.zone)
        payload["cartItems"] = [
            {"productId": str(shirt.id), "quantity": 2, "color": "Red", "size": "M"}
        ]
        reference, _ = self.checkout(payload)
        self.gateway.settle(reference)

        self.client.get(f"/api/v1/checkout/verify-payment/{reference}")

        with Session(self.engine) as session:
            product = session.get(Product, shirt.id)
            self.assertEqual(product.stock, 50)
            self.assertEqual(product.variant_matrix[VariantKey("Red", "M")].stock, 3)

    def test_notification_failure_does_not_block_reconciliation(self) -> None:
        client = create_test_client(
            self.engine,
            gateway=self.gateway,
            notifier=NotificationService(FailingEmailClient()),
            redis=self.redis,
        )
        reference, order_id = self.checkout()
        self.gateway.settle(reference)

        response = client.get(f"/api/v1/checkout/verify-payment/{reference}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.get_order(order_id).payment_status, "completed")
        self.assertEqual(self.product_stock(), 8)


class TestPaystackWebhook(ReconciliationTestCase):
    def test_charge_success_completes_order(self) -> None:
        reference, order_id = self.checkout()

        response = self.post_webhook("charge.success", reference)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": True})

        order = self.get_order(order_id)
        self.assertEqual(order.payment_status, "completed")
        self.assertEqual(order.status, "processing")
        self.assertIn("webhook", order.payment_details)
        self.assertEqual(self.product_stock(), 8)
        self.assertIn(f"paystack_event:charge.success:{reference}", self.redis.store)

    def test_webhook_after_verify_does_not_decrement_again(self) -> None:
        reference, order_id = self.checkout()
        self.gateway.settle(reference)
        self.client.get(f"/api/v1/checkout/verify-payment/{reference}")

        response = self.post_webhook("charge.success", reference)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": True})
        self.assertEqual(self.get_order(order_id).payment_status, "completed")
        self.assertEqual(self.product_stock(), 8)

    def test_redelivered_webhook_decrements_once(self) -> None:
        reference, _ = self.checkout()

        self.post_webhook("charge.success", reference)
        self.post_webhook("charge.success", reference)
        self.assertEqual(self.product_stock(), 8)

        # Order row guard holds without the Redis marker
        self.redis.store.clear()
        response = self.post_webhook("charge.success", reference)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.product_stock(), 8)
        self.assertEqual(len(self.email.sent), 2)

    def test_invalid_signature_is_rejected(self) -> None:
        reference, order_id = self.checkout()

        response = self.post_webhook("charge.success", reference, signature="deadbeef")
        self.assertEqual(response.status_code, 400)
        self.assertIs(response.json()["status"], False)
        self.assertEqual(self.get_order(order_id).payment_status, "pending")
        self.assertEqual(self.product_stock(), 10)

    def test_missing_signature_is_rejected(self) -> None:
        reference, _ = self.checkout()
        response = self.client.post(
            "/api/v1/webhook/paystack",
            content=webhook_body("charge.success", reference),
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)

    def test_charge_failed_alerts_admin(self) -> None:
        reference, order_id = self.checkout()

        response = self.post_webhook("charge.failed", reference)
        self.assertEqual(response.json(), {"status": True})

        order = self.get_order(order_id)
        self.assertEqual(order.payment_status, "failed")
        self.assertEqual(self.product_stock(), 10)
        to, subject, body = self.email.sent[-1]
        self.assertEqual(subject, f"Payment Failed - {order.order_number}")
        self.assertIn("Declined", body)

    def test_success_after_failure_is_not_applied(self) -> None:
        reference, order_id = self.checkout()
        self.post_webhook("charge.failed", reference)

        response = self.post_webhook("charge.success", reference)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.get_order(order_id).payment_status, "failed")
        self.assertEqual(self.product_stock(), 10)

    def test_unknown_reference_is_acknowledged(self) -> None:
        response = self.post_webhook("charge.success", "PAY-UNKNOWN")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": True})

    def test_unhandled_event_is_acknowledged(self) -> None:
        reference, order_id = self.checkout()
        response = self.post_webhook("transfer.success", reference)
        self.assertEqual(response.json(), {"status": True})
        self.assertEqual(self.get_order(order_id).payment_status, "pending")

    def test_signed_non_object_payload_is_rejected(self) -> None:
        for body in (b"[]", b'{"event": "charge.success", "data": ["PAY-1"]}'):
            response = self.client.post(
                "/api/v1/webhook/paystack",
                content=body,
                headers={"Content-Type": "application/json", "x-paystack-signature": sign(body)},
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["message"], "Malformed webhook payload")


class TestStockDecrement(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_test_engine()

    def test_decrement_floors_at_zero(self) -> None:
        with Session(self.engine) as session:
            product = create_product(session, stock=3)
            target = CatalogService.decrement_stock(session, product.id, VariantKey(), 5)
            session.commit()
            self.assertEqual(target, "product")
            self.assertEqual(session.get(Product, product.id).stock, 0)

    def test_variant_row_takes_precedence(self) -> None:
        with Session(self.engine) as session:
            product = create_product(
                session, stock=20, variants=[{"color": "Blue", "size": "L", "stock": 4}]
            )
            target = CatalogService.decrement_stock(
                session, product.id, VariantKey("Blue", "L"), 6
            )
            session.commit()
            self.assertEqual(target, "variant")
            variant = session.exec(
                select(ProductVariant).where(ProductVariant.product_id == product.id)
            ).one()
            self.assertEqual(variant.stock, 0)
            self.assertEqual(session.get(Product, product.id).stock, 20)
