import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

import support  # noqa: F401  (environment defaults)

from app.api.main import api_router
from app.deps import get_db, get_redis
from app.middleware.metrics_middleware import MetricsMiddleware
from app.middleware.request_context_middleware import RequestContextMiddleware


def create_test_client(redis_ok: bool = True, db_ok: bool = True) -> TestClient:
    class FakeSession:
        def exec(self, _statement):
            if not db_ok:
                raise RuntimeError("db down")
            return None

    def override_get_db():
        yield FakeSession()

    class FakeRedis:
        async def ping(self) -> bool:
            return redis_ok

    def override_get_redis():
        return FakeRedis()

    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)
    app.include_router(api_router, prefix="/api/v1")
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    return TestClient(app)


class TestHealthEndpoints(unittest.TestCase):
    def test_liveness_returns_alive(self) -> None:
        client = create_test_client()
        response = client.get("/api/v1/health/live")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "alive"})

    def test_readiness_reports_ready(self) -> None:
        client = create_test_client()
        response = client.get("/api/v1/health/ready")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"status": "ready", "checks": {"database": "connected", "redis": "connected"}},
        )

    def test_readiness_reports_not_ready_when_redis_down(self) -> None:
        client = create_test_client(redis_ok=False)
        response = client.get("/api/v1/health/ready")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(
            response.json(),
            {
                "status": "not ready",
                "checks": {"database": "connected", "redis": "disconnected"},
            },
        )

    def test_readiness_reports_database_error(self) -> None:
        client = create_test_client(db_ok=False)
        response = client.get("/api/v1/health/ready")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["checks"]["database"], "error: db down")


class TestRequestContext(unittest.TestCase):
    def test_request_id_is_echoed(self) -> None:
        client = create_test_client()
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-123"})
        self.assertEqual(response.headers["X-Request-ID"], "req-123")

    def test_request_id_is_generated_when_missing(self) -> None:
        client = create_test_client()
        response = client.get("/api/v1/health/live")
        self.assertTrue(response.headers["X-Request-ID"])


class TestMetricsPathTemplating(unittest.TestCase):
    def setUp(self) -> None:
        self.middleware = MetricsMiddleware(FastAPI())

    def test_order_ids_are_templated(self) -> None:
        self.assertEqual(
            self.middleware._template_path(
                "/api/v1/orders/123e4567-e89b-12d3-a456-426614174000"
            ),
            "/api/v1/orders/{id}",
        )

    def test_payment_references_are_templated(self) -> None:
        self.assertEqual(
            self.middleware._template_path(
                "/api/v1/checkout/verify-payment/PAY-ORD-1760000000000-42"
            ),
            "/api/v1/checkout/verify-payment/{reference}",
        )

    def test_static_paths_are_unchanged(self) -> None:
        self.assertEqual(
            self.middleware._template_path("/api/v1/health/ready"), "/api/v1/health/ready"
        )
