import unittest

from sqlmodel import Session

from support import (
    auth_headers,
    create_test_client,
    create_test_engine,
    create_user,
    create_zone,
    fixture_session,
)

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models import ShippingSettings, StorePickup, UserRole, ZoneType
from app.schemas import ShippingSettingsUpdate, StorePickupUpdate
from app.services import ShippingConfigStore, ShippingService


class TestShippingResolver(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_test_engine()
        self.session = Session(self.engine)

    def tearDown(self) -> None:
        self.session.close()

    def test_pickup_wins_over_zone_and_state(self) -> None:
        zone = create_zone(self.session)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", is_pickup=True
        )
        self.assertTrue(quote.is_pickup)
        self.assertEqual(quote.cost, 0)
        self.assertEqual(quote.method, "Store Pickup")

    def test_pickup_selection_string_resolves_pickup(self) -> None:
        quote = ShippingService.resolve(self.session, zone_id="pickup")
        self.assertTrue(quote.is_pickup)
        self.assertIsNotNone(quote.store_address)

    def test_pickup_record_is_created_lazily_with_defaults(self) -> None:
        self.assertIsNone(self.session.get(StorePickup, 1))
        ShippingService.resolve(self.session, is_pickup=True)
        self.session.commit()
        pickup = self.session.get(StorePickup, 1)
        self.assertIsNotNone(pickup)
        self.assertTrue(pickup.is_enabled)

    def test_disabled_pickup_is_not_found(self) -> None:
        ShippingConfigStore.update_pickup(self.session, StorePickupUpdate(is_enabled=False))
        with self.assertRaises(NotFoundError):
            ShippingService.resolve(self.session, is_pickup=True)

    def test_explicit_zone_is_priced(self) -> None:
        zone = create_zone(self.session, price=2000)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", order_subtotal=4000
        )
        self.assertFalse(quote.is_pickup)
        self.assertEqual(quote.cost, 2000)
        self.assertEqual(quote.zone_id, zone.id)
        self.assertEqual(quote.carrier, "GIG Logistics")

    def test_interstate_zone_not_serving_state_is_rejected(self) -> None:
        zone = create_zone(self.session, areas=["Lagos"])
        with self.assertRaises(ValidationError) as ctx:
            ShippingService.resolve(self.session, zone_id=str(zone.id), state="Kano")
        self.assertIn("Kano", ctx.exception.message)

    def test_unknown_or_inactive_zone_is_not_found(self) -> None:
        inactive = create_zone(self.session, is_active=False)
        with self.assertRaises(NotFoundError):
            ShippingService.resolve(self.session, zone_id=str(inactive.id), state="Lagos")
        with self.assertRaises(NotFoundError):
            ShippingService.resolve(self.session, zone_id="not-a-zone", state="Lagos")

    def test_state_lookup_prefers_abuja_zone_for_fct(self) -> None:
        create_zone(self.session, name="Nationwide", areas=["Nationwide"], price=4500)
        abuja = create_zone(
            self.session, name="Abuja Delivery", zone_type=ZoneType.ABUJA, areas=["FCT"], price=1500
        )
        quote = ShippingService.resolve(self.session, state="Abuja")
        self.assertEqual(quote.zone_id, abuja.id)
        self.assertEqual(quote.cost, 1500)

    def test_state_lookup_falls_back_to_nationwide_zone(self) -> None:
        create_zone(self.session, name="Lagos", areas=["Lagos"])
        nationwide = create_zone(self.session, name="Nationwide", areas=["Nationwide"], price=4500)
        quote = ShippingService.resolve(self.session, state="Kano")
        self.assertEqual(quote.zone_id, nationwide.id)

    def test_state_without_zone_is_not_found(self) -> None:
        create_zone(self.session, areas=["Lagos"])
        with self.assertRaises(NotFoundError):
            ShippingService.resolve(self.session, state="Kano")

    def test_nothing_to_resolve_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ShippingService.resolve(self.session)

    def test_free_shipping_at_exact_threshold(self) -> None:
        zone = create_zone(self.session, price=2000)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", order_subtotal=10000
        )
        self.assertEqual(quote.cost, 0)
        self.assertTrue(quote.free_shipping_applied)

    def test_below_threshold_pays_zone_price(self) -> None:
        zone = create_zone(self.session, price=2000)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", order_subtotal=9999.99
        )
        self.assertEqual(quote.cost, 2000)

    def test_zero_threshold_disables_free_shipping(self) -> None:
        ShippingConfigStore.update_settings(
            self.session, ShippingSettingsUpdate(free_delivery_threshold=0)
        )
        zone = create_zone(self.session, price=2000)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", order_subtotal=50000
        )
        self.assertEqual(quote.cost, 2000)

    def test_weight_and_item_surcharges(self) -> None:
        zone = create_zone(self.session, price=2000)
        quote = ShippingService.resolve(
            self.session, zone_id=str(zone.id), state="Lagos", weight=6, item_count=11
        )
        self.assertEqual(quote.cost, 3500)

    def test_settings_singleton_is_reused(self) -> None:
        first = ShippingConfigStore.ensure_settings(self.session)
        self.session.commit()
        second = ShippingConfigStore.ensure_settings(self.session)
        self.assertEqual(first.id, second.id)
        self.assertEqual(self.session.get(ShippingSettings, 1).free_delivery_threshold, 10000)


class TestShippingEndpoints(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_test_engine()
        self.client = create_test_client(self.engine)
        with fixture_session(self.engine) as session:
            self.admin = create_user(session, email="admin@example.com", role=UserRole.ADMIN)
            self.customer = create_user(session, email="ada@example.com")

    def test_admin_created_zone_is_listed_for_its_state(self) -> None:
        response = self.client.post(
            "/api/v1/shipping/admin/zones",
            headers=auth_headers(self.admin),
            json={
                "name": "Lagos Express",
                "type": "interstate",
                "areas": ["Lagos"],
                "price": 2000,
                "estimatedDeliveryTime": "1-2 days",
            },
        )
        self.assertEqual(response.status_code, 201)
        zone_id = response.json()["data"]["id"]

        response = self.client.get("/api/v1/shipping/zones", params={"state": "lagos"})
        self.assertEqual(response.status_code, 200)
        self.assertIn(zone_id, [zone["id"] for zone in response.json()["data"]])

        response = self.client.get("/api/v1/shipping/zones", params={"state": "Kano"})
        self.assertNotIn(zone_id, [zone["id"] for zone in response.json()["data"]])

    def test_fct_zone_is_listed_for_abuja(self) -> None:
        response = self.client.post(
            "/api/v1/shipping/admin/zones",
            headers=auth_headers(self.admin),
            json={
                "name": "Within Abuja",
                "type": "interstate",
                "areas": ["FCT"],
                "price": 1500,
                "estimatedDeliveryTime": "Same day",
            },
        )
        zone_id = response.json()["data"]["id"]

        response = self.client.get("/api/v1/shipping/zones", params={"state": "Abuja"})
        self.assertIn(zone_id, [zone["id"] for zone in response.json()["data"]])

    def test_zone_admin_requires_admin_role(self) -> None:
        response = self.client.post(
            "/api/v1/shipping/admin/zones",
            headers=auth_headers(self.customer),
            json={
                "name": "Lagos",
                "areas": ["Lagos"],
                "price": 2000,
                "estimatedDeliveryTime": "1-2 days",
            },
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()["success"])

    def test_interstate_zone_requires_areas(self) -> None:
        response = self.client.post(
            "/api/v1/shipping/admin/zones",
            headers=auth_headers(self.admin),
            json={"name": "Empty", "areas": [], "price": 2000, "estimatedDeliveryTime": "1 day"},
        )
        self.assertEqual(response.status_code, 400)

    def test_update_and_delete_zone(self) -> None:
        with fixture_session(self.engine) as session:
            zone_id = str(create_zone(session).id)

        response = self.client.put(
            f"/api/v1/shipping/admin/zones/{zone_id}",
            headers=auth_headers(self.admin),
            json={"price": 2500, "isActive": False},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["price"], 2500)

        response = self.client.get("/api/v1/shipping/zones")
        self.assertEqual(response.json()["count"], 0)

        response = self.client.get("/api/v1/shipping/admin/zones", headers=auth_headers(self.admin))
        self.assertEqual(response.json()["count"], 1)

        response = self.client.delete(
            f"/api/v1/shipping/admin/zones/{zone_id}", headers=auth_headers(self.admin)
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.get(f"/api/v1/shipping/zones/{zone_id}")
        self.assertEqual(response.status_code, 404)

    def test_calculate_applies_free_shipping(self) -> None:
        with fixture_session(self.engine) as session:
            zone_id = str(create_zone(session, price=2000).id)

        response = self.client.post(
            "/api/v1/shipping/calculate",
            json={"zoneId": zone_id, "state": "Lagos", "orderValue": 10000},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["cost"], 0)

    def test_calculate_unknown_state_is_not_found(self) -> None:
        response = self.client.post("/api/v1/shipping/calculate", json={"state": "Kano"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error_type"], "NotFoundError")

    def test_pickup_and_settings_are_readable_before_any_write(self) -> None:
        for _ in range(2):
            response = self.client.get("/api/v1/shipping/pickup")
            self.assertEqual(response.status_code, 200)
            pickup = response.json()["data"]
            self.assertTrue(pickup["is_enabled"])
            self.assertEqual(pickup["store_address"], settings.DEFAULT_STORE_ADDRESS)
            self.assertEqual(pickup["working_hours"], settings.DEFAULT_STORE_WORKING_HOURS)

        response = self.client.get("/api/v1/shipping/settings")
        data = response.json()["data"]
        self.assertEqual(data["free_delivery_threshold"], 10000)
        self.assertEqual(data["default_courier_partner"], "GIG Logistics")

    def test_admin_updates_pickup(self) -> None:
        response = self.client.put(
            "/api/v1/shipping/admin/pickup",
            headers=auth_headers(self.admin),
            json={"workingHours": "Mon-Fri: 10:00 AM - 5:00 PM"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["working_hours"], "Mon-Fri: 10:00 AM - 5:00 PM")

        response = self.client.get("/api/v1/shipping/pickup")
        self.assertEqual(response.json()["data"]["working_hours"], "Mon-Fri: 10:00 AM - 5:00 PM")

    def test_admin_updates_settings(self) -> None:
        response = self.client.put(
            "/api/v1/shipping/admin/settings",
            headers=auth_headers(self.admin),
            json={"freeDeliveryThreshold": 20000},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["free_delivery_threshold"], 20000)
        response = self.client.get("/api/v1/shipping/settings")
        self.assertEqual(response.json()["data"]["free_delivery_threshold"], 20000)

    def test_states_lists_served_states(self) -> None:
        with fixture_session(self.engine) as session:
            create_zone(session, areas=["Lagos", "Ogun"])
            create_zone(session, name="Abuja", zone_type=ZoneType.ABUJA, areas=["FCT"])

        response = self.client.get("/api/v1/shipping/states")
        self.assertEqual(response.json()["data"], ["FCT", "Lagos", "Ogun"])

    def test_checkout_shipping_methods_include_pickup(self) -> None:
        with fixture_session(self.engine) as session:
            create_zone(session, areas=["Lagos"])

        response = self.client.get("/api/v1/checkout/shipping-methods", params={"state": "Lagos"})
        self.assertEqual(response.status_code, 200)
        methods = response.json()["data"]
        self.assertEqual([m["type"] for m in methods], ["interstate", "pickup"])
