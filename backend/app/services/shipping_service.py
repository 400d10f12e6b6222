"""
Shipping resolution

Turns a shipping selection (explicit zone, store pickup, or just a
destination state) into a priced quote. Precedence is pickup, then explicit
zone, then state lookup. The free-delivery threshold is applied last and
never affects pickup, which is always free.
"""

import uuid
from typing import Any

from sqlmodel import Session, SQLModel, select

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models import ShippingSettings, ShippingZone, ZoneType, get_datetime_utc
from app.schemas import ShippingZoneCreate, ShippingZoneUpdate
from app.services.settings_store import ShippingConfigStore

logger = get_logger(__name__)

PICKUP_SELECTION = "pickup"
NATIONWIDE_AREAS = frozenset({"nationwide", "all states"})
ABUJA_AREAS = frozenset({"fct", "abuja"})

HEAVY_PARCEL_KG = 5
HEAVY_PARCEL_SURCHARGE = 500.0
BULK_ORDER_ITEMS = 10
BULK_ORDER_SURCHARGE = 1000.0

NIGERIAN_STATES = (
    "Abia", "Adamawa", "Akwa Ibom", "Anambra", "Bauchi", "Bayelsa", "Benue",
    "Borno", "Cross River", "Delta", "Ebonyi", "Edo", "Ekiti", "Enugu", "FCT",
    "Gombe", "Imo", "Jigawa", "Kaduna", "Kano", "Katsina", "Kebbi", "Kogi",
    "Kwara", "Lagos", "Nasarawa", "Niger", "Ogun", "Ondo", "Osun", "Oyo",
    "Plateau", "Rivers", "Sokoto", "Taraba", "Yobe", "Zamfara",
)


class ShippingQuote(SQLModel):
    """Priced shipping selection; ``snapshot()`` is what an order stores."""

    method: str
    cost: float
    estimated_delivery_time: str
    carrier: str | None = None
    is_pickup: bool = False
    zone_id: uuid.UUID | None = None
    zone_type: str | None = None
    store_address: str | None = None
    working_hours: str | None = None
    pickup_instructions: str | None = None
    free_shipping_applied: bool = False

    def snapshot(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def is_abuja(state: str) -> bool:
    normalized = state.strip().lower()
    return normalized == "fct" or "abuja" in normalized


def _areas(zone: ShippingZone) -> list[str]:
    return [area.strip().lower() for area in zone.areas or []]


def zone_covers_state(zone: ShippingZone, state: str) -> bool:
    """Strict coverage: used to validate an explicitly chosen zone."""
    areas = _areas(zone)
    target = state.strip().lower()
    if target in areas or NATIONWIDE_AREAS.intersection(areas):
        return True
    return is_abuja(state) and bool(ABUJA_AREAS.intersection(areas))


def zone_matches_state(zone: ShippingZone, state: str) -> bool:
    """Loose matching for zone listings: coverage plus substring matches."""
    if is_abuja(state) and zone.type == ZoneType.ABUJA.value:
        return True
    if zone_covers_state(zone, state):
        return True
    target = state.strip().lower()
    return any(target in area for area in _areas(zone))


class ShippingService:
    """Shipping zone lookup, quoting and admin maintenance"""

    @staticmethod
    def resolve(
        session: Session,
        *,
        zone_id: str | None = None,
        state: str | None = None,
        is_pickup: bool = False,
        order_subtotal: float = 0.0,
        weight: float | None = None,
        item_count: int | None = None,
    ) -> ShippingQuote:
        """
        Price a shipping selection.

        Raises:
            NotFoundError: Zone id unknown or inactive, no zone serves the
                state, or pickup requested while disabled.
            ValidationError: Explicit interstate zone does not cover the
                state, or nothing to resolve from.
        """
        shipping_settings = ShippingConfigStore.ensure_settings(session)
        zone_id = zone_id.strip() if zone_id else None

        if is_pickup or (zone_id and zone_id.lower() == PICKUP_SELECTION):
            quote = ShippingService._pickup_quote(session)
        elif zone_id:
            zone = ShippingService.get_zone(session, zone_id, active_only=True)
            if zone.type == ZoneType.PICKUP.value:
                quote = ShippingService._pickup_quote(session, zone)
            else:
                if (
                    zone.type == ZoneType.INTERSTATE.value
                    and state
                    and not zone_covers_state(zone, state)
                ):
                    raise ValidationError(
                        f"Shipping zone '{zone.name}' does not deliver to {state}"
                    )
                quote = ShippingService._zone_quote(
                    zone, shipping_settings, weight=weight, item_count=item_count
                )
        elif state:
            zone = ShippingService.find_zone_for_state(session, state)
            if zone is None:
                raise NotFoundError(f"No shipping zone available for {state}")
            quote = ShippingService._zone_quote(
                zone, shipping_settings, weight=weight, item_count=item_count
            )
        else:
            raise ValidationError("A shipping zone or destination state is required")

        threshold = shipping_settings.free_delivery_threshold
        if not quote.is_pickup and threshold > 0 and order_subtotal >= threshold:
            quote.cost = 0.0
            quote.free_shipping_applied = True

        logger.debug(
            "shipping_resolved",
            method=quote.method,
            zone_id=str(quote.zone_id) if quote.zone_id else None,
            state=state,
            cost=quote.cost,
            is_pickup=quote.is_pickup,
            free_shipping_applied=quote.free_shipping_applied,
        )
        return quote

    @staticmethod
    def _pickup_quote(session: Session, zone: ShippingZone | None = None) -> ShippingQuote:
        pickup = ShippingConfigStore.ensure_pickup(session)
        if not pickup.is_enabled:
            raise NotFoundError("Store pickup is not available")
        return ShippingQuote(
            method=zone.name if zone else "Store Pickup",
            cost=0.0,
            estimated_delivery_time=pickup.preparation_time,
            is_pickup=True,
            zone_id=zone.id if zone else None,
            zone_type=ZoneType.PICKUP.value,
            store_address=pickup.store_address,
            working_hours=pickup.working_hours,
            pickup_instructions=pickup.pickup_instructions,
        )

    @staticmethod
    def _zone_quote(
        zone: ShippingZone,
        shipping_settings: ShippingSettings,
        *,
        weight: float | None = None,
        item_count: int | None = None,
    ) -> ShippingQuote:
        cost = zone.price
        if weight is not None and weight > HEAVY_PARCEL_KG:
            cost += HEAVY_PARCEL_SURCHARGE
        if item_count is not None and item_count > BULK_ORDER_ITEMS:
            cost += BULK_ORDER_SURCHARGE
        return ShippingQuote(
            method=zone.name,
            cost=round(cost, 2),
            estimated_delivery_time=zone.estimated_delivery_time,
            carrier=zone.courier_partner or shipping_settings.default_courier_partner,
            zone_id=zone.id,
            zone_type=zone.type,
        )

    @staticmethod
    def find_zone_for_state(session: Session, state: str) -> ShippingZone | None:
        """First active zone serving ``state``: Abuja zone, direct match, then nationwide."""
        if is_abuja(state):
            abuja_zone = session.exec(
                select(ShippingZone)
                .where(
                    ShippingZone.is_active == True,  # noqa: E712
                    ShippingZone.type == ZoneType.ABUJA.value,
                )
                .order_by(ShippingZone.created_at)  # type: ignore[arg-type]
            ).first()
            if abuja_zone is not None:
                return abuja_zone

        interstate_zones = session.exec(
            select(ShippingZone)
            .where(
                ShippingZone.is_active == True,  # noqa: E712
                ShippingZone.type == ZoneType.INTERSTATE.value,
            )
            .order_by(ShippingZone.created_at)  # type: ignore[arg-type]
        ).all()

        target = state.strip().lower()
        for zone in interstate_zones:
            areas = _areas(zone)
            if target in areas or (is_abuja(state) and ABUJA_AREAS.intersection(areas)):
                return zone
        for zone in interstate_zones:
            if NATIONWIDE_AREAS.intersection(_areas(zone)):
                return zone
        return None

    @staticmethod
    def get_zone(session: Session, zone_id: str | uuid.UUID, active_only: bool = False) -> ShippingZone:
        try:
            key = zone_id if isinstance(zone_id, uuid.UUID) else uuid.UUID(str(zone_id))
        except ValueError:
            raise NotFoundError(f"Shipping zone not found: {zone_id}")
        zone = session.get(ShippingZone, key)
        if zone is None or (active_only and not zone.is_active):
            raise NotFoundError(f"Shipping zone not found: {zone_id}")
        return zone

    @staticmethod
    def list_zones(
        session: Session,
        *,
        state: str | None = None,
        zone_type: str | None = None,
        include_inactive: bool = False,
    ) -> list[ShippingZone]:
        statement = select(ShippingZone)
        if not include_inactive:
            statement = statement.where(ShippingZone.is_active == True)  # noqa: E712
        if zone_type:
            statement = statement.where(ShippingZone.type == zone_type)
        statement = statement.order_by(ShippingZone.price, ShippingZone.created_at)  # type: ignore[arg-type]
        zones = list(session.exec(statement).all())
        if state:
            zones = [zone for zone in zones if zone_matches_state(zone, state)]
        return zones

    @staticmethod
    def available_states(session: Session) -> list[str]:
        """Nigerian states named by active zones, with Abuja reported as FCT."""
        canonical = {name.lower(): name for name in NIGERIAN_STATES}
        found: set[str] = set()
        for zone in ShippingService.list_zones(session):
            for area in _areas(zone):
                if area in ABUJA_AREAS:
                    found.add("FCT")
                elif area in canonical:
                    found.add(canonical[area])
        return sorted(found)

    @staticmethod
    def _normalize_zone_fields(zone_type: str, areas: list[str]) -> list[str]:
        cleaned = [area.strip() for area in areas if area and area.strip()]
        if zone_type == ZoneType.ABUJA.value:
            return ["FCT"]
        if zone_type == ZoneType.INTERSTATE.value and not cleaned:
            raise ValidationError("Interstate zones must list at least one state")
        return cleaned

    @staticmethod
    def create_zone(session: Session, zone_in: ShippingZoneCreate) -> ShippingZone:
        data = zone_in.model_dump()
        data["type"] = ZoneType(zone_in.type).value
        data["areas"] = ShippingService._normalize_zone_fields(data["type"], zone_in.areas)
        zone = ShippingZone(**data)
        session.add(zone)
        session.commit()
        session.refresh(zone)
        logger.info("shipping_zone_created", zone_id=str(zone.id), name=zone.name, type=zone.type)
        return zone

    @staticmethod
    def update_zone(session: Session, zone_id: uuid.UUID, zone_in: ShippingZoneUpdate) -> ShippingZone:
        zone = ShippingService.get_zone(session, zone_id)
        nullable = {"courier_partner", "preparation_time"}
        changes = {
            field: value
            for field, value in zone_in.model_dump(exclude_unset=True).items()
            if value is not None or field in nullable
        }
        if "type" in changes:
            changes["type"] = ZoneType(changes["type"]).value
        if "areas" in changes or "type" in changes:
            changes["areas"] = ShippingService._normalize_zone_fields(
                changes.get("type", zone.type), changes.get("areas", zone.areas)
            )
        for field, value in changes.items():
            setattr(zone, field, value)
        zone.updated_at = get_datetime_utc()
        session.add(zone)
        session.commit()
        session.refresh(zone)
        logger.info("shipping_zone_updated", zone_id=str(zone.id), fields=sorted(changes))
        return zone

    @staticmethod
    def delete_zone(session: Session, zone_id: uuid.UUID) -> None:
        zone = ShippingService.get_zone(session, zone_id)
        session.delete(zone)
        session.commit()
        logger.info("shipping_zone_deleted", zone_id=str(zone_id))
