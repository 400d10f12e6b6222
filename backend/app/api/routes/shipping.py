import uuid
from typing import Any

from fastapi import APIRouter

from app.core.logging import get_logger
from app.deps import AdminUser, SessionDep
from app.models import ShippingSettingsPublic, ShippingZonePublic, StorePickupPublic, ZoneType
from app.schemas import (
    ShippingCalculationRequest,
    ShippingSettingsUpdate,
    ShippingZoneCreate,
    ShippingZoneUpdate,
    StorePickupUpdate,
)
from app.services import ShippingConfigStore, ShippingService

router = APIRouter(prefix="/shipping", tags=["shipping"])
logger = get_logger(__name__)


def _zones_payload(zones) -> list[dict[str, Any]]:
    return [ShippingZonePublic.model_validate(zone).model_dump(mode="json") for zone in zones]


def _pickup_payload(pickup) -> dict[str, Any]:
    return StorePickupPublic.model_validate(pickup).model_dump(mode="json")


def _settings_payload(shipping_settings) -> dict[str, Any]:
    return ShippingSettingsPublic.model_validate(shipping_settings).model_dump(mode="json")


@router.get("/zones")
async def read_zones(session: SessionDep, state: str | None = None) -> Any:
    """Active zones, optionally only those serving ``state``"""
    zones = ShippingService.list_zones(session, state=state)
    return {"success": True, "data": _zones_payload(zones), "count": len(zones)}


@router.get("/zones/type/{zone_type}")
async def read_zones_by_type(zone_type: ZoneType, session: SessionDep) -> Any:
    zones = ShippingService.list_zones(session, zone_type=zone_type.value)
    return {"success": True, "data": _zones_payload(zones), "count": len(zones)}


@router.get("/zones/{zone_id}")
async def read_zone(zone_id: uuid.UUID, session: SessionDep) -> Any:
    zone = ShippingService.get_zone(session, zone_id, active_only=True)
    return {"success": True, "data": ShippingZonePublic.model_validate(zone).model_dump(mode="json")}


@router.post("/calculate")
async def calculate_shipping(session: SessionDep, calculation_in: ShippingCalculationRequest) -> Any:
    """Quote a zone, state or pickup selection for an order value"""
    quote = ShippingService.resolve(
        session,
        zone_id=calculation_in.zone_id,
        state=calculation_in.state,
        is_pickup=calculation_in.is_pickup,
        order_subtotal=calculation_in.order_value,
        weight=calculation_in.weight,
        item_count=calculation_in.item_count,
    )
    session.commit()
    return {"success": True, "data": quote.model_dump(mode="json")}


@router.get("/pickup")
async def read_pickup(session: SessionDep) -> Any:
    pickup = ShippingConfigStore.ensure_pickup(session)
    session.commit()
    return {"success": True, "data": _pickup_payload(pickup)}


@router.get("/settings")
async def read_settings(session: SessionDep) -> Any:
    shipping_settings = ShippingConfigStore.ensure_settings(session)
    session.commit()
    return {"success": True, "data": _settings_payload(shipping_settings)}


@router.get("/states")
async def read_states(session: SessionDep) -> Any:
    """States with at least one active delivery zone"""
    return {"success": True, "data": ShippingService.available_states(session)}


# Admin


@router.get("/admin/zones")
async def admin_read_zones(session: SessionDep, admin: AdminUser) -> Any:
    zones = ShippingService.list_zones(session, include_inactive=True)
    return {"success": True, "data": _zones_payload(zones), "count": len(zones)}


@router.post("/admin/zones", status_code=201)
async def create_zone(session: SessionDep, admin: AdminUser, zone_in: ShippingZoneCreate) -> Any:
    zone = ShippingService.create_zone(session, zone_in)
    return {"success": True, "data": ShippingZonePublic.model_validate(zone).model_dump(mode="json")}


@router.put("/admin/zones/{zone_id}")
async def update_zone(
    zone_id: uuid.UUID, session: SessionDep, admin: AdminUser, zone_in: ShippingZoneUpdate
) -> Any:
    zone = ShippingService.update_zone(session, zone_id, zone_in)
    return {"success": True, "data": ShippingZonePublic.model_validate(zone).model_dump(mode="json")}


@router.delete("/admin/zones/{zone_id}")
async def delete_zone(zone_id: uuid.UUID, session: SessionDep, admin: AdminUser) -> Any:
    ShippingService.delete_zone(session, zone_id)
    return {"success": True, "message": "Shipping zone deleted"}


@router.put("/admin/pickup")
async def update_pickup(session: SessionDep, admin: AdminUser, pickup_in: StorePickupUpdate) -> Any:
    pickup = ShippingConfigStore.update_pickup(session, pickup_in)
    return {"success": True, "data": _pickup_payload(pickup)}


@router.put("/admin/settings")
async def update_settings(
    session: SessionDep, admin: AdminUser, settings_in: ShippingSettingsUpdate
) -> Any:
    shipping_settings = ShippingConfigStore.update_settings(session, settings_in)
    return {"success": True, "data": _settings_payload(shipping_settings)}
