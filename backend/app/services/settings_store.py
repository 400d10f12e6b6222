"""
Shipping configuration store

Store pickup and global shipping settings are single rows (id=1). Readers
call ``ensure_*``, which returns the row and creates it from the configured
defaults the first time. ``ensure_*`` only flushes; the caller's commit
persists a freshly created row.
"""

from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel

from app.core.config import settings
from app.core.logging import get_logger
from app.models import ShippingSettings, StorePickup, get_datetime_utc
from app.schemas import ShippingSettingsUpdate, StorePickupUpdate

logger = get_logger(__name__)

SINGLETON_ID = 1

T = TypeVar("T", StorePickup, ShippingSettings)


class ShippingConfigStore:
    """Get-or-create access to the pickup and shipping settings singletons"""

    @staticmethod
    def _ensure(session: Session, model: type[T], defaults: dict) -> T:
        row = session.get(model, SINGLETON_ID)
        if row is not None:
            return row

        row = model(id=SINGLETON_ID, **defaults)
        session.add(row)
        try:
            session.flush()
        except IntegrityError:
            # Another request created it first
            session.rollback()
            existing = session.get(model, SINGLETON_ID)
            if existing is None:
                raise
            return existing

        logger.info("shipping_config_created", table=model.__tablename__)
        return row

    @staticmethod
    def ensure_pickup(session: Session) -> StorePickup:
        return ShippingConfigStore._ensure(
            session,
            StorePickup,
            {
                "is_enabled": True,
                "store_address": settings.DEFAULT_STORE_ADDRESS,
                "working_hours": settings.DEFAULT_STORE_WORKING_HOURS,
                "preparation_time": settings.DEFAULT_PICKUP_PREPARATION_TIME,
                "pickup_instructions": settings.DEFAULT_PICKUP_INSTRUCTIONS,
            },
        )

    @staticmethod
    def ensure_settings(session: Session) -> ShippingSettings:
        return ShippingConfigStore._ensure(
            session,
            ShippingSettings,
            {
                "free_delivery_threshold": settings.DEFAULT_FREE_DELIVERY_THRESHOLD,
                "default_courier_partner": settings.DEFAULT_COURIER_PARTNER,
                "max_delivery_days": settings.DEFAULT_MAX_DELIVERY_DAYS,
                "enable_cash_on_delivery": True,
            },
        )

    @staticmethod
    def _apply(session: Session, row: SQLModel, changes: dict) -> None:
        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_at = get_datetime_utc()  # type: ignore[attr-defined]
        session.add(row)
        session.commit()
        session.refresh(row)

    @staticmethod
    def update_pickup(session: Session, update: StorePickupUpdate) -> StorePickup:
        pickup = ShippingConfigStore.ensure_pickup(session)
        changes = update.model_dump(exclude_unset=True)
        ShippingConfigStore._apply(session, pickup, changes)
        logger.info("store_pickup_updated", fields=sorted(changes))
        return pickup

    @staticmethod
    def update_settings(session: Session, update: ShippingSettingsUpdate) -> ShippingSettings:
        shipping_settings = ShippingConfigStore.ensure_settings(session)
        changes = update.model_dump(exclude_unset=True)
        ShippingConfigStore._apply(session, shipping_settings, changes)
        logger.info("shipping_settings_updated", fields=sorted(changes))
        return shipping_settings
