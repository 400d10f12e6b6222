import uuid
from typing import Any

from sqlalchemy.orm import selectinload
from sqlmodel import Session, func, select

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models import (
    TERMINAL_ORDER_STATUSES,
    Order,
    OrderStatus,
    User,
    get_datetime_utc,
)
from app.schemas import OrderStatusUpdate
from app.services.notification_service import NotificationService

logger = get_logger(__name__)


class OrderService:
    @staticmethod
    def get_order(session: Session, order_id: uuid.UUID) -> Order:
        order = session.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    @staticmethod
    def get_order_for(session: Session, order_id: uuid.UUID, user: User) -> Order:
        """Owner or admin only."""
        order = OrderService.get_order(session, order_id)
        if order.user_id != user.id and not user.is_admin:
            logger.warning(
                "order_access_denied", order_id=str(order_id), user_id=str(user.id)
            )
            raise AuthorizationError("Not authorized to view this order")
        return order

    @staticmethod
    def list_for_user(session: Session, user_id: uuid.UUID) -> list[Order]:
        statement = (
            select(Order)
            .where(Order.user_id == user_id)
            .options(selectinload(Order.items))  # type: ignore[arg-type]
            .order_by(Order.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list_orders(
        session: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        status: str | None = None,
        payment_status: str | None = None,
    ) -> tuple[list[Order], int]:
        filters = []
        if status:
            filters.append(Order.status == status)
        if payment_status:
            filters.append(Order.payment_status == payment_status)

        count = session.exec(select(func.count()).select_from(Order).where(*filters)).one()
        statement = (
            select(Order)
            .where(*filters)
            .options(selectinload(Order.items))  # type: ignore[arg-type]
            .order_by(Order.created_at.desc())  # type: ignore[attr-defined]
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(statement).all()), count

    @staticmethod
    async def update_status(
        session: Session,
        notifier: NotificationService,
        order_id: uuid.UUID,
        update: OrderStatusUpdate,
    ) -> Order:
        """
        Admin status change with tracking details. Terminal orders are
        frozen. The customer is emailed after the change is committed.
        """
        order = OrderService.get_order(session, order_id)
        previous_status = order.status
        new_status = OrderStatus(update.status).value

        if previous_status in TERMINAL_ORDER_STATUSES and new_status != previous_status:
            raise ValidationError(
                f"Order {order.order_number} is {previous_status} and can no longer change status"
            )

        now = get_datetime_utc()
        tracking: dict[str, Any] = dict(order.tracking_info or {})
        if update.tracking_info:
            tracking.update(update.tracking_info)

        status_changed = new_status != previous_status
        if status_changed and new_status == OrderStatus.SHIPPED.value:
            tracking.setdefault("shipped_at", now.isoformat())
        if status_changed and new_status == OrderStatus.DELIVERED.value:
            tracking["delivered_at"] = now.isoformat()

        order.status = new_status
        order.tracking_info = tracking or None
        order.updated_at = now
        session.add(order)
        session.commit()
        session.refresh(order)

        logger.info(
            "order_status_updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous_status,
            status=new_status,
        )

        user = session.get(User, order.user_id)
        if user is None or not status_changed:
            return order

        if new_status == OrderStatus.SHIPPED.value and update.tracking_info:
            await notifier.order_shipped(order, user)
        elif new_status == OrderStatus.DELIVERED.value:
            await notifier.order_delivered(order, user)
        else:
            await notifier.order_status_changed(order, user, previous_status)
        return order
