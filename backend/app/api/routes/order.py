import uuid
from typing import Any

from fastapi import APIRouter

from app.core.logging import get_logger
from app.deps import AdminUser, CurrentUser, NotifierDep, SessionDep
from app.models import OrderPublic, OrdersPublic
from app.schemas import OrderStatusUpdate
from app.services import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])
logger = get_logger(__name__)


@router.get("/my-orders", response_model=OrdersPublic)
async def read_my_orders(session: SessionDep, user: CurrentUser) -> Any:
    """Orders placed by the authenticated user, newest first"""
    orders = OrderService.list_for_user(session, user.id)
    logger.debug("user_orders_retrieved", user_id=str(user.id), count=len(orders))
    return OrdersPublic(
        data=[OrderPublic.model_validate(order) for order in orders], count=len(orders)
    )


@router.get("/", response_model=OrdersPublic)
async def read_orders(
    session: SessionDep,
    admin: AdminUser,
    skip: int = 0,
    limit: int = 100,
    status: str | None = None,
    payment_status: str | None = None,
) -> Any:
    """Get all orders with pagination"""
    logger.debug("orders_list_requested", skip=skip, limit=limit, status=status)

    orders, count = OrderService.list_orders(
        session, skip=skip, limit=limit, status=status, payment_status=payment_status
    )

    logger.info(
        "orders_list_retrieved",
        count=count,
        returned=len(orders),
        skip=skip,
        limit=limit,
    )

    return OrdersPublic(
        data=[OrderPublic.model_validate(order) for order in orders], count=count
    )


@router.get("/{order_id}", response_model=OrderPublic)
async def read_order(order_id: uuid.UUID, session: SessionDep, user: CurrentUser) -> Any:
    return OrderService.get_order_for(session, order_id, user)


@router.patch("/{order_id}", response_model=OrderPublic)
async def update_order_status(
    order_id: uuid.UUID,
    session: SessionDep,
    admin: AdminUser,
    notifier: NotifierDep,
    status_in: OrderStatusUpdate,
) -> Any:
    """Move an order through fulfilment and email the customer"""
    return await OrderService.update_status(session, notifier, order_id, status_in)
