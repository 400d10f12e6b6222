import uuid
from typing import Any

from fastapi import APIRouter

from app.core.logging import get_logger
from app.deps import CurrentUser, SessionDep
from app.schemas import CartItemAdd, CartItemUpdate
from app.services import CartService

router = APIRouter(prefix="/cart", tags=["cart"])
logger = get_logger(__name__)


@router.get("")
async def read_cart(session: SessionDep, user: CurrentUser) -> Any:
    cart = CartService.get_or_create(session, user)
    return {"success": True, "data": CartService.to_public(cart).model_dump(mode="json")}


@router.post("/add")
async def add_to_cart(session: SessionDep, user: CurrentUser, item_in: CartItemAdd) -> Any:
    cart = CartService.add_item(session, user, item_in)
    return {"success": True, "data": CartService.to_public(cart).model_dump(mode="json")}


@router.patch("/update/{item_id}")
async def update_cart_item(
    item_id: uuid.UUID, session: SessionDep, user: CurrentUser, item_in: CartItemUpdate
) -> Any:
    cart = CartService.update_item(session, user, item_id, item_in)
    return {"success": True, "data": CartService.to_public(cart).model_dump(mode="json")}


@router.delete("/remove/{item_id}")
async def remove_cart_item(item_id: uuid.UUID, session: SessionDep, user: CurrentUser) -> Any:
    cart = CartService.remove_item(session, user, item_id)
    return {"success": True, "data": CartService.to_public(cart).model_dump(mode="json")}


@router.delete("/clear")
async def clear_cart(session: SessionDep, user: CurrentUser) -> Any:
    cart = CartService.get_or_create(session, user)
    CartService.clear(session, cart)
    session.commit()
    logger.info("cart_cleared", cart_id=str(cart.id), user_id=str(user.id))
    return {"success": True, "message": "Cart cleared"}
