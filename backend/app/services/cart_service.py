import uuid

from sqlmodel import Session, select

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models import Cart, CartItem, CartPublic, User, VariantKey, get_datetime_utc
from app.schemas import CartItemAdd, CartItemUpdate
from app.services.catalog_service import CatalogService

logger = get_logger(__name__)


class CartService:
    @staticmethod
    def get_for_user(session: Session, user_id: uuid.UUID) -> Cart | None:
        return session.exec(select(Cart).where(Cart.user_id == user_id)).first()

    @staticmethod
    def get_or_create(session: Session, user: User) -> Cart:
        cart = CartService.get_for_user(session, user.id)
        if cart is None:
            cart = Cart(user_id=user.id)
            session.add(cart)
            session.commit()
            session.refresh(cart)
        return cart

    @staticmethod
    def add_item(session: Session, user: User, item_in: CartItemAdd) -> Cart:
        """
        Add a product selection, merging with an existing line for the same
        product and variant. Quantity is checked against current stock.
        """
        cart = CartService.get_or_create(session, user)
        selection = VariantKey(item_in.color, item_in.size)
        line = CatalogService.resolve_selection(
            session, item_in.product_id, selection, item_in.quantity
        )

        existing = next(
            (
                item
                for item in cart.items
                if item.product_id == item_in.product_id and item.variant_key == selection
            ),
            None,
        )
        requested = item_in.quantity + (existing.quantity if existing else 0)
        if requested > line.available_stock:
            raise ValidationError(
                f"Only {line.available_stock} of {line.product.name} "
                f"({selection.color}/{selection.size}) in stock"
            )

        if existing is not None:
            existing.quantity = requested
            existing.price = line.unit_price
            session.add(existing)
        else:
            cart.items.append(
                CartItem(
                    product_id=line.product.id,
                    product_name=line.product.name,
                    quantity=item_in.quantity,
                    price=line.unit_price,
                    color=selection.color,
                    size=selection.size,
                    variant_sku=line.sku,
                    variant_image=line.image,
                )
            )

        cart.updated_at = get_datetime_utc()
        session.add(cart)
        session.commit()
        session.refresh(cart)

        logger.info(
            "cart_item_added",
            cart_id=str(cart.id),
            product_id=str(item_in.product_id),
            variant_key=str(selection),
            quantity=requested,
        )
        return cart

    @staticmethod
    def _find_item(session: Session, user: User, item_id: uuid.UUID) -> tuple[Cart, CartItem]:
        cart = CartService.get_for_user(session, user.id)
        if cart is None:
            raise NotFoundError("Cart not found")
        item = next((item for item in cart.items if item.id == item_id), None)
        if item is None:
            raise NotFoundError("Item not found in cart")
        return cart, item

    @staticmethod
    def update_item(
        session: Session, user: User, item_id: uuid.UUID, item_in: CartItemUpdate
    ) -> Cart:
        """
        Set the quantity of one cart line. The new quantity is checked
        against the stock of the line's variant.

        Raises:
            NotFoundError: No cart, no such line, or the product is gone
            ValidationError: Not enough stock
        """
        cart, item = CartService._find_item(session, user, item_id)
        line = CatalogService.resolve_selection(
            session, item.product_id, item.variant_key, item_in.quantity
        )
        if item_in.quantity > line.available_stock:
            raise ValidationError(
                f"Insufficient stock for this variant ({item.color}/{item.size})"
            )

        item.quantity = item_in.quantity
        item.price = line.unit_price
        cart.updated_at = get_datetime_utc()
        session.add(item)
        session.add(cart)
        session.commit()
        session.refresh(cart)

        logger.info(
            "cart_item_updated",
            cart_id=str(cart.id),
            item_id=str(item_id),
            quantity=item_in.quantity,
        )
        return cart

    @staticmethod
    def remove_item(session: Session, user: User, item_id: uuid.UUID) -> Cart:
        cart, item = CartService._find_item(session, user, item_id)
        cart.items.remove(item)
        cart.updated_at = get_datetime_utc()
        session.add(cart)
        session.commit()
        session.refresh(cart)

        logger.info("cart_item_removed", cart_id=str(cart.id), item_id=str(item_id))
        return cart

    @staticmethod
    def clear(session: Session, cart: Cart) -> None:
        """Remove all lines, keep the cart row. Does not commit."""
        cart.items = []
        cart.updated_at = get_datetime_utc()
        session.add(cart)

    @staticmethod
    def total(cart: Cart) -> float:
        return round(sum(item.price * item.quantity for item in cart.items), 2)

    @staticmethod
    def to_public(cart: Cart) -> CartPublic:
        return CartPublic.model_validate(cart, update={"total_amount": CartService.total(cart)})
