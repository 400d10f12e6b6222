"""
Catalog lookups used by cart and checkout: variant resolution, stock checks
and the post-payment stock decrement.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import case, update
from sqlmodel import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import stock_decrements_total
from app.models import Product, ProductVariant, VariantKey, get_datetime_utc

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedLine:
    """One checkout line with its price and stock taken from the catalog."""

    product: Product
    selection: VariantKey
    variant: ProductVariant | None
    quantity: int
    unit_price: float
    available_stock: int
    sku: str | None
    image: str | None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class CatalogService:
    @staticmethod
    def get_product(session: Session, product_id: uuid.UUID) -> Product:
        product = session.get(Product, product_id)
        if product is None or product.status != "active":
            raise NotFoundError(f"Product not found: {product_id}")
        return product

    @staticmethod
    def resolve_selection(
        session: Session, product_id: uuid.UUID, selection: VariantKey, quantity: int
    ) -> ResolvedLine:
        """
        Look up price and stock for a (product, color, size) selection.

        A product without variants sells every selection at its base price
        and stock. A product with variants must have a row for any
        non-default selection.

        Raises:
            NotFoundError: Unknown product, or variant missing from the matrix
        """
        product = CatalogService.get_product(session, product_id)
        matrix = product.variant_matrix
        variant = matrix.get(selection)

        if variant is None and matrix and not selection.is_default:
            raise NotFoundError(
                f"The selected variant ({selection.color}/{selection.size}) "
                f"is not available for {product.name}"
            )

        if variant is not None:
            unit_price = variant.price if variant.price is not None else product.price
            return ResolvedLine(
                product=product,
                selection=selection,
                variant=variant,
                quantity=quantity,
                unit_price=unit_price,
                available_stock=variant.stock,
                sku=variant.sku or product.sku,
                image=variant.image or product.image_url,
            )

        return ResolvedLine(
            product=product,
            selection=selection,
            variant=None,
            quantity=quantity,
            unit_price=product.price,
            available_stock=product.stock,
            sku=product.sku,
            image=product.image_url,
        )

    @staticmethod
    def check_stock(line: ResolvedLine) -> None:
        if line.available_stock < line.quantity:
            raise ValidationError(
                f"Insufficient stock for {line.product.name} "
                f"({line.selection.color}/{line.selection.size}). "
                f"Available: {line.available_stock}, requested: {line.quantity}"
            )

    @staticmethod
    def decrement_stock(
        session: Session, product_id: uuid.UUID, selection: VariantKey, quantity: int
    ) -> str:
        """
        Subtract ``quantity`` from the variant row for ``selection`` or, when
        the product has no such row, from the base stock. Runs as a single
        UPDATE that clamps at zero. Does not commit.

        Returns the decremented target: "variant" or "product".
        """
        variant_result = session.exec(  # type: ignore[call-overload]
            update(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.color == selection.color,
                ProductVariant.size == selection.size,
            )
            .values(
                stock=case(
                    (ProductVariant.stock >= quantity, ProductVariant.stock - quantity),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        target = "variant"
        if not variant_result.rowcount:
            target = "product"
            session.exec(  # type: ignore[call-overload]
                update(Product)
                .where(Product.id == product_id)
                .values(
                    stock=case((Product.stock >= quantity, Product.stock - quantity), else_=0),
                    updated_at=get_datetime_utc(),
                )
                .execution_options(synchronize_session=False)
            )

        stock_decrements_total.labels(target=target).inc()
        logger.debug(
            "stock_decremented",
            product_id=str(product_id),
            variant_key=str(selection),
            quantity=quantity,
            target=target,
        )
        return target
