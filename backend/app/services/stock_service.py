# Overview: Stock ledger primitives; the only code allowed to write Product.stock.

"""
Stock invariants (authoritative)

- Product.stock is the quantity on hand and is never negative.
- Every write is a single conditional UPDATE evaluated by the database:
      UPDATE products SET stock = stock - :qty WHERE id = :id AND stock >= :qty
  so a concurrent writer can never observe a stale value and oversell.
  There is no read-check-then-write anywhere in the sales path.
- previous/new stock returned by a primitive are derived from the row as it
  is after the UPDATE, inside the same transaction.
- Every stock change is paired with an InventoryMovement row written in the
  same transaction (record_movement). Callers own commit/rollback.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..extensions import db
from ..models import InventoryMovement, Product
from ..validation import ConflictError, NotFoundError, ServiceError, ValidationError

logger = logging.getLogger(__name__)


class InsufficientStockError(ServiceError, ValueError):
    """Requested quantity exceeds what is on hand."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product: Product, requested: int, available: int | None = None):
        available = product.stock if available is None else available
        super().__init__(
            f"Insufficient stock for product {product.name}. Available: {available}",
            details={
                "productId": product.id,
                "product": product.name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product.id
        self.requested = requested
        self.available = available


def _current_stock(product_id: int) -> int | None:
    # populate_existing refreshes any Product already in the identity map
    product = db.session.get(Product, product_id, populate_existing=True)
    return product.stock if product is not None else None


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", field="quantity")


def decrement_stock(product_id: int, quantity: int) -> tuple[int, int]:
    """
    Atomically subtract quantity from on-hand stock.

    Returns (previous_stock, new_stock).
    Raises NotFoundError if the product is missing and InsufficientStockError
    if the result would be negative; in both cases nothing is written.
    """
    _require_positive(quantity)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        product = db.session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", field="productId")
        raise InsufficientStockError(product, quantity)

    new_stock = _current_stock(product_id)
    return new_stock + quantity, new_stock


def increment_stock(product_id: int, quantity: int) -> tuple[int, int]:
    """
    Atomically add quantity to on-hand stock. max_stock is not enforced.

    Returns (previous_stock, new_stock).
    """
    _require_positive(quantity)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError(f"Product {product_id} not found", field="productId")

    new_stock = _current_stock(product_id)
    return new_stock - quantity, new_stock


def set_stock(product_id: int, expected: int, actual: int) -> tuple[int, int]:
    """
    Compare-and-set used by stocktakes: write `actual` only if the row still
    holds `expected`. Raises ConflictError if stock moved in between.
    """
    if actual < 0:
        raise ValidationError("actualStock must be >= 0", field="actualStock")

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock == expected)
        .values(stock=actual)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = _current_stock(product_id)
        if current is None:
            raise NotFoundError(f"Product {product_id} not found", field="productId")
        raise ConflictError(
            "Stock changed while the count was being recorded",
            details={"productId": product_id, "expected": expected, "current": current},
        )
    _current_stock(product_id)
    return expected, actual


def record_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    previous_stock: int | None,
    new_stock: int | None,
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Append an InventoryMovement (no commit)."""
    movement = InventoryMovement(
        product_id=product_id,
        type=movement_type,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference=reference,
        notes=notes,
        user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    logger.debug(
        "Stock movement %s product=%s delta=%s %s->%s",
        movement_type, product_id, quantity, previous_stock, new_stock,
    )
    return movement


def apply_delta(
    *,
    product_id: int,
    delta: int,
    movement_type: str,
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Signed stock change plus its movement row, in the caller's transaction."""
    if delta == 0:
        raise ValidationError("quantity must be non-zero", field="quantity")
    if delta < 0:
        previous, new = decrement_stock(product_id, -delta)
    else:
        previous, new = increment_stock(product_id, delta)
    return record_movement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=delta,
        previous_stock=previous,
        new_stock=new,
        reference=reference,
        notes=notes,
        user_id=user_id,
    )
