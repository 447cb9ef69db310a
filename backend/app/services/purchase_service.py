# Overview: Service-layer operations for purchase orders and receiving stock against them.

"""
Purchase Service

LIFECYCLE:
  PENDING -> PARTIALLY_RECEIVED -> RECEIVED   (via receive_purchase)
  PENDING | PARTIALLY_RECEIVED -> CANCELLED   (via update_status)
  RECEIVED and CANCELLED are terminal.

Receiving increments stock through stock_service with a PURCHASE movement per
line, updates Product.cost to the received cost, and moves the order status,
all in one transaction. Stock already received stays when an order is later
cancelled.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, Supplier
from ..models.inventory import MOVEMENT_PURCHASE
from ..models.purchases import (
    PURCHASE_STATUS_CANCELLED,
    PURCHASE_STATUS_PARTIALLY_RECEIVED,
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_RECEIVED,
    PURCHASE_STATUSES,
)
from ..money import ZERO, quantize_money
from ..validation import (
    MAX_AMOUNT,
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_int,
)
from app.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_document_number
from .sales_service import TAX_RATE
from .stock_service import apply_delta

logger = logging.getLogger(__name__)

OPEN_STATUSES = (PURCHASE_STATUS_PENDING, PURCHASE_STATUS_PARTIALLY_RECEIVED)


def next_order_number() -> str:
    return next_document_number(document_type="PURCHASE", prefix="PO")


def normalize_status(value) -> str:
    status = value.strip().upper() if isinstance(value, str) else ""
    if status not in PURCHASE_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(s.lower() for s in PURCHASE_STATUSES)}",
            field="status",
        )
    return status


def _parse_items(items) -> list[tuple[int, int, Decimal]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Items must be an array with at least 1 item", field="items")

    lines = []
    for i, item in enumerate(items):
        prefix = f"items[{i}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object", field=prefix)
        if item.get("productId") in (None, ""):
            raise ValidationError("Product ID is required", field=f"{prefix}.productId")
        lines.append((
            parse_int(item.get("productId"), f"{prefix}.productId", minimum=1),
            parse_int(item.get("quantity"), f"{prefix}.quantity", minimum=1),
            parse_amount(item.get("unitCost"), f"{prefix}.unitCost"),
        ))
    return lines


def list_purchases(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    status: str | None = None,
) -> dict:
    """Paginated purchase orders, newest first."""
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Purchase).join(Supplier, Purchase.supplier_id == Supplier.id)
    if status:
        query = query.filter(Purchase.status == normalize_status(status))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Purchase.order_number.ilike(pattern),
                Supplier.name.ilike(pattern),
            )
        )

    total = query.with_entities(func.count(Purchase.id)).scalar() or 0
    purchases = (
        query.order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "purchases": [p.to_dict(include_items=False) for p in purchases],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


def create_purchase(payload: dict, user_id: int | None = None) -> Purchase:
    """
    Body: {supplierId, items: [{productId, quantity, unitCost}],
           expectedDeliveryDate?, paymentTerms?, notes?}

    The order is created PENDING; stock does not move until it is received.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("supplierId") in (None, ""):
        raise ValidationError("supplierId is required", field="supplierId")
    supplier_id = parse_int(payload.get("supplierId"), "supplierId", minimum=1)
    lines = _parse_items(payload.get("items"))

    expected = None
    if payload.get("expectedDeliveryDate") not in (None, ""):
        try:
            expected = parse_iso_datetime(payload["expectedDeliveryDate"]) \
                if isinstance(payload["expectedDeliveryDate"], str) else None
        except ValueError:
            expected = None
        if expected is None:
            raise ValidationError("expectedDeliveryDate must be an ISO-8601 date", field="expectedDeliveryDate")

    payment_terms = optional_text(payload, "paymentTerms", max_length=120)
    notes = optional_text(payload, "notes")

    subtotal = quantize_money(sum((cost * qty for _, qty, cost in lines), ZERO))
    tax_amount = quantize_money(subtotal * TAX_RATE)
    total_amount = subtotal + tax_amount
    if total_amount > MAX_AMOUNT:
        raise ValidationError(f"Purchase total cannot exceed {MAX_AMOUNT}", field="items")

    def _op():
        begin_write()
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier not found", field="supplierId")
        if not supplier.is_active:
            raise ValidationError("Supplier is inactive", field="supplierId")

        for i, (product_id, _, _) in enumerate(lines):
            if db.session.get(Product, product_id) is None:
                raise NotFoundError(f"Product {product_id} not found", field=f"items[{i}].productId")

        purchase = Purchase(
            order_number=next_order_number(),
            supplier_id=supplier_id,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=total_amount,
            status=PURCHASE_STATUS_PENDING,
            expected_delivery_date=expected,
            payment_terms=payment_terms,
            notes=notes,
            user_id=user_id,
        )
        for product_id, quantity, unit_cost in lines:
            purchase.items.append(
                PurchaseItem(
                    product_id=product_id,
                    quantity=quantity,
                    unit_cost=unit_cost,
                    total_cost=quantize_money(unit_cost * quantity),
                    received_quantity=0,
                )
            )
        db.session.add(purchase)
        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    logger.info("Purchase %s created for supplier %s: %s", purchase.order_number, supplier_id, total_amount)
    return purchase


def _parse_received_items(items) -> list[tuple[int, int, Decimal | None]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("receivedItems must be an array with at least 1 item", field="receivedItems")

    received = []
    for i, item in enumerate(items):
        prefix = f"receivedItems[{i}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object", field=prefix)
        cost = None
        if item.get("receivedCost") not in (None, ""):
            cost = parse_amount(item.get("receivedCost"), f"{prefix}.receivedCost")
        received.append((
            parse_int(item.get("itemId"), f"{prefix}.itemId", minimum=1),
            parse_int(item.get("receivedQuantity"), f"{prefix}.receivedQuantity", minimum=1),
            cost,
        ))
    return received


def receive_purchase(purchase_id: int, payload: dict, user_id: int | None = None) -> Purchase:
    """
    Body: {receivedItems: [{itemId, receivedQuantity, receivedCost?}]}

    receivedQuantity may not exceed what is still pending on the line.
    receivedCost defaults to the ordered unit cost and becomes the product's
    cost. The order ends RECEIVED once every line is complete, otherwise
    PARTIALLY_RECEIVED.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    received = _parse_received_items(payload.get("receivedItems"))

    def _op():
        begin_write()
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found")
        if purchase.status not in OPEN_STATUSES:
            raise ConflictError(f"Purchase is already {purchase.status.lower()}")

        items_by_id = {item.id: item for item in purchase.items}
        reference = f"Purchase {purchase.order_number}"
        for i, (item_id, quantity, cost) in enumerate(received):
            item = items_by_id.get(item_id)
            if item is None:
                raise NotFoundError(
                    f"Item {item_id} is not part of this purchase",
                    field=f"receivedItems[{i}].itemId",
                )
            if quantity > item.pending_quantity:
                raise ValidationError(
                    f"Received quantity exceeds pending quantity. Pending: {item.pending_quantity}",
                    field=f"receivedItems[{i}].receivedQuantity",
                )

            unit_cost = cost if cost is not None else item.unit_cost
            apply_delta(
                product_id=item.product_id,
                delta=quantity,
                movement_type=MOVEMENT_PURCHASE,
                reference=reference,
                user_id=user_id,
            )
            item.received_quantity = item.received_quantity + quantity
            item.received_cost = unit_cost
            item.product.cost = unit_cost

        if all(item.pending_quantity == 0 for item in purchase.items):
            purchase.status = PURCHASE_STATUS_RECEIVED
            purchase.received_at = utcnow()
        else:
            purchase.status = PURCHASE_STATUS_PARTIALLY_RECEIVED

        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    logger.info("Purchase %s received (%s)", purchase.order_number, purchase.status)
    return purchase


def update_status(purchase_id: int, status) -> Purchase:
    """
    Manual status change. Only open orders can be cancelled; receiving is
    done through receive_purchase. Requesting the current status is a no-op.
    """
    target = normalize_status(status)

    def _op():
        begin_write()
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found")

        if purchase.status == target:
            db.session.commit()
            return purchase
        if target != PURCHASE_STATUS_CANCELLED or purchase.status not in OPEN_STATUSES:
            raise ConflictError(f"Cannot change purchase status from {purchase.status} to {target}")

        purchase.status = target
        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    logger.info("Purchase %s status updated to %s", purchase.order_number, purchase.status)
    return purchase


def delete_purchase(purchase_id: int) -> str:
    """Delete an order nothing has been received against. Returns its number."""
    def _op():
        begin_write()
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found")
        if any(item.received_quantity for item in purchase.items):
            raise ConflictError("Cannot delete a purchase with received items")

        order_number = purchase.order_number
        db.session.delete(purchase)
        db.session.commit()
        return order_number

    order_number = run_with_retry(_op)
    logger.info("Purchase %s deleted", order_number)
    return order_number
