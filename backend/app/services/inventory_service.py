# Overview: Service-layer operations for manual inventory changes; every write goes through stock_service.

# backend/app/services/inventory_service.py

from __future__ import annotations

import logging

from ..extensions import db
from ..models import InventoryMovement, Product
from ..models.inventory import (
    ADJUSTMENT_INBOUND_TYPES,
    ADJUSTMENT_TYPES,
    MOVEMENT_STOCKTAKE,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TRANSFER_OUT,
    MOVEMENT_TYPES,
)
from ..validation import NotFoundError, ValidationError, optional_text, parse_int
from app.time_utils import parse_iso_datetime
from .concurrency import begin_write, run_with_retry
from .stock_service import apply_delta, record_movement, set_stock

logger = logging.getLogger(__name__)


def _require_reason(payload: dict) -> str:
    reason = optional_text(payload, "reason", max_length=255)
    if not reason or len(reason) < 3:
        raise ValidationError("reason must be at least 3 characters", field="reason")
    return reason


def _get_product(product_id: int, field: str = "productId") -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", field=field)
    return product


def create_adjustment(payload: dict, user_id: int | None = None) -> InventoryMovement:
    """
    Manual stock correction.

    ADJUSTMENT and FOUND add the quantity (ADJUSTMENT may be negative);
    DAMAGED, EXPIRED and LOST always subtract its absolute value.
    The result may not go below zero.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    product_id = parse_int(payload.get("productId"), "productId", minimum=1)
    quantity = parse_int(payload.get("quantity"), "quantity")
    adjustment_type = payload.get("type")
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ADJUSTMENT_TYPES)}", field="type")
    reason = _require_reason(payload)
    notes = optional_text(payload, "notes")

    delta = quantity if adjustment_type in ADJUSTMENT_INBOUND_TYPES else -abs(quantity)
    if delta == 0:
        raise ValidationError("quantity must be non-zero", field="quantity")

    def _op():
        begin_write()
        _get_product(product_id)
        movement = apply_delta(
            product_id=product_id,
            delta=delta,
            movement_type=adjustment_type,
            reference=reason,
            notes=notes,
            user_id=user_id,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    logger.info("Inventory adjustment %s product=%s delta=%s", adjustment_type, product_id, delta)
    return movement


def create_transfer(payload: dict, user_id: int | None = None) -> tuple[InventoryMovement, InventoryMovement]:
    """Move units from one product to another (repacking, relabelling)."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    from_id = parse_int(payload.get("fromProductId"), "fromProductId", minimum=1)
    to_id = parse_int(payload.get("toProductId"), "toProductId", minimum=1)
    quantity = parse_int(payload.get("quantity"), "quantity", minimum=1)
    reason = _require_reason(payload)
    notes = optional_text(payload, "notes")

    if from_id == to_id:
        raise ValidationError("Cannot transfer to the same product", field="toProductId")

    def _op():
        begin_write()
        source = _get_product(from_id, "fromProductId")
        target = _get_product(to_id, "toProductId")
        detail = f"{reason} - {notes}" if notes else reason

        outbound = apply_delta(
            product_id=from_id,
            delta=-quantity,
            movement_type=MOVEMENT_TRANSFER_OUT,
            reference=f"Transfer to {target.name}",
            notes=detail,
            user_id=user_id,
        )
        inbound = apply_delta(
            product_id=to_id,
            delta=quantity,
            movement_type=MOVEMENT_TRANSFER_IN,
            reference=f"Transfer from {source.name}",
            notes=detail,
            user_id=user_id,
        )
        db.session.commit()
        return outbound, inbound

    movements = run_with_retry(_op)
    logger.info("Inventory transfer of %s units from product %s to %s", quantity, from_id, to_id)
    return movements


def create_stocktake(payload: dict, user_id: int | None = None) -> list[InventoryMovement]:
    """
    Apply physical counts. Products whose count matches are skipped; every
    other product gets a STOCKTAKE movement with the signed difference.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    adjustments = payload.get("adjustments")
    if not isinstance(adjustments, list) or not adjustments:
        raise ValidationError("adjustments must be a non-empty array", field="adjustments")

    counts: list[tuple[int, int, str | None]] = []
    seen: set[int] = set()
    for i, entry in enumerate(adjustments):
        if not isinstance(entry, dict):
            raise ValidationError(f"adjustments[{i}] must be an object", field=f"adjustments[{i}]")
        product_id = parse_int(entry.get("productId"), f"adjustments[{i}].productId", minimum=1)
        if product_id in seen:
            raise ValidationError("Each product may appear only once", field=f"adjustments[{i}].productId")
        seen.add(product_id)
        actual = parse_int(entry.get("actualStock"), f"adjustments[{i}].actualStock", minimum=0)
        counts.append((product_id, actual, optional_text(entry, "notes")))

    def _op():
        begin_write()
        products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(seen)).all()}
        if len(products) != len(seen):
            raise NotFoundError("One or more products not found", field="adjustments")

        movements = []
        for product_id, actual, notes in counts:
            expected = products[product_id].stock
            if actual == expected:
                continue
            previous, new = set_stock(product_id, expected, actual)
            movements.append(
                record_movement(
                    product_id=product_id,
                    movement_type=MOVEMENT_STOCKTAKE,
                    quantity=new - previous,
                    previous_stock=previous,
                    new_stock=new,
                    reference="Stocktake adjustment",
                    notes=notes or f"Adjusted from {previous} to {new}",
                    user_id=user_id,
                )
            )
        db.session.commit()
        return movements

    movements = run_with_retry(_op)
    logger.info("Stocktake recorded for %s products", len(movements))
    return movements


def list_movements(
    *,
    page: int | None = None,
    limit: int | None = None,
    product_id: int | None = None,
    movement_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(InventoryMovement)
    if product_id:
        query = query.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError("Unknown movement type", field="type")
        query = query.filter(InventoryMovement.type == movement_type)

    try:
        start = parse_iso_datetime(start_date)
        end = parse_iso_datetime(end_date)
    except ValueError:
        raise ValidationError("startDate/endDate must be ISO-8601 dates", field="startDate")
    if start is not None:
        query = query.filter(InventoryMovement.created_at >= start)
    if end is not None:
        query = query.filter(InventoryMovement.created_at <= end)

    total = query.count()
    movements = (
        query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "movements": [m.to_dict() for m in movements],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
