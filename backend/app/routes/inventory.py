# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/app/routes/inventory.py
"""
Inventory routes: movement history and manual stock changes.

Every change is booked as an InventoryMovement by inventory_service; stock
is never edited directly.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service
from ..services.stock_service import InsufficientStockError
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    """
    Query params: page, limit, productId, type, startDate, endDate (ISO-8601).
    """
    try:
        result = inventory_service.list_movements(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            product_id=request.args.get("productId", type=int),
            movement_type=request.args.get("type"),
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    return jsonify(result), 200


@inventory_bp.post("/adjustment")
@require_auth
def adjustment_route():
    """Body: {productId, quantity, type, reason, notes?}"""
    payload = request.get_json(silent=True)

    try:
        movement = inventory_service.create_adjustment(payload, user_id=g.current_user.id)
    except (ValidationError, InsufficientStockError) as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to create inventory adjustment")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify(movement.to_dict()), 201


@inventory_bp.post("/transfer")
@require_auth
def transfer_route():
    """Body: {fromProductId, toProductId, quantity, reason, notes?}"""
    payload = request.get_json(silent=True)

    try:
        outbound, inbound = inventory_service.create_transfer(payload, user_id=g.current_user.id)
    except (ValidationError, InsufficientStockError) as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to create inventory transfer")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify({"outbound": outbound.to_dict(), "inbound": inbound.to_dict()}), 201


@inventory_bp.post("/stocktake")
@require_auth
def stocktake_route():
    """Body: {adjustments: [{productId, actualStock, notes?}]}"""
    payload = request.get_json(silent=True)

    try:
        movements = inventory_service.create_stocktake(payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to record stocktake")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify({
        "adjusted": len(movements),
        "movements": [m.to_dict() for m in movements],
    }), 201
