# Overview: Flask API routes for purchase orders and receiving; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import purchase_service
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _internal_error():
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """Query params: page, limit, search (order number or supplier), status."""
    try:
        result = purchase_service.list_purchases(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    return jsonify(result), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(purchase.to_dict()), 200


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Body: {supplierId, items: [{productId, quantity, unitCost}],
    expectedDeliveryDate?, paymentTerms?, notes?}
    """
    payload = request.get_json(silent=True)

    try:
        purchase = purchase_service.create_purchase(payload, user_id=g.current_user.id)
        current_app.logger.info(
            "User %s created purchase %s", g.current_user.username, purchase.order_number
        )
        return jsonify(purchase.to_dict()), 201

    except (ValidationError, NotFoundError) as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return _internal_error()


@purchases_bp.post("/<int:purchase_id>/receive")
@require_auth
def receive_purchase_route(purchase_id: int):
    """Body: {receivedItems: [{itemId, receivedQuantity, receivedCost?}]}"""
    payload = request.get_json(silent=True)

    try:
        purchase = purchase_service.receive_purchase(purchase_id, payload, user_id=g.current_user.id)
        current_app.logger.info(
            "User %s received purchase %s (%s)",
            g.current_user.username, purchase.order_number, purchase.status,
        )
        return jsonify(purchase.to_dict()), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to receive purchase %s", purchase_id)
        return _internal_error()


@purchases_bp.put("/<int:purchase_id>/status")
@require_auth
def update_purchase_status_route(purchase_id: int):
    """Body: {status: cancelled}"""
    payload = request.get_json(silent=True) or {}

    try:
        purchase = purchase_service.update_status(purchase_id, payload.get("status"))
        return jsonify(purchase.to_dict()), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update status of purchase %s", purchase_id)
        return _internal_error()


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
def delete_purchase_route(purchase_id: int):
    try:
        order_number = purchase_service.delete_purchase(purchase_id)
        current_app.logger.info("User %s deleted purchase %s", g.current_user.username, order_number)
        return jsonify({"message": f"Purchase {order_number} deleted"}), 200

    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to delete purchase %s", purchase_id)
        return _internal_error()
