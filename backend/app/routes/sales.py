# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""
Sales API routes.

POST creates a sale atomically (stock, movements, credit); PUT /status moves
it through PENDING -> PAID -> CANCELLED; DELETE removes non-paid sales.
Missing customers or products during creation are request errors (400), not
404s, because the sale itself does not exist yet.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.stock_service import InsufficientStockError
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _internal_error():
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params: page, limit (max 100), search (invoice or customer),
    status (pending|completed|paid|cancelled).
    """
    try:
        result = sales_service.list_sales(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return _internal_error()


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify(sale.to_dict()), 200

    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to fetch sale %s", sale_id)
        return _internal_error()


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Body: {customerId?, customerName?, items: [{productId, quantity, unitPrice}],
    paymentMethod, notes?, discount?}
    """
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.create_sale(payload, user_id=g.current_user.id)
        current_app.logger.info(
            "User %s created sale %s", g.current_user.username, sale.invoice_number
        )
        return jsonify(sale.to_dict()), 201

    except (ValidationError, NotFoundError, InsufficientStockError) as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return _internal_error()


@sales_bp.put("/<int:sale_id>/status")
@require_auth
def update_sale_status_route(sale_id: int):
    """Body: {status: pending|completed|cancelled}"""
    payload = request.get_json(silent=True) or {}

    try:
        sale = sales_service.update_status(sale_id, payload.get("status"), user_id=g.current_user.id)
        current_app.logger.info(
            "User %s set sale %s to %s", g.current_user.username, sale.invoice_number, sale.status
        )
        return jsonify(sale.to_dict()), 200

    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except (ValidationError, ConflictError) as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to update status of sale %s", sale_id)
        return _internal_error()


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    try:
        invoice_number = sales_service.delete_sale(sale_id, user_id=g.current_user.id)
        current_app.logger.info("User %s deleted sale %s", g.current_user.username, invoice_number)
        return jsonify({"message": f"Sale {invoice_number} deleted"}), 200

    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return _internal_error()
