# Overview: Flask API routes for customer credits and credit payments.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import credit_service
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth

credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.get("")
@require_auth
def list_credits_route():
    """Query params: page, limit, status (active|overdue|defaulted|paid|cancelled), customerId."""
    try:
        result = credit_service.list_credits(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            status=request.args.get("status"),
            customer_id=request.args.get("customerId", type=int),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    return jsonify(result), 200


@credits_bp.get("/<int:credit_id>")
@require_auth
def get_credit_route(credit_id: int):
    try:
        credit = credit_service.get_credit(credit_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(credit.to_dict(include_payments=True)), 200


@credits_bp.post("")
@require_auth
def create_credit_route():
    """Body: {customerId, amount, dueDate, interestRate?, saleId?, notes?}"""
    payload = request.get_json(silent=True)

    try:
        credit = credit_service.create_credit(payload, user_id=g.current_user.id)
    except (ValidationError, NotFoundError) as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to create credit")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify(credit.to_dict(include_payments=True)), 201


@credits_bp.post("/<int:credit_id>/payments")
@require_auth
def add_payment_route(credit_id: int):
    """Body: {amount, paymentMethod, paymentDate?, reference?, notes?}"""
    payload = request.get_json(silent=True)

    try:
        payment = credit_service.add_payment(credit_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to record payment on credit %s", credit_id)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    credit = credit_service.get_credit(credit_id)
    return jsonify({
        "payment": payment.to_dict(),
        "credit": credit.to_dict(include_payments=True),
    }), 201


@credits_bp.put("/<int:credit_id>")
@require_auth
def update_credit_route(credit_id: int):
    """Body: any of {status (active|overdue|defaulted), dueDate, interestRate, notes}"""
    payload = request.get_json(silent=True)

    try:
        credit = credit_service.update_credit(credit_id, payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update credit %s", credit_id)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify(credit.to_dict(include_payments=True)), 200


@credits_bp.delete("/<int:credit_id>")
@require_auth
def delete_credit_route(credit_id: int):
    try:
        credit_service.delete_credit(credit_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to delete credit %s", credit_id)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify({"message": "Credit deleted"}), 200
