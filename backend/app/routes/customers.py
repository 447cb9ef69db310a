# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import customer_service
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "documentNumber": "document_number",
        "email": "email",
        "phone": "phone",
        "address": "address",
        "creditLimit": "credit_limit",
        "isActive": "is_active",
    },
    required_on_create={"name", "documentNumber"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    active = request.args.get("active")
    result = customer_service.list_customers(
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
        search=request.args.get("search"),
        active=None if not active else active.lower() in ("1", "true", "yes"),
    )
    return jsonify(result), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(customer.to_dict()), 200


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(customer.to_dict()), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id=customer_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({"message": "Customer deleted"}), 200
