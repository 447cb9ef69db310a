# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import supplier_service
from ..models import Supplier
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "contactPerson": "contact_person",
        "email": "email",
        "phone": "phone",
        "address": "address",
        "city": "city",
        "taxId": "tax_id",
        "paymentTerms": "payment_terms",
        "notes": "notes",
        "isActive": "is_active",
    },
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    active = request.args.get("active")
    result = supplier_service.list_suppliers(
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
        search=request.args.get("search"),
        active=None if not active else active.lower() in ("1", "true", "yes"),
    )
    return jsonify(result), 200


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        supplier = supplier_service.create_supplier(patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(supplier.to_dict()), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(supplier.to_dict()), 200


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id=supplier_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({"message": "Supplier deleted"}), 200
