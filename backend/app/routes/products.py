# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product and category routes.

Stock is read-only here: it is set once through the optional "stock" field
on create and afterwards only changes through sales and /api/inventory.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import products_service
from ..models import Category, Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "code": "code",
        "name": "name",
        "description": "description",
        "price": "price",
        "cost": "cost",
        "minStock": "min_stock",
        "maxStock": "max_stock",
        "categoryId": "category_id",
        "isActive": "is_active",
    },
    required_on_create={"code", "name", "price"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name": "name", "description": "description", "isActive": "is_active"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def _parse_active(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params: page, limit (max 100), search (name or code),
    categoryId, active (true|false).
    """
    result = products_service.list_products(
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
        search=request.args.get("search"),
        category_id=request.args.get("categoryId", type=int),
        active=_parse_active(request.args.get("active")),
    )
    return jsonify(result), 200


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    products = products_service.list_stock_alerts()
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/out-of-stock")
@require_auth
def out_of_stock_route():
    products = products_service.list_stock_alerts(out_of_stock=True)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "VALIDATION_ERROR"}), 400
    payload = dict(payload)
    initial_stock = payload.pop("stock", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        created = products_service.create_product(
            patch=patch,
            initial_stock=initial_stock,
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    current_app.logger.info("Product %s created", created.code)
    return jsonify(created.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    if isinstance(payload, dict) and "stock" in payload:
        return jsonify({
            "error": "Stock cannot be edited directly; use an inventory adjustment",
            "code": "VALIDATION_ERROR",
            "field": "stock",
        }), 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        status = 400 if e.field else 404
        return jsonify(e.to_dict()), status
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(updated.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({"message": "Product deleted"}), 200


@categories_bp.get("")
@require_auth
def list_categories_route():
    categories = products_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@categories_bp.post("")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = products_service.create_category(patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409

    return jsonify(category.to_dict()), 201
