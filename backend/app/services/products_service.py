# backend/app/services/products_service.py
"""
Products Service

Catalog CRUD. Stock is never written here directly: an initial stock on
create is booked through stock_service as an ADJUSTMENT movement, and
later changes go through sales or the inventory endpoints.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, InventoryMovement, Product, PurchaseItem, SaleItem
from ..validation import ConflictError, NotFoundError, ValidationError, parse_int
from .concurrency import begin_write, run_with_retry
from .stock_service import apply_delta

PRODUCT_MUTABLE_FIELDS = {
    "code", "name", "description", "price", "cost",
    "min_stock", "max_stock", "category_id", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_rules(patch: dict, product: Product | None = None) -> None:
    for key, api_key in (("min_stock", "minStock"), ("max_stock", "maxStock")):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{api_key} must be >= 0", field=api_key)

    min_stock = patch.get("min_stock", product.min_stock if product else 0) or 0
    max_stock = patch.get("max_stock", product.max_stock if product else None)
    if max_stock is not None and max_stock < min_stock:
        raise ValidationError("maxStock must be >= minStock", field="maxStock")

    if patch.get("category_id") is not None:
        if db.session.get(Category, patch["category_id"]) is None:
            raise NotFoundError("Category not found", field="categoryId")


def _check_code_unique(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product code already exists.", field="code")


def list_products(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    category_id: int | None = None,
    active: bool | None = None,
) -> dict:
    """Paginated catalog listing ordered by name."""
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.code.ilike(pattern)))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if active is not None:
        query = query.filter(Product.is_active == active)

    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "products": [p.to_dict() for p in products],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, patch: dict, initial_stock=None, user_id: int | None = None) -> Product:
    """
    Create product using a validated patch dict.

    Raises ConflictError if the code is taken.
    """
    stock = 0
    if initial_stock not in (None, ""):
        stock = parse_int(initial_stock, "stock", minimum=0)

    def _op():
        begin_write()
        _check_rules(patch)
        _check_code_unique(patch["code"])

        p = Product(stock=0)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

        if stock:
            apply_delta(
                product_id=p.id,
                delta=stock,
                movement_type="ADJUSTMENT",
                reference="Initial stock",
                user_id=user_id,
            )

        db.session.commit()
        return p

    return run_with_retry(_op)


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update catalog fields. Raises NotFoundError / ConflictError.
    """
    def _op():
        p = db.session.get(Product, product_id)
        if not p:
            raise NotFoundError("Product not found")

        _check_rules(patch, p)
        if "code" in patch and patch["code"] != p.code:
            _check_code_unique(patch["code"], exclude_id=p.id)

        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    """
    Remove an unreferenced product.

    Products with sale lines, purchase lines or stock movements keep their
    history: the delete is refused with ConflictError and the caller should
    set isActive=false through update instead.
    """
    def _op():
        p = db.session.get(Product, product_id)
        if not p:
            raise NotFoundError("Product not found")

        referenced = (
            db.session.query(SaleItem.id).filter_by(product_id=product_id).first() is not None
            or db.session.query(PurchaseItem.id).filter_by(product_id=product_id).first() is not None
            or db.session.query(InventoryMovement.id).filter_by(product_id=product_id).first() is not None
        )
        if referenced:
            raise ConflictError("Product has sales, purchases or stock movements; deactivate it instead")

        db.session.delete(p)
        db.session.commit()

    run_with_retry(_op)


def list_stock_alerts(*, out_of_stock: bool = False) -> list[Product]:
    """Active products at or below min_stock (or at zero when out_of_stock)."""
    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if out_of_stock:
        query = query.filter(Product.stock == 0).order_by(Product.name.asc())
    else:
        query = query.filter(Product.stock <= Product.min_stock).order_by(Product.stock.asc(), Product.name.asc())
    return query.all()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(*, patch: dict) -> Category:
    def _op():
        if db.session.query(Category).filter(Category.name == patch["name"]).first():
            raise ConflictError("Category already exists.", field="name")
        category = Category()
        for k, v in patch.items():
            setattr(category, k, v)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)
