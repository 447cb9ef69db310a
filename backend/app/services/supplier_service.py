# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Purchase, Supplier
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry

SUPPLIER_MUTABLE_FIELDS = {
    "name", "contact_person", "email", "phone", "address", "city",
    "tax_id", "payment_terms", "notes", "is_active",
}


def apply_supplier_patch(s: Supplier, patch: dict) -> None:
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(s, k, v)


def _check_rules(patch: dict) -> None:
    if "name" in patch and len(patch["name"] or "") < 2:
        raise ValidationError("name must be at least 2 characters", field="name")
    email = patch.get("email")
    if email and "@" not in email:
        raise ValidationError("email must be a valid address", field="email")


def _check_email_unique(email: str | None, exclude_id: int | None = None) -> None:
    if not email:
        return
    query = db.session.query(Supplier).filter(Supplier.email == email)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError("Supplier email already exists.", field="email")


def list_suppliers(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    active: bool | None = None,
) -> dict:
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Supplier)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Supplier.name.ilike(pattern),
                Supplier.contact_person.ilike(pattern),
                Supplier.email.ilike(pattern),
                Supplier.tax_id.ilike(pattern),
            )
        )
    if active is not None:
        query = query.filter(Supplier.is_active == active)

    total = query.count()
    suppliers = (
        query.order_by(Supplier.name.asc(), Supplier.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "suppliers": [s.to_dict() for s in suppliers],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(*, patch: dict) -> Supplier:
    _check_rules(patch)

    def _op():
        _check_email_unique(patch.get("email"))
        s = Supplier()
        apply_supplier_patch(s, patch)
        db.session.add(s)
        db.session.commit()
        return s

    return run_with_retry(_op)


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    _check_rules(patch)

    def _op():
        s = db.session.get(Supplier, supplier_id)
        if not s:
            raise NotFoundError("Supplier not found")
        if "email" in patch and patch["email"] != s.email:
            _check_email_unique(patch["email"], exclude_id=s.id)
        apply_supplier_patch(s, patch)
        db.session.commit()
        return s

    return run_with_retry(_op)


def delete_supplier(*, supplier_id: int) -> None:
    """Hard delete. Refused while any purchase order references the supplier."""
    def _op():
        s = db.session.get(Supplier, supplier_id)
        if not s:
            raise NotFoundError("Supplier not found")

        if db.session.query(Purchase.id).filter_by(supplier_id=supplier_id).first() is not None:
            raise ConflictError("Supplier has purchase orders; deactivate it instead")

        db.session.delete(s)
        db.session.commit()

    run_with_retry(_op)
