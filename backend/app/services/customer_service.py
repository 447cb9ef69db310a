# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customer Service

Customers are optional on a sale (walk-ins only carry a name) but required
for credit sales. document_number (NIT / cedula) is unique.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Credit, Customer, Sale
from ..validation import ConflictError, NotFoundError
from .concurrency import run_with_retry

CUSTOMER_MUTABLE_FIELDS = {
    "name", "document_number", "email", "phone", "address", "credit_limit", "is_active",
}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(c, k, v)


def _check_document_unique(document_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer).filter(Customer.document_number == document_number)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("Customer document number already exists.", field="documentNumber")


def list_customers(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    active: bool | None = None,
) -> dict:
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Customer.name.ilike(pattern),
                Customer.document_number.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    if active is not None:
        query = query.filter(Customer.is_active == active)

    total = query.count()
    customers = (
        query.order_by(Customer.name.asc(), Customer.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "customers": [c.to_dict() for c in customers],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(*, patch: dict) -> Customer:
    def _op():
        _check_document_unique(patch["document_number"])
        c = Customer()
        apply_customer_patch(c, patch)
        db.session.add(c)
        db.session.commit()
        return c

    return run_with_retry(_op)


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op():
        c = db.session.get(Customer, customer_id)
        if not c:
            raise NotFoundError("Customer not found")
        if "document_number" in patch and patch["document_number"] != c.document_number:
            _check_document_unique(patch["document_number"], exclude_id=c.id)
        apply_customer_patch(c, patch)
        db.session.commit()
        return c

    return run_with_retry(_op)


def delete_customer(*, customer_id: int) -> None:
    """
    Hard delete. Refused with ConflictError while any sale or credit still
    references the customer; deactivate it instead.
    """
    def _op():
        c = db.session.get(Customer, customer_id)
        if not c:
            raise NotFoundError("Customer not found")

        has_sales = db.session.query(Sale.id).filter_by(customer_id=customer_id).first() is not None
        has_credits = db.session.query(Credit.id).filter_by(customer_id=customer_id).first() is not None
        if has_sales or has_credits:
            raise ConflictError("Customer has sales or credits; deactivate it instead")

        db.session.delete(c)
        db.session.commit()

    run_with_retry(_op)
