"""
Sales Service - atomic sale creation and lifecycle

Creation runs as one unit of work:
  validate request -> check every line's stock -> insert Sale -> per line:
  insert SaleItem, conditional stock decrement, SALE movement -> credit sales
  open a receivable -> commit.
Any failure rolls the whole unit back; no stock, sale, item, movement or
credit row survives a failed request.

Lifecycle:
  PENDING -> PAID          (manual: the open credit balance is settled with
                            a closing payment; or when the credit is paid off)
  PENDING|PAID -> CANCELLED (restores stock, SALE_CANCELLATION movements)
  CANCELLED is terminal. Requesting the current status again is a no-op.
Deletion is refused for PAID sales; a PENDING sale gets its stock back with
SALE_DELETION movements, a CANCELLED sale already did.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_SALE_CANCELLATION, MOVEMENT_SALE_DELETION
from ..models.sales import (
    GENERAL_CUSTOMER_NAME,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_PAID,
    SALE_STATUS_PENDING,
)
from ..money import ZERO, quantize_money
from ..validation import (
    MAX_AMOUNT,
    ConflictError,
    NotFoundError,
    SaleRequest,
    ValidationError,
    parse_sale_request,
)
from . import credit_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_invoice_number
from .stock_service import InsufficientStockError, apply_delta, decrement_stock, record_movement

logger = logging.getLogger(__name__)

# Colombian VAT (IVA)
TAX_RATE = Decimal("0.19")

# API status values -> stored status. "completed" is what the admin UI sends for PAID.
STATUS_ALIASES = {
    "pending": SALE_STATUS_PENDING,
    "paid": SALE_STATUS_PAID,
    "completed": SALE_STATUS_PAID,
    "cancelled": SALE_STATUS_CANCELLED,
    "canceled": SALE_STATUS_CANCELLED,
}

ALLOWED_TRANSITIONS = {
    SALE_STATUS_PENDING: {SALE_STATUS_PAID, SALE_STATUS_CANCELLED},
    SALE_STATUS_PAID: {SALE_STATUS_CANCELLED},
    SALE_STATUS_CANCELLED: set(),
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class BuiltLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class BuiltSale:
    """A request that passed every check and is ready to be committed."""
    customer: Customer | None
    customer_name: str
    lines: list[BuiltLine]
    totals: SaleTotals
    payment_method: str
    notes: str | None

    @property
    def initial_status(self) -> str:
        return SALE_STATUS_PENDING if self.payment_method == "credit" else SALE_STATUS_PAID


def normalize_status(value) -> str:
    if not isinstance(value, str) or value.strip().lower() not in STATUS_ALIASES:
        raise ValidationError(
            "status must be one of: pending, completed, cancelled",
            field="status",
        )
    return STATUS_ALIASES[value.strip().lower()]


def compute_totals(lines: list[BuiltLine], discount: Decimal = ZERO) -> SaleTotals:
    """
    subtotal = sum(quantity * unit_price)
    tax      = (subtotal - discount) * TAX_RATE
    total    = subtotal - discount + tax
    Each amount is rounded to cents, so the identity holds exactly.
    Raises ValidationError if any amount would not fit a money column.
    """
    subtotal = quantize_money(sum((line.total_price for line in lines), ZERO))
    discount = quantize_money(discount or ZERO)
    if discount > subtotal:
        raise ValidationError("discount cannot exceed the subtotal", field="discount")
    taxable = subtotal - discount
    tax_amount = quantize_money(taxable * TAX_RATE)
    total_amount = taxable + tax_amount
    if subtotal > MAX_AMOUNT or total_amount > MAX_AMOUNT:
        raise ValidationError(f"Sale total cannot exceed {MAX_AMOUNT}", field="items")
    return SaleTotals(
        subtotal=subtotal,
        discount=discount,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )


def build_sale(request: SaleRequest) -> BuiltSale:
    """
    Resolve references and check stock for ALL lines before anything is
    written. Quantities of repeated products are summed for the check.

    Raises ValidationError, NotFoundError or InsufficientStockError.
    """
    if request.payment_method == "credit" and request.customer_id is None:
        raise ValidationError("customerId is required for credit sales", field="customerId")

    customer = None
    if request.customer_id is not None:
        customer = db.session.get(Customer, request.customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", field="customerId")
        if not customer.is_active:
            raise ValidationError("Customer is inactive", field="customerId")

    requested: dict[int, int] = {}
    for line in request.items:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, quantity in requested.items():
        product = db.session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", field="productId")
        if not product.is_active:
            raise ValidationError(f"Product {product.name} is inactive", field="productId")
        if product.stock < quantity:
            raise InsufficientStockError(product, quantity)

    lines = [
        BuiltLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=quantize_money(line.unit_price * line.quantity),
        )
        for line in request.items
    ]

    if request.customer_name:
        customer_name = request.customer_name
    elif customer is not None:
        customer_name = customer.name
    else:
        customer_name = GENERAL_CUSTOMER_NAME

    return BuiltSale(
        customer=customer,
        customer_name=customer_name,
        lines=lines,
        totals=compute_totals(lines, request.discount),
        payment_method=request.payment_method,
        notes=request.notes,
    )


def commit_sale(built: BuiltSale, user_id: int | None = None) -> Sale:
    """
    Write a built sale inside the caller's transaction (no commit).

    Stock is decremented with conditional UPDATEs, so a concurrent sale that
    consumed the stock after build_sale ran still fails here with
    InsufficientStockError and the caller's rollback undoes everything.
    """
    invoice_number = next_invoice_number()
    totals = built.totals

    sale = Sale(
        invoice_number=invoice_number,
        customer_id=built.customer.id if built.customer else None,
        customer_name=built.customer_name,
        subtotal=totals.subtotal,
        discount=totals.discount,
        tax_amount=totals.tax_amount,
        total_amount=totals.total_amount,
        payment_method=built.payment_method,
        status=built.initial_status,
        notes=built.notes,
        user_id=user_id,
    )
    db.session.add(sale)
    db.session.flush()

    for line in built.lines:
        sale.items.append(
            SaleItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            )
        )
        previous_stock, new_stock = decrement_stock(line.product_id, line.quantity)
        record_movement(
            product_id=line.product_id,
            movement_type=MOVEMENT_SALE,
            quantity=-line.quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reference=invoice_number,
            user_id=user_id,
        )

    if built.payment_method == "credit":
        credit_service.open_credit_for_sale(sale, user_id=user_id)

    db.session.flush()
    return sale


def create_sale(payload, user_id: int | None = None) -> Sale:
    """Validate, build and commit a sale as one all-or-nothing unit."""
    request = payload if isinstance(payload, SaleRequest) else parse_sale_request(payload)

    def _op():
        begin_write()
        built = build_sale(request)
        sale = commit_sale(built, user_id=user_id)
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s created for %s (%s)", sale.invoice_number, sale.customer_name, sale.total_amount)
    return sale


def _restore_stock(sale: Sale, movement_type: str, reference: str, user_id: int | None) -> None:
    for item in sale.items:
        apply_delta(
            product_id=item.product_id,
            delta=item.quantity,
            movement_type=movement_type,
            reference=reference,
            user_id=user_id,
        )


def update_status(sale_id: int, status, user_id: int | None = None) -> Sale:
    """
    Move a sale through its lifecycle. Cancelling restores every line's stock
    and cancels the credit opened by the sale (payments stay on record); marking
    it PAID settles that credit. Each change is one transaction.
    """
    target = normalize_status(status)

    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")

        if sale.status == target:
            db.session.commit()
            return sale

        if target not in ALLOWED_TRANSITIONS.get(sale.status, set()):
            raise ConflictError(f"Cannot change sale status from {sale.status} to {target}")

        if target == SALE_STATUS_CANCELLED:
            _restore_stock(
                sale,
                MOVEMENT_SALE_CANCELLATION,
                f"Sale {sale.invoice_number} cancelled",
                user_id,
            )
            if sale.credit is not None:
                credit_service.cancel_credit(sale.credit)
        elif target == SALE_STATUS_PAID and sale.credit is not None:
            credit_service.settle_credit(
                sale.credit,
                user_id=user_id,
                notes=f"Settled when sale {sale.invoice_number} was marked paid",
            )

        sale.status = target
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s status updated to %s", sale.invoice_number, sale.status)
    return sale


def delete_sale(sale_id: int, user_id: int | None = None) -> str:
    """
    Delete a sale that is not PAID. Returns the deleted invoice number.
    """
    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")

        if sale.status == SALE_STATUS_PAID:
            raise ConflictError("Cannot delete a paid sale; cancel it instead")

        credit = sale.credit
        if credit is not None:
            if credit.payments:
                raise ConflictError("Cannot delete a sale whose credit has payments")
            db.session.delete(credit)
            db.session.flush()
            db.session.expire(sale, ["credit"])

        invoice_number = sale.invoice_number
        if sale.status == SALE_STATUS_PENDING:
            _restore_stock(sale, MOVEMENT_SALE_DELETION, f"Sale {invoice_number} deleted", user_id)

        db.session.delete(sale)
        db.session.commit()
        return invoice_number

    invoice_number = run_with_retry(_op)
    logger.info("Sale %s deleted", invoice_number)
    return invoice_number


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    status: str | None = None,
) -> dict:
    """Paginated sales, newest first, with optional status and text search."""
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    query = db.session.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)

    if status:
        query = query.filter(Sale.status == normalize_status(status))

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Sale.invoice_number.ilike(pattern),
                Sale.customer_name.ilike(pattern),
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
            )
        )

    total = query.with_entities(func.count(Sale.id)).scalar() or 0
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "sales": [sale.to_dict() for sale in sales],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
