# Overview: Service-layer operations for customer credits (receivables) and their payments.

from __future__ import annotations

import logging
from datetime import timedelta

from ..extensions import db
from ..models import Credit, CreditPayment, Customer, Sale
from ..models.credits import (
    CREDIT_PAYMENT_METHODS,
    CREDIT_STATUS_ACTIVE,
    CREDIT_STATUS_CANCELLED,
    CREDIT_STATUS_DEFAULTED,
    CREDIT_STATUS_OVERDUE,
    CREDIT_STATUS_PAID,
    CREDIT_STATUSES,
)
from ..models.sales import SALE_STATUS_PAID, SALE_STATUS_PENDING
from ..money import ZERO
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_int,
)
from app.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

CREDIT_TERM_DAYS = 30


def open_credit_for_sale(sale: Sale, user_id: int | None = None) -> Credit:
    """Receivable for a credit sale, in the caller's transaction (no commit)."""
    if sale.customer_id is None:
        raise ValidationError("customerId is required for credit sales", field="customerId")

    credit = Credit(
        customer_id=sale.customer_id,
        sale=sale,
        amount=sale.total_amount,
        balance=sale.total_amount,
        interest_rate=0,
        term_days=CREDIT_TERM_DAYS,
        due_date=utcnow() + timedelta(days=CREDIT_TERM_DAYS),
        status=CREDIT_STATUS_ACTIVE,
        notes=f"Credit for sale {sale.invoice_number}",
        user_id=user_id,
    )
    db.session.add(credit)
    return credit


def cancel_credit(credit: Credit) -> Credit:
    """
    Close a credit when its sale is cancelled (no commit).

    Payments already received are kept as the record of what was collected;
    refunding them is handled outside the system.
    """
    if credit.status == CREDIT_STATUS_CANCELLED:
        return credit
    credit.balance = ZERO
    credit.status = CREDIT_STATUS_CANCELLED
    return credit


def settle_credit(credit: Credit, user_id: int | None = None, notes: str | None = None) -> CreditPayment | None:
    """
    Pay off the remaining balance with a closing cash payment (no commit).

    Used when a PENDING credit sale is marked PAID by hand. Returns the
    closing payment, or None if nothing was owed.
    """
    if credit.status == CREDIT_STATUS_CANCELLED:
        raise ConflictError("Credit is cancelled")

    payment = None
    if credit.balance > 0:
        payment = CreditPayment(
            credit=credit,
            amount=credit.balance,
            payment_method="cash",
            payment_date=utcnow(),
            notes=notes,
            user_id=user_id,
        )
        db.session.add(payment)
        credit.balance = ZERO
    credit.status = CREDIT_STATUS_PAID
    return payment


def _normalize_credit_status(value, allowed=CREDIT_STATUSES) -> str:
    status = value.strip().upper() if isinstance(value, str) else ""
    if status not in allowed:
        raise ValidationError(f"status must be one of: {', '.join(s.lower() for s in allowed)}", field="status")
    return status


def _parse_due_date(value):
    try:
        due_date = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        due_date = None
    if due_date is None:
        raise ValidationError("dueDate must be an ISO-8601 date", field="dueDate")
    return due_date


def _parse_interest_rate(value):
    interest_rate = parse_amount(value, "interestRate")
    if interest_rate > 100:
        raise ValidationError("interestRate must be between 0 and 100", field="interestRate")
    return interest_rate


def list_credits(
    *,
    page: int | None = None,
    limit: int | None = None,
    status: str | None = None,
    customer_id: int | None = None,
) -> dict:
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Credit)
    if status:
        query = query.filter(Credit.status == _normalize_credit_status(status))
    if customer_id:
        query = query.filter(Credit.customer_id == customer_id)

    total = query.count()
    credits = (
        query.order_by(Credit.due_date.asc(), Credit.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "credits": [credit.to_dict() for credit in credits],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_credit(credit_id: int) -> Credit:
    credit = db.session.get(Credit, credit_id)
    if credit is None:
        raise NotFoundError("Credit not found")
    return credit


def create_credit(payload: dict, user_id: int | None = None) -> Credit:
    """Manual credit, optionally linked to an existing sale."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("customerId") in (None, ""):
        raise ValidationError("customerId is required", field="customerId")
    customer_id = parse_int(payload.get("customerId"), "customerId", minimum=1)
    amount = parse_amount(payload.get("amount"), "amount", positive=True)

    due_date = _parse_due_date(payload.get("dueDate"))

    interest_rate = ZERO
    if payload.get("interestRate") not in (None, ""):
        interest_rate = _parse_interest_rate(payload.get("interestRate"))

    sale_id = None
    if payload.get("saleId") not in (None, ""):
        sale_id = parse_int(payload.get("saleId"), "saleId", minimum=1)
    notes = optional_text(payload, "notes")

    def _op():
        begin_write()
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", field="customerId")

        if sale_id is not None:
            sale = db.session.get(Sale, sale_id)
            if sale is None:
                raise NotFoundError("Sale not found", field="saleId")
            if sale.credit is not None:
                raise ConflictError("Sale already has a credit")

        now = utcnow()
        credit = Credit(
            customer_id=customer_id,
            sale_id=sale_id,
            amount=amount,
            balance=amount,
            interest_rate=interest_rate,
            term_days=max((due_date - now).days, 0),
            due_date=due_date,
            status=CREDIT_STATUS_ACTIVE,
            notes=notes,
            user_id=user_id,
        )
        db.session.add(credit)
        db.session.commit()
        return credit

    credit = run_with_retry(_op)
    logger.info("Credit %s created: %s for customer %s", credit.id, credit.amount, credit.customer_id)
    return credit


def add_payment(credit_id: int, payload: dict, user_id: int | None = None) -> CreditPayment:
    """
    Record a payment against a credit.

    The amount may not exceed the remaining balance. A zero balance marks the
    credit PAID and, if it came from a PENDING sale, marks that sale PAID too.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    amount = parse_amount(payload.get("amount"), "amount", positive=True)
    payment_method = payload.get("paymentMethod")
    if payment_method not in CREDIT_PAYMENT_METHODS:
        raise ValidationError("Invalid payment method", field="paymentMethod")

    payment_date = None
    if isinstance(payload.get("paymentDate"), str):
        try:
            payment_date = parse_iso_datetime(payload["paymentDate"])
        except ValueError:
            raise ValidationError("paymentDate must be an ISO-8601 date", field="paymentDate")

    reference = optional_text(payload, "reference", max_length=128)
    notes = optional_text(payload, "notes")

    def _op():
        begin_write()
        credit = lock_for_update(db.session.query(Credit).filter_by(id=credit_id)).first()
        if credit is None:
            raise NotFoundError("Credit not found")

        if credit.status in (CREDIT_STATUS_PAID, CREDIT_STATUS_CANCELLED):
            raise ConflictError(f"Credit is already {credit.status.lower()}")

        if amount > credit.balance:
            raise ValidationError(
                f"Payment amount exceeds remaining balance. Remaining: {credit.balance}",
                field="amount",
            )

        payment = CreditPayment(
            credit=credit,
            amount=amount,
            payment_method=payment_method,
            payment_date=payment_date or utcnow(),
            reference=reference,
            notes=notes,
            user_id=user_id,
        )
        db.session.add(payment)

        credit.balance = credit.balance - amount
        if credit.balance <= 0:
            credit.status = CREDIT_STATUS_PAID
            if credit.sale is not None and credit.sale.status == SALE_STATUS_PENDING:
                credit.sale.status = SALE_STATUS_PAID
        elif utcnow() > credit.due_date:
            credit.status = CREDIT_STATUS_OVERDUE

        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    logger.info("Payment of %s recorded on credit %s", payment.amount, credit_id)
    return payment


UPDATABLE_CREDIT_FIELDS = {"status", "dueDate", "interestRate", "notes"}
MANUAL_CREDIT_STATUSES = (CREDIT_STATUS_ACTIVE, CREDIT_STATUS_OVERDUE, CREDIT_STATUS_DEFAULTED)


def update_credit(credit_id: int, payload: dict) -> Credit:
    """
    Collection maintenance: status, due date, interest rate and notes.

    Status may only be set to active, overdue or defaulted; a credit becomes
    PAID through payments and CANCELLED through its sale. Closed credits
    accept notes only.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - UPDATABLE_CREDIT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown or read-only fields: {', '.join(unknown)}", field=unknown[0])

    patch = {}
    if "status" in payload:
        if isinstance(payload["status"], str) and payload["status"].strip().upper() == CREDIT_STATUS_PAID:
            raise ValidationError("Record a payment to mark a credit as paid", field="status")
        patch["status"] = _normalize_credit_status(payload["status"], MANUAL_CREDIT_STATUSES)
    if "dueDate" in payload:
        patch["due_date"] = _parse_due_date(payload["dueDate"])
    if "interestRate" in payload:
        patch["interest_rate"] = _parse_interest_rate(payload["interestRate"])
    if "notes" in payload:
        patch["notes"] = optional_text(payload, "notes")

    def _op():
        begin_write()
        credit = lock_for_update(db.session.query(Credit).filter_by(id=credit_id)).first()
        if credit is None:
            raise NotFoundError("Credit not found")

        closed = credit.status in (CREDIT_STATUS_PAID, CREDIT_STATUS_CANCELLED)
        if closed and set(patch) - {"notes"}:
            raise ConflictError(f"Credit is already {credit.status.lower()}")

        for key, value in patch.items():
            setattr(credit, key, value)
        db.session.commit()
        return credit

    credit = run_with_retry(_op)
    logger.info("Credit %s updated: %s", credit_id, ", ".join(sorted(patch)) or "no changes")
    return credit


def delete_credit(credit_id: int) -> None:
    """
    Delete a credit with no payments recorded against it.

    A credit still backing a PENDING sale cannot be deleted; cancel the sale
    instead.
    """
    def _op():
        begin_write()
        credit = lock_for_update(db.session.query(Credit).filter_by(id=credit_id)).first()
        if credit is None:
            raise NotFoundError("Credit not found")
        if credit.payments:
            raise ConflictError("Cannot delete a credit with recorded payments")
        if credit.sale is not None and credit.sale.status == SALE_STATUS_PENDING:
            raise ConflictError("Credit belongs to a pending sale; cancel the sale instead")

        db.session.delete(credit)
        db.session.commit()

    run_with_retry(_op)
    logger.info("Credit %s deleted", credit_id)
