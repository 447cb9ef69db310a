from __future__ import annotations

from ..extensions import db
from ..money import Money, money_to_json
from app.time_utils import to_utc_z, utcnow

CREDIT_STATUS_ACTIVE = "ACTIVE"
CREDIT_STATUS_OVERDUE = "OVERDUE"
CREDIT_STATUS_DEFAULTED = "DEFAULTED"
CREDIT_STATUS_PAID = "PAID"
CREDIT_STATUS_CANCELLED = "CANCELLED"
CREDIT_STATUSES = (
    CREDIT_STATUS_ACTIVE,
    CREDIT_STATUS_OVERDUE,
    CREDIT_STATUS_DEFAULTED,
    CREDIT_STATUS_PAID,
    CREDIT_STATUS_CANCELLED,
)

CREDIT_PAYMENT_METHODS = ("cash", "card", "transfer", "check")


class Credit(db.Model):
    """
    Receivable owed by a customer.

    Credit sales open one automatically (amount = sale total, 30-day term);
    manual credits can also be created through the credits API.
    balance goes down with each CreditPayment and reaches zero when PAID.
    """
    __tablename__ = "credits"
    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="balance_non_negative"),
        db.Index("ix_credits_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, unique=True)

    amount = db.Column(Money, nullable=False)
    balance = db.Column(Money, nullable=False)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    term_days = db.Column(db.Integer, nullable=False, default=30)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=CREDIT_STATUS_ACTIVE, index=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("credits", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("credit", uselist=False, lazy=True))
    payments = db.relationship(
        "CreditPayment",
        back_populates="credit",
        cascade="all, delete-orphan",
        order_by="CreditPayment.payment_date.desc()",
        lazy=True,
    )

    @property
    def total_paid(self):
        return self.amount - self.balance

    @property
    def is_overdue(self) -> bool:
        open_balance = self.balance > 0 and self.status not in (CREDIT_STATUS_PAID, CREDIT_STATUS_CANCELLED)
        return bool(open_balance and self.due_date and utcnow() > self.due_date)

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "customerId": self.customer_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "saleId": self.sale_id,
            "invoiceNumber": self.sale.invoice_number if self.sale else None,
            "amount": money_to_json(self.amount),
            "balance": money_to_json(self.balance),
            "totalPaid": money_to_json(self.total_paid),
            "interestRate": float(self.interest_rate or 0),
            "termDays": self.term_days,
            "dueDate": to_utc_z(self.due_date),
            "status": self.status,
            "isOverdue": self.is_overdue,
            "notes": self.notes,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class CreditPayment(db.Model):
    """Installment received against a credit. Append-only."""
    __tablename__ = "credit_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    credit_id = db.Column(db.Integer, db.ForeignKey("credits.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = db.Column(Money, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    credit = db.relationship("Credit", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "creditId": self.credit_id,
            "amount": money_to_json(self.amount),
            "paymentMethod": self.payment_method,
            "paymentDate": to_utc_z(self.payment_date),
            "reference": self.reference,
            "notes": self.notes,
            "userId": self.user_id,
        }
