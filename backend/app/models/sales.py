from __future__ import annotations

from ..extensions import db
from ..money import Money, money_to_json
from app.time_utils import to_utc_z

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_PAID = "PAID"
SALE_STATUS_CANCELLED = "CANCELLED"
SALE_STATUSES = (SALE_STATUS_PENDING, SALE_STATUS_PAID, SALE_STATUS_CANCELLED)

PAYMENT_METHODS = ("cash", "card", "transfer", "credit")

GENERAL_CUSTOMER_NAME = "General Customer"


class Sale(db.Model):
    """
    Sale document, created atomically with its items.

    Totals are stored denormalized and satisfy:
        tax_amount   = (subtotal - discount) * TAX_RATE
        total_amount = subtotal - discount + tax_amount

    After creation only `status` changes (see sales_service.update_status).
    version_id guards concurrent status changes.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-000123")
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    subtotal = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    tax_amount = db.Column(Money, nullable=False)
    total_amount = db.Column(Money, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "customer": self.customer.to_summary() if self.customer else None,
            "subtotal": money_to_json(self.subtotal),
            "discount": money_to_json(self.discount),
            "taxAmount": money_to_json(self.tax_amount),
            "totalAmount": money_to_json(self.total_amount),
            "paymentMethod": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "versionId": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line of a sale. unit_price is a snapshot, not linked to Product.price."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(Money, nullable=False)
    total_price = db.Column(Money, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "quantity": self.quantity,
            "unitPrice": money_to_json(self.unit_price),
            "totalPrice": money_to_json(self.total_price),
        }
