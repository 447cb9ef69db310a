from __future__ import annotations

from ..extensions import db
from ..money import Money, money_to_json
from app.time_utils import to_utc_z

PURCHASE_STATUS_PENDING = "PENDING"
PURCHASE_STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
PURCHASE_STATUS_RECEIVED = "RECEIVED"
PURCHASE_STATUS_CANCELLED = "CANCELLED"
PURCHASE_STATUSES = (
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_PARTIALLY_RECEIVED,
    PURCHASE_STATUS_RECEIVED,
    PURCHASE_STATUS_CANCELLED,
)


class Supplier(db.Model):
    """
    Vendor that purchase orders are placed with.

    email is optional but unique when given.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    # NIT
    tax_id = db.Column(db.String(32), nullable=True)
    payment_terms = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "phone": self.phone}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "taxId": self.tax_id,
            "paymentTerms": self.payment_terms,
            "notes": self.notes,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Purchase(db.Model):
    """
    Purchase order placed with a supplier.

    Totals follow the sale formula without a discount:
        tax_amount   = subtotal * TAX_RATE
        total_amount = subtotal + tax_amount

    Stock only moves when items are received (purchase_service.receive_purchase);
    each received line writes a PURCHASE movement.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "PO-000042")
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    subtotal = db.Column(Money, nullable=False)
    tax_amount = db.Column(Money, nullable=False)
    total_amount = db.Column(Money, nullable=False)

    status = db.Column(db.String(24), nullable=False, default=PURCHASE_STATUS_PENDING, index=True)
    expected_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_terms = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} order={self.order_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "orderNumber": self.order_number,
            "supplierId": self.supplier_id,
            "supplier": self.supplier.to_summary() if self.supplier else None,
            "subtotal": money_to_json(self.subtotal),
            "taxAmount": money_to_json(self.tax_amount),
            "totalAmount": money_to_json(self.total_amount),
            "status": self.status,
            "expectedDeliveryDate": to_utc_z(self.expected_delivery_date),
            "receivedAt": to_utc_z(self.received_at),
            "paymentTerms": self.payment_terms,
            "notes": self.notes,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "versionId": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """Ordered line; received_quantity accumulates over partial receipts."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="received_within_ordered",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(Money, nullable=False)
    total_cost = db.Column(Money, nullable=False)

    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    received_cost = db.Column(Money, nullable=True)

    purchase = db.relationship("Purchase", back_populates="items")
    product = db.relationship("Product")

    @property
    def pending_quantity(self) -> int:
        return self.quantity - (self.received_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchaseId": self.purchase_id,
            "productId": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "quantity": self.quantity,
            "unitCost": money_to_json(self.unit_cost),
            "totalCost": money_to_json(self.total_cost),
            "receivedQuantity": self.received_quantity,
            "receivedCost": money_to_json(self.received_cost),
        }
