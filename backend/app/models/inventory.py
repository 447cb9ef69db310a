from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

MOVEMENT_SALE = "SALE"
MOVEMENT_SALE_CANCELLATION = "SALE_CANCELLATION"
MOVEMENT_SALE_DELETION = "SALE_DELETION"
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_TRANSFER_IN = "TRANSFER_IN"
MOVEMENT_TRANSFER_OUT = "TRANSFER_OUT"
MOVEMENT_STOCKTAKE = "STOCKTAKE"

# Manual adjustment reasons: the first two add stock, the rest remove it
ADJUSTMENT_INBOUND_TYPES = ("ADJUSTMENT", "FOUND")
ADJUSTMENT_OUTBOUND_TYPES = ("DAMAGED", "EXPIRED", "LOST")
ADJUSTMENT_TYPES = ADJUSTMENT_INBOUND_TYPES + ADJUSTMENT_OUTBOUND_TYPES

MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_SALE_CANCELLATION,
    MOVEMENT_SALE_DELETION,
    MOVEMENT_PURCHASE,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TRANSFER_OUT,
    MOVEMENT_STOCKTAKE,
) + ADJUSTMENT_TYPES


class InventoryMovement(db.Model):
    """
    Append-only audit trail of every change to Product.stock.

    quantity is the signed delta; previous_stock/new_stock are the values
    observed by the same conditional UPDATE that applied the delta.
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=True)
    new_stock = db.Column(db.Integer, nullable=True)

    reference = db.Column(db.String(255), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name, "code": self.product.code}
            if self.product else None,
            "type": self.type,
            "quantity": self.quantity,
            "previousStock": self.previous_stock,
            "newStock": self.new_stock,
            "reference": self.reference,
            "notes": self.notes,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic counters for human-readable document numbers.

    One row per document type; allocation is a single
    UPDATE ... SET next_number = next_number + 1 so two concurrent sales can
    never receive the same invoice number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentType": self.document_type,
            "nextNumber": self.next_number,
            "updatedAt": to_utc_z(self.updated_at),
        }
