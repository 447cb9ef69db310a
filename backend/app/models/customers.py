from __future__ import annotations

from ..extensions import db
from ..money import Money, money_to_json
from app.time_utils import to_utc_z


class Customer(db.Model):
    """
    Registered customer.

    A sale may also be made to a walk-in customer with no row here; the sale
    then only stores a free-text customer_name.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    # NIT / cedula
    document_number = db.Column(db.String(32), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    credit_limit = db.Column(Money, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "documentNumber": self.document_number,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "documentNumber": self.document_number,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "creditLimit": money_to_json(self.credit_limit),
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
