from __future__ import annotations

from ..extensions import db
from ..money import Money, money_to_json
from app.time_utils import to_utc_z


class Category(db.Model):
    """Product grouping used by the catalog screens and stock reports."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data with the quantity on hand.

    STOCK: `stock` is the authoritative on-hand count. It is only written by
    app.services.stock_service, which issues conditional UPDATEs so concurrent
    sales cannot oversell. The CHECK constraint is the last line: a negative
    value is rejected by the database itself.

    min_stock/max_stock are advisory thresholds for low-stock listings; they
    are never enforced as hard limits.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="stock_non_negative"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Sale unit price and purchase cost
    price = db.Column(Money, nullable=False, default=0)
    cost = db.Column(Money, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} stock={self.stock}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= (self.min_stock or 0)

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "price": money_to_json(self.price),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "price": money_to_json(self.price),
            "cost": money_to_json(self.cost),
            "stock": self.stock,
            "minStock": self.min_stock,
            "maxStock": self.max_stock,
            "categoryId": self.category_id,
            "category": self.category.name if self.category else None,
            "isActive": self.is_active,
            "isLowStock": self.is_low_stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
