from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from app.money import Money, to_money
from app.models.sales import PAYMENT_METHODS
from app.time_utils import parse_iso_datetime


# Maximum price: 9,999,999,999.99 (fits NUMERIC(14, 2))
MAX_AMOUNT = Decimal("9999999999.99")


class ServiceError(Exception):
    """Base class for errors surfaced to API callers as {error, code}."""
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self), "code": self.code}
        if self.field:
            body["field"] = self.field
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class NotFoundError(ServiceError, LookupError):
    """Referenced customer, product, sale or credit does not exist."""
    code = "NOT_FOUND"


class ConflictError(ServiceError, ValueError):
    """Business rule conflict (duplicate code, deleting a paid sale, ...)."""
    code = "CONFLICT"


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: API key -> column key that clients are allowed to set
    - required_on_create: API keys required for POST
    """
    writable_fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(api_key: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Money):
        amount = to_money(value)
        if amount is None:
            raise ValidationError(f"{api_key} must be a number", field=api_key)
        if amount < 0:
            raise ValidationError(f"{api_key} must be >= 0", field=api_key)
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{api_key} cannot exceed {MAX_AMOUNT}", field=api_key)
        return amount

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return parse_int(value, api_key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{api_key} must be true or false", field=api_key)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{api_key} must be an ISO-8601 datetime", field=api_key)
            if dt is None:
                raise ValidationError(f"{api_key} must be an ISO-8601 datetime", field=api_key)
            return dt
        raise ValidationError(f"{api_key} must be a datetime", field=api_key)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{api_key} must be a string", field=api_key)
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields, keyed by API name)
    - required_on_create (if partial=False)
    Returns a patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)

    patch: dict = {}

    for api_key, raw in payload.items():
        col_key = policy.writable_fields[api_key]
        col = cols[col_key]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{api_key} cannot be null", field=api_key)
            patch[col_key] = None
            continue

        val = _coerce_value(api_key, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{api_key} cannot be blank", field=api_key)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{api_key} exceeds max length {col.type.length}", field=api_key)

        patch[col_key] = val

    return patch


def parse_int(value: Any, field_name: str, *, minimum: int | None = None) -> int:
    """
    Strict integer parsing for JSON input.

    Accepts ints and digit strings; rejects bools, floats ("12.5"),
    scientific notation ("1e3") and blanks.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field_name} must be an integer", field=field_name)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer", field=field_name)
    else:
        raise ValidationError(f"{field_name} must be an integer", field=field_name)

    if minimum is not None and result < minimum:
        if minimum == 1:
            raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
        raise ValidationError(f"{field_name} must be >= {minimum}", field=field_name)
    return result


def parse_amount(value: Any, field_name: str, *, positive: bool = False) -> Decimal:
    amount = to_money(value)
    if amount is None:
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if amount < 0 or (positive and amount == 0):
        qualifier = "greater than 0" if positive else "a non-negative number"
        raise ValidationError(f"{field_name} must be {qualifier}", field=field_name)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT}", field=field_name)
    return amount


def optional_text(payload: dict, key: str, max_length: int | None = None) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", field=key)
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}", field=key)
    return value or None


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class SaleRequest:
    customer_id: int | None
    customer_name: str | None
    items: list[SaleLineRequest]
    payment_method: str
    notes: str | None = None
    discount: Decimal = Decimal("0.00")


def parse_sale_request(payload: Any) -> SaleRequest:
    """
    Shape validation for POST /api/sales.

    Only checks the request itself; existence of the customer/products and
    stock availability are checked by sales_service.build_sale.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Items must be an array with at least 1 item", field="items")

    lines: list[SaleLineRequest] = []
    for i, item in enumerate(items):
        prefix = f"items[{i}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object", field=prefix)
        if item.get("productId") in (None, ""):
            raise ValidationError("Product ID is required", field=f"{prefix}.productId")
        lines.append(
            SaleLineRequest(
                product_id=parse_int(item.get("productId"), f"{prefix}.productId", minimum=1),
                quantity=parse_int(item.get("quantity"), f"{prefix}.quantity", minimum=1),
                unit_price=parse_amount(item.get("unitPrice"), f"{prefix}.unitPrice"),
            )
        )

    payment_method = payload.get("paymentMethod")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Invalid payment method", field="paymentMethod")

    customer_id = payload.get("customerId")
    if customer_id in (None, ""):
        customer_id = None
    else:
        customer_id = parse_int(customer_id, "customerId", minimum=1)

    discount = Decimal("0.00")
    if payload.get("discount") not in (None, ""):
        discount = parse_amount(payload.get("discount"), "discount")

    return SaleRequest(
        customer_id=customer_id,
        customer_name=optional_text(payload, "customerName", max_length=255),
        items=lines,
        payment_method=payment_method,
        notes=optional_text(payload, "notes"),
        discount=discount,
    )
