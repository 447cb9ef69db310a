# Overview: Decimal money column type and rounding helpers shared by models and services.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy.types import Numeric, TypeDecorator

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value) -> Decimal:
    """Round to cents, half-up (accounting rounding, not banker's)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal | None:
    """
    Convert JSON input (int, float, numeric string) to a quantized Decimal.

    Returns None when the value cannot be read as a finite number.
    Booleans are rejected even though they are ints.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return quantize_money(d)


def money_to_json(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


class Money(TypeDecorator):
    """
    Stores Decimal amounts in NUMERIC(14, 2).

    Python side is always a Decimal quantized to cents; floats are converted
    through str() so 0.1 stays 0.10.
    """
    impl = Numeric(precision=14, scale=2)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return quantize_money(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return quantize_money(value)

    @property
    def python_type(self):
        return Decimal
