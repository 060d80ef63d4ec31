"""
Fixed-point currency helpers.

Prices and totals are stored as integer cents. Decimal is only used at the
edges (API input/output), never float.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


# Maximum price: $99,999,999.99 (DECIMAL(10, 2) in the original schema)
MAX_PRICE_CENTS = 9_999_999_999

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """
    Convert a price given as Decimal, str or int (whole currency units) into
    integer cents. Floats are rejected because they cannot carry an exact
    two-place amount.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError("price must be a decimal string or Decimal, not a float")

    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise ValidationError(f"invalid price: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"invalid price: {value!r}")
    if amount < 0:
        raise ValidationError("price cannot be negative")
    if amount != amount.quantize(CENT):
        raise ValidationError("price cannot have more than two decimal places")

    cents = int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))
    if cents > MAX_PRICE_CENTS:
        raise ValidationError("price exceeds maximum")
    return cents


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    amount = cents_to_decimal(cents)
    return None if amount is None else f"{amount:.2f}"
