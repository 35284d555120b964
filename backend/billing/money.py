# Overview: Fixed-point money helpers used by every billing calculation.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """
    Coerce int, str, float or Decimal to an unrounded Decimal.

    Floats go through str() so binary artifacts do not leak in
    (0.1 -> Decimal("0.1"), not 0.1000000000000000055...).
    Strings may carry thousands separators ("1,234.56").
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            raise ValidationError(f"{field} must be a number")
        try:
            result = Decimal(s)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def round2(value) -> Decimal:
    """Round to 2 decimal places, half-up (2.345 -> 2.35, -2.345 -> -2.35)."""
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{value} is too large to represent as an amount")


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """round2(amount * rate / 100)"""
    return round2(amount * rate / HUNDRED)


def format_money(value) -> str | None:
    """Serialize money as a 2-place string ("11300.00")."""
    if value is None:
        return None
    return f"{round2(value):.2f}"
