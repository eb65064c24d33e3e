from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import InvalidError


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

CENT = Decimal("0.01")
LITER_PRECISION = Decimal("0.001")


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Coerce API input (int, float, numeric string, Decimal) to Decimal.

    Floats go through str() so 12.5 stays 12.5 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        raise InvalidError(f"{field} is required and must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise InvalidError(f"{field} is required and must be a number")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise InvalidError(f"{field} must be a number (got {value!r})")
    if not result.is_finite():
        raise InvalidError(f"{field} must be a finite number")
    return result


def to_cents(value: Any, field: str) -> int:
    """Strict integer cents: rejects floats, decimals and booleans."""
    if isinstance(value, bool) or value is None:
        raise InvalidError(f"{field} must be an integer amount in cents")
    if isinstance(value, int):
        cents = value
    elif isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()):
        cents = int(value.strip())
    else:
        raise InvalidError(f"{field} must be an integer amount in cents (got {value!r})")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise InvalidError(f"{field} exceeds the maximum allowed amount")
    return cents


def multiply_to_cents(quantity: Decimal, unit_price_cents: int) -> int:
    """quantity x unit price, rounded half-up to a whole cent."""
    return int((quantity * unit_price_cents).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    """Render cents as a two-decimal amount, e.g. 14300 -> '143.00'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d}"


def format_liters(value: Decimal) -> str:
    return f"{Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)}"


def require_fields(data: dict, *names: str) -> None:
    """Raise InvalidError listing every missing (None or blank) field."""
    missing = [n for n in names if data.get(n) is None or (isinstance(data.get(n), str) and not data[n].strip())]
    if missing:
        raise InvalidError(f"{', '.join(missing)} required", {"missing": missing})


def to_id(value: Any, field: str) -> int:
    """Strict positive integer id."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidError(f"{field} must be a positive integer id (got {value!r})")
    return value
