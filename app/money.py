# app/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.errors import InvalidAmount
from app.models import MAX_BIGINT

# minor units per display unit (cents)
MINOR_PER_UNIT = 100


def _d(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def parse_amount(text: str) -> int:
    """'100.00' -> 10000. Rounds half up to the nearest minor unit."""
    try:
        value = _d((text or "").strip())
        if not value.is_finite():
            raise InvalidAmount(f"not a number: {text!r}")
        # quantize fails past the context precision (28 digits)
        minor = int((value * MINOR_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidAmount(f"not a number: {text!r}")
    if minor <= 0:
        raise InvalidAmount("amount must be > 0")
    if minor > MAX_BIGINT:
        raise InvalidAmount("amount is too large")
    return minor


def format_amount(minor: int) -> str:
    """10000 -> '100.00'; negative amounts keep their sign."""
    value = Decimal(minor) / MINOR_PER_UNIT
    return f"{value.quantize(Decimal('0.01'))}"


def ensure_positive_int(amount, *, what: str = "amount") -> int:
    # bool is an int subclass; True is not a price
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{what} must be an integer number of minor units")
    if amount <= 0:
        raise InvalidAmount(f"{what} must be > 0")
    if amount > MAX_BIGINT:
        raise InvalidAmount(f"{what} is too large")
    return amount
