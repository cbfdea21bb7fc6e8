"""Conversion of decimal amounts to Stripe's minor-unit integers."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# Currencies Stripe charges in whole units
# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
        "PYG", "RWF", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)


def _as_decimal(amount: Any) -> Decimal | None:
    if isinstance(amount, bool):
        return None
    if isinstance(amount, Decimal):
        return amount if amount.is_finite() else None
    if isinstance(amount, (int, float)):
        value = Decimal(str(amount))
        return value if value.is_finite() else None
    if isinstance(amount, str):
        try:
            value = Decimal(amount.strip())
        except InvalidOperation:
            return None
        return value if value.is_finite() else None
    return None


def _coerce_int(amount: Any) -> int:
    try:
        return int(amount)
    except (TypeError, ValueError):
        return 0


def to_minor_units(amount: Any, currency_code: str | None) -> int:
    """
    Convert an amount to the integer Stripe expects.

    Two-decimal currencies are scaled by 100; zero-decimal currencies pass
    through. Both are rounded half away from zero. Unknown currency codes
    are treated as two-decimal. Non-numeric amounts are never scaled and are
    coerced to an int (0 when that is impossible).

    Examples:
        to_minor_units(19.99, "USD") -> 1999
        to_minor_units(1500, "JPY") -> 1500
    """
    value = _as_decimal(amount)
    if value is None:
        return _coerce_int(amount)

    if (currency_code or "").upper() not in ZERO_DECIMAL_CURRENCIES:
        value *= 100

    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
