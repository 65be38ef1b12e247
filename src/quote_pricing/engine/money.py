"""
Money arithmetic and currency formatting.

All amounts are computed as Decimal (built from str() so binary float noise
never leaks in) and rounded half-up to whole cents before being emitted.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, float, int]

CENT = Decimal("0.01")
ZERO = Decimal("0")

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "AUD": "A$",
    "CAD": "C$",
}


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


def quantize2(value: Number) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round2(value: Number) -> float:
    return float(quantize2(value))


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get((currency or "").upper(), f"{currency} ")


def format_number(value: Number) -> str:
    """Render a number without a trailing .0 when integral (4, 2.5, 12.75)."""
    dec = to_decimal(value)
    if dec == dec.to_integral_value():
        return str(int(dec))
    return format(dec.normalize(), "f")


def format_currency(amount: Number, currency: str) -> str:
    """Full form with two decimals: £75.00"""
    return f"{currency_symbol(currency)}{quantize2(amount):.2f}"


def format_compact(amount: Number, currency: str) -> str:
    """Compact form used inside line labels: £35, £12.50"""
    dec = quantize2(amount)
    if dec == dec.to_integral_value():
        return f"{currency_symbol(currency)}{int(dec)}"
    return f"{currency_symbol(currency)}{dec:.2f}"
