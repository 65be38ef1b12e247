"""
Minimum-charge floor and tax.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .models import TaxConfig
from .money import ZERO, format_number, quantize2, to_decimal


@dataclass(frozen=True)
class MinimumResult:
    subtotal: Decimal
    applied: bool
    # Subtotal before the floor, rounded
    original: Decimal

    @property
    def uplift(self) -> Decimal:
        return self.subtotal - self.original


@dataclass(frozen=True)
class TaxResult:
    tax_amount: Decimal
    total: Decimal
    label: Optional[str] = None
    rate: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.rate is not None


def enforce_minimum(subtotal, minimum_charge) -> MinimumResult:
    """Round the subtotal and floor it at minimum_charge (strictly-less-than)."""
    rounded = quantize2(subtotal)
    minimum = quantize2(minimum_charge)
    if rounded < minimum:
        return MinimumResult(subtotal=minimum, applied=True, original=rounded)
    return MinimumResult(subtotal=rounded, applied=False, original=rounded)


def compute_tax(subtotal, tax_config: TaxConfig) -> TaxResult:
    """
    Tax on the final subtotal.

    Disabled tax leaves label and rate unset so they are omitted from the result.
    """
    subtotal = quantize2(subtotal)
    if not tax_config.enabled:
        return TaxResult(tax_amount=ZERO, total=subtotal)

    rate = to_decimal(tax_config.rate or 0)
    tax_amount = quantize2(subtotal * rate / Decimal(100))
    return TaxResult(
        tax_amount=tax_amount,
        total=quantize2(subtotal + tax_amount),
        label=tax_config.label,
        rate=float(tax_config.rate or 0),
    )


def tax_calculation(subtotal: Decimal, tax: TaxResult) -> str:
    return f"{format_number(subtotal)} × {format_number(tax.rate)}% = {format_number(tax.tax_amount)}"
