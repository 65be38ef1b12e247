"""
Confidence-driven presentation: price ranges and site-visit recommendations.

Neither changes the priced total; they only add a range and notes.
"""
from decimal import Decimal
from typing import Optional

from .models import PriceRange, SiteVisitRules
from .money import quantize2, to_decimal

RANGE_CONFIDENCE_THRESHOLD = 0.7
LOW_CONFIDENCE_THRESHOLD = 0.4
WIDE_RANGE_VARIANCE = Decimal("0.30")
NARROW_RANGE_VARIANCE = Decimal("0.15")

RANGE_NOTE = "Price shown as range due to limited information"
SITE_VISIT_NOTE = "Site visit recommended for accurate quote"


def price_range(total, confidence: Optional[float]) -> Optional[PriceRange]:
    """±30% below 0.4 confidence, ±15% below 0.7, no range otherwise."""
    if confidence is None or confidence >= RANGE_CONFIDENCE_THRESHOLD:
        return None
    variance = WIDE_RANGE_VARIANCE if confidence < LOW_CONFIDENCE_THRESHOLD else NARROW_RANGE_VARIANCE
    total = to_decimal(total)
    return PriceRange(
        low=float(quantize2(total * (1 - variance))),
        high=float(quantize2(total * (1 + variance))),
    )


def site_visit_recommended(rules: Optional[SiteVisitRules], confidence: Optional[float], total) -> bool:
    if rules is None:
        return False
    if rules.always_recommend:
        return True
    if (rules.recommend_when_confidence_below is not None and confidence is not None
            and confidence < rules.recommend_when_confidence_below):
        return True
    if (rules.recommend_when_estimate_above is not None
            and to_decimal(total) > to_decimal(rules.recommend_when_estimate_above)):
        return True
    return False
