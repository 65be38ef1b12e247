"""Engine subpackage - deterministic pricing rules engine."""
from .pricing_engine import PricingEngine, calculate_pricing
from .cross_service import CrossServiceEstimate, CrossServiceReference, estimate_cross_service
from .models import (
    Addon,
    AnswerSet,
    Condition,
    CostType,
    ExtractedSignal,
    FormAnswer,
    LineItem,
    Multiplier,
    Operator,
    PricingContext,
    PricingResult,
    PricingRules,
    QuantitySource,
    QuantitySourceType,
    ServiceContext,
    ServicePricing,
    SiteVisitRules,
    TaxConfig,
    Trace,
    WorkStep,
)

__all__ = [
    'PricingEngine', 'calculate_pricing',
    'CrossServiceEstimate', 'CrossServiceReference', 'estimate_cross_service',
    'Addon', 'AnswerSet', 'Condition', 'CostType', 'ExtractedSignal', 'FormAnswer',
    'LineItem', 'Multiplier', 'Operator', 'PricingContext', 'PricingResult',
    'PricingRules', 'QuantitySource', 'QuantitySourceType', 'ServiceContext',
    'ServicePricing', 'SiteVisitRules', 'TaxConfig', 'Trace', 'WorkStep',
]
