"""
Cross-service estimates.

When a customer asking about one service mentions another ("and the gutters
need doing too"), upstream detection hands over a CrossServiceReference. The
same pricing pipeline is run against the other service's rules to give a
secondary, lower-confidence figure. Failure to resolve the reference yields
no estimate rather than an error.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .coercion import as_number
from .models import (
    AnswerSet,
    PricingContext,
    PricingResult,
    QuantitySourceType,
    ServicePricing,
    TaxConfig,
    Trace,
)
from .pricing_engine import calculate_pricing

logger = logging.getLogger(__name__)

ESTIMATE_CONFIDENCE_CEILING = 0.8

ESTIMATE_NOTE = "Estimate based on your description. Final price confirmed after assessment."
DETAILS_NOTE = "Based on details provided."


@dataclass(frozen=True)
class CrossServiceReference:
    """A mention of another configured service, as detected upstream."""
    service_name: str
    service_id: Optional[str] = None
    estimated_quantity: Optional[float] = None
    quantity_unit: Optional[str] = None
    extracted_details: tuple[str, ...] = ()
    confidence: float = 0.5


@dataclass
class CrossServiceEstimate:
    service_id: str
    service_name: str
    result: PricingResult
    trace: Trace
    note: str
    quantity_unit: Optional[str] = None
    extracted_details: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = {
            "serviceId": self.service_id,
            "serviceName": self.service_name,
            "note": self.note,
            "extractedDetails": list(self.extracted_details),
        }
        if self.quantity_unit:
            data["quantityUnit"] = self.quantity_unit
        data["result"] = self.result.to_dict()
        return data


def resolve_service(reference: CrossServiceReference,
                    services: Iterable[ServicePricing]) -> Optional[ServicePricing]:
    """Match by id first, then by case-insensitive name."""
    services = list(services)
    if reference.service_id:
        for service in services:
            if service.id == reference.service_id:
                return service
    name = (reference.service_name or "").strip().lower()
    if name:
        for service in services:
            if service.name.strip().lower() == name:
                return service
    return None


def quantity_signals(service: ServicePricing, quantity: Optional[float]) -> dict:
    """Expose the estimated quantity under every quantity key the service reads."""
    if quantity is None or quantity <= 0:
        return {}
    signals = {}
    for step in service.rules.work_steps:
        source = step.quantity_source
        if not step.is_quantity_based or source is None:
            continue
        if source.type is QuantitySourceType.CONSTANT or not source.key:
            continue
        signals[source.key] = quantity
    return signals


def estimate_cross_service(
    reference: Optional[CrossServiceReference],
    services: Iterable[ServicePricing],
    tax_config: TaxConfig,
    currency: str,
    signals: Optional[Mapping] = None,
) -> Optional[CrossServiceEstimate]:
    """
    Price a referenced service with the regular pipeline.

    Args:
        reference: Detected mention of another service (may be None)
        services: Configured services to resolve against
        tax_config: Tenant tax settings
        currency: ISO currency code
        signals: Signals already known for that service; they win over the
            estimated quantity

    Returns:
        CrossServiceEstimate flagged is_estimate, or None when unresolvable
    """
    if reference is None:
        logger.warning("Cross-service estimate requested without a reference")
        return None

    service = resolve_service(reference, services)
    if service is None:
        logger.warning(
            "Cross-service reference %r (id=%s) does not match a configured service",
            reference.service_name, reference.service_id,
        )
        return None

    quantity = as_number(reference.estimated_quantity)
    answer_set = AnswerSet.build(signals=signals).with_signals(quantity_signals(service, quantity))

    confidence = min(float(reference.confidence), ESTIMATE_CONFIDENCE_CEILING)
    context = PricingContext(
        service=service.service_context(),
        confidence=confidence,
        config_version=service.config_version,
    )
    result, trace = calculate_pricing(service.rules, answer_set, tax_config=tax_config,
                                      currency=currency, context=context)

    result.is_estimate = True
    note = ESTIMATE_NOTE if confidence < ESTIMATE_CONFIDENCE_CEILING else DETAILS_NOTE
    result.add_note(note)

    logger.debug("Cross-service estimate for %r: %.2f", service.name, result.total)
    return CrossServiceEstimate(
        service_id=service.id,
        service_name=service.name,
        result=result,
        trace=trace,
        note=note,
        quantity_unit=reference.quantity_unit,
        extracted_details=tuple(reference.extracted_details),
    )
