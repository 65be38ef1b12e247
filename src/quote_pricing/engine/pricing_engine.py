"""
Pricing Engine - turns pricing rules plus answers into an itemized price.

Pipeline, in order:
1. Base fee
2. Work steps (trigger, quantity, amount)
3. Add-ons (explicit selections, then keyword detection in free text)
4. Multiplier chain
5. Minimum charge
6. Tax
7. Confidence range and site-visit notes

calculate_pricing() is a pure function: same inputs, same output, no I/O.
PricingEngine wraps it with settings and loads service rules fresh per call.
"""
import logging
from typing import Optional

from ..config.settings import get_settings, Settings
from .addon_detector import build_searchable_text, detect_addons
from .assessment import RANGE_NOTE, SITE_VISIT_NOTE, price_range, site_visit_recommended
from .charges import compute_tax, enforce_minimum
from .coercion import as_number
from .models import (
    AnswerSet,
    LineItem,
    PricingContext,
    PricingResult,
    PricingRules,
    RecommendedAddon,
    TaxConfig,
    Trace,
)
from .money import ZERO, format_currency, quantize2
from .multipliers import apply_multipliers
from .multipliers import used_answer_keys as multiplier_keys
from .trace import TraceBuilder
from .work_steps import resolve_work_steps
from .work_steps import used_answer_keys as work_step_keys

logger = logging.getLogger(__name__)

BASE_FEE_LABEL = "Base service fee"


def _as_answer_set(answers, signals) -> AnswerSet:
    if isinstance(answers, AnswerSet):
        if signals is None:
            return answers
        return AnswerSet.build(answers.answers, signals)
    return AnswerSet.build(answers, signals)


def _warn_unused_answers(rules: PricingRules, answers: AnswerSet):
    """Log numeric answers that no rule reads; usually a service configuration gap."""
    used = work_step_keys(rules.work_steps) | multiplier_keys(rules.multipliers)
    unused = []
    for field_id, value in answers.answers.items():
        if field_id.startswith("_") or field_id in used:
            continue
        number = as_number(value)
        if number is not None and number > 0:
            unused.append(f"{field_id}={value}")
    if unused:
        logger.warning("Numeric answers provided but unused in pricing: %s", ", ".join(unused))


def calculate_pricing(
    rules: PricingRules,
    answers,
    signals=None,
    tax_config: Optional[TaxConfig] = None,
    currency: str = "GBP",
    context: Optional[PricingContext] = None,
) -> tuple[PricingResult, Trace]:
    """
    Price a job from its rules and answers.

    Args:
        rules: Service pricing configuration
        answers: AnswerSet, mapping of field id → value, or FormAnswer sequence
        signals: AI-extracted signals (mapping or ExtractedSignal sequence)
        tax_config: Tenant tax settings; no tax when omitted
        currency: ISO currency code used for labels and notes
        context: Free text, service scope, confidence and config version

    Returns:
        (PricingResult, Trace) tuple
    """
    answer_set = _as_answer_set(answers, signals)
    tax_config = tax_config or TaxConfig()
    context = context or PricingContext()

    trace = TraceBuilder(context.config_version)
    breakdown: list[LineItem] = []
    notes: list[str] = []

    # 1. Base fee
    running = quantize2(rules.base_fee)
    if running > ZERO:
        breakdown.append(LineItem(label=BASE_FEE_LABEL, amount=float(running)))
        trace.add_base_fee(running)

    # 2. Work steps
    for line in resolve_work_steps(rules.work_steps, answer_set, currency):
        running += line.amount
        breakdown.append(LineItem(label=line.label, amount=float(line.amount)))
        trace.add_work_step(line)
        if line.note:
            notes.append(line.note)

    # 3. Add-ons
    text = build_searchable_text(context.project_description, answer_set)
    recommended = []
    for match in detect_addons(rules.addons, text, answer_set, context.service):
        price = quantize2(match.addon.price)
        running += price
        trace.add_addon(match)
        if match.auto_recommended:
            breakdown.append(LineItem(
                label=match.addon.label,
                amount=float(price),
                auto_recommended=True,
                recommendation_reason=match.reason,
            ))
            recommended.append(RecommendedAddon(
                id=match.addon.id,
                label=match.addon.label,
                price=float(price),
                reason=match.reason,
            ))
        else:
            breakdown.append(LineItem(label=match.addon.label, amount=float(price)))

    # 4. Multipliers
    chain = apply_multipliers(running, rules.multipliers, answer_set)
    for applied in chain.applied:
        breakdown.append(LineItem(label=applied.label, amount=float(applied.delta)))
        trace.add_multiplier(applied)

    # 5. Minimum charge
    minimum = enforce_minimum(chain.subtotal, rules.minimum_charge)
    trace.add_minimum(minimum)
    if minimum.applied:
        notes.append(f"Minimum charge of {format_currency(minimum.subtotal, currency)} applied")

    # 6. Tax
    tax = compute_tax(minimum.subtotal, tax_config)
    trace.add_tax(minimum.subtotal, tax)

    result = PricingResult(
        currency=currency,
        subtotal=float(minimum.subtotal),
        tax_amount=float(tax.tax_amount),
        total=float(tax.total),
        breakdown=breakdown,
        tax_label=tax.label,
        tax_rate=tax.rate,
        recommended_addons=recommended or None,
        confidence=context.confidence,
    )
    for note in notes:
        result.add_note(note)

    # 7. Confidence range and site visit
    result.range = price_range(tax.total, context.confidence)
    if result.range is not None:
        result.add_note(RANGE_NOTE)
    if site_visit_recommended(rules.site_visit_rules, context.confidence, tax.total):
        result.add_note(SITE_VISIT_NOTE)

    _warn_unused_answers(rules, answer_set)

    return result, trace.build(tax.total)


class PricingEngine:
    """
    Settings-aware wrapper around calculate_pricing.

    Service rules are read from the rules service on every call so a
    configuration change is picked up by the next quote.
    """

    def __init__(self, settings: Optional[Settings] = None, rules_service=None):
        self.settings = settings or get_settings()
        if rules_service is None:
            from ..services.rules_service import RulesService
            rules_service = RulesService(self.settings.services_dir)
        self.rules_service = rules_service

    def calculate(self, rules: PricingRules, answers, signals=None,
                  tax_config: Optional[TaxConfig] = None, currency: Optional[str] = None,
                  context: Optional[PricingContext] = None) -> tuple[PricingResult, Trace]:
        if context is None:
            context = PricingContext(config_version=self.settings.config_version)
        return calculate_pricing(
            rules,
            answers,
            signals=signals,
            tax_config=tax_config,
            currency=currency or self.settings.default_currency,
            context=context,
        )

    def price_service(self, service_id: str, answers, signals=None,
                      tax_config: Optional[TaxConfig] = None, currency: Optional[str] = None,
                      project_description: Optional[str] = None,
                      confidence: Optional[float] = None) -> tuple[PricingResult, Trace]:
        """
        Price a configured service by id.

        Raises:
            KeyError: If the service is not configured
        """
        service = self.rules_service.get_service(service_id)
        context = PricingContext(
            project_description=project_description,
            service=service.service_context(),
            confidence=confidence,
            config_version=service.config_version,
        )
        return self.calculate(service.rules, answers, signals, tax_config, currency, context)

    def estimate_cross_service(self, reference, signals=None,
                               tax_config: Optional[TaxConfig] = None,
                               currency: Optional[str] = None):
        """
        Estimate a secondary service mentioned by the customer.

        Malformed service files are skipped so they cannot break an estimate
        for a different service; None if the reference can't be resolved.
        """
        from .cross_service import estimate_cross_service
        return estimate_cross_service(
            reference,
            self.rules_service.list_services(skip_invalid=True),
            tax_config or TaxConfig(),
            currency or self.settings.default_currency,
            signals=signals,
        )
