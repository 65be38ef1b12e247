"""
Calculation trace builder.

The builder records what the engine did; nothing in it is read back into
the price.
"""
from decimal import Decimal
from typing import Optional

from .addon_detector import AddonMatch
from .charges import MinimumResult, TaxResult, tax_calculation
from .models import Trace, TraceStep, TraceSummary
from .money import ZERO, format_number, round2, to_decimal
from .multipliers import AppliedMultiplier
from .work_steps import WorkStepLine


class TraceBuilder:
    """Accumulates ordered trace steps and summary totals for one calculation."""

    def __init__(self, config_version: Optional[str] = None):
        self.config_version = config_version or "v1"
        self.steps: list[TraceStep] = []
        self.running_total = ZERO
        self.base_fee = ZERO
        self.work_steps_total = ZERO
        self.addons_total = ZERO
        self.multiplier_adjustment = ZERO
        self.minimum_applied = False
        self.tax_amount = ZERO

    def _record(self, step_type: str, description: str, amount: Decimal, **fields) -> TraceStep:
        step = TraceStep(
            type=step_type,
            description=description,
            amount=round2(amount),
            running_total=round2(self.running_total),
            **fields,
        )
        self.steps.append(step)
        return step

    def add_base_fee(self, amount):
        amount = to_decimal(amount)
        self.base_fee = amount
        self.running_total += amount
        self._record('base_fee', 'Base service fee', amount,
                     calculation=f"Base fee: {format_number(amount)}")

    def add_work_step(self, line: WorkStepLine):
        self.running_total += line.amount
        self.work_steps_total += line.amount
        self._record(
            'work_step', line.step.name, line.amount,
            id=line.step.id,
            calculation=line.calculation,
            signals_used=list(line.signals_used),
            quantity_source=line.quantity_source,
            quantity_trusted=line.quantity_trusted,
        )

    def add_addon(self, match: AddonMatch):
        price = to_decimal(match.addon.price)
        self.running_total += price
        self.addons_total += price
        signals_used = [{"key": "matched_keyword", "value": match.keyword}] if match.keyword else []
        self._record('addon', match.addon.label, price,
                     id=match.addon.id,
                     calculation=f"Addon: {format_number(price)}",
                     signals_used=signals_used)

    def add_multiplier(self, applied: AppliedMultiplier):
        condition = applied.multiplier.when
        self.running_total = applied.after
        self.multiplier_adjustment += applied.delta
        self._record('multiplier', applied.label, applied.delta,
                     id=condition.field_id,
                     calculation=applied.calculation,
                     signals_used=[{"key": condition.field_id, "value": condition.value}])

    def add_minimum(self, minimum: MinimumResult):
        self.minimum_applied = minimum.applied
        if not minimum.applied:
            return
        self.running_total = minimum.subtotal
        self._record('minimum', 'Minimum charge applied', minimum.uplift,
                     calculation=(f"Subtotal {format_number(minimum.original)} < "
                                  f"minimum {format_number(minimum.subtotal)}"))

    def add_tax(self, subtotal: Decimal, tax: TaxResult):
        if not tax.enabled:
            return
        self.tax_amount = tax.tax_amount
        self.running_total = tax.total
        self._record('tax', tax.label or 'Tax', tax.tax_amount,
                     calculation=tax_calculation(subtotal, tax))

    def build(self, total) -> Trace:
        summary = TraceSummary(
            base_fee=round2(self.base_fee),
            work_steps_total=round2(self.work_steps_total),
            addons_total=round2(self.addons_total),
            multiplier_adjustment=round2(self.multiplier_adjustment),
            minimum_applied=self.minimum_applied,
            tax_amount=round2(self.tax_amount),
            total=round2(total),
        )
        return Trace(summary=summary, steps=list(self.steps), config_version=self.config_version)
