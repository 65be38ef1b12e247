"""
Work-step resolution: which billable steps apply, how many units, how much.

Steps are processed in configured order. A step whose amount comes out as
exactly zero is dropped so no £0 lines reach the breakdown.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .coercion import as_number, is_truthy
from .conditions import evaluate
from .models import AnswerSet, CostType, QuantitySourceType, WorkStep
from .money import ZERO, format_compact, format_number, quantize2, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_UNIT_LABELS = {
    CostType.PER_UNIT: "units",
    CostType.PER_HOUR: "hours",
}

# Quantity used when a quantity-based step cannot resolve one
UNRESOLVED_QUANTITY = {
    CostType.PER_UNIT: 0.0,
    CostType.PER_HOUR: 1.0,
}


@dataclass
class ResolvedQuantity:
    """Outcome of reading a step's quantity source."""
    value: Optional[float]
    source: str
    trusted: bool
    signals_used: list[dict] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.value is not None


@dataclass
class WorkStepLine:
    """A work step that made it into the breakdown."""
    step: WorkStep
    label: str
    amount: Decimal
    calculation: str
    quantity: Optional[float] = None
    quantity_source: str = "constant"
    quantity_trusted: bool = True
    signals_used: list[dict] = field(default_factory=list)
    note: Optional[str] = None


def unit_label_for(step: WorkStep) -> str:
    return step.unit_label or DEFAULT_UNIT_LABELS.get(step.cost_type, "units")


def resolve_quantity(step: WorkStep, answers: AnswerSet) -> ResolvedQuantity:
    """
    Read the quantity for a per_unit/per_hour step.

    Form fields read customer answers first, AI signals read the signal
    namespace first. Negative or unparsable values are unresolved.
    """
    source = step.quantity_source
    if source is None:
        return ResolvedQuantity(value=None, source="default", trusted=False)

    if source.type is QuantitySourceType.CONSTANT:
        value = 1.0 if source.value is None else as_number(source.value)
        trusted = True
        key = "constant"
    elif source.type is QuantitySourceType.FORM_FIELD:
        value = as_number(answers.lookup(source.field_id))
        trusted = True
        key = source.field_id
    else:
        value = as_number(answers.lookup(source.signal_key, prefer_signals=True))
        trusted = False
        key = source.signal_key

    if value is None or value < 0:
        return ResolvedQuantity(value=None, source="default", trusted=False)
    return ResolvedQuantity(
        value=value,
        source=source.type.value,
        trusted=trusted,
        signals_used=[{"key": key, "value": value}],
    )


def is_triggered(step: WorkStep, answers: AnswerSet, quantity: Optional[ResolvedQuantity] = None) -> bool:
    """
    Non-optional steps always apply. Optional steps need their trigger
    condition, a set trigger flag, or failing both a positive quantity.
    """
    if not step.optional:
        return True
    if step.trigger is not None:
        return evaluate(step.trigger, answers, prefer_signals=True)
    if step.trigger_flag:
        return is_truthy(answers.lookup(step.trigger_flag, prefer_signals=True))
    if quantity is None:
        quantity = resolve_quantity(step, answers)
    return quantity.resolved and quantity.value > 0


def format_step_label(step: WorkStep, quantity: float, currency: str) -> str:
    """'Room Cleaning  £35 x 4(Rooms)' for unit/hour steps, the plain name otherwise."""
    if step.cost_type is CostType.FIXED:
        return step.name
    unit_label = unit_label_for(step)
    unit_label = unit_label[:1].upper() + unit_label[1:]
    return f"{step.name}  {format_compact(step.default_cost, currency)} x {format_number(quantity)}({unit_label})"


def _calculation_text(step: WorkStep, quantity: float, amount: Decimal) -> str:
    if step.cost_type is CostType.FIXED:
        return f"Fixed: {format_number(step.default_cost)}"
    unit_label = unit_label_for(step)
    singular = unit_label[:-1] if unit_label.endswith("s") else unit_label
    return (f"{format_number(quantity)} {unit_label} × "
            f"{format_number(step.default_cost)}/{singular} = {format_number(amount)}")


def resolve_step(step: WorkStep, answers: AnswerSet, currency: str) -> Optional[WorkStepLine]:
    """
    Resolve a single step into a breakdown line.

    Returns:
        WorkStepLine, or None when the step is not triggered or costs nothing
    """
    quantity = resolve_quantity(step, answers) if step.is_quantity_based else None
    if not is_triggered(step, answers, quantity):
        logger.debug("Skipping work step %r: trigger not satisfied", step.name)
        return None

    if step.cost_type is CostType.FIXED:
        amount = quantize2(step.default_cost)
        line = WorkStepLine(
            step=step,
            label=format_step_label(step, 1, currency),
            amount=amount,
            calculation=_calculation_text(step, 1, amount),
        )
    else:
        if quantity.resolved:
            qty = quantity.value
        else:
            qty = UNRESOLVED_QUANTITY[step.cost_type]
            logger.warning(
                "Work step %r: quantity source unresolved, using %s",
                step.name, format_number(qty),
            )
        amount = quantize2(to_decimal(step.default_cost) * to_decimal(qty))
        line = WorkStepLine(
            step=step,
            label=format_step_label(step, qty, currency),
            amount=amount,
            calculation=_calculation_text(step, qty, amount),
            quantity=qty,
            quantity_source=quantity.source,
            quantity_trusted=quantity.trusted,
            signals_used=list(quantity.signals_used),
        )
        if quantity.source == QuantitySourceType.AI_SIGNAL.value:
            line.note = f'"{step.name}" quantity from AI signal (lower confidence)'

    if amount == ZERO:
        logger.debug("Skipping work step %r: zero cost", step.name)
        return None

    trigger_key = step.trigger_signal
    if trigger_key and not any(s["key"] == trigger_key for s in line.signals_used):
        trigger_value = answers.lookup(trigger_key, prefer_signals=True)
        if trigger_value is not None:
            line.signals_used.insert(0, {"key": trigger_key, "value": trigger_value})

    return line


def resolve_work_steps(steps, answers: AnswerSet, currency: str) -> list[WorkStepLine]:
    """Resolve all steps in configured order, keeping only billable ones."""
    lines = []
    for step in steps:
        line = resolve_step(step, answers, currency)
        if line is not None:
            lines.append(line)
    return lines


def used_answer_keys(steps) -> set[str]:
    """Answer keys read by work-step quantities and triggers."""
    keys = set()
    for step in steps:
        if step.quantity_source is not None and step.quantity_source.key:
            keys.add(step.quantity_source.key)
        if step.trigger_signal:
            keys.add(step.trigger_signal)
    return keys
