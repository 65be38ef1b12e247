"""
Ordered multiplier chain.

Multipliers compound: each factor applies to the subtotal left by the ones
before it, and lines come out in configured order.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import reduce
from typing import Iterable

from .coercion import as_text
from .conditions import evaluate
from .models import AnswerSet, Multiplier
from .money import ZERO, format_number, quantize2, to_decimal


@dataclass(frozen=True)
class AppliedMultiplier:
    """A multiplier that fired, with its signed, rounded effect."""
    multiplier: Multiplier
    label: str
    before: Decimal
    after: Decimal
    delta: Decimal

    @property
    def calculation(self) -> str:
        return (f"{format_number(quantize2(self.before))} × "
                f"{format_number(self.multiplier.factor)} = {format_number(quantize2(self.after))}")


@dataclass(frozen=True)
class MultiplierChainResult:
    subtotal: Decimal
    applied: tuple[AppliedMultiplier, ...]

    @property
    def adjustment(self) -> Decimal:
        """Net monetary effect of the chain."""
        return quantize2(sum((a.delta for a in self.applied), ZERO))


def generate_label(multiplier: Multiplier) -> str:
    """
    Build a readable label from the condition when none is configured.

    property_size = large, x1.25 → "Large property size"
    property_size = small, x0.85 → "Small property size discount"
    """
    condition = multiplier.when
    field_label = condition.field_id.replace("_", " ").lower()
    value = condition.value
    if isinstance(value, str):
        value_label = value[:1].upper() + value[1:].replace("_", " ")
    else:
        value_label = as_text(value)

    label = f"{value_label} {field_label}"
    if multiplier.factor < 1:
        label += " discount"
    return label


def apply_multipliers(subtotal, multipliers: Iterable[Multiplier],
                      answers: AnswerSet) -> MultiplierChainResult:
    """
    Fold the multipliers over the running subtotal.

    Args:
        subtotal: Subtotal after base fee, work steps and add-ons
        multipliers: Multipliers in application order
        answers: Answer set the conditions are evaluated against

    Returns:
        MultiplierChainResult with the unrounded subtotal and applied lines
    """
    def apply(state, multiplier: Multiplier):
        running, applied = state
        if not evaluate(multiplier.when, answers):
            return state
        after = running * to_decimal(multiplier.factor)
        delta = quantize2(after - running)
        if delta == ZERO:
            return after, applied
        line = AppliedMultiplier(
            multiplier=multiplier,
            label=multiplier.label or generate_label(multiplier),
            before=running,
            after=after,
            delta=delta,
        )
        return after, applied + (line,)

    running, applied = reduce(apply, multipliers, (to_decimal(subtotal), ()))
    return MultiplierChainResult(subtotal=running, applied=applied)


def used_answer_keys(multipliers: Iterable[Multiplier]) -> set[str]:
    return {m.when.field_id for m in multipliers}
