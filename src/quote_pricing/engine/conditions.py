"""
Condition evaluation against an answer set.

Each Operator maps to exactly one comparison function in OPERATORS; a missing
or empty value makes every condition false except not_exists.
"""
import operator as op
import re
from typing import Any, Callable

from .coercion import ScalarKind, as_boolean, as_list, as_number, as_text, is_empty, scalar_kind
from .models import AnswerSet, Condition, Operator


def normalize_text(value: str) -> str:
    """Loose form used for a second equals attempt: "Large_(3+ beds)" ≈ "large 3+ beds"."""
    text = value.lower().replace("_", " ")
    text = re.sub(r"[()<>]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _equals(subject: Any, target: Any) -> bool:
    """Compare by the kind of the configured value."""
    subject_kind = scalar_kind(subject)
    if subject_kind is ScalarKind.LIST:
        # Multi-select answers match when any selected option matches
        return any(_equals(item, target) for item in subject if not is_empty(item))

    target_kind = scalar_kind(target)
    if target_kind is ScalarKind.BOOLEAN:
        return as_boolean(subject) == target
    if target_kind is ScalarKind.NUMBER:
        number = as_number(subject)
        return number is not None and number == float(target)
    if target_kind is not ScalarKind.STRING:
        return False

    if subject_kind is ScalarKind.BOOLEAN:
        return subject == as_boolean(target)
    if subject_kind is ScalarKind.NUMBER:
        number = as_number(target)
        return number is not None and number == float(subject)

    subject_text = str(subject)
    if subject_text.strip().lower() == str(target).strip().lower():
        return True
    return normalize_text(subject_text) == normalize_text(str(target))


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def evaluate_numeric(subject: Any, target: Any) -> bool:
        left, right = as_number(subject), as_number(target)
        if left is None or right is None:
            return False
        return compare(left, right)
    return evaluate_numeric


def _contains(subject: Any, target: Any) -> bool:
    wanted = as_text(target)
    return any(as_text(item) == wanted for item in as_list(subject))


OPERATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUALS: _equals,
    Operator.GT: _numeric(op.gt),
    Operator.GTE: _numeric(op.ge),
    Operator.LT: _numeric(op.lt),
    Operator.LTE: _numeric(op.le),
    Operator.EXISTS: lambda subject, target: True,
    Operator.NOT_EXISTS: lambda subject, target: False,
    Operator.CONTAINS: _contains,
}


def evaluate(condition: Condition, answers: AnswerSet, prefer_signals: bool = False) -> bool:
    """
    Evaluate a single condition.

    Args:
        condition: The field/operator/value triple
        answers: Merged form answers and AI signals
        prefer_signals: Read the signal namespace first (trigger signals)

    Returns:
        True if the condition holds. Never raises for odd answer values.
    """
    value = answers.lookup(condition.field_id, prefer_signals=prefer_signals)
    if is_empty(value):
        return condition.operator is Operator.NOT_EXISTS
    return OPERATORS[condition.operator](value, condition.value)
