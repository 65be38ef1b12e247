"""
Scalar coercion for loosely-typed answer and rule values.

Form answers and AI signals arrive as strings, numbers, booleans or lists.
Every helper here degrades to an absent/false/empty result instead of
raising, so condition evaluation and quantity resolution stay total.
"""
import math
from enum import Enum
from typing import Any, Optional


class ScalarKind(Enum):
    ABSENT = "absent"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"


TRUTHY_STRINGS = frozenset({"true", "yes"})
FALSY_STRINGS = frozenset({"false", "no", "0"})


def scalar_kind(value: Any) -> ScalarKind:
    """Classify a raw value. bool is checked before int (bool subclasses int)."""
    if value is None:
        return ScalarKind.ABSENT
    if isinstance(value, bool):
        return ScalarKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ScalarKind.NUMBER
    if isinstance(value, (list, tuple)):
        return ScalarKind.LIST
    return ScalarKind.STRING


def as_number(value: Any) -> Optional[float]:
    """
    Coerce to a finite float.

    "1,000" → 1000.0, " 2.5 " → 2.5, 7 → 7.0.
    Booleans, lists, NaN/inf and unparsable strings → None.
    """
    kind = scalar_kind(value)
    if kind is ScalarKind.NUMBER:
        number = float(value)
    elif kind is ScalarKind.STRING:
        text = str(value).replace(",", "").strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def as_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    return False


def as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def as_text(value: Any) -> str:
    """Canonical lower-case text: True → "true", 4.0 → "4", " Deep_Clean " → "deep_clean"."""
    kind = scalar_kind(value)
    if kind is ScalarKind.ABSENT:
        return ""
    if kind is ScalarKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ScalarKind.NUMBER:
        number = float(value)
        if math.isfinite(number) and number.is_integer():
            return str(int(number))
        return str(value)
    return str(value).strip().lower()


def is_empty(value: Any) -> bool:
    """None, blank strings and empty lists count as no answer."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def is_truthy(value: Any) -> bool:
    """
    Presence test for flag-style signals.

    False, 0, blank and "false"/"no"/"0" read as not set; any other present
    value (including unrecognised text such as "detected") reads as set.
    """
    if is_empty(value):
        return False
    kind = scalar_kind(value)
    if kind is ScalarKind.BOOLEAN:
        return value
    if kind is ScalarKind.NUMBER:
        return float(value) != 0
    if kind is ScalarKind.STRING:
        return str(value).strip().lower() not in FALSY_STRINGS
    return True
