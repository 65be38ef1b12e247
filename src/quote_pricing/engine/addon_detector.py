"""
Add-on detection from free-text project descriptions.

This is a bounded keyword heuristic, not a language parser. It looks for
configured trigger keywords on word boundaries, throws a keyword away when a
negation marker sits within NEGATION_WINDOW words before it ("no fridge",
"don't want the fridge cleaned"), and switches keyword detection off
entirely when the customer uses a global "no extras" style phrase. Both the
window size and the phrase list are plain constants so they can be tuned.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .coercion import as_boolean
from .models import Addon, AnswerSet, ServiceContext
from .money import ZERO, quantize2

logger = logging.getLogger(__name__)

# Number of words, ending at the keyword, inspected for a negation marker
NEGATION_WINDOW = 3

NEGATION_MARKERS = (
    "no", "don't", "dont", "won't", "wont", "not",
    "without", "skip", "avoid", "exclude", "never",
)

GLOBAL_ADDON_SUPPRESSORS = tuple(re.compile(pattern, re.IGNORECASE) for pattern in (
    r"\b(no extras?)\b",
    r"\b(please no extras?)\b",
    r"\b(don'?t (want|need|add) (any )?extras?)\b",
    r"\b(budget (only|focused|conscious))\b",
    r"\b(keep it (simple|basic|minimal))\b",
    r"\b(nothing extra)\b",
    r"\b(just the basics?)\b",
    r"\b(no add[- ]?ons?)\b",
    r"\b(no additional)\b",
))

# Core keywords looked up in an add-on id to decide if the service already covers it
SERVICE_SCOPE_KEYWORDS = (
    "paint", "scratch", "dent", "rust", "polish",
    "wax", "seal", "buff", "clear", "coat",
)

DESCRIPTION_FIELD_MARKERS = ("description", "notes", "details")
PROJECT_DESCRIPTION_FIELD = "_project_description"

_NEGATION_PREFIX = r"\b(?:{})\s+(?:\w+\s+){{0,{}}}".format(
    "|".join(re.escape(marker) for marker in NEGATION_MARKERS),
    NEGATION_WINDOW - 1,
)


@dataclass
class AddonMatch:
    """An add-on that will be charged, and why."""
    addon: Addon
    auto_recommended: bool
    keyword: Optional[str] = None

    @property
    def reason(self) -> Optional[str]:
        if self.keyword is None:
            return None
        return f'Recommended based on "{self.keyword}" in your description'


def is_description_field(field_id: str) -> bool:
    return field_id == PROJECT_DESCRIPTION_FIELD or any(
        marker in field_id for marker in DESCRIPTION_FIELD_MARKERS
    )


def build_searchable_text(project_description: Optional[str], answers: AnswerSet) -> str:
    """Join the description with description-like string answers, lower-cased."""
    parts = []
    if project_description:
        parts.append(project_description)
    for field_id, value in answers.answers.items():
        if is_description_field(field_id) and isinstance(value, str) and value:
            parts.append(value)
    return " ".join(parts).lower()


def has_global_suppressor(text: str) -> bool:
    return any(pattern.search(text) for pattern in GLOBAL_ADDON_SUPPRESSORS)


def _keyword_pattern(keyword: str) -> str:
    return r"\b{}\b".format(re.escape(keyword))


def is_negated(text: str, keyword: str) -> bool:
    """True if any occurrence of keyword follows a negation marker inside the window."""
    pattern = _NEGATION_PREFIX + _keyword_pattern(keyword.lower().strip())
    return re.search(pattern, text.lower()) is not None


def find_matching_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    """
    Find the first keyword present in text and not negated.

    Args:
        text: Searchable text
        keywords: Trigger keywords in configured order

    Returns:
        The matched keyword as configured, or None
    """
    text_lower = text.lower()
    for keyword in keywords:
        keyword_lower = keyword.lower().strip()
        if not keyword_lower:
            continue
        if not re.search(_keyword_pattern(keyword_lower), text_lower):
            continue
        if is_negated(text_lower, keyword_lower):
            logger.debug("Keyword %r found but negated, skipping", keyword)
            continue
        return keyword
    return None


def addon_scope_keyword(addon_id: str) -> Optional[str]:
    """'deep_scratch_repair' → 'scratch'"""
    id_lower = addon_id.lower()
    return next((kw for kw in SERVICE_SCOPE_KEYWORDS if kw in id_lower), None)


def is_addon_covered_by_service(addon_id: str, service: ServiceContext) -> bool:
    """True when the service name or scope already includes the add-on's core work."""
    keyword = addon_scope_keyword(addon_id)
    if keyword is None:
        return False
    scope_text = " ".join(service.scope_includes).lower()
    return keyword in service.name.lower() or keyword in scope_text


def is_explicitly_selected(addon: Addon, answers: AnswerSet) -> bool:
    value = answers.answer(addon.id)
    return value == addon.id or as_boolean(value)


def detect_addons(addons: Iterable[Addon], text: str, answers: AnswerSet,
                  service: Optional[ServiceContext] = None) -> list[AddonMatch]:
    """
    Decide which add-ons to charge, in configured order.

    Explicitly selected add-ons are always included. Keyword detection runs
    only when there is text and no global suppressor phrase in it.
    """
    keyword_detection = bool(text)
    if keyword_detection and has_global_suppressor(text):
        logger.debug("Global add-on suppressor found, skipping keyword detection")
        keyword_detection = False

    matches = []
    for addon in addons:
        if quantize2(addon.price) == ZERO:
            continue

        if is_explicitly_selected(addon, answers):
            matches.append(AddonMatch(addon=addon, auto_recommended=False))
            continue

        if not keyword_detection or not addon.trigger_keywords:
            continue

        keyword = find_matching_keyword(text, addon.trigger_keywords)
        if keyword is None:
            continue
        if service is not None and is_addon_covered_by_service(addon.id, service):
            logger.debug("Add-on %r already covered by service %r", addon.id, service.name)
            continue
        matches.append(AddonMatch(addon=addon, auto_recommended=True, keyword=keyword))

    return matches
