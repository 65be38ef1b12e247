"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
Rule inputs are frozen (tuples instead of lists) so a calculation can never
mutate the configuration it was handed.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union


Scalar = Union[str, int, float, bool]


class CostType(str, Enum):
    """How a work step is billed."""
    FIXED = "fixed"
    PER_UNIT = "per_unit"
    PER_HOUR = "per_hour"


class Operator(str, Enum):
    """Comparison operators understood by the condition evaluator."""
    EQUALS = "equals"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    CONTAINS = "contains"


class QuantitySourceType(str, Enum):
    """Where a per-unit/per-hour step gets its quantity from."""
    FORM_FIELD = "form_field"
    CONSTANT = "constant"
    AI_SIGNAL = "ai_signal"


@dataclass(frozen=True)
class Condition:
    """A single named comparison against one key of the answer set."""
    field_id: str
    operator: Operator = Operator.EQUALS
    value: Any = None

    def __post_init__(self):
        # Raises ValueError for an unknown operator string
        object.__setattr__(self, 'operator', Operator(self.operator))


@dataclass(frozen=True)
class QuantitySource:
    """Variant describing how a work step quantity is resolved."""
    type: QuantitySourceType
    field_id: Optional[str] = None
    value: Optional[float] = None
    signal_key: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'type', QuantitySourceType(self.type))

    @classmethod
    def form_field(cls, field_id: str) -> 'QuantitySource':
        return cls(type=QuantitySourceType.FORM_FIELD, field_id=field_id)

    @classmethod
    def constant(cls, value: float) -> 'QuantitySource':
        return cls(type=QuantitySourceType.CONSTANT, value=value)

    @classmethod
    def ai_signal(cls, signal_key: str) -> 'QuantitySource':
        return cls(type=QuantitySourceType.AI_SIGNAL, signal_key=signal_key)

    @property
    def key(self) -> Optional[str]:
        """Answer-set key this source reads, if any."""
        if self.type is QuantitySourceType.FORM_FIELD:
            return self.field_id
        if self.type is QuantitySourceType.AI_SIGNAL:
            return self.signal_key
        return None


@dataclass(frozen=True)
class WorkStep:
    """A single billable line of work with its own cost model."""
    id: str
    name: str
    cost_type: CostType
    default_cost: float
    optional: bool = False
    description: str = ""
    quantity_source: Optional[QuantitySource] = None
    unit_label: Optional[str] = None
    # Only meaningful for optional steps; field_id is the trigger signal
    trigger: Optional[Condition] = None
    # Signal read as an on/off flag when no trigger condition is configured
    trigger_flag: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'cost_type', CostType(self.cost_type))

    @property
    def trigger_signal(self) -> Optional[str]:
        return self.trigger.field_id if self.trigger else self.trigger_flag

    @property
    def has_trigger(self) -> bool:
        return self.trigger is not None or bool(self.trigger_flag)

    @property
    def is_quantity_based(self) -> bool:
        return self.cost_type in (CostType.PER_UNIT, CostType.PER_HOUR)


@dataclass(frozen=True)
class Addon:
    """An optional priced extra triggered by keywords in free text."""
    id: str
    label: str
    price: float
    trigger_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class Multiplier:
    """A conditional proportional adjustment. List position is application order."""
    when: Condition
    factor: float
    label: Optional[str] = None


@dataclass(frozen=True)
class SiteVisitRules:
    """When to recommend a site visit instead of trusting the estimate."""
    always_recommend: bool = False
    recommend_when_confidence_below: Optional[float] = None
    recommend_when_estimate_above: Optional[float] = None


@dataclass(frozen=True)
class PricingRules:
    """A service's complete pricing configuration."""
    base_fee: float = 0.0
    minimum_charge: float = 0.0
    work_steps: tuple[WorkStep, ...] = ()
    addons: tuple[Addon, ...] = ()
    multipliers: tuple[Multiplier, ...] = ()
    site_visit_rules: Optional[SiteVisitRules] = None

    def __post_init__(self):
        for name in ('work_steps', 'addons', 'multipliers'):
            object.__setattr__(self, name, tuple(getattr(self, name)))


@dataclass(frozen=True)
class FormAnswer:
    """A customer's answer to one form question."""
    field_id: str
    value: Any


@dataclass(frozen=True)
class ExtractedSignal:
    """An AI-extracted structured signal. Confidence/source are informational only."""
    key: str
    value: Any
    confidence: float = 1.0
    source: str = "form"
    evidence: Optional[str] = None


def _to_mapping(items, key_attr: str, dict_keys: tuple[str, ...]) -> dict[str, Any]:
    """Flatten answers or signals into a plain key → value dict (later entries win)."""
    if not items:
        return {}
    if isinstance(items, Mapping):
        return dict(items)

    mapping = {}
    for item in items:
        if isinstance(item, Mapping):
            key = next((item[k] for k in dict_keys if item.get(k)), None)
            value = item.get('value')
        else:
            key = getattr(item, key_attr, None)
            value = getattr(item, 'value', None)
        if key:
            mapping[str(key)] = value
    return mapping


@dataclass(frozen=True)
class AnswerSet:
    """
    Merged view of customer form answers and AI-extracted signals.

    The two namespaces are kept apart; lookup() reads the preferred one first
    and falls back to the other.
    """
    answers: Mapping[str, Any] = field(default_factory=dict)
    signals: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, answers: Union[Mapping, Iterable, None] = None,
              signals: Union[Mapping, Iterable, None] = None) -> 'AnswerSet':
        """Create from mappings, FormAnswer/ExtractedSignal sequences or raw dicts."""
        return cls(
            answers=_to_mapping(answers, 'field_id', ('fieldId', 'field_id')),
            signals=_to_mapping(signals, 'key', ('key',)),
        )

    def answer(self, key: str) -> Any:
        return self.answers.get(key)

    def signal(self, key: str) -> Any:
        return self.signals.get(key)

    def lookup(self, key: str, prefer_signals: bool = False) -> Any:
        """Resolve a key across both namespaces."""
        primary, secondary = (
            (self.signals, self.answers) if prefer_signals else (self.answers, self.signals)
        )
        value = primary.get(key)
        if value is None:
            value = secondary.get(key)
        return value

    def with_signals(self, extra: Mapping[str, Any]) -> 'AnswerSet':
        """Return a new answer set with extra signals added (existing signals win)."""
        merged = dict(extra)
        merged.update(self.signals)
        return AnswerSet(answers=dict(self.answers), signals=merged)


@dataclass(frozen=True)
class TaxConfig:
    """Tenant tax settings. rate is a percentage: 20 means 20%."""
    enabled: bool = False
    label: Optional[str] = None
    rate: float = 0.0

    @classmethod
    def from_tenant_settings(cls, enabled: bool, label: Optional[str] = None,
                             rate: Optional[float] = None) -> 'TaxConfig':
        """Build from stored tenant settings, normalizing fractional rates (0.20 → 20)."""
        rate_value = float(rate or 0)
        if 0 < rate_value < 1:
            rate_value = round(rate_value * 100, 6)
        return cls(enabled=bool(enabled), label=label, rate=rate_value)


@dataclass(frozen=True)
class ServiceContext:
    """Core service description used to filter add-ons it already covers."""
    name: str
    scope_includes: tuple[str, ...] = ()


@dataclass(frozen=True)
class PricingContext:
    """Optional per-call context for a calculation."""
    project_description: Optional[str] = None
    service: Optional[ServiceContext] = None
    confidence: Optional[float] = None
    config_version: Optional[str] = None


@dataclass(frozen=True)
class ServicePricing:
    """A configured service together with its pricing rules."""
    id: str
    name: str
    rules: PricingRules
    description: str = ""
    scope_includes: tuple[str, ...] = ()
    config_version: str = "v1"

    def service_context(self) -> ServiceContext:
        return ServiceContext(name=self.name, scope_includes=self.scope_includes)


@dataclass
class LineItem:
    """A single entry in the priced breakdown."""
    label: str
    amount: float
    auto_recommended: Optional[bool] = None
    recommendation_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"label": self.label, "amount": self.amount}
        if self.auto_recommended is not None:
            data["autoRecommended"] = self.auto_recommended
        if self.recommendation_reason is not None:
            data["recommendationReason"] = self.recommendation_reason
        return data


@dataclass
class RecommendedAddon:
    """An add-on that was included because it was detected, not selected."""
    id: str
    label: str
    price: float
    reason: str
    source: str = "keyword"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "price": self.price,
            "reason": self.reason,
            "source": self.source,
        }


@dataclass
class PriceRange:
    low: float
    high: float


@dataclass
class PricingResult:
    """Complete priced, itemized result of a calculation."""
    currency: str
    subtotal: float
    tax_amount: float
    total: float
    breakdown: list[LineItem] = field(default_factory=list)
    tax_label: Optional[str] = None
    tax_rate: Optional[float] = None
    notes: list[str] = field(default_factory=list)
    # None means "no add-ons detected"; never an empty list
    recommended_addons: Optional[list[RecommendedAddon]] = None
    confidence: Optional[float] = None
    range: Optional[PriceRange] = None
    is_estimate: bool = False

    def add_note(self, note: str):
        """Add a note once."""
        if note not in self.notes:
            self.notes.append(note)

    def to_dict(self) -> dict:
        """Persisted shape of the result; absent optional keys are omitted."""
        data = {
            "currency": self.currency,
            "subtotal": self.subtotal,
        }
        if self.tax_label is not None:
            data["taxLabel"] = self.tax_label
        if self.tax_rate is not None:
            data["taxRate"] = self.tax_rate
        data.update({
            "taxAmount": self.tax_amount,
            "total": self.total,
            "breakdown": [line.to_dict() for line in self.breakdown],
            "notes": list(self.notes),
        })
        if self.recommended_addons is not None:
            data["recommendedAddons"] = [a.to_dict() for a in self.recommended_addons]
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.range is not None:
            data["range"] = {"low": self.range.low, "high": self.range.high}
        if self.is_estimate:
            data["isEstimate"] = True
        return data


@dataclass
class TraceStep:
    """A single step in the pricing calculation trace."""
    type: str  # base_fee, work_step, addon, multiplier, minimum, tax
    description: str
    amount: float
    running_total: float
    id: Optional[str] = None
    calculation: str = ""
    signals_used: list[dict] = field(default_factory=list)
    quantity_source: Optional[str] = None
    quantity_trusted: Optional[bool] = None

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "description": self.description,
            "signalsUsed": list(self.signals_used),
            "calculation": self.calculation,
            "amount": self.amount,
            "runningTotal": self.running_total,
        }
        if self.id is not None:
            data["id"] = self.id
        if self.quantity_source is not None:
            data["quantitySource"] = self.quantity_source
        if self.quantity_trusted is not None:
            data["quantityTrusted"] = self.quantity_trusted
        return data


@dataclass
class TraceSummary:
    base_fee: float
    work_steps_total: float
    addons_total: float
    multiplier_adjustment: float
    minimum_applied: bool
    tax_amount: float
    total: float

    def to_dict(self) -> dict:
        return {
            "baseFee": self.base_fee,
            "workStepsTotal": self.work_steps_total,
            "addonsTotal": self.addons_total,
            "multiplierAdjustment": self.multiplier_adjustment,
            "minimumApplied": self.minimum_applied,
            "taxAmount": self.tax_amount,
            "total": self.total,
        }


@dataclass
class Trace:
    """Audit record of how a price was derived. Never fed back into pricing."""
    summary: TraceSummary
    steps: list[TraceStep] = field(default_factory=list)
    config_version: str = "v1"

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.steps:
            if t.calculation:
                lines.append(f"• {t.description}: {t.calculation} → {t.running_total:.2f}")
            else:
                lines.append(f"• {t.description}: {t.amount:.2f} → {t.running_total:.2f}")
        if self.summary.minimum_applied:
            lines.append("• Minimum charge enforced")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "configVersion": self.config_version,
            "trace": [step.to_dict() for step in self.steps],
            "summary": self.summary.to_dict(),
        }
