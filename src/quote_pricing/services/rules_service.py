"""
Rules Service - loading and validation of per-service pricing configuration.

Each service lives in its own JSON file under the services directory, in the
same camelCase shape the quote records store. Files are parsed through
pydantic schemas and converted to the engine's frozen dataclasses; malformed
files raise RulesConfigError before any pricing happens.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from ..engine.coercion import as_number
from ..engine.models import (
    Addon,
    Condition,
    CostType,
    Multiplier,
    Operator,
    PricingRules,
    QuantitySource,
    QuantitySourceType,
    ServicePricing,
    SiteVisitRules,
    WorkStep,
)
from ..engine.money import quantize2

logger = logging.getLogger(__name__)

ConditionValue = Optional[Union[bool, int, float, str]]

NUMERIC_OPERATORS = (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE)


class RulesConfigError(ValueError):
    """A service configuration file or table cannot be turned into pricing rules."""


# Pydantic schemas mirroring the persisted JSON

class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class QuantitySourceSchema(_Schema):
    type: QuantitySourceType
    field_id: Optional[str] = None
    value: Optional[float] = None
    signal_key: Optional[str] = None

    def to_domain(self) -> QuantitySource:
        return QuantitySource(
            type=self.type,
            field_id=self.field_id,
            value=self.value,
            signal_key=self.signal_key,
        )


class TriggerConditionSchema(_Schema):
    operator: Operator = Operator.EQUALS
    value: ConditionValue = None


class WorkStepSchema(_Schema):
    id: str
    name: str
    description: str = ""
    cost_type: CostType
    default_cost: float
    optional: bool = False
    quantity_source: Optional[QuantitySourceSchema] = None
    unit_label: Optional[str] = None
    trigger_signal: Optional[str] = None
    trigger_condition: Optional[TriggerConditionSchema] = None

    def to_domain(self) -> WorkStep:
        trigger = None
        trigger_flag = None
        if self.trigger_signal:
            if self.trigger_condition is not None:
                trigger = Condition(self.trigger_signal, self.trigger_condition.operator,
                                    self.trigger_condition.value)
            else:
                # A bare trigger signal is an on/off flag
                trigger_flag = self.trigger_signal
        return WorkStep(
            id=self.id,
            name=self.name,
            description=self.description,
            cost_type=self.cost_type,
            default_cost=self.default_cost,
            optional=self.optional,
            quantity_source=self.quantity_source.to_domain() if self.quantity_source else None,
            unit_label=self.unit_label or None,
            trigger=trigger,
            trigger_flag=trigger_flag,
        )


class AddonSchema(_Schema):
    id: str
    label: str
    price: float
    trigger_keywords: list[str] = []

    def to_domain(self) -> Addon:
        return Addon(id=self.id, label=self.label, price=self.price,
                     trigger_keywords=tuple(self.trigger_keywords))


class MultiplierConditionSchema(_Schema):
    field_id: str
    operator: Operator = Operator.EQUALS
    equals: ConditionValue = None
    value: ConditionValue = None

    def to_domain(self) -> Condition:
        compare = self.equals if self.equals is not None else self.value
        return Condition(self.field_id, self.operator, compare)


class MultiplierSchema(_Schema):
    when: MultiplierConditionSchema
    multiplier: float
    label: Optional[str] = None

    def to_domain(self) -> Multiplier:
        return Multiplier(when=self.when.to_domain(), factor=self.multiplier, label=self.label or None)


class SiteVisitRulesSchema(_Schema):
    always_recommend: bool = False
    recommend_when_confidence_below: Optional[float] = None
    recommend_when_estimate_above: Optional[float] = None

    def to_domain(self) -> SiteVisitRules:
        return SiteVisitRules(
            always_recommend=self.always_recommend,
            recommend_when_confidence_below=self.recommend_when_confidence_below,
            recommend_when_estimate_above=self.recommend_when_estimate_above,
        )


class PricingRulesSchema(_Schema):
    base_fee: float = 0.0
    minimum_charge: float = 0.0
    work_steps: list[WorkStepSchema] = []
    addons: list[AddonSchema] = []
    multipliers: list[MultiplierSchema] = []
    site_visit_rules: Optional[SiteVisitRulesSchema] = None

    def to_domain(self) -> PricingRules:
        return PricingRules(
            base_fee=self.base_fee,
            minimum_charge=self.minimum_charge,
            work_steps=tuple(s.to_domain() for s in self.work_steps),
            addons=tuple(a.to_domain() for a in self.addons),
            multipliers=tuple(m.to_domain() for m in self.multipliers),
            site_visit_rules=self.site_visit_rules.to_domain() if self.site_visit_rules else None,
        )


class ServiceSchema(_Schema):
    id: str
    name: str
    description: str = ""
    scope_includes: list[str] = []
    config_version: str = "v1"
    pricing_rules: PricingRulesSchema

    def to_domain(self) -> ServicePricing:
        return ServicePricing(
            id=self.id,
            name=self.name,
            rules=self.pricing_rules.to_domain(),
            description=self.description,
            scope_includes=tuple(self.scope_includes),
            config_version=self.config_version,
        )


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get('loc', ()))
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def load_rules_dict(data: dict) -> PricingRules:
    """Parse a pricingRules object into PricingRules."""
    try:
        return PricingRulesSchema.model_validate(data).to_domain()
    except ValidationError as e:
        raise RulesConfigError(f"Invalid pricing rules: {_describe(e)}") from e


def load_service_dict(data: dict) -> ServicePricing:
    """Parse a service object (with nested pricingRules) into ServicePricing."""
    try:
        return ServiceSchema.model_validate(data).to_domain()
    except ValidationError as e:
        raise RulesConfigError(f"Invalid service configuration: {_describe(e)}") from e


# Bulk import

CSV_COLUMNS = [
    'id', 'name', 'description', 'cost_type', 'default_cost', 'optional',
    'quantity_source', 'quantity_key', 'unit_label',
    'trigger_signal', 'trigger_operator', 'trigger_value',
]


def _parse_csv_scalar(text: str) -> ConditionValue:
    """'' → None, 'true' → True, '5' → 5, '2.5' → 2.5, anything else stays text."""
    if text == '':
        return None
    if text.lower() in ('true', 'false'):
        return text.lower() == 'true'
    number = as_number(text)
    if number is not None:
        return int(number) if number.is_integer() else number
    return text


def _csv_row_to_dict(row: dict) -> dict:
    step = {
        'id': row.get('id', ''),
        'name': row.get('name', ''),
        'description': row.get('description', ''),
        'costType': row.get('cost_type', ''),
        'defaultCost': row.get('default_cost', ''),
        'optional': row.get('optional', '').lower() in ('true', 'yes', '1'),
        'unitLabel': row.get('unit_label') or None,
    }

    source_type = row.get('quantity_source', '')
    key = row.get('quantity_key', '')
    if source_type:
        source = {'type': source_type}
        if source_type == QuantitySourceType.FORM_FIELD.value:
            source['fieldId'] = key
        elif source_type == QuantitySourceType.AI_SIGNAL.value:
            source['signalKey'] = key
        elif key:
            source['value'] = key
        step['quantitySource'] = source

    if row.get('trigger_signal'):
        step['triggerSignal'] = row['trigger_signal']
        if row.get('trigger_operator'):
            step['triggerCondition'] = {
                'operator': row['trigger_operator'],
                'value': _parse_csv_scalar(row.get('trigger_value', '')),
            }
    return step


def load_work_steps_csv(path: Path) -> list[WorkStep]:
    """
    Bulk-import work steps from a CSV table (one step per row).

    Raises:
        FileNotFoundError: If the file does not exist
        RulesConfigError: If a row cannot be parsed; the message names the row
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Work step table not found at {path}")

    df = pd.read_csv(path, dtype=str).fillna('')
    df.columns = [c.strip().lower() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()

    missing = [c for c in ('id', 'name', 'cost_type', 'default_cost') if c not in df.columns]
    if missing:
        raise RulesConfigError(f"{path.name}: missing columns {', '.join(missing)}")

    steps = []
    for index, row in enumerate(df.to_dict(orient='records'), start=2):
        if not row.get('id'):
            continue
        try:
            steps.append(WorkStepSchema.model_validate(_csv_row_to_dict(row)).to_domain())
        except ValidationError as e:
            raise RulesConfigError(f"{path.name} row {index}: {_describe(e)}") from e
    logger.info("Imported %d work steps from %s", len(steps), path.name)
    return steps


@dataclass
class ValidationResult:
    """Result of rule validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def error(self, message: str):
        self.errors.append(message)
        self.valid = False

    def to_dict(self) -> dict:
        return {'valid': self.valid, 'errors': list(self.errors), 'warnings': list(self.warnings)}


class RulesService:
    """Reads service pricing files from disk on every call."""

    def __init__(self, services_dir: Path):
        self.services_dir = Path(services_dir)

    def _service_files(self) -> list[Path]:
        if not self.services_dir.exists():
            return []
        return sorted(self.services_dir.glob('*.json'))

    def _read(self, path: Path) -> ServicePricing:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RulesConfigError(f"{path.name}: invalid JSON ({e})") from e
        try:
            return load_service_dict(data)
        except RulesConfigError as e:
            raise RulesConfigError(f"{path.name}: {e}") from e

    def list_services(self, skip_invalid: bool = False) -> list[ServicePricing]:
        """
        Load every configured service.

        Args:
            skip_invalid: Log and leave out malformed files instead of raising

        Raises:
            RulesConfigError: If a file is malformed and skip_invalid is False
        """
        services = []
        for path in self._service_files():
            try:
                services.append(self._read(path))
            except RulesConfigError as e:
                if not skip_invalid:
                    raise
                logger.warning("Skipping service file: %s", e)
        return services

    def get_service(self, service_id: str) -> ServicePricing:
        """
        Load one service by id.

        Raises:
            KeyError: If no service with that id is configured
            RulesConfigError: If its file is malformed
        """
        path = self.services_dir / f"{service_id}.json"
        if path.exists():
            service = self._read(path)
            if service.id == service_id:
                return service
        for path in self._service_files():
            service = self._read(path)
            if service.id == service_id:
                return service
        raise KeyError(service_id)

    def load_service_dict(self, data: dict) -> ServicePricing:
        return load_service_dict(data)

    def validate_rules(self, rules: PricingRules) -> ValidationResult:
        """Flag rules that would silently produce a wrong or degraded price."""
        result = ValidationResult(valid=True)

        for label, amount in (('Base fee', rules.base_fee), ('Minimum charge', rules.minimum_charge)):
            if amount < 0:
                result.error(f"{label} cannot be negative")

        seen_steps = set()
        for step in rules.work_steps:
            if step.id in seen_steps:
                result.error(f"Duplicate work step id '{step.id}'")
            seen_steps.add(step.id)

            if step.default_cost < 0:
                result.error(f"Work step '{step.id}' has a negative cost")
            elif quantize2(step.default_cost) == 0:
                result.warnings.append(f"Work step '{step.id}' costs nothing and will never be shown")

            if step.cost_type is CostType.PER_UNIT and step.quantity_source is None:
                result.error(f"Per-unit work step '{step.id}' has no quantity source and will price at 0")
            elif step.cost_type is CostType.PER_HOUR and step.quantity_source is None:
                result.warnings.append(f"Per-hour work step '{step.id}' has no quantity source; 1 hour is assumed")
            elif step.cost_type is CostType.FIXED and step.quantity_source is not None:
                result.warnings.append(f"Fixed work step '{step.id}' ignores its quantity source")

            if step.optional and not step.has_trigger and step.quantity_source is None:
                result.error(f"Optional work step '{step.id}' has no trigger or quantity source and never applies")
            if not step.optional and step.has_trigger:
                result.warnings.append(f"Work step '{step.id}' is not optional; its trigger is ignored")
            if step.trigger is not None:
                self._check_condition(step.trigger, f"Work step '{step.id}' trigger", result)

        seen_addons = set()
        for addon in rules.addons:
            if addon.id in seen_addons:
                result.error(f"Duplicate add-on id '{addon.id}'")
            seen_addons.add(addon.id)
            if addon.price < 0:
                result.error(f"Add-on '{addon.id}' has a negative price")
            elif quantize2(addon.price) == 0:
                result.warnings.append(f"Add-on '{addon.id}' is free and will never be shown")
            if not any(k.strip() for k in addon.trigger_keywords):
                result.warnings.append(f"Add-on '{addon.id}' has no trigger keywords; only explicit selection applies it")

        for index, mult in enumerate(rules.multipliers, start=1):
            name = mult.label or f"#{index}"
            if mult.factor <= 0:
                result.error(f"Multiplier '{name}' must have a positive factor")
            elif mult.factor == 1:
                result.warnings.append(f"Multiplier '{name}' has factor 1 and no effect")
            self._check_condition(mult.when, f"Multiplier '{name}'", result)

        return result

    @staticmethod
    def _check_condition(condition: Condition, name: str, result: ValidationResult):
        if condition.operator in NUMERIC_OPERATORS and as_number(condition.value) is None:
            result.error(f"{name} compares with non-numeric value {condition.value!r}")
        if condition.operator in (Operator.EQUALS, Operator.CONTAINS) and condition.value is None:
            result.error(f"{name} has no comparison value")

    def get_stats(self) -> dict:
        """Get statistics about configured services."""
        services = self.list_services()
        by_service = {}
        for service in services:
            rules = service.rules
            by_service[service.id] = {
                'work_steps': len(rules.work_steps),
                'optional_steps': sum(1 for s in rules.work_steps if s.optional),
                'addons': len(rules.addons),
                'multipliers': len(rules.multipliers),
            }
        return {
            'total': len(services),
            'work_steps': sum(s['work_steps'] for s in by_service.values()),
            'addons': sum(s['addons'] for s in by_service.values()),
            'multipliers': sum(s['multipliers'] for s in by_service.values()),
            'by_service': by_service,
        }
