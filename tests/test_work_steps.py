"""
Tests for work-step triggering, quantity resolution and labels.
"""
import logging
import os
import sys
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_pricing.engine.models import AnswerSet, Condition, CostType, Operator, QuantitySource, WorkStep
from quote_pricing.engine.work_steps import (
    format_step_label,
    resolve_quantity,
    resolve_step,
    resolve_work_steps,
    used_answer_keys,
)


@pytest.fixture
def rooms_step():
    return WorkStep(
        id="room_cleaning", name="Room Cleaning", cost_type="per_unit", default_cost=35,
        quantity_source=QuantitySource.form_field("room_count"), unit_label="rooms",
    )


@pytest.fixture
def labour_step():
    return WorkStep(
        id="labour", name="Additional Labour", cost_type=CostType.PER_HOUR, default_cost=45,
        optional=True, trigger=Condition("extra_labour_hours", Operator.GT, 0),
        quantity_source=QuantitySource.ai_signal("extra_labour_hours"),
    )


def test_per_unit_label_and_amount(rooms_step):
    line = resolve_step(rooms_step, AnswerSet.build({"room_count": 4}), "GBP")
    assert line.label == "Room Cleaning  £35 x 4(Rooms)"
    assert line.amount == Decimal("140.00")
    assert line.calculation == "4 rooms × 35/room = 140"
    assert line.quantity_source == "form_field"
    assert line.quantity_trusted is True
    assert line.signals_used == [{"key": "room_count", "value": 4.0}]


def test_string_quantity_with_thousands_separator(rooms_step):
    line = resolve_step(rooms_step, AnswerSet.build({"room_count": "1,000"}), "GBP")
    assert line.amount == Decimal("35000.00")
    assert line.label == "Room Cleaning  £35 x 1000(Rooms)"


def test_fractional_rate_in_label():
    step = WorkStep(id="hedge", name="Hedge Trim", cost_type="per_unit", default_cost=12.5,
                    quantity_source=QuantitySource.constant(3), unit_label="metres")
    line = resolve_step(step, AnswerSet.build({}), "USD")
    assert line.label == "Hedge Trim  $12.50 x 3(Metres)"
    assert line.amount == Decimal("37.50")


def test_fixed_step_uses_plain_name():
    step = WorkStep(id="kitchen", name="Kitchen Deep Clean", cost_type="fixed", default_cost=65)
    line = resolve_step(step, AnswerSet.build({}), "GBP")
    assert line.label == "Kitchen Deep Clean"
    assert line.amount == Decimal("65.00")
    assert line.calculation == "Fixed: 65"


def test_zero_quantity_drops_step(rooms_step):
    assert resolve_step(rooms_step, AnswerSet.build({"room_count": 0}), "GBP") is None


@pytest.mark.parametrize("raw", [None, "", "lots", -2, True])
def test_unresolved_per_unit_quantity_prices_nothing(rooms_step, raw, caplog):
    with caplog.at_level(logging.WARNING):
        line = resolve_step(rooms_step, AnswerSet.build({"room_count": raw}), "GBP")
    assert line is None
    assert "quantity source unresolved" in caplog.text


def test_unresolved_per_hour_defaults_to_one_hour():
    step = WorkStep(id="callout", name="Call-out", cost_type="per_hour", default_cost=60)
    line = resolve_step(step, AnswerSet.build({}), "GBP")
    assert line.amount == Decimal("60.00")
    assert line.quantity == 1.0
    assert line.quantity_source == "default"
    assert line.quantity_trusted is False
    assert line.label == "Call-out  £60 x 1(Hours)"


def test_constant_without_value_is_one():
    step = WorkStep(id="visit", name="Visit", cost_type="per_unit", default_cost=20,
                    quantity_source=QuantitySource.constant(None))
    quantity = resolve_quantity(step, AnswerSet.build({}))
    assert quantity.value == 1.0
    assert quantity.trusted is True


def test_ai_signal_quantity_is_untrusted_and_noted(labour_step):
    answers = AnswerSet.build({}, {"extra_labour_hours": 2})
    line = resolve_step(labour_step, answers, "GBP")
    assert line.amount == Decimal("90.00")
    assert line.quantity_source == "ai_signal"
    assert line.quantity_trusted is False
    assert line.note == '"Additional Labour" quantity from AI signal (lower confidence)'


def test_optional_step_not_triggered(labour_step):
    assert resolve_step(labour_step, AnswerSet.build({}, {"extra_labour_hours": 0}), "GBP") is None
    assert resolve_step(labour_step, AnswerSet.build({}), "GBP") is None


def test_trigger_signal_recorded_first():
    step = WorkStep(
        id="downpipe_flush", name="Downpipe Flush", cost_type="per_unit", default_cost=12,
        optional=True, trigger=Condition("downpipes_blocked", Operator.EQUALS, True),
        quantity_source=QuantitySource.form_field("downpipe_count"),
    )
    answers = AnswerSet.build({"downpipe_count": 2}, {"downpipes_blocked": True})
    line = resolve_step(step, answers, "GBP")
    assert line.signals_used[0] == {"key": "downpipes_blocked", "value": True}
    assert line.signals_used[1] == {"key": "downpipe_count", "value": 2.0}


def test_optional_step_without_trigger_needs_positive_quantity():
    step = WorkStep(id="windows", name="Windows", cost_type="per_unit", default_cost=8,
                    optional=True, quantity_source=QuantitySource.form_field("window_count"))
    assert resolve_step(step, AnswerSet.build({"window_count": 0}), "GBP") is None
    assert resolve_step(step, AnswerSet.build({"window_count": 3}), "GBP").amount == Decimal("24.00")


@pytest.mark.parametrize("flag, billed", [
    (True, True),
    ("yes", True),
    ("detected", True),
    (1, True),
    (False, False),
    (0, False),
    ("", False),
    ("false", False),
    ("No", False),
    (None, False),
])
def test_trigger_flag_is_read_for_truthiness(flag, billed):
    """An undetected flag signal arrives as false and must not bill the step."""
    step = WorkStep(id="oil", name="Oil stain treatment", cost_type="fixed", default_cost=40,
                    optional=True, trigger_flag="has_oil_stains")
    line = resolve_step(step, AnswerSet.build({}, {"has_oil_stains": flag}), "GBP")
    assert (line is not None) is billed, f"flag {flag!r} should {'' if billed else 'not '}bill"


def test_trigger_flag_recorded_in_signals_used():
    step = WorkStep(id="oil", name="Oil stain treatment", cost_type="fixed", default_cost=40,
                    optional=True, trigger_flag="has_oil_stains")
    line = resolve_step(step, AnswerSet.build({}, {"has_oil_stains": True}), "GBP")
    assert line.signals_used == [{"key": "has_oil_stains", "value": True}]
    assert used_answer_keys([step]) == {"has_oil_stains"}


def test_explicit_exists_trigger_treats_false_as_present():
    step = WorkStep(id="oven", name="Oven Cleaning", cost_type="fixed", default_cost=45,
                    optional=True, trigger=Condition("include_oven", Operator.EXISTS))
    assert resolve_step(step, AnswerSet.build({"include_oven": False}), "GBP") is not None
    assert resolve_step(step, AnswerSet.build({}), "GBP") is None


def test_resolve_work_steps_keeps_configured_order(cleaning_rules):
    answers = AnswerSet.build({"room_count": 2, "bathroom_count": 1, "window_count": 4,
                               "include_oven": True})
    names = [line.step.id for line in resolve_work_steps(cleaning_rules.work_steps, answers, "GBP")]
    assert names == ["room_cleaning", "bathroom_cleaning", "kitchen_cleaning",
                     "oven_cleaning", "window_cleaning"]


def test_format_step_label_default_unit():
    step = WorkStep(id="panel", name="Panel Repair", cost_type="per_unit", default_cost=85)
    assert format_step_label(step, 2, "GBP") == "Panel Repair  £85 x 2(Units)"


def test_used_answer_keys(cleaning_rules):
    assert used_answer_keys(cleaning_rules.work_steps) == {
        "room_count", "bathroom_count", "include_oven", "carpet_areas", "window_count",
    }
