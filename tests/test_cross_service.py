"""
Tests for secondary-service estimates.
"""
import logging
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_pricing.config.settings import Settings
from quote_pricing.engine import CrossServiceReference, PricingEngine, TaxConfig, estimate_cross_service
from quote_pricing.engine.assessment import RANGE_NOTE
from quote_pricing.engine.cross_service import (
    DETAILS_NOTE,
    ESTIMATE_NOTE,
    quantity_signals,
    resolve_service,
)
from quote_pricing.services.rules_service import RulesConfigError, RulesService


@pytest.fixture
def services(services_dir):
    return RulesService(services_dir).list_services()


@pytest.fixture
def gutters(services):
    return next(s for s in services if s.id == "gutter_cleaning")


def test_estimate_from_quantity(services, vat):
    reference = CrossServiceReference(service_name="Gutter Cleaning", estimated_quantity=20,
                                      quantity_unit="metres", confidence=0.6)
    estimate = estimate_cross_service(reference, services, vat, "GBP")

    result = estimate.result
    assert estimate.service_id == "gutter_cleaning"
    assert (result.subtotal, result.tax_amount, result.total) == (110.0, 22.0, 132.0)
    assert (result.range.low, result.range.high) == (112.2, 151.8)
    assert result.is_estimate is True
    assert result.confidence == 0.6
    assert result.notes == [
        '"Gutter Clearing" quantity from AI signal (lower confidence)',
        RANGE_NOTE,
        ESTIMATE_NOTE,
    ]
    assert estimate.note == ESTIMATE_NOTE
    assert estimate.trace.config_version == "v1"

    data = estimate.to_dict()
    assert data["serviceName"] == "Gutter Cleaning"
    assert data["result"]["isEstimate"] is True


def test_confidence_is_capped(services, vat):
    reference = CrossServiceReference(service_name="gutter cleaning", estimated_quantity=20, confidence=0.95)
    estimate = estimate_cross_service(reference, services, vat, "GBP")
    assert estimate.result.confidence == 0.8
    assert estimate.result.range is None
    assert estimate.note == DETAILS_NOTE
    assert estimate.result.notes[-1] == DETAILS_NOTE


def test_known_signals_win_over_estimated_quantity(services, vat):
    reference = CrossServiceReference(service_name="Gutter Cleaning", estimated_quantity=20)
    estimate = estimate_cross_service(reference, services, vat, "GBP", signals={"gutter_length": 10})
    # 40 + 35 is below the 90 minimum
    assert estimate.result.subtotal == 90.0
    assert "Minimum charge of £90.00 applied" in estimate.result.notes


def test_missing_quantity_still_estimates_base_and_minimum(services):
    reference = CrossServiceReference(service_name="Gutter Cleaning", service_id="gutter_cleaning")
    estimate = estimate_cross_service(reference, services, TaxConfig(), "GBP")
    assert estimate.result.subtotal == 90.0
    assert [line.label for line in estimate.result.breakdown] == ["Base service fee"]


def test_resolve_by_id_before_name(services):
    reference = CrossServiceReference(service_name="Gutter Cleaning", service_id="car_scratch_repair")
    assert resolve_service(reference, services).id == "car_scratch_repair"


def test_unknown_service_returns_none(services, vat, caplog):
    reference = CrossServiceReference(service_name="Roof Repair", estimated_quantity=3)
    with caplog.at_level(logging.WARNING):
        assert estimate_cross_service(reference, services, vat, "GBP") is None
    assert "Roof Repair" in caplog.text


def test_missing_reference_returns_none(services, vat):
    assert estimate_cross_service(None, services, vat, "GBP") is None


def test_quantity_signals_cover_every_quantity_key(gutters):
    assert quantity_signals(gutters, 20) == {"gutter_length": 20, "downpipe_count": 20}
    assert quantity_signals(gutters, None) == {}
    assert quantity_signals(gutters, 0) == {}


def test_engine_estimate_uses_configured_services(services_dir, tmp_path):
    engine = PricingEngine(Settings(project_root=tmp_path, services_dir=services_dir),
                           RulesService(services_dir))
    reference = CrossServiceReference(service_name="Gutter Cleaning", estimated_quantity=20, confidence=0.6)
    estimate = engine.estimate_cross_service(reference)
    assert estimate.result.currency == "GBP"
    assert estimate.result.total == 110.0
    assert estimate.result.tax_label is None


def test_estimate_carries_reference_details(services, vat):
    reference = CrossServiceReference(
        service_name="Gutter Cleaning", estimated_quantity=20, quantity_unit="metres",
        extracted_details=("front gutters overflowing", "two storey house"), confidence=0.6,
    )
    estimate = estimate_cross_service(reference, services, vat, "GBP")
    assert estimate.extracted_details == ("front gutters overflowing", "two storey house")
    data = estimate.to_dict()
    assert data["quantityUnit"] == "metres"
    assert data["extractedDetails"] == ["front gutters overflowing", "two storey house"]


def test_estimate_without_unit_omits_it(services, vat):
    reference = CrossServiceReference(service_name="Gutter Cleaning", estimated_quantity=20)
    data = estimate_cross_service(reference, services, vat, "GBP").to_dict()
    assert "quantityUnit" not in data
    assert data["extractedDetails"] == []


def test_malformed_unrelated_service_does_not_block_estimate(services_dir, tmp_path, caplog):
    """A broken file for another service is skipped, not raised."""
    (tmp_path / "gutter_cleaning.json").write_text(
        (services_dir / "gutter_cleaning.json").read_text(encoding='utf-8'), encoding='utf-8')
    (tmp_path / "broken.json").write_text("{not json", encoding='utf-8')
    engine = PricingEngine(Settings(project_root=tmp_path, services_dir=tmp_path),
                           RulesService(tmp_path))

    for reference in (
        CrossServiceReference(service_name="Gutter Cleaning", service_id="gutter_cleaning",
                              estimated_quantity=20),
        CrossServiceReference(service_name="Gutter Cleaning", estimated_quantity=20),
    ):
        with caplog.at_level(logging.WARNING):
            estimate = engine.estimate_cross_service(reference)
        assert estimate is not None
        assert estimate.service_id == "gutter_cleaning"
        assert estimate.result.subtotal == 110.0
    assert "broken.json" in caplog.text


def test_list_services_still_raises_without_skip(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding='utf-8')
    with pytest.raises(RulesConfigError):
        RulesService(tmp_path).list_services()
    assert RulesService(tmp_path).list_services(skip_invalid=True) == []
