"""
Shared fixtures: the packaged home-cleaning service and a VAT tax config.
"""
import json
import os
import sys
from pathlib import Path

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_pricing.engine.models import TaxConfig
from quote_pricing.services.rules_service import load_service_dict

SERVICES_DIR = Path(src_path) / 'quote_pricing' / 'data' / 'services'


@pytest.fixture(scope="session")
def services_dir() -> Path:
    return SERVICES_DIR


@pytest.fixture(scope="session")
def cleaning_service():
    """Complete Home Cleaning - exercises every pricing component."""
    with open(SERVICES_DIR / 'home_cleaning.json', 'r', encoding='utf-8') as f:
        return load_service_dict(json.load(f))


@pytest.fixture(scope="session")
def cleaning_rules(cleaning_service):
    return cleaning_service.rules


@pytest.fixture
def vat():
    return TaxConfig(enabled=True, label="VAT", rate=20)


@pytest.fixture
def cleaning_answers():
    """Factory for a standard 4-room, 2-bathroom job with overrides."""
    def build(**overrides):
        answers = {
            'room_count': 4,
            'bathroom_count': 2,
            'carpet_areas': 0,
            'window_count': 0,
            'include_oven': False,
            'property_size': 'medium',
            'urgency': 'flexible',
            'heavy_soiling': False,
            'previous_bookings': 0,
        }
        answers.update(overrides)
        return answers
    return build
