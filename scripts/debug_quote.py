import json
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from quote_pricing.config.settings import configure_logging, get_settings
from quote_pricing.engine import PricingEngine, TaxConfig

# Standard 4-room job used when no answers file is given
SAMPLE_ANSWERS = {
    "room_count": 4,
    "bathroom_count": 2,
    "include_oven": False,
    "property_size": "medium",
    "urgency": "flexible",
    "previous_bookings": 0,
}


def debug(service_id: str = "home_cleaning", answers_path: str = None):
    settings = get_settings()
    configure_logging(settings)
    engine = PricingEngine(settings)

    answers = SAMPLE_ANSWERS
    description = None
    if answers_path:
        with open(answers_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        answers = payload.get('answers', {})
        description = payload.get('project_description')

    service = engine.rules_service.get_service(service_id)
    validation = engine.rules_service.validate_rules(service.rules)
    print(f"Service: {service.name} ({service.id}, config {service.config_version})")
    for error in validation.errors:
        print(f"  ERROR: {error}")
    for warning in validation.warnings:
        print(f"  WARNING: {warning}")

    result, trace = engine.price_service(
        service_id,
        answers,
        tax_config=TaxConfig(enabled=True, label="VAT", rate=20),
        project_description=description,
    )

    print("\n--- Breakdown ---")
    for line in result.breakdown:
        flag = " (auto-recommended)" if line.auto_recommended else ""
        print(f"{line.label:<45} {line.amount:>10.2f}{flag}")
    print(f"{'Subtotal':<45} {result.subtotal:>10.2f}")
    print(f"{result.tax_label or 'Tax':<45} {result.tax_amount:>10.2f}")
    print(f"{'TOTAL':<45} {result.total:>10.2f}")

    if result.notes:
        print("\n--- Notes ---")
        for note in result.notes:
            print(f"- {note}")

    print("\n--- Trace ---")
    print(trace.get_trace_text())
    print("\nSummary:", json.dumps(trace.summary.to_dict(), indent=2))


if __name__ == "__main__":
    debug(*sys.argv[1:3])
