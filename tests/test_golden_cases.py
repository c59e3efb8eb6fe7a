"""
Golden test cases for pricing engine regression testing.
These tests run against the bundled seed data and should fail if pricing
logic changes unexpectedly.
"""
import csv
import os
from datetime import date
from decimal import Decimal

import pytest

from erp_pricing.config.settings import Settings, get_package_root
from erp_pricing.data.store import PricingStore
from erp_pricing.engine import PriceCalculator


@pytest.fixture(scope="module")
def calculator():
    """Create a single calculator over the seed data for all tests."""
    settings = Settings(data_dir=get_package_root() / 'data' / 'seed')
    return PriceCalculator(PricingStore(settings.data_dir), settings=settings)


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')

    cases = []
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            cases.append(row)

    return cases


@pytest.mark.parametrize(
    "case", load_golden_cases(),
    ids=lambda c: f"{c['customer'] or 'anon'}-{c['item']}-qty{c['qty']}-{c['date']}"
)
def test_golden_case(calculator, case):
    """Test that pricing matches expected golden case."""
    customer = case['customer'] or None
    qty = int(case['qty'])

    result = calculator.calculate(customer, case['item'], qty, date.fromisoformat(case['date']))

    assert result.ok, f"Unexpected error {result.error}"
    assert result.price_source.value == case['expected_source']
    assert result.base_price == Decimal(case['expected_base']), \
        f"Base mismatch: expected {case['expected_base']}, got {result.base_price}"
    assert result.unit_price == Decimal(case['expected_unit']), \
        f"Price mismatch: expected {case['expected_unit']}, got {result.unit_price}\n{result.get_trace_text()}"
    assert result.total_price == Decimal(case['expected_total'])
    assert [d.rule_id for d in result.discounts_applied] == case['expected_rules'].split(';')


def test_inactive_seed_customer_rejected(calculator):
    result = calculator.calculate('C-004', 'ITM-100', 1, date(2026, 4, 1))
    assert result.to_dict() == {"error": "CustomerNotFound"}


def test_inactive_seed_item_rejected(calculator):
    result = calculator.calculate(None, 'ITM-900', 1, date(2026, 4, 1))
    assert result.to_dict() == {"error": "ItemNotFound"}
