import os
import sys
from datetime import date
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from erp_pricing.config.settings import Settings
from erp_pricing.data.store import PricingSnapshot
from erp_pricing.engine import PriceCalculator
from erp_pricing.engine.models import (
    Customer,
    DiscountRule,
    Item,
    ItemFamily,
    PriceList,
    PriceListTier,
)

PRICING_DATE = date(2026, 4, 1)


def D(value) -> Decimal:
    return Decimal(str(value))


def make_rule(rule_id, scope, kind, value, target=None, priority=50, sequence=0, **kwargs) -> DiscountRule:
    return DiscountRule(
        rule_id=rule_id,
        name=kwargs.pop('name', f"Rule {rule_id}"),
        scope=scope,
        kind=kind,
        value=D(value) if isinstance(value, (int, float)) else value,
        scope_target_id=target,
        priority=priority,
        sequence=sequence,
        **kwargs,
    )


@pytest.fixture
def items():
    return [
        Item(item_id="CHAIR", name="Office chair", list_price=D("100.00"), cost=D("60.00"), family_id="FURN"),
        Item(item_id="PAPER", name="Paper box", list_price=D("24.90"), cost=D("15.00"), family_id="SUPPLY"),
        Item(item_id="LAMP", name="Desk lamp", list_price=D("40.00"), cost=D("20.00")),
        Item(item_id="FAX", name="Fax", list_price=D("199.00"), is_active=False),
    ]


@pytest.fixture
def customers():
    return [
        Customer(customer_id="ACME", name="Acme", customer_group_id="RETAIL"),
        Customer(customer_id="BOREAL", name="Boreal", assigned_price_list_id="WHOLESALE", customer_group_id="TRADE"),
        Customer(customer_id="COBALT", name="Cobalt"),
        Customer(customer_id="DORMANT", name="Dormant", is_active=False),
    ]


@pytest.fixture
def families():
    return [ItemFamily(family_id="FURN", name="Furniture"), ItemFamily(family_id="SUPPLY", name="Supplies")]


@pytest.fixture
def price_lists():
    return [
        PriceList(price_list_id="STANDARD", name="Standard", is_default=True),
        PriceList(price_list_id="WHOLESALE", name="Wholesale"),
    ]


@pytest.fixture
def tiers():
    return [
        PriceListTier("WHOLESALE", "PAPER", 1, D("20.00")),
        PriceListTier("WHOLESALE", "PAPER", 10, D("19.00")),
        PriceListTier("WHOLESALE", "PAPER", 50, D("18.00")),
        PriceListTier("STANDARD", "PAPER", 10, D("23.50")),
    ]


@pytest.fixture
def build_snapshot(items, customers, families, price_lists, tiers):
    """Build a snapshot from the default fixtures, overriding any table."""
    def _build(**overrides) -> PricingSnapshot:
        tables = dict(
            items=items, customers=customers, families=families,
            price_lists=price_lists, tiers=tiers, rules=[],
        )
        tables.update(overrides)
        return PricingSnapshot.from_records(**tables)
    return _build


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path)


@pytest.fixture
def make_calculator(settings):
    def _make(source, **setting_overrides) -> PriceCalculator:
        for key, value in setting_overrides.items():
            setattr(settings, key, value)
        return PriceCalculator(source, settings=settings, today=lambda: PRICING_DATE)
    return _make
