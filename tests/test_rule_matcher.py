"""Discount rule gathering, ordering and sequential application."""
from datetime import date

import pytest

from conftest import D, PRICING_DATE, make_rule
from erp_pricing.engine.errors import RuleEvaluationSkipped
from erp_pricing.engine.models import Customer, DiscountKind, Item, RuleScope
from erp_pricing.engine.rule_matcher import DiscountRuleEngine, validate_rule

PCT = DiscountKind.PERCENTAGE
FIXED = DiscountKind.FIXED_PER_UNIT

ITEM = Item(item_id="CHAIR", name="Chair", list_price=D("100.00"), family_id="FURN")
CUSTOMER = Customer(customer_id="ACME", name="Acme", customer_group_id="RETAIL")


def matched_ids(rules, item=ITEM, customer=CUSTOMER, on_date=PRICING_DATE):
    matched, _ = DiscountRuleEngine(rules).find_matching_rules(item, customer, on_date)
    return [m.rule_id for m in matched]


def test_sorted_by_priority_first():
    rules = [
        make_rule("late", RuleScope.CUSTOMER, PCT, 0.1, target="ACME", priority=9),
        make_rule("early", RuleScope.GLOBAL, PCT, 0.1, priority=1),
    ]
    assert matched_ids(rules) == ["early", "late"]


def test_priority_ties_broken_by_scope_specificity():
    rules = [
        make_rule("g", RuleScope.GLOBAL, PCT, 0.01, sequence=1),
        make_rule("fam", RuleScope.ITEM_FAMILY, PCT, 0.01, target="FURN", sequence=2),
        make_rule("item", RuleScope.ITEM, PCT, 0.01, target="CHAIR", sequence=3),
        make_rule("grp", RuleScope.CUSTOMER_GROUP, PCT, 0.01, target="RETAIL", sequence=4),
        make_rule("cust", RuleScope.CUSTOMER, PCT, 0.01, target="ACME", sequence=5),
    ]
    assert matched_ids(rules) == ["cust", "grp", "item", "fam", "g"]


def test_same_priority_and_scope_ordered_by_creation():
    rules = [
        make_rule("b", RuleScope.GLOBAL, PCT, 0.01, sequence=2),
        make_rule("a", RuleScope.GLOBAL, PCT, 0.01, sequence=7),
        make_rule("c", RuleScope.GLOBAL, PCT, 0.01, sequence=1),
    ]
    assert matched_ids(rules) == ["c", "b", "a"]


def test_customer_scoped_rules_need_a_customer():
    rules = [
        make_rule("cust", RuleScope.CUSTOMER, PCT, 0.1, target="ACME"),
        make_rule("grp", RuleScope.CUSTOMER_GROUP, PCT, 0.1, target="RETAIL"),
        make_rule("g", RuleScope.GLOBAL, PCT, 0.1),
    ]
    assert matched_ids(rules, customer=None) == ["g"]


def test_scope_targets_must_match():
    rules = [
        make_rule("other-cust", RuleScope.CUSTOMER, PCT, 0.1, target="BOREAL"),
        make_rule("other-grp", RuleScope.CUSTOMER_GROUP, PCT, 0.1, target="TRADE"),
        make_rule("other-item", RuleScope.ITEM, PCT, 0.1, target="LAMP"),
        make_rule("other-fam", RuleScope.ITEM_FAMILY, PCT, 0.1, target="SUPPLY"),
    ]
    assert matched_ids(rules) == []


def test_family_rule_skipped_for_item_without_family():
    lamp = Item(item_id="LAMP", name="Lamp", list_price=D("40.00"))
    rules = [make_rule("fam", RuleScope.ITEM_FAMILY, PCT, 0.1, target="FURN")]
    assert matched_ids(rules, item=lamp) == []


def test_group_rule_skipped_for_customer_without_group():
    loner = Customer(customer_id="COBALT", name="Cobalt")
    rules = [make_rule("grp", RuleScope.CUSTOMER_GROUP, PCT, 0.1, target="RETAIL")]
    assert matched_ids(rules, customer=loner) == []


def test_validity_window_is_inclusive():
    rules = [
        make_rule("starts", RuleScope.GLOBAL, PCT, 0.1, valid_from=PRICING_DATE),
        make_rule("ends", RuleScope.GLOBAL, PCT, 0.1, valid_until=PRICING_DATE),
        make_rule("future", RuleScope.GLOBAL, PCT, 0.1, valid_from=date(2026, 4, 2)),
        make_rule("past", RuleScope.GLOBAL, PCT, 0.1, valid_until=date(2026, 3, 31)),
    ]
    assert sorted(matched_ids(rules)) == ["ends", "starts"]


def test_inactive_rules_ignored():
    rules = [make_rule("off", RuleScope.GLOBAL, PCT, 0.1, is_active=False)]
    assert matched_ids(rules) == []


@pytest.mark.parametrize("rule,reason", [
    (make_rule("r", "loyalty", PCT, 0.1), "unknown scope"),
    (make_rule("r", RuleScope.GLOBAL, "bogus", 0.1), "unknown kind"),
    (make_rule("r", RuleScope.CUSTOMER, PCT, 0.1), "has no target"),
    (make_rule("r", RuleScope.GLOBAL, FIXED, "abc"), "not a number"),
    (make_rule("r", RuleScope.GLOBAL, FIXED, -1), "negative"),
    (make_rule("r", RuleScope.GLOBAL, PCT, 1.5), "above 1"),
])
def test_malformed_rules_rejected(rule, reason):
    with pytest.raises(RuleEvaluationSkipped) as exc:
        validate_rule(rule)
    assert reason in exc.value.reason


def test_malformed_rule_skipped_without_aborting():
    rules = [
        make_rule("broken", RuleScope.ITEM, PCT, 0.5),
        make_rule("ok", RuleScope.GLOBAL, FIXED, 5),
    ]
    outcome = DiscountRuleEngine(rules).apply(D("100.00"), ITEM, CUSTOMER, 1, PRICING_DATE)

    assert [d.rule_id for d in outcome.discounts_applied] == ["ok"]
    assert [s.rule_id for s in outcome.skipped] == ["broken"]
    assert outcome.unit_price == D("95.00")


def test_sequential_application_on_running_price():
    rules = [
        make_rule("pct", RuleScope.CUSTOMER, PCT, D("0.10"), target="ACME", priority=1),
        make_rule("fix", RuleScope.GLOBAL, FIXED, D("5.00"), priority=2),
    ]
    outcome = DiscountRuleEngine(rules).apply(D("100.00"), ITEM, CUSTOMER, 5, PRICING_DATE)

    assert outcome.unit_price == D("85.00")
    assert [(d.scope, d.discount_amount) for d in outcome.discounts_applied] == [
        (RuleScope.CUSTOMER, D("10.00")),
        (RuleScope.GLOBAL, D("5.00")),
    ]


def test_order_changes_result_when_priorities_swap():
    rules = [
        make_rule("pct", RuleScope.CUSTOMER, PCT, D("0.10"), target="ACME", priority=2),
        make_rule("fix", RuleScope.GLOBAL, FIXED, D("5.00"), priority=1),
    ]
    outcome = DiscountRuleEngine(rules).apply(D("100.00"), ITEM, CUSTOMER, 1, PRICING_DATE)

    assert outcome.unit_price == D("85.50")


def test_fixed_discount_capped_at_running_price():
    rules = [
        make_rule("huge", RuleScope.GLOBAL, FIXED, D("500.00"), priority=1),
        make_rule("after", RuleScope.GLOBAL, PCT, D("0.10"), priority=2),
    ]
    outcome = DiscountRuleEngine(rules).apply(D("100.00"), ITEM, CUSTOMER, 1, PRICING_DATE)

    assert outcome.unit_price == D("0.00")
    # Only the first rule moved the price; the zero discount is not recorded
    assert [(d.rule_id, d.discount_amount) for d in outcome.discounts_applied] == [("huge", D("100.00"))]


def test_zero_value_rule_not_recorded():
    rules = [make_rule("zero", RuleScope.GLOBAL, PCT, D("0"))]
    outcome = DiscountRuleEngine(rules).apply(D("100.00"), ITEM, CUSTOMER, 1, PRICING_DATE)

    assert outcome.discounts_applied == []
    assert outcome.unit_price == D("100.00")


def test_percentage_rounds_half_up_to_currency_unit():
    rules = [make_rule("pct", RuleScope.GLOBAL, PCT, D("0.03"))]
    outcome = DiscountRuleEngine(rules).apply(D("14.90"), ITEM, CUSTOMER, 1, PRICING_DATE)

    # 14.90 * 0.03 = 0.447
    assert outcome.discounts_applied[0].discount_amount == D("0.45")
    assert outcome.unit_price == D("14.45")


def test_discount_trail_sums_to_price_reduction():
    rules = [
        make_rule("a", RuleScope.GLOBAL, PCT, D("0.07"), priority=1),
        make_rule("b", RuleScope.ITEM, PCT, D("0.13"), target="CHAIR", priority=2),
        make_rule("c", RuleScope.GLOBAL, FIXED, D("1.99"), priority=3),
    ]
    base = D("37.77")
    outcome = DiscountRuleEngine(rules).apply(base, ITEM, CUSTOMER, 1, PRICING_DATE)

    assert base - sum(d.discount_amount for d in outcome.discounts_applied) == outcome.unit_price
    assert all(d.discount_amount > 0 for d in outcome.discounts_applied)
