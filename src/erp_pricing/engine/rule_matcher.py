"""
Rule Matcher - gathers, orders and applies discount rules to a base price.

Used by the price calculator to stack discounts on top of the base price
resolved from price lists or the item list price.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from .errors import RuleEvaluationSkipped
from .models import (
    SCOPE_SPECIFICITY,
    Customer,
    DiscountApplication,
    DiscountKind,
    DiscountRule,
    Item,
    RuleScope,
    TraceStep,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchedRule:
    """A validated rule that matched the pricing context."""
    rule_id: str
    name: str
    priority: int
    scope: RuleScope
    kind: DiscountKind
    value: Decimal
    sequence: int
    match_reason: str

    @property
    def sort_key(self) -> tuple:
        return (self.priority, SCOPE_SPECIFICITY[self.scope], self.sequence, self.rule_id)


@dataclass
class DiscountOutcome:
    """Final unit price and the ordered discount trail."""
    unit_price: Decimal
    discounts_applied: list[DiscountApplication] = field(default_factory=list)
    skipped: list[RuleEvaluationSkipped] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)


def validate_rule(rule: DiscountRule) -> tuple[RuleScope, DiscountKind, Decimal]:
    """
    Check that a rule can be evaluated.

    Returns the typed (scope, kind, value).

    Raises:
        RuleEvaluationSkipped: the rule is malformed
    """
    try:
        scope = RuleScope(rule.scope)
    except ValueError:
        raise RuleEvaluationSkipped(rule.rule_id, f"unknown scope {rule.scope!r}")

    try:
        kind = DiscountKind(rule.kind)
    except ValueError:
        raise RuleEvaluationSkipped(rule.rule_id, f"unknown kind {rule.kind!r}")

    if scope != RuleScope.GLOBAL and not rule.scope_target_id:
        raise RuleEvaluationSkipped(rule.rule_id, f"{scope.value} rule has no target")

    value = rule.value
    if not isinstance(value, Decimal) or not value.is_finite():
        raise RuleEvaluationSkipped(rule.rule_id, f"value {value!r} is not a number")
    if value < 0:
        raise RuleEvaluationSkipped(rule.rule_id, f"negative value {value}")
    if kind == DiscountKind.PERCENTAGE and value > 1:
        raise RuleEvaluationSkipped(rule.rule_id, f"percentage {value} is above 1")

    return scope, kind, value


def scope_matches(
    scope: RuleScope,
    target_id: Optional[str],
    item: Item,
    customer: Optional[Customer],
) -> Optional[str]:
    """
    Match a rule scope against the context.

    Returns the match reason, or None if the rule does not apply.
    """
    if scope == RuleScope.CUSTOMER:
        if customer is not None and target_id == customer.customer_id:
            return f"customer={target_id}"
    elif scope == RuleScope.CUSTOMER_GROUP:
        if customer is not None and customer.customer_group_id and target_id == customer.customer_group_id:
            return f"customer_group={target_id}"
    elif scope == RuleScope.ITEM:
        if target_id == item.item_id:
            return f"item={target_id}"
    elif scope == RuleScope.ITEM_FAMILY:
        if item.family_id and target_id == item.family_id:
            return f"item_family={target_id}"
    elif scope == RuleScope.GLOBAL:
        return "global"
    else:
        raise ValueError(f"Unhandled scope {scope!r}")
    return None


class DiscountRuleEngine:
    """
    Matches and applies discount rules.

    The rule set is passed in explicitly so every calculation works against
    the snapshot it was given. Rules are applied sequentially on the running
    price.
    """

    def __init__(self, rules: Iterable[DiscountRule], currency_quantum: Decimal = Decimal("0.01")):
        self.rules = tuple(rules)
        self.quantum = currency_quantum

    def find_matching_rules(
        self,
        item: Item,
        customer: Optional[Customer],
        on_date: date,
    ) -> tuple[list[MatchedRule], list[RuleEvaluationSkipped]]:
        """
        Find all rules that match the given context.

        Returns (matched rules in application order, skipped malformed rules).
        """
        matched = []
        skipped = []

        for rule in self.rules:
            if not rule.is_active or not rule.is_valid_on(on_date):
                continue

            try:
                scope, kind, value = validate_rule(rule)
            except RuleEvaluationSkipped as e:
                logger.warning("%s", e)
                skipped.append(e)
                continue

            reason = scope_matches(scope, rule.scope_target_id, item, customer)
            if reason is None:
                continue

            matched.append(MatchedRule(
                rule_id=rule.rule_id,
                name=rule.name,
                priority=rule.priority,
                scope=scope,
                kind=kind,
                value=value,
                sequence=rule.sequence,
                match_reason=reason,
            ))

        # Lower priority first, then more specific scope, then creation order
        matched.sort(key=lambda r: r.sort_key)
        return matched, skipped

    def discount_for(self, rule: MatchedRule, running_price: Decimal) -> Decimal:
        """Per-unit discount of one rule at the current running price."""
        if rule.kind == DiscountKind.PERCENTAGE:
            amount = running_price * rule.value
        else:
            # Fixed amounts never push the price below zero
            amount = min(rule.value, running_price)
        amount = amount.quantize(self.quantum, rounding=ROUND_HALF_UP)
        return min(amount, running_price)

    def apply(
        self,
        base_price: Decimal,
        item: Item,
        customer: Optional[Customer],
        quantity: int,
        on_date: date,
    ) -> DiscountOutcome:
        """Apply all matching rules in order, starting from `base_price`."""
        matched, skipped = self.find_matching_rules(item, customer, on_date)
        outcome = DiscountOutcome(unit_price=base_price, skipped=skipped)

        for error in skipped:
            outcome.trace.append(TraceStep("Rule Skipped", error.reason, error.rule_id))

        if not matched:
            outcome.trace.append(TraceStep("Discounts", f"No discount rules apply for quantity {quantity}"))

        running_price = base_price
        for rule in matched:
            amount = self.discount_for(rule, running_price)
            if amount <= 0:
                outcome.trace.append(TraceStep(
                    "Rule Matched", f"{rule.name} ({rule.rule_id}) gave no discount", rule.match_reason
                ))
                continue

            new_price = running_price - amount
            outcome.trace.append(TraceStep(
                "Rule Applied",
                f"{rule.name} ({rule.rule_id}) [{rule.match_reason}]: {running_price} → {new_price}",
                f"-{amount}",
            ))
            outcome.discounts_applied.append(DiscountApplication(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                scope=rule.scope,
                discount_amount=amount,
            ))
            running_price = new_price

        outcome.unit_price = max(running_price, Decimal("0"))
        return outcome
