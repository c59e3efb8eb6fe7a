"""
Rules Service - CRUD operations for discount rules.

Writes go through the PricingStore, which persists them and invalidates the
cached snapshot before returning.
"""
import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Optional

from ..data.store import PricingStore
from ..engine.errors import RuleEvaluationSkipped
from ..engine.models import DiscountRule, RuleScope
from ..engine.rule_matcher import validate_rule as check_rule_shape


@dataclass
class ValidationResult:
    """Result of rule validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class RulesService:
    """Service for managing discount rules."""

    def __init__(self, store: PricingStore, today: Callable[[], date] = date.today):
        self.store = store
        self.today = today

    def list_rules(self, include_inactive: bool = True) -> list[DiscountRule]:
        """List all rules in creation order."""
        rules = self.store.snapshot().rules
        return [r for r in rules if include_inactive or r.is_active]

    def get_rule(self, rule_id: str) -> Optional[DiscountRule]:
        """Get a single rule by ID."""
        for rule in self.list_rules():
            if rule.rule_id == rule_id:
                return rule
        return None

    def create_rule(self, rule: DiscountRule) -> DiscountRule:
        """Create a new rule."""
        # Generate rule_id if not provided
        if not rule.rule_id:
            rule = replace(rule, rule_id=self._generate_rule_id(rule))

        if self.get_rule(rule.rule_id):
            raise ValueError(f"Rule with ID '{rule.rule_id}' already exists")

        return self.store.save_rule(rule)

    def update_rule(self, rule_id: str, updates: dict) -> DiscountRule:
        """Update an existing rule."""
        rule = self.get_rule(rule_id)
        if rule is None:
            raise ValueError(f"Rule with ID '{rule_id}' not found")

        allowed = {k: v for k, v in updates.items() if k not in ('rule_id', 'sequence') and hasattr(rule, k)}
        return self.store.save_rule(replace(rule, **allowed))

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule."""
        if not self.store.delete_rule(rule_id):
            raise ValueError(f"Rule with ID '{rule_id}' not found")
        return True

    def validate_rule(self, rule: DiscountRule) -> ValidationResult:
        """Validate a rule before saving."""
        result = ValidationResult(valid=True)

        if not rule.name:
            result.errors.append("Name is required")
            result.valid = False

        try:
            scope, _, _ = check_rule_shape(rule)
        except RuleEvaluationSkipped as e:
            result.errors.append(e.reason)
            result.valid = False
            scope = None

        if rule.valid_from and rule.valid_until and rule.valid_from > rule.valid_until:
            result.errors.append("valid_from must not be after valid_until")
            result.valid = False

        if rule.valid_until and rule.valid_until < self.today():
            result.warnings.append("Rule has expired (valid_until is in the past)")

        if scope is not None and scope != RuleScope.GLOBAL:
            missing = self._missing_target(scope, rule.scope_target_id)
            if missing:
                result.warnings.append(missing)

        if result.valid:
            result.warnings.extend(self._check_conflicts(rule))

        return result

    def _missing_target(self, scope: RuleScope, target_id: str) -> Optional[str]:
        """Warn when the rule targets an entity that does not exist."""
        snapshot = self.store.snapshot()
        if scope == RuleScope.CUSTOMER and snapshot.get_customer(target_id) is None:
            return f"Customer '{target_id}' not found"
        if scope == RuleScope.CUSTOMER_GROUP and not any(
            c.customer_group_id == target_id for c in snapshot.customers.values()
        ):
            return f"No customers belong to group '{target_id}'"
        if scope == RuleScope.ITEM and snapshot.get_item(target_id) is None:
            return f"Item '{target_id}' not found"
        if scope == RuleScope.ITEM_FAMILY and target_id not in snapshot.families:
            return f"Item family '{target_id}' not found"
        return None

    def _check_conflicts(self, rule: DiscountRule) -> list[str]:
        """Check for rules on the same target with overlapping validity."""
        warnings = []

        for existing in self.list_rules(include_inactive=False):
            if existing.rule_id == rule.rule_id:
                continue
            if existing.scope != rule.scope or existing.scope_target_id != rule.scope_target_id:
                continue

            starts_before_end = not (rule.valid_until and existing.valid_from and existing.valid_from > rule.valid_until)
            ends_after_start = not (rule.valid_from and existing.valid_until and existing.valid_until < rule.valid_from)
            if starts_before_end and ends_after_start:
                warnings.append(
                    f"Stacks with rule '{existing.rule_id}' "
                    f"(priority {existing.priority} vs {rule.priority})"
                )

        return warnings

    def _generate_rule_id(self, rule: DiscountRule) -> str:
        """Generate a unique rule ID from scope and target."""
        scope = str(getattr(rule.scope, 'value', rule.scope)).upper()
        base = scope[:4] or "RULE"
        if rule.scope_target_id:
            base += "-" + re.sub(r'[^A-Za-z0-9]', '', rule.scope_target_id)[:8].upper()

        # Ensure uniqueness
        existing_ids = {r.rule_id for r in self.list_rules()}
        candidate = base
        counter = 1
        while candidate in existing_ids:
            candidate = f"{base}-{counter}"
            counter += 1

        return candidate

    def get_stats(self) -> dict:
        """Get statistics about rules."""
        rules = self.list_rules()
        today = self.today()

        active = [r for r in rules if r.is_active]
        expired = [r for r in rules if r.valid_until and r.valid_until < today]
        by_scope = {}
        for r in rules:
            scope = str(getattr(r.scope, 'value', r.scope))
            by_scope[scope] = by_scope.get(scope, 0) + 1

        return {
            'total': len(rules),
            'active': len(active),
            'inactive': len(rules) - len(active),
            'expired': len(expired),
            'by_scope': by_scope,
        }
