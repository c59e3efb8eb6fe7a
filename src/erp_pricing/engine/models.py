"""
Data models for the pricing engine.

Master data (items, customers, price lists, discount rules) is read-only during
a calculation. PriceCalculation is the per-call output with its audit trail.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class RuleScope(str, Enum):
    """Entity category a discount rule targets."""
    CUSTOMER = "customer"
    CUSTOMER_GROUP = "customer_group"
    ITEM = "item"
    ITEM_FAMILY = "item_family"
    GLOBAL = "global"


# Tie-break order when priorities are equal: most specific scope first.
SCOPE_SPECIFICITY = {
    RuleScope.CUSTOMER: 0,
    RuleScope.CUSTOMER_GROUP: 1,
    RuleScope.ITEM: 2,
    RuleScope.ITEM_FAMILY: 3,
    RuleScope.GLOBAL: 4,
}


class DiscountKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_PER_UNIT = "fixed_per_unit"


class PriceSource(str, Enum):
    PRICE_LIST = "price_list"
    ITEM = "item"


@dataclass(frozen=True)
class Item:
    item_id: str
    name: str
    list_price: Decimal
    cost: Decimal = Decimal("0")
    family_id: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class ItemFamily:
    family_id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Customer:
    customer_id: str
    name: str
    assigned_price_list_id: Optional[str] = None
    customer_group_id: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class PriceList:
    price_list_id: str
    name: str
    is_default: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class PriceListTier:
    """A (minimum quantity → unit price) breakpoint for one list and item."""
    price_list_id: str
    item_id: str
    min_quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class DiscountRule:
    """
    A discount rule as configured in master data.

    `scope` and `kind` normally hold enum members, but records loaded from
    storage may carry unrecognized raw strings; the engine skips those.
    `sequence` is the creation order and breaks ties between otherwise
    identical rules.
    """
    rule_id: str
    name: str
    scope: RuleScope | str
    kind: DiscountKind | str
    value: Decimal | str
    scope_target_id: Optional[str] = None
    priority: int = 50
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool = True
    sequence: int = 0

    def is_valid_on(self, on_date: date) -> bool:
        """Check the validity window (both bounds inclusive, None = open)."""
        if self.valid_from and on_date < self.valid_from:
            return False
        if self.valid_until and on_date > self.valid_until:
            return False
        return True


@dataclass(frozen=True)
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass(frozen=True)
class DiscountApplication:
    """One discount actually applied, per unit."""
    rule_id: str
    rule_name: str
    scope: RuleScope
    discount_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "scope": self.scope.value,
            "discount": self.discount_amount,
        }


@dataclass
class PriceCalculation:
    """Complete result of one price calculation, or a labeled error."""
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    quantity: Optional[int] = None
    base_price: Optional[Decimal] = None
    price_source: Optional[PriceSource] = None
    price_list_id: Optional[str] = None
    tier_min_quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    total_discount: Optional[Decimal] = None
    discounts_applied: list[DiscountApplication] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, code: str) -> 'PriceCalculation':
        return cls(error=code)

    @property
    def ok(self) -> bool:
        return self.error is None

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self, include_trace: bool = False) -> dict:
        """
        Convert to the caller-facing dict.

        A failed calculation yields only the error label, never a zeroed
        breakdown.
        """
        if self.error is not None:
            return {"error": self.error}

        data = {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "base_price": self.base_price,
            "price_source": self.price_source.value,
            "price_list_id": self.price_list_id,
            "tier_min_quantity": self.tier_min_quantity,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "total_discount": self.total_discount,
            "discounts_applied": [d.to_dict() for d in self.discounts_applied],
            "warnings": list(self.warnings),
        }
        if include_trace:
            data["trace"] = [
                {"step": t.step, "description": t.description, "value": t.value}
                for t in self.trace
            ]
        return data
