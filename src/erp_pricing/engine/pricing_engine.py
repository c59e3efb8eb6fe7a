"""
Price Calculator - validates input and orchestrates resolver and discount rules.

Each call takes one snapshot of master data, resolves the base price, stacks
the applicable discounts and assembles a PriceCalculation with its audit trail.
Terminal failures come back as a labeled error with no numeric fields.
"""
import logging
from datetime import date
from decimal import ROUND_HALF_UP
from typing import Callable, Optional

from ..config.settings import Settings, get_settings
from .errors import CustomerNotFound, InvalidQuantity, ItemNotFound, PricingError
from .models import PriceCalculation
from .price_resolver import PriceBaseResolver
from .rule_matcher import DiscountRuleEngine

logger = logging.getLogger(__name__)


class PriceCalculator:
    """
    Core pricing entry point.

    Resolution order:
    1. Validate quantity, item and customer
    2. Resolve base price (assigned list → default list → item list price)
    3. Apply matching discount rules in priority order on the running price
    4. Extend by quantity and compute the total discount

    `source` is anything with a `snapshot()` method returning a pricing
    snapshot (a PricingStore, or a PricingSnapshot itself).
    """

    def __init__(
        self,
        source,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.source = source
        self.settings = settings or get_settings()
        self.today = today

    def calculate(
        self,
        customer_id: Optional[str],
        item_id: str,
        quantity: int,
        pricing_date: Optional[date] = None,
    ) -> PriceCalculation:
        """
        Calculate the unit and total price for one item.

        Args:
            customer_id: Customer id, or None for anonymous pricing
            item_id: Item id
            quantity: Positive integer quantity
            pricing_date: Date for rule validity windows (defaults to today)

        Returns:
            PriceCalculation with breakdown and trace, or with `error` set
        """
        snapshot = self.source.snapshot()
        return self._calculate_safe(snapshot, customer_id, item_id, quantity, pricing_date or self.today())

    def calculate_lines(
        self,
        customer_id: Optional[str],
        items: dict[str, int],
        pricing_date: Optional[date] = None,
    ) -> list[PriceCalculation]:
        """
        Price several lines against one snapshot.

        A failing line carries its own error; other lines are unaffected.
        """
        snapshot = self.source.snapshot()
        on_date = pricing_date or self.today()
        return [
            self._calculate_safe(snapshot, customer_id, item_id, qty, on_date)
            for item_id, qty in items.items()
        ]

    def _calculate_safe(self, snapshot, customer_id, item_id, quantity, on_date) -> PriceCalculation:
        try:
            return self._calculate(snapshot, customer_id, item_id, quantity, on_date)
        except PricingError as e:
            logger.info("Price calculation failed for item=%s customer=%s: %s", item_id, customer_id, e)
            return PriceCalculation.failed(e.code)

    def _calculate(self, snapshot, customer_id, item_id, quantity, on_date: date) -> PriceCalculation:
        # bool is an int subclass but never a quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")

        item = snapshot.get_item(item_id)
        if item is None or not item.is_active:
            raise ItemNotFound(f"Item {item_id} not found or inactive")

        customer = None
        if customer_id is not None:
            customer = snapshot.get_customer(customer_id)
            if customer is None or not customer.is_active:
                raise CustomerNotFound(f"Customer {customer_id} not found or inactive")

        quantum = self.settings.currency_quantum
        result = PriceCalculation(item_id=item.item_id, item_name=item.name, quantity=quantity)
        result.add_trace("Request", f"Pricing {quantity} × {item.item_id} on {on_date.isoformat()}",
                         customer.customer_id if customer else "no customer")

        base = PriceBaseResolver(snapshot).resolve_for(customer, item, quantity)
        result.trace.extend(base.trace)
        result.base_price = base.base_price.quantize(quantum, rounding=ROUND_HALF_UP)
        result.price_source = base.price_source
        result.price_list_id = base.price_list_id
        result.tier_min_quantity = base.tier_min_quantity

        rules = snapshot.get_active_discount_rules(on_date)
        engine = DiscountRuleEngine(rules, currency_quantum=quantum)
        outcome = engine.apply(result.base_price, item, customer, quantity, on_date)
        result.trace.extend(outcome.trace)
        result.discounts_applied = outcome.discounts_applied
        for skipped in outcome.skipped:
            result.add_warning(f"Discount rule {skipped.rule_id} ignored: {skipped.reason}")

        unit_price = outcome.unit_price
        # The floor only undoes discounts; it never lifts the price above base
        floor = min(item.cost.quantize(quantum, rounding=ROUND_HALF_UP), result.base_price)
        if self.settings.enforce_cost_floor and unit_price < floor:
            result.add_trace("Cost Floor", f"Unit price {unit_price} below cost, raised", f"{floor}")
            result.add_warning(f"Cost floor applied for item {item.item_id}")
            unit_price = floor
        result.unit_price = unit_price

        result.total_price = (unit_price * quantity).quantize(quantum, rounding=ROUND_HALF_UP)
        result.total_discount = result.base_price * quantity - result.total_price
        result.add_trace("Extension", f"Quantity {quantity} × {unit_price}", f"{result.total_price}")
        return result
