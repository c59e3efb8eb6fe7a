"""
Price Base Resolver - determines the base unit price and where it came from.

Resolution order:
1. Customer's assigned price list (if active) → tier for the quantity
2. System default price list (if active) → tier for the quantity
3. Item list price
"""
from bisect import bisect_right
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from .errors import ItemNotFound
from .models import Customer, Item, PriceList, PriceListTier, PriceSource, TraceStep


@dataclass(frozen=True)
class BaseResolution:
    """Base unit price with its provenance."""
    base_price: Decimal
    price_source: PriceSource
    price_list_id: Optional[str] = None
    tier_min_quantity: Optional[int] = None
    trace: tuple[TraceStep, ...] = field(default=(), compare=False)


def select_tier(tiers: Sequence[PriceListTier], quantity: int) -> Optional[PriceListTier]:
    """
    Pick the tier with the greatest min_quantity not exceeding `quantity`.

    `tiers` must be sorted by ascending min_quantity.
    """
    index = bisect_right([t.min_quantity for t in tiers], quantity)
    return tiers[index - 1] if index else None


class PriceBaseResolver:
    """
    Resolves base prices against a pricing snapshot.

    The snapshot must provide get_item, get_customer, get_assigned_price_list,
    get_default_price_list and get_tiers.
    """

    def __init__(self, snapshot):
        self.snapshot = snapshot

    def resolve(self, customer_id: Optional[str], item_id: str, quantity: int) -> BaseResolution:
        """
        Resolve the base price for an item, optional customer and quantity.

        An unknown customer id simply means no assigned price list here;
        rejecting it is the calculator's job.

        Raises:
            ItemNotFound: item is missing or inactive
        """
        item = self.snapshot.get_item(item_id)
        if item is None or not item.is_active:
            raise ItemNotFound(f"Item {item_id} not found or inactive")

        customer = self.snapshot.get_customer(customer_id) if customer_id is not None else None
        return self.resolve_for(customer, item, quantity)

    def resolve_for(self, customer: Optional[Customer], item: Item, quantity: int) -> BaseResolution:
        """Resolve with already-loaded customer and item records."""
        trace = [TraceStep("Item Lookup", f"Found item {item.name}", item.item_id)]

        if customer is not None:
            assigned = self.snapshot.get_assigned_price_list(customer)
            if assigned is None:
                trace.append(TraceStep("Assigned List", "Customer has no assigned price list"))
            elif not assigned.is_active:
                trace.append(TraceStep("Assigned List", "Assigned price list is inactive", assigned.price_list_id))
            else:
                found = self._from_list(assigned, item, quantity, "Assigned List", trace)
                if found:
                    return found
        else:
            trace.append(TraceStep("Assigned List", "No customer given"))

        default = self.snapshot.get_default_price_list()
        if default is not None and default.is_active:
            found = self._from_list(default, item, quantity, "Default List", trace)
            if found:
                return found
        else:
            trace.append(TraceStep("Default List", "No active default price list"))

        trace.append(TraceStep("Fallback", "Using item list price", f"{item.list_price}"))
        return BaseResolution(
            base_price=item.list_price,
            price_source=PriceSource.ITEM,
            trace=tuple(trace),
        )

    def _from_list(
        self,
        price_list: PriceList,
        item: Item,
        quantity: int,
        label: str,
        trace: list[TraceStep],
    ) -> Optional[BaseResolution]:
        tier = select_tier(self.snapshot.get_tiers(price_list, item), quantity)
        if tier is None:
            trace.append(TraceStep(
                label, f"No tier in {price_list.name} covers quantity {quantity}", price_list.price_list_id
            ))
            return None

        trace.append(TraceStep(
            label, f"Using {price_list.name} tier from quantity {tier.min_quantity}", f"{tier.unit_price}"
        ))
        return BaseResolution(
            base_price=tier.unit_price,
            price_source=PriceSource.PRICE_LIST,
            price_list_id=price_list.price_list_id,
            tier_min_quantity=tier.min_quantity,
            trace=tuple(trace),
        )
