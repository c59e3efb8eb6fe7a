"""
Pricing Store - master data access for the pricing engine.

Loads items, families, customers, price lists, tiers and discount rules from
CSV files and serves them as immutable point-in-time snapshots. Writes go
through the store, persist the CSV and drop the cached snapshot before
returning, so the next calculation never sees stale rules or prices.
"""
import logging
import threading
from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import pandas as pd

from ..engine.models import (
    Customer,
    DiscountKind,
    DiscountRule,
    Item,
    ItemFamily,
    PriceList,
    PriceListTier,
    RuleScope,
)

logger = logging.getLogger(__name__)


ITEMS_CSV = 'items.csv'
FAMILIES_CSV = 'item_families.csv'
CUSTOMERS_CSV = 'customers.csv'
PRICE_LISTS_CSV = 'price_lists.csv'
TIERS_CSV = 'price_list_tiers.csv'
RULES_CSV = 'discount_rules.csv'


def parse_bool(value: str, default: bool = True) -> bool:
    """Parse a boolean from CSV string."""
    if value is None or str(value).strip() == '':
        return default
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_decimal(value: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")


def parse_date(value: str) -> Optional[date]:
    value = (value or '').strip()
    return date.fromisoformat(value) if value else None


def _optional(value: str) -> Optional[str]:
    value = (value or '').strip()
    return value or None


def _enum_or_raw(enum_cls, value: str):
    """Coerce to the enum; unknown values stay raw for the engine to reject."""
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return value


def _lenient_decimal(value: str):
    try:
        return parse_decimal(value)
    except ValueError:
        return value


def item_from_row(row: dict) -> Item:
    return Item(
        item_id=row['item_id'],
        name=row.get('name', ''),
        list_price=parse_decimal(row['list_price']),
        cost=parse_decimal(row.get('cost') or '0'),
        family_id=_optional(row.get('family_id')),
        is_active=parse_bool(row.get('is_active')),
    )


def family_from_row(row: dict) -> ItemFamily:
    return ItemFamily(
        family_id=row['family_id'],
        name=row.get('name', ''),
        is_active=parse_bool(row.get('is_active')),
    )


def customer_from_row(row: dict) -> Customer:
    return Customer(
        customer_id=row['customer_id'],
        name=row.get('name', ''),
        assigned_price_list_id=_optional(row.get('assigned_price_list_id')),
        customer_group_id=_optional(row.get('customer_group_id')),
        is_active=parse_bool(row.get('is_active')),
    )


def price_list_from_row(row: dict) -> PriceList:
    return PriceList(
        price_list_id=row['price_list_id'],
        name=row.get('name', ''),
        is_default=parse_bool(row.get('is_default'), default=False),
        is_active=parse_bool(row.get('is_active')),
    )


def tier_from_row(row: dict) -> PriceListTier:
    return PriceListTier(
        price_list_id=row['price_list_id'],
        item_id=row['item_id'],
        min_quantity=int(row['min_quantity']),
        unit_price=parse_decimal(row['unit_price']),
    )


def rule_from_row(row: dict, sequence: int) -> DiscountRule:
    """
    Build a DiscountRule from a CSV row.

    Scope, kind and value are kept raw when unrecognized; the engine skips
    such rules at evaluation time instead of failing the whole load.
    """
    raw_sequence = (row.get('sequence') or '').strip()
    return DiscountRule(
        rule_id=row['rule_id'],
        name=row.get('name') or row['rule_id'],
        scope=_enum_or_raw(RuleScope, row.get('scope', '')),
        kind=_enum_or_raw(DiscountKind, row.get('kind', '')),
        value=_lenient_decimal(row.get('value', '')),
        scope_target_id=_optional(row.get('scope_target_id')),
        priority=int(row.get('priority') or 50),
        valid_from=parse_date(row.get('valid_from')),
        valid_until=parse_date(row.get('valid_until')),
        is_active=parse_bool(row.get('is_active')),
        sequence=int(raw_sequence) if raw_sequence else sequence,
    )


def record_to_row(record) -> dict:
    """Serialize a model dataclass to CSV-friendly strings."""
    row = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            row[f.name] = ''
        elif isinstance(value, bool):
            row[f.name] = 'true' if value else 'false'
        elif isinstance(value, Enum):
            row[f.name] = value.value
        elif isinstance(value, date):
            row[f.name] = value.isoformat()
        else:
            row[f.name] = str(value)
    return row


@dataclass(frozen=True)
class PricingSnapshot:
    """
    Immutable, point-in-time view of master and pricing data.

    Implements the read interface the pricing engine consumes. A snapshot is
    never mutated after construction; writes produce a new one.
    """
    items: Mapping[str, Item] = field(default_factory=dict)
    families: Mapping[str, ItemFamily] = field(default_factory=dict)
    customers: Mapping[str, Customer] = field(default_factory=dict)
    price_lists: Mapping[str, PriceList] = field(default_factory=dict)
    tiers: Mapping[tuple[str, str], tuple[PriceListTier, ...]] = field(default_factory=dict)
    rules: tuple[DiscountRule, ...] = ()
    default_price_list_id: Optional[str] = None

    def __post_init__(self):
        # Lookup tables are exposed read-only
        for name in ("items", "families", "customers", "price_lists", "tiers"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @classmethod
    def from_records(
        cls,
        items: Iterable[Item] = (),
        families: Iterable[ItemFamily] = (),
        customers: Iterable[Customer] = (),
        price_lists: Iterable[PriceList] = (),
        tiers: Iterable[PriceListTier] = (),
        rules: Iterable[DiscountRule] = (),
    ) -> 'PricingSnapshot':
        """Build a snapshot from plain records."""
        lists = {pl.price_list_id: pl for pl in price_lists}

        grouped: dict[tuple[str, str], list[PriceListTier]] = {}
        for tier in tiers:
            grouped.setdefault((tier.price_list_id, tier.item_id), []).append(tier)
        tier_index = {}
        for key, group in grouped.items():
            # Keep strictly increasing min_quantity; later duplicates lose
            by_qty: dict[int, PriceListTier] = {}
            for tier in group:
                if tier.min_quantity in by_qty:
                    logger.warning(
                        "Duplicate tier min_quantity=%s for list %s item %s ignored",
                        tier.min_quantity, key[0], key[1]
                    )
                    continue
                by_qty[tier.min_quantity] = tier
            tier_index[key] = tuple(sorted(by_qty.values(), key=lambda t: t.min_quantity))

        defaults = sorted(
            pl.price_list_id for pl in lists.values() if pl.is_default and pl.is_active
        )
        if len(defaults) > 1:
            logger.warning(
                "Multiple default price lists flagged (%s); using %s",
                ", ".join(defaults), defaults[0]
            )

        return cls(
            items={i.item_id: i for i in items},
            families={f.family_id: f for f in families},
            customers={c.customer_id: c for c in customers},
            price_lists=lists,
            tiers=tier_index,
            rules=tuple(sorted(rules, key=lambda r: (r.sequence, r.rule_id))),
            default_price_list_id=defaults[0] if defaults else None,
        )

    def snapshot(self) -> 'PricingSnapshot':
        """A snapshot is its own point-in-time source."""
        return self

    # Catalog store

    def get_item(self, item_id: str) -> Optional[Item]:
        return self.items.get(str(item_id).strip())

    def get_family(self, item: Item) -> Optional[ItemFamily]:
        if not item.family_id:
            return None
        return self.families.get(item.family_id)

    # Customer store

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self.customers.get(str(customer_id).strip())

    # Pricing store

    def get_assigned_price_list(self, customer: Customer) -> Optional[PriceList]:
        if not customer.assigned_price_list_id:
            return None
        return self.price_lists.get(customer.assigned_price_list_id)

    def get_default_price_list(self) -> Optional[PriceList]:
        if self.default_price_list_id is None:
            return None
        return self.price_lists[self.default_price_list_id]

    def get_tiers(self, price_list: PriceList, item: Item) -> tuple[PriceListTier, ...]:
        """Tiers for (list, item), sorted by ascending min_quantity."""
        return self.tiers.get((price_list.price_list_id, item.item_id), ())

    def get_active_discount_rules(self, on_date: date) -> tuple[DiscountRule, ...]:
        """Active rules whose validity window contains `on_date`, in creation order."""
        return tuple(r for r in self.rules if r.is_active and r.is_valid_on(on_date))

    def counts(self) -> dict:
        return {
            "items": len(self.items),
            "families": len(self.families),
            "customers": len(self.customers),
            "price_lists": len(self.price_lists),
            "tiers": sum(len(t) for t in self.tiers.values()),
            "discount_rules": len(self.rules),
        }


class PricingStore:
    """
    CSV-backed master data store with a cached snapshot.

    `snapshot()` hands out the current immutable snapshot; every write
    persists to disk and invalidates the cache under the same lock.
    """

    RULE_COLUMNS = [f.name for f in fields(DiscountRule)]
    PRICE_LIST_COLUMNS = [f.name for f in fields(PriceList)]
    TIER_COLUMNS = [f.name for f in fields(PriceListTier)]

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()
        self._snapshot: Optional[PricingSnapshot] = None

    def snapshot(self) -> PricingSnapshot:
        """Return the current snapshot, loading it from disk if needed."""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def invalidate(self):
        """Drop the cached snapshot; the next read reloads from disk."""
        with self._lock:
            self._snapshot = None
            logger.debug("Pricing snapshot invalidated")

    def reload(self) -> PricingSnapshot:
        """Reload all CSV data from disk."""
        self.invalidate()
        return self.snapshot()

    # Writes

    def save_rule(self, rule: DiscountRule) -> DiscountRule:
        """Insert or replace a discount rule by rule_id."""
        with self._lock:
            rules = list(self.snapshot().rules)
            existing = [i for i, r in enumerate(rules) if r.rule_id == rule.rule_id]
            if existing:
                rule = replace(rule, sequence=rules[existing[0]].sequence)
                rules[existing[0]] = rule
            else:
                next_seq = max((r.sequence for r in rules), default=0) + 1
                rule = replace(rule, sequence=next_seq)
                rules.append(rule)
            self._write(RULES_CSV, self.RULE_COLUMNS, rules)
            return rule

    def delete_rule(self, rule_id: str) -> bool:
        with self._lock:
            rules = list(self.snapshot().rules)
            kept = [r for r in rules if r.rule_id != rule_id]
            if len(kept) == len(rules):
                return False
            self._write(RULES_CSV, self.RULE_COLUMNS, kept)
            return True

    def save_price_list(self, price_list: PriceList) -> PriceList:
        with self._lock:
            lists = dict(self.snapshot().price_lists)
            lists[price_list.price_list_id] = price_list
            self._write(PRICE_LISTS_CSV, self.PRICE_LIST_COLUMNS, lists.values())
            return price_list

    def save_tier(self, tier: PriceListTier) -> PriceListTier:
        """Insert or replace the tier at (list, item, min_quantity)."""
        with self._lock:
            key = (tier.price_list_id, tier.item_id, tier.min_quantity)
            tiers = [
                t for group in self.snapshot().tiers.values() for t in group
                if (t.price_list_id, t.item_id, t.min_quantity) != key
            ]
            tiers.append(tier)
            self._write(TIERS_CSV, self.TIER_COLUMNS, tiers)
            return tier

    def _write(self, filename: str, columns: list[str], records: Iterable):
        path = self.data_dir / filename
        df = pd.DataFrame([record_to_row(r) for r in records], columns=columns)
        df.to_csv(path, index=False)
        logger.info("Wrote %d rows to %s", len(df), path)
        self.invalidate()

    # Loading

    def _read_table(self, filename: str) -> list[dict]:
        path = self.data_dir / filename
        if not path.exists():
            logger.info("No %s in %s; treating as empty", filename, self.data_dir)
            return []
        df = pd.read_csv(path, dtype=str, keep_default_na=False).fillna('')
        # Strip all strings and headers
        df.columns = [c.strip() for c in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        return df.to_dict(orient='records')

    def _parse_rows(self, filename: str, builder) -> list:
        records = []
        for index, row in enumerate(self._read_table(filename), start=1):
            try:
                records.append(builder(row, index))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping %s row %d: %s", filename, index, e)
        return records

    def _load(self) -> PricingSnapshot:
        snapshot = PricingSnapshot.from_records(
            items=self._parse_rows(ITEMS_CSV, lambda row, _: item_from_row(row)),
            families=self._parse_rows(FAMILIES_CSV, lambda row, _: family_from_row(row)),
            customers=self._parse_rows(CUSTOMERS_CSV, lambda row, _: customer_from_row(row)),
            price_lists=self._parse_rows(PRICE_LISTS_CSV, lambda row, _: price_list_from_row(row)),
            tiers=self._parse_rows(TIERS_CSV, lambda row, _: tier_from_row(row)),
            rules=self._parse_rows(RULES_CSV, rule_from_row),
        )
        logger.info("Loaded pricing snapshot from %s: %s", self.data_dir, snapshot.counts())
        return snapshot
