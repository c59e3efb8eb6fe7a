#!/usr/bin/env python
"""
Price simulator - prints the breakdown and trace for one calculation.

Usage:
    python scripts/simulate_price.py ITM-100 5 --customer C-001
    python scripts/simulate_price.py ITM-300 25 --date 2026-04-01 --data-dir ./data
"""
import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from erp_pricing.config.settings import Settings
from erp_pricing.data.store import PricingStore
from erp_pricing.engine import PriceCalculator


def main():
    parser = argparse.ArgumentParser(description="Simulate a price calculation")
    parser.add_argument("item_id")
    parser.add_argument("quantity", type=int)
    parser.add_argument("--customer", default=None, help="Customer id")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Pricing date (YYYY-MM-DD)")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory with master data CSVs")
    args = parser.parse_args()

    settings = Settings.load(data_dir=args.data_dir)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    calculator = PriceCalculator(PricingStore(settings.data_dir), settings=settings)
    result = calculator.calculate(args.customer, args.item_id, args.quantity, args.date)

    print("=" * 60)
    print("PRICE SIMULATION")
    print("=" * 60)

    if not result.ok:
        print(f"\n❌ ERROR: {result.error}")
        sys.exit(1)

    print(f"Item:           {result.item_id} ({result.item_name})")
    print(f"Quantity:       {result.quantity}")
    print(f"Base price:     {result.base_price} [{result.price_source.value}]")
    for d in result.discounts_applied:
        print(f"  - {d.rule_name} ({d.scope.value}): -{d.discount_amount}")
    print(f"Unit price:     {result.unit_price}")
    print(f"Total price:    {result.total_price}")
    print(f"Total discount: {result.total_discount}")
    for warning in result.warnings:
        print(f"⚠ {warning}")

    print("\nTrace:")
    print(result.get_trace_text())


if __name__ == "__main__":
    main()
