"""
ERP Pricing Package

Price resolution and discount stacking for the back-office console.
Resolves Customer → Price List → Tier → Discount Rules with list-price fallback.
"""

__version__ = "1.0.0"
