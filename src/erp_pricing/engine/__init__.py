"""Engine subpackage - price resolution and discount stacking."""
from .pricing_engine import PriceCalculator
from .models import PriceCalculation, DiscountApplication, DiscountRule

__all__ = ['PriceCalculator', 'PriceCalculation', 'DiscountApplication', 'DiscountRule']
