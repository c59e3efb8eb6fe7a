"""
Shared API state - one store, calculator and rules service per process.
"""
from ..config.settings import get_settings
from ..data.store import PricingStore
from ..engine import PriceCalculator
from ..services.rules_service import RulesService

settings = get_settings()
store = PricingStore(settings.data_dir)
calculator = PriceCalculator(store, settings=settings)
rules_service = RulesService(store)
