"""Engine subpackage - pricing validation and price resolution."""
from .pricing_engine import PricingEngine, resolve_effective_price, build_display_schedule
from .validation import validate_configuration, ValidationResult
from .models import PriceTier, PriceDiscount, PricingConfiguration, EffectivePrice, DisplaySchedule

__all__ = [
    'PricingEngine', 'resolve_effective_price', 'build_display_schedule',
    'validate_configuration', 'ValidationResult',
    'PriceTier', 'PriceDiscount', 'PricingConfiguration', 'EffectivePrice', 'DisplaySchedule',
]
