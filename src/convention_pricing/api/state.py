"""Shared engine and store instances for the API (created on first use)."""
from typing import Optional

from ..config.settings import get_settings
from ..engine import PricingEngine
from ..services.pricing_service import PricingService

_engine: Optional[PricingEngine] = None
_pricing_service: Optional[PricingService] = None


def get_engine() -> PricingEngine:
    """Get the global engine instance."""
    global _engine
    if _engine is None:
        _engine = PricingEngine(get_settings())
    return _engine


def get_pricing_service() -> PricingService:
    """Get the global pricing store."""
    global _pricing_service
    if _pricing_service is None:
        settings = get_settings()
        _pricing_service = PricingService(
            data_dir=settings.data_dir,
            currencies=get_engine().currencies,
            default_currency=settings.default_currency,
        )
    return _pricing_service
