"""Shared fixtures for the pricing tests."""
import os
import sys
from datetime import date
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from convention_pricing.config.settings import Settings, PACKAGE_ROOT
from convention_pricing.engine import PricingEngine, PriceTier, PriceDiscount
from convention_pricing.engine.currency import CurrencyCatalog
from convention_pricing.services.pricing_service import PricingService


@pytest.fixture
def settings(tmp_path):
    return Settings(
        project_root=tmp_path,
        data_dir=tmp_path / 'data',
        currencies_file=PACKAGE_ROOT / 'data' / 'currencies.csv',
    )


@pytest.fixture
def currencies(settings):
    return CurrencyCatalog.load(settings.currencies_file)


@pytest.fixture
def engine(settings, currencies):
    return PricingEngine(settings, currencies)


@pytest.fixture
def service(settings, currencies):
    return PricingService(settings.data_dir, currencies, settings.default_currency)


@pytest.fixture
def adult():
    return PriceTier(id="tier-adult", label="Adult", amount=Decimal("60"), order=0)


@pytest.fixture
def youth():
    return PriceTier(id="tier-youth", label="Youth", amount=Decimal("30"), order=1)


@pytest.fixture
def early_bird(adult):
    """Adult discounts: $40 through 2025-01-01, $45 through 2025-03-01."""
    return [
        PriceDiscount(cutoff_date=date(2025, 1, 1), price_tier_id=adult.id, discounted_amount=Decimal("40")),
        PriceDiscount(cutoff_date=date(2025, 3, 1), price_tier_id=adult.id, discounted_amount=Decimal("45")),
    ]
