"""
Pricing Engine - convention price tiers, early-bird discounts and display schedules.

Resolution for one tier:
1. Keep the tier's discounts whose cutoff date is strictly after the reference date
2. If any remain, the one with the soonest cutoff is the current price
3. Otherwise the tier's regular amount applies

All functions here are pure; loading and saving configurations is the
store's job (see services/pricing_service.py).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog

from ..config.settings import Settings, get_settings
from .currency import CurrencyCatalog
from .errors import AmbiguousDiscountError
from .models import (
    DisplaySchedule,
    EffectivePrice,
    PriceDiscount,
    PriceTier,
    PricingConfiguration,
    ScheduleRow,
)
from .validation import ValidationResult, validate_configuration


logger = structlog.get_logger(__name__)

DateLike = Union[date, datetime, None]


def _reference_date(as_of: DateLike) -> date:
    if as_of is None:
        return date.today()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def sort_tiers(tiers: Iterable[PriceTier]) -> list[PriceTier]:
    """Tiers by display order; sorted() is stable so ties keep insertion order."""
    return sorted(tiers, key=lambda t: t.order)


def active_discounts(
    tier: PriceTier, discounts: Iterable[PriceDiscount], as_of: DateLike = None
) -> list[PriceDiscount]:
    """Discounts of ``tier`` still available on ``as_of``, soonest cutoff first."""
    today = _reference_date(as_of)
    matching = [
        d for d in discounts
        if d.price_tier_id == tier.key and d.cutoff_date > today
    ]
    # lowest amount wins a same-day tie
    matching.sort(key=lambda d: (d.cutoff_date, d.discounted_amount))
    return matching


def resolve_effective_price(
    tier: PriceTier,
    discounts: Iterable[PriceDiscount],
    as_of: DateLike = None,
    currency: str = "USD",
) -> EffectivePrice:
    """
    Resolve the price a tier sells at on ``as_of`` (default: today).

    A discount is valid for purchases strictly before its cutoff date.
    """
    today = _reference_date(as_of)
    price = EffectivePrice(
        tier_id=tier.key,
        amount=tier.amount,
        currency=currency,
        source="Regular",
        as_of=today,
    )
    price.add_trace("Tier", f"Resolving price for '{tier.label}'", f"{tier.amount:.2f}")

    available = active_discounts(tier, discounts, today)
    if not available:
        price.add_trace("Discount Lookup", f"No discounts after {today.isoformat()}", None)
        price.add_trace("Price Resolution", "Using regular price", f"{price.amount:.2f} {currency}")
        return price

    current = available[0]
    price.amount = current.discounted_amount
    price.source = "Discount"
    price.cutoff_date = current.cutoff_date
    price.add_trace(
        "Discount Lookup",
        f"{len(available)} discount(s) after {today.isoformat()}",
        ", ".join(d.cutoff_date.isoformat() for d in available),
    )
    price.add_trace(
        "Price Resolution",
        f"Using discount good through {current.cutoff_date.isoformat()}",
        f"{price.amount:.2f} {currency}",
    )
    return price


def build_display_schedule(
    tiers: Iterable[PriceTier],
    discounts: Iterable[PriceDiscount],
    as_of: DateLike = None,
    currency: str = "USD",
) -> DisplaySchedule:
    """
    Build the tier x cutoff-date price matrix.

    Columns are the distinct future cutoff dates in ascending order followed
    by the regular price. A tier without a discount on a column's date shows
    its regular amount there.

    Raises:
        AmbiguousDiscountError: If a tier has two discounts on one date.
    """
    today = _reference_date(as_of)
    tiers = sort_tiers(tiers)
    discounts = list(discounts)

    by_tier: dict[str, dict[date, PriceDiscount]] = {}
    for discount in discounts:
        dated = by_tier.setdefault(discount.price_tier_id, {})
        if discount.cutoff_date in dated:
            raise AmbiguousDiscountError(discount.price_tier_id, discount.cutoff_date)
        dated[discount.cutoff_date] = discount

    cutoff_dates = sorted({d.cutoff_date for d in discounts if d.cutoff_date > today})

    rows = []
    for tier in tiers:
        dated = by_tier.get(tier.key, {})
        cells = [
            dated[cutoff].discounted_amount if cutoff in dated else tier.amount
            for cutoff in cutoff_dates
        ]
        cells.append(tier.amount)
        current = resolve_effective_price(tier, discounts, today, currency)
        rows.append(ScheduleRow(
            tier_id=tier.key,
            label=tier.label,
            cells=cells,
            regular_amount=tier.amount,
            current_amount=current.amount,
        ))

    return DisplaySchedule(
        cutoff_dates=cutoff_dates,
        rows=rows,
        currency=currency,
        as_of=today,
    )


class PricingEngine:
    """
    Convention pricing engine bound to settings and the currency table.

    Wraps the pure functions of this module with the convention's currency
    so callers do not have to thread it through.
    """

    def __init__(self, settings: Optional[Settings] = None, currencies: Optional[CurrencyCatalog] = None):
        self.settings = settings or get_settings()
        self.currencies = currencies or CurrencyCatalog.load(self.settings.currencies_file)

    def validate(self, tiers: Iterable, discounts: Iterable, currency: Optional[str] = None) -> ValidationResult:
        """Validate a proposed configuration (see ``validate_configuration``)."""
        currency = currency or self.settings.default_currency
        result = validate_configuration(tiers, discounts, currency=currency)
        if not result.valid:
            logger.info(
                "pricing_validation_failed",
                error_count=len(result.errors),
                codes=sorted({e.code.value for e in result.errors}),
            )
        return result

    def effective_price(
        self,
        configuration: PricingConfiguration,
        tier_id: str,
        as_of: DateLike = None,
    ) -> Optional[EffectivePrice]:
        """Effective price of one tier of a configuration, or None if the tier is unknown."""
        tier = configuration.get_tier(tier_id)
        if tier is None:
            return None
        return resolve_effective_price(tier, configuration.discounts, as_of, configuration.currency)

    def effective_prices(self, configuration: PricingConfiguration, as_of: DateLike = None) -> list[EffectivePrice]:
        """Effective price of every tier, in display order."""
        return [
            resolve_effective_price(tier, configuration.discounts, as_of, configuration.currency)
            for tier in sort_tiers(configuration.tiers)
        ]

    def display_schedule(self, configuration: PricingConfiguration, as_of: DateLike = None) -> DisplaySchedule:
        """Display schedule for a configuration, in its currency."""
        return build_display_schedule(
            configuration.tiers,
            configuration.discounts,
            as_of=as_of,
            currency=configuration.currency,
        )

    def format_price(self, amount: Decimal, currency: Optional[str] = None) -> str:
        """Presentation string for an amount ("FREE" for zero)."""
        return self.currencies.format_price(amount, currency or self.settings.default_currency)
