"""Pricing tab edit operations: removing and reordering tiers, grouping discounts by date."""
from collections import OrderedDict
from dataclasses import replace
from datetime import date

from .models import PriceDiscount, PriceTier


def _renumber(tiers: list[PriceTier]) -> list[PriceTier]:
    return [replace(tier, order=i) for i, tier in enumerate(tiers)]


def remove_tier(
    tiers: list[PriceTier], discounts: list[PriceDiscount], index: int
) -> tuple[list[PriceTier], list[PriceDiscount]]:
    """
    Remove the tier at ``index``.

    Remaining tiers are renumbered 0..n-1 and the removed tier's discounts
    are dropped with it.
    """
    if not 0 <= index < len(tiers):
        raise IndexError(f"No price tier at position {index}")
    removed = tiers[index]
    kept = _renumber([t for i, t in enumerate(tiers) if i != index])
    kept_discounts = [d for d in discounts if d.price_tier_id != removed.key]
    return kept, kept_discounts


def reorder_tiers(tiers: list[PriceTier], source: int, destination: int) -> list[PriceTier]:
    """Move a tier from ``source`` to ``destination`` and renumber."""
    if not 0 <= source < len(tiers):
        raise IndexError(f"No price tier at position {source}")
    moved = list(tiers)
    tier = moved.pop(source)
    moved.insert(max(0, min(destination, len(moved))), tier)
    return _renumber(moved)


def group_discounts_by_date(discounts: list[PriceDiscount]) -> "OrderedDict[date, list[PriceDiscount]]":
    """Discounts grouped by cutoff date, dates ascending."""
    groups: "OrderedDict[date, list[PriceDiscount]]" = OrderedDict()
    for discount in sorted(discounts, key=lambda d: d.cutoff_date):
        groups.setdefault(discount.cutoff_date, []).append(discount)
    return groups
