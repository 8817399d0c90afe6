"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

import pandas as pd


REGULAR_PRICE_COLUMN = "Regular Price"


@dataclass
class TraceStep:
    """A single step in the price resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class PriceTier:
    """One attendee category (e.g. "Adult") and its base price."""
    label: str
    amount: Decimal
    order: int = 0
    id: Optional[str] = None
    convention_id: Optional[str] = None

    @property
    def key(self) -> str:
        """Reference key used by discounts: the id once saved, else the label."""
        return self.id if self.id else self.label

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "convention_id": self.convention_id,
            "label": self.label,
            "amount": str(self.amount),
            "order": self.order,
        }


@dataclass
class PriceDiscount:
    """A reduced price for one tier, valid for purchases before cutoff_date."""
    cutoff_date: date
    price_tier_id: str
    discounted_amount: Decimal
    id: Optional[str] = None
    convention_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "convention_id": self.convention_id,
            "cutoff_date": self.cutoff_date.isoformat(),
            "price_tier_id": self.price_tier_id,
            "discounted_amount": str(self.discounted_amount),
        }


@dataclass
class PricingConfiguration:
    """Tiers and discounts of a single convention."""
    tiers: list[PriceTier] = field(default_factory=list)
    discounts: list[PriceDiscount] = field(default_factory=list)
    currency: str = "USD"

    def discounts_for(self, tier: PriceTier) -> list[PriceDiscount]:
        return [d for d in self.discounts if d.price_tier_id == tier.key]

    def get_tier(self, tier_id: str) -> Optional[PriceTier]:
        for tier in self.tiers:
            if tier.key == tier_id:
                return tier
        return None

    def to_dict(self) -> dict:
        return {
            "currency": self.currency,
            "tiers": [t.to_dict() for t in self.tiers],
            "discounts": [d.to_dict() for d in self.discounts],
        }


@dataclass
class EffectivePrice:
    """Price a tier sells at on a given date."""
    tier_id: str
    amount: Decimal
    currency: str
    source: str  # "Discount" or "Regular"
    as_of: date
    cutoff_date: Optional[date] = None
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the resolution trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


@dataclass
class ScheduleRow:
    """One tier's prices across the schedule columns."""
    tier_id: str
    label: str
    cells: list[Decimal]
    regular_amount: Decimal
    current_amount: Decimal

    @property
    def has_discount(self) -> bool:
        return self.current_amount < self.regular_amount


@dataclass
class DisplaySchedule:
    """Tier x cutoff-date price matrix, ready for rendering."""
    cutoff_dates: list[date]
    rows: list[ScheduleRow]
    currency: str
    as_of: date

    @property
    def columns(self) -> list[str]:
        return [d.isoformat() for d in self.cutoff_dates] + [REGULAR_PRICE_COLUMN]

    def cell(self, label: str, column: str) -> Decimal:
        """Look up a cell by tier label and column header."""
        index = self.columns.index(column)
        for row in self.rows:
            if row.label == label:
                return row.cells[index]
        raise KeyError(label)

    def to_frame(self) -> pd.DataFrame:
        """Schedule as a DataFrame indexed by tier label."""
        df = pd.DataFrame(
            [[float(c) for c in row.cells] for row in self.rows],
            index=[row.label for row in self.rows],
            columns=self.columns,
        )
        df.index.name = "Attendee Category"
        return df

    def to_dict(self) -> dict:
        return {
            "currency": self.currency,
            "as_of": self.as_of.isoformat(),
            "columns": self.columns,
            "rows": [
                {
                    "tier_id": row.tier_id,
                    "label": row.label,
                    "cells": [str(c) for c in row.cells],
                    "regular_amount": str(row.regular_amount),
                    "current_amount": str(row.current_amount),
                    "has_discount": row.has_discount,
                }
                for row in self.rows
            ],
        }
