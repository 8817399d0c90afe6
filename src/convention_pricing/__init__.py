"""
Convention Pricing Package

Price tiers and early-bird discounts for Convention Crasher conventions.
Validates pricing configurations and resolves Tier → Discount → Regular price
for any date, plus the tier x cutoff-date schedule shown on detail pages.
"""

__version__ = "1.0.0"
