"""
Currency lookup table and price formatting.

Currencies are read from a CSV (code, name, symbol, decimals). Formatting
is display-only: amounts stay Decimal everywhere else.
"""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

import pandas as pd

from .errors import UnknownCurrencyError


@dataclass(frozen=True)
class Currency:
    """A currency a convention can be priced in."""
    code: str
    name: str
    symbol: str
    decimals: int = 2


class CurrencyCatalog:
    """In-memory currency table keyed by ISO code."""

    def __init__(self, currencies: list[Currency]):
        self._by_code = {c.code: c for c in currencies}

    @classmethod
    def load(cls, path: Path) -> 'CurrencyCatalog':
        """Load currencies from CSV."""
        if not path.exists():
            raise FileNotFoundError(f"Currency table not found at {path}.")

        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        for col in df.columns:
            df[col] = df[col].str.strip()

        currencies = [
            Currency(
                code=row['code'].upper(),
                name=row['name'],
                symbol=row['symbol'] or row['code'].upper(),
                decimals=int(row['decimals'] or 2),
            )
            for _, row in df.iterrows()
            if row['code']
        ]
        return cls(currencies)

    def __contains__(self, code: str) -> bool:
        return str(code).upper() in self._by_code

    def __len__(self) -> int:
        return len(self._by_code)

    def all(self) -> list[Currency]:
        """All currencies ordered by name."""
        return sorted(self._by_code.values(), key=lambda c: c.name)

    def get(self, code: str) -> Currency:
        """
        Get a currency by code (case-insensitive).

        Raises:
            UnknownCurrencyError: If the code is not in the table.
        """
        currency = self._by_code.get(str(code).strip().upper())
        if currency is None:
            raise UnknownCurrencyError(code)
        return currency

    def format_price(self, amount: Decimal, code: str) -> str:
        """
        Format an amount for display.

        Zero is shown as FREE; otherwise the currency symbol followed by the
        amount rounded to the currency's decimals, with thousands separators.
        """
        amount = Decimal(amount)
        if amount == 0:
            return "FREE"
        currency = self.get(code)
        quantum = Decimal(1).scaleb(-currency.decimals)
        rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)
        return f"{currency.symbol}{rounded:,.{currency.decimals}f}"


def format_cutoff_date(value: date) -> str:
    """Column header for a cutoff date, e.g. ``Jan 01``."""
    return value.strftime("%b %d")

