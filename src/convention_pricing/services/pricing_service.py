"""
Pricing Service - persistence for convention price tiers and discounts.

Each entity lives in its own CSV under the data directory:
- price_tiers.csv
- price_discounts.csv
- convention_settings.csv (currency per convention)

Saves validate first, assign ids to new rows, then replace the
convention's rows in one step. Files are written to a temporary path and
renamed into place, so a failed save leaves the previous state intact.
"""
import csv
import os
import shutil
import threading
import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
import structlog

from ..engine.currency import CurrencyCatalog
from ..engine.editing import remove_tier, reorder_tiers
from ..engine.errors import (
    DiscountNotFoundError,
    DiscountOwnershipError,
    ErrorCode,
    PricingError,
    PricingValidationError,
    TierNotFoundError,
)
from ..engine.models import PriceDiscount, PriceTier, PricingConfiguration
from ..engine.validation import (
    check_discount_references,
    parse_cutoff_date,
    validate_configuration,
    validate_discounts,
)


logger = structlog.get_logger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def tier_to_csv_row(tier: PriceTier) -> dict:
    """Convert to CSV row format."""
    return {
        'id': tier.id or '',
        'convention_id': tier.convention_id or '',
        'label': tier.label,
        'amount': str(tier.amount),
        'order': str(tier.order),
    }


def tier_from_csv_row(row: dict) -> PriceTier:
    """Create PriceTier from CSV row."""
    return PriceTier(
        id=row.get('id') or None,
        convention_id=row.get('convention_id') or None,
        label=row.get('label', ''),
        amount=Decimal(row.get('amount') or '0'),
        order=int(row.get('order') or 0),
    )


def discount_to_csv_row(discount: PriceDiscount) -> dict:
    """Convert to CSV row format."""
    return {
        'id': discount.id or '',
        'convention_id': discount.convention_id or '',
        'price_tier_id': discount.price_tier_id,
        'cutoff_date': discount.cutoff_date.isoformat(),
        'discounted_amount': str(discount.discounted_amount),
    }


def discount_from_csv_row(row: dict) -> PriceDiscount:
    """Create PriceDiscount from CSV row."""
    return PriceDiscount(
        id=row.get('id') or None,
        convention_id=row.get('convention_id') or None,
        price_tier_id=row.get('price_tier_id', ''),
        cutoff_date=date.fromisoformat(row['cutoff_date']),
        discounted_amount=Decimal(row.get('discounted_amount') or '0'),
    )


class PricingService:
    """Service for loading and saving convention pricing."""

    TIER_COLUMNS = ['id', 'convention_id', 'label', 'amount', 'order']
    DISCOUNT_COLUMNS = ['id', 'convention_id', 'price_tier_id', 'cutoff_date', 'discounted_amount']
    SETTINGS_COLUMNS = ['convention_id', 'currency']

    def __init__(self, data_dir: Path, currencies: CurrencyCatalog, default_currency: str = 'USD'):
        self.data_dir = Path(data_dir)
        self.currencies = currencies
        self.default_currency = default_currency
        self.tiers_path = self.data_dir / 'price_tiers.csv'
        self.discounts_path = self.data_dir / 'price_discounts.csv'
        self.settings_path = self.data_dir / 'convention_settings.csv'
        self._lock = threading.RLock()
        self.data_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Reading

    def _read_rows(self, path: Path, columns: list[str]) -> list[dict]:
        """Read a table as a list of string dicts (empty if the file is missing)."""
        if not path.exists():
            return []
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        for col in columns:
            if col not in df.columns:
                df[col] = ''
        return df[columns].to_dict(orient='records')

    def _all_tiers(self) -> list[PriceTier]:
        return [tier_from_csv_row(r) for r in self._read_rows(self.tiers_path, self.TIER_COLUMNS)]

    def _all_discounts(self) -> list[PriceDiscount]:
        return [
            discount_from_csv_row(r)
            for r in self._read_rows(self.discounts_path, self.DISCOUNT_COLUMNS)
        ]

    def list_tiers(self, convention_id: str) -> list[PriceTier]:
        """Tiers of a convention by order (file order breaks ties)."""
        tiers = [t for t in self._all_tiers() if t.convention_id == convention_id]
        return sorted(tiers, key=lambda t: t.order)

    def list_discounts(self, convention_id: str) -> list[PriceDiscount]:
        """Discounts of a convention by cutoff date."""
        discounts = [d for d in self._all_discounts() if d.convention_id == convention_id]
        return sorted(discounts, key=lambda d: d.cutoff_date)

    def load_pricing_configuration(self, convention_id: str) -> PricingConfiguration:
        """Load the tiers, discounts and currency of a convention."""
        with self._lock:
            return PricingConfiguration(
                tiers=self.list_tiers(convention_id),
                discounts=self.list_discounts(convention_id),
                currency=self.get_currency(convention_id),
            )

    def get_currency(self, convention_id: str) -> str:
        """Currency code of a convention, or the default."""
        for row in self._read_rows(self.settings_path, self.SETTINGS_COLUMNS):
            if row['convention_id'] == convention_id and row['currency']:
                return row['currency']
        return self.default_currency

    # ------------------------------------------------------------------
    # Writing

    def _stage_rows(self, path: Path, columns: list[str], rows: Iterable[dict]) -> Path:
        """Write rows to a temporary file next to ``path``; returns the temp path."""
        tmp_path = path.with_suffix(path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
        return tmp_path

    def _commit(self, staged: list[tuple[Path, Path]]):
        """
        Rename staged temp files over their targets.

        If a rename fails, targets already replaced are restored from backups
        and the error is re-raised.
        """
        backups: list[tuple[Path, Optional[Path]]] = []
        try:
            for tmp_path, path in staged:
                backup = None
                if path.exists():
                    backup = path.with_suffix(path.suffix + '.bak')
                    shutil.copy2(path, backup)
                backups.append((path, backup))
                os.replace(tmp_path, path)
        except OSError:
            for path, backup in reversed(backups):
                if backup is not None:
                    os.replace(backup, path)
                else:
                    path.unlink(missing_ok=True)
            for tmp_path, _ in staged:
                tmp_path.unlink(missing_ok=True)
            raise
        for _, backup in backups:
            if backup is not None:
                backup.unlink(missing_ok=True)

    def _write_rows(self, path: Path, columns: list[str], rows: Iterable[dict]):
        """Write rows to a temporary file and rename it over ``path``."""
        self._commit([(self._stage_rows(path, columns, rows), path)])

    def _replace_convention(
        self,
        convention_id: str,
        tiers: Optional[list[PriceTier]] = None,
        discounts: Optional[list[PriceDiscount]] = None,
    ):
        """
        Delete-and-recreate a convention's tiers and/or discounts.

        Both files are staged before either is renamed into place, so the
        tiers and discounts on disk always come from the same save.
        """
        staged: list[tuple[Path, Path]] = []
        try:
            if tiers is not None:
                others = [t for t in self._all_tiers() if t.convention_id != convention_id]
                staged.append((
                    self._stage_rows(
                        self.tiers_path,
                        self.TIER_COLUMNS,
                        [tier_to_csv_row(t) for t in others + tiers],
                    ),
                    self.tiers_path,
                ))
            if discounts is not None:
                others = [d for d in self._all_discounts() if d.convention_id != convention_id]
                staged.append((
                    self._stage_rows(
                        self.discounts_path,
                        self.DISCOUNT_COLUMNS,
                        [discount_to_csv_row(d) for d in others + discounts],
                    ),
                    self.discounts_path,
                ))
        except OSError:
            for tmp_path, _ in staged:
                tmp_path.unlink(missing_ok=True)
            raise
        self._commit(staged)

    def _reject(self, convention_id: str, errors: list[PricingError]):
        logger.warning(
            "pricing_save_rejected",
            convention_id=convention_id,
            codes=sorted({e.code.value for e in errors}),
            error_count=len(errors),
        )
        raise PricingValidationError(errors)

    def _check_tier_ownership(self, convention_id: str, tiers: list[PriceTier]):
        foreign = {
            t.id for t in self._all_tiers()
            if t.id and t.convention_id and t.convention_id != convention_id
        }
        errors = []
        seen = set()
        for i, tier in enumerate(tiers):
            if not tier.id:
                continue
            if tier.id in foreign:
                message = "Price tier belongs to another convention"
            elif tier.id in seen:
                message = "Price tier id appears more than once"
            else:
                seen.add(tier.id)
                continue
            errors.append(PricingError(ErrorCode.INVALID_TIER, message, index=i, field='id', tier_id=tier.id))
        if errors:
            self._reject(convention_id, errors)

    def _check_discount_ownership(self, convention_id: str, discounts: list[PriceDiscount]):
        foreign = {
            d.id for d in self._all_discounts()
            if d.id and d.convention_id and d.convention_id != convention_id
        }
        errors = []
        seen = set()
        for i, discount in enumerate(discounts):
            if not discount.id:
                continue
            if discount.id in foreign:
                message = "Price discount belongs to another convention"
            elif discount.id in seen:
                message = "Price discount id appears more than once"
            else:
                seen.add(discount.id)
                continue
            errors.append(PricingError(
                ErrorCode.INVALID_DISCOUNT,
                message,
                index=i,
                field='id',
                tier_id=discount.price_tier_id,
                cutoff_date=discount.cutoff_date,
            ))
        if errors:
            self._reject(convention_id, errors)

    def _assign_tier_ids(self, convention_id: str, tiers: list[PriceTier]) -> dict[str, str]:
        """Give unsaved tiers ids; returns {old reference key: id}."""
        renamed = {}
        for tier in tiers:
            if not tier.id:
                old_key = tier.key
                tier.id = new_id()
                renamed.setdefault(old_key, tier.id)
            tier.convention_id = convention_id
        return renamed

    def _assign_discount_ids(
        self, convention_id: str, discounts: list[PriceDiscount], renamed: dict[str, str]
    ):
        for discount in discounts:
            discount.price_tier_id = renamed.get(discount.price_tier_id, discount.price_tier_id)
            if not discount.id:
                discount.id = new_id()
            discount.convention_id = convention_id

    def save_pricing_configuration(
        self, convention_id: str, tiers: Iterable, discounts: Iterable
    ) -> PricingConfiguration:
        """
        Validate and persist a convention's full pricing configuration.

        New tiers receive ids and discounts that referenced them by label are
        pointed at those ids. Existing tiers and discounts of the convention
        not present in the input are deleted.

        Raises:
            PricingValidationError: If validation or the post-save reference
                check fails. Nothing is written in that case.
        """
        with self._lock:
            currency = self.get_currency(convention_id)
            result = validate_configuration(tiers, discounts, currency=currency)
            if not result.valid:
                self._reject(convention_id, result.errors)

            config = result.configuration
            self._check_tier_ownership(convention_id, config.tiers)
            self._check_discount_ownership(convention_id, config.discounts)
            renamed = self._assign_tier_ids(convention_id, config.tiers)
            self._assign_discount_ids(convention_id, config.discounts, renamed)

            errors = check_discount_references(config.tiers, config.discounts)
            if errors:
                self._reject(convention_id, errors)

            self._replace_convention(convention_id, tiers=config.tiers, discounts=config.discounts)
            logger.info(
                "pricing_saved",
                convention_id=convention_id,
                tiers=len(config.tiers),
                discounts=len(config.discounts),
                new_tiers=len(renamed),
            )
            return config

    def save_tiers(self, convention_id: str, tiers: Iterable) -> list[PriceTier]:
        """
        Replace a convention's tiers.

        Discounts of tiers that are no longer present are deleted with them.

        Raises:
            PricingValidationError: If the tier list is empty or invalid.
        """
        with self._lock:
            currency = self.get_currency(convention_id)
            result = validate_configuration(tiers, [], currency=currency)
            if not result.valid:
                self._reject(convention_id, result.errors)

            saved = result.configuration.tiers
            self._check_tier_ownership(convention_id, saved)
            self._assign_tier_ids(convention_id, saved)

            kept_ids = {t.id for t in saved}
            existing = self.list_discounts(convention_id)
            kept = [d for d in existing if d.price_tier_id in kept_ids]

            self._replace_convention(convention_id, tiers=saved, discounts=kept)
            logger.info(
                "price_tiers_saved",
                convention_id=convention_id,
                tiers=len(saved),
                cascaded_discounts=len(existing) - len(kept),
            )
            return saved

    def save_discounts(self, convention_id: str, discounts: Iterable) -> list[PriceDiscount]:
        """
        Replace a convention's discounts (delete-and-recreate).

        Every discount must reference a saved tier of this convention;
        otherwise nothing is written.

        Raises:
            PricingValidationError: If any discount is invalid or dangling.
        """
        with self._lock:
            tiers = self.list_tiers(convention_id)
            result = validate_discounts(discounts, tiers, currency=self.get_currency(convention_id))
            if not result.valid:
                self._reject(convention_id, result.errors)

            saved = result.configuration.discounts
            self._check_discount_ownership(convention_id, saved)
            self._assign_discount_ids(convention_id, saved, {})
            self._replace_convention(convention_id, discounts=saved)
            logger.info("price_discounts_saved", convention_id=convention_id, discounts=len(saved))
            return saved

    def move_tier(self, convention_id: str, source: int, destination: int) -> list[PriceTier]:
        """
        Move a tier to a new position and renumber the convention's tiers.

        Raises:
            IndexError: If ``source`` is not a tier position.
        """
        with self._lock:
            moved = reorder_tiers(self.list_tiers(convention_id), source, destination)
            self._replace_convention(convention_id, tiers=moved)
            logger.info(
                "price_tier_moved",
                convention_id=convention_id,
                source=source,
                destination=destination,
            )
            return moved

    def delete_tier(self, convention_id: str, tier_id: str) -> int:
        """
        Delete one tier and its discounts. Returns the number of discounts removed.

        Raises:
            TierNotFoundError: If the convention has no such tier.
        """
        with self._lock:
            tiers = self.list_tiers(convention_id)
            index = next((i for i, t in enumerate(tiers) if t.id == tier_id), None)
            if index is None:
                raise TierNotFoundError(tier_id)

            existing = self.list_discounts(convention_id)
            remaining, kept = remove_tier(tiers, existing, index)
            self._replace_convention(convention_id, tiers=remaining, discounts=kept)
            removed = len(existing) - len(kept)
            logger.info(
                "price_tier_deleted",
                convention_id=convention_id,
                tier_id=tier_id,
                cascaded_discounts=removed,
            )
            return removed

    def delete_discount(self, convention_id: str, discount_id: str):
        """
        Delete a single discount of a convention.

        Raises:
            DiscountNotFoundError: If no discount has this id.
            DiscountOwnershipError: If the discount belongs to another convention.
        """
        with self._lock:
            discounts = self._all_discounts()
            match = next((d for d in discounts if d.id == discount_id), None)
            if match is None:
                raise DiscountNotFoundError(discount_id)
            if match.convention_id != convention_id:
                raise DiscountOwnershipError(discount_id)

            self._write_rows(
                self.discounts_path,
                self.DISCOUNT_COLUMNS,
                [discount_to_csv_row(d) for d in discounts if d.id != discount_id],
            )
            logger.info("price_discount_deleted", convention_id=convention_id, discount_id=discount_id)

    def delete_discounts_by_date(self, convention_id: str, cutoff_date) -> int:
        """Delete every discount of a convention on a cutoff date; returns the count."""
        cutoff = parse_cutoff_date(cutoff_date)
        with self._lock:
            existing = self.list_discounts(convention_id)
            kept = [d for d in existing if d.cutoff_date != cutoff]
            count = len(existing) - len(kept)
            if count:
                self._replace_convention(convention_id, discounts=kept)
            logger.info(
                "price_discounts_deleted_by_date",
                convention_id=convention_id,
                cutoff_date=cutoff.isoformat(),
                count=count,
            )
            return count

    def set_currency(self, convention_id: str, code: str) -> str:
        """
        Set the currency a convention is priced in.

        Raises:
            UnknownCurrencyError: If the code is not in the currency table.
        """
        currency = self.currencies.get(code)
        with self._lock:
            rows = [
                r for r in self._read_rows(self.settings_path, self.SETTINGS_COLUMNS)
                if r['convention_id'] != convention_id
            ]
            rows.append({'convention_id': convention_id, 'currency': currency.code})
            self._write_rows(self.settings_path, self.SETTINGS_COLUMNS, rows)
        logger.info("convention_currency_set", convention_id=convention_id, currency=currency.code)
        return currency.code

    def get_stats(self) -> dict:
        """Get statistics about stored pricing."""
        tiers = self._all_tiers()
        discounts = self._all_discounts()
        today = date.today()
        return {
            'conventions': len({t.convention_id for t in tiers}),
            'tiers': len(tiers),
            'discounts': len(discounts),
            'active_discounts': sum(1 for d in discounts if d.cutoff_date > today),
        }
