"""
Unit tests for PricingService (CSV-backed pricing store).

Run with: pytest tests/test_pricing_service.py -v
"""
import os
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from convention_pricing.engine.errors import (
    DiscountNotFoundError,
    DiscountOwnershipError,
    ErrorCode,
    PricingValidationError,
    TierNotFoundError,
    UnknownCurrencyError,
)

CONVENTION = "con-1"
OTHER = "con-2"


def new_pricing():
    tiers = [
        {"label": "Adult", "amount": "60", "order": 0},
        {"label": "Youth", "amount": "30", "order": 1},
    ]
    discounts = [
        {"cutoff_date": "2025-01-01", "price_tier_id": "Adult", "discounted_amount": "45"},
        {"cutoff_date": "2025-03-01", "price_tier_id": "Adult", "discounted_amount": "50"},
        {"cutoff_date": "2025-01-01", "price_tier_id": "Youth", "discounted_amount": "20"},
    ]
    return tiers, discounts


@pytest.fixture
def saved(service):
    tiers, discounts = new_pricing()
    return service.save_pricing_configuration(CONVENTION, tiers, discounts)


def test_save_assigns_ids_and_rewrites_references(saved):
    adult, youth = saved.tiers
    assert adult.id and youth.id
    assert adult.convention_id == CONVENTION
    assert {d.price_tier_id for d in saved.discounts} == {adult.id, youth.id}
    assert all(d.id and d.convention_id == CONVENTION for d in saved.discounts)


def test_load_round_trip(service, saved):
    config = service.load_pricing_configuration(CONVENTION)
    assert [t.label for t in config.tiers] == ["Adult", "Youth"]
    assert config.tiers[0].amount == Decimal("60")
    assert [d.cutoff_date for d in config.discounts] == [date(2025, 1, 1), date(2025, 1, 1), date(2025, 3, 1)]
    assert config.currency == "USD"


def test_unknown_convention_is_empty(service):
    config = service.load_pricing_configuration("nobody")
    assert config.tiers == [] and config.discounts == []


def test_invalid_save_writes_nothing(service, saved):
    """A rejected save leaves the previous configuration in place."""
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_pricing_configuration(CONVENTION, [], [])
    assert exc_info.value.errors[0].code == ErrorCode.EMPTY_TIER_LIST

    with pytest.raises(PricingValidationError) as exc_info:
        service.save_pricing_configuration(
            CONVENTION,
            [{"label": "Adult", "amount": "60", "order": 0}],
            [{"cutoff_date": "2025-01-01", "price_tier_id": "Ghost", "discounted_amount": "1"}],
        )
    assert exc_info.value.errors[0].code == ErrorCode.DANGLING_DISCOUNT_REFERENCE

    config = service.load_pricing_configuration(CONVENTION)
    assert len(config.tiers) == 2
    assert len(config.discounts) == 3


def test_resave_keeps_existing_ids(service, saved):
    adult = saved.tiers[0]
    config = service.save_pricing_configuration(
        CONVENTION,
        [{"id": adult.id, "label": "Adult", "amount": "65", "order": 0}],
        [{"cutoff_date": "2025-02-01", "price_tier_id": adult.id, "discounted_amount": "55"}],
    )
    assert config.tiers[0].id == adult.id
    stored = service.load_pricing_configuration(CONVENTION)
    assert [t.amount for t in stored.tiers] == [Decimal("65")]
    assert [d.cutoff_date for d in stored.discounts] == [date(2025, 2, 1)]


def test_conventions_are_isolated(service, saved):
    tiers, discounts = new_pricing()
    service.save_pricing_configuration(OTHER, tiers, discounts)
    service.save_pricing_configuration(OTHER, [{"label": "Day Pass", "amount": "20", "order": 0}], [])

    assert len(service.load_pricing_configuration(CONVENTION).tiers) == 2
    assert [t.label for t in service.load_pricing_configuration(OTHER).tiers] == ["Day Pass"]


def test_foreign_tier_id_rejected(service, saved):
    foreign = saved.tiers[0].id
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_pricing_configuration(
            OTHER, [{"id": foreign, "label": "Adult", "amount": "1", "order": 0}], []
        )
    assert exc_info.value.errors[0].field == "id"


def test_save_tiers_cascades_removed_tier(service, saved):
    adult, youth = saved.tiers
    service.save_tiers(CONVENTION, [adult])
    config = service.load_pricing_configuration(CONVENTION)
    assert [t.id for t in config.tiers] == [adult.id]
    assert all(d.price_tier_id == adult.id for d in config.discounts)
    assert len(config.discounts) == 2


def test_save_discounts_replaces_set(service, saved):
    youth = saved.tiers[1]
    service.save_discounts(CONVENTION, [
        {"cutoffDate": "2025-05-01", "priceTierId": youth.id, "discountedAmount": "25"},
    ])
    config = service.load_pricing_configuration(CONVENTION)
    assert [(d.price_tier_id, d.discounted_amount) for d in config.discounts] == [(youth.id, Decimal("25"))]


def test_save_discounts_rejects_unknown_tier(service, saved):
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_discounts(CONVENTION, [
            {"cutoff_date": "2025-05-01", "price_tier_id": "not-a-tier", "discounted_amount": "25"},
        ])
    assert exc_info.value.errors[0].code == ErrorCode.DANGLING_DISCOUNT_REFERENCE
    assert len(service.list_discounts(CONVENTION)) == 3


def test_save_empty_discounts_clears(service, saved):
    assert service.save_discounts(CONVENTION, []) == []
    assert service.list_discounts(CONVENTION) == []


def test_delete_tier(service, saved):
    adult = saved.tiers[0]
    assert service.delete_tier(CONVENTION, adult.id) == 2
    assert [t.label for t in service.list_tiers(CONVENTION)] == ["Youth"]
    assert service.list_tiers(CONVENTION)[0].order == 0
    with pytest.raises(TierNotFoundError):
        service.delete_tier(CONVENTION, adult.id)


def test_delete_discount(service, saved):
    discount = saved.discounts[0]
    service.delete_discount(CONVENTION, discount.id)
    assert discount.id not in {d.id for d in service.list_discounts(CONVENTION)}
    with pytest.raises(DiscountNotFoundError):
        service.delete_discount(CONVENTION, discount.id)


def test_delete_discount_of_other_convention(service, saved):
    with pytest.raises(DiscountOwnershipError):
        service.delete_discount(OTHER, saved.discounts[0].id)
    assert len(service.list_discounts(CONVENTION)) == 3


def test_delete_discounts_by_date(service, saved):
    assert service.delete_discounts_by_date(CONVENTION, "2025-01-01") == 2
    assert [d.cutoff_date for d in service.list_discounts(CONVENTION)] == [date(2025, 3, 1)]
    assert service.delete_discounts_by_date(CONVENTION, date(2025, 1, 1)) == 0


def test_currency(service, saved):
    assert service.get_currency(CONVENTION) == "USD"
    assert service.set_currency(CONVENTION, "eur") == "EUR"
    assert service.load_pricing_configuration(CONVENTION).currency == "EUR"
    assert service.get_currency(OTHER) == "USD"
    with pytest.raises(UnknownCurrencyError):
        service.set_currency(CONVENTION, "XXX")


def test_stats(service, saved):
    stats = service.get_stats()
    assert stats["conventions"] == 1
    assert stats["tiers"] == 2
    assert stats["discounts"] == 3


def test_failed_rename_restores_previous_files(service, saved, monkeypatch):
    """If the discounts file cannot be replaced, the new tiers are rolled back too."""
    real_replace = os.replace

    def replace(src, dst):
        if Path(dst) == service.discounts_path and str(src).endswith(".tmp"):
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr(os, "replace", replace)
    with pytest.raises(OSError):
        service.save_pricing_configuration(CONVENTION, [{"label": "Kid", "amount": "10", "order": 0}], [])
    monkeypatch.undo()

    config = service.load_pricing_configuration(CONVENTION)
    assert [t.label for t in config.tiers] == ["Adult", "Youth"]
    tier_ids = {t.id for t in config.tiers}
    assert len(config.discounts) == 3
    assert all(d.price_tier_id in tier_ids for d in config.discounts)
    assert list(service.data_dir.glob("*.tmp")) == []
    assert list(service.data_dir.glob("*.bak")) == []


def test_failed_staging_writes_nothing(service, saved, monkeypatch):
    stage_rows = service._stage_rows

    def stage(path, columns, rows):
        if path == service.discounts_path:
            raise OSError("disk full")
        return stage_rows(path, columns, rows)

    monkeypatch.setattr(service, "_stage_rows", stage)
    with pytest.raises(OSError):
        service.save_pricing_configuration(CONVENTION, [{"label": "Kid", "amount": "10", "order": 0}], [])
    monkeypatch.undo()

    assert [t.label for t in service.list_tiers(CONVENTION)] == ["Adult", "Youth"]
    assert list(service.data_dir.glob("*.tmp")) == []


def test_missing_value_lookalikes_round_trip(service):
    """Labels and ids such as "N/A" or "null" are text, not missing values."""
    service.save_pricing_configuration("null", [
        {"label": "N/A", "amount": "5", "order": 0},
        {"label": "None", "amount": "6", "order": 1},
        {"label": "nan", "amount": "7", "order": 2},
    ], [])
    assert [t.label for t in service.list_tiers("null")] == ["N/A", "None", "nan"]
    assert service.set_currency("null", "EUR") == "EUR"
    assert service.load_pricing_configuration("null").currency == "EUR"


def test_foreign_discount_id_rejected(service, saved):
    foreign = saved.discounts[0]
    tiers, _ = new_pricing()
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_pricing_configuration(OTHER, tiers, [
            {"id": foreign.id, "cutoff_date": "2025-01-01", "price_tier_id": "Adult", "discounted_amount": "1"},
        ])
    error = exc_info.value.errors[0]
    assert (error.code, error.path) == (ErrorCode.INVALID_DISCOUNT, "discounts.0.id")
    assert service.list_tiers(OTHER) == []


def test_save_discounts_rejects_foreign_id(service, saved):
    foreign = saved.discounts[0]
    tiers, _ = new_pricing()
    other_adult = service.save_pricing_configuration(OTHER, tiers, []).tiers[0]

    with pytest.raises(PricingValidationError):
        service.save_discounts(OTHER, [
            {"id": foreign.id, "cutoff_date": "2025-01-01", "price_tier_id": other_adult.id, "discounted_amount": "1"},
        ])
    assert service.list_discounts(OTHER) == []
    service.delete_discount(CONVENTION, foreign.id)


def test_duplicate_ids_in_one_save_rejected(service, saved):
    adult = saved.tiers[0]
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_discounts(CONVENTION, [
            {"id": "d-1", "cutoff_date": "2025-01-01", "price_tier_id": adult.id, "discounted_amount": "40"},
            {"id": "d-1", "cutoff_date": "2025-02-01", "price_tier_id": adult.id, "discounted_amount": "45"},
        ])
    assert exc_info.value.errors[0].path == "discounts.1.id"

    with pytest.raises(PricingValidationError) as exc_info:
        service.save_tiers(CONVENTION, [
            {"id": adult.id, "label": "Adult", "amount": "60", "order": 0},
            {"id": adult.id, "label": "Senior", "amount": "50", "order": 1},
        ])
    assert exc_info.value.errors[0].path == "tiers.1.id"
    assert len(service.list_discounts(CONVENTION)) == 3


def test_discount_on_shared_label_rejected(service):
    with pytest.raises(PricingValidationError) as exc_info:
        service.save_pricing_configuration(CONVENTION, [
            {"label": "Adult", "amount": "60", "order": 0},
            {"label": "Adult", "amount": "70", "order": 1},
        ], [
            {"cutoff_date": "2025-01-01", "price_tier_id": "Adult", "discounted_amount": "45"},
        ])
    assert exc_info.value.errors[0].code == ErrorCode.DANGLING_DISCOUNT_REFERENCE
    assert service.list_tiers(CONVENTION) == []


def test_move_tier(service, saved):
    moved = service.move_tier(CONVENTION, 1, 0)
    assert [(t.label, t.order) for t in moved] == [("Youth", 0), ("Adult", 1)]
    assert [t.label for t in service.list_tiers(CONVENTION)] == ["Youth", "Adult"]
    assert len(service.list_discounts(CONVENTION)) == 3
    with pytest.raises(IndexError):
        service.move_tier(CONVENTION, 5, 0)
