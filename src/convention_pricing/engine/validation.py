"""
Pricing configuration validation.

Checks a proposed set of tiers and discounts and returns every field-level
problem at once, so an editor can show all of them together. Inputs may be
raw mappings (JSON bodies, CSV rows, form data) or model instances; on
success the result carries the normalized configuration.
"""
from collections import Counter
from dataclasses import dataclass, field, asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from .errors import ErrorCode, PricingError
from .models import PriceDiscount, PriceTier, PricingConfiguration


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    valid: bool
    errors: list[PricingError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    configuration: Optional[PricingConfiguration] = None

    def field_errors(self) -> dict[str, list[str]]:
        """Errors flattened into ``{path: [messages]}``."""
        flat: dict[str, list[str]] = {}
        for error in self.errors:
            flat.setdefault(error.path or "_", []).append(error.message)
        return flat


def _as_mapping(item: Any) -> Mapping:
    if isinstance(item, Mapping):
        return item
    if is_dataclass(item):
        return asdict(item)
    raise TypeError(f"Unsupported pricing item: {type(item).__name__}")


def _get(item: Mapping, *names: str) -> Any:
    """First present value among snake_case / camelCase aliases."""
    for name in names:
        if name in item:
            return item[name]
    return None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(value: Any) -> Decimal:
    """Coerce a number or numeric string to Decimal.

    Raises:
        ValueError: If the value is missing or not a finite number.
    """
    if _blank(value) or isinstance(value, bool):
        raise ValueError("Amount is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError("Amount must be a number") from None
    if not amount.is_finite():
        raise ValueError("Amount must be a number")
    return amount


def parse_cutoff_date(value: Any) -> date:
    """Coerce a date, datetime or ISO string to a calendar date.

    Raises:
        ValueError: If the value is missing or cannot be parsed.
    """
    if _blank(value):
        raise ValueError("Discount date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise ValueError("Invalid discount date") from None
    raise ValueError("Invalid discount date")


def _parse_order(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("Order must be an integer")
    if isinstance(value, int):
        order = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        order = int(value.strip())
    else:
        raise ValueError("Order must be an integer")
    if order < 0:
        raise ValueError("Order must be non-negative")
    return order


def _optional_str(value: Any) -> Optional[str]:
    if _blank(value):
        return None
    return str(value).strip()


def _check_tier(index: int, raw: Any, errors: list[PricingError]) -> Optional[PriceTier]:
    item = _as_mapping(raw)
    before = len(errors)

    def fail(name: str, message: str):
        errors.append(PricingError(ErrorCode.INVALID_TIER, message, index=index, field=name))

    label = _get(item, "label")
    if _blank(label):
        fail("label", "Tier label is required")
    elif not isinstance(label, str):
        fail("label", "Tier label must be text")

    amount = None
    try:
        amount = parse_amount(_get(item, "amount"))
        if amount < 0:
            fail("amount", "Amount must be non-negative")
    except ValueError as e:
        fail("amount", str(e))

    order = None
    try:
        order = _parse_order(_get(item, "order"))
    except ValueError as e:
        fail("order", str(e))

    if len(errors) > before:
        return None
    return PriceTier(
        label=str(label).strip(),
        amount=amount,
        order=order,
        id=_optional_str(_get(item, "id")),
        convention_id=_optional_str(_get(item, "convention_id", "conventionId")),
    )


def _check_discount(index: int, raw: Any, errors: list[PricingError]) -> Optional[PriceDiscount]:
    item = _as_mapping(raw)
    before = len(errors)

    def fail(name: str, message: str):
        errors.append(PricingError(ErrorCode.INVALID_DISCOUNT, message, index=index, field=name))

    cutoff = None
    try:
        cutoff = parse_cutoff_date(_get(item, "cutoff_date", "cutoffDate"))
    except ValueError as e:
        fail("cutoff_date", str(e))

    amount = None
    try:
        amount = parse_amount(_get(item, "discounted_amount", "discountedAmount"))
        if amount < 0:
            fail("discounted_amount", "Discounted amount must be non-negative")
    except ValueError as e:
        fail("discounted_amount", str(e))

    tier_id = _optional_str(_get(item, "price_tier_id", "priceTierId"))
    if tier_id is None:
        fail("price_tier_id", "Price Tier is required")

    if len(errors) > before:
        return None
    return PriceDiscount(
        cutoff_date=cutoff,
        price_tier_id=tier_id,
        discounted_amount=amount,
        id=_optional_str(_get(item, "id")),
        convention_id=_optional_str(_get(item, "convention_id", "conventionId")),
    )


def check_discount_references(
    tiers: Iterable[PriceTier], discounts: Iterable[PriceDiscount]
) -> list[PricingError]:
    """
    Every discount must name exactly one tier of the same configuration.

    A label shared by two unsaved tiers cannot be resolved, so a discount
    naming it is reported like an unknown reference.
    """
    tiers = list(tiers)
    keys = {tier.key for tier in tiers}
    label_counts = Counter(tier.label for tier in tiers if not tier.id)
    shared = {label for label, count in label_counts.items() if count > 1}

    errors = []
    for index, discount in enumerate(discounts):
        if discount.price_tier_id not in keys:
            message = f"Discount references unknown price tier '{discount.price_tier_id}'"
        elif discount.price_tier_id in shared:
            message = f"Discount references price tier '{discount.price_tier_id}', a label shared by several tiers"
        else:
            continue
        errors.append(PricingError(
            ErrorCode.DANGLING_DISCOUNT_REFERENCE,
            message,
            index=index,
            field="price_tier_id",
            tier_id=discount.price_tier_id,
        ))
    return errors


def find_ambiguous_discounts(discounts: Iterable[PriceDiscount]) -> list[PricingError]:
    """Two discounts for one tier on one cutoff date cannot be priced."""
    seen: set[tuple[str, date]] = set()
    reported: set[tuple[str, date]] = set()
    errors = []
    for index, discount in enumerate(discounts):
        pair = (discount.price_tier_id, discount.cutoff_date)
        if pair in seen and pair not in reported:
            reported.add(pair)
            errors.append(PricingError(
                ErrorCode.AMBIGUOUS_DISCOUNT,
                f"Multiple discounts for the same tier on {discount.cutoff_date.isoformat()}",
                index=index,
                field="cutoff_date",
                tier_id=discount.price_tier_id,
                cutoff_date=discount.cutoff_date,
            ))
        seen.add(pair)
    return errors


def _cross_check(
    tiers: list[PriceTier], discounts: list[PriceDiscount], currency: str
) -> ValidationResult:
    errors = check_discount_references(tiers, discounts)
    if errors:
        return ValidationResult(valid=False, errors=errors)

    errors = find_ambiguous_discounts(discounts)
    if errors:
        return ValidationResult(valid=False, errors=errors)

    return ValidationResult(
        valid=True,
        configuration=PricingConfiguration(tiers=tiers, discounts=discounts, currency=currency),
    )


def validate_discounts(
    discounts: Iterable[Any],
    tiers: Iterable[PriceTier],
    currency: str = "USD",
) -> ValidationResult:
    """Validate a discount set against tiers that are already known to be valid."""
    errors: list[PricingError] = []
    clean = [_check_discount(i, d, errors) for i, d in enumerate(discounts)]
    if errors:
        return ValidationResult(valid=False, errors=errors)
    return _cross_check(list(tiers), clean, currency)


def validate_configuration(
    tiers: Iterable[Any],
    discounts: Iterable[Any],
    currency: str = "USD",
) -> ValidationResult:
    """
    Validate a proposed pricing configuration.

    Checks, in order: at least one tier; every tier field; every discount
    field; discount -> tier references; duplicate (tier, cutoff date) pairs.
    Field errors are collected across all items before returning.
    """
    tiers = list(tiers)
    discounts = list(discounts)

    if not tiers:
        return ValidationResult(
            valid=False,
            errors=[PricingError(
                ErrorCode.EMPTY_TIER_LIST,
                "At least one price tier is required",
                field="tiers",
            )],
        )

    errors: list[PricingError] = []
    clean_tiers = [_check_tier(i, t, errors) for i, t in enumerate(tiers)]
    clean_discounts = [_check_discount(i, d, errors) for i, d in enumerate(discounts)]
    if errors:
        return ValidationResult(valid=False, errors=errors)

    result = _cross_check(clean_tiers, clean_discounts, currency)
    if not result.valid:
        return result

    labels = [t.label.casefold() for t in clean_tiers]
    if len(set(labels)) != len(labels):
        result.warnings.append("Two or more price tiers share a label")

    orders = [t.order for t in clean_tiers]
    if len(set(orders)) != len(orders):
        result.warnings.append("Two or more price tiers share an order; insertion order breaks the tie")

    return result
