"""Error codes and domain errors for the pricing engine."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Pricing error codes."""

    EMPTY_TIER_LIST = "EMPTY_TIER_LIST"
    INVALID_TIER = "INVALID_TIER"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    DANGLING_DISCOUNT_REFERENCE = "DANGLING_DISCOUNT_REFERENCE"
    AMBIGUOUS_DISCOUNT = "AMBIGUOUS_DISCOUNT"
    DISCOUNT_NOT_FOUND = "DISCOUNT_NOT_FOUND"
    DISCOUNT_NOT_OWNED = "DISCOUNT_NOT_OWNED"
    TIER_NOT_FOUND = "TIER_NOT_FOUND"
    UNKNOWN_CURRENCY = "UNKNOWN_CURRENCY"


@dataclass(frozen=True)
class PricingError:
    """A single validation failure, addressed to an item and field."""

    code: ErrorCode
    message: str
    index: Optional[int] = None
    field: Optional[str] = None
    tier_id: Optional[str] = None
    cutoff_date: Optional[date] = None

    @property
    def path(self) -> Optional[str]:
        """Flattened field path, e.g. ``tiers.0.amount``."""
        if self.code == ErrorCode.INVALID_TIER:
            return f"tiers.{self.index}.{self.field}"
        if self.code in (ErrorCode.INVALID_DISCOUNT, ErrorCode.DANGLING_DISCOUNT_REFERENCE):
            return f"discounts.{self.index}.{self.field}"
        return self.field

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "path": self.path,
            "index": self.index,
            "field": self.field,
            "tier_id": self.tier_id,
            "cutoff_date": self.cutoff_date.isoformat() if self.cutoff_date else None,
        }


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class PricingValidationError(DomainError):
    """Raised by the store when a configuration fails validation."""

    def __init__(self, errors: list[PricingError]) -> None:
        code = errors[0].code if errors else ErrorCode.INVALID_TIER
        super().__init__(
            code=code,
            message=f"Pricing configuration is invalid ({len(errors)} error(s))",
        )
        self.errors = list(errors)


class AmbiguousDiscountError(DomainError):
    """Raised when two discounts share a tier and cutoff date."""

    def __init__(self, tier_id: str, cutoff_date: date) -> None:
        super().__init__(
            code=ErrorCode.AMBIGUOUS_DISCOUNT,
            message=f"Multiple discounts for tier on {cutoff_date.isoformat()}",
        )
        self.tier_id = tier_id
        self.cutoff_date = cutoff_date


class DiscountNotFoundError(DomainError):
    """Raised when a discount id does not exist."""

    def __init__(self, discount_id: str) -> None:
        super().__init__(
            code=ErrorCode.DISCOUNT_NOT_FOUND,
            message="Price discount not found",
        )
        self.discount_id = discount_id


class DiscountOwnershipError(DomainError):
    """Raised when a discount exists but belongs to another convention."""

    def __init__(self, discount_id: str) -> None:
        super().__init__(
            code=ErrorCode.DISCOUNT_NOT_OWNED,
            message="Price discount not found for this convention",
        )
        self.discount_id = discount_id


class TierNotFoundError(DomainError):
    """Raised when a price tier id does not exist for the convention."""

    def __init__(self, tier_id: str) -> None:
        super().__init__(
            code=ErrorCode.TIER_NOT_FOUND,
            message="Price tier not found",
        )
        self.tier_id = tier_id


class UnknownCurrencyError(DomainError):
    """Raised for a currency code missing from the lookup table."""

    def __init__(self, code: str) -> None:
        super().__init__(
            code=ErrorCode.UNKNOWN_CURRENCY,
            message=f"Unknown currency '{code}'",
        )
        self.currency_code = code
