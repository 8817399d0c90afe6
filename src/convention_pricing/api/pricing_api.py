"""
Pricing API - FastAPI router for convention pricing.
"""
import re
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..engine import PricingEngine
from ..engine.currency import format_cutoff_date
from ..engine.editing import group_discounts_by_date
from ..engine.errors import (
    AmbiguousDiscountError,
    DiscountNotFoundError,
    DiscountOwnershipError,
    PricingValidationError,
    TierNotFoundError,
    UnknownCurrencyError,
)
from ..engine.models import REGULAR_PRICE_COLUMN
from ..services.pricing_service import PricingService
from .state import get_engine, get_pricing_service

router = APIRouter(prefix="/api", tags=["pricing"])

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# Pydantic models for API
class ApiModel(BaseModel):
    """Accepts both snake_case and the editor's camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TierIn(ApiModel):
    """A price tier as submitted by the pricing tab. Field values are checked by validation."""
    id: Optional[str] = None
    label: Any = None
    amount: Any = None
    order: Any = None


class DiscountIn(ApiModel):
    """A price discount as submitted by the pricing tab."""
    id: Optional[str] = None
    cutoff_date: Any = None
    price_tier_id: Any = None
    discounted_amount: Any = None


class PricingPayload(ApiModel):
    """Request model for a full pricing configuration."""
    tiers: list[TierIn] = Field(default_factory=list, alias="priceTiers")
    discounts: list[DiscountIn] = Field(default_factory=list, alias="priceDiscounts")
    currency: Optional[str] = None


class TiersPayload(ApiModel):
    """Request model for saving tiers only."""
    tiers: list[TierIn] = Field(default_factory=list, alias="priceTiers")


class DiscountsPayload(ApiModel):
    """Request model for saving discounts only."""
    discounts: list[DiscountIn] = Field(default_factory=list, alias="priceDiscounts")


class CurrencyPayload(ApiModel):
    currency: str


class MoveTierPayload(ApiModel):
    """Drag-and-drop move of one tier in the pricing tab."""
    source: int
    destination: int


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[dict]
    field_errors: dict[str, list[str]]
    warnings: list[str]
    configuration: Optional[dict] = None


def _items(models: list[ApiModel]) -> list[dict]:
    return [m.model_dump(exclude_none=True) for m in models]


def _bad_request(exc: PricingValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "message": exc.message,
            "errors": [e.to_dict() for e in exc.errors],
        },
    )


# Endpoints

@router.post("/pricing/validate", response_model=ValidationResponse)
async def validate_pricing(payload: PricingPayload, engine: PricingEngine = Depends(get_engine)):
    """Validate a pricing configuration without saving."""
    result = engine.validate(_items(payload.tiers), _items(payload.discounts), payload.currency)
    return ValidationResponse(
        valid=result.valid,
        errors=[e.to_dict() for e in result.errors],
        field_errors=result.field_errors(),
        warnings=result.warnings,
        configuration=result.configuration.to_dict() if result.configuration else None,
    )


@router.get("/conventions/{convention_id}/pricing")
async def get_pricing(convention_id: str, service: PricingService = Depends(get_pricing_service)):
    """Get the stored pricing configuration of a convention."""
    return service.load_pricing_configuration(convention_id).to_dict()


@router.put("/conventions/{convention_id}/pricing")
async def save_pricing(
    convention_id: str,
    payload: PricingPayload,
    service: PricingService = Depends(get_pricing_service),
):
    """Validate and replace a convention's tiers and discounts."""
    try:
        if payload.currency:
            service.currencies.get(payload.currency)
        config = service.save_pricing_configuration(
            convention_id, _items(payload.tiers), _items(payload.discounts)
        )
        if payload.currency:
            config.currency = service.set_currency(convention_id, payload.currency)
    except PricingValidationError as e:
        raise _bad_request(e)
    except UnknownCurrencyError as e:
        raise HTTPException(status_code=400, detail={"message": e.message})
    return config.to_dict()


@router.put("/conventions/{convention_id}/pricing/tiers")
async def save_tiers(
    convention_id: str,
    payload: TiersPayload,
    service: PricingService = Depends(get_pricing_service),
):
    """Replace a convention's tiers; discounts of removed tiers go with them."""
    try:
        tiers = service.save_tiers(convention_id, _items(payload.tiers))
    except PricingValidationError as e:
        raise _bad_request(e)
    return [t.to_dict() for t in tiers]


@router.put("/conventions/{convention_id}/pricing/discounts")
async def save_discounts(
    convention_id: str,
    payload: DiscountsPayload,
    service: PricingService = Depends(get_pricing_service),
):
    """Replace a convention's discounts."""
    try:
        discounts = service.save_discounts(convention_id, _items(payload.discounts))
    except PricingValidationError as e:
        raise _bad_request(e)
    return [d.to_dict() for d in discounts]


@router.put("/conventions/{convention_id}/pricing/currency")
async def set_currency(
    convention_id: str,
    payload: CurrencyPayload,
    service: PricingService = Depends(get_pricing_service),
):
    """Set the currency a convention is priced in."""
    try:
        code = service.set_currency(convention_id, payload.currency)
    except UnknownCurrencyError as e:
        raise HTTPException(status_code=400, detail={"message": e.message})
    return {"convention_id": convention_id, "currency": code}


@router.post("/conventions/{convention_id}/pricing/tiers/move")
async def move_tier(
    convention_id: str,
    payload: MoveTierPayload,
    service: PricingService = Depends(get_pricing_service),
):
    """Move a tier to a new position; orders are renumbered from zero."""
    try:
        tiers = service.move_tier(convention_id, payload.source, payload.destination)
    except IndexError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    return [t.to_dict() for t in tiers]


@router.get("/conventions/{convention_id}/pricing/discounts-by-date")
async def get_discounts_by_date(
    convention_id: str,
    service: PricingService = Depends(get_pricing_service),
):
    """Discounts grouped by cutoff date, earliest first, as the pricing tab lists them."""
    groups = group_discounts_by_date(service.list_discounts(convention_id))
    return [
        {
            "cutoff_date": cutoff.isoformat(),
            "header": format_cutoff_date(cutoff),
            "discounts": [d.to_dict() for d in discounts],
        }
        for cutoff, discounts in groups.items()
    ]


@router.delete("/conventions/{convention_id}/pricing/tiers/{tier_id}")
async def delete_tier(
    convention_id: str,
    tier_id: str,
    service: PricingService = Depends(get_pricing_service),
):
    """Delete a tier and its discounts."""
    try:
        removed = service.delete_tier(convention_id, tier_id)
    except TierNotFoundError as e:
        raise HTTPException(status_code=404, detail={"message": e.message})
    return {"message": "Price tier deleted successfully.", "discounts_removed": removed}


@router.delete("/conventions/{convention_id}/pricing/discounts/{discount_id}")
async def delete_discount(
    convention_id: str,
    discount_id: str,
    service: PricingService = Depends(get_pricing_service),
):
    """Delete a single discount."""
    try:
        service.delete_discount(convention_id, discount_id)
    except DiscountNotFoundError as e:
        raise HTTPException(status_code=404, detail={"message": e.message})
    except DiscountOwnershipError as e:
        raise HTTPException(status_code=403, detail={"message": e.message})
    return {"message": "Price discount deleted successfully."}


@router.delete("/conventions/{convention_id}/pricing/discounts-by-date")
async def delete_discounts_by_date(
    convention_id: str,
    cutoff_date: Optional[str] = Query(None, alias="cutoffDate"),
    service: PricingService = Depends(get_pricing_service),
):
    """Delete every discount of a convention on one cutoff date."""
    if not cutoff_date:
        raise HTTPException(status_code=400, detail={"message": "Cutoff date is required as a query parameter."})
    if not DATE_PATTERN.match(cutoff_date):
        raise HTTPException(status_code=400, detail={"message": "Date must be in YYYY-MM-DD format"})
    try:
        count = service.delete_discounts_by_date(convention_id, cutoff_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})

    if count == 0:
        message = "No price discounts found for the specified date to delete, or they were already deleted."
    else:
        message = f"Successfully deleted {count} price discount(s) for date {cutoff_date}."
    return {"message": message, "count": count}


@router.get("/conventions/{convention_id}/pricing/schedule")
async def get_schedule(
    convention_id: str,
    as_of: Optional[date] = None,
    engine: PricingEngine = Depends(get_engine),
    service: PricingService = Depends(get_pricing_service),
):
    """Tier x cutoff-date price table for the convention detail page."""
    config = service.load_pricing_configuration(convention_id)
    try:
        schedule = engine.display_schedule(config, as_of)
    except AmbiguousDiscountError as e:
        raise HTTPException(status_code=400, detail={
            "message": e.message,
            "tier_id": e.tier_id,
            "cutoff_date": e.cutoff_date.isoformat(),
        })

    data = schedule.to_dict()
    data["headers"] = [format_cutoff_date(d) for d in schedule.cutoff_dates] + [REGULAR_PRICE_COLUMN]
    data["display"] = [
        {
            "label": row.label,
            "cells": [engine.format_price(c, schedule.currency) for c in row.cells],
            "current": engine.format_price(row.current_amount, schedule.currency),
        }
        for row in schedule.rows
    ]
    return data


@router.get("/conventions/{convention_id}/pricing/tiers/{tier_id}/price")
async def get_effective_price(
    convention_id: str,
    tier_id: str,
    as_of: Optional[date] = None,
    engine: PricingEngine = Depends(get_engine),
    service: PricingService = Depends(get_pricing_service),
):
    """Effective price of one tier on a date (default: today)."""
    config = service.load_pricing_configuration(convention_id)
    price = engine.effective_price(config, tier_id, as_of)
    if price is None:
        raise HTTPException(status_code=404, detail={"message": "Price tier not found"})
    return {
        "tier_id": price.tier_id,
        "amount": str(price.amount),
        "currency": price.currency,
        "formatted": engine.format_price(price.amount, price.currency),
        "source": price.source,
        "as_of": price.as_of.isoformat(),
        "cutoff_date": price.cutoff_date.isoformat() if price.cutoff_date else None,
        "trace": price.get_trace_text(),
    }


@router.get("/currencies")
async def list_currencies(engine: PricingEngine = Depends(get_engine)):
    """List the currencies a convention can be priced in."""
    return [
        {"code": c.code, "name": c.name, "symbol": c.symbol, "decimals": c.decimals}
        for c in engine.currencies.all()
    ]
