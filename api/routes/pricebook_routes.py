"""Pricebook endpoints: rate lookup, rate versions and price calculation."""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query
from starlette import status

from core.database import DbSession, DbSessionReadOnly
from schemas import (
    PricedLineResponse,
    PricingLineRequest,
    PricingRequest,
    PricingResponse,
    RateResponse,
    RateVersionCreateRequest,
    RateVersionResponse,
)
from services.catalog_service import create_rate_version, list_rate_versions
from services.errors import InputValidationError, NotFoundError
from services.pricing_service import PricingLine, PricingResult, calculate_pricing
from services.rates_service import resolve_rate

router = APIRouter(prefix="/api/pricebook", tags=["pricebook"])


def to_pricing_lines(request_items: list[PricingLineRequest]) -> list[PricingLine]:
    return [
        PricingLine(item_id=line.item_id, quantity=line.quantity, tier=line.tier)
        for line in request_items
    ]


def to_priced_lines(result: PricingResult) -> list[PricedLineResponse]:
    return [PricedLineResponse.model_validate(line) for line in result.breakdown]


@router.get(
    "/items/{item_id}/rate",
    response_model=RateResponse,
    responses={404: {"description": "Item not found"}},
)
async def get_item_rate(
    item_id: int,
    db: DbSessionReadOnly,
    as_of: datetime | None = Query(default=None),
) -> RateResponse:
    """Effective labour rate, parts cost and tier of an item.

    ``as_of`` defaults to now. Falls back to the item's base values when no
    rate version is effective yet.
    """
    try:
        rate = await resolve_rate(db, item_id, as_of)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RateResponse.model_validate(rate)


@router.get(
    "/items/{item_id}/versions",
    response_model=list[RateVersionResponse],
    responses={404: {"description": "Item not found"}},
)
async def get_item_versions(
    item_id: int, db: DbSessionReadOnly
) -> list[RateVersionResponse]:
    """All rate versions of an item, newest first."""
    try:
        versions = await list_rate_versions(db, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [RateVersionResponse.model_validate(v) for v in versions]


@router.post(
    "/items/{item_id}/versions",
    response_model=RateVersionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid tier"},
        404: {"description": "Item not found"},
    },
)
async def add_item_version(
    item_id: int,
    body: RateVersionCreateRequest,
    db: DbSession,
) -> RateVersionResponse:
    """Add a rate version effective from ``effective_at``."""
    try:
        version = await create_rate_version(
            db,
            item_id,
            effective_at=body.effective_at,
            labour_rate=body.labour_rate,
            parts_cost=body.parts_cost,
            price_tier=body.price_tier,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RateVersionResponse.model_validate(version)


@router.post(
    "/calculate",
    response_model=PricingResponse,
    responses={
        400: {"description": "Missing items, item_id or quantity"},
        404: {"description": "Item not found"},
    },
)
async def calculate(body: PricingRequest, db: DbSessionReadOnly) -> PricingResponse:
    """Price a list of items with tier markup at the rates effective ``as_of``.

    All-or-nothing: one unknown item fails the whole request.
    """
    try:
        result = await calculate_pricing(db, to_pricing_lines(body.items), body.as_of)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PricingResponse(
        total_amount=result.total_amount, items=to_priced_lines(result)
    )
