"""Pricing calculations for the pricebook.

Two independent entry points:
- calculate_pricing(): time-effective rates with tier markup
- estimate_job(): per-job estimate from base item rates, no markup

Both are all-or-nothing: a missing item fails the whole call and no partial
total is returned. All arithmetic uses Decimal so identical inputs always
produce identical totals.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from models import PriceTier
from repositories.catalog_repository import ItemRepository
from repositories.job_repository import JobRepository
from services.errors import InputValidationError, ItemNotFoundError, JobNotFoundError
from services.rates_service import normalize_as_of, resolve_rate

logger = logging.getLogger(__name__)

MARKUP_FACTORS: dict[str, Decimal] = {
    PriceTier.GOOD.value: Decimal("1.0"),
    PriceTier.BETTER.value: Decimal("1.15"),
    PriceTier.BEST.value: Decimal("1.25"),
}
DEFAULT_TIER = PriceTier.GOOD.value
# Unrecognized tiers price at the base rate
DEFAULT_MARKUP = Decimal("1.0")


@dataclass(frozen=True)
class PricingLine:
    """One requested line: an item, how many, and an optional tier override."""

    item_id: int | None
    quantity: Decimal | int | None
    tier: str | None = None


@dataclass(frozen=True)
class PricedLine:
    item_id: int
    name: str
    quantity: Decimal
    tier: str | None
    markup_factor: Decimal
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PricingResult:
    total_amount: Decimal
    breakdown: list[PricedLine]


@dataclass(frozen=True)
class EstimateResult:
    job_id: int
    total_amount: Decimal
    breakdown: list[PricedLine]


def markup_factor_for(tier: str) -> Decimal:
    return MARKUP_FACTORS.get(tier, DEFAULT_MARKUP)


def _validate_lines(lines: Sequence[PricingLine]) -> None:
    if not lines:
        raise InputValidationError("items array is required")
    for line in lines:
        if line.item_id is None or line.quantity is None:
            raise InputValidationError("Each item must include item_id and quantity")


def _as_decimal(value: Decimal | int) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


async def calculate_pricing(
    db: AsyncSession,
    lines: Sequence[PricingLine],
    as_of: datetime | None = None,
) -> PricingResult:
    """Price a list of lines at the rates effective as of a moment.

    For each line the tier is the line's own tier, else the resolved rate's
    tier, else "good". unit_price = (labour_rate + parts_cost) * markup and
    total_price = unit_price * quantity.

    Raises:
        InputValidationError: If lines is empty or a line lacks item_id/quantity
        ItemNotFoundError: If any item does not exist
    """
    _validate_lines(lines)
    moment = normalize_as_of(as_of)

    breakdown: list[PricedLine] = []
    total = Decimal("0")
    for line in lines:
        rate = await resolve_rate(db, line.item_id, moment)
        tier = line.tier or rate.tier or DEFAULT_TIER
        factor = markup_factor_for(tier)
        quantity = _as_decimal(line.quantity)

        unit_price = (rate.labour_rate + rate.parts_cost) * factor
        line_total = unit_price * quantity
        total += line_total
        breakdown.append(
            PricedLine(
                item_id=rate.item_id,
                name=rate.name,
                quantity=quantity,
                tier=tier,
                markup_factor=factor,
                unit_price=unit_price,
                total_price=line_total,
            )
        )

    logger.info(
        "pricing.calculated",
        extra={
            "line_count": len(breakdown),
            "total_amount": str(total),
            "as_of": moment.isoformat(),
        },
    )
    return PricingResult(total_amount=total, breakdown=breakdown)


async def estimate_job(
    db: AsyncSession,
    job_id: int,
    lines: Sequence[PricingLine],
) -> EstimateResult:
    """Estimate a job from base item rates.

    Uses each item's own labour rate and parts cost with no rate-version
    lookup and no tier markup. Line tiers are ignored.

    Raises:
        InputValidationError: If lines is empty or a line lacks item_id/quantity
        JobNotFoundError: If the job does not exist
        ItemNotFoundError: If any item does not exist
    """
    _validate_lines(lines)

    if not await JobRepository(db).exists(job_id):
        raise JobNotFoundError(job_id)

    items = await ItemRepository(db).get_many([line.item_id for line in lines])

    breakdown: list[PricedLine] = []
    total = Decimal("0")
    for line in lines:
        item = items.get(line.item_id)
        if item is None:
            raise ItemNotFoundError(line.item_id)
        quantity = _as_decimal(line.quantity)

        unit_price = Decimal(item.labour_rate) + Decimal(item.parts_cost)
        line_total = unit_price * quantity
        total += line_total
        breakdown.append(
            PricedLine(
                item_id=item.id,
                name=item.name,
                quantity=quantity,
                tier=None,
                markup_factor=DEFAULT_MARKUP,
                unit_price=unit_price,
                total_price=line_total,
            )
        )

    logger.info(
        "job.estimated",
        extra={
            "job_id": job_id,
            "line_count": len(breakdown),
            "total_amount": str(total),
        },
    )
    return EstimateResult(job_id=job_id, total_amount=total, breakdown=breakdown)
