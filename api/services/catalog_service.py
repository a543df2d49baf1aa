"""Rate version management for pricebook items.

Versions are append-only: adding one supersedes earlier versions from its
effective_at onward, nothing is ever edited in place.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from models import PriceTier, RateVersion
from repositories.catalog_repository import ItemRepository, RateVersionRepository
from services.errors import InputValidationError, ItemNotFoundError
from services.rates_service import normalize_as_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateVersionData:
    id: int
    item_id: int
    effective_at: datetime
    labour_rate: Decimal
    parts_cost: Decimal
    price_tier: str | None
    created_at: datetime | None


def _to_version_data(version: RateVersion) -> RateVersionData:
    tier = version.price_tier
    return RateVersionData(
        id=version.id,
        item_id=version.item_id,
        effective_at=version.effective_at,
        labour_rate=Decimal(version.labour_rate),
        parts_cost=Decimal(version.parts_cost),
        price_tier=tier.value if isinstance(tier, PriceTier) else tier,
        created_at=version.created_at,
    )


def _parse_tier(price_tier: str | None) -> PriceTier | None:
    if price_tier is None:
        return None
    try:
        return PriceTier(price_tier)
    except ValueError:
        allowed = ", ".join(t.value for t in PriceTier)
        raise InputValidationError(
            f"Invalid price_tier '{price_tier}'. Must be one of: {allowed}"
        ) from None


async def list_rate_versions(
    db: AsyncSession, item_id: int
) -> Sequence[RateVersionData]:
    """List an item's rate versions, newest effective_at first.

    Raises:
        ItemNotFoundError: If the item does not exist
    """
    if await ItemRepository(db).get_by_id(item_id) is None:
        raise ItemNotFoundError(item_id)
    versions = await RateVersionRepository(db).list_for_item(item_id)
    return [_to_version_data(v) for v in versions]


async def create_rate_version(
    db: AsyncSession,
    item_id: int,
    *,
    effective_at: datetime | None,
    labour_rate: Decimal | None,
    parts_cost: Decimal | None,
    price_tier: str | None = None,
) -> RateVersionData:
    """Append a rate version to an item.

    Does not commit; the request-scoped session commits on success.

    Raises:
        InputValidationError: If a required value is missing, negative, or
            the tier is not good/better/best
        ItemNotFoundError: If the item does not exist
    """
    if effective_at is None or labour_rate is None or parts_cost is None:
        raise InputValidationError(
            "effective_at, labour_rate and parts_cost are required"
        )
    if labour_rate < 0 or parts_cost < 0:
        raise InputValidationError("labour_rate and parts_cost must not be negative")
    tier = _parse_tier(price_tier)

    if await ItemRepository(db).get_by_id(item_id) is None:
        raise ItemNotFoundError(item_id)

    version = await RateVersionRepository(db).create(
        item_id=item_id,
        effective_at=normalize_as_of(effective_at),
        labour_rate=labour_rate,
        parts_cost=parts_cost,
        price_tier=tier,
    )
    logger.info(
        "rate_version.created",
        extra={
            "item_id": item_id,
            "version_id": version.id,
            "effective_at": version.effective_at.isoformat(),
        },
    )
    return _to_version_data(version)
