"""Rate resolution against the versioned pricebook.

An item's price is defined by its base row plus an append-only list of rate
versions. The effective price at a moment is the version with the greatest
effective_at not after that moment (highest id on ties), falling back to the
item's own base values when no version qualifies yet.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from models import PriceTier, utcnow
from repositories.catalog_repository import ItemRepository, RateVersionRepository
from services.errors import ItemNotFoundError


@dataclass(frozen=True)
class RateResolution:
    """Effective pricing inputs for an item at a point in time."""

    item_id: int
    name: str
    labour_rate: Decimal
    parts_cost: Decimal
    tier: str | None
    version_id: int | None
    as_of: datetime


def normalize_as_of(as_of: datetime | None) -> datetime:
    """Default to now; treat naive datetimes as UTC; convert the rest to UTC."""
    if as_of is None:
        return utcnow()
    if as_of.tzinfo is None:
        return as_of.replace(tzinfo=UTC)
    return as_of.astimezone(UTC)


def _tier_value(tier: PriceTier | str | None) -> str | None:
    if tier is None:
        return None
    return tier.value if isinstance(tier, PriceTier) else str(tier)


async def resolve_rate(
    db: AsyncSession,
    item_id: int,
    as_of: datetime | None = None,
) -> RateResolution:
    """Resolve the labour rate, parts cost and tier of an item as of a moment.

    Args:
        db: Database session (read-only use)
        item_id: Pricebook item ID
        as_of: Moment to price at; defaults to the current time

    Returns:
        RateResolution; version_id is None when the base item values apply

    Raises:
        ItemNotFoundError: If the item does not exist
    """
    moment = normalize_as_of(as_of)

    item = await ItemRepository(db).get_by_id(item_id)
    if item is None:
        raise ItemNotFoundError(item_id)

    version = await RateVersionRepository(db).get_effective(item_id, moment)
    if version is None:
        return RateResolution(
            item_id=item.id,
            name=item.name,
            labour_rate=Decimal(item.labour_rate),
            parts_cost=Decimal(item.parts_cost),
            tier=_tier_value(item.price_tier),
            version_id=None,
            as_of=moment,
        )

    # A version without its own tier keeps the item's tier
    return RateResolution(
        item_id=item.id,
        name=item.name,
        labour_rate=Decimal(version.labour_rate),
        parts_cost=Decimal(version.parts_cost),
        tier=_tier_value(version.price_tier) or _tier_value(item.price_tier),
        version_id=version.id,
        as_of=moment,
    )
