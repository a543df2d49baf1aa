"""Repositories for pricebook items and rate versions."""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Item, PriceTier, RateVersion
from repositories.utils import log_slow_query


class ItemRepository:
    """Repository for pricebook items (read-only to the pricing core)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("get_item_by_id")
    async def get_by_id(self, item_id: int) -> Item | None:
        result = await self.db.execute(select(Item).where(Item.id == item_id))
        return result.scalar_one_or_none()

    async def get_many(self, item_ids: Sequence[int]) -> dict[int, Item]:
        """Fetch several items in one query, keyed by id."""
        if not item_ids:
            return {}
        result = await self.db.execute(select(Item).where(Item.id.in_(set(item_ids))))
        return {item.id: item for item in result.scalars().all()}


class RateVersionRepository:
    """Repository for the append-only rate version history."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("get_effective_rate_version")
    async def get_effective(self, item_id: int, as_of: datetime) -> RateVersion | None:
        """Latest version with effective_at <= as_of.

        Versions sharing the same effective_at are ordered by id, so the most
        recently inserted one wins.
        """
        result = await self.db.execute(
            select(RateVersion)
            .where(
                RateVersion.item_id == item_id,
                RateVersion.effective_at <= as_of,
            )
            .order_by(RateVersion.effective_at.desc(), RateVersion.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_item(self, item_id: int) -> Sequence[RateVersion]:
        """All versions for an item, newest effective_at first."""
        result = await self.db.execute(
            select(RateVersion)
            .where(RateVersion.item_id == item_id)
            .order_by(RateVersion.effective_at.desc(), RateVersion.id.desc())
        )
        return result.scalars().all()

    async def create(
        self,
        item_id: int,
        effective_at: datetime,
        labour_rate: Decimal,
        parts_cost: Decimal,
        price_tier: PriceTier | None = None,
    ) -> RateVersion:
        """Append a version.

        Calls flush() but does NOT commit; the caller is responsible for
        transaction management.
        """
        version = RateVersion(
            item_id=item_id,
            effective_at=effective_at,
            labour_rate=labour_rate,
            parts_cost=parts_cost,
            price_tier=price_tier,
        )
        self.db.add(version)
        await self.db.flush()
        return version
