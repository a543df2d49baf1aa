"""Tests for rates_service.

Tests cover:
- Base item fallback when no rate version exists
- Version selection around effective_at boundaries
- Equal effective_at tie-break (highest id wins)
- Tier inheritance from the item
- as_of normalization (default now, naive treated as UTC)
- Unknown item
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import time_machine

from models import PriceTier
from services.errors import ItemNotFoundError
from services.rates_service import normalize_as_of, resolve_rate
from tests.factories import RateVersionFactory, create_async

T1 = datetime(2024, 1, 1, tzinfo=UTC)
T2 = datetime(2024, 6, 1, tzinfo=UTC)


@pytest.mark.unit
class TestNormalizeAsOf:
    def test_none_defaults_to_now(self):
        with time_machine.travel(datetime(2025, 3, 4, 12, 0, tzinfo=UTC), tick=False):
            assert normalize_as_of(None) == datetime(2025, 3, 4, 12, 0, tzinfo=UTC)

    def test_naive_is_treated_as_utc(self):
        result = normalize_as_of(datetime(2024, 1, 1, 8, 30))
        assert result == datetime(2024, 1, 1, 8, 30, tzinfo=UTC)
        assert result.tzinfo is UTC

    def test_aware_is_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        result = normalize_as_of(datetime(2024, 1, 1, 10, 0, tzinfo=plus_two))
        assert result == datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


@pytest.mark.integration
class TestResolveRate:
    async def test_item_without_versions_returns_base_values(self, db_session, seed):
        for moment in (T1, T2, datetime(1999, 1, 1, tzinfo=UTC), None):
            rate = await resolve_rate(db_session, seed.item_id, moment)

            assert rate.labour_rate == Decimal("60")
            assert rate.parts_cost == Decimal("40")
            assert rate.tier == "better"
            assert rate.version_id is None

    async def test_version_selection_around_effective_dates(self, db_session, seed):
        v1 = await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            effective_at=T1,
            labour_rate=Decimal("70"),
            parts_cost=Decimal("45"),
        )
        v2 = await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            effective_at=T2,
            labour_rate=Decimal("80"),
            parts_cost=Decimal("50"),
        )
        await db_session.commit()

        before = await resolve_rate(db_session, seed.item_id, T1 - timedelta(seconds=1))
        at_t1 = await resolve_rate(db_session, seed.item_id, T1)
        between = await resolve_rate(db_session, seed.item_id, T2 - timedelta(days=1))
        at_t2 = await resolve_rate(db_session, seed.item_id, T2)
        after = await resolve_rate(db_session, seed.item_id, T2 + timedelta(days=365))

        assert before.version_id is None
        assert before.labour_rate == Decimal("60")
        assert at_t1.version_id == v1.id
        assert between.version_id == v1.id
        assert between.labour_rate == Decimal("70")
        assert at_t2.version_id == v2.id
        assert after.version_id == v2.id
        assert after.parts_cost == Decimal("50")

    async def test_equal_effective_at_prefers_highest_id(self, db_session, seed):
        await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            effective_at=T1,
            labour_rate=Decimal("70"),
        )
        later = await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            effective_at=T1,
            labour_rate=Decimal("75"),
        )
        await db_session.commit()

        rate = await resolve_rate(db_session, seed.item_id, T2)

        assert rate.version_id == later.id
        assert rate.labour_rate == Decimal("75")

    async def test_version_without_tier_keeps_item_tier(self, db_session, seed):
        await create_async(
            RateVersionFactory, db_session, item_id=seed.item_id, price_tier=None
        )
        await db_session.commit()

        rate = await resolve_rate(db_session, seed.item_id, T2)

        assert rate.tier == "better"

    async def test_version_tier_overrides_item_tier(self, db_session, seed):
        await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            price_tier=PriceTier.BEST,
        )
        await db_session.commit()

        rate = await resolve_rate(db_session, seed.item_id, T2)

        assert rate.tier == "best"

    async def test_naive_as_of_matches_utc(self, db_session, seed):
        version = await create_async(
            RateVersionFactory, db_session, item_id=seed.item_id, effective_at=T1
        )
        await db_session.commit()

        rate = await resolve_rate(db_session, seed.item_id, datetime(2024, 1, 1))

        assert rate.version_id == version.id

    async def test_unknown_item_raises(self, db_session, seed):
        with pytest.raises(ItemNotFoundError) as exc_info:
            await resolve_rate(db_session, 9999, T1)

        assert exc_info.value.entity_id == 9999
        assert "9999" in str(exc_info.value)
