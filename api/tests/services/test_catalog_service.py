"""Tests for catalog_service (rate version management)."""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from services.catalog_service import create_rate_version, list_rate_versions
from services.errors import InputValidationError, ItemNotFoundError
from services.rates_service import resolve_rate


@pytest.mark.integration
class TestCreateRateVersion:
    async def test_new_version_becomes_effective(self, db_session, seed):
        version = await create_rate_version(
            db_session,
            seed.item_id,
            effective_at=datetime(2024, 1, 1, tzinfo=UTC),
            labour_rate=Decimal("65.00"),
            parts_cost=Decimal("42.50"),
            price_tier="best",
        )
        await db_session.commit()

        rate = await resolve_rate(
            db_session, seed.item_id, datetime(2024, 2, 1, tzinfo=UTC)
        )

        assert version.price_tier == "best"
        assert rate.version_id == version.id
        assert rate.labour_rate == Decimal("65.00")
        assert rate.tier == "best"

    async def test_effective_at_is_stored_in_utc(self, db_session, seed):
        plus_five = timezone(timedelta(hours=5))
        await create_rate_version(
            db_session,
            seed.item_id,
            effective_at=datetime(2024, 1, 1, 5, 0, tzinfo=plus_five),
            labour_rate=Decimal("1"),
            parts_cost=Decimal("1"),
        )
        await db_session.commit()

        just_before = await resolve_rate(
            db_session, seed.item_id, datetime(2023, 12, 31, 23, 59, tzinfo=UTC)
        )
        at_midnight = await resolve_rate(
            db_session, seed.item_id, datetime(2024, 1, 1, 0, 0, tzinfo=UTC)
        )

        assert just_before.version_id is None
        assert at_midnight.version_id is not None

    async def test_invalid_tier_rejected(self, db_session, seed):
        with pytest.raises(InputValidationError, match="good, better, best"):
            await create_rate_version(
                db_session,
                seed.item_id,
                effective_at=datetime(2024, 1, 1, tzinfo=UTC),
                labour_rate=Decimal("1"),
                parts_cost=Decimal("1"),
                price_tier="platinum",
            )

    async def test_missing_values_rejected(self, db_session, seed):
        with pytest.raises(InputValidationError, match="required"):
            await create_rate_version(
                db_session,
                seed.item_id,
                effective_at=None,
                labour_rate=Decimal("1"),
                parts_cost=Decimal("1"),
            )

    async def test_negative_amount_rejected(self, db_session, seed):
        with pytest.raises(InputValidationError, match="negative"):
            await create_rate_version(
                db_session,
                seed.item_id,
                effective_at=datetime(2024, 1, 1, tzinfo=UTC),
                labour_rate=Decimal("-1"),
                parts_cost=Decimal("1"),
            )

    async def test_unknown_item_raises(self, db_session, seed):
        with pytest.raises(ItemNotFoundError):
            await create_rate_version(
                db_session,
                9999,
                effective_at=datetime(2024, 1, 1, tzinfo=UTC),
                labour_rate=Decimal("1"),
                parts_cost=Decimal("1"),
            )


@pytest.mark.integration
class TestListRateVersions:
    async def test_newest_first(self, db_session, seed):
        for month in (1, 6, 3):
            await create_rate_version(
                db_session,
                seed.item_id,
                effective_at=datetime(2024, month, 1, tzinfo=UTC),
                labour_rate=Decimal(month),
                parts_cost=Decimal("0"),
            )
        await db_session.commit()

        versions = await list_rate_versions(db_session, seed.item_id)

        assert [v.labour_rate for v in versions] == [
            Decimal("6"),
            Decimal("3"),
            Decimal("1"),
        ]

    async def test_item_without_versions(self, db_session, seed):
        assert await list_rate_versions(db_session, seed.item_id) == []

    async def test_unknown_item_raises(self, db_session, seed):
        with pytest.raises(ItemNotFoundError):
            await list_rate_versions(db_session, 9999)
