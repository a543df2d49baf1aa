"""Tests for pricing_service.

Tests cover:
- Tier markup table and the "good" default
- Line tier override and unrecognized tiers
- Worked example: 60 + 40, tier "better", quantity 2
- Input validation (empty lines, missing item_id/quantity)
- All-or-nothing failure on unknown items
- Idempotence
- estimate_job: base rates, no markup, job must exist
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from models import PriceTier
from services.errors import InputValidationError, ItemNotFoundError, JobNotFoundError
from services.pricing_service import (
    PricingLine,
    calculate_pricing,
    estimate_job,
    markup_factor_for,
)
from tests.factories import ItemFactory, RateVersionFactory, create_async


@pytest.mark.unit
class TestMarkupFactor:
    @pytest.mark.parametrize(
        ("tier", "expected"),
        [
            ("good", Decimal("1.0")),
            ("better", Decimal("1.15")),
            ("best", Decimal("1.25")),
            ("platinum", Decimal("1.0")),
            ("", Decimal("1.0")),
        ],
    )
    def test_factor_table(self, tier, expected):
        assert markup_factor_for(tier) == expected


@pytest.mark.integration
class TestCalculatePricing:
    async def test_better_tier_worked_example(self, db_session, seed):
        result = await calculate_pricing(
            db_session, [PricingLine(item_id=seed.item_id, quantity=2)]
        )

        line = result.breakdown[0]
        assert line.tier == "better"
        assert line.markup_factor == Decimal("1.15")
        assert line.unit_price == Decimal("115")
        assert line.total_price == Decimal("230")
        assert result.total_amount == Decimal("230")
        assert float(line.unit_price) == 115.0

    async def test_line_tier_overrides_item_tier(self, db_session, seed):
        result = await calculate_pricing(
            db_session, [PricingLine(item_id=seed.item_id, quantity=1, tier="best")]
        )

        assert result.breakdown[0].tier == "best"
        assert result.total_amount == Decimal("125")

    async def test_unrecognized_tier_uses_factor_one(self, db_session, seed):
        result = await calculate_pricing(
            db_session,
            [PricingLine(item_id=seed.item_id, quantity=1, tier="platinum")],
        )

        line = result.breakdown[0]
        assert line.tier == "platinum"
        assert line.markup_factor == Decimal("1.0")
        assert result.total_amount == Decimal("100")

    async def test_item_without_tier_defaults_to_good(self, db_session, seed):
        item = await create_async(
            ItemFactory,
            db_session,
            category_id=seed.category_id,
            labour_rate=Decimal("10"),
            parts_cost=Decimal("5"),
            price_tier=None,
        )
        await db_session.commit()

        result = await calculate_pricing(
            db_session, [PricingLine(item_id=item.id, quantity=3)]
        )

        assert result.breakdown[0].tier == "good"
        assert result.total_amount == Decimal("45")

    async def test_uses_rate_version_effective_at_as_of(self, db_session, seed):
        await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            effective_at=datetime(2024, 1, 1, tzinfo=UTC),
            labour_rate=Decimal("100"),
            parts_cost=Decimal("0"),
            price_tier=PriceTier.GOOD,
        )
        await db_session.commit()
        lines = [PricingLine(item_id=seed.item_id, quantity=1)]

        before = await calculate_pricing(
            db_session, lines, datetime(2023, 12, 31, tzinfo=UTC)
        )
        after = await calculate_pricing(
            db_session, lines, datetime(2024, 1, 2, tzinfo=UTC)
        )

        assert before.total_amount == Decimal("115")
        assert after.total_amount == Decimal("100")

    async def test_total_sums_all_lines(self, db_session, seed):
        other = await create_async(
            ItemFactory,
            db_session,
            category_id=seed.category_id,
            labour_rate=Decimal("20"),
            parts_cost=Decimal("5"),
            price_tier=PriceTier.GOOD,
        )
        await db_session.commit()

        result = await calculate_pricing(
            db_session,
            [
                PricingLine(item_id=seed.item_id, quantity=2),
                PricingLine(item_id=other.id, quantity=4),
            ],
        )

        assert [line.total_price for line in result.breakdown] == [
            Decimal("230"),
            Decimal("100"),
        ]
        assert result.total_amount == Decimal("330")

    async def test_fractional_quantity(self, db_session, seed):
        result = await calculate_pricing(
            db_session,
            [PricingLine(item_id=seed.item_id, quantity=Decimal("1.5"), tier="good")],
        )

        assert result.total_amount == Decimal("150")

    async def test_unknown_item_fails_whole_call(self, db_session, seed):
        with pytest.raises(ItemNotFoundError):
            await calculate_pricing(
                db_session,
                [
                    PricingLine(item_id=seed.item_id, quantity=1),
                    PricingLine(item_id=424242, quantity=1),
                ],
            )

    async def test_empty_lines_rejected(self, db_session, seed):
        with pytest.raises(InputValidationError, match="items array is required"):
            await calculate_pricing(db_session, [])

    @pytest.mark.parametrize(
        "line",
        [
            PricingLine(item_id=None, quantity=1),
            PricingLine(item_id=1, quantity=None),
        ],
    )
    async def test_line_missing_fields_rejected(self, db_session, seed, line):
        with pytest.raises(InputValidationError, match="item_id and quantity"):
            await calculate_pricing(db_session, [line])

    async def test_repeated_calls_are_identical(self, db_session, seed):
        lines = [
            PricingLine(item_id=seed.item_id, quantity=3, tier="best"),
            PricingLine(item_id=seed.item_id, quantity=1),
        ]
        as_of = datetime(2025, 1, 1, tzinfo=UTC)

        first = await calculate_pricing(db_session, lines, as_of)
        second = await calculate_pricing(db_session, lines, as_of)

        assert first == second


@pytest.mark.integration
class TestEstimateJob:
    async def test_uses_base_rates_without_markup(self, db_session, seed):
        result = await estimate_job(
            db_session,
            seed.job_id,
            [PricingLine(item_id=seed.item_id, quantity=2, tier="best")],
        )

        line = result.breakdown[0]
        assert result.job_id == seed.job_id
        assert line.markup_factor == Decimal("1.0")
        assert line.tier is None
        assert line.unit_price == Decimal("100")
        assert result.total_amount == Decimal("200")

    async def test_ignores_rate_versions(self, db_session, seed):
        await create_async(
            RateVersionFactory,
            db_session,
            item_id=seed.item_id,
            labour_rate=Decimal("500"),
        )
        await db_session.commit()

        result = await estimate_job(
            db_session, seed.job_id, [PricingLine(item_id=seed.item_id, quantity=1)]
        )

        assert result.total_amount == Decimal("100")

    async def test_unknown_job_raises(self, db_session, seed):
        with pytest.raises(JobNotFoundError):
            await estimate_job(
                db_session, 9999, [PricingLine(item_id=seed.item_id, quantity=1)]
            )

    async def test_unknown_item_raises(self, db_session, seed):
        with pytest.raises(ItemNotFoundError):
            await estimate_job(
                db_session, seed.job_id, [PricingLine(item_id=9999, quantity=1)]
            )

    async def test_empty_lines_rejected(self, db_session, seed):
        with pytest.raises(InputValidationError):
            await estimate_job(db_session, seed.job_id, [])
