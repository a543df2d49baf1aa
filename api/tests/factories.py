"""Factory Boy factories for generating test data.

Factories provide a clean way to create test objects with sensible defaults.
Override specific fields as needed in tests.

Usage:
    customer = await create_async(CustomerFactory, db_session)
    item = await create_async(
        ItemFactory, db_session, category_id=category.id, price_tier=None
    )
"""

from datetime import UTC, datetime
from decimal import Decimal

import factory
from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from models import Category, Customer, Item, Job, JobStatus, PriceTier, RateVersion

fake = Faker()


# =============================================================================
# Async Factory Helpers
# =============================================================================


async def create_async(
    factory_class: type[factory.Factory], db: AsyncSession, **kwargs
):
    """Create an instance using a factory and persist to database.

    Usage:
        job = await create_async(JobFactory, db_session, customer_id=customer.id)
    """
    instance = factory_class.build(**kwargs)
    db.add(instance)
    await db.flush()
    await db.refresh(instance)
    return instance


# =============================================================================
# Factories
# =============================================================================


class CustomerFactory(factory.Factory):
    class Meta:
        model = Customer

    name = factory.LazyAttribute(lambda _: fake.name())
    email = factory.LazyAttribute(lambda _: fake.email())
    phone = factory.LazyAttribute(lambda _: fake.phone_number()[:50])


class CategoryFactory(factory.Factory):
    class Meta:
        model = Category

    name = factory.LazyAttribute(lambda _: fake.word().title())
    parent_id = None


class ItemFactory(factory.Factory):
    """Pricebook item priced at 60 labour + 40 parts, tier "better"."""

    class Meta:
        model = Item

    name = factory.LazyAttribute(lambda _: f"{fake.word().title()} service")
    description = factory.LazyAttribute(lambda _: fake.sentence())
    labour_rate = Decimal("60.00")
    parts_cost = Decimal("40.00")
    price_tier = PriceTier.BETTER


class RateVersionFactory(factory.Factory):
    class Meta:
        model = RateVersion

    effective_at = factory.LazyFunction(lambda: datetime(2024, 1, 1, tzinfo=UTC))
    labour_rate = Decimal("70.00")
    parts_cost = Decimal("45.00")
    price_tier = None


class JobFactory(factory.Factory):
    class Meta:
        model = Job

    technician_id = factory.LazyAttribute(lambda _: fake.random_int(1, 500))
    status = JobStatus.SCHEDULED
    scheduled_time = factory.LazyFunction(lambda: datetime.now(UTC))
    notes = None
