"""Tests for ServiceHistoryRepository."""

from datetime import UTC, datetime, timedelta

import pytest

from repositories.service_history_repository import ServiceHistoryRepository
from tests.factories import CustomerFactory, JobFactory, create_async

PERFORMED_AT = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


@pytest.mark.integration
class TestCreateOnce:
    async def test_inserts_first_record(self, db_session, seed):
        repo = ServiceHistoryRepository(db_session)

        created = await repo.create_once(
            job_id=seed.job_id,
            customer_id=seed.customer_id,
            performed_at=PERFORMED_AT,
            notes="done",
        )

        record = await repo.get_by_job(seed.job_id)
        assert created is True
        assert record is not None
        assert record.notes == "done"

    async def test_second_call_is_a_no_op(self, db_session, seed):
        repo = ServiceHistoryRepository(db_session)
        await repo.create_once(seed.job_id, seed.customer_id, PERFORMED_AT)

        created = await repo.create_once(
            seed.job_id, seed.customer_id, PERFORMED_AT + timedelta(hours=1), "again"
        )

        assert created is False
        records = await repo.list_records(job_id=seed.job_id)
        assert len(records) == 1
        assert records[0].notes is None

    async def test_unique_constraint_backs_the_check(
        self, db_session, session_maker, seed
    ):
        """A row written by another session is detected by ON CONFLICT too."""
        async with session_maker() as other:
            await ServiceHistoryRepository(other).create_once(
                seed.job_id, seed.customer_id, PERFORMED_AT
            )
            await other.commit()

        repo = ServiceHistoryRepository(db_session)
        with pytest.MonkeyPatch.context() as mp:
            # Skip the pre-check so only the conflict clause can prevent a duplicate
            async def no_record(job_id):
                return None

            mp.setattr(repo, "get_by_job", no_record)
            created = await repo.create_once(
                seed.job_id, seed.customer_id, PERFORMED_AT
            )

        assert created is False


@pytest.mark.integration
class TestListRecords:
    async def test_newest_first_and_filtered(self, db_session, seed):
        customer = await create_async(CustomerFactory, db_session)
        jobs = [
            await create_async(JobFactory, db_session, customer_id=customer.id)
            for _ in range(3)
        ]
        repo = ServiceHistoryRepository(db_session)
        for offset, job in enumerate(jobs):
            await repo.create_once(
                job.id, customer.id, PERFORMED_AT + timedelta(days=offset)
            )
        await repo.create_once(seed.job_id, seed.customer_id, PERFORMED_AT)

        records = await repo.list_records(customer_id=customer.id)
        limited = await repo.list_records(limit=2)

        assert [r.job_id for r in records] == [jobs[2].id, jobs[1].id, jobs[0].id]
        assert len(limited) == 2
