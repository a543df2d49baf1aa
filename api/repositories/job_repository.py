"""Repository for job and customer lookups and mutations."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Customer, Job, JobStatus
from repositories.utils import log_slow_query


class CustomerRepository:
    """Read access to customers (customer CRUD lives elsewhere)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def exists(self, customer_id: int) -> bool:
        result = await self.db.execute(
            select(Customer.id).where(Customer.id == customer_id)
        )
        return result.scalar_one_or_none() is not None


class JobRepository:
    """Repository for job operations."""

    # Columns a patch may touch
    PATCHABLE_FIELDS = frozenset(
        {
            "customer_id",
            "technician_id",
            "status",
            "scheduled_time",
            "start_time",
            "end_time",
            "notes",
        }
    )

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("get_job_by_id")
    async def get_by_id(self, job_id: int, *, for_update: bool = False) -> Job | None:
        """Get a job by ID.

        Args:
            job_id: The job's ID
            for_update: Take a row lock (SELECT ... FOR UPDATE) until the
                transaction ends. Ignored by SQLite.
        """
        query = select(Job).where(Job.id == job_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def exists(self, job_id: int) -> bool:
        result = await self.db.execute(select(Job.id).where(Job.id == job_id))
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        customer_id: int,
        status: JobStatus,
        technician_id: int | None = None,
        scheduled_time: datetime | None = None,
        notes: str | None = None,
    ) -> Job:
        """Create a new job. Calls flush() but does NOT commit."""
        job = Job(
            customer_id=customer_id,
            technician_id=technician_id,
            status=status,
            scheduled_time=scheduled_time,
            notes=notes,
        )
        self.db.add(job)
        await self.db.flush()
        return job

    async def apply_patch(self, job: Job, changes: dict[str, Any]) -> Job:
        """Set the given fields on the job and flush.

        Unknown keys raise ValueError so a typo never silently drops a change.
        """
        unknown = set(changes) - self.PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")
        for field, value in changes.items():
            setattr(job, field, value)
        await self.db.flush()
        return job
