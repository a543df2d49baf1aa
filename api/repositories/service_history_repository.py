"""Repository for service history records."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import ServiceHistory
from repositories.utils import insert_on_conflict_do_nothing


class ServiceHistoryRepository:
    """Repository for service history operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_job(self, job_id: int) -> ServiceHistory | None:
        result = await self.db.execute(
            select(ServiceHistory).where(ServiceHistory.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def create_once(
        self,
        job_id: int,
        customer_id: int,
        performed_at: datetime,
        notes: str | None = None,
    ) -> bool:
        """Insert the job's service history record unless one already exists.

        Check-then-insert backed by the unique constraint on job_id, so a
        concurrent writer in another process cannot produce a duplicate.

        Returns:
            True if this call created the record.
        """
        if await self.get_by_job(job_id) is not None:
            return False
        return await insert_on_conflict_do_nothing(
            self.db,
            ServiceHistory,
            {
                "job_id": job_id,
                "customer_id": customer_id,
                "performed_at": performed_at,
                "notes": notes,
            },
            index_elements=["job_id"],
        )

    async def list_records(
        self,
        *,
        customer_id: int | None = None,
        job_id: int | None = None,
        limit: int = 100,
    ) -> Sequence[ServiceHistory]:
        """List records, most recent first, optionally filtered."""
        query = select(ServiceHistory)
        if customer_id is not None:
            query = query.where(ServiceHistory.customer_id == customer_id)
        if job_id is not None:
            query = query.where(ServiceHistory.job_id == job_id)
        query = query.order_by(
            ServiceHistory.performed_at.desc(), ServiceHistory.id.desc()
        ).limit(limit)
        result = await self.db.execute(query)
        return result.scalars().all()
