"""Job lifecycle service.

This module handles:
- Job creation against an existing customer
- Field-by-field job updates ("patch" semantics)
- The completion rule: entering COMPLETED from any other status records
  exactly one service history row for the job
- Publishing job.created / job.updated after the write commits

Any status may be set from any other; completion is the only guarded
transition. Routes should delegate job business logic to this module.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import Job, JobStatus, ServiceHistory, utcnow
from repositories.job_repository import CustomerRepository, JobRepository
from repositories.service_history_repository import ServiceHistoryRepository
from services.errors import CustomerNotFoundError, JobNotFoundError
from services.events_service import (
    EVENT_JOB_CREATED,
    EVENT_JOB_UPDATED,
    DomainEvent,
    EventBroadcaster,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Per-job mutual exclusion
# =============================================================================
# Serializes updates of the same job within this process so the service
# history check-then-insert cannot interleave. Across processes the row lock
# and the unique constraint on service_history.job_id take over.

_job_locks: dict[int, asyncio.Lock] = {}
_locks_lock = asyncio.Lock()  # Protects _job_locks dict itself


async def _get_job_lock(job_id: int) -> asyncio.Lock:
    """Get or create the lock for a job."""
    async with _locks_lock:
        if job_id not in _job_locks:
            _job_locks[job_id] = asyncio.Lock()
        return _job_locks[job_id]


@dataclass(frozen=True)
class JobData:
    id: int
    customer_id: int
    technician_id: int | None
    status: str
    scheduled_time: datetime | None
    start_time: datetime | None
    end_time: datetime | None
    notes: str | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class ServiceHistoryData:
    id: int
    job_id: int
    customer_id: int
    performed_at: datetime
    notes: str | None


def _status_value(status: JobStatus | str) -> str:
    return status.value if isinstance(status, JobStatus) else str(status)


def _to_job_data(job: Job) -> JobData:
    return JobData(
        id=job.id,
        customer_id=job.customer_id,
        technician_id=job.technician_id,
        status=_status_value(job.status),
        scheduled_time=job.scheduled_time,
        start_time=job.start_time,
        end_time=job.end_time,
        notes=job.notes,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _to_history_data(record: ServiceHistory) -> ServiceHistoryData:
    return ServiceHistoryData(
        id=record.id,
        job_id=record.job_id,
        customer_id=record.customer_id,
        performed_at=record.performed_at,
        notes=record.notes,
    )


def to_payload(data: Any) -> dict[str, Any]:
    """Dump a service dataclass into a JSON-safe event payload."""
    payload = asdict(data)
    for key, value in payload.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()
        elif isinstance(value, Decimal):
            payload[key] = float(value)
    return payload


def publish_safely(broadcaster: EventBroadcaster, event: DomainEvent) -> None:
    """Publish after a committed write. Failures are logged, never raised."""
    try:
        broadcaster.publish(event)
    except Exception:
        logger.warning(
            "events.publish.failed",
            extra={"event_type": event.type},
            exc_info=True,
        )


async def get_job(db: AsyncSession, job_id: int) -> JobData:
    """Get a job by ID.

    Raises:
        JobNotFoundError: If the job does not exist
    """
    job = await JobRepository(db).get_by_id(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return _to_job_data(job)


async def create_job(
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: EventBroadcaster,
    *,
    customer_id: int,
    status: JobStatus,
    technician_id: int | None = None,
    scheduled_time: datetime | None = None,
    notes: str | None = None,
) -> JobData:
    """Create a job for an existing customer and announce it.

    Raises:
        CustomerNotFoundError: If the customer does not exist
    """
    async with session_maker() as db:
        if not await CustomerRepository(db).exists(customer_id):
            raise CustomerNotFoundError(customer_id)

        job = await JobRepository(db).create(
            customer_id=customer_id,
            status=JobStatus(status),
            technician_id=technician_id,
            scheduled_time=scheduled_time,
            notes=notes,
        )
        await db.commit()
        await db.refresh(job)
        job_data = _to_job_data(job)

    logger.info(
        "job.created",
        extra={
            "job_id": job_data.id,
            "customer_id": customer_id,
            "status": job_data.status,
        },
    )
    publish_safely(
        broadcaster, DomainEvent(type=EVENT_JOB_CREATED, payload=to_payload(job_data))
    )
    return job_data


async def _record_service_history(
    db: AsyncSession,
    job: Job,
    notes: str | None,
) -> None:
    """Insert the job's history row inside a savepoint.

    A failure rolls back the savepoint only; the surrounding job update is
    kept and the failure is logged.
    """
    job_id, customer_id = job.id, job.customer_id
    try:
        async with db.begin_nested():
            created = await ServiceHistoryRepository(db).create_once(
                job_id=job_id,
                customer_id=customer_id,
                performed_at=utcnow(),
                notes=notes,
            )
    except Exception:
        logger.warning(
            "job.service_history.failed",
            extra={"job_id": job_id, "customer_id": customer_id},
            exc_info=True,
        )
        return

    if created:
        logger.info(
            "job.service_history.created",
            extra={"job_id": job_id, "customer_id": customer_id},
        )
    else:
        logger.info("job.service_history.exists", extra={"job_id": job_id})


async def set_job_status(
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: EventBroadcaster,
    job_id: int,
    patch: Mapping[str, Any],
) -> JobData:
    """Apply a partial update to a job.

    Only keys present in ``patch`` are written. When the patch moves the job
    into COMPLETED from another status, a service history row is recorded
    in the same transaction (at most one per job, ever). A failed history
    insert does not fail the update.

    Args:
        session_maker: Factory for the session this call owns
        broadcaster: Receives job.updated once the update commits
        job_id: Job to update
        patch: Field name -> new value

    Returns:
        JobData for the updated job

    Raises:
        JobNotFoundError: If the job does not exist
        CustomerNotFoundError: If the patch points at a missing customer
    """
    changes = dict(patch)
    if "status" in changes:
        changes["status"] = JobStatus(changes["status"])

    job_lock = await _get_job_lock(job_id)
    async with job_lock:
        async with session_maker() as db:
            job_repo = JobRepository(db)
            job = await job_repo.get_by_id(job_id, for_update=True)
            if job is None:
                raise JobNotFoundError(job_id)

            new_customer = changes.get("customer_id")
            if new_customer is not None and new_customer != job.customer_id:
                if not await CustomerRepository(db).exists(new_customer):
                    raise CustomerNotFoundError(new_customer)

            previous_status = JobStatus(job.status)
            await job_repo.apply_patch(job, changes)

            completing = (
                changes.get("status") == JobStatus.COMPLETED
                and previous_status != JobStatus.COMPLETED
            )
            if completing:
                await _record_service_history(db, job, changes.get("notes"))

            await db.commit()
            await db.refresh(job)
            job_data = _to_job_data(job)

    logger.info(
        "job.status.updated",
        extra={
            "job_id": job_id,
            "previous_status": previous_status.value,
            "status": job_data.status,
            "fields": sorted(changes),
        },
    )
    publish_safely(
        broadcaster, DomainEvent(type=EVENT_JOB_UPDATED, payload=to_payload(job_data))
    )
    return job_data


async def list_service_history(
    db: AsyncSession,
    *,
    customer_id: int | None = None,
    job_id: int | None = None,
    limit: int = 100,
) -> Sequence[ServiceHistoryData]:
    """List service history records, most recent first."""
    records = await ServiceHistoryRepository(db).list_records(
        customer_id=customer_id, job_id=job_id, limit=limit
    )
    return [_to_history_data(record) for record in records]
