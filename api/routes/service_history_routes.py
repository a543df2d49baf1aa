"""Service history endpoints."""

from fastapi import APIRouter, Query

from core.database import DbSessionReadOnly
from schemas import ServiceHistoryResponse
from services.jobs_service import list_service_history

router = APIRouter(prefix="/api/service-history", tags=["service-history"])


@router.get("", response_model=list[ServiceHistoryResponse])
async def get_service_history(
    db: DbSessionReadOnly,
    customer_id: int | None = Query(default=None),
    job_id: int | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[ServiceHistoryResponse]:
    """Completed-job records, most recent first."""
    records = await list_service_history(
        db, customer_id=customer_id, job_id=job_id, limit=limit
    )
    return [ServiceHistoryResponse.model_validate(r) for r in records]
