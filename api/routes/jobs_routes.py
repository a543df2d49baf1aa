"""Job endpoints: create, read, patch, estimate and invoice."""

from fastapi import APIRouter, HTTPException
from starlette import status

from core.database import DbSessionReadOnly, SessionMaker
from routes.events_routes import Broadcaster
from routes.pricebook_routes import to_pricing_lines
from schemas import (
    EstimateRequest,
    EstimateResponse,
    InvoiceCreateRequest,
    InvoiceResponse,
    JobCreateRequest,
    JobResponse,
    JobUpdateRequest,
    PricedLineResponse,
)
from services.billing_service import create_invoice_for_job
from services.errors import InputValidationError, NotFoundError
from services.jobs_service import create_job, get_job, set_job_status
from services.pricing_service import estimate_job

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Customer not found"}},
)
async def create_job_endpoint(
    body: JobCreateRequest,
    session_maker: SessionMaker,
    broadcaster: Broadcaster,
) -> JobResponse:
    """Create a job and broadcast ``job.created``."""
    try:
        job = await create_job(
            session_maker,
            broadcaster,
            customer_id=body.customer_id,
            status=body.status,
            technician_id=body.technician_id,
            scheduled_time=body.scheduled_time,
            notes=body.notes,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobResponse.model_validate(job)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    responses={404: {"description": "Job not found"}},
)
async def get_job_endpoint(job_id: int, db: DbSessionReadOnly) -> JobResponse:
    try:
        job = await get_job(db, job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobResponse.model_validate(job)


@router.patch(
    "/{job_id}",
    response_model=JobResponse,
    responses={404: {"description": "Job or customer not found"}},
)
async def update_job_endpoint(
    job_id: int,
    body: JobUpdateRequest,
    session_maker: SessionMaker,
    broadcaster: Broadcaster,
) -> JobResponse:
    """Partially update a job.

    Fields left out (or sent as null) keep their current value. Moving the
    job to ``completed`` records its service history once.
    """
    patch = body.model_dump(exclude_none=True)
    try:
        job = await set_job_status(session_maker, broadcaster, job_id, patch)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobResponse.model_validate(job)


@router.post(
    "/{job_id}/estimate",
    response_model=EstimateResponse,
    responses={
        400: {"description": "Missing items, item_id or quantity"},
        404: {"description": "Job or item not found"},
    },
)
async def estimate_job_endpoint(
    job_id: int,
    body: EstimateRequest,
    db: DbSessionReadOnly,
) -> EstimateResponse:
    """Estimate a job from base item rates (no tier markup)."""
    try:
        result = await estimate_job(db, job_id, to_pricing_lines(body.items))
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return EstimateResponse(
        job_id=result.job_id,
        total_amount=result.total_amount,
        items=[PricedLineResponse.model_validate(line) for line in result.breakdown],
    )


@router.post(
    "/{job_id}/invoice",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid amount"},
        404: {"description": "Job not found"},
    },
)
async def create_invoice_endpoint(
    job_id: int,
    body: InvoiceCreateRequest,
    session_maker: SessionMaker,
    broadcaster: Broadcaster,
) -> InvoiceResponse:
    """Raise an invoice for a job and broadcast ``invoice.created``."""
    try:
        invoice = await create_invoice_for_job(
            session_maker,
            broadcaster,
            job_id,
            amount=body.amount,
            status=body.status,
            due_at=body.due_at,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InvoiceResponse.model_validate(invoice)
