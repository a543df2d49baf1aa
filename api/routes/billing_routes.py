"""Payment endpoints."""

from fastapi import APIRouter, HTTPException
from starlette import status

from core.database import SessionMaker
from routes.events_routes import Broadcaster
from schemas import PaymentCreateRequest, PaymentResponse
from services.billing_service import record_payment
from services.errors import InputValidationError, NotFoundError

router = APIRouter(prefix="/api/payments", tags=["billing"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid amount or method"},
        404: {"description": "Invoice not found"},
    },
)
async def create_payment(
    body: PaymentCreateRequest,
    session_maker: SessionMaker,
    broadcaster: Broadcaster,
) -> PaymentResponse:
    """Record a payment and broadcast ``payment.created``."""
    try:
        payment = await record_payment(
            session_maker,
            broadcaster,
            body.invoice_id,
            amount=body.amount,
            method=body.method,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PaymentResponse.model_validate(payment)
