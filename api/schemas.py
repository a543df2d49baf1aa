"""Pydantic schemas for API request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer

from models import InvoiceStatus, JobStatus, PriceTier

# Money is computed with Decimal; JSON carries plain numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


class PoolStatusResponse(BaseModel):
    pool_size: int
    checked_out: int
    overflow: int
    checked_in: int


class DetailedHealthResponse(BaseModel):
    """Health check response with component status."""

    status: str
    service: str
    database: bool
    pool: PoolStatusResponse | None = None
    event_observers: int = 0


# --- Pricebook ---


class RateResponse(BaseModel):
    """Effective rate for an item at a point in time."""

    model_config = ConfigDict(from_attributes=True)

    item_id: int
    labour_rate: Money
    parts_cost: Money
    tier: str | None = None
    version_id: int | None = None
    as_of: datetime


class RateVersionCreateRequest(BaseModel):
    """New dated price definition for a pricebook item."""

    effective_at: datetime
    labour_rate: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    parts_cost: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    price_tier: str | None = None


class RateVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    effective_at: datetime
    labour_rate: Money
    parts_cost: Money
    price_tier: PriceTier | None = None
    created_at: datetime


class PricingLineRequest(BaseModel):
    """A single line of a pricing or estimate request.

    item_id and quantity are optional here so the service can report
    missing fields as a 400 rather than a schema error.
    """

    item_id: int | None = None
    quantity: Decimal | None = None
    tier: str | None = Field(
        default=None, validation_alias=AliasChoices("tier", "price_tier")
    )


class PricingRequest(BaseModel):
    items: list[PricingLineRequest] = Field(default_factory=list)
    as_of: datetime | None = None


class EstimateRequest(BaseModel):
    items: list[PricingLineRequest] = Field(default_factory=list)


class PricedLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    name: str
    quantity: Money
    tier: str | None = None
    markup_factor: Money
    unit_price: Money
    total_price: Money


class PricingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_amount: Money
    items: list[PricedLineResponse]


class EstimateResponse(PricingResponse):
    job_id: int


# --- Jobs ---


class JobCreateRequest(BaseModel):
    customer_id: int
    technician_id: int | None = None
    status: JobStatus
    scheduled_time: datetime | None = None
    notes: str | None = Field(default=None, max_length=10000)


class JobUpdateRequest(BaseModel):
    """Partial job update. Omitted or null fields keep their current value."""

    customer_id: int | None = None
    technician_id: int | None = None
    status: JobStatus | None = None
    scheduled_time: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = Field(default=None, max_length=10000)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    technician_id: int | None = None
    status: JobStatus
    scheduled_time: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ServiceHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    customer_id: int
    performed_at: datetime
    notes: str | None = None


# --- Billing ---


class InvoiceCreateRequest(BaseModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    due_at: datetime | None = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    amount: Money
    status: InvoiceStatus
    issued_at: datetime
    due_at: datetime | None = None


class PaymentCreateRequest(BaseModel):
    invoice_id: int
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    method: str = Field(min_length=1, max_length=50)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Money
    method: str
    paid_at: datetime
