"""Invoices and payments.

Each write owns its session, commits, then announces itself on the
broadcaster (invoice.created / payment.created).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import Invoice, InvoiceStatus, Payment
from repositories.billing_repository import InvoiceRepository, PaymentRepository
from repositories.job_repository import JobRepository
from services.errors import (
    InputValidationError,
    InvoiceNotFoundError,
    JobNotFoundError,
)
from services.events_service import (
    EVENT_INVOICE_CREATED,
    EVENT_PAYMENT_CREATED,
    DomainEvent,
    EventBroadcaster,
)
from services.jobs_service import publish_safely, to_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceData:
    id: int
    job_id: int
    amount: Decimal
    status: str
    issued_at: datetime | None
    due_at: datetime | None


@dataclass(frozen=True)
class PaymentData:
    id: int
    invoice_id: int
    amount: Decimal
    method: str
    paid_at: datetime | None


def _to_invoice_data(invoice: Invoice) -> InvoiceData:
    status = invoice.status
    return InvoiceData(
        id=invoice.id,
        job_id=invoice.job_id,
        amount=Decimal(invoice.amount),
        status=status.value if isinstance(status, InvoiceStatus) else status,
        issued_at=invoice.issued_at,
        due_at=invoice.due_at,
    )


def _to_payment_data(payment: Payment) -> PaymentData:
    return PaymentData(
        id=payment.id,
        invoice_id=payment.invoice_id,
        amount=Decimal(payment.amount),
        method=payment.method,
        paid_at=payment.paid_at,
    )


async def create_invoice_for_job(
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: EventBroadcaster,
    job_id: int,
    *,
    amount: Decimal,
    status: InvoiceStatus | str = InvoiceStatus.DRAFT,
    due_at: datetime | None = None,
) -> InvoiceData:
    """Raise an invoice against a job.

    Raises:
        InputValidationError: If the amount is negative
        JobNotFoundError: If the job does not exist
    """
    if amount < 0:
        raise InputValidationError("amount must not be negative")

    async with session_maker() as db:
        if not await JobRepository(db).exists(job_id):
            raise JobNotFoundError(job_id)
        invoice = await InvoiceRepository(db).create(
            job_id=job_id,
            amount=amount,
            status=InvoiceStatus(status),
            due_at=due_at,
        )
        await db.commit()
        await db.refresh(invoice)
        invoice_data = _to_invoice_data(invoice)

    logger.info(
        "invoice.created",
        extra={
            "invoice_id": invoice_data.id,
            "job_id": job_id,
            "amount": str(invoice_data.amount),
        },
    )
    publish_safely(
        broadcaster,
        DomainEvent(type=EVENT_INVOICE_CREATED, payload=to_payload(invoice_data)),
    )
    return invoice_data


async def record_payment(
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: EventBroadcaster,
    invoice_id: int,
    *,
    amount: Decimal,
    method: str,
) -> PaymentData:
    """Record a payment against an invoice.

    Raises:
        InputValidationError: If the amount is not positive or method is blank
        InvoiceNotFoundError: If the invoice does not exist
    """
    if amount <= 0:
        raise InputValidationError("amount must be greater than zero")
    if not method or not method.strip():
        raise InputValidationError("method is required")

    async with session_maker() as db:
        if not await InvoiceRepository(db).exists(invoice_id):
            raise InvoiceNotFoundError(invoice_id)
        payment = await PaymentRepository(db).create(
            invoice_id=invoice_id, amount=amount, method=method.strip()
        )
        await db.commit()
        await db.refresh(payment)
        payment_data = _to_payment_data(payment)

    logger.info(
        "payment.created",
        extra={
            "payment_id": payment_data.id,
            "invoice_id": invoice_id,
            "amount": str(payment_data.amount),
        },
    )
    publish_safely(
        broadcaster,
        DomainEvent(type=EVENT_PAYMENT_CREATED, payload=to_payload(payment_data)),
    )
    return payment_data
