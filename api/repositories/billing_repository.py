"""Repositories for invoices and payments."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Invoice, InvoiceStatus, Payment


class InvoiceRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def exists(self, invoice_id: int) -> bool:
        result = await self.db.execute(
            select(Invoice.id).where(Invoice.id == invoice_id)
        )
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        job_id: int,
        amount: Decimal,
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        due_at: datetime | None = None,
    ) -> Invoice:
        """Create an invoice. Calls flush() but does NOT commit."""
        invoice = Invoice(job_id=job_id, amount=amount, status=status, due_at=due_at)
        self.db.add(invoice)
        await self.db.flush()
        return invoice


class PaymentRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, invoice_id: int, amount: Decimal, method: str) -> Payment:
        """Record a payment. Calls flush() but does NOT commit."""
        payment = Payment(invoice_id=invoice_id, amount=amount, method=method)
        self.db.add(payment)
        await self.db.flush()
        return payment
