"""SQLAlchemy models for ServiceBook customers, pricebook, jobs and billing."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns.

    Use this for any model that needs audit timestamps.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PriceTier(str, PyEnum):
    """Named markup levels applied to labour + parts cost."""

    GOOD = "good"
    BETTER = "better"
    BEST = "best"


class JobStatus(str, PyEnum):
    """Job lifecycle states.

    Any status may be set from any other; entering COMPLETED from a
    non-completed status records service history.
    """

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, PyEnum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


_price_tier_enum = Enum(
    PriceTier,
    name="price_tier",
    native_enum=False,
    values_callable=lambda e: [m.value for m in e],
)


class Customer(TimestampMixin, Base):
    """Customer record. Managed by customer CRUD; read by the core."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    jobs: Mapped[list["Job"]] = relationship(back_populates="customer")


class Category(Base):
    """Pricebook category; parent_id forms an acyclic tree."""

    __tablename__ = "pricebook_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("pricebook_categories.id", ondelete="CASCADE"),
        nullable=True,
    )

    items: Mapped[list["Item"]] = relationship(back_populates="category")


class Item(TimestampMixin, Base):
    """Pricebook item with its base labour rate, parts cost and tier."""

    __tablename__ = "pricebook_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("pricebook_categories.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    labour_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    parts_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_tier: Mapped[PriceTier | None] = mapped_column(
        _price_tier_enum, nullable=True
    )

    category: Mapped["Category"] = relationship(back_populates="items")
    versions: Mapped[list["RateVersion"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
    )


class RateVersion(Base):
    """A dated price definition for an item.

    Rows are never updated; a later effective_at supersedes earlier ones.
    """

    __tablename__ = "pricebook_item_versions"
    __table_args__ = (
        Index("ix_item_versions_item_effective", "item_id", "effective_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("pricebook_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    labour_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    parts_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_tier: Mapped[PriceTier | None] = mapped_column(
        _price_tier_enum, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    item: Mapped["Item"] = relationship(back_populates="versions")


class Job(TimestampMixin, Base):
    """Scheduled field-service job."""

    __tablename__ = "jobs"
    __table_args__ = (Index("ix_jobs_customer_status", "customer_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Users/technicians live in the identity service; no FK here
    technician_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name="job_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    scheduled_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    customer: Mapped["Customer"] = relationship(back_populates="jobs")


class ServiceHistory(Base):
    """Durable marker that a job reached completion.

    The unique constraint on job_id keeps completions idempotent across
    processes; the lifecycle service serializes them within one process.
    """

    __tablename__ = "service_history"
    __table_args__ = (UniqueConstraint("job_id", name="uq_service_history_job"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(
            InvoiceStatus,
            name="invoice_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    due_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
