"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping routes thin and focused
on HTTP handling. This separation provides:
- Single source of truth for database operations
- Easier testing (repositories can be mocked)
- Reusable queries across multiple services
"""

from repositories.billing_repository import InvoiceRepository, PaymentRepository
from repositories.catalog_repository import ItemRepository, RateVersionRepository
from repositories.job_repository import CustomerRepository, JobRepository
from repositories.service_history_repository import ServiceHistoryRepository
from repositories.utils import insert_on_conflict_do_nothing, log_slow_query

__all__ = [
    "CustomerRepository",
    "InvoiceRepository",
    "ItemRepository",
    "JobRepository",
    "PaymentRepository",
    "RateVersionRepository",
    "ServiceHistoryRepository",
    "insert_on_conflict_do_nothing",
    "log_slow_query",
]
