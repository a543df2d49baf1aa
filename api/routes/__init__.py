"""API route modules."""

from .billing_routes import router as billing_router
from .events_routes import router as events_router
from .health_routes import router as health_router
from .jobs_routes import router as jobs_router
from .pricebook_routes import router as pricebook_router
from .service_history_routes import router as service_history_router

__all__ = [
    "billing_router",
    "events_router",
    "health_router",
    "jobs_router",
    "pricebook_router",
    "service_history_router",
]
