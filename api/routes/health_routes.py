"""Liveness, readiness and component health for ServiceBook."""

from fastapi import APIRouter, HTTPException, Request
from starlette import status

from core.database import PoolStatus, check_db_connection, comprehensive_health_check
from schemas import DetailedHealthResponse, HealthResponse, PoolStatusResponse

router = APIRouter(tags=["health"])

SERVICE_NAME = "servicebook-api"


def _pool_response(pool: PoolStatus | None) -> PoolStatusResponse | None:
    if pool is None:
        return None
    return PoolStatusResponse(**pool._asdict())


def _unavailable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Process is up. Touches nothing else."""
    return HealthResponse(status="healthy", service=SERVICE_NAME)


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def health_detailed(request: Request) -> DetailedHealthResponse:
    """Database reachability, pool usage and live event stream subscribers.

    Always 200; callers read ``status`` and the component fields.
    """
    state = request.app.state
    checks = await comprehensive_health_check(state.engine)
    broadcaster = getattr(state, "broadcaster", None)

    return DetailedHealthResponse(
        status="healthy" if checks["database"] else "unhealthy",
        service=SERVICE_NAME,
        database=checks["database"],
        pool=_pool_response(checks["pool"]),
        event_observers=broadcaster.observer_count if broadcaster else 0,
    )


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"description": "Still starting, failed to start, or no database"}},
)
async def ready(request: Request) -> HealthResponse:
    """Ready once startup finished cleanly and the database answers."""
    state = request.app.state

    init_error = getattr(state, "init_error", None)
    if init_error:
        raise _unavailable(f"Initialization failed: {init_error}")
    if not getattr(state, "init_done", False):
        raise _unavailable("Starting")

    try:
        await check_db_connection(state.engine)
    except Exception as e:
        raise _unavailable("Database unavailable") from e

    return HealthResponse(status="ready", service=SERVICE_NAME)
