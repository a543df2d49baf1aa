"""Repository utility functions for common database operations."""

import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Threshold for logging slow queries (milliseconds)
SLOW_QUERY_THRESHOLD_MS = 500

P = ParamSpec("P")
R = TypeVar("R")


def log_slow_query(
    operation_name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator to log slow repository operations and errors.

    Logs at WARNING level for queries exceeding SLOW_QUERY_THRESHOLD_MS.
    Logs at ERROR level for exceptions (re-raises after logging).

    Usage:
        @log_slow_query("get_job_by_id")
        async def get_by_id(self, job_id: int) -> Job | None:
            ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "db.query.failed",
                    extra={
                        "db_operation": operation_name,
                        "db_duration_ms": round(duration_ms, 2),
                        "db_error_type": type(e).__name__,
                    },
                )
                raise
            duration_ms = (time.perf_counter() - start_time) * 1000
            if duration_ms > SLOW_QUERY_THRESHOLD_MS:
                logger.warning(
                    "db.query.slow",
                    extra={
                        "db_operation": operation_name,
                        "db_duration_ms": round(duration_ms, 2),
                    },
                )
            return result

        return wrapper

    return decorator


async def insert_on_conflict_do_nothing(
    db: AsyncSession,
    model: type,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Dialect-aware INSERT ... ON CONFLICT DO NOTHING.

    Supports PostgreSQL and SQLite. Falls back to select-then-insert for
    other dialects.

    Returns:
        True if a row was inserted, False if one already existed.
    """
    bind = db.get_bind()
    dialect_name = bind.dialect.name if bind is not None else ""

    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        stmt = pg_insert(model).values(**values)
        stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
        result = await db.execute(stmt)
        return result.rowcount > 0

    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        stmt = sqlite_insert(model).values(**values)
        stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
        result = await db.execute(stmt)
        return result.rowcount > 0

    conditions = [getattr(model, elem) == values[elem] for elem in index_elements]
    existing = await db.execute(select(model).where(and_(*conditions)))
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(model(**values))
    await db.flush()
    return True
