"""Real-time domain events over Server-Sent Events."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from core.config import get_settings
from services.events_service import DomainEvent, EventBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


def get_broadcaster(request: Request) -> EventBroadcaster:
    """Get the process-wide broadcaster from app state."""
    return request.app.state.broadcaster


Broadcaster = Annotated[EventBroadcaster, Depends(get_broadcaster)]


def format_sse(event: DomainEvent) -> str:
    return f"event: {event.type}\ndata: {event.to_json()}\n\n"


async def sse_event_stream(
    request: Request,
    broadcaster: EventBroadcaster,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Subscribe and relay events until the client goes away.

    The subscription lives only as long as this generator runs, so a
    response torn down before its body is pulled never registers an
    observer. Emits a comment line after ``keepalive_seconds`` of silence
    so proxies keep the connection open.
    """
    observer = broadcaster.subscribe()
    logger.info("events.stream.opened", extra={"observer_id": observer.id})
    try:
        while not observer.closed:
            try:
                event = await asyncio.wait_for(observer.get(), timeout=keepalive_seconds)
            except TimeoutError:
                if await request.is_disconnected():
                    break
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        broadcaster.unsubscribe(observer)
        logger.info("events.stream.closed", extra={"observer_id": observer.id})


@router.get("/stream")
async def stream_events(request: Request, broadcaster: Broadcaster) -> StreamingResponse:
    """Stream job, invoice and payment events.

    The first event is always ``welcome``. Events published before the
    connection was made are never replayed.
    """
    keepalive = get_settings().events_keepalive_seconds

    return StreamingResponse(
        sse_event_stream(request, broadcaster, keepalive),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
