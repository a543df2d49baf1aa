"""In-process fan-out of domain events to connected observers.

Best effort only: no persistence, no replay, no delivery guarantee. Each
observer owns a bounded queue; publish() enqueues without waiting, so a slow
or stalled observer only loses its own events and never holds up the
publisher or the other observers.

One EventBroadcaster is created per process (held on ``app.state``) and
handed to the services that emit events. Tests create as many independent
instances as they need.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

EVENT_WELCOME = "welcome"
EVENT_JOB_CREATED = "job.created"
EVENT_JOB_UPDATED = "job.updated"
EVENT_INVOICE_CREATED = "invoice.created"
EVENT_PAYMENT_CREATED = "payment.created"

DOMAIN_EVENT_TYPES = frozenset(
    {
        EVENT_JOB_CREATED,
        EVENT_JOB_UPDATED,
        EVENT_INVOICE_CREATED,
        EVENT_PAYMENT_CREATED,
    }
)

WELCOME_MESSAGE = "Connected to ServiceBook real-time updates"

_DEFAULT_QUEUE_SIZE = 100


@dataclass(frozen=True)
class DomainEvent:
    """An event as relayed to observers: a type discriminator plus payload."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def welcome_event() -> DomainEvent:
    return DomainEvent(type=EVENT_WELCOME, payload={"message": WELCOME_MESSAGE})


class Observer:
    """A registered receiver of events.

    Consume with ``await observer.get()`` or ``async for event in observer``.
    """

    def __init__(self, observer_id: int, queue_size: int) -> None:
        self.id = observer_id
        self._queue: asyncio.Queue[DomainEvent] = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def deliver(self, event: DomainEvent) -> bool:
        """Enqueue without blocking. Returns False if the event was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def close(self) -> None:
        self._closed = True

    async def get(self) -> DomainEvent:
        return await self._queue.get()

    def get_nowait(self) -> DomainEvent:
        """Raises asyncio.QueueEmpty when nothing is pending."""
        return self._queue.get_nowait()

    def __aiter__(self) -> Observer:
        return self

    async def __anext__(self) -> DomainEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()


class EventBroadcaster:
    """Publish/subscribe registry for domain events."""

    def __init__(self, queue_size: int = _DEFAULT_QUEUE_SIZE) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._queue_size = queue_size
        self._observers: dict[int, Observer] = {}
        # Guards _observers; publish() iterates a snapshot taken under it
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def subscribe(self) -> Observer:
        """Register a new observer.

        The welcome event is queued before registration, so it is always the
        first thing the observer receives.
        """
        observer = Observer(next(self._ids), self._queue_size)
        observer.deliver(welcome_event())
        with self._lock:
            self._observers[observer.id] = observer
        logger.info(
            "events.observer.subscribed",
            extra={"observer_id": observer.id, "observer_count": self.observer_count},
        )
        return observer

    def unsubscribe(self, observer: Observer) -> None:
        """Close and remove an observer. Safe to call more than once."""
        observer.close()
        with self._lock:
            removed = self._observers.pop(observer.id, None)
        if removed is not None:
            logger.info(
                "events.observer.unsubscribed",
                extra={"observer_id": observer.id, "dropped": observer.dropped},
            )

    def publish(self, event: DomainEvent) -> int:
        """Deliver an event to every currently registered, open observer.

        Never blocks and never raises for delivery problems; a failure for
        one observer is logged and the rest still receive the event.

        Returns:
            Number of observers the event was queued for.
        """
        if event.type not in DOMAIN_EVENT_TYPES:
            logger.warning("events.type.unknown", extra={"event_type": event.type})

        with self._lock:
            snapshot = list(self._observers.values())

        delivered = 0
        for observer in snapshot:
            if observer.closed:
                continue
            try:
                if observer.deliver(event):
                    delivered += 1
                else:
                    logger.warning(
                        "events.delivery.dropped",
                        extra={
                            "observer_id": observer.id,
                            "event_type": event.type,
                            "dropped": observer.dropped,
                        },
                    )
            except Exception:
                logger.warning(
                    "events.delivery.failed",
                    extra={"observer_id": observer.id, "event_type": event.type},
                    exc_info=True,
                )

        logger.debug(
            "events.published",
            extra={
                "event_type": event.type,
                "delivered": delivered,
                "observers": len(snapshot),
            },
        )
        return delivered

    def close(self) -> None:
        """Close every observer, e.g. at shutdown."""
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()
        for observer in observers:
            observer.close()
