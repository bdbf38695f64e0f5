"""Quote event delivery, bound to the database commit.

Quote operations never publish directly. ``QuoteService`` stages each event
in its ``QuoteOutbox``; ``QuoteService.commit`` commits the session and only
then releases the batch to ``publish``. A unit of work that rolls back
discards its staged events, so subscribers never hear about a change that
was not stored.

Delivery is asynchronous: ``publish`` enqueues and a background worker fans
each event out to the handlers registered for its type (or for all types).

Usage:
    async def notify_customer(event: QuoteEvent) -> None: ...

    subscribe(notify_customer, EventType.QUOTE_STATUS_CHANGED, EventType.QUOTE_REVISED)
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable

from quotedesk.schemas.events import EventType, QuoteEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[QuoteEvent], Awaitable[None]]

# None collects handlers that receive every event type
_handlers: defaultdict[EventType | None, list[EventHandler]] = defaultdict(list)
_queue: asyncio.Queue[QuoteEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


def subscribe(handler: EventHandler, *event_types: EventType) -> None:
    """Register ``handler`` for ``event_types``, or for every event when none are given."""
    for event_type in event_types or (None,):
        _handlers[event_type].append(handler)
    logger.info(
        "Quote event subscriber %s registered for %s",
        handler.__name__,
        [t.value for t in event_types] or "all events",
    )


class QuoteOutbox:
    """Events staged by one unit of work, released only after it commits."""

    def __init__(self) -> None:
        self._pending: list[QuoteEvent] = []

    @property
    def pending(self) -> tuple[QuoteEvent, ...]:
        return tuple(self._pending)

    def stage(self, event: QuoteEvent) -> None:
        self._pending.append(event)
        logger.debug("Staged %s for %s", event.event_type.value, event.quote_number)

    def discard(self) -> int:
        dropped = len(self._pending)
        self._pending.clear()
        if dropped:
            logger.info("Discarded %d quote events from a rolled-back unit of work", dropped)
        return dropped

    async def release(self) -> int:
        """Publish everything staged so far; call only after a successful commit."""
        batch, self._pending = self._pending, []
        if batch:
            await publish(batch)
        return len(batch)


async def publish(events: Iterable[QuoteEvent]) -> None:
    """Queue committed events for delivery."""
    queue = _ensure_worker()
    for event in events:
        queue.put_nowait(event)


def _ensure_worker() -> asyncio.Queue[QuoteEvent]:
    global _queue, _worker_task
    if _queue is None:
        _queue = asyncio.Queue()
    if _worker_task is None or _worker_task.done():
        _worker_task = asyncio.create_task(_drain(_queue))
    return _queue


async def _drain(queue: asyncio.Queue[QuoteEvent]) -> None:
    while True:
        event = await queue.get()
        try:
            await _deliver(event)
        except Exception:
            logger.exception("Delivery of %s failed", event.event_type.value)
        finally:
            queue.task_done()


async def _deliver(event: QuoteEvent) -> None:
    handlers = [*_handlers[None], *_handlers[event.event_type]]
    if not handlers:
        return

    # One failing subscriber does not stop delivery to the rest
    results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
    for handler, result in zip(handlers, results):
        if isinstance(result, Exception):
            logger.error(
                "Subscriber %s failed on %s for quote %s: %s",
                handler.__name__,
                event.event_type.value,
                event.quote_number,
                result,
            )


async def start_event_bus() -> None:
    """Start the delivery worker. Called from the FastAPI lifespan."""
    _ensure_worker()
    logger.info("Quote event bus started (%d subscriptions)", sum(len(v) for v in _handlers.values()))


async def stop_event_bus() -> None:
    """Deliver what is already queued, then stop the worker."""
    global _queue, _worker_task
    if _queue is not None:
        await _queue.join()
    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass
    _queue = None
    _worker_task = None
    logger.info("Quote event bus stopped")
