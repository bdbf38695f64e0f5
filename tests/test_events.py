"""Tests for commit-bound quote event delivery.

Covers:
- Typed and catch-all subscriptions
- Subscriber failure isolation
- Outbox staging, release and discard
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from unittest.mock import AsyncMock, patch

import pytest

from quotedesk import events
from quotedesk.events import QuoteOutbox
from quotedesk.schemas.events import EventType, QuoteEvent


def _event(event_type: EventType = EventType.QUOTE_CREATED) -> QuoteEvent:
    return QuoteEvent(event_type=event_type, quote_id=uuid.uuid4(), quote_number="QT-20261018-001")


@pytest.fixture()
def received(monkeypatch):
    """Fresh subscription table with a catch-all and an expired-only subscriber."""
    monkeypatch.setattr(events, "_handlers", defaultdict(list))
    seen: dict[str, list[QuoteEvent]] = {"all": [], "expired": []}

    async def on_any(event: QuoteEvent) -> None:
        seen["all"].append(event)

    async def on_expired(event: QuoteEvent) -> None:
        seen["expired"].append(event)

    events.subscribe(on_any)
    events.subscribe(on_expired, EventType.QUOTE_EXPIRED)
    return seen


# ── Delivery ─────────────────────────────────────────────────────────


class TestDelivery:
    @pytest.mark.asyncio()
    async def test_typed_subscriber_filters(self, received):
        await events.start_event_bus()
        await events.publish([_event(EventType.QUOTE_CREATED), _event(EventType.QUOTE_EXPIRED)])
        await events.stop_event_bus()

        assert [e.event_type for e in received["all"]] == [EventType.QUOTE_CREATED, EventType.QUOTE_EXPIRED]
        assert [e.event_type for e in received["expired"]] == [EventType.QUOTE_EXPIRED]

    @pytest.mark.asyncio()
    async def test_failing_subscriber_does_not_block_others(self, received):
        async def broken(event: QuoteEvent) -> None:
            raise RuntimeError("smtp down")

        events.subscribe(broken)
        await events.start_event_bus()
        await events.publish([_event()])
        await events.stop_event_bus()

        assert len(received["all"]) == 1

    @pytest.mark.asyncio()
    async def test_publish_starts_worker_on_demand(self, received):
        await events.publish([_event(EventType.QUOTE_VIEWED)])
        await events.stop_event_bus()

        assert [e.event_type for e in received["all"]] == [EventType.QUOTE_VIEWED]


# ── Outbox ───────────────────────────────────────────────────────────


class TestQuoteOutbox:
    @pytest.mark.asyncio()
    async def test_release_publishes_staged_batch_once(self):
        outbox = QuoteOutbox()
        first, second = _event(), _event(EventType.QUOTE_REVISED)
        outbox.stage(first)
        outbox.stage(second)

        with patch("quotedesk.events.publish", new_callable=AsyncMock) as mock_publish:
            assert await outbox.release() == 2
            assert await outbox.release() == 0

        mock_publish.assert_awaited_once_with([first, second])
        assert outbox.pending == ()

    @pytest.mark.asyncio()
    async def test_discard_drops_staged_events(self):
        outbox = QuoteOutbox()
        outbox.stage(_event())

        assert outbox.discard() == 1
        with patch("quotedesk.events.publish", new_callable=AsyncMock) as mock_publish:
            assert await outbox.release() == 0
        mock_publish.assert_not_awaited()


class TestQuoteEvent:
    def test_defaults(self):
        event = QuoteEvent(event_type=EventType.SYSTEM_MAINTENANCE)
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None
        assert event.data == {}
