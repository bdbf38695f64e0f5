"""Quote expiration sweep — periodic job that marks overdue quotes expired.

This is the only expiration path: there is no TTL index deleting quote
rows. A quote past ``valid_until`` that is not yet finalized (accepted,
rejected, expired, cancelled, converted) is moved to ``expired`` with its
``expired_date`` stamped, and a ``quote.expired`` event is published for each once the sweep
commits.

Started from the FastAPI lifespan via ``run_expiration_loop``.
"""

from __future__ import annotations

import asyncio
import logging

from quotedesk.db.engine import async_session_factory
from quotedesk.events import publish
from quotedesk.quotes.lifecycle import QuoteLifecycle
from quotedesk.quotes.service import QuoteService
from quotedesk.schemas.events import EventType, QuoteEvent

logger = logging.getLogger(__name__)


async def enforce_quote_expiration(lifecycle: QuoteLifecycle | None = None) -> dict[str, int]:
    """Run one expiration sweep. Returns a summary dict.

    Safe to call on every schedule tick; only unfinalized overdue quotes
    are selected, so running twice is harmless.
    """
    summary: dict[str, int] = {"quotes_expired": 0}

    try:
        async with async_session_factory() as db:
            service = QuoteService(db, lifecycle)
            try:
                expired = await service.expire_overdue()
                await service.commit()
            except Exception:
                await service.rollback()
                raise
            summary["quotes_expired"] = len(expired)
    except Exception:
        logger.exception("Quote expiration sweep failed")
        return summary

    await publish([QuoteEvent(
        event_type=EventType.SYSTEM_MAINTENANCE,
        actor="system",
        data={"action": "quote_expiration", **summary},
        source_module="quotes.expiration",
    )])

    logger.info("Expiration sweep complete: expired=%d", summary["quotes_expired"])
    return summary


async def run_expiration_loop(interval_seconds: int) -> None:
    """Run the sweep every ``interval_seconds`` until cancelled."""
    logger.info("Expiration loop started (interval=%ds)", interval_seconds)
    while True:
        await enforce_quote_expiration()
        try:
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("Expiration loop stopped")
            raise
