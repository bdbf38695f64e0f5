"""Quote service — the operations the API layer calls.

Each method loads a quote, applies one lifecycle rule, persists through the
repository and stages a QuoteEvent in the service outbox. The caller ends the
unit of work with ``commit`` (events are published only after the database
commit succeeds) or ``rollback`` (staged events are dropped).
``convert_to_booking`` also wraps its two writes in a savepoint so the
booking row and the quote flip succeed or fail together.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.errors import (
    ConcurrentModificationError,
    InvalidStatusTransitionError,
    QuoteValidationError,
)
from quotedesk.events import QuoteOutbox
from quotedesk.models.booking import Booking
from quotedesk.models.enums import (
    BookingStatus,
    CommunicationSender,
    CommunicationType,
    QuoteStatus,
)
from quotedesk.quotes.lifecycle import QuoteLifecycle, build_model
from quotedesk.quotes.repository import QuoteRepository
from quotedesk.schemas.events import EventType, QuoteEvent
from quotedesk.schemas.quote import (
    Communication,
    CustomerResponse,
    QueryOptions,
    QuoteDocument,
    QuoteListing,
    RevisionEntry,
)

logger = logging.getLogger(__name__)

# Input sections a provider may edit on an existing quote. Identity, parties,
# workflow and history are managed by the lifecycle operations instead.
EDITABLE_SECTIONS = frozenset({
    "title",
    "description",
    "service_details",
    "service_location",
    "pricing",
    "timeline",
    "terms",
    "attachments",
    "competitive",
    "analytics",
})

# Analytics fields a provider may set. Counters and timings are maintained by
# the lifecycle and stay in step with the revision history and views.
EDITABLE_ANALYTICS_FIELDS = frozenset({
    "competitor_quotes",
    "conversion_probability",
    "win_reason",
    "loss_reason",
})


def _merge_analytics(current: dict[str, Any], edits: Any) -> dict[str, Any]:
    if not isinstance(edits, dict):
        raise QuoteValidationError("analytics must be an object")
    locked = set(edits) - EDITABLE_ANALYTICS_FIELDS
    if locked:
        raise QuoteValidationError(f"Analytics fields not editable: {sorted(locked)}")
    return {**current, **edits}


class QuoteService:
    """Quote operations bound to one database session."""

    def __init__(self, db: AsyncSession, lifecycle: QuoteLifecycle | None = None) -> None:
        self.db = db
        self.lifecycle = lifecycle or QuoteLifecycle()
        self.repository = QuoteRepository(db, self.lifecycle)
        self.outbox = QuoteOutbox()

    def _stage(
        self,
        event_type: EventType,
        quote: QuoteDocument,
        actor: str | None = None,
        **data: Any,
    ) -> None:
        self.outbox.stage(QuoteEvent(
            event_type=event_type,
            quote_id=quote.id,
            quote_number=quote.quote_number,
            actor=actor,
            data=data,
            source_module="quotes.service",
        ))

    async def commit(self) -> int:
        """Commit the session, then publish the events staged since the last commit.

        Returns the number of events published.
        """
        await self.db.commit()
        return await self.outbox.release()

    async def rollback(self) -> None:
        """Roll back the session and drop the staged events."""
        await self.db.rollback()
        self.outbox.discard()

    # ── Create / update ───────────────────────────────────────────────

    async def create_quote(self, data: dict[str, Any]) -> QuoteDocument:
        """Validate and persist a new quote (defaults to draft)."""
        try:
            quote = QuoteDocument.model_validate(data)
        except ValidationError as exc:
            raise QuoteValidationError(
                f"Invalid quote: {exc.error_count()} error(s)",
                errors=exc.errors(include_url=False),
            ) from exc
        if quote.id is not None:
            raise QuoteValidationError("New quotes must not carry an id")

        stored = await self.repository.save(quote)
        self._stage(
            EventType.QUOTE_CREATED,
            stored,
            actor="provider",
            customer_user_id=str(stored.customer.user_id),
            provider_id=str(stored.service_provider.provider_id),
            final_total=str(stored.pricing.final_total),
        )
        return stored

    async def update_quote(
        self,
        quote_id: uuid.UUID,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> QuoteDocument:
        """Apply provider edits to the editable sections and re-persist.

        Derived pricing values in ``changes`` are ignored; they are
        recomputed from the inputs on save. Pass ``expected_version`` (the
        version the editor loaded) to reject edits made against a stale copy.
        """
        unknown = set(changes) - EDITABLE_SECTIONS
        if unknown:
            raise QuoteValidationError(f"Fields not editable: {sorted(unknown)}")

        quote = await self.repository.get(quote_id)
        if expected_version is not None and expected_version != quote.version_id:
            raise ConcurrentModificationError(quote_id)
        merged = quote.model_dump()
        if "analytics" in changes:
            changes = {**changes, "analytics": _merge_analytics(merged["analytics"], changes["analytics"])}
        merged.update(changes)
        try:
            updated = QuoteDocument.model_validate(merged)
        except ValidationError as exc:
            raise QuoteValidationError(
                f"Invalid quote: {exc.error_count()} error(s)",
                errors=exc.errors(include_url=False),
            ) from exc

        stored = await self.repository.save(updated)
        self._stage(
            EventType.QUOTE_UPDATED,
            stored,
            actor="provider",
            sections=sorted(changes),
        )
        return stored

    # ── Status ────────────────────────────────────────────────────────

    async def change_status(
        self,
        quote_id: uuid.UUID,
        new_status: QuoteStatus,
        actor: str | None = None,
    ) -> QuoteDocument:
        quote = await self.repository.get(quote_id)
        old_status = self.lifecycle.transition(quote, new_status)
        stored = await self.repository.save(quote)
        if old_status != new_status:
            self._stage(
                EventType.QUOTE_STATUS_CHANGED,
                stored,
                actor=actor,
                old_status=old_status.value,
                new_status=new_status.value,
            )
        return stored

    async def send_quote(self, quote_id: uuid.UUID) -> QuoteDocument:
        return await self.change_status(quote_id, QuoteStatus.SENT, actor="provider")

    async def cancel_quote(self, quote_id: uuid.UUID) -> QuoteDocument:
        return await self.change_status(quote_id, QuoteStatus.CANCELLED, actor="provider")

    # ── History ───────────────────────────────────────────────────────

    async def add_revision(
        self,
        quote_id: uuid.UUID,
        changes: str | None,
        modified_by: str | None,
        reason: str | None = None,
    ) -> tuple[QuoteDocument, RevisionEntry]:
        quote = await self.repository.get(quote_id)
        old_status = quote.status
        entry = self.lifecycle.add_revision(quote, changes, modified_by, reason)
        stored = await self.repository.save(quote)
        self._stage(
            EventType.QUOTE_REVISED,
            stored,
            actor="provider",
            version=entry.version,
            old_status=old_status.value,
            reason=reason,
        )
        return stored, entry

    async def add_communication(
        self,
        quote_id: uuid.UUID,
        sender: CommunicationSender | str,
        message: str,
        type: CommunicationType | str = CommunicationType.MESSAGE,
        attachments: list[str] | None = None,
    ) -> tuple[QuoteDocument, Communication]:
        quote = await self.repository.get(quote_id)
        entry = self.lifecycle.add_communication(quote, sender, message, type, attachments)
        stored = await self.repository.save(quote)
        self._stage(
            EventType.COMMUNICATION_ADDED,
            stored,
            actor=entry.sender.value,
            type=entry.type.value,
            attachment_count=len(entry.attachments),
        )
        return stored, entry

    async def add_internal_note(
        self,
        quote_id: uuid.UUID,
        note: str,
        added_by: uuid.UUID | None = None,
        is_private: bool = True,
    ) -> QuoteDocument:
        quote = await self.repository.get(quote_id)
        self.lifecycle.add_internal_note(quote, note, added_by, is_private)
        return await self.repository.save(quote)

    # ── Customer activity ─────────────────────────────────────────────

    async def record_view(self, quote_id: uuid.UUID) -> QuoteDocument:
        quote = await self.repository.get(quote_id)
        first_view = quote.analytics.view_count == 0
        self.lifecycle.record_view(quote)
        stored = await self.repository.save(quote)
        if first_view:
            self._stage(
                EventType.QUOTE_VIEWED,
                stored,
                actor="customer",
                time_to_view=stored.analytics.time_to_view,
            )
        return stored

    async def respond(self, quote_id: uuid.UUID, response: dict[str, Any]) -> QuoteDocument:
        """Record the customer's response and move the quote accordingly."""
        quote = await self.repository.get(quote_id)
        old_status = quote.status
        parsed = build_model(CustomerResponse, **response)
        new_status = self.lifecycle.record_response(quote, parsed)
        stored = await self.repository.save(quote)
        self._stage(
            EventType.QUOTE_RESPONDED,
            stored,
            actor="customer",
            response=parsed.response.value,
            old_status=old_status.value,
            new_status=new_status.value,
        )
        return stored

    # ── Expiry ────────────────────────────────────────────────────────

    async def extend_expiry(self, quote_id: uuid.UUID, days: int) -> QuoteDocument:
        quote = await self.repository.get(quote_id)
        new_expiry = self.lifecycle.extend_expiry(quote, days)
        stored = await self.repository.save(quote)
        self._stage(
            EventType.QUOTE_EXPIRY_EXTENDED,
            stored,
            actor="provider",
            days=days,
            valid_until=new_expiry.isoformat(),
        )
        return stored

    async def expire_overdue(self) -> list[QuoteDocument]:
        """Move every overdue, unfinalized quote to expired."""
        expired: list[QuoteDocument] = []
        for quote in await self.repository.get_expired():
            old_status = self.lifecycle.transition(quote, QuoteStatus.EXPIRED)
            stored = await self.repository.save(quote)
            self._stage(
                EventType.QUOTE_EXPIRED,
                stored,
                actor="system",
                old_status=old_status.value,
            )
            expired.append(stored)
        if expired:
            logger.info("Expired %d overdue quotes", len(expired))
        return expired

    # ── Conversion ────────────────────────────────────────────────────

    async def convert_to_booking(
        self,
        quote_id: uuid.UUID,
        scheduled_start: datetime | None = None,
    ) -> tuple[QuoteDocument, Booking]:
        """Create a booking from an accepted quote.

        The booking insert and the quote's move to converted_to_booking run
        in one savepoint; if either fails both are rolled back.
        """
        quote = await self.repository.get(quote_id)
        if quote.status != QuoteStatus.ACCEPTED:
            raise InvalidStatusTransitionError(
                quote.status.value, QuoteStatus.CONVERTED_TO_BOOKING.value
            )
        if self.lifecycle.is_expired(quote):
            raise QuoteValidationError(f"Quote {quote.quote_number} expired before conversion")

        async with self.db.begin_nested():
            booking = Booking(
                quote_id=quote.id,
                customer_user_id=quote.customer.user_id,
                provider_id=quote.service_provider.provider_id,
                service_id=quote.service_details.service_id,
                status=BookingStatus.PENDING.value,
                scheduled_start=scheduled_start or quote.timeline.preferred_start_date,
                total_amount=quote.pricing.final_total,
                currency=quote.pricing.currency,
            )
            self.db.add(booking)
            await self.db.flush()

            self.lifecycle.transition(quote, QuoteStatus.CONVERTED_TO_BOOKING)
            quote.related_booking_id = booking.id
            stored = await self.repository.save(quote)

        self._stage(
            EventType.QUOTE_CONVERTED,
            stored,
            actor="customer",
            booking_id=str(booking.id),
            total_amount=str(booking.total_amount),
        )
        logger.info("Quote %s converted to booking %s", stored.quote_number, booking.id)
        return stored, booking

    # ── Queries ───────────────────────────────────────────────────────

    async def get_quote(self, quote_id: uuid.UUID) -> QuoteDocument:
        return await self.repository.get(quote_id)

    async def find_by_provider(
        self,
        provider_id: uuid.UUID,
        status: QuoteStatus | None = None,
        options: QueryOptions | None = None,
    ) -> list[QuoteListing]:
        return await self.repository.find_by_provider(provider_id, status, options)

    async def find_by_customer(
        self,
        user_id: uuid.UUID,
        status: QuoteStatus | None = None,
        options: QueryOptions | None = None,
    ) -> list[QuoteListing]:
        return await self.repository.find_by_customer(user_id, status, options)
