"""Quote lifecycle — the stateless domain service behind every quote mutation.

The QuoteDocument is a plain record; all derivation and workflow rules live
here so they can be unit tested without a database:

- prepare_for_persist: quote number, pricing, workflow timestamps, expiry
- transition: status changes validated against the transition map
- add_revision / add_communication / add_internal_note / add_attachment
- record_view / record_response: customer-side activity and analytics
- is_expired / extend_expiry and the derived read-only views

"Now" always comes from the injected clock.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from quotedesk.config import settings
from quotedesk.errors import InvalidStatusTransitionError, QuoteValidationError
from quotedesk.models.enums import (
    CommunicationSender,
    CommunicationType,
    QuoteStatus,
    ResponseType,
)
from quotedesk.pricing.calculator import calculate_pricing
from quotedesk.quotes.clock import Clock, utc_now
from quotedesk.quotes.numbering import generate_quote_number
from quotedesk.quotes.states import WORKFLOW_DATE_FIELDS, can_transition
from quotedesk.schemas.quote import (
    Attachment,
    Communication,
    CustomerResponse,
    InternalNote,
    QuoteDocument,
    RevisionEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Customer response → status the quote moves to.
RESPONSE_STATUS: dict[ResponseType, QuoteStatus] = {
    ResponseType.PENDING: QuoteStatus.UNDER_REVIEW,
    ResponseType.ACCEPTED: QuoteStatus.ACCEPTED,
    ResponseType.REJECTED: QuoteStatus.REJECTED,
    ResponseType.COUNTER_OFFER: QuoteStatus.NEGOTIATING,
    ResponseType.NEEDS_REVISION: QuoteStatus.UNDER_REVIEW,
}


def build_model(model_cls: type[ModelT], **data: Any) -> ModelT:
    """Construct a schema model, converting pydantic errors to QuoteValidationError."""
    try:
        return model_cls(**data)
    except ValidationError as exc:
        raise QuoteValidationError(
            f"Invalid {model_cls.__name__}: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False),
        ) from exc


def _elapsed_ms(start: datetime | None, end: datetime) -> int | None:
    if start is None:
        return None
    return int((end - start).total_seconds() * 1000)


class QuoteLifecycle:
    """Applies lifecycle rules to QuoteDocument instances in place."""

    def __init__(
        self,
        clock: Clock = utc_now,
        validity_days: int | None = None,
        number_prefix: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.clock = clock
        self.validity_days = (
            validity_days if validity_days is not None else settings.quotes.quote_validity_days
        )
        self.number_prefix = number_prefix or settings.quotes.quote_number_prefix
        self.rng = rng

    def now(self) -> datetime:
        return self.clock()

    # ── Persist ───────────────────────────────────────────────────────

    def prepare_for_persist(
        self,
        quote: QuoteDocument,
        previous_status: QuoteStatus | None = None,
    ) -> QuoteDocument:
        """Bring every derived field in line with the inputs before a write.

        Steps, in order: generate a quote number if missing, recompute
        pricing, stamp workflow dates for the current status, default the
        expiry date.

        Args:
            quote: The quote about to be persisted (mutated in place).
            previous_status: Stored status for updates; None on create.

        Returns:
            The same quote instance.

        Raises:
            InvalidStatusTransitionError: If the status moved along an edge
                the transition map does not allow.
            QuoteValidationError: If the pricing totals would be negative.
        """
        now = self.now()

        if previous_status is not None and not can_transition(previous_status, quote.status):
            raise InvalidStatusTransitionError(previous_status.value, quote.status.value)

        if not quote.quote_number:
            self.regenerate_quote_number(quote)

        quote.pricing = calculate_pricing(quote.pricing)
        logger.debug(
            "Pricing recomputed for %s: subtotal=%s final_total=%s",
            quote.quote_number,
            quote.pricing.subtotal,
            quote.pricing.final_total,
        )

        self._stamp_workflow(quote, now)

        if quote.terms.valid_until is None:
            quote.terms.valid_until = now + timedelta(days=self.validity_days)

        return quote

    def regenerate_quote_number(self, quote: QuoteDocument) -> str:
        quote.quote_number = generate_quote_number(self.now(), self.number_prefix, self.rng)
        return quote.quote_number

    def _stamp_workflow(self, quote: QuoteDocument, now: datetime) -> None:
        """Set the first-entry date for the current status; always refresh last_modified."""
        field = WORKFLOW_DATE_FIELDS.get(quote.status)
        if field is not None and getattr(quote.workflow, field) is None:
            setattr(quote.workflow, field, now)
        quote.workflow.last_modified = now

    # ── Status ────────────────────────────────────────────────────────

    def transition(self, quote: QuoteDocument, new_status: QuoteStatus) -> QuoteStatus:
        """Move ``quote`` to ``new_status``; returns the previous status."""
        old_status = quote.status
        if not can_transition(old_status, new_status):
            raise InvalidStatusTransitionError(old_status.value, new_status.value)
        quote.status = new_status
        if old_status != new_status:
            logger.info(
                "Quote status: %s --> %s (quote=%s)",
                old_status.value,
                new_status.value,
                quote.quote_number,
            )
        return old_status

    # ── History ───────────────────────────────────────────────────────

    def add_revision(
        self,
        quote: QuoteDocument,
        changes: str | None,
        modified_by: str | None,
        reason: str | None = None,
    ) -> RevisionEntry:
        """Append a revision entry and mark the quote revised.

        Revisions are refused on terminal quotes other than expired ones.
        """
        if not can_transition(quote.status, QuoteStatus.REVISED):
            raise InvalidStatusTransitionError(quote.status.value, QuoteStatus.REVISED.value)

        entry = build_model(
            RevisionEntry,
            version=len(quote.workflow.revision_history) + 1,
            changes=changes,
            modified_by=modified_by,
            reason=reason,
            modified_date=self.now(),
        )
        quote.workflow.revision_history.append(entry)
        quote.analytics.revision_count += 1
        quote.status = QuoteStatus.REVISED

        logger.info("Revision v%d added to %s by %s", entry.version, quote.quote_number, modified_by)
        return entry

    def add_communication(
        self,
        quote: QuoteDocument,
        sender: CommunicationSender | str,
        message: str,
        type: CommunicationType | str = CommunicationType.MESSAGE,
        attachments: list[str] | None = None,
    ) -> Communication:
        entry = build_model(
            Communication,
            sender=sender,
            message=message,
            type=type,
            attachments=list(attachments or []),
            timestamp=self.now(),
        )
        quote.communications.append(entry)
        return entry

    def add_internal_note(
        self,
        quote: QuoteDocument,
        note: str,
        added_by: uuid.UUID | None = None,
        is_private: bool = True,
    ) -> InternalNote:
        entry = build_model(
            InternalNote,
            note=note,
            added_by=added_by,
            is_private=is_private,
            added_date=self.now(),
        )
        quote.internal_notes.append(entry)
        return entry

    def add_attachment(self, quote: QuoteDocument, **data: Any) -> Attachment:
        data.setdefault("uploaded_date", self.now())
        attachment = build_model(Attachment, **data)
        quote.attachments.append(attachment)
        return attachment

    # ── Customer activity ─────────────────────────────────────────────

    def record_view(self, quote: QuoteDocument) -> None:
        """Count a customer view; the first view of a sent quote moves it to viewed."""
        now = self.now()
        quote.analytics.view_count += 1
        if quote.analytics.time_to_view is None:
            quote.analytics.time_to_view = _elapsed_ms(quote.workflow.sent_date, now)
        if quote.status == QuoteStatus.SENT:
            self.transition(quote, QuoteStatus.VIEWED)

    def record_response(self, quote: QuoteDocument, response: CustomerResponse) -> QuoteStatus:
        """Store the customer's response and move the quote to the matching status."""
        new_status = RESPONSE_STATUS[response.response]
        self.transition(quote, new_status)
        quote.customer_response = response
        if quote.analytics.time_to_respond is None:
            quote.analytics.time_to_respond = _elapsed_ms(quote.workflow.sent_date, self.now())
        return new_status

    # ── Expiry ────────────────────────────────────────────────────────

    def is_expired(self, quote: QuoteDocument) -> bool:
        """True once now is past valid_until. Does not change the status."""
        if quote.terms.valid_until is None:
            return False
        return self.now() > quote.terms.valid_until

    def extend_expiry(self, quote: QuoteDocument, days: int) -> datetime:
        """Push valid_until out by ``days`` calendar days from its current value."""
        if days <= 0:
            raise QuoteValidationError(f"days must be a positive integer, got {days}")
        if quote.terms.valid_until is None:
            raise QuoteValidationError("Quote has no expiry date to extend")
        quote.terms.valid_until = quote.terms.valid_until + timedelta(days=days)
        logger.info(
            "Expiry of %s extended by %d days to %s",
            quote.quote_number,
            days,
            quote.terms.valid_until.isoformat(),
        )
        return quote.terms.valid_until

    # ── Derived views ─────────────────────────────────────────────────

    def days_until_expiration(self, quote: QuoteDocument) -> int | None:
        return quote.days_until_expiration(self.now())

    def age_in_days(self, quote: QuoteDocument) -> int:
        return quote.age_in_days(self.now())

    @staticmethod
    def profit_margin(quote: QuoteDocument) -> Decimal:
        return quote.profit_margin
