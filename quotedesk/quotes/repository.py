"""Quote persistence — maps QuoteDocument to the ``quotes`` table.

``save`` is the single write path: it runs the lifecycle's persist
preparation (quote number, pricing, workflow dates, expiry), re-validates
the whole document, then inserts or updates the row.

Write conflicts:
- A generated quote number that collides is regenerated up to
  ``settings.quotes.quote_number_max_attempts`` times inside a savepoint;
  a caller-supplied number that collides fails immediately.
- A document whose ``version_id`` is older than the stored row, or a row
  updated by another transaction between load and flush, raises
  ConcurrentModificationError.

The list queries never raise for "no results"; ``get`` raises
QuoteNotFoundError.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from pydantic import ValidationError
from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from quotedesk.config import settings
from quotedesk.errors import (
    ConcurrentModificationError,
    DuplicateQuoteNumberError,
    QuoteNotFoundError,
    QuoteValidationError,
)
from quotedesk.models.enums import QuoteStatus
from quotedesk.models.quote import QUOTE_NUMBER_CONSTRAINT, Quote
from quotedesk.models.service import Service
from quotedesk.quotes.lifecycle import QuoteLifecycle
from quotedesk.schemas.quote import (
    CustomerProfile,
    ProviderProfile,
    QueryOptions,
    QuoteDocument,
    QuoteListing,
)

logger = logging.getLogger(__name__)

# Quotes in these statuses are finished and never swept for expiry.
FINALIZED_STATUSES: tuple[str, ...] = (
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.REJECTED.value,
    QuoteStatus.EXPIRED.value,
    QuoteStatus.CANCELLED.value,
    QuoteStatus.CONVERTED_TO_BOOKING.value,
)

SORT_COLUMNS = {
    "created_at": Quote.created_at,
    "updated_at": Quote.updated_at,
    "valid_until": Quote.valid_until,
    "final_total": Quote.final_total,
    "status": Quote.status,
    "quote_number": Quote.quote_number,
}


# ── Row mapping ──────────────────────────────────────────────────────


def document_to_row(doc: QuoteDocument, row: Quote | None = None) -> Quote:
    """Copy a persisted-ready document onto a (new or existing) Quote row."""
    row = row if row is not None else Quote()
    if doc.id is not None:
        row.id = doc.id

    data = doc.model_dump(mode="json")
    terms = {k: v for k, v in data["terms"].items() if k != "valid_until"}
    service_details = {
        k: v for k, v in data["service_details"].items() if k not in ("service_id", "category_id")
    }

    row.quote_number = doc.quote_number
    row.title = doc.title
    row.description = doc.description
    row.customer_user_id = doc.customer.user_id
    row.customer_contact = data["customer"]["contact_info"]
    row.provider_id = doc.service_provider.provider_id
    row.provider_snapshot = {
        "business_name": data["service_provider"]["business_name"],
        "contact_info": data["service_provider"]["contact_info"],
    }
    row.service_id = doc.service_details.service_id
    row.category_id = doc.service_details.category_id
    row.service_details = service_details
    row.service_location = data["service_location"]
    row.pricing = data["pricing"]
    row.final_total = doc.pricing.final_total
    row.currency = doc.pricing.currency
    row.valid_until = doc.terms.valid_until
    row.timeline = data["timeline"]
    row.terms = terms
    row.status = doc.status.value
    row.workflow = data["workflow"]
    row.customer_response = data["customer_response"]
    row.communications = data["communications"]
    row.attachments = data["attachments"]
    row.analytics = data["analytics"]
    row.competitive = data["competitive"]
    row.internal_notes = data["internal_notes"]
    row.related_booking_id = doc.related_booking_id
    row.original_quote_id = doc.original_quote_id
    return row


def row_to_document(row: Quote) -> QuoteDocument:
    """Rebuild the QuoteDocument stored in a Quote row."""
    return QuoteDocument.model_validate({
        "id": row.id,
        "quote_number": row.quote_number,
        "title": row.title,
        "description": row.description,
        "customer": {"user_id": row.customer_user_id, "contact_info": row.customer_contact or {}},
        "service_provider": {"provider_id": row.provider_id, **(row.provider_snapshot or {})},
        "service_details": {
            "service_id": row.service_id,
            "category_id": row.category_id,
            **(row.service_details or {}),
        },
        "service_location": row.service_location,
        "pricing": row.pricing,
        "timeline": row.timeline or {},
        "terms": {**(row.terms or {}), "valid_until": row.valid_until},
        "status": row.status,
        "workflow": row.workflow or {},
        "customer_response": row.customer_response,
        "communications": row.communications or [],
        "attachments": row.attachments or [],
        "analytics": row.analytics or {},
        "competitive": row.competitive,
        "internal_notes": row.internal_notes or [],
        "related_booking_id": row.related_booking_id,
        "original_quote_id": row.original_quote_id,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "version_id": row.version_id,
    })


def revalidate(doc: QuoteDocument) -> QuoteDocument:
    """Run full validation over a document that may have been edited in place."""
    try:
        return QuoteDocument.model_validate(doc.model_dump(by_alias=False))
    except ValidationError as exc:
        raise QuoteValidationError(
            f"Invalid quote: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False),
        ) from exc


def _is_quote_number_conflict(exc: IntegrityError) -> bool:
    return QUOTE_NUMBER_CONSTRAINT in str(exc.orig)


# ── Query builders ───────────────────────────────────────────────────


def _paginate(stmt: Select[Any], options: QueryOptions) -> Select[Any]:
    limit = min(options.limit, settings.quotes.max_page_size)
    column = SORT_COLUMNS[options.sort_by]
    order = column.desc() if options.sort_order == "desc" else column.asc()
    # Tie-break on id so pagination is stable
    return stmt.order_by(order, Quote.id).offset(options.skip).limit(limit)


def provider_quotes_query(
    provider_id: uuid.UUID,
    status: QuoteStatus | None,
    options: QueryOptions,
) -> Select[Any]:
    """Quotes for a provider, joined with customer contact and service/category names."""
    stmt = (
        select(Quote)
        .where(Quote.provider_id == provider_id)
        .options(
            selectinload(Quote.customer),
            selectinload(Quote.service).selectinload(Service.category),
            selectinload(Quote.category),
        )
    )
    if status is not None:
        stmt = stmt.where(Quote.status == status.value)
    return _paginate(stmt, options)


def customer_quotes_query(
    user_id: uuid.UUID,
    status: QuoteStatus | None,
    options: QueryOptions,
) -> Select[Any]:
    """Quotes for a customer, joined with the full provider record and service/category names."""
    stmt = (
        select(Quote)
        .where(Quote.customer_user_id == user_id)
        .options(
            selectinload(Quote.provider),
            selectinload(Quote.service).selectinload(Service.category),
            selectinload(Quote.category),
        )
    )
    if status is not None:
        stmt = stmt.where(Quote.status == status.value)
    return _paginate(stmt, options)


def expired_quotes_query(now: Any) -> Select[Any]:
    """Quotes past valid_until that have not been finalized."""
    return (
        select(Quote)
        .where(
            Quote.valid_until < now,
            Quote.status.not_in(FINALIZED_STATUSES),
        )
        .order_by(Quote.valid_until.asc())
    )


def _listing(row: Quote, *, with_customer: bool, with_provider: bool) -> QuoteListing:
    service = row.service
    category = row.category or (service.category if service is not None else None)
    return QuoteListing(
        quote=row_to_document(row),
        customer=(
            CustomerProfile.model_validate(row.customer)
            if with_customer and row.customer is not None
            else None
        ),
        provider=(
            ProviderProfile.model_validate(row.provider)
            if with_provider and row.provider is not None
            else None
        ),
        service_name=service.name if service is not None else None,
        category_name=category.name if category is not None else None,
    )


# ── Repository ───────────────────────────────────────────────────────


class QuoteRepository:
    """Reads and writes quotes within one AsyncSession."""

    def __init__(self, db: AsyncSession, lifecycle: QuoteLifecycle | None = None) -> None:
        self.db = db
        self.lifecycle = lifecycle or QuoteLifecycle()

    async def _load_row(self, quote_id: uuid.UUID) -> Quote:
        result = await self.db.execute(select(Quote).where(Quote.id == quote_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise QuoteNotFoundError(quote_id)
        return row

    async def get(self, quote_id: uuid.UUID) -> QuoteDocument:
        """Load a quote by id. Raises QuoteNotFoundError if missing."""
        return row_to_document(await self._load_row(quote_id))

    async def get_by_number(self, quote_number: str) -> QuoteDocument:
        result = await self.db.execute(select(Quote).where(Quote.quote_number == quote_number))
        row = result.scalar_one_or_none()
        if row is None:
            raise QuoteNotFoundError(quote_number)
        return row_to_document(row)

    async def save(self, quote: QuoteDocument) -> QuoteDocument:
        """Persist a quote (create when ``quote.id`` is None, else update).

        Returns:
            The stored document, with derived fields, id, timestamps and
            version populated.
        """
        row: Quote | None = None
        previous_status: QuoteStatus | None = None
        if quote.id is not None:
            row = await self._load_row(quote.id)
            if quote.version_id is not None and quote.version_id != row.version_id:
                raise ConcurrentModificationError(quote.id)
            previous_status = QuoteStatus(row.status)

        generated_number = not quote.quote_number
        self.lifecycle.prepare_for_persist(quote, previous_status=previous_status)
        doc = revalidate(quote)

        max_attempts = settings.quotes.quote_number_max_attempts if generated_number else 1
        for attempt in range(1, max_attempts + 1):
            target = document_to_row(doc, row)
            try:
                async with self.db.begin_nested():
                    self.db.add(target)
                    await self.db.flush()
            except IntegrityError as exc:
                if not _is_quote_number_conflict(exc):
                    raise
                if attempt == max_attempts:
                    raise DuplicateQuoteNumberError(doc.quote_number or "") from exc
                logger.warning(
                    "Quote number collision on %s (attempt %d/%d), regenerating",
                    doc.quote_number,
                    attempt,
                    max_attempts,
                )
                self.lifecycle.regenerate_quote_number(doc)
                continue
            except StaleDataError as exc:
                raise ConcurrentModificationError(doc.id) from exc
            break

        await self.db.refresh(target)
        stored = row_to_document(target)
        logger.info(
            "Quote saved: %s id=%s status=%s total=%s",
            stored.quote_number,
            stored.id,
            stored.status.value,
            stored.pricing.final_total,
        )
        return stored

    async def find_by_provider(
        self,
        provider_id: uuid.UUID,
        status: QuoteStatus | None = None,
        options: QueryOptions | None = None,
    ) -> list[QuoteListing]:
        """Provider's quotes, newest first by default, with customer and service names."""
        stmt = provider_quotes_query(provider_id, status, options or QueryOptions())
        result = await self.db.execute(stmt)
        return [
            _listing(row, with_customer=True, with_provider=False)
            for row in result.scalars().all()
        ]

    async def find_by_customer(
        self,
        user_id: uuid.UUID,
        status: QuoteStatus | None = None,
        options: QueryOptions | None = None,
    ) -> list[QuoteListing]:
        """Customer's quotes, newest first by default, with provider and service names."""
        stmt = customer_quotes_query(user_id, status, options or QueryOptions())
        result = await self.db.execute(stmt)
        return [
            _listing(row, with_customer=False, with_provider=True)
            for row in result.scalars().all()
        ]

    async def get_expired(self) -> list[QuoteDocument]:
        """Quotes past their expiry that are not yet expired or otherwise finalized."""
        result = await self.db.execute(expired_quotes_query(self.lifecycle.now()))
        return [row_to_document(row) for row in result.scalars().all()]
