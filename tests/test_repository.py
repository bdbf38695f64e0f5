"""Tests for quote persistence.

Covers:
- Document ↔ row mapping
- Save: create, update, version check, quote number collision retry
- Query builders: expiry selection, provider/customer listings, pagination
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from quotedesk.errors import (
    ConcurrentModificationError,
    DuplicateQuoteNumberError,
    InvalidStatusTransitionError,
    QuoteNotFoundError,
)
from quotedesk.models.enums import QuoteStatus
from quotedesk.models.service import Category, Service
from quotedesk.models.user import User
from quotedesk.quotes.repository import (
    FINALIZED_STATUSES,
    QuoteRepository,
    customer_quotes_query,
    document_to_row,
    expired_quotes_query,
    provider_quotes_query,
    row_to_document,
)
from quotedesk.schemas.quote import QueryOptions
from tests.helpers import NOW, make_lifecycle, make_quote


# ── Helpers ──────────────────────────────────────────────────────────


def _nested_tx() -> MagicMock:
    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=tx)
    tx.__aexit__ = AsyncMock(return_value=False)
    return tx


def _make_db(row=None) -> MagicMock:
    """Session mock: execute() resolves to ``row``; refresh() fills server defaults."""
    db = MagicMock()
    db.begin_nested = MagicMock(side_effect=lambda: _nested_tx())
    db.flush = AsyncMock()

    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    result.scalars.return_value.all.return_value = [row] if row is not None else []
    db.execute = AsyncMock(return_value=result)

    def _refresh(target):
        if target.id is None:
            target.id = uuid.uuid4()
        target.created_at = target.created_at or NOW
        target.updated_at = NOW
        target.version_id = (target.version_id or 0) + 1

    db.refresh = AsyncMock(side_effect=_refresh)
    return db


def _stored_row(**overrides):
    """A Quote row as it looks after being loaded from the database."""
    doc = make_quote(**overrides)
    make_lifecycle().prepare_for_persist(doc)
    row = document_to_row(doc)
    row.id = uuid.uuid4()
    row.created_at = NOW
    row.updated_at = NOW
    row.version_id = 1
    return row


def _integrity_error(constraint: str) -> IntegrityError:
    return IntegrityError(
        "INSERT INTO quotes ...",
        {},
        Exception(f'duplicate key value violates unique constraint "{constraint}"'),
    )


# ── Mapping ──────────────────────────────────────────────────────────


class TestRowMapping:
    def test_round_trip_keeps_document(self):
        doc = make_quote(
            pricing={
                "base_price": {"amount": "100"},
                "discounts": [{"type": "fixed", "value": "10"}],
            },
            communications=[{"from": "customer", "message": "Hi", "timestamp": NOW}],
        )
        make_lifecycle().prepare_for_persist(doc)
        row = document_to_row(doc)
        row.id = uuid.uuid4()
        row.created_at = NOW
        row.updated_at = NOW
        row.version_id = 1

        restored = row_to_document(row)
        assert restored.quote_number == doc.quote_number
        assert restored.pricing.final_total == Decimal("90.00")
        assert restored.pricing.discounts[0].type == "fixed"
        assert restored.terms.valid_until == doc.terms.valid_until
        assert restored.service_details.service_id == doc.service_details.service_id
        assert restored.communications[0].message == "Hi"
        assert restored.version_id == 1

    def test_scalar_columns(self):
        doc = make_quote(status=QuoteStatus.SENT)
        make_lifecycle().prepare_for_persist(doc)
        row = document_to_row(doc)

        assert row.status == "sent"
        assert row.final_total == doc.pricing.final_total
        assert row.valid_until == NOW + timedelta(days=30)
        assert row.customer_user_id == doc.customer.user_id
        assert row.provider_id == doc.service_provider.provider_id
        assert "valid_until" not in row.terms
        assert "service_id" not in row.service_details


# ── Save ─────────────────────────────────────────────────────────────


class TestSave:
    @pytest.mark.asyncio()
    async def test_create(self):
        db = _make_db()
        repo = QuoteRepository(db, make_lifecycle())

        stored = await repo.save(make_quote())

        db.add.assert_called_once()
        db.flush.assert_awaited_once()
        assert stored.id is not None
        assert stored.version_id == 1
        assert stored.quote_number.startswith("QT-20261018-")
        assert stored.terms.valid_until == NOW + timedelta(days=30)
        assert stored.pricing.final_total == Decimal("100.00")

    @pytest.mark.asyncio()
    async def test_generated_number_collision_is_retried(self):
        db = _make_db()
        db.flush = AsyncMock(side_effect=[_integrity_error("uq_quotes_quote_number"), None])
        repo = QuoteRepository(db, make_lifecycle())

        stored = await repo.save(make_quote())

        assert db.flush.await_count == 2
        assert stored.quote_number.startswith("QT-20261018-")

    @pytest.mark.asyncio()
    async def test_generated_number_gives_up_after_max_attempts(self):
        db = _make_db()
        db.flush = AsyncMock(side_effect=_integrity_error("uq_quotes_quote_number"))
        repo = QuoteRepository(db, make_lifecycle())

        with pytest.raises(DuplicateQuoteNumberError):
            await repo.save(make_quote())
        assert db.flush.await_count == 5

    @pytest.mark.asyncio()
    async def test_supplied_number_collision_fails_immediately(self):
        db = _make_db()
        db.flush = AsyncMock(side_effect=_integrity_error("uq_quotes_quote_number"))
        repo = QuoteRepository(db, make_lifecycle())

        with pytest.raises(DuplicateQuoteNumberError) as exc_info:
            await repo.save(make_quote(quote_number="QT-20261018-001"))
        assert exc_info.value.quote_number == "QT-20261018-001"
        assert db.flush.await_count == 1

    @pytest.mark.asyncio()
    async def test_other_integrity_errors_propagate(self):
        db = _make_db()
        db.flush = AsyncMock(side_effect=_integrity_error("fk_quotes_provider_id_service_providers"))
        repo = QuoteRepository(db, make_lifecycle())

        with pytest.raises(IntegrityError):
            await repo.save(make_quote())

    @pytest.mark.asyncio()
    async def test_update_checks_transition_against_stored_status(self):
        row = _stored_row()
        db = _make_db(row)
        repo = QuoteRepository(db, make_lifecycle())
        doc = row_to_document(row)
        doc.status = QuoteStatus.ACCEPTED

        with pytest.raises(InvalidStatusTransitionError):
            await repo.save(doc)
        db.flush.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_update_stale_version_raises(self):
        row = _stored_row()
        db = _make_db(row)
        repo = QuoteRepository(db, make_lifecycle())
        doc = row_to_document(row)
        row.version_id = 2

        with pytest.raises(ConcurrentModificationError):
            await repo.save(doc)

    @pytest.mark.asyncio()
    async def test_stale_flush_raises(self):
        row = _stored_row()
        db = _make_db(row)
        db.flush = AsyncMock(side_effect=StaleDataError("row changed"))
        repo = QuoteRepository(db, make_lifecycle())

        with pytest.raises(ConcurrentModificationError):
            await repo.save(row_to_document(row))

    @pytest.mark.asyncio()
    async def test_update_stamps_sent_date(self):
        row = _stored_row()
        db = _make_db(row)
        repo = QuoteRepository(db, make_lifecycle())
        doc = row_to_document(row)
        doc.status = QuoteStatus.SENT

        stored = await repo.save(doc)

        assert stored.status == QuoteStatus.SENT
        assert stored.workflow.sent_date == NOW
        assert stored.version_id == 2


# ── Reads ────────────────────────────────────────────────────────────


class TestGet:
    @pytest.mark.asyncio()
    async def test_missing_quote_raises(self):
        repo = QuoteRepository(_make_db(None), make_lifecycle())
        with pytest.raises(QuoteNotFoundError):
            await repo.get(uuid.uuid4())

    @pytest.mark.asyncio()
    async def test_get_by_number(self):
        row = _stored_row()
        repo = QuoteRepository(_make_db(row), make_lifecycle())
        doc = await repo.get_by_number(row.quote_number)
        assert doc.id == row.id

    @pytest.mark.asyncio()
    async def test_get_expired_returns_documents(self):
        row = _stored_row(status=QuoteStatus.SENT, terms={"valid_until": NOW - timedelta(days=1)})
        repo = QuoteRepository(_make_db(row), make_lifecycle())
        expired = await repo.get_expired()
        assert [q.id for q in expired] == [row.id]


class TestListings:
    @pytest.mark.asyncio()
    async def test_provider_listing_includes_customer_and_names(self):
        row = _stored_row()
        row.customer = User(id=row.customer_user_id, first_name="Dana", last_name="Reyes", email="dana@example.com")
        category = Category(id=uuid.uuid4(), name="Plumbing")
        row.service = Service(id=row.service_id, name="Sink install", category=category)
        repo = QuoteRepository(_make_db(row), make_lifecycle())

        listings = await repo.find_by_provider(row.provider_id)

        assert len(listings) == 1
        listing = listings[0]
        assert listing.customer.email == "dana@example.com"
        assert listing.provider is None
        assert listing.service_name == "Sink install"
        assert listing.category_name == "Plumbing"

    @pytest.mark.asyncio()
    async def test_customer_listing_empty(self):
        repo = QuoteRepository(_make_db(None), make_lifecycle())
        assert await repo.find_by_customer(uuid.uuid4()) == []


# ── Query builders ───────────────────────────────────────────────────


def _compile(stmt):
    return stmt.compile(dialect=postgresql.dialect())


class TestQueries:
    def test_expired_query_excludes_finalized(self):
        compiled = _compile(expired_quotes_query(NOW))
        sql = str(compiled)

        assert "quotes.valid_until <" in sql
        assert "NOT IN" in sql
        params = list(compiled.params.values())
        assert NOW in params
        status_lists = [p for p in params if isinstance(p, (list, tuple))]
        assert set(status_lists[0]) == set(FINALIZED_STATUSES)

    def test_finalized_statuses(self):
        assert set(FINALIZED_STATUSES) == {
            "accepted", "rejected", "expired", "cancelled", "converted_to_booking",
        }

    def test_provider_query_default_order(self):
        provider_id = uuid.uuid4()
        compiled = _compile(provider_quotes_query(provider_id, None, QueryOptions()))
        sql = str(compiled)

        assert "quotes.provider_id =" in sql
        assert "ORDER BY quotes.created_at DESC, quotes.id" in sql
        assert provider_id in compiled.params.values()
        assert 50 in compiled.params.values()

    def test_status_filter_and_ascending_sort(self):
        options = QueryOptions(sort_by="valid_until", sort_order="asc", skip=20)
        compiled = _compile(customer_quotes_query(uuid.uuid4(), QuoteStatus.SENT, options))
        sql = str(compiled)

        assert "quotes.customer_user_id =" in sql
        assert "quotes.status =" in sql
        assert "ORDER BY quotes.valid_until ASC, quotes.id" in sql
        assert "sent" in compiled.params.values()
        assert 20 in compiled.params.values()

    def test_limit_is_capped(self):
        compiled = _compile(provider_quotes_query(uuid.uuid4(), None, QueryOptions(limit=10_000)))
        values = list(compiled.params.values())
        assert 200 in values
        assert 10_000 not in values
