"""Quote model — one provider quote for one customer job.

Identity, parties, status and expiry are real columns (indexed for the
provider/customer/expiry queries); nested sub-documents are JSONB holding
the serialized Pydantic schemas from ``quotedesk.schemas.quote``.
``version_id`` is the optimistic-concurrency counter: a flush against a row
that changed since it was loaded raises StaleDataError.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models.base import Base, TimestampMixin
from quotedesk.models.enums import QuoteStatus

if TYPE_CHECKING:
    from quotedesk.models.provider import ServiceProvider
    from quotedesk.models.service import Category, Service
    from quotedesk.models.user import User

QUOTE_NUMBER_CONSTRAINT = "uq_quotes_quote_number"


class Quote(TimestampMixin, Base):
    """A priced quote moving through the draft → sent → ... → booking workflow."""

    __tablename__ = "quotes"

    quote_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False)

    # Parties
    customer_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("service_providers.id"), nullable=False
    )
    customer_contact: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, comment="Contact snapshot at creation"
    )
    provider_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, comment="business_name + contact_info at creation"
    )

    # Service
    service_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("services.id"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("categories.id")
    )
    service_details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    service_location: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    # Pricing (final_total denormalized for sorting)
    pricing: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    final_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Terms
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timeline: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    terms: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    # Status & workflow
    status: Mapped[str] = mapped_column(
        String(30), default=QuoteStatus.DRAFT.value, nullable=False
    )
    workflow: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    # Customer side
    customer_response: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    communications: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    # Provider side
    analytics: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    competitive: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    internal_notes: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    # Related records
    related_booking_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bookings.id", use_alter=True, name="fk_quotes_related_booking_id_bookings"),
    )
    original_quote_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quotes.id")
    )

    # Optimistic concurrency
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships (loaded explicitly by the list queries)
    customer: Mapped[User] = relationship("User", back_populates="quotes", lazy="noload")
    provider: Mapped[ServiceProvider] = relationship(
        "ServiceProvider", back_populates="quotes", lazy="noload"
    )
    service: Mapped[Service] = relationship("Service", lazy="noload")
    category: Mapped[Category | None] = relationship("Category", lazy="noload")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_quotes_customer_status", "customer_user_id", "status"),
        Index("ix_quotes_provider_status", "provider_id", "status"),
        Index("ix_quotes_status_valid_until", "status", "valid_until"),
        Index("ix_quotes_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number} status={self.status} total={self.final_total}>"
