"""ServiceProvider model — a business that prices and fulfils jobs."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from quotedesk.models.quote import Quote


class ServiceProvider(TimestampMixin, Base):
    """A provider business account."""

    __tablename__ = "service_providers"

    # Owning user account
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )

    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))
    description: Mapped[str | None] = mapped_column(Text)

    # Reputation (denormalized from reviews)
    rating: Mapped[Decimal | None] = mapped_column(Numeric(3, 2))
    review_count: Mapped[int] = mapped_column(default=0)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    quotes: Mapped[list[Quote]] = relationship("Quote", back_populates="provider", lazy="noload")

    def __repr__(self) -> str:
        return f"<ServiceProvider id={self.id} business={self.business_name}>"
