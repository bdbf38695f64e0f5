"""Service catalogue — categories and the services offered in them."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models.base import Base, TimestampMixin


class Category(TimestampMixin, Base):
    """Top-level service category (plumbing, cleaning, ...)."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    services: Mapped[list[Service]] = relationship("Service", back_populates="category", lazy="noload")

    def __repr__(self) -> str:
        return f"<Category name={self.name}>"


class Service(TimestampMixin, Base):
    """A bookable service within a category."""

    __tablename__ = "services"

    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("categories.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    category: Mapped[Category | None] = relationship("Category", back_populates="services")

    def __repr__(self) -> str:
        return f"<Service name={self.name}>"
