"""SQLAlchemy ORM models for quotedesk.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from quotedesk.models.base import Base
from quotedesk.models.booking import Booking
from quotedesk.models.enums import (
    BookingStatus,
    CommunicationSender,
    CommunicationType,
    QuoteStatus,
    ResponseType,
)
from quotedesk.models.provider import ServiceProvider
from quotedesk.models.quote import Quote
from quotedesk.models.service import Category, Service
from quotedesk.models.user import User

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "ServiceProvider",
    "Category",
    "Service",
    "Quote",
    "Booking",
    # Enums
    "QuoteStatus",
    "ResponseType",
    "CommunicationSender",
    "CommunicationType",
    "BookingStatus",
]
