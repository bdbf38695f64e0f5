"""QuoteEvent schema — emitted on every quote lifecycle change.

Subscribers (notification delivery, audit sinks, analytics) consume these
events asynchronously; the engine itself never waits on them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the quote engine."""

    # Quote lifecycle
    QUOTE_CREATED = "quote.created"
    QUOTE_UPDATED = "quote.updated"
    QUOTE_STATUS_CHANGED = "quote.status_changed"
    QUOTE_REVISED = "quote.revised"
    QUOTE_VIEWED = "quote.viewed"
    QUOTE_RESPONDED = "quote.responded"
    QUOTE_EXPIRY_EXTENDED = "quote.expiry_extended"
    QUOTE_EXPIRED = "quote.expired"
    QUOTE_CONVERTED = "quote.converted"

    # Communication
    COMMUNICATION_ADDED = "quote.communication_added"

    # System
    SYSTEM_MAINTENANCE = "system.maintenance"


class QuoteEvent(BaseModel):
    """A single event about a quote (or a system job)."""

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    quote_id: uuid.UUID | None = None
    quote_number: str | None = None
    actor: str | None = Field(default=None, description="customer, provider, or system")
    data: dict[str, Any] = Field(default_factory=dict)
    source_module: str | None = None
