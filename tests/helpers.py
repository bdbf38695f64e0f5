"""Shared builders for quote tests."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from quotedesk.quotes.clock import fixed_clock
from quotedesk.quotes.lifecycle import QuoteLifecycle
from quotedesk.schemas.quote import QuoteDocument

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def quote_payload(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "title": "Kitchen sink replacement",
        "description": "Remove old sink, install new basin and tap",
        "customer": {"user_id": uuid.uuid4(), "contact_info": {"name": "Dana Reyes"}},
        "service_provider": {"provider_id": uuid.uuid4(), "business_name": "Reyes Plumbing"},
        "service_details": {"service_id": uuid.uuid4(), "category_id": uuid.uuid4()},
        "service_location": {
            "address": {"street": "12 Elm St", "city": "Austin", "state": "TX", "zip_code": "78701"},
        },
        "pricing": {"base_price": {"amount": Decimal("100")}},
    }
    data.update(overrides)
    return data


def make_quote(**overrides: Any) -> QuoteDocument:
    return QuoteDocument.model_validate(quote_payload(**overrides))


def make_lifecycle(now: datetime = NOW, **kwargs: Any) -> QuoteLifecycle:
    return QuoteLifecycle(clock=fixed_clock(now), **kwargs)
