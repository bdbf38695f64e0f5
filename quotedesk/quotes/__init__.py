"""Quote lifecycle engine — lifecycle rules, persistence and the service facade."""

from quotedesk.quotes.lifecycle import QuoteLifecycle
from quotedesk.quotes.repository import QuoteRepository
from quotedesk.quotes.service import QuoteService

__all__ = ["QuoteLifecycle", "QuoteRepository", "QuoteService"]
