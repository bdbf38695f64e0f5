"""Exception taxonomy for the quote engine.

All errors are raised synchronously and propagated to the caller; the engine
never retries internally except for regenerating a colliding quote number.
"""

from __future__ import annotations

import uuid
from typing import Any


class QuoteError(Exception):
    """Base class for all quote engine errors."""


class QuoteValidationError(QuoteError):
    """A required field is missing, has the wrong type, or is below its minimum."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class QuoteNotFoundError(QuoteError):
    """No quote exists for the requested id or number."""

    def __init__(self, quote_ref: uuid.UUID | str) -> None:
        super().__init__(f"Quote not found: {quote_ref}")
        self.quote_ref = quote_ref


class DuplicateQuoteNumberError(QuoteError):
    """The quote number is already taken (unique constraint violation)."""

    def __init__(self, quote_number: str) -> None:
        super().__init__(f"Quote number already exists: {quote_number}")
        self.quote_number = quote_number


class InvalidStatusTransitionError(QuoteError):
    """The requested status change is not allowed from the current status."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Invalid status transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class ConcurrentModificationError(QuoteError):
    """The quote was modified by another writer since it was loaded."""

    def __init__(self, quote_id: uuid.UUID | None) -> None:
        super().__init__(f"Quote {quote_id} was modified concurrently; reload and retry")
        self.quote_id = quote_id
