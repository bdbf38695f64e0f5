"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization.
"""

from __future__ import annotations

from enum import Enum


class QuoteStatus(str, Enum):
    """Quote workflow status."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    UNDER_REVIEW = "under_review"
    NEGOTIATING = "negotiating"
    REVISED = "revised"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    CONVERTED_TO_BOOKING = "converted_to_booking"


class Urgency(str, Enum):
    """How soon the customer needs the work done — informational only."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EMERGENCY = "emergency"


class Complexity(str, Enum):
    """Job complexity as judged by the provider — informational only."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT_LEVEL = "expert_level"


class LocationType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    OUTDOOR = "outdoor"


class DurationUnit(str, Enum):
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


class Flexibility(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"
    VERY_FLEXIBLE = "very_flexible"


class PaymentTerms(str, Enum):
    UPFRONT = "upfront"
    ON_COMPLETION = "on_completion"
    FIFTY_FIFTY = "50_50"
    MILESTONE_BASED = "milestone_based"
    NET_30 = "net_30"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    FINANCING = "financing"


class WarrantyUnit(str, Enum):
    DAYS = "days"
    MONTHS = "months"
    YEARS = "years"


class PermitResponsibility(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    SHARED = "shared"


class ResponseType(str, Enum):
    """Customer's answer to a quote."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTER_OFFER = "counter_offer"
    NEEDS_REVISION = "needs_revision"


class CommunicationSender(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"


class CommunicationType(str, Enum):
    MESSAGE = "message"
    REVISION_REQUEST = "revision_request"
    CLARIFICATION = "clarification"
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"


class AttachmentType(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


class MarketPosition(str, Enum):
    BELOW_MARKET = "below_market"
    AT_MARKET = "at_market"
    ABOVE_MARKET = "above_market"
    PREMIUM = "premium"


class BookingStatus(str, Enum):
    """Booking status — only the initial state is created by the quote engine."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
