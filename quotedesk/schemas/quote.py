"""Pydantic schemas for the Quote aggregate.

Plain data records — no DB dependencies and no lifecycle behaviour. The
pricing calculator and the lifecycle service operate on these models; the
repository maps them to and from the ``quotes`` table.

Derived pricing fields (line totals, discount/tax amounts and aggregates)
are accepted on input but always overwritten by the calculator at persist
time.
"""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from quotedesk.config import settings
from quotedesk.models.enums import (
    AttachmentType,
    CommunicationSender,
    CommunicationType,
    Complexity,
    DurationUnit,
    Flexibility,
    LocationType,
    MarketPosition,
    PaymentMethod,
    PaymentTerms,
    PermitResponsibility,
    QuoteStatus,
    ResponseType,
    Urgency,
    WarrantyUnit,
)

ZERO = Decimal("0")
DAY_SECONDS = 24 * 60 * 60


def _as_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class QuoteModel(BaseModel):
    """Shared config: validate on assignment so in-place edits keep constraints."""

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)


# ── Parties ───────────────────────────────────────────────────────────


class PostalAddress(QuoteModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    coordinates: list[float] | None = None  # [longitude, latitude]


class ContactInfo(QuoteModel):
    """Contact snapshot captured at quote creation; not kept in sync afterwards."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: PostalAddress | None = None


class CustomerParty(QuoteModel):
    user_id: uuid.UUID
    contact_info: ContactInfo = Field(default_factory=ContactInfo)


class ProviderParty(QuoteModel):
    provider_id: uuid.UUID
    business_name: str | None = None
    contact_info: ContactInfo = Field(default_factory=ContactInfo)


# ── Service ───────────────────────────────────────────────────────────


class ServiceDetails(QuoteModel):
    service_id: uuid.UUID
    category_id: uuid.UUID | None = None
    service_name: str | None = None
    service_description: str | None = None
    urgency: Urgency = Urgency.NORMAL
    complexity: Complexity = Complexity.MODERATE


class ServiceAddress(QuoteModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    apartment_unit: str | None = None
    access_instructions: str | None = None


class Accessibility(QuoteModel):
    parking_available: bool = True
    stairs_required: bool = False
    elevator_available: bool = False
    special_access: str | None = None


class ServiceLocation(QuoteModel):
    address: ServiceAddress
    coordinates: list[float] | None = None  # [longitude, latitude]
    location_type: LocationType = LocationType.RESIDENTIAL
    accessibility: Accessibility = Field(default_factory=Accessibility)

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: list[float] | None) -> list[float] | None:
        if v is None:
            return v
        if len(v) != 2:
            msg = "coordinates must be [longitude, latitude]"
            raise ValueError(msg)
        lng, lat = v
        if not (-180 <= lng <= 180 and -90 <= lat <= 90):
            msg = f"coordinates out of range: {v}"
            raise ValueError(msg)
        return v


# ── Pricing ───────────────────────────────────────────────────────────


class BasePrice(QuoteModel):
    amount: Decimal = Field(ge=0)
    description: str | None = None


class LaborCost(QuoteModel):
    description: str | None = None
    hours: Decimal = Field(default=ZERO, ge=0)
    hourly_rate: Decimal = Field(default=ZERO, ge=0)
    total_amount: Decimal = ZERO  # derived: hours × hourly_rate


class MaterialItem(QuoteModel):
    name: str = Field(min_length=1)
    description: str | None = None
    quantity: Decimal = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(default=ZERO, ge=0)  # derived: quantity × unit_price
    supplier: str | None = None
    brand: str | None = None
    model: str | None = None
    warranty: str | None = None


class AdditionalFee(QuoteModel):
    name: str = Field(min_length=1)
    amount: Decimal
    description: str | None = None
    is_optional: bool = False


class PercentageDiscount(QuoteModel):
    """Discount of ``value`` percent of the subtotal."""

    type: Literal["percentage"] = "percentage"
    name: str | None = None
    value: Decimal = Field(default=ZERO, ge=0, le=100)
    amount: Decimal = ZERO  # derived
    reason: str | None = None
    conditions: str | None = None


class FixedDiscount(QuoteModel):
    """Flat discount of ``value`` in the quote currency."""

    type: Literal["fixed"] = "fixed"
    name: str | None = None
    value: Decimal = Field(default=ZERO, ge=0)
    amount: Decimal = ZERO  # derived
    reason: str | None = None
    conditions: str | None = None


Discount = Annotated[Union[PercentageDiscount, FixedDiscount], Field(discriminator="type")]


class Tax(QuoteModel):
    name: str | None = None
    rate: Decimal = Field(default=ZERO, ge=0)  # percentage
    amount: Decimal = ZERO  # derived: rate% of (subtotal − total_discounts)
    description: str | None = None


class Pricing(QuoteModel):
    base_price: BasePrice
    labor_costs: list[LaborCost] = Field(default_factory=list)
    materials: list[MaterialItem] = Field(default_factory=list)
    additional_fees: list[AdditionalFee] = Field(default_factory=list)
    discounts: list[Discount] = Field(default_factory=list)
    taxes: list[Tax] = Field(default_factory=list)

    # Aggregates: derived, never set by callers
    subtotal: Decimal = Field(default=ZERO, ge=0)
    total_discounts: Decimal = ZERO
    total_taxes: Decimal = ZERO
    final_total: Decimal = Field(default=ZERO, ge=0)
    currency: str = Field(
        default_factory=lambda: settings.quotes.default_currency, min_length=3, max_length=3
    )

    @field_validator("discounts", mode="before")
    @classmethod
    def default_discount_type(cls, v: Any) -> Any:
        """Untyped discount entries are percentage discounts."""
        if isinstance(v, list):
            return [
                {**item, "type": "percentage"} if isinstance(item, dict) and "type" not in item else item
                for item in v
            ]
        return v


# ── Timeline ──────────────────────────────────────────────────────────


class EstimatedDuration(QuoteModel):
    value: Decimal | None = Field(default=None, ge=0)
    unit: DurationUnit = DurationUnit.HOURS


class TimeSlot(QuoteModel):
    date: UtcDatetime
    start_time: str | None = None  # HH:MM
    end_time: str | None = None
    is_preferred: bool = False


class Milestone(QuoteModel):
    name: str | None = None
    description: str | None = None
    estimated_date: UtcDatetime | None = None
    payment_percentage: Decimal | None = Field(default=None, ge=0, le=100)


class Timeline(QuoteModel):
    estimated_duration: EstimatedDuration | None = None
    preferred_start_date: UtcDatetime | None = None
    preferred_end_date: UtcDatetime | None = None
    flexibility: Flexibility = Flexibility.FLEXIBLE
    available_time_slots: list[TimeSlot] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)


# ── Terms ─────────────────────────────────────────────────────────────


class WarrantyPeriod(QuoteModel):
    value: int | None = Field(default=None, ge=0)
    unit: WarrantyUnit = WarrantyUnit.MONTHS


class Terms(QuoteModel):
    valid_until: UtcDatetime | None = None  # defaulted at persist time
    payment_terms: PaymentTerms = PaymentTerms.ON_COMPLETION
    payment_methods: list[PaymentMethod] = Field(default_factory=list)
    warranty_period: WarrantyPeriod | None = None
    cancellation_policy: str | None = None
    liability: str | None = None
    special_conditions: list[str] = Field(default_factory=list)
    included_services: list[str] = Field(default_factory=list)
    excluded_services: list[str] = Field(default_factory=list)
    requires_permits: bool = False
    permit_responsibility: PermitResponsibility = PermitResponsibility.PROVIDER


# ── Workflow & history ────────────────────────────────────────────────


class RevisionEntry(QuoteModel):
    version: int = Field(ge=1)
    changes: str | None = None
    modified_by: str | None = None
    modified_date: UtcDatetime
    reason: str | None = None


class Workflow(QuoteModel):
    sent_date: UtcDatetime | None = None
    viewed_date: UtcDatetime | None = None
    responded_date: UtcDatetime | None = None
    accepted_date: UtcDatetime | None = None
    rejected_date: UtcDatetime | None = None
    expired_date: UtcDatetime | None = None
    last_modified: UtcDatetime | None = None
    revision_history: list[RevisionEntry] = Field(default_factory=list)


class CounterOffer(QuoteModel):
    proposed_price: Decimal | None = Field(default=None, ge=0)
    proposed_timeline: str | None = None
    modifications: str | None = None
    conditions: list[str] = Field(default_factory=list)


class RequestedChange(QuoteModel):
    section: str | None = None
    current_value: str | None = None
    requested_value: str | None = None
    reason: str | None = None


class CustomerQuestion(QuoteModel):
    question: str
    answer: str | None = None
    answered_date: UtcDatetime | None = None


class CustomerResponse(QuoteModel):
    response: ResponseType = ResponseType.PENDING
    message: str | None = None
    counter_offer: CounterOffer | None = None
    requested_changes: list[RequestedChange] = Field(default_factory=list)
    questions: list[CustomerQuestion] = Field(default_factory=list)


class Communication(QuoteModel):
    sender: CommunicationSender = Field(alias="from")
    message: str = Field(min_length=1)
    timestamp: UtcDatetime
    type: CommunicationType = CommunicationType.MESSAGE
    attachments: list[str] = Field(default_factory=list)


class Attachment(QuoteModel):
    name: str | None = None
    url: str | None = None
    type: AttachmentType = AttachmentType.OTHER
    size: int | None = Field(default=None, ge=0)
    uploaded_by: str | None = None
    uploaded_date: UtcDatetime | None = None
    description: str | None = None


class CompetitorQuote(QuoteModel):
    provider_id: str | None = None
    estimated_price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class Analytics(QuoteModel):
    view_count: int = Field(default=0, ge=0)
    time_to_view: int | None = None  # ms from sent to first view
    time_to_respond: int | None = None  # ms from sent to response
    revision_count: int = Field(default=0, ge=0)
    competitor_quotes: list[CompetitorQuote] = Field(default_factory=list)
    conversion_probability: Decimal | None = Field(default=None, ge=0, le=100)
    win_reason: str | None = None
    loss_reason: str | None = None


class InternalNote(QuoteModel):
    note: str = Field(min_length=1)
    added_by: uuid.UUID | None = None
    added_date: UtcDatetime
    is_private: bool = True


class MarketPrice(QuoteModel):
    low: Decimal | None = None
    average: Decimal | None = None
    high: Decimal | None = None


class Competitive(QuoteModel):
    market_price: MarketPrice | None = None
    position_vs_market: MarketPosition | None = None
    competitive_advantages: list[str] = Field(default_factory=list)
    price_justification: str | None = None


# ── Aggregate ─────────────────────────────────────────────────────────


class QuoteDocument(QuoteModel):
    """A single quote with all of its sub-documents."""

    id: uuid.UUID | None = None
    quote_number: str | None = None
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=2000)

    customer: CustomerParty
    service_provider: ProviderParty
    service_details: ServiceDetails
    service_location: ServiceLocation
    pricing: Pricing
    timeline: Timeline = Field(default_factory=Timeline)
    terms: Terms = Field(default_factory=Terms)

    status: QuoteStatus = QuoteStatus.DRAFT
    workflow: Workflow = Field(default_factory=Workflow)
    customer_response: CustomerResponse | None = None
    communications: list[Communication] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    analytics: Analytics = Field(default_factory=Analytics)
    competitive: Competitive | None = None
    internal_notes: list[InternalNote] = Field(default_factory=list)

    related_booking_id: uuid.UUID | None = None
    original_quote_id: uuid.UUID | None = None

    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
    version_id: int | None = None  # optimistic concurrency token

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    # ── Derived read-only views ───────────────────────────────────────

    def days_until_expiration(self, now: datetime) -> int | None:
        """Whole days until expiry, rounded up; None when no expiry is set."""
        if self.terms.valid_until is None:
            return None
        delta = (self.terms.valid_until - _as_utc(now)).total_seconds()
        return math.ceil(delta / DAY_SECONDS)

    def age_in_days(self, now: datetime) -> int:
        """Whole days since creation, rounded down."""
        now = _as_utc(now)
        created = self.created_at or now
        return math.floor((now - created).total_seconds() / DAY_SECONDS)

    @property
    def profit_margin(self) -> Decimal:
        """Percentage of the final total left after material and labor costs."""
        revenue = self.pricing.final_total
        if revenue == 0:
            return ZERO
        costs = sum((m.total_price for m in self.pricing.materials), ZERO) + sum(
            (lc.total_amount for lc in self.pricing.labor_costs), ZERO
        )
        return (revenue - costs) / revenue * 100


# ── Query options & resolved listings ─────────────────────────────────


class QueryOptions(BaseModel):
    """Pagination and ordering for provider/customer quote listings."""

    limit: int = Field(default_factory=lambda: settings.quotes.default_page_size, ge=1)
    skip: int = Field(default=0, ge=0)
    sort_by: Literal[
        "created_at", "updated_at", "valid_until", "final_total", "status", "quote_number"
    ] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class CustomerProfile(BaseModel):
    """Customer fields joined into provider-facing listings."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class ProviderProfile(BaseModel):
    """Full provider record joined into customer-facing listings."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID | None = None
    business_name: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    description: str | None = None
    rating: Decimal | None = None
    review_count: int = 0
    is_verified: bool = False


class QuoteListing(BaseModel):
    """A quote plus the related records resolved for display."""

    quote: QuoteDocument
    customer: CustomerProfile | None = None
    provider: ProviderProfile | None = None
    service_name: str | None = None
    category_name: str | None = None
