"""Quote status transition map.

Status changes go through this graph; anything not listed is rejected with
InvalidStatusTransitionError. Staying in the same status is always allowed
(re-persisting a quote is not a transition).

Terminal statuses admit no exits except:
- accepted → converted_to_booking (booking conversion)
- expired → revised (provider revises and reissues an expired quote)
"""

from __future__ import annotations

from quotedesk.models.enums import QuoteStatus

# {current_status: {allowed next statuses}}
TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset({
        QuoteStatus.SENT,
        QuoteStatus.REVISED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.SENT: frozenset({
        QuoteStatus.VIEWED,
        QuoteStatus.UNDER_REVIEW,
        QuoteStatus.NEGOTIATING,
        QuoteStatus.REVISED,
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.VIEWED: frozenset({
        QuoteStatus.UNDER_REVIEW,
        QuoteStatus.NEGOTIATING,
        QuoteStatus.REVISED,
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.UNDER_REVIEW: frozenset({
        QuoteStatus.NEGOTIATING,
        QuoteStatus.REVISED,
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.NEGOTIATING: frozenset({
        QuoteStatus.UNDER_REVIEW,
        QuoteStatus.REVISED,
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.REVISED: frozenset({
        QuoteStatus.SENT,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.ACCEPTED: frozenset({
        QuoteStatus.CONVERTED_TO_BOOKING,
    }),
    QuoteStatus.EXPIRED: frozenset({
        QuoteStatus.REVISED,
    }),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.CANCELLED: frozenset(),
    QuoteStatus.CONVERTED_TO_BOOKING: frozenset(),
}

# Workflow timestamp stamped on first entry into each status.
WORKFLOW_DATE_FIELDS: dict[QuoteStatus, str] = {
    QuoteStatus.SENT: "sent_date",
    QuoteStatus.VIEWED: "viewed_date",
    QuoteStatus.UNDER_REVIEW: "responded_date",
    QuoteStatus.NEGOTIATING: "responded_date",
    QuoteStatus.ACCEPTED: "accepted_date",
    QuoteStatus.CONVERTED_TO_BOOKING: "accepted_date",
    QuoteStatus.REJECTED: "rejected_date",
    QuoteStatus.EXPIRED: "expired_date",
}


def can_transition(current: QuoteStatus, requested: QuoteStatus) -> bool:
    """Check whether ``current`` may move to ``requested``."""
    if current == requested:
        return True
    return requested in TRANSITIONS.get(current, frozenset())
