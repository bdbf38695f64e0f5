"""Tests for the quote status transition map."""

from __future__ import annotations

import pytest

from quotedesk.models.enums import QuoteStatus
from quotedesk.quotes.states import TRANSITIONS, can_transition


class TestTransitionMap:
    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(QuoteStatus)

    @pytest.mark.parametrize("status", list(QuoteStatus))
    def test_same_status_is_allowed(self, status):
        assert can_transition(status, status)

    @pytest.mark.parametrize(
        ("current", "requested"),
        [
            (QuoteStatus.DRAFT, QuoteStatus.SENT),
            (QuoteStatus.SENT, QuoteStatus.VIEWED),
            (QuoteStatus.VIEWED, QuoteStatus.NEGOTIATING),
            (QuoteStatus.NEGOTIATING, QuoteStatus.REVISED),
            (QuoteStatus.REVISED, QuoteStatus.SENT),
            (QuoteStatus.ACCEPTED, QuoteStatus.CONVERTED_TO_BOOKING),
            (QuoteStatus.EXPIRED, QuoteStatus.REVISED),
        ],
    )
    def test_allowed(self, current, requested):
        assert can_transition(current, requested)

    @pytest.mark.parametrize(
        ("current", "requested"),
        [
            (QuoteStatus.DRAFT, QuoteStatus.ACCEPTED),
            (QuoteStatus.ACCEPTED, QuoteStatus.REVISED),
            (QuoteStatus.REJECTED, QuoteStatus.SENT),
            (QuoteStatus.CANCELLED, QuoteStatus.DRAFT),
            (QuoteStatus.CONVERTED_TO_BOOKING, QuoteStatus.ACCEPTED),
            (QuoteStatus.EXPIRED, QuoteStatus.SENT),
        ],
    )
    def test_rejected(self, current, requested):
        assert not can_transition(current, requested)
