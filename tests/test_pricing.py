"""Tests for the quote pricing calculator.

Covers:
- Line totals and aggregates for a full pricing sheet
- Percentage vs fixed discounts
- Taxes applied after discounts
- Cent rounding of line amounts
- Rejection of negative totals
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from quotedesk.errors import QuoteValidationError
from quotedesk.pricing import calculate_pricing, discount_amount
from quotedesk.schemas.quote import FixedDiscount, PercentageDiscount, Pricing


def _pricing(**overrides) -> Pricing:
    data = {"base_price": {"amount": "100"}}
    data.update(overrides)
    return Pricing.model_validate(data)


# ── Full calculation ─────────────────────────────────────────────────


class TestCalculatePricing:
    def test_reference_sheet(self):
        pricing = _pricing(
            labor_costs=[{"hours": "2", "hourly_rate": "20"}],
            materials=[{"name": "Basin", "quantity": "3", "unit_price": "10"}],
            additional_fees=[{"name": "Call-out", "amount": "5"}],
            discounts=[{"type": "percentage", "value": "10"}],
            taxes=[{"name": "Sales tax", "rate": "8"}],
        )
        result = calculate_pricing(pricing)

        assert result.labor_costs[0].total_amount == Decimal("40.00")
        assert result.materials[0].total_price == Decimal("30.00")
        assert result.subtotal == Decimal("175.00")
        assert result.discounts[0].amount == Decimal("17.50")
        assert result.total_discounts == Decimal("17.50")
        assert result.taxes[0].amount == Decimal("12.60")
        assert result.total_taxes == Decimal("12.60")
        assert result.final_total == Decimal("170.10")

    def test_base_price_only(self):
        result = calculate_pricing(_pricing())
        assert result.subtotal == Decimal("100.00")
        assert result.total_discounts == Decimal("0")
        assert result.total_taxes == Decimal("0")
        assert result.final_total == Decimal("100.00")

    def test_supplied_derived_values_are_overwritten(self):
        pricing = _pricing(
            labor_costs=[{"hours": "1", "hourly_rate": "50", "total_amount": "999"}],
            subtotal="1",
            final_total="1",
        )
        result = calculate_pricing(pricing)
        assert result.labor_costs[0].total_amount == Decimal("50.00")
        assert result.subtotal == Decimal("150.00")
        assert result.final_total == Decimal("150.00")

    def test_input_is_not_mutated(self):
        pricing = _pricing(labor_costs=[{"hours": "1", "hourly_rate": "50"}])
        calculate_pricing(pricing)
        assert pricing.labor_costs[0].total_amount == Decimal("0")
        assert pricing.subtotal == Decimal("0")

    def test_fixed_and_percentage_discounts_combine(self):
        pricing = _pricing(
            discounts=[
                {"type": "fixed", "value": "15"},
                {"type": "percentage", "value": "5"},
            ],
        )
        result = calculate_pricing(pricing)
        assert result.total_discounts == Decimal("20.00")
        assert result.final_total == Decimal("80.00")

    def test_tax_applies_after_discounts(self):
        pricing = _pricing(
            discounts=[{"type": "fixed", "value": "50"}],
            taxes=[{"rate": "10"}],
        )
        result = calculate_pricing(pricing)
        assert result.total_taxes == Decimal("5.00")
        assert result.final_total == Decimal("55.00")

    def test_line_amounts_round_to_cents(self):
        pricing = _pricing(
            base_price={"amount": "0"},
            labor_costs=[{"hours": "1.333", "hourly_rate": "10"}],
        )
        result = calculate_pricing(pricing)
        assert result.labor_costs[0].total_amount == Decimal("13.33")
        assert result.subtotal == Decimal("13.33")

    def test_discounts_exceeding_subtotal_raise(self):
        pricing = _pricing(discounts=[{"type": "fixed", "value": "150"}])
        with pytest.raises(QuoteValidationError, match="final_total"):
            calculate_pricing(pricing)

    def test_negative_fees_below_zero_raise(self):
        pricing = _pricing(additional_fees=[{"name": "Credit", "amount": "-120"}])
        with pytest.raises(QuoteValidationError, match="subtotal"):
            calculate_pricing(pricing)

    def test_fixed_discount_up_to_subtotal_is_allowed(self):
        pricing = _pricing(discounts=[{"type": "fixed", "value": "100"}])
        assert calculate_pricing(pricing).final_total == Decimal("0.00")


# ── Single discount ──────────────────────────────────────────────────


class TestDiscountAmount:
    def test_percentage(self):
        assert discount_amount(PercentageDiscount(value=Decimal("12.5")), Decimal("80")) == Decimal("10.00")

    def test_fixed_ignores_subtotal(self):
        assert discount_amount(FixedDiscount(value=Decimal("7.5")), Decimal("1000")) == Decimal("7.50")

    def test_unknown_type_raises(self):
        with pytest.raises(TypeError):
            discount_amount(object(), Decimal("10"))  # type: ignore[arg-type]
