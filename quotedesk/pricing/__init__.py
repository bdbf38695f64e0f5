"""Quote pricing — derived line totals, discounts, taxes and aggregates."""

from quotedesk.pricing.calculator import calculate_pricing, discount_amount

__all__ = [
    "calculate_pricing",
    "discount_amount",
]
