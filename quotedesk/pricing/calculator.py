"""Quote pricing calculator.

Pure Python, Decimal arithmetic. Recomputes every derived field of the
pricing subtree from its inputs:

  labor total      = hours × hourly_rate
  material total   = quantity × unit_price
  subtotal         = base + Σlabor + Σmaterials + Σfees
  discount amount  = value% × subtotal  (percentage)  |  value  (fixed)
  tax amount       = rate% × (subtotal − total_discounts)
  final_total      = (subtotal − total_discounts) + total_taxes

Line amounts are rounded to cents and the aggregates are summed from the
rounded amounts, so the totals always reconcile exactly with the lines.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from quotedesk.errors import QuoteValidationError
from quotedesk.schemas.quote import (
    Discount,
    FixedDiscount,
    PercentageDiscount,
    Pricing,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _to_cents(value: Decimal) -> Decimal:
    """Round to 2 decimal places."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def discount_amount(discount: Discount, subtotal: Decimal) -> Decimal:
    """Monetary value of a single discount against ``subtotal``."""
    if isinstance(discount, PercentageDiscount):
        return _to_cents(subtotal * discount.value / HUNDRED)
    if isinstance(discount, FixedDiscount):
        return _to_cents(discount.value)
    msg = f"Unknown discount type: {type(discount).__name__}"
    raise TypeError(msg)


def calculate_pricing(pricing: Pricing) -> Pricing:
    """Return a copy of ``pricing`` with every derived field recomputed.

    Args:
        pricing: Pricing inputs; any derived values already present are ignored.

    Returns:
        A new Pricing whose line totals, discount/tax amounts and aggregates
        are consistent with the inputs.

    Raises:
        QuoteValidationError: If the subtotal or final total would be negative.
    """
    labor_costs = [
        item.model_copy(update={"total_amount": _to_cents(item.hours * item.hourly_rate)})
        for item in pricing.labor_costs
    ]
    materials = [
        item.model_copy(update={"total_price": _to_cents(item.quantity * item.unit_price)})
        for item in pricing.materials
    ]

    subtotal = _to_cents(
        pricing.base_price.amount
        + sum((item.total_amount for item in labor_costs), start=ZERO)
        + sum((item.total_price for item in materials), start=ZERO)
        + sum((fee.amount for fee in pricing.additional_fees), start=ZERO)
    )
    if subtotal < ZERO:
        raise QuoteValidationError(f"subtotal must be >= 0, got {subtotal}")

    discounts = [
        d.model_copy(update={"amount": discount_amount(d, subtotal)})
        for d in pricing.discounts
    ]
    total_discounts = sum((d.amount for d in discounts), start=ZERO)

    taxable = subtotal - total_discounts
    taxes = [
        tax.model_copy(update={"amount": _to_cents(taxable * tax.rate / HUNDRED)})
        for tax in pricing.taxes
    ]
    total_taxes = sum((tax.amount for tax in taxes), start=ZERO)

    final_total = taxable + total_taxes
    if final_total < ZERO:
        raise QuoteValidationError(
            f"final_total must be >= 0, got {final_total} (discounts exceed subtotal)"
        )

    return pricing.model_copy(update={
        "labor_costs": labor_costs,
        "materials": materials,
        "discounts": discounts,
        "taxes": taxes,
        "subtotal": subtotal,
        "total_discounts": _to_cents(total_discounts),
        "total_taxes": _to_cents(total_taxes),
        "final_total": _to_cents(final_total),
    })
