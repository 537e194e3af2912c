"""Price calculation for memorial requests.

All amounts are integer cents. The discount is applied with ``Decimal`` and
explicit half-up rounding so results never depend on binary float behaviour.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..errors import ValidationError
from ..models import BillingCycle, Tier

TIER_PRICES: dict[str, int] = {
    Tier.MARKED.value: 7500,
    Tier.REMEMBERED.value: 12500,
    Tier.ENDURING.value: 20000,
}

PRESERVATION_PRICES: dict[str, int] = {
    BillingCycle.MONTHLY.value: 200,
    BillingCycle.YEARLY.value: 1200,
}

DISCOUNT_MULTIPLIER = Decimal("0.85")


def compute_price(
    tier: str,
    preservation_addon: bool = False,
    billing_cycle: str | None = None,
    discount_requested: bool = False,
) -> int:
    """Return the amount owed, in cents, for the selected options."""
    try:
        total = TIER_PRICES[getattr(tier, "value", tier)]
    except KeyError:
        raise ValidationError.for_field(
            "tier_selected", f"Unknown tier {tier!r}"
        ) from None

    if preservation_addon:
        try:
            total += PRESERVATION_PRICES[getattr(billing_cycle, "value", billing_cycle)]
        except KeyError:
            raise ValidationError.for_field(
                "preservation_billing_cycle",
                "A monthly or yearly billing cycle is required for the preservation add-on",
            ) from None

    if discount_requested:
        total = apply_discount(total)

    return total


def apply_discount(amount: int) -> int:
    """Take 15% off ``amount`` and round half-up to a whole cent."""
    discounted = (Decimal(amount) * DISCOUNT_MULTIPLIER).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(discounted)
