"""Integer-cent pricing for a cart.

Everything here is pure: callers pass plain values in and get a
``PricingSummary`` back, so checkout and tests share one code path and no
floating point ever touches money.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

PERCENTAGE = "percentage"
FIXED = "fixed"

SHIPPING_METHOD_DIGITAL = "Digital Delivery"
SHIPPING_METHOD_FREE = "Free Standard Shipping"
SHIPPING_METHOD_STANDARD = "Standard Shipping (US)"
DEFAULT_ESTIMATED_DAYS = "5-7 business days"


@dataclass(frozen=True)
class PricingLine:
    unit_price_cents: int
    quantity: int
    is_physical: bool

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class DiscountRule:
    discount_type: str
    value: int


@dataclass(frozen=True)
class ShippingConfig:
    flat_rate_cents: int = 1500
    free_threshold_cents: int = 15000
    estimated_days: str = DEFAULT_ESTIMATED_DAYS


@dataclass(frozen=True)
class PricingSummary:
    subtotal_cents: int
    discount_cents: int
    shipping_cents: int
    total_cents: int
    shipping_method: str
    estimated_days: str = ""

    @property
    def requires_shipping(self) -> bool:
        return self.shipping_method != SHIPPING_METHOD_DIGITAL


def calculate_subtotal(lines: Iterable[PricingLine]) -> int:
    return sum(line.line_total_cents for line in lines)


def calculate_discount(subtotal_cents: int, rule: DiscountRule | None) -> int:
    """Return the discount in cents, clamped to ``[0, subtotal_cents]``.

    Percentages round half up and are applied once to the whole subtotal.
    """
    if rule is None or subtotal_cents <= 0:
        return 0

    value = max(int(rule.value or 0), 0)
    if rule.discount_type == PERCENTAGE:
        amount = (subtotal_cents * value + 50) // 100
    elif rule.discount_type == FIXED:
        amount = value
    else:
        raise ValueError(f"Unknown discount type: {rule.discount_type}")

    return min(max(amount, 0), subtotal_cents)


def calculate_shipping(
    *,
    has_physical: bool,
    discounted_subtotal_cents: int,
    config: ShippingConfig,
) -> tuple[int, str, str]:
    if not has_physical:
        return 0, SHIPPING_METHOD_DIGITAL, ""

    threshold = config.free_threshold_cents
    if threshold > 0 and discounted_subtotal_cents >= threshold:
        return 0, SHIPPING_METHOD_FREE, config.estimated_days
    return config.flat_rate_cents, SHIPPING_METHOD_STANDARD, config.estimated_days


def calculate_pricing(
    lines: Iterable[PricingLine],
    discount: DiscountRule | None = None,
    shipping: ShippingConfig | None = None,
) -> PricingSummary:
    lines = list(lines)
    shipping = shipping or ShippingConfig()

    subtotal_cents = calculate_subtotal(lines)
    discount_cents = calculate_discount(subtotal_cents, discount)
    shipping_cents, shipping_method, estimated_days = calculate_shipping(
        has_physical=any(line.is_physical for line in lines),
        discounted_subtotal_cents=subtotal_cents - discount_cents,
        config=shipping,
    )

    return PricingSummary(
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        shipping_cents=shipping_cents,
        total_cents=subtotal_cents - discount_cents + shipping_cents,
        shipping_method=shipping_method,
        estimated_days=estimated_days,
    )
