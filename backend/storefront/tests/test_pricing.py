from django.test import SimpleTestCase

from storefront.pricing import (
    SHIPPING_METHOD_DIGITAL,
    SHIPPING_METHOD_FREE,
    SHIPPING_METHOD_STANDARD,
    DiscountRule,
    PricingLine,
    ShippingConfig,
    calculate_discount,
    calculate_pricing,
)

SHIPPING = ShippingConfig(flat_rate_cents=1500, free_threshold_cents=15000)


class DiscountCalculationTests(SimpleTestCase):
    def test_percentage_discount_on_round_subtotal(self):
        self.assertEqual(calculate_discount(1000, DiscountRule("percentage", 10)), 100)

    def test_percentage_discount_rounds_half_up(self):
        # 15% of 1010 is 151.5
        self.assertEqual(calculate_discount(1010, DiscountRule("percentage", 15)), 152)
        # 15% of 1003 is 150.45
        self.assertEqual(calculate_discount(1003, DiscountRule("percentage", 15)), 150)

    def test_fixed_discount_is_capped_at_subtotal(self):
        self.assertEqual(calculate_discount(150, DiscountRule("fixed", 200)), 150)

    def test_full_percentage_discount_never_exceeds_subtotal(self):
        self.assertEqual(calculate_discount(999, DiscountRule("percentage", 100)), 999)

    def test_no_rule_means_no_discount(self):
        self.assertEqual(calculate_discount(5000, None), 0)

    def test_unknown_discount_type_is_rejected(self):
        with self.assertRaises(ValueError):
            calculate_discount(5000, DiscountRule("bogo", 1))


class PricingSummaryTests(SimpleTestCase):
    def test_digital_only_cart_ships_free_as_digital_delivery(self):
        summary = calculate_pricing([PricingLine(2500, 3, is_physical=False)], shipping=SHIPPING)

        self.assertEqual(summary.subtotal_cents, 7500)
        self.assertEqual(summary.shipping_cents, 0)
        self.assertEqual(summary.shipping_method, SHIPPING_METHOD_DIGITAL)
        self.assertFalse(summary.requires_shipping)
        self.assertEqual(summary.total_cents, 7500)

    def test_physical_cart_below_threshold_pays_flat_rate(self):
        summary = calculate_pricing([PricingLine(14999, 1, is_physical=True)], shipping=SHIPPING)

        self.assertEqual(summary.shipping_cents, 1500)
        self.assertEqual(summary.shipping_method, SHIPPING_METHOD_STANDARD)
        self.assertEqual(summary.total_cents, 16499)

    def test_free_shipping_applies_exactly_at_threshold(self):
        summary = calculate_pricing([PricingLine(15000, 1, is_physical=True)], shipping=SHIPPING)

        self.assertEqual(summary.shipping_cents, 0)
        self.assertEqual(summary.shipping_method, SHIPPING_METHOD_FREE)
        self.assertEqual(summary.total_cents, 15000)

    def test_threshold_is_measured_after_discount(self):
        summary = calculate_pricing(
            [PricingLine(16000, 1, is_physical=True)],
            DiscountRule("percentage", 10),
            SHIPPING,
        )

        self.assertEqual(summary.discount_cents, 1600)
        self.assertEqual(summary.shipping_cents, 1500)
        self.assertEqual(summary.total_cents, 16000 - 1600 + 1500)

    def test_zero_threshold_disables_free_shipping(self):
        summary = calculate_pricing(
            [PricingLine(90000, 1, is_physical=True)],
            shipping=ShippingConfig(flat_rate_cents=1500, free_threshold_cents=0),
        )
        self.assertEqual(summary.shipping_cents, 1500)

    def test_mixed_cart_totals_balance(self):
        lines = [
            PricingLine(42000, 1, is_physical=True),
            PricingLine(1800, 2, is_physical=False),
        ]
        summary = calculate_pricing(lines, DiscountRule("fixed", 2500), SHIPPING)

        self.assertEqual(summary.subtotal_cents, 45600)
        self.assertEqual(summary.discount_cents, 2500)
        self.assertEqual(
            summary.total_cents,
            summary.subtotal_cents - summary.discount_cents + summary.shipping_cents,
        )
        self.assertLessEqual(summary.discount_cents, summary.subtotal_cents)
