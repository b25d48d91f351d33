from types import SimpleNamespace
from unittest.mock import patch

import stripe
from django.test import SimpleTestCase, override_settings

from storefront.tools.payments import (
    CheckoutLine,
    CheckoutRequest,
    PaymentProviderConfigurationError,
    PaymentProviderError,
    build_session_params,
    create_checkout_session,
)

ORDER_ID = "6f1c1f4e-7d1a-4b55-9c1e-3e9f4d1f2a10"


def checkout_request(**overrides):
    defaults = {
        "order_public_id": ORDER_ID,
        "lines": [
            CheckoutLine(
                product_id=7,
                title="Harbor at Dusk",
                product_type="physical",
                unit_price_cents=42000,
                quantity=1,
            ),
            CheckoutLine(
                product_id=9,
                title="Harbor print",
                product_type="digital",
                unit_price_cents=2500,
                quantity=2,
            ),
        ],
        "shipping_cents": 1500,
        "shipping_method": "Standard Shipping (US)",
        "customer_email": "ada@example.com",
    }
    defaults.update(overrides)
    return CheckoutRequest(**defaults)


class SessionParamsTests(SimpleTestCase):
    def test_redirects_and_metadata(self):
        params = build_session_params(checkout_request())

        self.assertEqual(params["mode"], "payment")
        self.assertEqual(
            params["success_url"],
            "https://gallery.example.com/order/success?session_id={CHECKOUT_SESSION_ID}"
            f"&order_id={ORDER_ID}",
        )
        self.assertEqual(params["cancel_url"], "https://gallery.example.com/cart?cancelled=true")
        self.assertEqual(params["metadata"], {"order_id": ORDER_ID, "has_digital_items": "true"})
        self.assertEqual(params["payment_intent_data"], {"metadata": {"order_id": ORDER_ID}})
        self.assertEqual(params["customer_email"], "ada@example.com")

    def test_line_items_use_inline_price_data(self):
        line_items = build_session_params(checkout_request())["line_items"]

        self.assertEqual(len(line_items), 2)
        self.assertEqual(line_items[0]["price_data"]["unit_amount"], 42000)
        self.assertEqual(line_items[0]["price_data"]["currency"], "usd")
        self.assertEqual(line_items[0]["price_data"]["product_data"]["name"], "Harbor at Dusk")
        self.assertEqual(line_items[1]["quantity"], 2)

    def test_physical_cart_collects_us_address_with_fixed_shipping(self):
        params = build_session_params(checkout_request())

        self.assertEqual(params["shipping_address_collection"], {"allowed_countries": ["US"]})
        rate = params["shipping_options"][0]["shipping_rate_data"]
        self.assertEqual(rate["type"], "fixed_amount")
        self.assertEqual(rate["fixed_amount"], {"amount": 1500, "currency": "usd"})

    def test_digital_cart_skips_shipping(self):
        params = build_session_params(
            checkout_request(
                lines=[CheckoutLine(9, "Harbor print", "digital", 2500, 1)],
                shipping_cents=0,
                customer_email="",
            )
        )

        self.assertNotIn("shipping_address_collection", params)
        self.assertNotIn("shipping_options", params)
        self.assertNotIn("customer_email", params)


class CreateCheckoutSessionTests(SimpleTestCase):
    @patch("stripe.checkout.Session.create")
    def test_creates_session_with_idempotency_key(self, mock_create):
        mock_create.return_value = SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")

        session = create_checkout_session(checkout_request())

        self.assertEqual(session.session_id, "cs_test_1")
        self.assertEqual(session.url, "https://checkout.stripe.com/c/pay/cs_test_1")
        kwargs = mock_create.call_args.kwargs
        self.assertEqual(kwargs["api_key"], "sk_test_storefront")
        self.assertEqual(kwargs["idempotency_key"], f"checkout-{ORDER_ID}")
        self.assertNotIn("discounts", kwargs)
        self.assertEqual(stripe.max_network_retries, 0)

    @patch("stripe.checkout.Session.create")
    @patch("stripe.Coupon.create")
    def test_discount_becomes_one_time_amount_off_coupon(self, mock_coupon, mock_create):
        mock_coupon.return_value = SimpleNamespace(id="coupon_123")
        mock_create.return_value = SimpleNamespace(id="cs_test_2", url="https://checkout.stripe.com/c/pay/cs_test_2")

        create_checkout_session(checkout_request(discount_cents=4700, discount_label="SPRING10"))

        coupon_kwargs = mock_coupon.call_args.kwargs
        self.assertEqual(coupon_kwargs["amount_off"], 4700)
        self.assertEqual(coupon_kwargs["duration"], "once")
        self.assertEqual(coupon_kwargs["currency"], "usd")
        self.assertEqual(mock_create.call_args.kwargs["discounts"], [{"coupon": "coupon_123"}])

    @patch("stripe.checkout.Session.create")
    def test_stripe_errors_are_wrapped(self, mock_create):
        mock_create.side_effect = stripe.APIConnectionError("Network unreachable")

        with self.assertRaises(PaymentProviderError):
            create_checkout_session(checkout_request())

    @override_settings(STRIPE_SECRET_KEY="")
    def test_missing_secret_key_is_a_configuration_error(self):
        with self.assertRaises(PaymentProviderConfigurationError):
            create_checkout_session(checkout_request())
