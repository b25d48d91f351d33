from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient

from storefront.models import Order, OrderItem, Product
from storefront.tools.payments import (
    CheckoutSession,
    PaymentProviderConfigurationError,
    PaymentProviderError,
)

from .helpers import create_digital_product, create_discount, create_product, stripe_event, stripe_signature

SHIPPING_ADDRESS = {
    "name": "Ada Buyer",
    "line1": "12 Harbor Rd",
    "city": "Portland",
    "state": "ME",
    "postal_code": "04101",
    "country": "US",
}


class CheckoutApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        patcher = patch("storefront.views_modules.checkout.create_checkout_session")
        self.mock_create_session = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_create_session.return_value = CheckoutSession(
            session_id="cs_test_123",
            url="https://checkout.stripe.com/c/pay/cs_test_123",
        )

    def _checkout(self, payload):
        return self.client.post("/api/checkout/", payload, format="json")

    def test_physical_checkout_creates_pending_order_and_session(self):
        painting = create_product(title="Harbor at Dusk", price_cents=42000)

        response = self._checkout(
            {
                "items": [{"product_id": painting.id, "quantity": 1}],
                "customer_email": "ada@example.com",
                "shipping_address": SHIPPING_ADDRESS,
            }
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["session_id"], "cs_test_123")
        self.assertEqual(response.data["session_url"], "https://checkout.stripe.com/c/pay/cs_test_123")
        summary = response.data["summary"]
        self.assertEqual(summary["subtotal_cents"], 42000)
        self.assertEqual(summary["shipping_cents"], 0)
        self.assertEqual(summary["shipping_method"], "Free Standard Shipping")
        self.assertEqual(summary["total_cents"], 42000)
        self.assertIsNone(summary["applied_discount"])

        order = Order.objects.get(public_id=response.data["order_id"])
        self.assertEqual(order.state, Order.State.PENDING)
        self.assertEqual(order.checkout_session_id, "cs_test_123")
        self.assertEqual(order.payment_reference, "cs_test_123")
        self.assertEqual(order.email, "ada@example.com")
        self.assertEqual(order.shipping_city, "Portland")
        item = order.items.get()
        self.assertEqual(item.product_title, "Harbor at Dusk")
        self.assertEqual(item.unit_price_cents, 42000)

        checkout_request = self.mock_create_session.call_args.args[0]
        self.assertEqual(checkout_request.order_public_id, str(order.public_id))
        self.assertTrue(checkout_request.has_physical_items)
        self.assertEqual(checkout_request.customer_email, "ada@example.com")

    def test_flat_rate_applies_below_threshold(self):
        sketch = create_product(title="Study", price_cents=9000)

        response = self._checkout(
            {"items": [{"product_id": sketch.id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS}
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["summary"]["shipping_cents"], 1500)
        self.assertEqual(response.data["summary"]["total_cents"], 10500)

    def test_digital_only_cart_needs_no_address(self):
        print_file = create_digital_product(price_cents=2500)

        response = self._checkout({"items": [{"product_id": print_file.id, "quantity": 3}]})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["summary"]["shipping_cents"], 0)
        self.assertEqual(response.data["summary"]["shipping_method"], "Digital Delivery")
        self.assertEqual(response.data["summary"]["total_cents"], 7500)
        self.assertFalse(self.mock_create_session.call_args.args[0].has_physical_items)

    def test_physical_quantity_above_one_is_rejected_before_persisting(self):
        painting = create_product()

        response = self._checkout(
            {"items": [{"product_id": painting.id, "quantity": 2}], "shipping_address": SHIPPING_ADDRESS}
        )

        self.assertEqual(response.status_code, 409)
        self.assertIn("unique original artwork", response.data["detail"])
        self.assertFalse(Order.objects.exists())
        self.mock_create_session.assert_not_called()

    def test_repeated_physical_lines_count_as_one_quantity(self):
        painting = create_product()

        response = self._checkout(
            {
                "items": [
                    {"product_id": painting.id, "quantity": 1},
                    {"product_id": painting.id, "quantity": 1},
                ],
                "shipping_address": SHIPPING_ADDRESS,
            }
        )

        self.assertEqual(response.status_code, 409)
        self.assertFalse(Order.objects.exists())

    def test_physical_cart_requires_shipping_address(self):
        painting = create_product()

        response = self._checkout({"items": [{"product_id": painting.id, "quantity": 1}]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["detail"], "Shipping address is required for physical items.")
        self.assertFalse(Order.objects.exists())

    def test_unknown_product_is_not_found(self):
        response = self._checkout({"items": [{"product_id": 9999, "quantity": 1}]})
        self.assertEqual(response.status_code, 404)

    def test_sold_and_inactive_products_are_conflicts_with_distinct_messages(self):
        sold = create_product(title="Gone", status=Product.Status.SOLD)
        hidden = create_product(title="Draft", status=Product.Status.INACTIVE)

        sold_response = self._checkout(
            {"items": [{"product_id": sold.id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS}
        )
        hidden_response = self._checkout(
            {"items": [{"product_id": hidden.id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS}
        )

        self.assertEqual(sold_response.status_code, 409)
        self.assertIn("no longer available", sold_response.data["detail"])
        self.assertEqual(hidden_response.status_code, 409)
        self.assertIn("not available for purchase", hidden_response.data["detail"])

    def test_malformed_request_returns_field_errors(self):
        response = self._checkout({"items": [{"product_id": "abc", "quantity": 0}]})

        self.assertEqual(response.status_code, 400)
        self.assertIn("items", response.data)

    def test_empty_cart_is_rejected(self):
        response = self._checkout({"items": []})
        self.assertEqual(response.status_code, 400)

    def test_valid_discount_is_applied_and_sent_as_amount(self):
        create_discount(code="SPRING10", value=10)
        print_file = create_digital_product(price_cents=1000)

        response = self._checkout(
            {"items": [{"product_id": print_file.id, "quantity": 1}], "discount_code": "spring10"}
        )

        self.assertEqual(response.status_code, 201)
        summary = response.data["summary"]
        self.assertEqual(summary["discount_cents"], 100)
        self.assertEqual(summary["total_cents"], 900)
        self.assertEqual(summary["applied_discount"]["code"], "SPRING10")
        self.assertIsNone(summary["discount_notice"])
        self.assertEqual(self.mock_create_session.call_args.args[0].discount_cents, 100)
        self.assertEqual(Order.objects.get().discount_code, "SPRING10")

    def test_bad_discount_code_is_soft_failed(self):
        create_discount(code="USEDUP", max_uses=1, used_count=1)
        print_file = create_digital_product(price_cents=1000)

        response = self._checkout(
            {"items": [{"product_id": print_file.id, "quantity": 1}], "discount_code": "USEDUP"}
        )

        self.assertEqual(response.status_code, 201)
        summary = response.data["summary"]
        self.assertEqual(summary["discount_cents"], 0)
        self.assertIsNone(summary["applied_discount"])
        self.assertEqual(summary["discount_notice"], "Discount code usage limit reached")
        self.assertIsNone(Order.objects.get().discount_id)

    def test_unknown_discount_code_is_soft_failed(self):
        print_file = create_digital_product(price_cents=1000)

        response = self._checkout(
            {"items": [{"product_id": print_file.id, "quantity": 1}], "discount_code": "NOPE"}
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["summary"]["discount_notice"], "Discount code not found")

    def test_processor_failure_leaves_order_pending(self):
        self.mock_create_session.side_effect = PaymentProviderError("card network down")
        print_file = create_digital_product()

        response = self._checkout({"items": [{"product_id": print_file.id, "quantity": 1}]})

        self.assertEqual(response.status_code, 502)
        order = Order.objects.get()
        self.assertEqual(order.state, Order.State.PENDING)
        self.assertEqual(order.checkout_session_id, "")
        self.assertEqual(OrderItem.objects.filter(order=order).count(), 1)

    def test_missing_processor_configuration_is_service_unavailable(self):
        self.mock_create_session.side_effect = PaymentProviderConfigurationError(
            "STRIPE_SECRET_KEY is not configured."
        )
        print_file = create_digital_product()

        response = self._checkout({"items": [{"product_id": print_file.id, "quantity": 1}]})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["detail"], "STRIPE_SECRET_KEY is not configured.")


class PhysicalSaleFlowTests(TestCase):
    @patch("storefront.views_modules.checkout.create_checkout_session")
    def test_sold_original_cannot_be_checked_out_again(self, mock_create_session):
        mock_create_session.return_value = CheckoutSession(
            session_id="cs_flow_1",
            url="https://checkout.stripe.com/c/pay/cs_flow_1",
        )
        client = APIClient()
        painting = create_product(title="Harbor at Dusk", price_cents=42000)
        cart = {"items": [{"product_id": painting.id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS}

        checkout = client.post("/api/checkout/", cart, format="json")
        self.assertEqual(checkout.status_code, 201)

        order_id = checkout.data["order_id"]
        payload = stripe_event(
            "checkout.session.completed",
            {
                "id": "cs_flow_1",
                "payment_intent": "pi_flow_1",
                "payment_status": "paid",
                "metadata": {"order_id": order_id, "has_digital_items": "false"},
            },
            event_id="evt_flow_1",
        )
        webhook = self.client.post(
            "/api/webhooks/stripe/",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=stripe_signature(payload),
        )
        self.assertEqual(webhook.status_code, 200)

        order = Order.objects.get(public_id=order_id)
        self.assertEqual(order.state, Order.State.PAID)
        self.assertEqual(order.payment_reference, "pi_flow_1")
        painting.refresh_from_db()
        self.assertEqual(painting.status, Product.Status.SOLD)

        second = client.post("/api/checkout/", cart, format="json")
        self.assertEqual(second.status_code, 409)
        self.assertIn("no longer available", second.data["detail"])
        self.assertEqual(Order.objects.count(), 1)
