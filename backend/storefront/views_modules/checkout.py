from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.utils import timezone as django_timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ..exceptions import (
    InvalidQuantity,
    PaymentFailed,
    PaymentUnavailable,
    ProductNotFound,
    ProductUnavailable,
    ShippingAddressRequired,
)
from ..models import Discount, Order, OrderItem, Product
from ..pricing import DiscountRule, PricingLine, PricingSummary, calculate_pricing
from ..serializers import CheckoutRequestSerializer
from ..tools.payments import (
    CheckoutLine,
    CheckoutRequest,
    PaymentProviderConfigurationError,
    PaymentProviderError,
    create_checkout_session,
)
from .helpers import _safe_str, shipping_config_from_settings

logger = logging.getLogger(__name__)


def _merge_cart_items(items: list[dict[str, Any]]) -> list[tuple[int, int]]:
    """Collapse repeated product ids into a single line, keeping first-seen order."""
    quantities: dict[int, int] = {}
    for item in items:
        product_id = item["product_id"]
        quantities[product_id] = quantities.get(product_id, 0) + item["quantity"]
    return list(quantities.items())


def _load_cart_products(items: list[dict[str, Any]]) -> list[tuple[Product, int]]:
    merged = _merge_cart_items(items)
    products = Product.objects.in_bulk([product_id for product_id, _ in merged])

    lines: list[tuple[Product, int]] = []
    for product_id, quantity in merged:
        product = products.get(product_id)
        if product is None:
            raise ProductNotFound(f"Product not found: {product_id}")

        if product.status == Product.Status.SOLD:
            raise ProductUnavailable(f"Product is no longer available: {product.title}")
        if not product.is_purchasable:
            raise ProductUnavailable(f"Product is not available for purchase: {product.title}")

        if product.is_physical and quantity > 1:
            raise InvalidQuantity(
                f'"{product.title}" is a unique original artwork and cannot have quantity greater than 1'
            )
        lines.append((product, quantity))
    return lines


def _resolve_discount(code: str) -> tuple[Discount | None, str]:
    """Return the redeemable discount for ``code`` and a notice when it was rejected."""
    code = _safe_str(code)
    if not code:
        return None, ""

    discount = Discount.objects.get_by_code(code)
    if discount is None:
        return None, "Discount code not found"

    reason = discount.unavailable_reason(django_timezone.now())
    if reason:
        return None, Discount.Unavailable(reason).label
    return discount, ""


def _applied_discount_payload(discount: Discount | None) -> dict[str, Any] | None:
    if discount is None:
        return None
    return {
        "id": discount.id,
        "code": discount.code,
        "discount_type": discount.discount_type,
        "value": discount.value,
    }


@transaction.atomic
def _create_pending_order(
    *,
    lines: list[tuple[Product, int]],
    summary: PricingSummary,
    discount: Discount | None,
    customer_email: str,
    shipping_address: dict[str, Any] | None,
) -> Order:
    address = shipping_address or {}
    order = Order.objects.create(
        email=customer_email,
        name=_safe_str(address.get("name")),
        shipping_address_line1=_safe_str(address.get("line1")),
        shipping_address_line2=_safe_str(address.get("line2")),
        shipping_city=_safe_str(address.get("city")),
        shipping_state=_safe_str(address.get("state")),
        shipping_postal_code=_safe_str(address.get("postal_code")),
        shipping_country=_safe_str(address.get("country")) or "US",
        subtotal_cents=summary.subtotal_cents,
        discount_cents=summary.discount_cents,
        shipping_cents=summary.shipping_cents,
        total_cents=summary.total_cents,
        shipping_method=summary.shipping_method,
        discount=discount,
        discount_code=discount.code if discount else "",
        state=Order.State.PENDING,
    )
    for product, quantity in lines:
        OrderItem.objects.create(
            order=order,
            product=product,
            product_title=product.title,
            product_type=product.product_type,
            quantity=quantity,
            unit_price_cents=product.price_cents,
            line_total_cents=product.price_cents * quantity,
        )
    return order


class CheckoutView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_scope = "checkout_create"

    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        lines = _load_cart_products(data["items"])
        has_physical = any(product.is_physical for product, _ in lines)
        shipping_address = data.get("shipping_address")
        if has_physical and not shipping_address:
            raise ShippingAddressRequired()

        discount, discount_notice = _resolve_discount(data.get("discount_code", ""))
        summary = calculate_pricing(
            [
                PricingLine(
                    unit_price_cents=product.price_cents,
                    quantity=quantity,
                    is_physical=product.is_physical,
                )
                for product, quantity in lines
            ],
            DiscountRule(discount.discount_type, discount.value) if discount else None,
            shipping_config_from_settings(),
        )

        customer_email = _safe_str(data.get("customer_email"))
        order = _create_pending_order(
            lines=lines,
            summary=summary,
            discount=discount,
            customer_email=customer_email,
            shipping_address=shipping_address if has_physical else None,
        )
        logger.info(
            "Created pending order %s (%s line(s), total_cents=%s, discount=%s).",
            order.public_id,
            len(lines),
            summary.total_cents,
            order.discount_code or "-",
        )

        checkout_request = CheckoutRequest(
            order_public_id=str(order.public_id),
            lines=[
                CheckoutLine(
                    product_id=product.id,
                    title=product.title,
                    product_type=product.product_type,
                    unit_price_cents=product.price_cents,
                    quantity=quantity,
                )
                for product, quantity in lines
            ],
            discount_cents=summary.discount_cents,
            discount_label=order.discount_code,
            shipping_cents=summary.shipping_cents,
            shipping_method=summary.shipping_method,
            customer_email=customer_email,
        )
        # The order stays pending if Stripe fails; it is never rolled back here.
        try:
            session = create_checkout_session(checkout_request)
        except PaymentProviderConfigurationError as exc:
            logger.error("Checkout for order %s is not configured: %s", order.public_id, exc)
            raise PaymentUnavailable(str(exc)) from exc
        except PaymentProviderError as exc:
            raise PaymentFailed(str(exc)) from exc

        Order.objects.filter(pk=order.pk).update(
            checkout_session_id=session.session_id,
            payment_reference=session.session_id,
            updated_at=django_timezone.now(),
        )

        return Response(
            {
                "session_id": session.session_id,
                "session_url": session.url,
                "order_id": str(order.public_id),
                "summary": {
                    "subtotal_cents": summary.subtotal_cents,
                    "discount_cents": summary.discount_cents,
                    "shipping_cents": summary.shipping_cents,
                    "total_cents": summary.total_cents,
                    "shipping_method": summary.shipping_method,
                    "estimated_days": summary.estimated_days,
                    "applied_discount": _applied_discount_payload(discount),
                    "discount_notice": discount_notice or None,
                },
            },
            status=status.HTTP_201_CREATED,
        )
