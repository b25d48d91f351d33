from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)

CURRENCY = "usd"


class PaymentProviderError(RuntimeError):
    """Raised when a Stripe API call fails."""


class PaymentProviderConfigurationError(PaymentProviderError):
    """Raised when Stripe settings are missing or invalid."""


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    title: str
    product_type: str
    unit_price_cents: int
    quantity: int


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str


@dataclass(frozen=True)
class CheckoutRequest:
    order_public_id: str
    lines: list[CheckoutLine]
    discount_cents: int = 0
    discount_label: str = ""
    shipping_cents: int = 0
    shipping_method: str = ""
    customer_email: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def has_physical_items(self) -> bool:
        return any(line.product_type == "physical" for line in self.lines)

    @property
    def has_digital_items(self) -> bool:
        return any(line.product_type == "digital" for line in self.lines)


def _setting(name: str, default: str = "") -> str:
    return str(getattr(settings, name, default) or "").strip()


def _require_secret_key() -> str:
    secret_key = _setting("STRIPE_SECRET_KEY")
    if not secret_key:
        raise PaymentProviderConfigurationError("STRIPE_SECRET_KEY is not configured.")
    return secret_key


def _timeout_seconds() -> int:
    raw_value = getattr(settings, "STRIPE_TIMEOUT_SECONDS", 10)
    try:
        timeout = int(raw_value)
    except (TypeError, ValueError) as exc:
        raise PaymentProviderConfigurationError("STRIPE_TIMEOUT_SECONDS must be an integer.") from exc

    if timeout < 1:
        raise PaymentProviderConfigurationError("STRIPE_TIMEOUT_SECONDS must be at least 1 second.")
    return timeout


@lru_cache(maxsize=4)
def _configure_http_client(timeout_seconds: int) -> None:
    # Bounded timeout and no automatic retries; idempotency keys make a manual retry safe.
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
    stripe.max_network_retries = 0


def get_publishable_key() -> str:
    publishable_key = _setting("STRIPE_PUBLISHABLE_KEY")
    if not publishable_key:
        raise PaymentProviderConfigurationError("STRIPE_PUBLISHABLE_KEY is not configured.")
    return publishable_key


def _frontend_url() -> str:
    frontend_url = _setting("FRONTEND_APP_URL")
    if not frontend_url:
        raise PaymentProviderConfigurationError("FRONTEND_APP_URL is required for checkout redirects.")
    return frontend_url.rstrip("/")


def _build_line_items(lines: list[CheckoutLine]) -> list[dict]:
    return [
        {
            "price_data": {
                "currency": CURRENCY,
                "unit_amount": line.unit_price_cents,
                "product_data": {
                    "name": line.title,
                    "metadata": {
                        "product_id": str(line.product_id),
                        "product_type": line.product_type,
                    },
                },
            },
            "quantity": line.quantity,
        }
        for line in lines
    ]


def _build_shipping_options(request: CheckoutRequest) -> list[dict]:
    return [
        {
            "shipping_rate_data": {
                "type": "fixed_amount",
                "fixed_amount": {"amount": request.shipping_cents, "currency": CURRENCY},
                "display_name": request.shipping_method or "Standard Shipping (US)",
            }
        }
    ]


def _create_discount_coupon(request: CheckoutRequest, secret_key: str) -> str:
    coupon = stripe.Coupon.create(
        api_key=secret_key,
        idempotency_key=f"coupon-{request.order_public_id}",
        amount_off=request.discount_cents,
        currency=CURRENCY,
        duration="once",
        name=(request.discount_label or "Discount")[:40],
    )
    return coupon.id


def build_session_params(request: CheckoutRequest) -> dict:
    frontend_url = _frontend_url()
    metadata = {
        "order_id": request.order_public_id,
        "has_digital_items": "true" if request.has_digital_items else "false",
        **request.metadata,
    }

    params = {
        "mode": "payment",
        "line_items": _build_line_items(request.lines),
        "success_url": (
            f"{frontend_url}/order/success?session_id={{CHECKOUT_SESSION_ID}}"
            f"&order_id={request.order_public_id}"
        ),
        "cancel_url": f"{frontend_url}/cart?cancelled=true",
        "client_reference_id": request.order_public_id,
        "metadata": metadata,
        "payment_intent_data": {"metadata": {"order_id": request.order_public_id}},
    }
    if request.customer_email:
        params["customer_email"] = request.customer_email

    if request.has_physical_items:
        allowed_countries = list(getattr(settings, "SHIPPING_ALLOWED_COUNTRIES", None) or ["US"])
        params["shipping_address_collection"] = {"allowed_countries": allowed_countries}
        params["shipping_options"] = _build_shipping_options(request)
    return params


def create_checkout_session(request: CheckoutRequest) -> CheckoutSession:
    """Create a Stripe Checkout Session for a pending order.

    The discount is passed as a one-time ``amount_off`` coupon so Stripe charges
    exactly the total computed here. Both calls carry idempotency keys derived
    from the order id.
    """
    secret_key = _require_secret_key()
    params = build_session_params(request)
    _configure_http_client(_timeout_seconds())

    try:
        if request.discount_cents > 0:
            params["discounts"] = [{"coupon": _create_discount_coupon(request, secret_key)}]

        session = stripe.checkout.Session.create(
            api_key=secret_key,
            idempotency_key=f"checkout-{request.order_public_id}",
            **params,
        )
    except stripe.StripeError as exc:
        logger.error(
            "Stripe checkout session creation failed for order %s (%s): %s",
            request.order_public_id,
            type(exc).__name__,
            exc,
        )
        raise PaymentProviderError(f"Stripe request failed: {exc.user_message or exc}") from exc

    session_id = str(getattr(session, "id", "") or "").strip()
    session_url = str(getattr(session, "url", "") or "").strip()
    if not session_id or not session_url:
        raise PaymentProviderError("Stripe did not return a checkout session id and URL.")
    return CheckoutSession(session_id=session_id, url=session_url)
