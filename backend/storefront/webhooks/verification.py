from __future__ import annotations

import json
from typing import Any

import stripe
from django.conf import settings


class WebhookVerificationError(RuntimeError):
    pass


def _tolerance_seconds() -> int:
    try:
        return int(getattr(settings, "STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300))
    except (TypeError, ValueError):
        return 300


def _verify_webhook(payload: bytes, signature_header: str) -> dict[str, Any]:
    """Verify the Stripe-Signature header and return the parsed event payload."""
    signing_secret = str(getattr(settings, "STRIPE_WEBHOOK_SECRET", "") or "").strip()
    if not signing_secret:
        raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET is not configured.")
    if not signature_header:
        raise WebhookVerificationError("Missing Stripe-Signature header.")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WebhookVerificationError("Webhook payload is not valid UTF-8.") from exc

    try:
        stripe.WebhookSignature.verify_header(body, signature_header, signing_secret, _tolerance_seconds())
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(f"Webhook signature verification failed: {exc}") from exc

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise WebhookVerificationError("Webhook payload is not valid JSON.") from exc

    if not isinstance(event, dict):
        raise WebhookVerificationError("Webhook payload must be a JSON object.")
    return event
