from .handlers import (
    EVENT_HANDLERS,
    handle_checkout_session_completed,
    handle_checkout_session_expired,
    handle_payment_intent_failed,
)
from .receiver import StripeWebhookView
from .verification import WebhookVerificationError, _verify_webhook

__all__ = [
    "StripeWebhookView",
    "EVENT_HANDLERS",
    "WebhookVerificationError",
    "_verify_webhook",
    "handle_checkout_session_completed",
    "handle_checkout_session_expired",
    "handle_payment_intent_failed",
]
