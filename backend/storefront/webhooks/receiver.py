from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.utils import timezone as django_timezone
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from ..models import WebhookEvent
from .handlers import EVENT_HANDLERS
from .verification import WebhookVerificationError, _verify_webhook

logger = logging.getLogger(__name__)


def _finish(webhook_event: WebhookEvent, status: str, error_message: str = "") -> None:
    webhook_event.status = status
    webhook_event.processed_at = django_timezone.now()
    webhook_event.error_message = error_message
    webhook_event.save(update_fields=["status", "processed_at", "error_message"])


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(View):
    """Receive and reconcile Stripe webhook events.

    After the signature checks out the response is always 200 so Stripe stops
    retrying; processing failures are journaled on ``WebhookEvent`` instead.
    """

    def post(self, request: HttpRequest) -> JsonResponse:
        try:
            event = _verify_webhook(request.body, request.headers.get("Stripe-Signature", ""))
        except WebhookVerificationError as exc:
            logger.warning("Webhook verification failed: %s", exc)
            return JsonResponse({"detail": str(exc)}, status=400)

        event_id = str(event.get("id") or "").strip()
        event_type = str(event.get("type") or "").strip()
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        data_object = data.get("object") if isinstance(data.get("object"), dict) else {}

        if not event_id or not event_type:
            logger.warning("Verified webhook without id or type; nothing to do.")
            return JsonResponse({"received": True})

        webhook_event, created = WebhookEvent.objects.get_or_create(
            provider=WebhookEvent.Provider.STRIPE,
            event_id=event_id,
            defaults={
                "event_type": event_type,
                "payload": event,
                "status": WebhookEvent.Status.RECEIVED,
            },
        )
        if not created and webhook_event.status in {
            WebhookEvent.Status.PROCESSED,
            WebhookEvent.Status.IGNORED,
        }:
            logger.info("Skipping redelivered Stripe event %s (%s).", event_id, event_type)
            return JsonResponse({"received": True, "deduplicated": True})

        handler = EVENT_HANDLERS.get(event_type)
        if handler is None:
            logger.debug("Unhandled Stripe webhook event type: %s", event_type)
            _finish(webhook_event, WebhookEvent.Status.IGNORED)
            return JsonResponse({"received": True})

        try:
            handler(data_object)
        except Exception as exc:
            logger.exception("Error processing Stripe event %s (%s).", event_id, event_type)
            _finish(webhook_event, WebhookEvent.Status.FAILED, str(exc)[:2000])
        else:
            _finish(webhook_event, WebhookEvent.Status.PROCESSED)

        return JsonResponse({"received": True})
