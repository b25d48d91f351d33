from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.utils import timezone as django_timezone

from ..fulfillment import fulfill_paid_order
from ..models import Order
from .helpers import (
    _merged_contact_fields,
    _metadata_flag,
    _normalize_text,
    _resolve_order_from_payment_intent,
    _resolve_order_from_session,
)

logger = logging.getLogger(__name__)


@transaction.atomic
def handle_checkout_session_completed(data: dict[str, Any]):
    session_id = _normalize_text(data.get("id"))
    order = _resolve_order_from_session(data)
    if order is None:
        logger.warning("checkout.session.completed for unknown order (session=%s).", session_id)
        return None

    if order.is_paid:
        logger.info("Order %s already paid; ignoring duplicate completion.", order.public_id)
        return order

    payment_intent = _normalize_text(data.get("payment_intent"))
    now = django_timezone.now()
    won = Order.objects.transition(
        order.pk,
        Order.State.PAID,
        payment_reference=payment_intent or session_id or order.payment_reference,
        paid_at=now,
        **_merged_contact_fields(order, data),
    )
    if not won:
        logger.warning(
            "Order %s could not move from %s to paid (session=%s).",
            order.public_id,
            order.state,
            session_id,
        )
        return order

    order.refresh_from_db()
    logger.info("Order %s marked paid (payment_reference=%s).", order.public_id, order.payment_reference)
    fulfill_paid_order(order, has_digital_items=_metadata_flag(data, "has_digital_items"))
    return order


@transaction.atomic
def handle_checkout_session_expired(data: dict[str, Any]):
    order = _resolve_order_from_session(data)
    if order is None:
        logger.warning("checkout.session.expired for unknown order (session=%s).", _normalize_text(data.get("id")))
        return None

    if order.is_paid:
        return order

    if Order.objects.transition(order.pk, Order.State.CANCELLED, cancelled_at=django_timezone.now()):
        logger.info("Order %s cancelled after checkout session expired.", order.public_id)
        order.refresh_from_db()
    return order


@transaction.atomic
def handle_payment_intent_failed(data: dict[str, Any]):
    order = _resolve_order_from_payment_intent(data)
    if order is None:
        logger.warning(
            "payment_intent.payment_failed for unknown order (payment_intent=%s).",
            _normalize_text(data.get("id")),
        )
        return None

    if order.is_paid:
        return order

    if Order.objects.transition(order.pk, Order.State.PAYMENT_FAILED):
        error = data.get("last_payment_error") if isinstance(data.get("last_payment_error"), dict) else {}
        logger.info(
            "Order %s payment failed: %s",
            order.public_id,
            _normalize_text(error.get("message")) or "no reason given",
        )
        order.refresh_from_db()
    return order


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "checkout.session.expired": handle_checkout_session_expired,
    "payment_intent.payment_failed": handle_payment_intent_failed,
}
