from __future__ import annotations

import re
from typing import Any
from uuid import UUID

from ..models import Order

UUID_PATTERN = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b"
)


def _normalize_text(value: Any) -> str:
    return str(value or "").strip()


def _safe_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _normalize_uuid(value: Any) -> str:
    raw = _normalize_text(value)
    if not raw:
        return ""
    try:
        return str(UUID(raw))
    except ValueError:
        match = UUID_PATTERN.search(raw)
        if not match:
            return ""
        return str(UUID(match.group(0)))


def _metadata_order_id(data: dict[str, Any]) -> str:
    metadata = _safe_dict(data.get("metadata"))
    return _normalize_uuid(metadata.get("order_id") or data.get("client_reference_id"))


def _metadata_flag(data: dict[str, Any], key: str) -> bool:
    metadata = _safe_dict(data.get("metadata"))
    return _normalize_text(metadata.get(key)).lower() == "true"


def _locked_orders():
    return Order.objects.select_for_update()


def _resolve_order_from_session(session: dict[str, Any]) -> Order | None:
    order_public_id = _metadata_order_id(session)
    if order_public_id:
        order = _locked_orders().filter(public_id=order_public_id).first()
        if order is not None:
            return order

    session_id = _normalize_text(session.get("id"))
    if session_id:
        return _locked_orders().filter(checkout_session_id=session_id).first()
    return None


def _resolve_order_from_payment_intent(intent: dict[str, Any]) -> Order | None:
    intent_id = _normalize_text(intent.get("id"))
    if intent_id:
        order = _locked_orders().for_payment_reference(intent_id).first()
        if order is not None:
            return order

    order_public_id = _metadata_order_id(intent)
    if order_public_id:
        return _locked_orders().filter(public_id=order_public_id).first()
    return None


def _extract_shipping_details(session: dict[str, Any]) -> dict[str, Any]:
    """Return ``{"name": ..., "address": {...}}`` from any API version's layout."""
    collected = _safe_dict(session.get("collected_information"))
    for candidate in (
        collected.get("shipping_details"),
        session.get("shipping_details"),
        session.get("shipping"),
    ):
        details = _safe_dict(candidate)
        if _safe_dict(details.get("address")):
            return details
    return {}


def _merged_contact_fields(order: Order, session: dict[str, Any]) -> dict[str, str]:
    """Provider-collected contact and shipping values, falling back field by field."""
    customer = _safe_dict(session.get("customer_details"))
    shipping = _extract_shipping_details(session)
    address = _safe_dict(shipping.get("address"))

    def pick(provided: Any, current: str) -> str:
        return _normalize_text(provided) or current

    return {
        "email": pick(customer.get("email") or session.get("customer_email"), order.email),
        "name": pick(shipping.get("name") or customer.get("name"), order.name),
        "shipping_address_line1": pick(address.get("line1"), order.shipping_address_line1),
        "shipping_address_line2": pick(address.get("line2"), order.shipping_address_line2),
        "shipping_city": pick(address.get("city"), order.shipping_city),
        "shipping_state": pick(address.get("state"), order.shipping_state),
        "shipping_postal_code": pick(address.get("postal_code"), order.shipping_postal_code),
        "shipping_country": pick(address.get("country"), order.shipping_country).upper(),
    }
