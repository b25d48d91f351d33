from __future__ import annotations

from typing import Any

from django.conf import settings

from ..pricing import ShippingConfig


def _safe_str(value: Any) -> str:
    return str(value).strip() if value else ""


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _truthy(value: Any) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def shipping_config_from_settings() -> ShippingConfig:
    return ShippingConfig(
        flat_rate_cents=_safe_int(getattr(settings, "SHIPPING_FLAT_RATE_CENTS", 1500), 1500),
        free_threshold_cents=_safe_int(getattr(settings, "FREE_SHIPPING_THRESHOLD_CENTS", 15000), 15000),
        estimated_days=_safe_str(getattr(settings, "SHIPPING_ESTIMATED_DAYS", "")) or "5-7 business days",
    )
