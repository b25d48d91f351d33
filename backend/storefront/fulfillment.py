from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.utils import timezone as django_timezone

from .models import Discount, DownloadToken, Order, OrderItem, Product
from .tools.storage import AssetStorageError, resolve_digital_asset

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentResult:
    sold_product_ids: list[int] = field(default_factory=list)
    discount_counted: bool = False
    tokens: list[DownloadToken] = field(default_factory=list)
    skipped_item_ids: list[int] = field(default_factory=list)


def _token_ttl() -> timedelta:
    return timedelta(days=int(getattr(settings, "DOWNLOAD_TOKEN_TTL_DAYS", 7) or 7))


def _max_downloads() -> int:
    return int(getattr(settings, "DOWNLOAD_MAX_PER_TOKEN", 5) or 5)


def mark_physical_items_sold(items: list[OrderItem]) -> list[int]:
    sold: list[int] = []
    for item in items:
        if not item.is_physical:
            continue
        if Product.objects.mark_sold(item.product_id):
            sold.append(item.product_id)
        else:
            # Another paid order already claimed this original.
            logger.warning(
                "Product %s on order item %s was not active when marking it sold.",
                item.product_id,
                item.id,
            )
    return sold


def count_discount_usage(order: Order) -> bool:
    if not order.discount_id:
        return False
    counted = Discount.objects.increment_usage(order.discount_id)
    if not counted:
        logger.warning(
            "Discount %s was at its usage limit when order %s was paid.",
            order.discount_code or order.discount_id,
            order.public_id,
        )
    return counted


def mint_download_tokens(order: Order, items: list[OrderItem]) -> tuple[list[DownloadToken], list[int]]:
    """Create one download token per digital item whose asset can be found."""
    now = django_timezone.now()
    expires_at = now + _token_ttl()
    max_downloads = _max_downloads()

    tokens: list[DownloadToken] = []
    skipped: list[int] = []
    for item in items:
        if not item.is_digital:
            continue
        if DownloadToken.objects.filter(order_item=item).exists():
            continue

        try:
            asset = resolve_digital_asset(item.product)
        except AssetStorageError as exc:
            logger.warning(
                "Skipping download token for order %s item %s: storage lookup failed: %s",
                order.public_id,
                item.id,
                exc,
            )
            skipped.append(item.id)
            continue

        if asset is None:
            logger.warning(
                "Skipping download token for order %s item %s: asset for product %s is missing.",
                order.public_id,
                item.id,
                item.product_id,
            )
            skipped.append(item.id)
            continue

        tokens.append(
            DownloadToken.objects.create(
                order=order,
                order_item=item,
                product=item.product,
                file_path=asset.file_path,
                file_name=asset.file_name,
                mime_type=asset.mime_type,
                expires_at=expires_at,
                max_downloads=max_downloads,
            )
        )
    return tokens, skipped


def fulfill_paid_order(order: Order, *, has_digital_items: bool = False) -> FulfillmentResult:
    """Apply the side effects of a confirmed payment.

    Must run in the same transaction as the transition to ``paid`` so a crash
    leaves nothing half done and the redelivered webhook starts over.
    """
    items = list(order.items.select_related("product").order_by("id"))
    result = FulfillmentResult()

    result.sold_product_ids = mark_physical_items_sold(items)
    result.discount_counted = count_discount_usage(order)

    if result.sold_product_ids and not order.has_shipping_address:
        logger.warning("Order %s sold physical work(s) but has no complete shipping address.", order.public_id)

    if has_digital_items or any(item.is_digital for item in items):
        result.tokens, result.skipped_item_ids = mint_download_tokens(order, items)

    logger.info(
        "Fulfilled order %s: %s product(s) sold, %s download token(s), %s item(s) skipped.",
        order.public_id,
        len(result.sold_product_ids),
        len(result.tokens),
        len(result.skipped_item_ids),
    )
    return result
