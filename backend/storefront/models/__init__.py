from .catalog import Discount, Product
from .commerce import DownloadToken, Order, OrderItem, WebhookEvent

__all__ = [
    "Product",
    "Discount",
    "Order",
    "OrderItem",
    "DownloadToken",
    "WebhookEvent",
]
