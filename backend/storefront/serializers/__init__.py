from .catalog import DiscountValidationSerializer, ProductSerializer
from .commerce import (
    CheckoutItemSerializer,
    CheckoutRequestSerializer,
    DownloadTokenSerializer,
    OrderItemSerializer,
    OrderSerializer,
    ShippingAddressSerializer,
)

__all__ = [
    "ProductSerializer",
    "DiscountValidationSerializer",
    "CheckoutItemSerializer",
    "CheckoutRequestSerializer",
    "ShippingAddressSerializer",
    "OrderItemSerializer",
    "OrderSerializer",
    "DownloadTokenSerializer",
]
