from .views_modules.catalog import (
    DiscountValidateView,
    HealthView,
    ProductDetailView,
    ProductListView,
    StripeConfigView,
)
from .views_modules.checkout import CheckoutView
from .views_modules.downloads import DownloadView
from .views_modules.orders import OrderDetailView, OrderDownloadsView

__all__ = [
    "HealthView",
    "StripeConfigView",
    "ProductListView",
    "ProductDetailView",
    "DiscountValidateView",
    "CheckoutView",
    "OrderDetailView",
    "OrderDownloadsView",
    "DownloadView",
]
