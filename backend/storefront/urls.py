from django.urls import path

from .views import (
    CheckoutView,
    DiscountValidateView,
    DownloadView,
    HealthView,
    OrderDetailView,
    OrderDownloadsView,
    ProductDetailView,
    ProductListView,
    StripeConfigView,
)
from .webhooks import StripeWebhookView

urlpatterns = [
    path("health/", HealthView.as_view(), name="health"),
    path("config/stripe/", StripeConfigView.as_view(), name="stripe-config"),
    path("products/", ProductListView.as_view(), name="product-list"),
    path("products/<int:pk>/", ProductDetailView.as_view(), name="product-detail"),
    path("discounts/validate/", DiscountValidateView.as_view(), name="discount-validate"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("orders/<uuid:public_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("orders/<uuid:public_id>/downloads/", OrderDownloadsView.as_view(), name="order-downloads"),
    path("download/<str:token>/", DownloadView.as_view(), name="download"),
    path("webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
