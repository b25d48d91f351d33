from django.contrib import admin

from .models import Discount, DownloadToken, Order, OrderItem, Product, WebhookEvent


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "product_type", "status", "price_cents", "category", "is_featured", "updated_at")
    search_fields = ("title", "category", "medium")
    list_filter = ("product_type", "status", "is_featured", "is_new")


@admin.register(Discount)
class DiscountAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_type", "value", "is_active", "used_count", "max_uses", "expires_at")
    search_fields = ("code",)
    list_filter = ("discount_type", "is_active")
    readonly_fields = ("used_count",)


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "product_title", "product_type", "quantity", "unit_price_cents", "line_total_cents")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("public_id", "email", "state", "total_cents", "shipping_method", "paid_at", "updated_at")
    search_fields = ("public_id", "email", "name", "checkout_session_id", "payment_reference")
    list_filter = ("state", "shipping_method")
    readonly_fields = ("public_id", "checkout_session_id", "payment_reference", "paid_at", "cancelled_at")
    inlines = [OrderItemInline]


@admin.register(DownloadToken)
class DownloadTokenAdmin(admin.ModelAdmin):
    list_display = ("file_name", "order", "download_count", "max_downloads", "expires_at", "last_downloaded_at")
    search_fields = ("order__public_id", "file_name", "product__title")
    readonly_fields = ("token", "download_count", "last_downloaded_at")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("provider", "event_id", "event_type", "status", "received_at", "processed_at")
    search_fields = ("event_id", "event_type")
    list_filter = ("provider", "status")
