from __future__ import annotations

from django.conf import settings
from rest_framework import serializers

from ..models import DownloadToken, Order, OrderItem


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=10)


class ShippingAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    line1 = serializers.CharField(max_length=200)
    line2 = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=120)
    state = serializers.CharField(max_length=120)
    postal_code = serializers.CharField(max_length=32)
    country = serializers.CharField(max_length=2, required=False, default="US")

    def validate_country(self, value: str) -> str:
        normalized = str(value or "").strip().upper()
        allowed = [str(code).upper() for code in getattr(settings, "SHIPPING_ALLOWED_COUNTRIES", ["US"])]
        if normalized not in allowed:
            raise serializers.ValidationError(f"Shipping is only available to: {', '.join(allowed)}.")
        return normalized


class CheckoutRequestSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, allow_empty=False, min_length=1, max_length=50)
    discount_code = serializers.CharField(required=False, allow_blank=True, max_length=64, default="")
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    shipping_address = ShippingAddressSerializer(required=False, allow_null=True, default=None)


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = (
            "id",
            "product",
            "product_title",
            "product_type",
            "quantity",
            "unit_price_cents",
            "line_total_cents",
        )
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source="public_id", read_only=True)
    status = serializers.CharField(read_only=True)
    payment_status = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = (
            "id",
            "email",
            "name",
            "shipping_address_line1",
            "shipping_address_line2",
            "shipping_city",
            "shipping_state",
            "shipping_postal_code",
            "shipping_country",
            "subtotal_cents",
            "discount_cents",
            "shipping_cents",
            "total_cents",
            "shipping_method",
            "discount_code",
            "state",
            "status",
            "payment_status",
            "payment_provider",
            "paid_at",
            "cancelled_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class DownloadTokenSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = DownloadToken
        fields = (
            "token",
            "file_name",
            "expires_at",
            "download_count",
            "max_downloads",
            "url",
        )
        read_only_fields = fields

    def get_url(self, obj: DownloadToken) -> str:
        app_url = str(getattr(settings, "APP_URL", "") or "").rstrip("/")
        return f"{app_url}/api/download/{obj.token}/"
