from __future__ import annotations

from rest_framework import serializers

from ..models import Discount, Product


class ProductSerializer(serializers.ModelSerializer):
    price = serializers.SerializerMethodField()
    has_digital_file = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = (
            "id",
            "title",
            "description",
            "price_cents",
            "price",
            "category",
            "product_type",
            "status",
            "medium",
            "dimensions",
            "year",
            "is_featured",
            "is_new",
            "has_digital_file",
            "digital_file_name",
            "digital_file_size_bytes",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_price(self, obj: Product) -> str:
        return f"{obj.price_cents / 100:.2f}"

    def get_has_digital_file(self, obj: Product) -> bool:
        return obj.is_digital and bool(obj.digital_file_path)


class DiscountValidationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Discount
        fields = ("id", "code", "discount_type", "value")
        read_only_fields = fields
