from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.db.models.functions import Lower
from django.utils import timezone


class ProductQuerySet(models.QuerySet):
    def mark_sold(self, product_id) -> bool:
        """Flip a physical product from active to sold.

        Returns ``False`` when the row was not active (already sold, inactive or
        missing), so a redelivered payment notification never marks twice.
        """
        updated = self.filter(
            pk=product_id,
            product_type=Product.ProductType.PHYSICAL,
            status=Product.Status.ACTIVE,
        ).update(status=Product.Status.SOLD, updated_at=timezone.now())
        return updated == 1


class Product(models.Model):
    class ProductType(models.TextChoices):
        PHYSICAL = "physical", "Physical"
        DIGITAL = "digital", "Digital"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        SOLD = "sold", "Sold"

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price_cents = models.PositiveIntegerField()
    category = models.CharField(max_length=80, blank=True)
    product_type = models.CharField(
        max_length=16,
        choices=ProductType.choices,
        default=ProductType.PHYSICAL,
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    medium = models.CharField(max_length=120, blank=True)
    dimensions = models.CharField(max_length=120, blank=True)
    year = models.PositiveSmallIntegerField(blank=True, null=True)
    is_featured = models.BooleanField(default=False)
    is_new = models.BooleanField(default=False)
    digital_file_path = models.CharField(max_length=420, blank=True)
    digital_file_name = models.CharField(max_length=255, blank=True)
    digital_file_mime_type = models.CharField(max_length=120, blank=True)
    digital_file_size_bytes = models.PositiveBigIntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=("status", "product_type"), name="product_status_type_idx"),
            models.Index(fields=("category", "status"), name="product_category_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(price_cents__gt=0), name="product_price_positive"),
            models.CheckConstraint(condition=~Q(title=""), name="product_title_not_empty"),
        ]

    @property
    def is_physical(self) -> bool:
        return self.product_type == self.ProductType.PHYSICAL

    @property
    def is_digital(self) -> bool:
        return self.product_type == self.ProductType.DIGITAL

    @property
    def is_purchasable(self) -> bool:
        return self.status == self.Status.ACTIVE

    def clean(self) -> None:
        self.title = (self.title or "").strip()
        self.description = (self.description or "").strip()
        self.category = (self.category or "").strip()
        self.medium = (self.medium or "").strip()
        self.dimensions = (self.dimensions or "").strip()
        self.digital_file_path = (self.digital_file_path or "").strip()
        self.digital_file_name = (self.digital_file_name or "").strip()
        self.digital_file_mime_type = (self.digital_file_mime_type or "").strip()

        if not self.title:
            raise ValidationError({"title": "Product title cannot be empty."})
        if not self.price_cents or self.price_cents <= 0:
            raise ValidationError({"price_cents": "Price must be greater than zero."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.title} ({self.product_type}, {self.status})"


class DiscountQuerySet(models.QuerySet):
    def get_by_code(self, code: str) -> Discount | None:
        normalized = str(code or "").strip()
        if not normalized:
            return None
        return self.filter(code__iexact=normalized).first()

    def increment_usage(self, discount_id) -> bool:
        """Count one redemption unless the usage cap has already been reached."""
        updated = (
            self.filter(pk=discount_id)
            .filter(Q(max_uses__isnull=True) | Q(used_count__lt=F("max_uses")))
            .update(used_count=F("used_count") + 1)
        )
        return updated == 1


class Discount(models.Model):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED = "fixed", "Fixed amount (cents)"

    class Unavailable(models.TextChoices):
        INACTIVE = "inactive", "Discount code is not active"
        EXPIRED = "expired", "Discount code has expired"
        EXHAUSTED = "exhausted", "Discount code usage limit reached"

    code = models.CharField(max_length=64)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices)
    # Whole percent for percentage discounts, cents for fixed discounts.
    value = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)
    max_uses = models.PositiveIntegerField(blank=True, null=True)
    used_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DiscountQuerySet.as_manager()

    class Meta:
        ordering = ("code",)
        constraints = [
            models.UniqueConstraint(Lower("code"), name="discount_code_ci_unique"),
            models.CheckConstraint(condition=Q(value__gt=0), name="discount_value_positive"),
        ]

    def unavailable_reason(self, now=None) -> str:
        """Return an ``Unavailable`` value, or an empty string when redeemable."""
        now = now or timezone.now()
        if not self.is_active:
            return self.Unavailable.INACTIVE
        if self.expires_at and self.expires_at < now:
            return self.Unavailable.EXPIRED
        if self.max_uses is not None and self.used_count >= self.max_uses:
            return self.Unavailable.EXHAUSTED
        return ""

    @property
    def is_redeemable(self) -> bool:
        return not self.unavailable_reason()

    def clean(self) -> None:
        self.code = (self.code or "").strip()
        if not self.code:
            raise ValidationError({"code": "Discount code is required."})
        if self.discount_type == self.DiscountType.PERCENTAGE and not 0 < (self.value or 0) <= 100:
            raise ValidationError({"value": "Percentage discounts must be between 1 and 100."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code
