from __future__ import annotations

import secrets
from uuid import uuid4

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class OrderQuerySet(models.QuerySet):
    def with_items(self):
        return self.prefetch_related("items__product")

    def for_payment_reference(self, reference: str):
        normalized = str(reference or "").strip()
        if not normalized:
            return self.none()
        return self.filter(payment_reference=normalized)

    def transition(self, order_id, target: str, **fields) -> bool:
        """Compare-and-set the order state.

        Only rows whose current state may legally move to ``target`` are
        updated; the return value tells the caller whether it won the race.
        """
        sources = Order.sources_for(target)
        if not sources:
            return False
        fields.setdefault("updated_at", timezone.now())
        updated = self.filter(pk=order_id, state__in=sources).update(state=target, **fields)
        return updated == 1


class Order(models.Model):
    class State(models.TextChoices):
        PENDING = "pending", "Pending payment"
        PAYMENT_FAILED = "payment_failed", "Payment failed"
        PAID = "paid", "Paid"
        SHIPPED = "shipped", "Shipped"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        SHIPPED = "shipped", "Shipped"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    TRANSITIONS = {
        State.PENDING: frozenset({State.PAID, State.PAYMENT_FAILED, State.CANCELLED}),
        State.PAYMENT_FAILED: frozenset({State.PAID, State.CANCELLED}),
        State.PAID: frozenset({State.SHIPPED}),
        State.SHIPPED: frozenset({State.COMPLETED}),
        State.COMPLETED: frozenset(),
        State.CANCELLED: frozenset(),
    }

    # (order status, payment status) exposed for each combined state.
    STATE_STATUSES = {
        State.PENDING: (Status.PENDING, PaymentStatus.PENDING),
        State.PAYMENT_FAILED: (Status.PENDING, PaymentStatus.FAILED),
        State.PAID: (Status.PAID, PaymentStatus.PAID),
        State.SHIPPED: (Status.SHIPPED, PaymentStatus.PAID),
        State.COMPLETED: (Status.COMPLETED, PaymentStatus.PAID),
        State.CANCELLED: (Status.CANCELLED, PaymentStatus.FAILED),
    }

    public_id = models.UUIDField(default=uuid4, editable=False, unique=True, db_index=True)
    email = models.EmailField(blank=True)
    name = models.CharField(max_length=200, blank=True)
    shipping_address_line1 = models.CharField(max_length=200, blank=True)
    shipping_address_line2 = models.CharField(max_length=200, blank=True)
    shipping_city = models.CharField(max_length=120, blank=True)
    shipping_state = models.CharField(max_length=120, blank=True)
    shipping_postal_code = models.CharField(max_length=32, blank=True)
    shipping_country = models.CharField(max_length=2, default="US")
    subtotal_cents = models.PositiveIntegerField(default=0)
    discount_cents = models.PositiveIntegerField(default=0)
    shipping_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField(default=0)
    shipping_method = models.CharField(max_length=80, blank=True)
    discount = models.ForeignKey(
        "Discount",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    discount_code = models.CharField(max_length=64, blank=True)
    state = models.CharField(max_length=24, choices=State.choices, default=State.PENDING)
    payment_provider = models.CharField(max_length=24, default="stripe")
    checkout_session_id = models.CharField(max_length=255, blank=True, db_index=True)
    payment_reference = models.CharField(max_length=255, blank=True, db_index=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=("state", "updated_at"), name="order_state_updated_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(discount_cents__lte=F("subtotal_cents")),
                name="order_discount_within_subtotal",
            ),
            models.CheckConstraint(
                condition=Q(
                    total_cents=F("subtotal_cents") - F("discount_cents") + F("shipping_cents")
                ),
                name="order_total_balances",
            ),
        ]

    @classmethod
    def sources_for(cls, target: str) -> frozenset:
        return frozenset(source for source, targets in cls.TRANSITIONS.items() if target in targets)

    def can_transition_to(self, target: str) -> bool:
        return target in self.TRANSITIONS.get(self.state, frozenset())

    @property
    def status(self) -> str:
        return self.STATE_STATUSES[self.state][0]

    @property
    def payment_status(self) -> str:
        return self.STATE_STATUSES[self.state][1]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PaymentStatus.PAID

    @property
    def has_shipping_address(self) -> bool:
        return bool(self.shipping_address_line1 and self.shipping_city and self.shipping_postal_code)

    def clean(self) -> None:
        self.email = (self.email or "").strip()
        self.name = (self.name or "").strip()
        self.shipping_country = (self.shipping_country or "US").strip().upper()
        self.discount_code = (self.discount_code or "").strip()
        self.checkout_session_id = (self.checkout_session_id or "").strip()
        self.payment_reference = (self.payment_reference or "").strip()

        if (self.discount_cents or 0) > (self.subtotal_cents or 0):
            raise ValidationError({"discount_cents": "Discount cannot exceed the subtotal."})

        expected_total = (self.subtotal_cents or 0) - (self.discount_cents or 0) + (self.shipping_cents or 0)
        if self.total_cents != expected_total:
            raise ValidationError(
                {"total_cents": "Total must match subtotal - discount + shipping."}
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.public_id} ({self.state})"


class OrderItem(models.Model):
    order = models.ForeignKey("Order", on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey("Product", on_delete=models.PROTECT, related_name="order_items")
    product_title = models.CharField(max_length=200)
    product_type = models.CharField(max_length=16)
    quantity = models.PositiveIntegerField(default=1)
    unit_price_cents = models.PositiveIntegerField(default=0)
    line_total_cents = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("id",)
        indexes = [
            models.Index(fields=("order", "product"), name="order_item_order_product_idx"),
        ]

    @property
    def is_physical(self) -> bool:
        return self.product_type == "physical"

    @property
    def is_digital(self) -> bool:
        return self.product_type == "digital"

    def clean(self) -> None:
        if self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})
        if self.is_physical and self.quantity != 1:
            raise ValidationError({"quantity": "Original artworks are one of a kind; quantity must be 1."})

        if not self.product_title and self.product_id:
            self.product_title = self.product.title
        if not self.product_type and self.product_id:
            self.product_type = self.product.product_type
        self.line_total_cents = (self.unit_price_cents or 0) * (self.quantity or 0)

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_title} x{self.quantity}"


def generate_download_token() -> str:
    return secrets.token_urlsafe(32)


class DownloadTokenQuerySet(models.QuerySet):
    def active(self):
        return self.filter(revoked_at__isnull=True)

    def for_order(self, order):
        return self.active().filter(order=order).order_by("created_at")

    def record_download(self, token: str) -> int | None:
        """Count one completed transfer and return the new count.

        ``None`` means the token was revoked or already at its limit.
        """
        updated = self.active().filter(pk=token, download_count__lt=F("max_downloads")).update(
            download_count=F("download_count") + 1,
            last_downloaded_at=timezone.now(),
        )
        if not updated:
            return None
        return self.filter(pk=token).values_list("download_count", flat=True).first()

    def revoke(self, token: str) -> bool:
        """Take a token out of the active set for good."""
        return self.active().filter(pk=token).update(revoked_at=timezone.now()) == 1


class DownloadToken(models.Model):
    token = models.CharField(
        primary_key=True,
        max_length=64,
        default=generate_download_token,
        editable=False,
    )
    order = models.ForeignKey(
        "Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="download_tokens",
    )
    order_item = models.ForeignKey(
        "OrderItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="download_tokens",
    )
    product = models.ForeignKey(
        "Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="download_tokens",
    )
    file_path = models.CharField(max_length=420)
    file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=120, default="application/octet-stream")
    expires_at = models.DateTimeField()
    max_downloads = models.PositiveIntegerField(default=5)
    download_count = models.PositiveIntegerField(default=0)
    last_downloaded_at = models.DateTimeField(blank=True, null=True)
    revoked_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DownloadTokenQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            models.UniqueConstraint(fields=("order_item",), name="download_token_order_item_unique"),
            models.CheckConstraint(
                condition=Q(download_count__lte=F("max_downloads")),
                name="download_token_count_within_max",
            ),
        ]

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def limit_reached(self) -> bool:
        return self.download_count >= self.max_downloads

    def clean(self) -> None:
        self.file_path = (self.file_path or "").strip()
        self.file_name = (self.file_name or "").strip()
        if self.max_downloads < 1:
            raise ValidationError({"max_downloads": "max_downloads must be at least 1."})
        if not self.file_path:
            raise ValidationError({"file_path": "Asset path is required."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.file_name} ({self.download_count}/{self.max_downloads})"


class WebhookEvent(models.Model):
    class Provider(models.TextChoices):
        STRIPE = "stripe", "Stripe"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        RECEIVED = "received", "Received"
        PROCESSED = "processed", "Processed"
        FAILED = "failed", "Failed"
        IGNORED = "ignored", "Ignored"

    provider = models.CharField(max_length=24, choices=Provider.choices, default=Provider.STRIPE)
    event_id = models.CharField(max_length=191)
    event_type = models.CharField(max_length=191)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=24, choices=Status.choices, default=Status.RECEIVED)
    error_message = models.TextField(blank=True)
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ("-received_at",)
        constraints = [
            models.UniqueConstraint(fields=("provider", "event_id"), name="webhook_provider_event_unique"),
        ]
        indexes = [
            models.Index(fields=("status", "received_at"), name="webhook_status_received_idx"),
        ]

    def clean(self) -> None:
        self.event_id = (self.event_id or "").strip()
        self.event_type = (self.event_type or "").strip()
        self.error_message = (self.error_message or "").strip()

        if not self.event_id:
            raise ValidationError({"event_id": "Event id is required."})
        if not self.event_type:
            raise ValidationError({"event_type": "Event type is required."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.provider}:{self.event_id}"
