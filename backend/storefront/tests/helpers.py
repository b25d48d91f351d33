import hashlib
import hmac
import json
import time

from django.conf import settings

from storefront.models import Discount, Order, OrderItem, Product


def create_product(**overrides) -> Product:
    defaults = {
        "title": f"Artwork {Product.objects.count() + 1}",
        "price_cents": 50000,
        "category": "Paintings",
        "product_type": Product.ProductType.PHYSICAL,
        "medium": "Oil on canvas",
    }
    defaults.update(overrides)
    return Product.objects.create(**defaults)


def create_digital_product(**overrides) -> Product:
    defaults = {
        "title": f"Print file {Product.objects.count() + 1}",
        "price_cents": 2500,
        "category": "Digital",
        "product_type": Product.ProductType.DIGITAL,
        "digital_file_path": "prints/harbor.pdf",
        "digital_file_name": "harbor.pdf",
        "digital_file_mime_type": "application/pdf",
    }
    defaults.update(overrides)
    return Product.objects.create(**defaults)


def create_discount(**overrides) -> Discount:
    defaults = {
        "code": "SPRING10",
        "discount_type": Discount.DiscountType.PERCENTAGE,
        "value": 10,
    }
    defaults.update(overrides)
    return Discount.objects.create(**defaults)


def create_order(products, *, state=Order.State.PENDING, discount=None, **overrides) -> Order:
    subtotal = sum(product.price_cents for product in products)
    discount_cents = overrides.pop("discount_cents", 0)
    shipping_cents = overrides.pop("shipping_cents", 0)
    defaults = {
        "email": "buyer@example.com",
        "name": "Ada Buyer",
        "subtotal_cents": subtotal,
        "discount_cents": discount_cents,
        "shipping_cents": shipping_cents,
        "total_cents": subtotal - discount_cents + shipping_cents,
        "state": state,
        "discount": discount,
        "discount_code": discount.code if discount else "",
        "checkout_session_id": "cs_test_order",
        "payment_reference": "cs_test_order",
    }
    defaults.update(overrides)
    order = Order.objects.create(**defaults)
    for product in products:
        OrderItem.objects.create(
            order=order,
            product=product,
            product_title=product.title,
            product_type=product.product_type,
            quantity=1,
            unit_price_cents=product.price_cents,
        )
    return order


def stripe_signature(payload: str, *, secret: str = "", timestamp: int | None = None) -> str:
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, data_object: dict, *, event_id: str = "evt_test_1") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
    )
