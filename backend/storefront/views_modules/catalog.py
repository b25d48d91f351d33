from __future__ import annotations

import logging
from datetime import datetime, timezone

from django.utils import timezone as django_timezone
from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ..models import Discount, Product
from ..serializers import DiscountValidationSerializer, ProductSerializer
from ..tools.payments import PaymentProviderConfigurationError, get_publishable_key
from .helpers import _safe_str, _truthy

logger = logging.getLogger(__name__)

PRODUCT_ORDERINGS = {
    "price_asc": ("price_cents", "id"),
    "price_desc": ("-price_cents", "-id"),
    "newest": ("-created_at", "-id"),
    "oldest": ("created_at", "id"),
}

DISCOUNT_UNAVAILABLE_STATUS = {
    Discount.Unavailable.INACTIVE: status.HTTP_404_NOT_FOUND,
    Discount.Unavailable.EXPIRED: status.HTTP_410_GONE,
    Discount.Unavailable.EXHAUSTED: status.HTTP_409_CONFLICT,
}


class HealthView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(
            {
                "status": "ok",
                "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            }
        )


class StripeConfigView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        try:
            publishable_key = get_publishable_key()
        except PaymentProviderConfigurationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response({"publishable_key": publishable_key})


class ProductListView(generics.ListAPIView):
    """Public catalog.

    Query params: ``category``, ``type``, ``medium`` (case-insensitive exact
    match), ``status`` (defaults to ``active``; ``all`` disables the filter),
    ``featured`` / ``new`` flags and ``sort``.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    serializer_class = ProductSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Product.objects.all()

        category = _safe_str(params.get("category"))
        if category:
            queryset = queryset.filter(category__iexact=category)

        product_type = _safe_str(params.get("type"))
        if product_type:
            queryset = queryset.filter(product_type__iexact=product_type)

        status_filter = _safe_str(params.get("status")).lower() or Product.Status.ACTIVE
        if status_filter != "all":
            queryset = queryset.filter(status=status_filter)

        if _truthy(params.get("featured")):
            queryset = queryset.filter(is_featured=True)

        if _truthy(params.get("new") or params.get("isNew")):
            queryset = queryset.filter(is_new=True)

        medium = _safe_str(params.get("medium"))
        if medium:
            queryset = queryset.filter(medium__iexact=medium)

        ordering = PRODUCT_ORDERINGS.get(_safe_str(params.get("sort")).lower())
        if ordering:
            queryset = queryset.order_by(*ordering)
        return queryset


class ProductDetailView(generics.RetrieveAPIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    serializer_class = ProductSerializer
    queryset = Product.objects.all()


class DiscountValidateView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_scope = "discount_validate"

    def get(self, request):
        code = _safe_str(request.query_params.get("code"))
        if not code:
            return Response({"detail": "Discount code is required."}, status=status.HTTP_400_BAD_REQUEST)

        discount = Discount.objects.get_by_code(code)
        if discount is None:
            return Response({"detail": "Discount code not found."}, status=status.HTTP_404_NOT_FOUND)

        reason = discount.unavailable_reason(django_timezone.now())
        if reason:
            return Response(
                {"detail": Discount.Unavailable(reason).label},
                status=DISCOUNT_UNAVAILABLE_STATUS[reason],
            )

        return Response(DiscountValidationSerializer(discount).data)
