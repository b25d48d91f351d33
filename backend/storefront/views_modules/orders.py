from __future__ import annotations

import logging
import secrets

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ..models import DownloadToken, Order
from ..serializers import DownloadTokenSerializer, OrderItemSerializer, OrderSerializer
from .helpers import _safe_str

logger = logging.getLogger(__name__)


class OrderDetailView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, public_id):
        order = get_object_or_404(Order.objects.with_items(), public_id=public_id)
        return Response(
            {
                "order": OrderSerializer(order).data,
                "items": OrderItemSerializer(order.items.all(), many=True).data,
            }
        )


class OrderDownloadsView(APIView):
    """List download links for a paid order.

    The Stripe Checkout Session id from the success redirect acts as the
    capability: only the buyer who completed checkout knows it.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_scope = "download_access"

    def get(self, request, public_id):
        session_id = _safe_str(request.query_params.get("session_id"))
        if not session_id:
            return Response({"detail": "session_id is required."}, status=status.HTTP_400_BAD_REQUEST)

        order = get_object_or_404(Order, public_id=public_id)
        if not order.is_paid:
            return Response({"detail": "Order has not been paid."}, status=status.HTTP_403_FORBIDDEN)

        if not order.checkout_session_id or not secrets.compare_digest(
            session_id.encode(), order.checkout_session_id.encode()
        ):
            logger.warning("Downloads listing for order %s with a mismatched session id.", order.public_id)
            return Response(
                {"detail": "Download not available for this order."},
                status=status.HTTP_403_FORBIDDEN,
            )

        tokens = DownloadToken.objects.for_order(order)
        return Response({"downloads": DownloadTokenSerializer(tokens, many=True).data})
