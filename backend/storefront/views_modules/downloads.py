from __future__ import annotations

import logging
from typing import Iterator

from django.http import StreamingHttpResponse
from django.utils import timezone as django_timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ..models import DownloadToken
from ..tools.storage import (
    AssetStorageConfigurationError,
    AssetStorageError,
    asset_exists,
    open_asset_stream,
)

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Download link has expired. Please request a new link."
LIMIT_REACHED_MESSAGE = "Download limit reached for this link"
REVOKED_MESSAGE = "This download link has been revoked."


def _content_disposition(file_name: str) -> str:
    safe_name = file_name.replace("\\", "_").replace('"', "'").replace("\r", "").replace("\n", "")
    return f'attachment; filename="{safe_name}"'


def _count_after_stream(token: str, max_downloads: int, chunks: Iterator[bytes]) -> Iterator[bytes]:
    """Yield the asset, then record the download once the last chunk is out.

    A client that disconnects mid-transfer closes the generator before the
    count is touched.
    """
    yield from chunks

    download_count = DownloadToken.objects.record_download(token)
    if download_count is None:
        logger.warning("Download token %s was revoked or hit its limit during a transfer.", token)
        return
    if download_count >= max_downloads:
        DownloadToken.objects.revoke(token)
        logger.info("Download token %s revoked after %s downloads.", token, download_count)


class DownloadView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_scope = "download_access"

    def get(self, request, token):
        grant = DownloadToken.objects.select_related("order").filter(pk=token).first()
        if grant is None:
            return Response({"detail": "Download link not found."}, status=status.HTTP_404_NOT_FOUND)

        if grant.is_expired(django_timezone.now()):
            if DownloadToken.objects.revoke(grant.token):
                logger.info("Revoked expired download token %s.", grant.token)
            return Response({"detail": EXPIRED_MESSAGE}, status=status.HTTP_410_GONE)

        if grant.is_revoked:
            message = LIMIT_REACHED_MESSAGE if grant.limit_reached else REVOKED_MESSAGE
            return Response({"detail": message}, status=status.HTTP_410_GONE)

        if grant.order is None or not grant.order.is_paid:
            logger.warning("Blocked download for token %s: order missing or unpaid.", grant.token)
            return Response(
                {"detail": "Download not available for this order."},
                status=status.HTTP_403_FORBIDDEN,
            )

        try:
            if not asset_exists(grant.file_path):
                logger.error(
                    "Digital asset %s for download token %s is missing from storage.",
                    grant.file_path,
                    grant.token,
                )
                return Response(
                    {"detail": "Digital file not available."},
                    status=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            chunks = open_asset_stream(grant.file_path)
        except AssetStorageConfigurationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        except AssetStorageError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        if grant.limit_reached:
            DownloadToken.objects.revoke(grant.token)
            logger.info("Revoked exhausted download token %s.", grant.token)
            return Response({"detail": LIMIT_REACHED_MESSAGE}, status=status.HTTP_410_GONE)

        response = StreamingHttpResponse(
            _count_after_stream(grant.token, grant.max_downloads, chunks),
            content_type=grant.mime_type or "application/octet-stream",
        )
        response["Content-Disposition"] = _content_disposition(grant.file_name)
        response["Cache-Control"] = "no-store"
        return response
