from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Iterator

from django.conf import settings

DEFAULT_MIME_TYPE = "application/octet-stream"


class AssetStorageError(RuntimeError):
    """Raised when a digital asset cannot be read from storage."""


class AssetStorageConfigurationError(AssetStorageError):
    """Raised when asset-storage settings are missing or invalid."""


@dataclass(frozen=True)
class ResolvedAsset:
    file_path: str
    file_name: str
    mime_type: str


def _setting(name: str, default: str = "") -> str:
    return str(getattr(settings, name, default) or "").strip()


def _ensure_https(url: str) -> str:
    if url and not url.startswith(("http://", "https://")):
        return f"https://{url}"
    return url


def _backend() -> str:
    backend = _setting("ASSET_STORAGE_BACKEND", default="local").lower()
    if backend in {"s3", "s3-compatible", "s3_compatible"}:
        return "s3"
    if backend == "local":
        return backend
    raise AssetStorageConfigurationError("ASSET_STORAGE_BACKEND must be either 'local' or 's3'.")


def _chunk_size() -> int:
    raw_value = getattr(settings, "ASSET_STORAGE_CHUNK_SIZE", 64 * 1024)
    try:
        chunk_size = int(raw_value)
    except (TypeError, ValueError) as exc:
        raise AssetStorageConfigurationError("ASSET_STORAGE_CHUNK_SIZE must be an integer.") from exc
    if chunk_size < 1024:
        raise AssetStorageConfigurationError("ASSET_STORAGE_CHUNK_SIZE must be at least 1024 bytes.")
    return chunk_size


def _normalize_storage_key(file_path: str) -> str:
    key = str(file_path or "").strip().replace("\\", "/").lstrip("/")
    if not key:
        raise AssetStorageError("Digital asset file_path is empty.")
    if ".." in PurePosixPath(key).parts:
        raise AssetStorageError("Digital asset file_path must not leave the asset root.")
    return key


def _local_path(key: str) -> Path:
    assets_dir = _setting("DIGITAL_ASSETS_DIR")
    if not assets_dir:
        raise AssetStorageConfigurationError("DIGITAL_ASSETS_DIR is required for ASSET_STORAGE_BACKEND=local.")

    root = Path(assets_dir).resolve()
    candidate = (root / key).resolve()
    if root != candidate and root not in candidate.parents:
        raise AssetStorageError("Digital asset file_path must not leave the asset root.")
    return candidate


def _require_bucket() -> str:
    bucket = _setting("ASSET_STORAGE_BUCKET")
    if not bucket:
        raise AssetStorageConfigurationError("ASSET_STORAGE_BUCKET is required.")
    return bucket


@lru_cache(maxsize=1)
def _cached_s3_client(
    endpoint_url: str,
    region: str,
    access_key_id: str,
    secret_access_key: str,
):
    try:
        import boto3
    except ImportError as exc:
        raise AssetStorageConfigurationError("boto3 is required for ASSET_STORAGE_BACKEND=s3.") from exc

    return boto3.client(
        "s3",
        endpoint_url=endpoint_url or None,
        region_name=region or "us-east-1",
        aws_access_key_id=access_key_id or None,
        aws_secret_access_key=secret_access_key or None,
    )


def _s3_client():
    access_key_id = _setting("ASSET_STORAGE_S3_ACCESS_KEY_ID")
    secret_access_key = _setting("ASSET_STORAGE_S3_SECRET_ACCESS_KEY")
    if not access_key_id or not secret_access_key:
        raise AssetStorageConfigurationError(
            "S3 storage requires ASSET_STORAGE_S3_ACCESS_KEY_ID and ASSET_STORAGE_S3_SECRET_ACCESS_KEY."
        )

    endpoint_url = _ensure_https(_setting("ASSET_STORAGE_S3_ENDPOINT_URL"))
    region = _setting("ASSET_STORAGE_S3_REGION", default="us-east-1")
    return _cached_s3_client(endpoint_url, region, access_key_id, secret_access_key)


def _s3_object_exists(key: str) -> bool:
    from botocore.exceptions import ClientError

    try:
        _s3_client().head_object(Bucket=_require_bucket(), Key=key)
    except ClientError as exc:
        error_code = str(exc.response.get("Error", {}).get("Code", ""))
        if error_code in {"404", "NoSuchKey", "NotFound"}:
            return False
        raise AssetStorageError(f"S3 head_object failed for {key}: {error_code}") from exc
    return True


def _iter_s3_object(key: str, chunk_size: int) -> Iterator[bytes]:
    from botocore.exceptions import ClientError

    try:
        response = _s3_client().get_object(Bucket=_require_bucket(), Key=key)
    except ClientError as exc:
        raise AssetStorageError(f"S3 get_object failed for {key}.") from exc

    body = response["Body"]
    try:
        yield from body.iter_chunks(chunk_size=chunk_size)
    finally:
        body.close()


def _iter_local_file(path: Path, chunk_size: int) -> Iterator[bytes]:
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk


def asset_exists(file_path: str) -> bool:
    key = _normalize_storage_key(file_path)
    if _backend() == "s3":
        return _s3_object_exists(key)
    return _local_path(key).is_file()


def open_asset_stream(file_path: str) -> Iterator[bytes]:
    """Return an iterator over the asset's bytes.

    Nothing is read until the iterator is consumed; callers should check
    ``asset_exists`` first when they need to fail before a response starts.
    """
    key = _normalize_storage_key(file_path)
    chunk_size = _chunk_size()
    if _backend() == "s3":
        return _iter_s3_object(key, chunk_size)
    return _iter_local_file(_local_path(key), chunk_size)


def resolve_digital_asset(product) -> ResolvedAsset | None:
    """Locate the downloadable file for a digital product.

    Returns ``None`` when the product has no asset configured or the file is
    missing from storage.
    """
    raw_path = str(getattr(product, "digital_file_path", "") or "").strip()
    if not raw_path:
        return None

    key = _normalize_storage_key(raw_path)
    if not asset_exists(key):
        return None

    file_name = str(getattr(product, "digital_file_name", "") or "").strip() or PurePosixPath(key).name
    mime_type = (
        str(getattr(product, "digital_file_mime_type", "") or "").strip()
        or mimetypes.guess_type(file_name)[0]
        or DEFAULT_MIME_TYPE
    )
    return ResolvedAsset(file_path=key, file_name=file_name, mime_type=mime_type)
