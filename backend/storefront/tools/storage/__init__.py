from .asset_storage import (
    AssetStorageConfigurationError,
    AssetStorageError,
    ResolvedAsset,
    asset_exists,
    open_asset_stream,
    resolve_digital_asset,
)

__all__ = [
    "AssetStorageConfigurationError",
    "AssetStorageError",
    "ResolvedAsset",
    "asset_exists",
    "open_asset_stream",
    "resolve_digital_asset",
]
