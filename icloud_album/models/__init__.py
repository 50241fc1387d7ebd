"""
Models package for the shared album fetcher.

This package contains the DTOs returned to callers and the conversion
helpers that build them from raw API responses.
"""

from .dto import (
    # Core DTOs
    AlbumMetadata,
    AlbumResponse,
    Derivative,
    PhotoAsset,

    # Type aliases
    Checksum,
    DerivativeKey,
    PhotoGuid,

    # Utility functions
    album_from_webstream,
    asset_urls_from_api,
    photos_from_api,
)

__all__ = [
    # Core DTOs
    'AlbumMetadata',
    'AlbumResponse',
    'Derivative',
    'PhotoAsset',

    # Type aliases
    'Checksum',
    'DerivativeKey',
    'PhotoGuid',

    # Utility functions
    'album_from_webstream',
    'asset_urls_from_api',
    'photos_from_api',
]
