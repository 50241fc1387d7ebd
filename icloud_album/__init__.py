"""
Fetch metadata and photos from iCloud shared albums by their share token.

    from icloud_album import fetch_album, select_and_download

    album = fetch_album("B0z5qAGN1JIFd3y")
    content, mime_type = select_and_download(album.photos[0])
"""
from typing import Tuple

from .exceptions import (
    DecodeError,
    FieldError,
    InvalidTokenError,
    NoUsableDerivativeError,
    RetryExhaustedError,
    SchemaError,
    SharedAlbumError,
    StatusError,
    TransportError,
)
from .icloud_api import resolve_partition_url
from .models import AlbumMetadata, AlbumResponse, Derivative, PhotoAsset
from .retry import BackoffStrategy, RetryPolicy, RetryStats
from .services import album_service

__version__ = "0.5.0"


def probe_redirect(base_url: str, token: str) -> str:
    return album_service.probe_redirect(base_url, token)


def fetch_album(token: str, resolve_urls: bool = True) -> AlbumResponse:
    return album_service.fetch_album(token, resolve_urls=resolve_urls)


def select_and_download(photo: PhotoAsset) -> Tuple[bytes, str]:
    return album_service.select_and_download(photo)


__all__ = [
    "AlbumMetadata",
    "AlbumResponse",
    "BackoffStrategy",
    "DecodeError",
    "Derivative",
    "FieldError",
    "InvalidTokenError",
    "NoUsableDerivativeError",
    "PhotoAsset",
    "RetryExhaustedError",
    "RetryPolicy",
    "RetryStats",
    "SchemaError",
    "SharedAlbumError",
    "StatusError",
    "TransportError",
    "fetch_album",
    "probe_redirect",
    "resolve_partition_url",
    "select_and_download",
]
