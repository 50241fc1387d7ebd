# icloud_album/services/__init__.py
"""
Initializes the services package and provides easy access to the singleton
instances:
from icloud_album.services import config, album_service
"""
# config_service must be imported first; the album service reads it.
from .config_service import config
from .album_service import FetchStats, SharedAlbumService

# Stateless between calls, so a single shared instance is safe.
album_service = SharedAlbumService()

__all__ = [
    "config",
    "album_service",
    "FetchStats",
    "SharedAlbumService",
]
