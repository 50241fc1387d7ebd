# icloud_album/services/album_service.py
"""
Provides a unified service for fetching a shared album.

This class is a façade over the wire layer: it resolves the album's
partition, follows a relocation, fetches the photo list, fetches the asset
URLs for those photos and merges the two. It also downloads the best
derivative of a photo on request. It keeps no state between calls; every
fetch owns its own HTTP session unless one was injected.
"""
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Tuple
from urllib.parse import urlparse

import requests

from .config_service import config
from .. import icloud_api
from ..enrich import enrich_photos_with_urls
from ..media import OriginalMarkers, detect_mime_type, select_best_derivative
from ..models import AlbumResponse, PhotoAsset
from ..retry import RetryPolicy, RetryStats, config_value, execute_with_retry, non_negative

logger = logging.getLogger(__name__)


@dataclass
class FetchStats:
    """Retry statistics of both network phases of one fetch."""
    webstream: RetryStats = field(default_factory=RetryStats)
    asset_urls: RetryStats = field(default_factory=RetryStats)


class SharedAlbumService:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        policy: Optional[RetryPolicy] = None,
        host: Optional[str] = None,
        timeout: Optional[float] = None,
        markers: Optional[OriginalMarkers] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        # Explicit arguments win; anything left out comes from config.yaml.
        self._session = session
        self.policy = policy if policy is not None else RetryPolicy.from_config(config)
        self.host = host if host is not None else config.service_host
        if timeout is None:
            timeout = config_value(config, 'service.timeout_seconds', non_negative(float),
                                   icloud_api.DEFAULT_TIMEOUT_SECONDS)
        self.timeout = timeout
        self.markers = markers if markers is not None else OriginalMarkers.from_config(config)
        self._sleep = sleep

    @contextmanager
    def _session_scope(self) -> Iterator[requests.Session]:
        if self._session is not None:
            yield self._session
            return
        with requests.Session() as session:
            yield session

    def resolve_partition_url(self, token: str) -> str:
        return icloud_api.resolve_partition_url(token, self.host)

    def probe_redirect(self, base_url: str, token: str) -> str:
        with self._session_scope() as session:
            return icloud_api.probe_redirect(session, base_url, token, self.timeout)

    def fetch_album(self, token: str, resolve_urls: bool = True,
                    stats: Optional[FetchStats] = None) -> AlbumResponse:
        """
        Fetches an album's metadata and photos, with download URLs merged in.

        Args:
            token: The album's share token.
            resolve_urls: When False the asset-URL phase is skipped and photos
                are returned without URLs.
            stats: Optional per-call retry statistics, filled in place.

        Returns:
            An AlbumResponse. It may hold fewer photos than the server claims
            (malformed entries are skipped) and derivatives without URLs
            (unmatched checksums or a rejected asset-URL batch).

        Raises:
            InvalidTokenError: If the token cannot be mapped to a partition.
            RetryExhaustedError: If a network phase kept failing.
            StatusError, DecodeError, SchemaError: On permanent failures.
        """
        stats = stats if stats is not None else FetchStats()
        base_url = self.resolve_partition_url(token)

        with self._session_scope() as session:
            base_url = icloud_api.probe_redirect(session, base_url, token, self.timeout)

            try:
                metadata, photos = icloud_api.fetch_webstream(
                    session, base_url, self.policy, self.timeout,
                    stats=stats.webstream, sleep=self._sleep)
            except Exception as e:
                logger.error(f"Failed to fetch album metadata after {stats.webstream.attempts} attempt(s): {e}")
                raise
            logger.info(f"Fetched album '{metadata.stream_name}' with {len(photos)} photo(s).")

            if not resolve_urls:
                logger.info("Skipping asset URL phase; photos are returned without URLs.")
                return AlbumResponse(metadata=metadata, photos=photos)

            guids = [photo.guid for photo in photos]
            all_urls = icloud_api.fetch_asset_urls(
                session, base_url, guids, self.policy, self.timeout,
                stats=stats.asset_urls, sleep=self._sleep)

        matched = enrich_photos_with_urls(photos, all_urls)
        logger.info(f"Resolved {matched} derivative URL(s) from {len(all_urls)} asset URL(s).")
        return AlbumResponse(metadata=metadata, photos=photos)

    def select_and_download(self, photo: PhotoAsset, stats: Optional[RetryStats] = None) -> Tuple[bytes, str]:
        """
        Downloads the best derivative of a photo.

        Returns:
            ``(content, mime_type)``; the MIME type is sniffed from the bytes.

        Raises:
            NoUsableDerivativeError: If none of the photo's derivatives has a URL.
            RetryExhaustedError, StatusError: If the download failed.
        """
        key, derivative = select_best_derivative(photo.derivatives, self.markers)
        logger.debug(f"Downloading derivative {key!r} of photo {photo.guid}")

        with self._session_scope() as session:
            content = execute_with_retry(
                lambda: icloud_api.get_bytes(session, derivative.url, self.timeout),
                self.policy, description=f"download of {photo.guid}", stats=stats, sleep=self._sleep)

        filename_hint = os.path.basename(urlparse(derivative.url).path) or None
        return content, detect_mime_type(content, filename_hint)
