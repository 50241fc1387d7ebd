# icloud_album/icloud_api.py
"""
Manages all HTTP interactions with the shared-streams service: working out
which partition serves an album, following the service's custom relocation
signal and calling the two JSON endpoints (webstream, webasseturls).
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .exceptions import DecodeError, InvalidTokenError, StatusError, TransportError
from .models import AlbumMetadata, PhotoAsset, album_from_webstream, asset_urls_from_api
from .retry import RetryPolicy, RetryStats, execute_with_retry

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_HOST = "sharedstreams.icloud.com"
DEFAULT_TIMEOUT_SECONDS = 30
PARTITION_COUNT = 40

# The service relocates albums with a non-standard status and a JSON body
# naming the host that owns the album.
REDIRECT_STATUS = 330
REDIRECT_HOST_FIELD = "X-Apple-MMe-Host"

WEBSTREAM_ENDPOINT = "webstream"
ASSET_URLS_ENDPOINT = "webasseturls"

# A 400 on webasseturls means the server refused the size of the batch.
BATCH_REJECTED_STATUS = 400


def char_to_base62(c: str) -> int:
    """Maps 0-9 to 0-9, A-Z to 10-35 and a-z to 36-61."""
    if '0' <= c <= '9':
        return ord(c) - ord('0')
    if 'A' <= c <= 'Z':
        return ord(c) - ord('A') + 10
    if 'a' <= c <= 'z':
        return ord(c) - ord('a') + 36
    raise InvalidTokenError(f"Invalid base-62 character: {c!r}")


def calculate_partition(token: str) -> int:
    """Server partition (1-40) that hosts the album, derived from the token's first character."""
    if not token:
        raise InvalidTokenError("Album token is empty.")
    return 1 + (char_to_base62(token[0]) % PARTITION_COUNT)


def _normalize_host(host: str) -> str:
    """Strips scheme and slashes so both 'host' and 'https://host/' are accepted."""
    h = (host or "").strip()
    for scheme in ("https://", "http://"):
        if h.lower().startswith(scheme):
            h = h[len(scheme):]
    return h.strip('/')


def resolve_partition_url(token: str, host: str = DEFAULT_SERVICE_HOST) -> str:
    """
    Builds the partition-specific base URL for an album.

    Returns:
        ``https://pNN-<host>/<token>/sharedstreams/``

    Raises:
        InvalidTokenError: If the token is empty or does not start with a
            base-62 character.
    """
    partition = calculate_partition(token)
    return f"https://p{partition:02d}-{_normalize_host(host)}/{token}/sharedstreams/"


def _endpoint_url(base_url: str, endpoint: str) -> str:
    return f"{base_url.rstrip('/')}/{endpoint}"


def _send(session: requests.Session, method: str, url: str, timeout: float, **kwargs) -> requests.Response:
    """Performs one HTTP call, turning any requests failure into a TransportError."""
    try:
        return session.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.RequestException as e:
        raise TransportError(f"{method} {url} failed: {e}") from e


def _decode_json(response: requests.Response, url: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(f"Response from {url} is not valid JSON: {e}") from e


def post_json(session: requests.Session, url: str, payload: Dict[str, Any],
              timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Any:
    """
    Single POST attempt returning the decoded JSON body.

    Raises:
        TransportError: On connection problems or timeouts.
        StatusError: On any non-2xx status.
        DecodeError: If the body is not JSON.
    """
    response = _send(session, "POST", url, timeout, json=payload)
    if not 200 <= response.status_code < 300:
        raise StatusError(response.status_code, url, (response.text or "")[:200])
    return _decode_json(response, url)


def get_bytes(session: requests.Session, url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> bytes:
    """Single GET attempt returning the raw body."""
    response = _send(session, "GET", url, timeout)
    if not 200 <= response.status_code < 300:
        raise StatusError(response.status_code, url)
    return response.content


def probe_redirect(session: requests.Session, base_url: str, token: str,
                   timeout: float = DEFAULT_TIMEOUT_SECONDS) -> str:
    """
    Sends one webstream probe and follows the service's 330 relocation.

    Returns:
        ``https://<host>/<token>/sharedstreams/`` when the service answers 330
        with a host, otherwise ``base_url`` unchanged.

    Raises:
        TransportError: If the probe could not be sent at all.
    """
    url = _endpoint_url(base_url, WEBSTREAM_ENDPOINT)
    response = _send(session, "POST", url, timeout, json={"streamCtag": None})

    if response.status_code != REDIRECT_STATUS:
        logger.debug(f"No redirect for album (status {response.status_code}).")
        return base_url

    try:
        body = response.json()
    except ValueError:
        logger.warning("Redirect response body is not JSON; keeping current base URL.")
        return base_url

    host = body.get(REDIRECT_HOST_FIELD) if isinstance(body, dict) else None
    if not isinstance(host, str) or not _normalize_host(host):
        logger.warning(f"Redirect response has no usable {REDIRECT_HOST_FIELD}; keeping current base URL.")
        return base_url

    redirected = f"https://{_normalize_host(host)}/{token}/sharedstreams/"
    logger.info(f"Album relocated to {_normalize_host(host)}")
    return redirected


def fetch_webstream(
    session: requests.Session,
    base_url: str,
    policy: RetryPolicy,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    stats: Optional[RetryStats] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[AlbumMetadata, List[PhotoAsset]]:
    """
    Fetches album metadata and the photo list (one retried POST).

    Raises:
        RetryExhaustedError: If every attempt failed with a retryable error.
        StatusError: On a permanent HTTP status.
        DecodeError, SchemaError: If the body cannot be understood.
    """
    url = _endpoint_url(base_url, WEBSTREAM_ENDPOINT)

    def operation():
        data = post_json(session, url, {"streamCtag": None}, timeout)
        return album_from_webstream(data)

    return execute_with_retry(operation, policy, description=WEBSTREAM_ENDPOINT, stats=stats, sleep=sleep)


def fetch_asset_urls(
    session: requests.Session,
    base_url: str,
    photo_guids: List[str],
    policy: RetryPolicy,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    stats: Optional[RetryStats] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, str]:
    """
    Fetches the checksum -> download URL mapping for the given photos.

    A rejected batch (HTTP 400) is a degraded success: an empty mapping is
    returned so callers still get metadata and photos, just without URLs.
    """
    if not photo_guids:
        return {}

    url = _endpoint_url(base_url, ASSET_URLS_ENDPOINT)
    payload = {"photoGuids": list(photo_guids)}

    def operation():
        try:
            data = post_json(session, url, payload, timeout)
        except StatusError as e:
            if e.code == BATCH_REJECTED_STATUS:
                logger.warning(f"{ASSET_URLS_ENDPOINT} rejected a batch of {len(payload['photoGuids'])} "
                               f"photos (HTTP 400). Continuing without asset URLs.")
                return {}
            raise
        return asset_urls_from_api(data)

    return execute_with_retry(operation, policy, description=ASSET_URLS_ENDPOINT, stats=stats, sleep=sleep)
