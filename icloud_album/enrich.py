# icloud_album/enrich.py
"""
Joins the two halves of a fetch: photos from webstream and the
checksum -> URL mapping from webasseturls.
"""
import logging
from typing import Iterable, Mapping

from .models import PhotoAsset

logger = logging.getLogger(__name__)


def enrich_photos_with_urls(photos: Iterable[PhotoAsset], all_urls: Mapping[str, str]) -> int:
    """
    Sets ``url`` on every derivative whose checksum appears in ``all_urls``.

    Derivatives without a match are left untouched, so running this twice
    with the same mapping leaves the photos in the same state.

    Returns:
        The number of derivatives that have a URL from this mapping.
    """
    matched = 0
    unmatched = 0
    for photo in photos:
        for derivative in photo.derivatives.values():
            url = all_urls.get(derivative.checksum)
            if url is None:
                unmatched += 1
                continue
            derivative.url = url
            matched += 1

    if unmatched:
        logger.debug(f"{unmatched} derivative(s) had no matching asset URL.")
    return matched
