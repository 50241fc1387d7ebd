"""Unit tests for merging asset URLs into photos."""

import copy

from icloud_album.enrich import enrich_photos_with_urls
from icloud_album.models import Derivative, PhotoAsset


def _photos():
    return [
        PhotoAsset(guid="photo-1", derivatives={
            "1": Derivative(checksum="abc", width=800, height=600),
            "2": Derivative(checksum="def", width=1600, height=1200),
        }),
        PhotoAsset(guid="photo-2", derivatives={
            "1": Derivative(checksum="ghi"),
        }),
    ]


def test_enrich_assigns_matching_urls():
    photos = _photos()
    urls = {"abc": "https://host/abc.jpg", "ghi": "https://host/ghi.jpg"}

    matched = enrich_photos_with_urls(photos, urls)

    assert matched == 2
    assert photos[0].derivatives["1"].url == "https://host/abc.jpg"
    assert photos[0].derivatives["2"].url is None
    assert photos[1].derivatives["1"].url == "https://host/ghi.jpg"


def test_enrich_with_empty_map_leaves_urls_unset():
    photos = _photos()
    assert enrich_photos_with_urls(photos, {}) == 0
    assert not any(photo.is_enriched for photo in photos)


def test_enrich_is_idempotent():
    photos = _photos()
    urls = {"abc": "https://host/abc.jpg", "def": "https://host/def.jpg"}

    enrich_photos_with_urls(photos, urls)
    once = copy.deepcopy(photos)
    enrich_photos_with_urls(photos, urls)

    assert photos == once


def test_enrich_does_not_clear_existing_url():
    photos = _photos()
    enrich_photos_with_urls(photos, {"abc": "https://host/abc.jpg"})
    enrich_photos_with_urls(photos, {"zzz": "https://host/zzz.jpg"})

    assert photos[0].derivatives["1"].url == "https://host/abc.jpg"


def test_enrich_handles_photos_without_derivatives():
    assert enrich_photos_with_urls([PhotoAsset(guid="empty")], {"abc": "u"}) == 0
