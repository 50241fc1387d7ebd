"""Unit tests for the album fetch orchestrator."""

import pytest

from icloud_album.exceptions import (
    InvalidTokenError,
    NoUsableDerivativeError,
    RetryExhaustedError,
    StatusError,
)
from icloud_album.media import OriginalMarkers
from icloud_album.models import Derivative, PhotoAsset
from icloud_album.services import FetchStats, SharedAlbumService

TOKEN = "B0z5qAGN1JIFd3y"
PARTITION_URL = f"https://p12-sharedstreams.icloud.com/{TOKEN}/sharedstreams/"
REDIRECT_URL = f"https://p42-sharedstreams.icloud.com/{TOKEN}/sharedstreams/"


@pytest.fixture
def service(session, fast_policy):
    """Create a SharedAlbumService wired to a fake session."""
    return SharedAlbumService(session=session, policy=fast_policy, host="sharedstreams.icloud.com",
                              timeout=5, markers=OriginalMarkers(), sleep=lambda _: None)


def _urls(session):
    return [call.args[1] for call in session.request.call_args_list]


def test_fetch_album_full_pipeline(service, session, make_response, webstream_payload, asset_urls_payload):
    session.request.side_effect = [
        make_response(200, webstream_payload),   # redirect probe
        make_response(200, webstream_payload),   # webstream
        make_response(200, asset_urls_payload),  # webasseturls
    ]

    album = service.fetch_album(TOKEN)

    assert album.metadata.stream_name == "Summer Trip"
    assert album.photo_guids == ["photo-1", "photo-2"]
    assert album.enriched_url_count == 3
    assert album.photos[1].derivatives["PosterFrame"].url == "https://cvws.icloud-content.com/S/a2/IMG_2.JPG"
    assert _urls(session) == [
        PARTITION_URL + "webstream",
        PARTITION_URL + "webstream",
        PARTITION_URL + "webasseturls",
    ]
    assert session.request.call_args_list[2].kwargs["json"] == {"photoGuids": ["photo-1", "photo-2"]}


def test_fetch_album_follows_redirect(service, session, make_response, webstream_payload, asset_urls_payload):
    session.request.side_effect = [
        make_response(330, {"X-Apple-MMe-Host": "p42-sharedstreams.icloud.com"}),
        make_response(200, webstream_payload),
        make_response(200, asset_urls_payload),
    ]

    service.fetch_album(TOKEN)

    assert _urls(session)[1:] == [REDIRECT_URL + "webstream", REDIRECT_URL + "webasseturls"]


def test_batch_rejection_returns_album_without_urls(service, session, make_response, webstream_payload):
    session.request.side_effect = [
        make_response(200, webstream_payload),
        make_response(200, webstream_payload),
        make_response(400),
    ]

    album = service.fetch_album(TOKEN)

    assert len(album.photos) == 2
    assert album.enriched_url_count == 0


def test_metadata_failure_is_fatal(service, session, make_response):
    stats = FetchStats()
    session.request.side_effect = [make_response(200, {})] + [make_response(502)] * 3

    with pytest.raises(RetryExhaustedError) as exc_info:
        service.fetch_album(TOKEN, stats=stats)

    assert exc_info.value.attempts == 3
    assert stats.webstream.attempts == 3
    assert stats.asset_urls.attempts == 0


def test_asset_url_failure_propagates(service, session, make_response, webstream_payload):
    session.request.side_effect = [
        make_response(200, webstream_payload),
        make_response(200, webstream_payload),
        make_response(403),
    ]

    with pytest.raises(StatusError):
        service.fetch_album(TOKEN)


def test_skipping_asset_urls_by_policy(service, session, make_response, webstream_payload):
    session.request.side_effect = [make_response(200, webstream_payload), make_response(200, webstream_payload)]

    album = service.fetch_album(TOKEN, resolve_urls=False)

    assert len(album.photos) == 2
    assert album.enriched_url_count == 0
    assert session.request.call_count == 2


def test_empty_album_skips_asset_url_call(service, session, make_response):
    body = {"streamName": "Empty", "streamCtag": "c", "photos": []}
    session.request.side_effect = [make_response(200, body), make_response(200, body)]

    album = service.fetch_album(TOKEN)

    assert album.photos == []
    assert session.request.call_count == 2


def test_invalid_token_makes_no_request(service, session):
    with pytest.raises(InvalidTokenError):
        service.fetch_album("")
    session.request.assert_not_called()


def test_creates_and_closes_own_session(mocker, fast_policy, make_response, webstream_payload, asset_urls_payload):
    session_cls = mocker.patch('requests.Session')
    session = session_cls.return_value.__enter__.return_value
    session.request.side_effect = [
        make_response(200, webstream_payload),
        make_response(200, webstream_payload),
        make_response(200, asset_urls_payload),
    ]
    service = SharedAlbumService(policy=fast_policy, sleep=lambda _: None)

    album = service.fetch_album(TOKEN)

    assert album.enriched_url_count == 3
    session_cls.return_value.__exit__.assert_called_once()


def test_select_and_download(service, session, make_response):
    photo = PhotoAsset(guid="photo-1", derivatives={
        "1": Derivative(checksum="a", width=800, height=600, url="https://host/small.jpg"),
        "2": Derivative(checksum="b", width=1600, height=1200, url="https://host/large.png"),
    })
    session.request.return_value = make_response(200, content=b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0d")

    content, mime_type = service.select_and_download(photo)

    assert mime_type == "image/png"
    assert content.startswith(b"\x89PNG")
    session.request.assert_called_once_with("GET", "https://host/large.png", timeout=5)


def test_select_and_download_uses_url_filename_as_hint(service, session, make_response):
    photo = PhotoAsset(guid="p", derivatives={"1": Derivative(checksum="a", url="https://host/S/clip.mov")})
    session.request.return_value = make_response(200, content=b"\x00\x01")

    _, mime_type = service.select_and_download(photo)

    assert mime_type == "video/quicktime"


def test_select_and_download_without_urls(service, session):
    photo = PhotoAsset(guid="p", derivatives={"1": Derivative(checksum="a")})

    with pytest.raises(NoUsableDerivativeError):
        service.select_and_download(photo)
    session.request.assert_not_called()


def test_defaults_come_from_config():
    service = SharedAlbumService()

    assert service.policy.max_retries >= 0
    assert service.host
    assert service.timeout > 0
    assert isinstance(service.markers, OriginalMarkers)


def test_explicit_zero_timeout_is_kept(session, fast_policy):
    service = SharedAlbumService(session=session, policy=fast_policy, host="", timeout=0)

    assert service.timeout == 0
    assert service.host == ""
