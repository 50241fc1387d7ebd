"""Unit tests for the webstream and webasseturls calls."""

import pytest
import requests

from icloud_album.exceptions import (
    DecodeError,
    RetryExhaustedError,
    SchemaError,
    StatusError,
    TransportError,
)
from icloud_album.icloud_api import fetch_asset_urls, fetch_webstream, get_bytes, post_json
from icloud_album.retry import RetryStats

BASE_URL = "https://p12-sharedstreams.icloud.com/B0z5qAGN1JIFd3y/sharedstreams/"


def test_post_json_returns_body(session, make_response):
    session.request.return_value = make_response(200, {"ok": True})

    assert post_json(session, BASE_URL + "webstream", {"streamCtag": None}, timeout=5) == {"ok": True}
    session.request.assert_called_once_with(
        "POST", BASE_URL + "webstream", timeout=5, json={"streamCtag": None})


def test_post_json_error_mapping(session, make_response):
    session.request.return_value = make_response(404)
    with pytest.raises(StatusError) as exc_info:
        post_json(session, BASE_URL, {})
    assert exc_info.value.code == 404

    session.request.return_value = make_response(200, content=b"<html>")
    with pytest.raises(DecodeError):
        post_json(session, BASE_URL, {})

    session.request.side_effect = requests.exceptions.Timeout("slow")
    with pytest.raises(TransportError):
        post_json(session, BASE_URL, {})


def test_get_bytes(session, make_response):
    session.request.return_value = make_response(200, content=b"\xff\xd8\xff\xe0")
    assert get_bytes(session, "https://host/x.jpg") == b"\xff\xd8\xff\xe0"

    session.request.return_value = make_response(403)
    with pytest.raises(StatusError):
        get_bytes(session, "https://host/x.jpg")


def test_fetch_webstream(session, make_response, fast_policy, webstream_payload):
    session.request.return_value = make_response(200, webstream_payload)

    metadata, photos = fetch_webstream(session, BASE_URL, fast_policy)

    assert metadata.stream_name == "Summer Trip"
    assert len(photos) == 2
    assert session.request.call_args[0][1] == BASE_URL + "webstream"


def test_fetch_webstream_retries_server_errors(session, make_response, fast_policy, webstream_payload):
    session.request.side_effect = [
        requests.exceptions.ConnectionError("reset"),
        make_response(503),
        make_response(200, webstream_payload),
    ]
    stats = RetryStats()

    _, photos = fetch_webstream(session, BASE_URL, fast_policy, stats=stats, sleep=lambda _: None)

    assert len(photos) == 2
    assert stats.attempts == 3
    assert stats.succeeded


def test_fetch_webstream_exhaustion(session, make_response, fast_policy):
    session.request.return_value = make_response(500)

    with pytest.raises(RetryExhaustedError) as exc_info:
        fetch_webstream(session, BASE_URL, fast_policy, sleep=lambda _: None)

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, StatusError)
    assert session.request.call_count == 3


def test_fetch_webstream_schema_error_is_not_retried(session, make_response, fast_policy):
    session.request.return_value = make_response(200, {"streamName": "no photos"})

    with pytest.raises(SchemaError):
        fetch_webstream(session, BASE_URL, fast_policy, sleep=lambda _: None)
    assert session.request.call_count == 1


def test_fetch_asset_urls(session, make_response, fast_policy, asset_urls_payload):
    session.request.return_value = make_response(200, asset_urls_payload)

    urls = fetch_asset_urls(session, BASE_URL, ["photo-1", "photo-2"], fast_policy)

    assert urls["chk-2a"] == "https://cvws.icloud-content.com/S/a2/IMG_2.JPG"
    args, kwargs = session.request.call_args
    assert args == ("POST", BASE_URL + "webasseturls")
    assert kwargs["json"] == {"photoGuids": ["photo-1", "photo-2"]}


def test_fetch_asset_urls_batch_rejection_is_degraded_success(session, make_response, fast_policy):
    session.request.return_value = make_response(400)
    stats = RetryStats()

    assert fetch_asset_urls(session, BASE_URL, ["photo-1"], fast_policy, stats=stats) == {}
    assert session.request.call_count == 1
    assert stats.succeeded


def test_fetch_asset_urls_without_guids_makes_no_request(session, fast_policy):
    assert fetch_asset_urls(session, BASE_URL, [], fast_policy) == {}
    session.request.assert_not_called()


def test_fetch_asset_urls_missing_items_is_fatal(session, make_response, fast_policy):
    session.request.return_value = make_response(200, {"locations": {}})

    with pytest.raises(SchemaError):
        fetch_asset_urls(session, BASE_URL, ["photo-1"], fast_policy)


def test_fetch_asset_urls_other_status_propagates(session, make_response, fast_policy):
    session.request.return_value = make_response(401)

    with pytest.raises(StatusError) as exc_info:
        fetch_asset_urls(session, BASE_URL, ["photo-1"], fast_policy, sleep=lambda _: None)
    assert exc_info.value.code == 401
