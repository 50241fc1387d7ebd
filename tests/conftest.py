"""Test configuration for pytest."""

import sys
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from icloud_album.retry import BackoffStrategy, RetryPolicy

_NO_JSON = object()


def _make_response(status: int = 200, json_body: Any = _NO_JSON, content: bytes = b"") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.content = content
    if json_body is _NO_JSON:
        response.json.side_effect = ValueError("Expecting value")
        response.text = content.decode('latin-1')
    else:
        response.json.return_value = json_body
        response.text = str(json_body)
    return response


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for fake requests.Response objects."""
    return _make_response


@pytest.fixture
def session() -> MagicMock:
    """A stand-in for requests.Session; tests queue responses on `request`."""
    return MagicMock()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Two retries without any delay."""
    return RetryPolicy(max_retries=2, base_delay=0, backoff_strategy=BackoffStrategy.CONSTANT, max_delay=0)


@pytest.fixture
def webstream_payload() -> dict:
    """A webstream body with two photos, numbers partly sent as strings."""
    return {
        "streamName": "Summer Trip",
        "userFirstName": "Jane",
        "userLastName": "Doe",
        "streamCtag": "FT;1;42",
        "itemsReturned": "2",
        "locations": {},
        "photos": [
            {
                "photoGuid": "photo-1",
                "caption": "Beach",
                "dateCreated": "2023-07-01T10:00:00Z",
                "batchDateCreated": "2023-07-02T09:00:00Z",
                "width": "4032",
                "height": "3024",
                "derivatives": {
                    "1": {"checksum": "chk-1a", "fileSize": "12345", "width": "800", "height": "600"},
                    "2": {"checksum": "chk-1b", "fileSize": 54321, "width": 1600, "height": 1200},
                },
            },
            {
                "photoGuid": "photo-2",
                "derivatives": {
                    "PosterFrame": {"checksum": "chk-2a", "fileSize": 999, "width": 640, "height": 480},
                },
            },
        ],
    }


@pytest.fixture
def asset_urls_payload() -> dict:
    """A webasseturls body matching the webstream fixture's checksums."""
    return {
        "items": {
            "chk-1a": {"url_location": "cvws.icloud-content.com", "url_path": "/S/a1/IMG_1.JPG"},
            "chk-1b": {"url_location": "cvws.icloud-content.com", "url_path": "/S/b1/IMG_1.JPG"},
            "chk-2a": {"url_location": "cvws.icloud-content.com", "url_path": "/S/a2/IMG_2.JPG"},
        }
    }
