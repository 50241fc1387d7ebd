# icloud_album/media.py
"""
Download-time helpers: choosing which derivative of a photo to fetch and
working out what kind of file came back.
"""
from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .exceptions import NoUsableDerivativeError
from .models import Derivative
from .retry import config_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OriginalMarkers:
    """
    Heuristic markers for derivatives that are probably the original upload.

    This is a guess based on how the service has named its tiers so far, not
    something the API promises: keys containing one of ``substrings``
    (case-insensitive) or equal to one of ``keys`` are treated as originals.
    """
    substrings: Tuple[str, ...] = ("original", "full")
    keys: Tuple[str, ...] = ("3", "4")

    @classmethod
    def from_config(cls, config) -> OriginalMarkers:
        return cls(
            substrings=config_value(config, 'selection.original_substrings',
                                    lambda v: tuple(s.lower() for s in _strings(v)), cls.substrings),
            keys=config_value(config, 'selection.original_keys', _strings, cls.keys),
        )


def _strings(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise TypeError("expected a list of strings")
    return tuple(str(item) for item in value)


DEFAULT_ORIGINAL_MARKERS = OriginalMarkers()


def is_likely_original(key: str, markers: OriginalMarkers = DEFAULT_ORIGINAL_MARKERS) -> bool:
    lowered = key.lower()
    return any(s.lower() in lowered for s in markers.substrings) or key in markers.keys


def _largest(candidates: Iterable[Tuple[str, Derivative]]) -> Optional[Tuple[str, Derivative]]:
    best = None
    for key, derivative in candidates:
        if best is None or derivative.resolution > best[1].resolution:
            best = (key, derivative)
    return best


def select_best_derivative(
    derivatives: Dict[str, Derivative],
    markers: OriginalMarkers = DEFAULT_ORIGINAL_MARKERS,
) -> Tuple[str, Derivative]:
    """
    Picks the derivative to download.

    Likely originals win over raw resolution because the service sometimes
    declares a lower resolution for the original tier. Order of preference:
    the largest dimensioned original, any original, the largest dimensioned
    derivative, then any derivative with a URL.

    Returns:
        ``(key, derivative)``; the derivative always has a URL.

    Raises:
        NoUsableDerivativeError: If no derivative has a URL.
    """
    with_url = [(key, d) for key, d in derivatives.items() if d.url]
    if not with_url:
        raise NoUsableDerivativeError(
            f"None of {len(derivatives)} derivative(s) has a download URL."
        )

    originals = [(key, d) for key, d in with_url if is_likely_original(key, markers)]
    best = _largest((key, d) for key, d in originals if d.has_dimensions)
    if best is None and originals:
        best = originals[0]
    if best is None:
        best = _largest((key, d) for key, d in with_url if d.has_dimensions)
    if best is None:
        best = with_url[0]

    logger.debug(f"Selected derivative {best[0]!r} out of {len(derivatives)}.")
    return best


# Ordered: the QuickTime and HEIF brands are both "ftyp" boxes, so they must
# be tested before the generic MP4 check.
_SIGNATURES: Tuple[Tuple[str, Callable[[bytes], bool]], ...] = (
    ("image/jpeg", lambda b: b[:3] == b"\xFF\xD8\xFF"),
    ("image/png", lambda b: b[:8] == b"\x89PNG\r\n\x1a\n"),
    ("image/gif", lambda b: b[:4] == b"GIF8" and b[4:5] in (b"7", b"9") and b[5:6] == b"a"),
    ("video/quicktime", lambda b: b[4:10] == b"ftypqt"),
    ("image/heic", lambda b: b[4:12] == b"ftypheic"),
    ("image/heif", lambda b: b[4:12] == b"ftypheif"),
    ("video/mp4", lambda b: b[4:8] == b"ftyp"),
)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/heic": ".heic",
    "image/heif": ".heif",
    "image/gif": ".gif",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
}

DEFAULT_MIME_TYPE = "image/jpeg"
DEFAULT_EXTENSION = ".jpg"


def detect_mime_type(content: bytes, filename: Optional[str] = None) -> str:
    """
    Detects the MIME type from the first bytes of ``content``.

    Falls back to a guess from ``filename``'s extension, then to image/jpeg.
    """
    head = bytes(content[:12])
    for mime_type, matches in _SIGNATURES:
        if matches(head):
            return mime_type

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            logger.debug(f"No known signature; guessed {guessed} from {filename}")
            return guessed

    logger.warning(f"Could not detect MIME type, defaulting to {DEFAULT_MIME_TYPE}")
    return DEFAULT_MIME_TYPE


def extension_from_mime_type(mime_type: str) -> str:
    extension = _EXTENSIONS.get(mime_type.lower())
    if extension is None:
        logger.warning(f"Unknown MIME type: {mime_type}, defaulting to {DEFAULT_EXTENSION}")
        return DEFAULT_EXTENSION
    return extension


def get_extension_for_content(content: bytes, filename: Optional[str] = None) -> str:
    return extension_from_mime_type(detect_mime_type(content, filename))
