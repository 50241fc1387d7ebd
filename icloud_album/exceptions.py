# icloud_album/exceptions.py
"""
Defines custom, library-specific exceptions for clear error handling.

The taxonomy mirrors how a failure is treated by the fetch pipeline:
transport and server-side status failures may be retried, decode and schema
failures never are, and per-field problems are resolved locally unless the
field is required.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .schema import IssueKind, ValidationIssue


class SharedAlbumError(Exception):
    """Base exception for all errors raised by this library."""
    pass

# --- Request-level exceptions ---
class TransportError(SharedAlbumError):
    """Raised for network, connection or timeout failures. Retryable."""
    pass

class StatusError(SharedAlbumError):
    """Raised when the service answers with an unexpected HTTP status."""

    def __init__(self, code: int, url: str = "", body: str = ""):
        self.code = code
        self.url = url
        self.body = body
        super().__init__(f"HTTP {code} from {url}" if url else f"HTTP {code}")

class DecodeError(SharedAlbumError):
    """Raised when a response body is not valid JSON (or not JSON at all)."""
    pass

class SchemaError(SharedAlbumError):
    """Raised when a required top-level field of a response is missing or malformed."""

    def __init__(self, issues: list[ValidationIssue], endpoint: str = ""):
        self.issues = list(issues)
        self.endpoint = endpoint
        details = "; ".join(str(issue) for issue in self.issues)
        prefix = f"{endpoint} response" if endpoint else "Response"
        super().__init__(f"{prefix} failed validation: {details}")

class FieldError(SharedAlbumError):
    """Raised when a Required field cannot be extracted."""

    def __init__(self, path: str, kind: IssueKind, reason: Optional[str] = None):
        self.path = path
        self.kind = kind
        self.reason = reason
        message = f"{path}: {kind.value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)

class RetryExhaustedError(SharedAlbumError):
    """Raised once every permitted attempt has failed. Wraps the last error."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")

# --- Input and selection exceptions ---
class InvalidTokenError(SharedAlbumError):
    """Raised for an empty token or one whose first character is not base-62."""
    pass

class NoUsableDerivativeError(SharedAlbumError):
    """Raised when no derivative of a photo has a resolved download URL."""
    pass
