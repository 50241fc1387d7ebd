# icloud_album/schema.py
"""
Tolerant structural validation and per-field decoding of service responses.

The shared-streams API is undocumented and not consistently typed: numeric
fields arrive as numbers on some albums and as strings on others, optional
fields come and go. Instead of failing on the first surprise, this module
validates the top-level shape of a response, records every problem as a
`ValidationIssue`, and lets a per-field `Severity` decide whether a problem
is fatal, substituted with a default, or simply expected.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from .exceptions import FieldError, SchemaError

logger = logging.getLogger(__name__)


class Severity(Enum):
    """How strictly a missing or malformed field is treated."""
    REQUIRED = "required"   # hard error
    OPTIONAL = "optional"   # warning + default
    LENIENT = "lenient"     # absence is normal; only a malformed value warns


class IssueKind(Enum):
    MISSING = "missing"
    WRONG_TYPE = "wrong type"
    INVALID_VALUE = "invalid value"


class FieldType(Enum):
    STRING = "string"
    NUMBER = "number"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    ANY = "any"


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found while validating or decoding a response."""
    field_path: str
    kind: IssueKind
    reason: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.field_path}: {self.kind.value}"
        return f"{text} ({self.reason})" if self.reason else text


@dataclass(frozen=True)
class FieldSpec:
    """Declares the expected type and severity of one top-level field."""
    name: str
    field_type: FieldType
    severity: Severity = Severity.OPTIONAL


@dataclass
class DecodeContext:
    """
    Carries the location of the value being decoded, used only to make
    warnings readable (e.g. ``webstream.photos[3].derivatives.2.width``).

    Child contexts share the parent's ``warnings`` list, so the caller that
    created the root context sees every warning emitted further down.
    """
    path: str = ""
    warnings: List[str] = field(default_factory=list)

    def child(self, segment: str) -> DecodeContext:
        return DecodeContext(path=self.field_path(segment), warnings=self.warnings)

    def field_path(self, key: str) -> str:
        if not self.path:
            return key
        if key.startswith("["):
            return f"{self.path}{key}"
        return f"{self.path}.{key}"

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)


class _Rejected(Exception):
    def __init__(self, kind: IssueKind, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(reason)


# Endpoint field tables
WEBSTREAM_FIELDS: Sequence[FieldSpec] = (
    FieldSpec("photos", FieldType.SEQUENCE, Severity.REQUIRED),
    FieldSpec("streamCtag", FieldType.STRING, Severity.REQUIRED),
    FieldSpec("streamName", FieldType.STRING, Severity.OPTIONAL),
    FieldSpec("userFirstName", FieldType.STRING, Severity.OPTIONAL),
    FieldSpec("userLastName", FieldType.STRING, Severity.OPTIONAL),
    FieldSpec("itemsReturned", FieldType.NUMBER, Severity.OPTIONAL),
    FieldSpec("locations", FieldType.ANY, Severity.LENIENT),
)

ASSET_URLS_FIELDS: Sequence[FieldSpec] = (
    FieldSpec("items", FieldType.MAPPING, Severity.REQUIRED),
)


def coerce_number(value: Any) -> int | float:
    """
    Interprets an upstream numeric value.

    A native number is returned as-is; a string is parsed as an integer, then
    as a float (integral floats collapse to int). Anything else raises
    TypeError, and an unparseable string raises ValueError.
    """
    if isinstance(value, bool):
        raise TypeError("boolean is not a number")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"non-finite number {value!r}")
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        number = float(text)
        if not math.isfinite(number):
            raise ValueError(f"non-finite number {value!r}")
        return int(number) if number.is_integer() else number
    raise TypeError(f"expected a number or numeric string, got {type(value).__name__}")


def _convert(value: Any, field_type: FieldType, minimum: Optional[float]) -> Any:
    if field_type is FieldType.STRING:
        if not isinstance(value, str):
            raise _Rejected(IssueKind.WRONG_TYPE, f"expected string, got {type(value).__name__}")
        return value
    if field_type is FieldType.MAPPING:
        if not isinstance(value, Mapping):
            raise _Rejected(IssueKind.WRONG_TYPE, f"expected mapping, got {type(value).__name__}")
        return value
    if field_type is FieldType.SEQUENCE:
        if not isinstance(value, list):
            raise _Rejected(IssueKind.WRONG_TYPE, f"expected list, got {type(value).__name__}")
        return value
    if field_type is FieldType.NUMBER:
        try:
            number = coerce_number(value)
        except TypeError as e:
            raise _Rejected(IssueKind.WRONG_TYPE, str(e))
        except ValueError:
            raise _Rejected(IssueKind.INVALID_VALUE, f"{value!r} is not numeric")
        if minimum is not None and number < minimum:
            raise _Rejected(IssueKind.INVALID_VALUE, f"{number} is below {minimum}")
        return number
    return value


def _inspect(source: Any, key: str, field_type: FieldType, path: str,
             minimum: Optional[float] = None) -> tuple[Any, Optional[ValidationIssue]]:
    value = source.get(key) if isinstance(source, Mapping) else None
    # JSON null is treated exactly like an absent key.
    if value is None:
        return None, ValidationIssue(path, IssueKind.MISSING)
    try:
        return _convert(value, field_type, minimum), None
    except _Rejected as e:
        return None, ValidationIssue(path, e.kind, e.reason)


def extract_field(
    source: Any,
    key: str,
    field_type: FieldType,
    severity: Severity = Severity.OPTIONAL,
    default: Any = None,
    ctx: Optional[DecodeContext] = None,
    minimum: Optional[float] = None,
) -> Any:
    """
    Extracts ``source[key]`` as ``field_type`` under the given severity.

    Args:
        source: The mapping to read from. A non-mapping behaves like an empty one.
        key: Field name.
        field_type: Expected type. NUMBER accepts numbers and numeric strings.
        severity: REQUIRED raises FieldError; OPTIONAL and LENIENT substitute
            ``default``. OPTIONAL warns on any problem, LENIENT only when a
            value is present but malformed.
        default: Value returned when the field is not usable.
        ctx: Decode context used for the field path in messages.
        minimum: Optional lower bound for NUMBER fields.

    Returns:
        The converted value, or ``default``.

    Raises:
        FieldError: If the field is REQUIRED and missing or malformed.
    """
    ctx = ctx if ctx is not None else DecodeContext()
    value, issue = _inspect(source, key, field_type, ctx.field_path(key), minimum)
    if issue is None:
        return value

    if severity is Severity.REQUIRED:
        raise FieldError(issue.field_path, issue.kind, issue.reason)
    if severity is Severity.LENIENT and issue.kind is IssueKind.MISSING:
        logger.debug(f"{issue.field_path} absent, using default {default!r}")
    else:
        ctx.warn(f"{issue}; using default {default!r}")
    return default


def validate_fields(data: Any, specs: Sequence[FieldSpec],
                    ctx: Optional[DecodeContext] = None) -> List[ValidationIssue]:
    """
    Checks presence and type of top-level fields without extracting them.

    Every problem is collected; nothing is raised here. A body that is not a
    JSON object yields a single WRONG_TYPE issue at the root.
    """
    ctx = ctx if ctx is not None else DecodeContext()
    if not isinstance(data, Mapping):
        root = ctx.path or "<root>"
        return [ValidationIssue(root, IssueKind.WRONG_TYPE,
                                f"expected JSON object, got {type(data).__name__}")]

    issues = []
    for spec in specs:
        _, issue = _inspect(data, spec.name, spec.field_type, ctx.field_path(spec.name))
        if issue is not None:
            issues.append(issue)
    return issues


def check_schema(data: Any, specs: Sequence[FieldSpec], endpoint: str,
                 ctx: Optional[DecodeContext] = None) -> List[ValidationIssue]:
    """
    Validates ``data`` against ``specs`` and raises on required problems.

    Issues on non-required fields are returned (and left to per-field
    extraction to report), so a response missing only cosmetic fields still
    decodes.

    Raises:
        SchemaError: If the body is not an object or a REQUIRED field is
            missing or has the wrong type.
    """
    ctx = ctx if ctx is not None else DecodeContext(path=endpoint)
    issues = validate_fields(data, specs, ctx)
    required = {ctx.field_path(spec.name) for spec in specs if spec.severity is Severity.REQUIRED}

    fatal = [issue for issue in issues
             if issue.field_path in required or not isinstance(data, Mapping)]
    if fatal:
        raise SchemaError(fatal, endpoint=endpoint)

    for issue in issues:
        logger.debug(f"Non-required schema issue in {endpoint}: {issue}")
    return issues
