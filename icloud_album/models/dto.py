# icloud_album/models/dto.py
"""
Data Transfer Objects (DTOs) for the shared album API.

Each DTO knows how to build itself from the raw JSON of the service through
the severity-aware extractors in `icloud_album.schema`, so the rest of the
library only ever handles typed objects.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Tuple
import logging

from ..exceptions import FieldError
from ..schema import (
    ASSET_URLS_FIELDS,
    WEBSTREAM_FIELDS,
    DecodeContext,
    FieldType,
    Severity,
    check_schema,
    extract_field,
)

logger = logging.getLogger(__name__)

# Type aliases for better readability
PhotoGuid = str
Checksum = str
DerivativeKey = str


@dataclass
class Derivative:
    """One size/quality variant of a photo."""
    checksum: Checksum
    file_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    url: Optional[str] = None

    @property
    def has_dimensions(self) -> bool:
        return self.width is not None and self.height is not None

    @property
    def resolution(self) -> Optional[int]:
        """Pixel count, or None when either dimension is unknown."""
        if not self.has_dimensions:
            return None
        return self.width * self.height

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_api(cls, data: Any, ctx: DecodeContext) -> Derivative:
        """
        Builds a Derivative from a raw ``derivatives`` entry.

        Raises:
            FieldError: If the checksum is missing, since it is the join key
                to the asset URLs.
        """
        return cls(
            checksum=extract_field(data, 'checksum', FieldType.STRING, Severity.REQUIRED, ctx=ctx),
            file_size=extract_field(data, 'fileSize', FieldType.NUMBER, Severity.OPTIONAL, ctx=ctx, minimum=0),
            width=extract_field(data, 'width', FieldType.NUMBER, Severity.LENIENT, ctx=ctx, minimum=0),
            height=extract_field(data, 'height', FieldType.NUMBER, Severity.LENIENT, ctx=ctx, minimum=0),
        )


@dataclass
class PhotoAsset:
    """Represents a photo (or video) of a shared album with its derivatives."""
    guid: PhotoGuid
    derivatives: Dict[DerivativeKey, Derivative] = field(default_factory=dict)
    caption: Optional[str] = None
    date_created: Optional[str] = None
    batch_date_created: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def is_enriched(self) -> bool:
        """True when at least one derivative has a download URL."""
        return any(d.url for d in self.derivatives.values())

    @property
    def checksums(self) -> List[Checksum]:
        return [d.checksum for d in self.derivatives.values()]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_api(cls, data: Any, ctx: DecodeContext) -> PhotoAsset:
        """
        Builds a PhotoAsset from one entry of the webstream ``photos`` list.

        A malformed derivative is dropped with a warning; the photo itself is
        only rejected when its guid or its derivatives mapping is unusable.

        Raises:
            FieldError: If ``photoGuid`` or ``derivatives`` is missing or malformed.
        """
        guid = extract_field(data, 'photoGuid', FieldType.STRING, Severity.REQUIRED, ctx=ctx)
        raw_derivatives = extract_field(data, 'derivatives', FieldType.MAPPING, Severity.REQUIRED, ctx=ctx)

        derivatives_ctx = ctx.child('derivatives')
        derivatives = {}
        for key, raw in raw_derivatives.items():
            try:
                derivatives[str(key)] = Derivative.from_api(raw, derivatives_ctx.child(str(key)))
            except FieldError as e:
                derivatives_ctx.warn(f"Skipping derivative {key!r} of photo {guid}: {e}")

        return cls(
            guid=guid,
            derivatives=derivatives,
            caption=extract_field(data, 'caption', FieldType.STRING, Severity.LENIENT, ctx=ctx),
            date_created=extract_field(data, 'dateCreated', FieldType.STRING, Severity.LENIENT, ctx=ctx),
            batch_date_created=extract_field(data, 'batchDateCreated', FieldType.STRING, Severity.LENIENT, ctx=ctx),
            width=extract_field(data, 'width', FieldType.NUMBER, Severity.LENIENT, ctx=ctx, minimum=0),
            height=extract_field(data, 'height', FieldType.NUMBER, Severity.LENIENT, ctx=ctx, minimum=0),
        )


@dataclass(frozen=True)
class AlbumMetadata:
    """Album-level information returned by the webstream endpoint."""
    stream_name: str = ""
    owner_first_name: str = ""
    owner_last_name: str = ""
    stream_ctag: str = ""
    items_returned: int = 0
    locations: Any = field(default_factory=dict)

    @property
    def owner_name(self) -> str:
        return " ".join(part for part in (self.owner_first_name, self.owner_last_name) if part)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_api(cls, data: Any, ctx: DecodeContext) -> AlbumMetadata:
        return cls(
            stream_name=extract_field(data, 'streamName', FieldType.STRING, Severity.OPTIONAL, "", ctx),
            owner_first_name=extract_field(data, 'userFirstName', FieldType.STRING, Severity.OPTIONAL, "", ctx),
            owner_last_name=extract_field(data, 'userLastName', FieldType.STRING, Severity.OPTIONAL, "", ctx),
            stream_ctag=extract_field(data, 'streamCtag', FieldType.STRING, Severity.REQUIRED, ctx=ctx),
            items_returned=int(extract_field(data, 'itemsReturned', FieldType.NUMBER, Severity.OPTIONAL, 0, ctx, minimum=0)),
            locations=extract_field(data, 'locations', FieldType.ANY, Severity.LENIENT, {}, ctx),
        )


@dataclass
class AlbumResponse:
    """Final result of a fetch: album metadata plus its (possibly enriched) photos."""
    metadata: AlbumMetadata
    photos: List[PhotoAsset] = field(default_factory=list)

    @property
    def photo_guids(self) -> List[PhotoGuid]:
        return [photo.guid for photo in self.photos]

    @property
    def enriched_url_count(self) -> int:
        """Number of derivatives across all photos that received a URL."""
        return sum(1 for photo in self.photos for d in photo.derivatives.values() if d.url)

    def find_photo(self, guid: PhotoGuid) -> Optional[PhotoAsset]:
        return next((photo for photo in self.photos if photo.guid == guid), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metadata': self.metadata.to_dict(),
            'photos': [photo.to_dict() for photo in self.photos],
        }


# Utility functions for conversion
def photos_from_api(raw_photos: List[Any], ctx: DecodeContext) -> List[PhotoAsset]:
    """
    Decodes the ``photos`` list, skipping (and logging) malformed entries and
    repeated guids so one bad entry never costs the rest of the batch.
    """
    photos: List[PhotoAsset] = []
    seen = set()
    for index, raw in enumerate(raw_photos):
        photo_ctx = ctx.child(f"[{index}]")
        try:
            photo = PhotoAsset.from_api(raw, photo_ctx)
        except FieldError as e:
            photo_ctx.warn(f"Skipping malformed photo entry: {e}")
            continue
        if photo.guid in seen:
            photo_ctx.warn(f"Skipping duplicate photo guid {photo.guid}")
            continue
        seen.add(photo.guid)
        photos.append(photo)
    return photos


def album_from_webstream(data: Any, ctx: Optional[DecodeContext] = None) -> Tuple[AlbumMetadata, List[PhotoAsset]]:
    """
    Converts a webstream response body into metadata and photos.

    Raises:
        SchemaError: If the body lacks the photo list or the change tag.
    """
    ctx = ctx if ctx is not None else DecodeContext(path='webstream')
    check_schema(data, WEBSTREAM_FIELDS, 'webstream', ctx)
    metadata = AlbumMetadata.from_api(data, ctx)
    photos = photos_from_api(data['photos'], ctx.child('photos'))

    if len(photos) < metadata.items_returned:
        logger.info(f"Server reported {metadata.items_returned} items, decoded {len(photos)} photos.")
    return metadata, photos


def asset_urls_from_api(data: Any, ctx: Optional[DecodeContext] = None) -> Dict[Checksum, str]:
    """
    Converts a webasseturls response body into a checksum -> full URL map.

    Entries without a usable ``url_location``/``url_path`` are skipped.

    Raises:
        SchemaError: If ``items`` is missing or not a mapping.
    """
    ctx = ctx if ctx is not None else DecodeContext(path='webasseturls')
    check_schema(data, ASSET_URLS_FIELDS, 'webasseturls', ctx)

    items_ctx = ctx.child('items')
    urls: Dict[Checksum, str] = {}
    for checksum, item in data['items'].items():
        item_ctx = items_ctx.child(str(checksum))
        try:
            location = extract_field(item, 'url_location', FieldType.STRING, Severity.REQUIRED, ctx=item_ctx)
            path = extract_field(item, 'url_path', FieldType.STRING, Severity.REQUIRED, ctx=item_ctx)
        except FieldError as e:
            item_ctx.warn(f"Skipping asset URL entry: {e}")
            continue
        urls[str(checksum)] = f"https://{location}{path}"
    return urls
