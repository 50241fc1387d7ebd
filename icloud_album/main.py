#!/usr/bin/env python3
# icloud_album/main.py
"""
Command-line front end for the shared album fetcher.

`info` prints a summary of an album, `download` saves the best derivative of
every photo into a directory. Run as a module: `python -m icloud_album.main`.
"""
import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Optional

from icloud_album.exceptions import NoUsableDerivativeError, SharedAlbumError
from icloud_album.media import extension_from_mime_type
from icloud_album.models import AlbumResponse, PhotoAsset
from icloud_album.services import album_service, config

# Initialize the logger for this module.
logger = logging.getLogger(__name__)

# Characters that are illegal or awkward in file names on common platforms.
_INVALID_FILENAME_CHARS = re.compile(r'[\x00-\x1f<>:"/\\|?*!@#$%^&\';=+,`~]')
_MAX_FILENAME_LENGTH = 200


def sanitize_filename(name: str) -> str:
    """Replaces unsafe characters with underscores and trims the result."""
    sanitized = _INVALID_FILENAME_CHARS.sub('_', name).strip().strip('.')
    if len(sanitized) > _MAX_FILENAME_LENGTH:
        sanitized = f"{sanitized[:_MAX_FILENAME_LENGTH - 6]}_trunc"
    return sanitized


def build_filename(photo: PhotoAsset, index: Optional[int], extension: str) -> str:
    """``{index}_{guid}_{caption}{ext}``, leaving out whatever is missing."""
    parts = []
    if index is not None:
        parts.append(str(index + 1))
    parts.append(photo.guid)
    if photo.caption:
        parts.append(photo.caption)
    return sanitize_filename("_".join(parts)) + extension


def print_summary(album: AlbumResponse) -> None:
    metadata = album.metadata
    print(f"Album:  {metadata.stream_name or '(untitled)'}")
    print(f"Owner:  {metadata.owner_name or '(unknown)'}")
    print(f"Photos: {len(album.photos)} (server reported {metadata.items_returned})")
    print(f"URLs:   {album.enriched_url_count} derivative URL(s) resolved")


def run_info(token: str) -> int:
    album = album_service.fetch_album(token)
    print_summary(album)
    for index, photo in enumerate(album.photos, start=1):
        caption = f" - {photo.caption}" if photo.caption else ""
        print(f"  {index:>4}. {photo.guid} [{len(photo.derivatives)} derivative(s)]{caption}")
    return 0


def run_download(token: str, output_dir: Path) -> int:
    album = album_service.fetch_album(token)
    print_summary(album)
    output_dir.mkdir(parents=True, exist_ok=True)

    saved = 0
    failed = 0
    for index, photo in enumerate(album.photos):
        try:
            content, mime_type = album_service.select_and_download(photo)
        except NoUsableDerivativeError:
            logger.warning(f"Photo {photo.guid} has no downloadable derivative; skipping.")
            failed += 1
            continue
        except SharedAlbumError as e:
            logger.error(f"Download of photo {photo.guid} failed: {e}")
            failed += 1
            continue

        path = output_dir / build_filename(photo, index, extension_from_mime_type(mime_type))
        path.write_bytes(content)
        saved += 1
        print(f"  [{index + 1}/{len(album.photos)}] {path.name} ({len(content)} bytes, {mime_type})")

    print(f"Saved {saved} file(s) to {output_dir}, {failed} failed.")
    return 0 if failed == 0 else 2


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Parses arguments and runs the requested command within a top-level error
    handler so every failure is logged before exiting.
    """
    parser = argparse.ArgumentParser(description="iCloud shared album fetcher")
    parser.add_argument('--log-level', type=str, default=None, help="Overrides logging.level from config.yaml.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    info_parser = subparsers.add_parser('info', help="Print album metadata and photos.")
    info_parser.add_argument('token', nargs='?', default=config.default_token, help="Album share token.")

    download_parser = subparsers.add_parser('download', help="Download every photo of the album.")
    download_parser.add_argument('token', nargs='?', default=config.default_token, help="Album share token.")
    download_parser.add_argument('--output-dir', type=Path,
                                 default=Path(config.get('download.output_dir', 'downloads')),
                                 help="Directory to save files into.")

    args = parser.parse_args(argv)
    config.setup_logging(args.log_level)
    if not args.token:
        parser.error("An album token is required (argument or ICLOUD_ALBUM_TOKEN).")

    try:
        if args.command == 'info':
            return run_info(args.token)
        return run_download(args.token, args.output_dir)
    except Exception as e:
        # Master catch-all: every failure is logged with its traceback before exiting.
        logger.critical(f"FATAL: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
