"""
Stages of the per-file organizing pipeline.

Stage 1: Triage (extension check and tag reading)
Stage 2: Identity resolution (normalization and sanitization)
Stage 3: Target path resolution

The pure helpers ``normalize_metadata``, ``sanitize_path_segment`` and
``resolve_target_directory`` carry the naming policy; the stage classes bind
them to configuration and collaborators.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Optional

from filesystem.file_ops import FileSystemOperations
from pipeline.schemas import (
    RawTags, NormalizedIdentity, SanitizedIdentity, ProcessedFile, TagValue
)
from utils.config_loader import MetadataConfig

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_SEGMENT = "Unknown"
REPLACEMENT_CHAR = "_"

# Reserved characters, whitespace and control characters
_ILLEGAL_SEGMENT_CHARS = re.compile(r'[<>:"/\\|?*\s\x00-\x1f]')

MetadataReaderFn = Callable[[Path], RawTags]


def _album_artist_value(value: TagValue) -> Optional[str]:
    """Album artist: a list is joined with ', ' after dropping blank entries."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    parts = [item.strip() for item in value if item and item.strip()]
    return ", ".join(parts) or None


def _artist_value(value: TagValue) -> Optional[str]:
    """Track artist: only the first entry of a list counts."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if not value or value[0] is None:
        return None
    return value[0].strip() or None


def normalize_metadata(
    tags: RawTags,
    unknown_artist: str = UNKNOWN_ARTIST,
    unknown_album: str = UNKNOWN_ALBUM,
    prefer_album_artist: bool = True,
) -> NormalizedIdentity:
    """
    Derive a definite album artist and album from raw tags.

    Album artist falls back from the album-artist tag to the first track
    artist and then to ``unknown_artist``; ``prefer_album_artist=False`` swaps
    the first two. Album falls back to ``unknown_album``. Never raises.
    """
    candidates = [_album_artist_value(tags.album_artist), _artist_value(tags.artist)]
    if not prefer_album_artist:
        candidates.reverse()

    album_artist = next((c for c in candidates if c), unknown_artist)
    album = (tags.album or "").strip() or unknown_album

    return NormalizedIdentity(album_artist=album_artist, album=album)


def sanitize_path_segment(value: str) -> str:
    """
    Make a string safe to use as a single path segment.

    Reserved characters (< > : " / \\ | ? *), whitespace and control
    characters become underscores, and a segment made only of dots has its
    dots replaced as well. Characters are replaced, never dropped, so the
    result is empty only for empty input, in which case "Unknown" is returned.
    Idempotent.
    """
    sanitized = _ILLEGAL_SEGMENT_CHARS.sub(REPLACEMENT_CHAR, value)

    if sanitized and set(sanitized) == {"."}:
        sanitized = REPLACEMENT_CHAR * len(sanitized)

    return sanitized or UNKNOWN_SEGMENT


def sanitize_identity(identity: NormalizedIdentity) -> SanitizedIdentity:
    return SanitizedIdentity(
        album_artist=sanitize_path_segment(identity.album_artist),
        album=sanitize_path_segment(identity.album),
    )


def resolve_target_directory(destination_root: Path, identity: SanitizedIdentity) -> Path:
    """destination_root / album_artist / album. No I/O."""
    return Path(destination_root) / identity.album_artist / identity.album


class Stage1Triage:
    """Stage 1: Triage - check the file type and read its tags."""

    def __init__(self, filesystem_ops: FileSystemOperations, metadata_reader: MetadataReaderFn):
        self.filesystem_ops = filesystem_ops
        self.metadata_reader = metadata_reader

    def process(self, file_path: Path) -> Optional[RawTags]:
        """
        Process a file through Stage 1.

        Returns:
            RawTags, or None if the file type is unsupported and should be skipped

        Raises:
            MusicSorterError: FILE_NOT_FOUND or METADATA_EXTRACTION_ERROR from the reader
        """
        if not self.filesystem_ops.is_supported(file_path):
            logger.warning(f"Skipping unsupported file: {file_path}")
            return None

        return self.metadata_reader(file_path)


class Stage2Identity:
    """Stage 2: Identity resolution - apply the fallback policy, then sanitize."""

    def __init__(self, metadata_config: MetadataConfig):
        self.metadata_config = metadata_config

    def process(self, tags: RawTags) -> tuple[NormalizedIdentity, SanitizedIdentity]:
        identity = normalize_metadata(
            tags,
            unknown_artist=self.metadata_config.unknown_artist_name,
            unknown_album=self.metadata_config.unknown_album_name,
            prefer_album_artist=self.metadata_config.prefer_album_artist,
        )
        return identity, sanitize_identity(identity)


class Stage3TargetPath:
    """Stage 3: Target path resolution under the destination root."""

    def __init__(self, destination_root: Path):
        self.destination_root = destination_root

    def process(
        self, file_path: Path, identity: NormalizedIdentity, sanitized: SanitizedIdentity
    ) -> ProcessedFile:
        target_directory = resolve_target_directory(self.destination_root, sanitized)
        logger.debug(f"Stage 3: {file_path.name} -> {target_directory}")
        return ProcessedFile(
            original_path=file_path,
            target_directory=target_directory,
            identity=identity,
        )
