"""
Tag reading on top of mutagen.

Maps the format-specific tag keys (ID3 frames, Vorbis comments, MP4 atoms,
APEv2 items) onto the three fields the organizer cares about.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

import mutagen
from mutagen import MutagenError

from pipeline.schemas import RawTags
from utils.exceptions import file_not_found_error, metadata_extraction_error

logger = logging.getLogger(__name__)

# Lookup order matters: the first key present in the file wins
TAG_MAPPING = {
    'album_artist': ['TPE2', 'ALBUMARTIST', 'ALBUM ARTIST', 'Album Artist', 'aART'],
    'artist': ['TPE1', 'ARTIST', 'Artist', '\xa9ART'],
    'album': ['TALB', 'ALBUM', 'Album', '\xa9alb'],
}


def _tag_values(value: Any) -> List[str]:
    """Flatten a mutagen tag value into a list of strings."""
    if hasattr(value, 'text'):
        # ID3 text frames
        items = value.text
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split('\x00')
    return [str(item) for item in items if item is not None]


class MetadataReader:
    """Reads RawTags from audio files."""

    def read(self, file_path: Path) -> RawTags:
        """
        Read tag metadata from an audio file.

        Args:
            file_path: Path to the audio file

        Returns:
            RawTags with whatever fields the file carries

        Raises:
            MusicSorterError: FILE_NOT_FOUND if the file is missing,
                METADATA_EXTRACTION_ERROR if mutagen cannot parse it
        """
        if not file_path.is_file():
            raise file_not_found_error(str(file_path))

        try:
            audio_file = mutagen.File(str(file_path))
        except MutagenError as e:
            raise metadata_extraction_error(str(file_path), str(e)) from e
        except Exception as e:
            # Malformed files also surface as struct.error, ValueError and friends
            raise metadata_extraction_error(
                str(file_path), f"{type(e).__name__}: {e}"
            ) from e

        if audio_file is None:
            raise metadata_extraction_error(str(file_path), "format not recognized")

        fields = {}
        for field_name, possible_keys in TAG_MAPPING.items():
            fields[field_name] = self._lookup(audio_file, possible_keys, file_path)

        album = fields['album']
        tags = RawTags(
            album_artist=self._collapse(fields['album_artist']),
            artist=self._collapse(fields['artist']),
            album=album[0] if album else None,
        )
        logger.debug(f"Read tags from {file_path}: {tags}")
        return tags

    def __call__(self, file_path: Path) -> RawTags:
        return self.read(file_path)

    def _lookup(self, audio_file, possible_keys: List[str], file_path: Path) -> Optional[List[str]]:
        if audio_file.tags is None:
            return None

        for key in possible_keys:
            try:
                if key not in audio_file.tags:
                    continue
                values = _tag_values(audio_file.tags[key])
            except (KeyError, ValueError, TypeError) as e:
                # Some tag containers reject keys that are invalid for the format
                logger.debug(f"Error reading tag {key} from {file_path}: {e}")
                continue
            # A present but blank tag does not shadow the next key
            if any(value.strip() for value in values):
                return values
        return None

    @staticmethod
    def _collapse(values: Optional[List[str]]):
        """Single values stay strings; multi-valued tags stay lists."""
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return values
