"""
Pydantic schemas for the organizing pipeline.

These models define the data passed between pipeline stages for a single
file. None of them outlives one organize invocation.
"""

from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


TagValue = Optional[Union[str, List[str]]]


class RawTags(BaseModel):
    """Tag fields as read from the file, before any fallback is applied."""

    model_config = ConfigDict(frozen=True)

    album_artist: TagValue = Field(default=None, description="Album artist, possibly multi-valued")
    artist: TagValue = Field(default=None, description="Track artist, possibly multi-valued")
    album: Optional[str] = Field(default=None, description="Album title")


class NormalizedIdentity(BaseModel):
    """Definite album artist and album derived from RawTags."""

    model_config = ConfigDict(frozen=True)

    album_artist: str = Field(..., min_length=1)
    album: str = Field(..., min_length=1)


class SanitizedIdentity(BaseModel):
    """NormalizedIdentity with every value safe to use as a path segment."""

    model_config = ConfigDict(frozen=True)

    album_artist: str = Field(..., min_length=1)
    album: str = Field(..., min_length=1)

    @field_validator('album_artist', 'album')
    @classmethod
    def reject_separators(cls, v):
        """A segment must never contain a path separator."""
        if '/' in v or '\\' in v:
            raise ValueError(f"path separator in segment: {v!r}")
        return v


class ProcessedFile(BaseModel):
    """Everything the move step needs for one file."""

    model_config = ConfigDict(frozen=True)

    original_path: Path
    target_directory: Path
    identity: NormalizedIdentity

    @property
    def filename(self) -> str:
        return self.original_path.name

    @property
    def target_path(self) -> Path:
        return self.target_directory / self.original_path.name


class OrganizeStats(BaseModel):
    """Counters owned by a single organize invocation."""

    successful: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)

    @property
    def attempted(self) -> int:
        """Files for which processing was attempted (skipped files excluded)."""
        return self.successful + self.failed

    @property
    def total(self) -> int:
        return self.attempted + self.skipped

    def to_dict(self) -> dict:
        return {
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.skipped,
        }
