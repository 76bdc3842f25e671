"""Audio file metadata and ready-file handling."""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.id3 import ID3, ID3NoHeaderError

from .categories import Category

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Placeholder Track"


@dataclass(frozen=True)
class TrackMetadata:
    """Descriptive tags for a clip."""

    title: str
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    comment: Optional[str] = None
    filename: Optional[str] = None

    @classmethod
    def from_filename(cls, path: Path) -> "TrackMetadata":
        """Fallback metadata: filename stem as title."""
        return cls(title=path.stem, filename=path.name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["TrackMetadata"]:
        """Build from a log record, ignoring unknown keys.

        Returns None when the record has no usable title.
        """
        if not isinstance(data, dict):
            return None
        title = data.get("title")
        if not title or not isinstance(title, str):
            return None

        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return str(value) if value not in (None, "") else None

        return cls(
            title=title,
            artist=text("artist"),
            album=text("album"),
            genre=text("genre"),
            comment=text("comment"),
            filename=text("filename"),
        )

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @property
    def is_placeholder(self) -> bool:
        return self.title == PLACEHOLDER_TITLE


def _first_tag(audio, key: str) -> Optional[str]:
    values = audio.get(key) if audio is not None else None
    if values:
        value = str(values[0]).strip()
        return value or None
    return None


def _id3_comment(file_path: Path) -> Optional[str]:
    """Read the first ID3 COMM frame (EasyID3 has no comment key)."""
    try:
        tags = ID3(file_path)
    except (ID3NoHeaderError, MutagenError):
        return None
    for frame in tags.getall("COMM"):
        if frame.text:
            value = str(frame.text[0]).strip()
            if value:
                return value
    return None


def extract_metadata(file_path: Path) -> TrackMetadata:
    """Extract embedded tags from an audio file using mutagen.

    Never raises: a missing, empty, untagged or unreadable file yields
    metadata with the filename stem as title.

    Args:
        file_path: Path to audio file (MP3, WAV, FLAC, etc.)

    Returns:
        TrackMetadata with whatever tags were found
    """
    fallback = TrackMetadata.from_filename(file_path)

    try:
        if not file_path.exists() or file_path.stat().st_size == 0:
            logger.warning(f"File not found or empty: {file_path}")
            return fallback

        audio = MutagenFile(file_path, easy=True)
        if audio is None or not audio.tags:
            logger.debug(f"No tags found for: {file_path}")
            return fallback

        comment = _first_tag(audio, "comment")
        if comment is None and file_path.suffix.lower() == ".mp3":
            comment = _id3_comment(file_path)

        return TrackMetadata(
            title=_first_tag(audio, "title") or fallback.title,
            artist=_first_tag(audio, "artist"),
            album=_first_tag(audio, "album"),
            genre=_first_tag(audio, "genre"),
            comment=comment,
            filename=fallback.filename,
        )

    except (MutagenError, OSError) as e:
        logger.error(f"Error extracting metadata from {file_path}: {e}")
        return fallback


@dataclass
class ReadyItem:
    """A finished clip waiting in a category's ready directory."""

    path: Path
    rel_path: str  # Relative to the ready root, POSIX separators
    category: Category
    _metadata: Optional[TrackMetadata] = field(default=None, repr=False, compare=False)

    @property
    def metadata(self) -> TrackMetadata:
        """Tags, read on first access."""
        if self._metadata is None:
            self._metadata = extract_metadata(self.path)
        return self._metadata

    @property
    def title(self) -> str:
        return self.metadata.title
