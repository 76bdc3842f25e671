"""Play history tracking for the station.

Plays are appended to a JSON-lines log that is never rewritten, and
mirrored into a bounded in-memory recency window used for
de-duplication and transition planning.
"""

import json
import logging
import os
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

import fasteners

from .audio import PLACEHOLDER_TITLE, TrackMetadata
from .config import config

logger = logging.getLogger(__name__)

PLACEHOLDER_PATH = "placeholder.mp3"
PLACEHOLDER_CATEGORY = "placeholder"


@dataclass(frozen=True)
class PlayEntry:
    """One completed play."""

    timestamp: str  # ISO 8601, UTC
    rel_path: str
    category: str
    metadata: TrackMetadata

    @property
    def is_placeholder(self) -> bool:
        return self.category == PLACEHOLDER_CATEGORY or self.metadata.is_placeholder

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "rel_path": self.rel_path,
                "category": self.category,
                "metadata": self.metadata.to_dict(),
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Optional["PlayEntry"]:
        """Parse a decoded log line.

        Accepts the older ``relPath``/``type``/``meta`` field names and
        millisecond epoch timestamps. Returns None for unusable records.
        """
        if not isinstance(record, dict):
            return None

        rel_path = record.get("rel_path", record.get("relPath"))
        category = record.get("category", record.get("type"))
        metadata = TrackMetadata.from_dict(record.get("metadata", record.get("meta")))
        if not rel_path or not category or metadata is None:
            return None

        timestamp = record.get("timestamp")
        if isinstance(timestamp, (int, float)):
            timestamp = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).isoformat()
        elif not isinstance(timestamp, str):
            timestamp = ""

        return cls(
            timestamp=timestamp,
            rel_path=str(rel_path),
            category=str(category),
            metadata=metadata,
        )


def _placeholder_entry() -> PlayEntry:
    return PlayEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        rel_path=PLACEHOLDER_PATH,
        category=PLACEHOLDER_CATEGORY,
        metadata=TrackMetadata(title=PLACEHOLDER_TITLE, artist="Unknown Artist"),
    )


class PlayHistory:
    """Append-only play log with a bounded recency cache.

    The station is the only writer of the log. Disk failures are logged
    and never raised: the cache is still updated so the run continues.
    """

    def __init__(self, log_path: Optional[Path] = None, cache_limit: Optional[int] = None):
        """Open the log and seed the cache from its tail.

        Args:
            log_path: JSON-lines log (default: config.paths.history_log_path)
            cache_limit: Entries kept in memory (default: config.schedule.cache_limit)
        """
        self.log_path = log_path or config.paths.history_log_path
        self.cache_limit = config.schedule.cache_limit if cache_limit is None else cache_limit
        if self.cache_limit < 1:
            raise ValueError("cache_limit must be at least 1")

        self._lock = fasteners.InterProcessLock(str(self.log_path.with_suffix(".lock")))
        self._cache: deque[PlayEntry] = deque(maxlen=self.cache_limit)
        self._bootstrap()

    def _bootstrap(self) -> None:
        try:
            self._cache.extend(self._iter_log())
        except OSError as e:
            logger.error(f"Failed to seed play history from {self.log_path}: {e}")
            self._cache.clear()

        if not self._cache:
            logger.warning(f"Play log {self.log_path} is empty; seeding cache with a placeholder")
            self._cache.append(_placeholder_entry())

        logger.info(f"Play history cache initialized with {len(self._cache)} entries")

    def _iter_log(self) -> Iterator[PlayEntry]:
        """Yield every parseable entry in the log, oldest first.

        Raises:
            OSError: If the log exists but cannot be read
        """
        if not self.log_path.exists():
            return

        with open(self.log_path, "r", encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = PlayEntry.from_record(json.loads(line))
                except json.JSONDecodeError:
                    entry = None
                if entry is None:
                    logger.warning(f"Skipping malformed play log line {line_no} in {self.log_path}")
                    continue
                yield entry

    def _ends_mid_line(self) -> bool:
        """True if the log is non-empty and its last byte is not a newline."""
        try:
            with open(self.log_path, "rb") as f:
                f.seek(0, os.SEEK_END)
                if f.tell() == 0:
                    return False
                f.seek(-1, os.SEEK_END)
                return f.read(1) != b"\n"
        except FileNotFoundError:
            return False

    def append(self, rel_path: str, category: str, metadata: TrackMetadata) -> PlayEntry:
        """Record a completed play on disk and in the cache.

        Args:
            rel_path: Path relative to the ready root
            category: Category the clip was played as
            metadata: Tags of the played clip

        Returns:
            The recorded entry (cached even if the disk write failed)
        """
        entry = PlayEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            rel_path=rel_path,
            category=str(category),
            metadata=metadata,
        )

        logger.info(f"Logging play: {metadata.title} ({metadata.artist or 'unknown artist'})")

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                # A crash mid-write can leave the last line unterminated
                prefix = "\n" if self._ends_mid_line() else ""
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(prefix + entry.to_json() + "\n")
                    f.flush()
        except OSError as e:
            logger.error(f"Failed to append play log {self.log_path}: {e}")

        self._cache.append(entry)
        return entry

    def recent(self, n: int = 5) -> list[PlayEntry]:
        """Return up to ``n`` newest cached plays, oldest to newest.

        Placeholder entries are excluded.
        """
        if n <= 0:
            return []
        newest = list(self._cache)[-n:]
        return [e for e in newest if not e.is_placeholder]

    def total_play_count(self, rel_path: str) -> int:
        """Count every logged play of ``rel_path`` (scans the whole log)."""
        try:
            return sum(1 for entry in self._iter_log() if entry.rel_path == rel_path)
        except OSError as e:
            logger.error(f"Failed to read play log {self.log_path}: {e}")
            return 0

    def get_history(self, category: Optional[str] = None) -> list[PlayEntry]:
        """Return every logged play, optionally filtered by category."""
        try:
            entries = list(self._iter_log())
        except OSError as e:
            logger.error(f"Failed to read play log {self.log_path}: {e}")
            return []
        if category is None:
            return entries
        return [e for e in entries if e.category == str(category)]

    @property
    def cached(self) -> list[PlayEntry]:
        """Snapshot of the recency cache, placeholders included."""
        return list(self._cache)
