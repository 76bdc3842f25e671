"""
Track selection with de-duplication and long-horizon fairness.

Picks the next ready file for a category using play history: recently
played files (in any category) are excluded, never-played files are
preferred, and the rest are ranked by play count and recency before a
random pick breaks the tie.
"""
import logging
import math
import random
from pathlib import Path
from typing import Iterable, Optional

from .audio import ReadyItem
from .categories import Category
from .config import config
from .play_history import PlayEntry, PlayHistory

logger = logging.getLogger(__name__)


def recency_distance(rel_path: str, recent: list[PlayEntry]) -> float:
    """Distance of ``rel_path``'s newest play from the end of ``recent``.

    0 means it was the last play; ``math.inf`` means it is not in the window.
    """
    for distance, entry in enumerate(reversed(recent)):
        if entry.rel_path == rel_path:
            return distance
    return math.inf


def _top_half(items: list) -> list:
    return items[:max(1, len(items) // 2)]


class TrackSelector:
    """Chooses the next clip for a schedule slot."""

    def __init__(
        self,
        history: PlayHistory,
        ready_root: Optional[Path] = None,
        history_size: Optional[int] = None,
        include_podcasts: Optional[bool] = None,
        extensions: Optional[Iterable[str]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.history = history
        self.ready_root = ready_root or config.paths.ready_path
        self.history_size = history_size or config.schedule.history_size
        self.include_podcasts = (
            config.schedule.include_podcasts if include_podcasts is None else include_podcasts
        )
        self.extensions = {
            e.lower() for e in (extensions or config.schedule.audio_extensions)
        }
        self.rng = rng or random.Random()

    def categories_for(self, category: Category) -> list[Category]:
        """Ready directories a slot of ``category`` draws from."""
        category = Category(category)
        if category is Category.DJ and self.include_podcasts:
            return [Category.DJ, Category.PODCAST]
        return [category]

    def list_ready(self, category: Category) -> list[ReadyItem]:
        """Enumerate ready files for a slot, sorted by relative path.

        Files that vanish mid-enumeration are simply not returned.
        """
        items = []
        for source in self.categories_for(category):
            directory = self.ready_root / source.value
            try:
                entries = list(directory.iterdir())
            except FileNotFoundError:
                logger.debug(f"Ready directory missing: {directory}")
                continue
            except OSError as e:
                logger.warning(f"Cannot list ready directory {directory}: {e}")
                continue

            for path in entries:
                if path.suffix.lower() not in self.extensions:
                    continue
                try:
                    if not path.is_file():
                        continue
                except OSError:
                    continue
                rel_path = path.relative_to(self.ready_root).as_posix()
                items.append(ReadyItem(path=path, rel_path=rel_path, category=source))

        return sorted(items, key=lambda item: item.rel_path)

    def pick_next(self, category: Category) -> Optional[ReadyItem]:
        """Pick the next ready file for ``category``.

        Returns:
            The chosen ReadyItem, or None if no ready files exist
        """
        items = self.list_ready(category)
        if not items:
            logger.warning(f"No ready files for category '{category}'")
            return None

        recent = self.history.recent(self.history_size)
        recent_paths = {e.rel_path for e in recent}
        counts = {item.rel_path: self.history.total_play_count(item.rel_path) for item in items}
        distance = {item.rel_path: recency_distance(item.rel_path, recent) for item in items}

        # Hard de-dup against the recency window (all categories share it)
        available = [item for item in items if item.rel_path not in recent_paths]

        if not available:
            # Small pool: least recently played half of everything
            ranked = sorted(items, key=lambda item: distance[item.rel_path], reverse=True)
            available = _top_half(ranked)
            logger.debug(
                f"All {len(items)} '{category}' files are recent; "
                f"falling back to {len(available)} least recently played"
            )

        candidates = [item for item in available if counts[item.rel_path] == 0]

        if not candidates:
            ranked = sorted(
                available,
                key=lambda item: (counts[item.rel_path], -distance[item.rel_path]),
            )
            candidates = _top_half(ranked)

        choice = self.rng.choice(candidates)
        logger.info(
            f"Selected {choice.rel_path} for '{category}' "
            f"({len(candidates)} candidates, {counts[choice.rel_path]} previous plays)"
        )
        return choice
