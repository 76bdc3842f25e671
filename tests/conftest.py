"""Shared test fixtures and utilities for all tests."""

from pathlib import Path

import pytest

from radio_station.audio import ReadyItem, TrackMetadata
from radio_station.categories import Category
from radio_station.errors import DeliveryError
from radio_station.play_history import PlayHistory


def create_ready_file(ready_root: Path, category: str, name: str, content: bytes = b"fake audio") -> Path:
    """Create a dummy clip under ready/<category>/."""
    directory = ready_root / category
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return path


def create_ready_item(
    ready_root: Path,
    category: Category,
    name: str,
    title: str | None = None,
    artist: str | None = None,
) -> ReadyItem:
    """ReadyItem with pre-filled metadata so no tags are read."""
    path = create_ready_file(ready_root, category.value, name)
    return ReadyItem(
        path=path,
        rel_path=f"{category.value}/{name}",
        category=category,
        _metadata=TrackMetadata(title=title or Path(name).stem, artist=artist, filename=name),
    )


class FakeDelivery:
    """Records delivered paths instead of spawning ffmpeg."""

    mode = "fake"

    def __init__(self, on_deliver=None, fail_paths=()):
        self.delivered: list[Path] = []
        self.on_deliver = on_deliver
        self.fail_paths = set(fail_paths)
        self.started = False
        self.stopped = 0

    def start(self):
        self.started = True

    def stop(self):
        self.stopped += 1

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def deliver(self, path: Path) -> None:
        self.delivered.append(path)
        if self.on_deliver is not None:
            self.on_deliver(path)
        if path in self.fail_paths:
            raise DeliveryError(f"fake failure for {path}", path=path, returncode=1)


class FakeSynthesizer:
    """Returns fixed bytes for any text."""

    def __init__(self):
        self.texts: list[str] = []

    def synthesize(self, text: str, voice: str | None = None) -> bytes:
        self.texts.append(text)
        return b"ID3fake-speech"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def ready_root(tmp_path):
    root = tmp_path / "ready"
    root.mkdir()
    return root


@pytest.fixture
def history(tmp_path):
    return PlayHistory(log_path=tmp_path / "state" / "play.log", cache_limit=128)
