"""Tests for the playback scheduler.

Test coverage:
- Uptime budget in track and cycle modes
- Stop requests (immediate and stop-after-category)
- Lookahead: the item announced by a transition is the one played
- Slot failures never end the run, except a dead live pipeline
- Transition clips are cleaned up
"""

import random
from unittest.mock import Mock

import pytest

from conftest import FakeClock, FakeDelivery, FakeSynthesizer, create_ready_file, create_ready_item
from radio_station.audio import TrackMetadata
from radio_station.categories import Category
from radio_station.config import config
from radio_station.errors import PipelineFatalError, SynthesisError
from radio_station.scheduler import (
    PlaybackScheduler,
    RunState,
    SchedulerState,
    cleanup_transitions,
)
from radio_station.track_selection import TrackSelector


@pytest.fixture
def transitions_path(tmp_path):
    return tmp_path / "ready" / "segway"


@pytest.fixture
def planner():
    mock = Mock()
    mock.plan.return_value = "Here comes the next one."
    return mock


@pytest.fixture
def make_scheduler(history, planner, transitions_path):
    def make(selector, delivery, pattern, synthesizer=None, **kwargs):
        kwargs.setdefault("uptime_seconds", None)
        kwargs.setdefault("uptime_mode", "track")
        kwargs.setdefault("stop_category", Category.MUSIC)
        return PlaybackScheduler(
            history=history,
            selector=selector,
            planner=planner,
            delivery=delivery,
            synthesizer=synthesizer,
            pattern=pattern,
            transitions_path=transitions_path,
            **kwargs,
        )
    return make


def real_selector(history, ready_root):
    return TrackSelector(
        history,
        ready_root=ready_root,
        history_size=16,
        extensions=[".mp3"],
        rng=random.Random(0),
    )


class TestUptime:
    """Uptime budget handling."""

    def test_track_mode_stops_after_next_stop_category(self, ready_root, history, make_scheduler):
        """Budget expires during the first music; the run ends after the next music."""
        create_ready_file(ready_root, "music", "a.mp3")
        create_ready_file(ready_root, "music", "b.mp3")
        create_ready_file(ready_root, "ad", "spot.mp3")
        clock = FakeClock()
        delivery = FakeDelivery(on_deliver=lambda path: clock.advance(15))

        scheduler = make_scheduler(
            real_selector(history, ready_root),
            delivery,
            [Category.MUSIC, Category.AD, Category.MUSIC],
            uptime_seconds=10,
            uptime_mode="track",
            clock=clock,
        )
        scheduler.start()

        assert [p.parent.name for p in delivery.delivered] == ["music", "ad", "music"]
        assert delivery.delivered[0] != delivery.delivered[2]
        assert [e.category for e in history.recent(10)] == ["music", "ad", "music"]
        assert scheduler.state is SchedulerState.STOPPED
        assert delivery.started
        assert delivery.stopped == 1

    def test_track_mode_zero_budget_still_plays_through_stop_category(self, ready_root, make_scheduler):
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        delivery = FakeDelivery()

        make_scheduler(
            selector, delivery, [Category.AD, Category.MUSIC],
            uptime_seconds=0, uptime_mode="track", clock=FakeClock(),
        ).start()

        assert delivery.delivered == [ad.path, song.path]

    def test_cycle_mode_stops_at_cycle_boundary(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song
        clock = FakeClock()
        delivery = FakeDelivery(on_deliver=lambda path: clock.advance(4))

        make_scheduler(
            selector, delivery, [Category.MUSIC],
            uptime_seconds=10, uptime_mode="cycle", clock=clock,
        ).start()

        # Cycles start at t=0, 4 and 8; the one at t=12 never starts
        assert len(delivery.delivered) == 3

    def test_cycle_mode_finishes_current_cycle(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        clock = FakeClock()
        delivery = FakeDelivery(on_deliver=lambda path: clock.advance(100))

        make_scheduler(
            selector, delivery, [Category.MUSIC, Category.AD, Category.MUSIC],
            uptime_seconds=10, uptime_mode="cycle", clock=clock,
        ).start()

        assert delivery.delivered == [song.path, ad.path, song.path]


class TestStopRequests:
    """request_stop(), request_stop_after() and shutdown()."""

    def test_stop_before_start_plays_nothing(self, ready_root, make_scheduler):
        selector = Mock()
        delivery = FakeDelivery()
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC])

        scheduler.request_stop()
        scheduler.start()

        assert delivery.delivered == []
        selector.pick_next.assert_not_called()
        assert delivery.stopped == 1
        assert scheduler.state is SchedulerState.STOPPED

    def test_stop_lets_in_flight_delivery_finish(self, ready_root, history, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        delivery = FakeDelivery(on_deliver=lambda path: scheduler.request_stop())
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC, Category.AD])

        scheduler.start()

        assert delivery.delivered == [song.path]
        assert [e.rel_path for e in history.recent(5)] == ["music/song.mp3"]

    def test_stop_after_requested_category(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        states = []

        def on_deliver(path):
            states.append(scheduler.state)
            if len(delivery.delivered) == 1:
                scheduler.request_stop_after(Category.AD)

        delivery = FakeDelivery(on_deliver=on_deliver)
        scheduler = make_scheduler(
            selector, delivery, [Category.MUSIC, Category.MUSIC, Category.AD, Category.MUSIC]
        )

        scheduler.start()

        assert delivery.delivered == [song.path, song.path, ad.path]
        assert states == [
            SchedulerState.RUNNING,
            SchedulerState.STOPPING_AFTER_CATEGORY,
            SchedulerState.STOPPING_AFTER_CATEGORY,
        ]

    def test_stop_after_category_missing_from_pattern_ends_cycle(self, ready_root, make_scheduler):
        """A graceful stop for a category that never plays still ends the run."""
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        states = []

        def on_deliver(path):
            states.append(scheduler.state)
            if len(delivery.delivered) == 1:
                scheduler.request_stop_after(Category.PODCAST)
            elif len(delivery.delivered) > 6:
                scheduler.request_stop()

        delivery = FakeDelivery(on_deliver=on_deliver)
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC, Category.AD, Category.MUSIC])

        scheduler.start()

        assert delivery.delivered == [song.path, ad.path, song.path]
        assert states[1:] == [SchedulerState.STOPPING_AFTER_CYCLE] * 2
        assert scheduler.state is SchedulerState.STOPPED

    def test_shutdown_is_idempotent(self, make_scheduler):
        delivery = FakeDelivery()
        scheduler = make_scheduler(Mock(), delivery, [Category.MUSIC])

        scheduler.shutdown()
        scheduler.shutdown()

        assert delivery.stopped == 1


class TestSlots:
    """Transition and content slot behaviour."""

    def test_transition_announces_the_item_that_plays(
        self, ready_root, history, planner, transitions_path, make_scheduler
    ):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3", title="Song")
        selector = Mock()
        selector.pick_next.return_value = song
        synthesizer = FakeSynthesizer()
        clips_seen = []

        def on_deliver(path):
            clips_seen.append(path.exists())
            if path == song.path:
                scheduler.request_stop()

        delivery = FakeDelivery(on_deliver=on_deliver)
        scheduler = make_scheduler(
            selector, delivery, [Category.TRANSITION, Category.MUSIC], synthesizer=synthesizer
        )

        scheduler.start()

        assert selector.pick_next.call_count == 1
        planner.plan.assert_called_once_with(None, song)
        assert synthesizer.texts == ["Here comes the next one."]

        clip, played = delivery.delivered
        assert clip.parent == transitions_path
        assert clip.name.startswith("segway_start_to_music_")
        assert clips_seen == [True, True]
        assert not clip.exists()
        assert played == song.path

    def test_transition_clip_uses_voice_format(self, ready_root, transitions_path, make_scheduler, monkeypatch):
        monkeypatch.setattr(config.tts, "tts_format", "wav")
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song
        delivery = FakeDelivery(on_deliver=lambda path: path == song.path and scheduler.request_stop())
        scheduler = make_scheduler(
            selector, delivery, [Category.TRANSITION, Category.MUSIC], synthesizer=FakeSynthesizer()
        )

        scheduler.start()

        clip = delivery.delivered[0]
        assert clip.parent == transitions_path
        assert clip.suffix == ".wav"

    def test_trailing_transition_looks_ahead_across_cycle(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        ad = create_ready_item(ready_root, Category.AD, "spot.mp3")
        selector = Mock()
        selector.pick_next.side_effect = lambda slot: ad if slot is Category.AD else song
        scheduler = make_scheduler(
            selector, FakeDelivery(), [Category.AD, Category.TRANSITION],
            synthesizer=FakeSynthesizer(),
            stop_category=Category.AD,
        )

        assert scheduler._next_content_slot(1) is Category.AD

    def test_empty_transition_text_skips_clip(self, ready_root, planner, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song
        planner.plan.return_value = ""
        synthesizer = FakeSynthesizer()
        delivery = FakeDelivery(on_deliver=lambda path: scheduler.request_stop())
        scheduler = make_scheduler(
            selector, delivery, [Category.TRANSITION, Category.MUSIC], synthesizer=synthesizer
        )

        scheduler.start()

        assert synthesizer.texts == []
        assert delivery.delivered == [song.path]

    def test_transition_without_synthesizer_is_skipped(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song
        delivery = FakeDelivery(on_deliver=lambda path: scheduler.request_stop())
        scheduler = make_scheduler(selector, delivery, [Category.TRANSITION, Category.MUSIC])

        scheduler.start()

        assert delivery.delivered == [song.path]

    def test_synthesis_failure_skips_transition_only(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song
        synthesizer = Mock()
        synthesizer.synthesize.side_effect = SynthesisError("quota exceeded")
        delivery = FakeDelivery(on_deliver=lambda path: scheduler.request_stop())
        scheduler = make_scheduler(
            selector, delivery, [Category.TRANSITION, Category.MUSIC], synthesizer=synthesizer
        )

        scheduler.start()

        assert delivery.delivered == [song.path]

    def test_missing_item_skips_slot(self, ready_root, make_scheduler):
        def pick_next(slot):
            if slot is Category.AD:
                scheduler.request_stop()
                return None
            return song

        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.side_effect = pick_next
        delivery = FakeDelivery()
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC, Category.AD])

        scheduler.start()

        assert delivery.delivered == [song.path]

    def test_delivery_failure_records_no_history(self, ready_root, history, make_scheduler):
        bad = create_ready_item(ready_root, Category.MUSIC, "bad.mp3")
        good = create_ready_item(ready_root, Category.MUSIC, "good.mp3")
        selector = Mock()
        selector.pick_next.side_effect = [bad, good]
        delivery = FakeDelivery(
            on_deliver=lambda path: path == good.path and scheduler.request_stop(),
            fail_paths=[bad.path],
        )
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC])

        scheduler.start()

        assert delivery.delivered == [bad.path, good.path]
        assert [e.rel_path for e in history.recent(5)] == ["music/good.mp3"]

    def test_unexpected_slot_error_does_not_end_run(self, ready_root, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.side_effect = [RuntimeError("disk on fire"), song]
        delivery = FakeDelivery(on_deliver=lambda path: scheduler.request_stop())
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC])

        scheduler.start()

        assert delivery.delivered == [song.path]

    def test_pipeline_fatal_error_ends_run(self, ready_root, history, make_scheduler):
        song = create_ready_item(ready_root, Category.MUSIC, "song.mp3")
        selector = Mock()
        selector.pick_next.return_value = song

        def die(path):
            raise PipelineFatalError("relay exited")

        delivery = FakeDelivery(on_deliver=die)
        scheduler = make_scheduler(selector, delivery, [Category.MUSIC])

        with pytest.raises(PipelineFatalError):
            scheduler.start()

        assert scheduler.state is SchedulerState.STOPPED
        assert delivery.stopped == 1
        assert history.recent(5) == []


class TestReferencePrevious:
    """Choosing the previous item a transition refers to."""

    def test_skips_zero_weight_categories(self, history, make_scheduler):
        history.append("music/a.mp3", "music", TrackMetadata(title="A"))
        history.append("ad/spot.mp3", "ad", TrackMetadata(title="Spot"))
        scheduler = make_scheduler(Mock(), FakeDelivery(), [Category.MUSIC])

        assert scheduler.reference_previous().rel_path == "music/a.mp3"

    def test_none_when_only_placeholder(self, make_scheduler):
        scheduler = make_scheduler(Mock(), FakeDelivery(), [Category.MUSIC])

        assert scheduler.reference_previous() is None

    def test_skips_unknown_categories(self, history, make_scheduler, monkeypatch):
        from radio_station.config import config
        monkeypatch.setattr(config.schedule, "reference_weights", {"music": 1.0, "jingle": 1.0})
        history.append("music/a.mp3", "music", TrackMetadata(title="A"))
        history.append("jingle/x.mp3", "jingle", TrackMetadata(title="X"))
        scheduler = make_scheduler(Mock(), FakeDelivery(), [Category.MUSIC])

        assert scheduler.reference_previous().rel_path == "music/a.mp3"


def test_pattern_without_content_is_rejected(make_scheduler):
    with pytest.raises(ValueError):
        make_scheduler(Mock(), FakeDelivery(), [Category.TRANSITION])


def test_track_mode_rejects_unreachable_stop_category(make_scheduler):
    with pytest.raises(ValueError):
        make_scheduler(
            Mock(), FakeDelivery(), [Category.AD, Category.TRANSITION],
            uptime_mode="track", stop_category=Category.MUSIC,
        )


def test_cycle_mode_accepts_stop_category_outside_pattern(make_scheduler):
    scheduler = make_scheduler(
        Mock(), FakeDelivery(), [Category.AD], uptime_mode="cycle", stop_category=Category.MUSIC
    )

    assert not scheduler.plays(Category.MUSIC)
    assert not scheduler.plays(Category.TRANSITION)
    assert scheduler.plays(Category.AD)


def test_start_logs_delivery_mode(make_scheduler, caplog):
    delivery = FakeDelivery()
    scheduler = make_scheduler(Mock(), delivery, [Category.MUSIC])
    scheduler.request_stop()

    with caplog.at_level("INFO", logger="radio_station.scheduler"):
        scheduler.start()

    assert f"Delivery: {delivery.mode}" in caplog.text


def test_cleanup_transitions(transitions_path):
    transitions_path.mkdir(parents=True)
    (transitions_path / "segway_music_to_music_1.mp3").write_bytes(b"x")
    (transitions_path / "segway_start_to_ad_2.mp3").write_bytes(b"x")
    (transitions_path / "keep.txt").write_text("keep")

    assert cleanup_transitions(transitions_path) == 2
    assert [p.name for p in transitions_path.iterdir()] == ["keep.txt"]


def test_cleanup_transitions_missing_directory(tmp_path):
    assert cleanup_transitions(tmp_path / "nope") == 0


def test_lookahead_consumed_once():
    run = RunState(start_time=0.0, lookahead_slot=Category.MUSIC, lookahead_item="item")

    assert run.take_lookahead(Category.AD) is None
    assert run.take_lookahead(Category.MUSIC) == "item"
    assert run.take_lookahead(Category.MUSIC) is None
