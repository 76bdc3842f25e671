"""Playback scheduler: the station's main loop.

Walks the configured category pattern forever (or until the uptime
budget or a stop request ends the run). Transition slots look one item
ahead, plan a spoken segway and play it; content slots play the
looked-ahead item or pick a fresh one, then record the play.

Nothing that goes wrong inside a slot ends the run, except the live
broadcast pipeline dying.
"""

import logging
import queue
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .categories import Category, is_transition
from .config import config
from .delivery import DeliveryPipeline
from .errors import DeliveryError, PipelineFatalError, SynthesisError
from .play_history import PlayEntry, PlayHistory
from .track_selection import TrackSelector
from .transitions import TransitionContext, TransitionPlanner
from .voice_synth import SpeechSynthesizer, render_to_file

logger = logging.getLogger(__name__)

TRANSITION_PREFIX = "segway_"


class SchedulerState(Enum):
    RUNNING = "running"
    STOPPING_AFTER_CYCLE = "stopping_after_cycle"
    STOPPING_AFTER_CATEGORY = "stopping_after_category"
    STOPPED = "stopped"


@dataclass
class StopRequest:
    """Message sent to a running scheduler."""

    immediate: bool
    category: Optional[Category] = None


@dataclass
class RunState:
    """Mutable state for one run, owned by the scheduler."""

    start_time: float
    stop_requested: bool = False
    stop_after_category: Optional[Category] = None
    stop_after_cycle: bool = False
    lookahead_slot: Optional[Category] = None
    lookahead_item: Optional[object] = None

    def take_lookahead(self, slot: Category):
        """Consume the cached item if it was picked for ``slot``."""
        if self.lookahead_item is None or self.lookahead_slot != slot:
            return None
        item = self.lookahead_item
        self.lookahead_item = None
        self.lookahead_slot = None
        return item


def cleanup_transitions(transitions_path: Path) -> int:
    """Delete transition clips left over from a previous run."""
    if not transitions_path.exists():
        return 0

    removed = 0
    for path in transitions_path.glob(f"{TRANSITION_PREFIX}*"):
        try:
            path.unlink()
            removed += 1
        except OSError as e:
            logger.error(f"Error deleting transition file {path}: {e}")
    if removed:
        logger.info(f"Cleaned up {removed} transition files from {transitions_path}")
    return removed


class PlaybackScheduler:
    """Sequences clips and transitions into the delivery pipeline."""

    def __init__(
        self,
        history: PlayHistory,
        selector: TrackSelector,
        planner: TransitionPlanner,
        delivery: DeliveryPipeline,
        synthesizer: Optional[SpeechSynthesizer] = None,
        pattern: Optional[list[Category]] = None,
        uptime_seconds: Optional[float] = None,
        uptime_mode: Optional[str] = None,
        stop_category: Optional[Category] = None,
        transitions_path: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.history = history
        self.selector = selector
        self.planner = planner
        self.delivery = delivery
        self.synthesizer = synthesizer

        schedule = config.schedule
        self.pattern = [Category(c) for c in (pattern or schedule.pattern)]
        if all(is_transition(c) for c in self.pattern):
            raise ValueError("pattern must contain at least one content slot")
        self.uptime_seconds = schedule.uptime_seconds if uptime_seconds is None else uptime_seconds
        self.uptime_mode = uptime_mode or schedule.uptime_mode
        self.stop_category = Category(stop_category or schedule.stop_after_category)
        if self.uptime_mode == "track" and not self.plays(self.stop_category):
            raise ValueError(
                f"stop category '{self.stop_category}' is not a content slot in the pattern"
            )
        self.history_size = schedule.history_size
        self.transitions_path = transitions_path or config.paths.transitions_path
        self.clip_format = config.tts.tts_format
        self.clock = clock

        self.state = SchedulerState.STOPPED
        self._requests: "queue.SimpleQueue[StopRequest]" = queue.SimpleQueue()
        self._shutdown_done = False

    # ------------------------------------------------------------------
    # Signals (safe from other threads and signal handlers)
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Stop after the in-flight delivery finishes."""
        self._requests.put(StopRequest(immediate=True))

    def request_stop_after(self, category: Optional[Category] = None) -> None:
        """Keep playing until ``category`` (default: configured) next plays."""
        self._requests.put(StopRequest(immediate=False, category=category))

    def _drain_requests(self, run: RunState) -> None:
        while True:
            try:
                request = self._requests.get_nowait()
            except queue.Empty:
                return
            if request.immediate:
                logger.info("Immediate stop requested")
                run.stop_requested = True
            else:
                category = Category(request.category or self.stop_category)
                if self.plays(category):
                    logger.info(f"Stop requested after next '{category}'")
                    self._stop_after(run, category)
                else:
                    logger.warning(
                        f"'{category}' is not in the pattern; stopping at end of cycle"
                    )
                    run.stop_after_cycle = True
                    if self.state is SchedulerState.RUNNING:
                        self.state = SchedulerState.STOPPING_AFTER_CYCLE

    def _stop_after(self, run: RunState, category: Category) -> None:
        run.stop_after_category = category
        if self.state is SchedulerState.RUNNING:
            self.state = SchedulerState.STOPPING_AFTER_CATEGORY

    def plays(self, category: Category) -> bool:
        """True if ``category`` is a content slot of the pattern."""
        return not is_transition(category) and category in self.pattern

    def _uptime_exceeded(self, run: RunState) -> bool:
        if self.uptime_seconds is None:
            return False
        return self.clock() - run.start_time >= self.uptime_seconds

    def _should_stop(self, run: RunState) -> bool:
        """Poll point: apply pending requests and the track-mode budget."""
        self._drain_requests(run)
        if (
            self.uptime_mode == "track"
            and run.stop_after_category is None
            and self._uptime_exceeded(run)
        ):
            logger.info(
                f"Uptime budget reached; will stop after next '{self.stop_category}'"
            )
            self._stop_after(run, self.stop_category)
        return run.stop_requested

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Run the station until it reaches the Stopped state.

        Raises:
            PipelineFatalError: If the live broadcast pipeline dies
        """
        run = RunState(start_time=self.clock())
        self.state = SchedulerState.RUNNING
        self._shutdown_done = False
        cleanup_transitions(self.transitions_path)

        logger.info(f"Starting playback with pattern: {', '.join(c.value for c in self.pattern)}")
        hours = f"{self.uptime_seconds / 3600:g}h" if self.uptime_seconds is not None else "unlimited"
        logger.info(f"Uptime: {hours}, mode: {self.uptime_mode}")
        logger.info(f"Delivery: {self.delivery.mode}")

        try:
            with self.delivery:
                self._loop(run)
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Playback stopped")

    def shutdown(self) -> None:
        """Stop all tracked processes and close pipes. Idempotent."""
        self._requests.put(StopRequest(immediate=True))
        if self._shutdown_done:
            return
        self._shutdown_done = True
        self.delivery.stop()

    def _loop(self, run: RunState) -> None:
        while not self._should_stop(run):
            if run.stop_after_cycle:
                logger.info("Cycle complete; stopping")
                return
            if self.uptime_mode == "cycle" and self._uptime_exceeded(run):
                logger.info("Uptime budget reached; ending at cycle boundary")
                self.state = SchedulerState.STOPPING_AFTER_CYCLE
                return

            logger.info(f"Starting new cycle at {datetime.now().strftime('%H:%M:%S')}")

            for index, slot in enumerate(self.pattern):
                if self._should_stop(run):
                    return
                try:
                    if is_transition(slot):
                        self._play_transition(run, index)
                    else:
                        self._play_content(run, slot)
                except PipelineFatalError:
                    raise
                except Exception as e:
                    logger.exception(f"Unexpected error in '{slot}' slot: {e}")

                if run.stop_requested:
                    return

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def _next_content_slot(self, index: int) -> Category:
        """Category of the next non-transition slot after ``index`` (wrapping)."""
        size = len(self.pattern)
        for offset in range(1, size + 1):
            slot = self.pattern[(index + offset) % size]
            if not is_transition(slot):
                return slot
        raise ValueError("pattern has no content slots")

    def reference_previous(self) -> Optional[PlayEntry]:
        """Most recent play in a category with positive reference weight."""
        for entry in reversed(self.history.recent(self.history_size)):
            if entry.is_placeholder:
                continue
            if config.schedule.weight_for(entry.category) <= 0:
                continue
            try:
                Category(entry.category)
            except ValueError:
                continue
            return entry
        return None

    def _play_transition(self, run: RunState, index: int) -> None:
        next_slot = self._next_content_slot(index)
        if run.lookahead_item is None:
            run.lookahead_item = self.selector.pick_next(next_slot)
            run.lookahead_slot = next_slot if run.lookahead_item is not None else None

        if run.lookahead_item is None:
            logger.warning(f"No upcoming '{next_slot}' item; skipping transition")
            return

        context = TransitionContext(previous=self.reference_previous(), next=run.lookahead_item)
        text = self.planner.plan(context.previous, context.next)
        if not text.strip():
            logger.info(f"No transition for {context.key}; skipping")
            return

        if self.synthesizer is None:
            logger.warning("No speech synthesizer configured; skipping transition")
            return

        stamp = int(time.time() * 1000)
        clip = self.transitions_path / f"{TRANSITION_PREFIX}{context.key}_{stamp}.{self.clip_format}"
        try:
            render_to_file(self.synthesizer, text, clip)
            logger.info(f"Playing transition {context.key}: {text}")
            self.delivery.deliver(clip)
        except PipelineFatalError:
            raise
        except (SynthesisError, DeliveryError) as e:
            logger.error(f"Transition {context.key} failed: {e}")
        finally:
            try:
                clip.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to delete transition file {clip}: {e}")

    def _play_content(self, run: RunState, slot: Category) -> None:
        item = run.take_lookahead(slot)
        if item is None:
            item = self.selector.pick_next(slot)
        if item is None:
            logger.warning(f"No track for '{slot}'; skipping")
            return

        try:
            logger.info(f"Playing {slot}: {item.title} ({item.rel_path})")
            self.delivery.deliver(item.path)
        except PipelineFatalError:
            raise
        except DeliveryError as e:
            logger.error(f"Error playing {slot} {item.rel_path}: {e}")
        else:
            self.history.append(item.rel_path, item.category, item.metadata)

        if run.stop_after_category is not None and slot == run.stop_after_category:
            logger.info(f"Stopping after this '{slot}'")
            run.stop_requested = True


def build_scheduler(mode: Optional[str] = None) -> PlaybackScheduler:
    """Wire the scheduler from configuration.

    Missing API keys disable the corresponding collaborator: generated
    transitions fall back to templates and transitions are not voiced.
    """
    from .delivery import create_delivery
    from .script_writer import AnthropicTextGenerator
    from .voice_synth import OpenAIVoiceSynthesizer

    history = PlayHistory()

    try:
        generator = AnthropicTextGenerator()
    except ValueError as e:
        logger.warning(f"Transition generation disabled: {e}")
        generator = None

    try:
        synthesizer = OpenAIVoiceSynthesizer()
    except ValueError as e:
        logger.warning(f"Transition voicing disabled: {e}")
        synthesizer = None

    return PlaybackScheduler(
        history=history,
        selector=TrackSelector(history),
        planner=TransitionPlanner(generator),
        delivery=create_delivery(mode),
        synthesizer=synthesizer,
    )
