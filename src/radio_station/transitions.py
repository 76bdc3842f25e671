"""Spoken transition planning between scheduled items.

Rules are checked in a fixed order and the first match wins:

1. Start of run: short "up next" announcement.
2. Into an ad: canned sponsor line.
3. Out of an ad: canned "back to programming" line.
4. Either side is an intro/station ID: no transition at all.
5. DJ talk into music: canned "here's the next track" line.
6. Music into music: generated by the text collaborator.
7. Either side is a podcast: canned feature intro/outro.
8. Anything else: generated, generic framing.

Generation failures fall back to a templated sentence; planning never
raises.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional, Protocol

from .audio import TrackMetadata
from .categories import Category, TransitionRole, role_of
from .config import config
from .errors import TransitionGenerationError
from .script_writer import TextGenerator

logger = logging.getLogger(__name__)

AD_INTROS = [
    "And now a word from our sponsors.",
    "We'll be right back after these messages.",
    "Let's take a quick break to hear from our partners.",
    "Stay tuned for more after this brief message.",
    "A moment of your time for our sponsors, please.",
]

AD_OUTROS = [
    "And we're back with more great music on {station}.",
    "Thanks for your patience. Now back to the hits.",
    "And now, back to our regularly scheduled programming.",
    "Let's get back to what you came for - more great tunes.",
    "That's enough talk. Back to the music!",
]

TALK_TO_MUSIC = [
    "Here's {next}.",
    "Let's kick things up with {next}.",
    "Time for some music. This is {next}.",
    "You're listening to {station}, and this is {next}.",
    "Let's get back to the music with {next}.",
]

FEATURE_OUTROS = [
    "Hope you enjoyed that feature. Now, let's get back to more great content.",
    "That was an interesting discussion. Let's continue with our programming.",
    "Thanks for tuning in to that special segment.",
    "That's all for today's feature. Let's move on.",
    "And that concludes our special program. Now, back to more music.",
]

FEATURE_INTROS = [
    "And now, a special feature from our studios.",
    "Coming up next, we have a fascinating segment for you.",
    "It's time for our special program.",
    "Let's take a few minutes for something different.",
    "And now for something a little different.",
]


class Playable(Protocol):
    """Both PlayEntry and ReadyItem satisfy this."""

    category: Category
    metadata: TrackMetadata


@dataclass(frozen=True)
class TransitionContext:
    """The two items a transition sits between.

    ``previous`` is None at the start of a run.
    """

    previous: Optional[Playable]
    next: Playable

    @property
    def key(self) -> str:
        prev = self.previous.category if self.previous is not None else "start"
        return f"{prev}_to_{self.next.category}"


def _role(category) -> Optional[TransitionRole]:
    try:
        return role_of(category)
    except ValueError:
        logger.warning(f"Unknown category '{category}' in transition planning")
        return None


def _describe(label: str, meta: TrackMetadata) -> str:
    lines = [f"{label}:", f'- Title: "{meta.title}"']
    if meta.artist:
        lines.append(f"- Artist: {meta.artist}")
    if meta.album:
        lines.append(f"- Album: {meta.album}")
    if meta.genre:
        lines.append(f"- Genre: {meta.genre}")
    if meta.comment:
        lines.append(f"- Note: {meta.comment}")
    return "\n".join(lines)


class TransitionPlanner:
    """Decides what (if anything) the DJ says between two items."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        rng: Optional[random.Random] = None,
        funny_rate: Optional[float] = None,
    ):
        self.generator = generator
        self.rng = rng or random.Random()
        self.funny_rate = config.transitions.funny_rate if funny_rate is None else funny_rate
        self.station_name = config.station.station_name
        self.dj_name = config.station.dj_name

    def plan(self, previous: Optional[Playable], next_item: Playable) -> str:
        """Return the transition text, or "" for no transition."""
        nxt = next_item.metadata
        next_role = _role(next_item.category)
        prev_role = _role(previous.category) if previous is not None else None

        if prev_role is None or not previous.metadata.title:
            artist = f" by {nxt.artist}" if nxt.artist else ""
            return f"Up next, {nxt.title}{artist}."

        if next_role is TransitionRole.ADVERT:
            return self.rng.choice(AD_INTROS)

        if prev_role is TransitionRole.ADVERT:
            return self.rng.choice(AD_OUTROS).format(station=self.station_name)

        if TransitionRole.IDENT in (prev_role, next_role):
            return ""

        if prev_role is TransitionRole.TALK and next_role is TransitionRole.MUSIC:
            return self.rng.choice(TALK_TO_MUSIC).format(
                next=nxt.title, station=self.station_name
            )

        if prev_role is TransitionRole.MUSIC and next_role is TransitionRole.MUSIC:
            return self._generate(previous, next_item, music_to_music=True)

        if prev_role is TransitionRole.FEATURE:
            return self.rng.choice(FEATURE_OUTROS)
        if next_role is TransitionRole.FEATURE:
            return self.rng.choice(FEATURE_INTROS)

        return self._generate(previous, next_item, music_to_music=False)

    def _system_prompt(self) -> str:
        return (
            f"{config.station.station_context}. The station, '{self.station_name}', "
            f'has the vibe of "{config.station.station_vibe}". DJ Name: \'{self.dj_name}\'.'
        )

    def _user_prompt(self, previous: Playable, next_item: Playable, music_to_music: bool) -> str:
        style = config.transitions.segway_prompt
        if self.rng.random() < self.funny_rate:
            style = f"{style}\n\n{config.transitions.segway_funny_prompt}"

        if music_to_music:
            labels = ("Previous song", "Next song")
            task = (
                "Create a short, natural DJ-style transition from the previous track to the next.\n"
                "Mention the names of both songs and artists."
            )
        else:
            labels = (f"Previous {previous.category}", f"Next {next_item.category}")
            task = (
                "Create a short, natural DJ-style transition from what just played "
                "to what comes next."
            )

        return "\n\n".join([
            f"You are {self.dj_name}, the on-air host of {self.station_name}.",
            _describe(labels[0], previous.metadata),
            _describe(labels[1], next_item.metadata),
            task,
            "Only use the extra details (album, genre, notes) if they make the "
            "transition smoother or funnier.",
            style,
            "Respond only with the DJ's spoken words. Limit to 1-2 sentences.",
        ])

    def _fallback(self, previous: Playable) -> str:
        title = previous.metadata.title or "our last track"
        return f"And that was {title}. Coming up next on {self.station_name}!"

    def _generate(self, previous: Playable, next_item: Playable, music_to_music: bool) -> str:
        if self.generator is None:
            logger.warning("No text generator configured; using fallback transition")
            return self._fallback(previous)

        logger.info(
            f"Generating transition: {previous.metadata.title} -> {next_item.metadata.title}"
        )
        try:
            return self.generator.generate(
                self._system_prompt(),
                self._user_prompt(previous, next_item, music_to_music),
            )
        except TransitionGenerationError as e:
            logger.error(f"Transition generation failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected transition generation error: {e}")
        return self._fallback(previous)
