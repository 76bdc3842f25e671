"""Playback schedule configuration."""

import logging
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..categories import Category, is_transition

logger = logging.getLogger(__name__)


class ScheduleConfig(BaseSettings):
    """Slot pattern, runtime budget and selection history settings.

    Environment variables (lists and dicts as JSON):
        RADIO_PATTERN: Looping category pattern, e.g. '["music","segway","dj"]'
        RADIO_UPTIME_HOURS: Total runtime budget (unset = run indefinitely)
        RADIO_UPTIME_MODE: 'cycle' (stop at cycle boundary) or 'track'
        RADIO_STOP_AFTER_CATEGORY: Category that ends a graceful stop
        RADIO_HISTORY_SIZE: Recency window used by track selection
        RADIO_CACHE_LIMIT: In-memory play history capacity
        RADIO_REFERENCE_WEIGHTS: Category weights for transition references
        RADIO_INCLUDE_PODCASTS: Let DJ slots draw podcast files too
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    pattern: list[Category] = Field(
        default=[
            Category.INTRO,
            Category.MUSIC,
            Category.TRANSITION,
            Category.MUSIC,
            Category.TRANSITION,
            Category.AD,
            Category.TRANSITION,
            Category.MUSIC,
            Category.TRANSITION,
            Category.DJ,
            Category.TRANSITION,
        ],
        description="Looping category pattern"
    )
    uptime_hours: Optional[float] = Field(default=None, ge=0.0, description="Runtime budget in hours")
    uptime_mode: Literal["cycle", "track"] = Field(default="cycle")
    stop_after_category: Category = Field(default=Category.MUSIC)

    history_size: int = Field(default=16, ge=1, description="Recency window for de-duplication")
    cache_limit: int = Field(default=128, ge=1, description="In-memory play history capacity")

    reference_weights: dict[str, float] = Field(
        default={"music": 1.0},
        description="Weight per category when choosing a transition's reference track"
    )
    include_podcasts: bool = Field(default=False)
    audio_extensions: list[str] = Field(default=[".mp3", ".wav"])

    @field_validator("reference_weights", mode="before")
    @classmethod
    def clamp_weights(cls, v):
        """Drop unknown categories and clamp weights into [0, 1]."""
        if not isinstance(v, dict):
            raise ValueError("reference_weights must be a mapping of category to weight")

        known = {c.value for c in Category}
        cleaned = {}
        for name, weight in v.items():
            name = str(name).lower()
            if name not in known:
                logger.warning(f"Ignoring reference weight for unknown category: {name}")
                continue
            try:
                weight = float(weight)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric reference weight for {name}: {weight!r}")
                continue
            cleaned[name] = min(max(weight, 0.0), 1.0)
        return cleaned

    @field_validator("audio_extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]

    @model_validator(mode="after")
    def require_content_slot(self):
        if not any(not is_transition(c) for c in self.pattern):
            raise ValueError("pattern must contain at least one content slot")
        return self

    @model_validator(mode="after")
    def require_reachable_stop_category(self):
        """Track mode can only end on a category the pattern actually plays."""
        if self.uptime_mode == "track" and not self.plays(self.stop_after_category):
            raise ValueError(
                f"stop_after_category '{self.stop_after_category.value}' is not a content slot "
                "in the pattern; track mode would never stop"
            )
        return self

    def plays(self, category: Category) -> bool:
        """True if ``category`` is a content slot of the pattern."""
        return not is_transition(category) and category in self.pattern

    def weight_for(self, category: str) -> float:
        return self.reference_weights.get(str(category), 0.0)

    @property
    def uptime_seconds(self) -> Optional[float]:
        if self.uptime_hours is None:
            return None
        return self.uptime_hours * 3600
