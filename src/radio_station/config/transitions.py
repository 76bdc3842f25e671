"""Transition (segway) generation configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransitionConfig(BaseSettings):
    """Settings for spoken transitions between scheduled items.

    Environment variables:
        RADIO_LLM_MODEL: Claude model for generated transitions
        RADIO_TRANSITION_MAX_TOKENS: Token limit for one transition
        RADIO_SEGWAY_PROMPT: Style instruction appended to every request
        RADIO_SEGWAY_FUNNY_PROMPT: Extra instruction used at RADIO_FUNNY_RATE
        RADIO_FUNNY_RATE: Probability of adding the funny instruction
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    llm_model: str = Field(
        default="claude-3-5-sonnet-latest",
        description="Claude model for generated transitions"
    )
    transition_max_tokens: int = Field(default=150, ge=16)
    transition_temperature: float = Field(default=0.9, ge=0.0, le=1.0)
    segway_prompt: str = Field(default="Write a smooth segway.")
    segway_funny_prompt: str = Field(
        default="Slip in a light joke about one of the songs.",
    )
    funny_rate: float = Field(default=0.0, ge=0.0, le=1.0, description="Probability of a funny transition")
