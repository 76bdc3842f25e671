"""Text-to-speech (TTS) configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TTSConfig(BaseSettings):
    """Text-to-speech settings for rendering transitions.

    Note: API keys are in APIKeysConfig.

    Environment variables:
        RADIO_TTS_MODEL: OpenAI TTS model
        RADIO_TTS_VOICE: OpenAI TTS voice name
        RADIO_TTS_FORMAT: Rendered audio format
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    tts_model: str = Field(default="tts-1", description="OpenAI TTS model")
    tts_voice: str = Field(default="alloy", description="OpenAI TTS voice")
    tts_format: str = Field(default="mp3", description="Rendered audio format")
