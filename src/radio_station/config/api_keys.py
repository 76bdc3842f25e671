"""API keys and secrets configuration."""

from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIKeysConfig(BaseSettings):
    """API keys for the text-generation and speech collaborators.

    All keys are optional (None by default) and use SecretStr to prevent
    accidental exposure in logs or error messages.

    Environment variables:
        RADIO_LLM_API_KEY: LLM provider API key (Claude)
        RADIO_TTS_API_KEY: TTS provider API key (OpenAI)
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    llm_api_key: Optional[SecretStr] = Field(default=None, description="LLM provider API key")
    tts_api_key: Optional[SecretStr] = Field(default=None, description="OpenAI TTS API key")

    def validate_production(self) -> None:
        """Raise ValueError if keys needed on air are missing."""
        missing = []
        if self.llm_api_key is None:
            missing.append("RADIO_LLM_API_KEY")
        if self.tts_api_key is None:
            missing.append("RADIO_TTS_API_KEY")
        if missing:
            raise ValueError(f"Missing required API keys: {', '.join(missing)}")
