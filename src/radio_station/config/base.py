"""Configuration composition root."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .paths import PathsConfig
from .api_keys import APIKeysConfig
from .station_identity import StationIdentityConfig
from .schedule import ScheduleConfig
from .transitions import TransitionConfig
from .tts import TTSConfig
from .streaming import StreamingConfig


class RadioConfig(BaseSettings):
    """Root configuration composing all domain configs."""

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # Allows RADIO_SCHEDULE__HISTORY_SIZE
        case_sensitive=False,
        extra="ignore",
    )

    # Domain compositions (using default_factory to avoid mutable default bug)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    api_keys: APIKeysConfig = Field(default_factory=APIKeysConfig)
    station: StationIdentityConfig = Field(default_factory=StationIdentityConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    transitions: TransitionConfig = Field(default_factory=TransitionConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)

    def validate_production_config(self) -> None:
        """Validate all domain production requirements.

        Raises:
            ValueError: If required production fields are missing
        """
        self.api_keys.validate_production()
        if self.streaming.stream_mode == "live":
            # Raises when the stream key is missing
            self.streaming.broadcast_url
