"""Filesystem paths configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PathsConfig(BaseSettings):
    """Filesystem paths for the station core.

    Content producers deposit finished clips under ``ready/<category>``;
    the core only reads from there.

    Environment variables:
        RADIO_BASE_PATH: Base directory (default: /srv/ai_radio)
        RADIO_FIFO_PATH: Named pipe between relay and encoder
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_path: Path = Field(default=Path("/srv/ai_radio"))
    fifo_path: Path = Field(
        default=Path("/tmp/audio_buffer.fifo"),
        description="Named pipe read by the broadcast encoder"
    )

    @property
    def ready_path(self) -> Path:
        return self.base_path / "ready"

    @property
    def transitions_path(self) -> Path:
        return self.ready_path / "segway"

    @property
    def images_path(self) -> Path:
        return self.ready_path / "image"

    @property
    def state_path(self) -> Path:
        return self.base_path / "state"

    @property
    def history_log_path(self) -> Path:
        return self.state_path / "play.log"
