"""Audio delivery and live broadcast configuration."""

from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamingConfig(BaseSettings):
    """Delivery mode and ffmpeg settings.

    Environment variables:
        RADIO_STREAM_MODE: 'local' (output device) or 'live' (RTMP broadcast)
        RADIO_FFMPEG_PATH: ffmpeg binary
        RADIO_LOCAL_OUTPUT_FORMAT: ffmpeg output format for local playback
        RADIO_LOCAL_OUTPUT_DEVICE: Output device for local playback
        RADIO_RTMP_URL: Broadcast ingest URL
        RADIO_STREAM_KEY: Broadcast stream key
        RADIO_SHUTDOWN_TIMEOUT: Seconds to wait before force-killing processes
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    stream_mode: Literal["local", "live"] = Field(default="local")
    ffmpeg_path: str = Field(default="ffmpeg")

    # PCM format shared by every stage
    sample_rate: int = Field(default=44100, gt=0)
    channels: int = Field(default=2, ge=1, le=2)

    local_output_format: str = Field(default="pulse")
    local_output_device: str = Field(default="default")

    rtmp_url: str = Field(default="rtmp://a.rtmp.youtube.com/live2")
    stream_key: Optional[SecretStr] = Field(default=None)
    video_size: str = Field(default="1280x720")
    video_bitrate: str = Field(default="2500k")
    audio_bitrate: str = Field(default="192k")

    shutdown_timeout: float = Field(default=3.0, gt=0.0)

    @property
    def broadcast_url(self) -> str:
        if self.stream_key is None:
            raise ValueError("RADIO_STREAM_KEY not configured")
        return f"{self.rtmp_url.rstrip('/')}/{self.stream_key.get_secret_value()}"
