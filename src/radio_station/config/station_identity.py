"""Station identity configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StationIdentityConfig(BaseSettings):
    """Station identity used in on-air copy.

    Environment variables:
        RADIO_STATION_NAME: Station name for on-air identification
        RADIO_DJ_NAME: On-air DJ persona
        RADIO_STATION_CONTEXT: Setting the station broadcasts from
        RADIO_STATION_VIBE: Short description of the station's mood
    """

    model_config = SettingsConfigDict(
        env_prefix="RADIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    station_name: str = Field(default="WKRP Coconut Island", description="Station name for on-air identification")
    dj_name: str = Field(default="DJ Coco", description="On-air DJ persona")
    station_context: str = Field(
        default="An independent station broadcasting around the clock",
        description="Setting the station broadcasts from"
    )
    station_vibe: str = Field(
        default="laid-back, friendly, warm",
        description="Short description of the station's mood"
    )
