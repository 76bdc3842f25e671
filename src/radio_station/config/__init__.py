"""Configuration package for the station core.

Usage:
    from radio_station.config import config, RadioConfig

    config.paths.ready_path
    config.schedule.pattern
    config.streaming.stream_mode
"""

from .base import RadioConfig
from .paths import PathsConfig
from .api_keys import APIKeysConfig
from .station_identity import StationIdentityConfig
from .schedule import ScheduleConfig
from .transitions import TransitionConfig
from .tts import TTSConfig
from .streaming import StreamingConfig

# Global singleton
config = RadioConfig()

__all__ = [
    "config",
    "RadioConfig",
    "PathsConfig",
    "APIKeysConfig",
    "StationIdentityConfig",
    "ScheduleConfig",
    "TransitionConfig",
    "TTSConfig",
    "StreamingConfig",
]
