"""Playback core for an unattended radio station."""

__version__ = "0.1.0"
