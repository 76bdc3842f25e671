"""Exception hierarchy for the station core."""

from pathlib import Path
from typing import Optional


class StationError(Exception):
    """Base class for station core errors."""


class DeliveryError(StationError):
    """A clip could not be delivered to the output."""

    def __init__(self, message: str, path: Optional[Path] = None, returncode: Optional[int] = None):
        self.path = path
        self.returncode = returncode
        super().__init__(message)


class PipelineFatalError(DeliveryError):
    """The live relay or broadcast encoder process is gone."""


class TransitionGenerationError(StationError):
    """The text-generation collaborator failed."""


class SynthesisError(StationError):
    """The speech-synthesis collaborator failed."""
