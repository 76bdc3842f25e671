"""Text-to-speech voice synthesis using the OpenAI TTS API.

Renders transition copy into a playable clip before delivery.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from openai import OpenAI, APIError

from .config import config
from .errors import SynthesisError

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    """Anything that renders text to encoded audio bytes."""

    def synthesize(self, text: str, voice: Optional[str] = None) -> bytes:
        ...


class OpenAIVoiceSynthesizer:
    """OpenAI TTS voice synthesizer."""

    def __init__(self, api_key: Optional[str] = None):
        """Initialize OpenAI TTS client with API key from config."""
        if api_key is None and config.api_keys.tts_api_key is not None:
            api_key = config.api_keys.tts_api_key.get_secret_value()
        if not api_key:
            raise ValueError("RADIO_TTS_API_KEY not configured")

        self.api_key = api_key
        self.client = OpenAI(api_key=api_key)
        self.model = config.tts.tts_model
        self.voice = config.tts.tts_voice
        self.format = config.tts.tts_format

    def synthesize(self, text: str, voice: Optional[str] = None) -> bytes:
        """Synthesize speech from text.

        Args:
            text: Copy to speak
            voice: Voice name (default: configured voice)

        Returns:
            Encoded audio bytes

        Raises:
            SynthesisError: If the text is empty or the API call fails
        """
        if not text or not text.strip():
            raise SynthesisError("Cannot synthesize empty text")

        voice = voice or self.voice
        logger.info(f"Synthesizing speech with voice '{voice}'")

        try:
            response = self.client.audio.speech.create(
                model=self.model,
                voice=voice,
                input=text,
                response_format=self.format,
            )
        except APIError as e:
            raise SynthesisError(f"OpenAI TTS API error: {e}") from e

        audio = response.content
        if not audio:
            raise SynthesisError("OpenAI TTS returned no audio")
        return audio


def render_to_file(
    synthesizer: SpeechSynthesizer,
    text: str,
    output_path: Path,
    voice: Optional[str] = None,
) -> Path:
    """Synthesize ``text`` and write the clip to ``output_path``.

    Raises:
        SynthesisError: If synthesis or the write fails
    """
    audio = synthesizer.synthesize(text, voice)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(audio)
    except OSError as e:
        raise SynthesisError(f"Failed to write {output_path}: {e}") from e

    word_count = len(text.split())
    logger.info(
        f"Voice synthesis complete: {output_path} "
        f"(~{word_count / 150 * 60:.1f}s, {word_count} words)"
    )
    return output_path
