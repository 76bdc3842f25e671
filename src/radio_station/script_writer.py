"""Transition script generation using Claude.

Thin adapter over the Anthropic API used by the transition planner for
music-to-music and generic segways.
"""

import logging
from typing import Optional, Protocol

from anthropic import Anthropic, APIError

from .config import config
from .errors import TransitionGenerationError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into spoken copy."""

    def generate(self, system: str, prompt: str) -> str:
        ...


class AnthropicTextGenerator:
    """Claude-backed text generator."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Claude client with API key from config."""
        if api_key is None and config.api_keys.llm_api_key is not None:
            api_key = config.api_keys.llm_api_key.get_secret_value()
        if not api_key:
            raise ValueError("RADIO_LLM_API_KEY not configured")

        self.client = Anthropic(api_key=api_key)
        self.model = model or config.transitions.llm_model
        self.max_tokens = config.transitions.transition_max_tokens
        self.temperature = config.transitions.transition_temperature

    def generate(self, system: str, prompt: str) -> str:
        """Generate copy for one transition.

        Raises:
            TransitionGenerationError: On API failure or empty output
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise TransitionGenerationError(f"Claude request failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise TransitionGenerationError("Claude returned an empty transition")

        logger.debug(f"Generated transition text: {text}")
        return text
