"""Text-generation capability used by the quiz and explanation engines.

The engines depend only on the ``TextGenerator`` protocol. A concrete
generator is chosen once at startup by ``build_generator``; when no API key
is configured there is no generator at all and callers go straight to their
fallbacks.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from mathtutor.config.settings import GeneratorConfig, Settings

logger = logging.getLogger(__name__)

TUTOR_SYSTEM_PROMPT = """You are a helpful learning assistant for a dyslexia-friendly math app.

Remember that the students may have dyslexia, so use:
- Clear, simple language
- Short sentences
- Step-by-step explanations
- An encouraging tone
- Concrete examples over abstract concepts"""


class GenerationUnavailable(Exception):
    """The provider could not produce a response."""


@runtime_checkable
class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class AnthropicGenerator:
    """Single-shot prompt completion through the Anthropic Messages API."""

    def __init__(self, config: GeneratorConfig):
        self.config = config
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.get_api_key(),
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.config.get_model(),
                max_tokens=self.config.max_tokens,
                system=TUTOR_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise GenerationUnavailable(str(e)) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            raise GenerationUnavailable("empty response")
        return text


def build_generator(settings: Optional[Settings] = None) -> Optional[TextGenerator]:
    """Return the configured generator, or None when no provider is set up."""
    settings = settings or Settings.load()
    if not settings.generator.get_api_key():
        logger.info("No generation provider configured; quizzes use the fallback bank")
        return None
    return AnthropicGenerator(settings.generator)
