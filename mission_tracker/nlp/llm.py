"""Language model clients used by the extraction, coaching and summary services."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from anthropic import AsyncAnthropic

from ..config import Settings

logger = logging.getLogger(__name__)


class ModelUnavailableError(Exception):
    """Raised when no language model is configured."""


class LanguageModel(ABC):
    """Anything that can turn a conversation into a text completion."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether calls can succeed at all."""

    @abstractmethod
    async def complete(self, messages: list[dict], system: Optional[str] = None) -> str:
        """
        Complete a conversation.

        Args:
            messages: List of {"role", "content"} dicts, oldest first
            system: Optional system prompt

        Returns:
            Text of the model's reply

        Raises:
            ModelUnavailableError: If the model is not configured
        """


class AnthropicModel(LanguageModel):
    """Claude via the Anthropic messages API."""

    def __init__(self, api_key: str, model: str, max_tokens: int = 1024, timeout: float = 30.0):
        self.model = model
        self.max_tokens = max_tokens
        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    @property
    def available(self) -> bool:
        return True

    async def complete(self, messages: list[dict], system: Optional[str] = None) -> str:
        kwargs = {"model": self.model, "max_tokens": self.max_tokens, "messages": messages}
        if system:
            kwargs["system"] = system

        logger.debug(f"Calling {self.model} with {len(messages)} messages")
        response = await self._client.messages.create(**kwargs)
        return "".join(block.text for block in response.content if block.type == "text")


class UnconfiguredModel(LanguageModel):
    """Stand-in used when no API key is set; every call is refused."""

    @property
    def available(self) -> bool:
        return False

    async def complete(self, messages: list[dict], system: Optional[str] = None) -> str:
        raise ModelUnavailableError("Language model not configured")


def build_model(settings: Settings) -> LanguageModel:
    """Create the language model client described by settings."""
    if settings.anthropic_api_key:
        logger.info(f"Language model configured: {settings.llm_model}")
        return AnthropicModel(
            api_key=settings.anthropic_api_key,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout,
        )

    logger.warning("No API key set, AI features will use local fallbacks")
    return UnconfiguredModel()
