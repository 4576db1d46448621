"""
Abstract base class for LLM providers.

Reply generation sits outside the memory engine; it only ever sees the
assembled context, never the stores.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class LLMResponse:
    """Standardized response from LLM providers."""
    content: str
    model: str
    usage: dict[str, int] | None = None
    raw_response: Any = None

    @property
    def token_count(self) -> int:
        """Return total tokens used if available."""
        if self.usage:
            return self.usage.get("total_tokens", 0)
        return 0


class LLMProvider(ABC):
    """Implement this interface to add support for new LLM services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user message.
            system_prompt: Optional system prompt (persona plus memory context).
            temperature: Creativity setting (0.0-1.0).
            max_tokens: Maximum tokens in response.
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider is properly configured with API keys."""
        pass
