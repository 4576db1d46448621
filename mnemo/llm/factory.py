"""
LLM Provider Factory.
"""

import logging
from typing import Literal

from .base import LLMProvider

logger = logging.getLogger("mnemo.llm.factory")


def create_llm_provider(
    provider: Literal["openai", "google"],
    openai_api_key: str = "",
    openai_model: str = "gpt-4o-mini",
    google_api_key: str = "",
    google_model: str = "gemini-2.0-flash",
) -> LLMProvider:
    """
    Create an LLM provider based on the specified type.

    Raises:
        ValueError: If provider is not supported or not properly configured.
    """
    logger.info(f"Creating LLM provider: {provider}")

    if provider == "openai":
        if not openai_api_key:
            raise ValueError("OpenAI API key is required when using OpenAI provider")
        from .openai_client import OpenAIProvider
        return OpenAIProvider(api_key=openai_api_key, model=openai_model)

    elif provider == "google":
        if not google_api_key:
            raise ValueError("Google API key is required when using Google provider")
        from .google_client import GoogleProvider
        return GoogleProvider(api_key=google_api_key, model=google_model)

    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")
