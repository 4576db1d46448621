"""
LLM providers used to phrase replies and, optionally, extract entities.
"""

from .base import LLMProvider, LLMResponse
from .factory import create_llm_provider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "create_llm_provider",
]
