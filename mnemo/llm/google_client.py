"""
Google Generative AI (Gemini) LLM provider.
"""

import logging

import google.generativeai as genai

from .base import LLMProvider, LLMResponse

logger = logging.getLogger("mnemo.llm.google")


class GoogleProvider(LLMProvider):
    """Gemini via google-generativeai."""

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash"):
        self._api_key = api_key
        self._model = model
        self._configured = False

        if api_key:
            genai.configure(api_key=api_key)
            self._configured = True

    @property
    def provider_name(self) -> str:
        return "Google"

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return self._configured and bool(self._api_key)

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        logger.debug(f"Sending request to Google ({self._model})")

        model = genai.GenerativeModel(
            model_name=self._model,
            system_instruction=system_prompt or None,
            generation_config=genai.types.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )

        try:
            response = await model.generate_content_async(prompt)
        except Exception as e:
            logger.error(f"Google API error: {e}")
            raise

        usage = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata:
            usage = {
                "prompt_tokens": metadata.prompt_token_count,
                "completion_tokens": metadata.candidates_token_count,
                "total_tokens": metadata.total_token_count,
            }

        return LLMResponse(
            content=response.text or "",
            model=self._model,
            usage=usage,
            raw_response=response,
        )
