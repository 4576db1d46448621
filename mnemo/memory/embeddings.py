"""
Embedding providers for generating vector representations.

Uses OpenAI's embedding models by default, with Google's text-embedding
models and local sentence-transformers models as alternatives.

Providers raise whatever their SDK raises; the memory services map those
failures to EmbeddingUnavailable.
"""

import logging
from abc import ABC, abstractmethod
from typing import Literal

logger = logging.getLogger("mnemo.memory.embeddings")


class EmbeddingProvider(ABC):
    """Abstract interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        pass

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Same as embed() unless the model is asymmetric."""
        return await self.embed(text)

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider using text-embedding-3 models.

    Supports native dimension reduction via the dimensions parameter,
    which keeps text-embedding-3-large usable with pgvector's 2000 dim limit.
    """

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key
            model: Model name (text-embedding-3-small or text-embedding-3-large)
            dimensions: Override output dimensions. If None, uses model's default.
        """
        self.api_key = api_key
        self.model = model
        self._client = None

        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model, 1536)
        if dimensions is not None and dimensions > default_dim:
            logger.warning(
                f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                f"Using {default_dim}."
            )
            dimensions = None
        self._requested_dimensions = dimensions
        self._dimension = dimensions or default_dim

        logger.info(
            f"OpenAIEmbeddingProvider initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _request_kwargs(self, payload) -> dict:
        kwargs = {"model": self.model, "input": payload}
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions
        return kwargs

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        client = self._get_client()
        response = await client.embeddings.create(**self._request_kwargs(text))
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []

        client = self._get_client()
        response = await client.embeddings.create(**self._request_kwargs(texts))

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        return [item.embedding for item in sorted_data]


class GoogleEmbeddingProvider(EmbeddingProvider):
    """Google Generative AI embedding provider (text-embedding-004, 768 dimensions)."""

    def __init__(
        self,
        api_key: str,
        model: str = "models/text-embedding-004",
        dimensions: int | None = None,
    ):
        import google.generativeai as genai

        self.api_key = api_key
        self.model = model if model.startswith("models/") else f"models/{model}"
        self._requested_dimensions = dimensions
        self._dimension = dimensions or 768
        genai.configure(api_key=api_key)
        self._genai = genai
        logger.info(
            f"GoogleEmbeddingProvider initialized: model={self.model}, dimensions={self._dimension}"
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _embed(self, text: str, task_type: str) -> list[float]:
        kwargs = {"model": self.model, "content": text, "task_type": task_type}
        if self._requested_dimensions is not None:
            kwargs["output_dimensionality"] = self._requested_dimensions

        response = await self._genai.embed_content_async(**kwargs)
        embedding = response.get("embedding") if response else None
        if not embedding:
            raise RuntimeError("No embedding returned from Google API")
        return list(embedding)

    async def embed(self, text: str) -> list[float]:
        """Generate a document embedding for a single text."""
        return await self._embed(text, "retrieval_document")

    async def embed_query(self, text: str) -> list[float]:
        """Generate a query embedding; Google models embed queries differently."""
        return await self._embed(text, "retrieval_query")

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, one request each."""
        return [await self.embed(text) for text in texts]


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Local embedding provider using sentence-transformers.

    Uses all-MiniLM-L6-v2 by default (384 dimensions, fast, good quality).
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = 384  # Default for MiniLM
        logger.info(f"LocalEmbeddingProvider initialized with model: {model_name}")

    @property
    def dimension(self) -> int:
        # The real dimension is only known once the model is loaded
        self._get_model()
        return self._dimension

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise RuntimeError(
                    "sentence-transformers not installed. "
                    "Install with: pip install 'mnemo[local]'"
                )
            self._model = SentenceTransformer(self.model_name)
            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        model = self._get_model()
        embedding = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        model = self._get_model()
        embeddings = model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
        return embeddings.tolist()


def create_embedding_provider(
    provider: Literal["openai", "google", "local"] = "openai",
    api_key: str = "",
    model: str = "",
    dimensions: int | None = None,
) -> EmbeddingProvider:
    """
    Factory function to create the appropriate embedding provider.

    Args:
        provider: "openai", "google" or "local"
        api_key: API key (required for openai and google)
        model: Model name (optional, uses defaults)
        dimensions: Override output dimensions where the model supports it

    Returns:
        Configured EmbeddingProvider instance
    """
    if provider == "openai":
        if not api_key:
            raise ValueError("OpenAI API key required for openai embedding provider")
        return OpenAIEmbeddingProvider(
            api_key=api_key,
            model=model or "text-embedding-3-small",
            dimensions=dimensions,
        )
    elif provider == "google":
        if not api_key:
            raise ValueError("Google API key required for google embedding provider")
        return GoogleEmbeddingProvider(
            api_key=api_key,
            model=model or "models/text-embedding-004",
            dimensions=dimensions,
        )
    elif provider == "local":
        return LocalEmbeddingProvider(
            model_name=model or "all-MiniLM-L6-v2",
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
