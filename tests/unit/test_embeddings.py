"""
Unit tests for mnemo/memory/embeddings.py
"""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mnemo.memory.embeddings import (
    GoogleEmbeddingProvider,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)


class TestOpenAIEmbeddingProvider:
    """Tests for OpenAIEmbeddingProvider."""

    def test_default_dimensions(self):
        """Test the default dimensions of each model."""
        assert OpenAIEmbeddingProvider(api_key="k").dimension == 1536
        assert OpenAIEmbeddingProvider(api_key="k", model="text-embedding-3-large").dimension == 3072

    def test_dimension_override(self):
        """Test that dimensions overrides the model default."""
        provider = OpenAIEmbeddingProvider(api_key="k", model="text-embedding-3-large", dimensions=1024)
        assert provider.dimension == 1024

    def test_override_above_default_ignored(self):
        """Test that an override above the model default is ignored."""
        provider = OpenAIEmbeddingProvider(api_key="k", dimensions=4096)
        assert provider.dimension == 1536

    @pytest.mark.asyncio
    async def test_embed(self, mock_openai_embeddings):
        """Test that embed sends the model, input and dimensions."""
        provider = OpenAIEmbeddingProvider(api_key="k", dimensions=512)

        vector = await provider.embed("Sarah visited")

        assert vector == [0.0] * 4
        kwargs = mock_openai_embeddings.return_value.embeddings.create.call_args.kwargs
        assert kwargs == {"model": "text-embedding-3-small", "input": "Sarah visited", "dimensions": 512}

    @pytest.mark.asyncio
    async def test_embed_query_same_as_embed(self, mock_openai_embeddings):
        """Test that OpenAI embeds queries like documents."""
        provider = OpenAIEmbeddingProvider(api_key="k")

        assert await provider.embed_query("lunch") == await provider.embed("lunch")

    @pytest.mark.asyncio
    async def test_embed_batch_keeps_input_order(self, mock_openai_embeddings):
        """Test that batch results are ordered by input index."""
        provider = OpenAIEmbeddingProvider(api_key="k")

        vectors = await provider.embed_batch(["a", "b", "c"])

        assert vectors == [[0.0] * 4, [1.0] * 4, [2.0] * 4]
        assert "dimensions" not in mock_openai_embeddings.return_value.embeddings.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_embed_batch_empty(self, mock_openai_embeddings):
        """Test that an empty batch makes no API call."""
        assert await OpenAIEmbeddingProvider(api_key="k").embed_batch([]) == []
        mock_openai_embeddings.return_value.embeddings.create.assert_not_called()


class TestGoogleEmbeddingProvider:
    """Tests for GoogleEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_embed_uses_document_task(self):
        """Test that stored text is embedded as a retrieval document."""
        with patch("google.generativeai.configure"), \
             patch("google.generativeai.embed_content_async", new_callable=AsyncMock) as embed:
            embed.return_value = {"embedding": [0.5] * 768}
            provider = GoogleEmbeddingProvider(api_key="k", model="text-embedding-004")

            vector = await provider.embed("Sarah visited")

        assert provider.model == "models/text-embedding-004"
        assert provider.dimension == 768
        assert len(vector) == 768
        assert embed.call_args.kwargs["task_type"] == "retrieval_document"

    @pytest.mark.asyncio
    async def test_embed_query_uses_query_task(self):
        """Test that queries are embedded as retrieval queries."""
        with patch("google.generativeai.configure"), \
             patch("google.generativeai.embed_content_async", new_callable=AsyncMock) as embed:
            embed.return_value = {"embedding": [0.5] * 768}
            provider = GoogleEmbeddingProvider(api_key="k")

            await provider.embed_query("what did we eat?")

        assert embed.call_args.kwargs["task_type"] == "retrieval_query"
        assert embed.call_args.kwargs["content"] == "what did we eat?"

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        """Test that an empty API response raises."""
        with patch("google.generativeai.configure"), \
             patch("google.generativeai.embed_content_async", new_callable=AsyncMock) as embed:
            embed.return_value = {}
            provider = GoogleEmbeddingProvider(api_key="k")

            with pytest.raises(RuntimeError, match="No embedding"):
                await provider.embed("Sarah visited")


class TestLocalEmbeddingProvider:
    """Tests for LocalEmbeddingProvider."""

    def test_dimension_comes_from_model(self):
        """Test that the dimension is read from the loaded model."""
        model = MagicMock()
        model.get_sentence_embedding_dimension.return_value = 768
        provider = LocalEmbeddingProvider(model_name="all-mpnet-base-v2")

        # The optional extra may not be installed
        fake_module = MagicMock()
        fake_module.SentenceTransformer.return_value = model
        with patch.dict(sys.modules, {"sentence_transformers": fake_module}):
            assert provider.dimension == 768

        fake_module.SentenceTransformer.assert_called_once_with("all-mpnet-base-v2")

    @pytest.mark.asyncio
    async def test_embed_normalizes(self):
        """Test that embeddings are normalized."""
        model = MagicMock()
        model.encode.return_value.tolist.return_value = [0.6, 0.8]
        provider = LocalEmbeddingProvider()
        provider._model = model

        assert await provider.embed("Sarah visited") == [0.6, 0.8]
        assert model.encode.call_args.kwargs["normalize_embeddings"] is True


class TestCreateEmbeddingProvider:
    """Tests for create_embedding_provider()."""

    def test_openai(self):
        """Test creating an OpenAI provider."""
        provider = create_embedding_provider("openai", api_key="k", dimensions=256)
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.dimension == 256

    def test_local_is_lazy(self):
        """Test that the local model is not loaded at creation."""
        provider = create_embedding_provider("local")
        assert isinstance(provider, LocalEmbeddingProvider)
        assert provider._model is None

    @pytest.mark.parametrize("name", ["openai", "google"])
    def test_missing_key(self, name):
        """Test that API providers require a key."""
        with pytest.raises(ValueError, match="API key"):
            create_embedding_provider(name, api_key="")

    def test_unknown(self):
        """Test that an unknown provider raises."""
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_provider("cohere", api_key="k")
