"""
Unit tests for mnemo/memory/chroma_index.py

The Chroma client is replaced by a MagicMock; these tests check what the
index asks Chroma for and how it reads the answers.
"""

import json
from unittest.mock import MagicMock

import pytest

from mnemo.errors import ConfigurationError
from mnemo.memory.chroma_index import ChromaVectorIndex


def _client(metadata=None, count=3):
    collection = MagicMock()
    collection.metadata = metadata if metadata is not None else {"hnsw:space": "cosine", "dimension": 4}
    collection.count.return_value = count
    client = MagicMock()
    client.get_or_create_collection.return_value = collection
    return client, collection


async def _index(metadata=None, count=3):
    client, collection = _client(metadata, count)
    index = ChromaVectorIndex(collection_name="test", dimension=4, client=client)
    await index.initialize()
    return index, client, collection


class TestInitialize:
    """Tests for ChromaVectorIndex.initialize()."""

    @pytest.mark.asyncio
    async def test_creates_cosine_collection(self):
        """Test the collection is created with cosine space and our dimension."""
        _, client, _ = await _index()

        kwargs = client.get_or_create_collection.call_args.kwargs
        assert kwargs["name"] == "test"
        assert kwargs["metadata"]["hnsw:space"] == "cosine"
        assert kwargs["metadata"]["dimension"] == 4

    @pytest.mark.asyncio
    async def test_existing_l2_collection_rejected(self):
        """Test that a collection using L2 distance is refused."""
        with pytest.raises(ConfigurationError, match="l2"):
            await _index(metadata={"hnsw:space": "l2", "dimension": 4})

    @pytest.mark.asyncio
    async def test_existing_dimension_mismatch_rejected(self):
        """Test that a collection built for another dimension is refused."""
        with pytest.raises(ConfigurationError, match="1536"):
            await _index(metadata={"hnsw:space": "cosine", "dimension": 1536})

    @pytest.mark.asyncio
    async def test_missing_metadata_accepted(self):
        """Test that a collection without metadata is accepted."""
        index, _, _ = await _index(metadata={})
        assert index.dimension == 4

    @pytest.mark.asyncio
    async def test_requires_initialize(self):
        """Test that operations before initialize() raise."""
        index = ChromaVectorIndex(dimension=4, client=MagicMock())

        with pytest.raises(RuntimeError, match="not initialized"):
            await index.count()


class TestUpsert:
    """Tests for ChromaVectorIndex.upsert()."""

    @pytest.mark.asyncio
    async def test_flattens_list_payload(self):
        """Test that list payload fields are stored as JSON strings."""
        index, _, collection = await _index()
        payload = {"owner_id": "alice", "raw_text": "lunch", "people": ["Sarah"], "activities": []}

        await index.upsert("c1", [0.1, 0.2, 0.3, 0.4], payload)

        kwargs = collection.upsert.call_args.kwargs
        assert kwargs["ids"] == ["c1"]
        assert kwargs["documents"] == ["lunch"]
        metadata = kwargs["metadatas"][0]
        assert metadata["owner_id"] == "alice"
        assert json.loads(metadata["people"]) == ["Sarah"]

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self):
        """Test that a vector of the wrong length is not written."""
        index, _, collection = await _index()

        with pytest.raises(ValueError, match="2 dimensions"):
            await index.upsert("c1", [0.1, 0.2], {"owner_id": "alice"})
        collection.upsert.assert_not_called()


class TestQuery:
    """Tests for ChromaVectorIndex.query()."""

    @pytest.mark.asyncio
    async def test_owner_filter_inside_query(self):
        """Test the owner restriction is a Chroma where clause, not a post-filter."""
        index, _, collection = await _index(count=10)
        collection.query.return_value = {"ids": [[]], "distances": [[]]}

        await index.query([0.1] * 4, owner_id="alice", limit=5)

        kwargs = collection.query.call_args.kwargs
        assert kwargs["where"] == {"owner_id": "alice"}
        assert kwargs["n_results"] == 5

    @pytest.mark.asyncio
    async def test_distance_converted_to_similarity(self):
        """Test that cosine distance becomes a similarity clamped to [0, 1]."""
        index, _, collection = await _index()
        collection.query.return_value = {
            "ids": [["far", "near", "opposite"]],
            "distances": [[0.75, 0.1, 1.6]],
        }

        hits = await index.query([0.1] * 4, owner_id="alice", limit=3)

        assert [h.id for h in hits] == ["near", "far", "opposite"]
        assert hits[0].score == pytest.approx(0.9)
        assert hits[1].score == pytest.approx(0.25)
        assert hits[2].score == 0.0

    @pytest.mark.asyncio
    async def test_n_results_capped_by_collection_size(self):
        """Test that n_results never exceeds the collection size."""
        index, _, collection = await _index(count=2)
        collection.query.return_value = {"ids": [[]], "distances": [[]]}

        await index.query([0.1] * 4, owner_id="alice", limit=50)

        assert collection.query.call_args.kwargs["n_results"] == 2

    @pytest.mark.asyncio
    async def test_empty_collection_skips_query(self):
        """Test that an empty collection returns no hits without querying."""
        index, _, collection = await _index(count=0)

        assert await index.query([0.1] * 4, owner_id="alice") == []
        collection.query.assert_not_called()


class TestLookupAndDelete:
    """Tests for existing_ids() and delete()."""

    @pytest.mark.asyncio
    async def test_existing_ids(self):
        """Test that existing_ids returns only the IDs present."""
        index, _, collection = await _index()
        collection.get.return_value = {"ids": ["c1"]}

        assert await index.existing_ids({"c1", "c2"}) == {"c1"}
        assert collection.get.call_args.kwargs["ids"] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_existing_ids_empty(self):
        """Test that an empty ID set makes no lookup."""
        index, _, collection = await _index()

        assert await index.existing_ids(set()) == set()
        collection.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test that delete removes the entry by correlation ID."""
        index, _, collection = await _index()

        await index.delete("c1")

        collection.delete.assert_called_once_with(ids=["c1"])
