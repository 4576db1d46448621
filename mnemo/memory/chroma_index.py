"""
ChromaDB Vector Index Implementation.

ChromaDB is perfect for local/development use:
- No server required
- Stores everything in a local directory
- Built-in persistence
- Metadata filtering inside the query (used for owner scoping)
"""

import json
import logging
from pathlib import Path

from ..errors import ConfigurationError
from .base import VectorHit, VectorIndex

logger = logging.getLogger("mnemo.memory.chroma")


class ChromaVectorIndex(VectorIndex):
    """
    ChromaDB implementation of the vector index.

    Entries are keyed by correlation ID. The payload is flattened into
    Chroma metadata; list fields are stored as JSON strings because Chroma
    metadata values must be scalars.
    """

    def __init__(
        self,
        persist_directory: str = "./memory_index",
        collection_name: str = "owner_memories",
        dimension: int = 1536,
        client=None,
    ):
        self.persist_directory = Path(persist_directory)
        self.collection_name = collection_name
        self._dimension = dimension
        self._client = client
        self._collection = None
        logger.info(f"ChromaVectorIndex configured with directory: {persist_directory}")

    @property
    def dimension(self) -> int:
        return self._dimension

    async def initialize(self) -> None:
        """Initialize ChromaDB client and collection."""
        if self._client is None:
            try:
                import chromadb
                from chromadb.config import Settings
            except ImportError:
                raise RuntimeError(
                    "chromadb not installed. Install with: pip install chromadb"
                )

            # Create persist directory if needed
            self.persist_directory.mkdir(parents=True, exist_ok=True)

            self._client = chromadb.PersistentClient(
                path=str(self.persist_directory),
                settings=Settings(
                    anonymized_telemetry=False,
                    allow_reset=True,
                ),
            )

        # The distance space is fixed when the collection is first created
        self._collection = self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "hnsw:space": "cosine",
                "dimension": self._dimension,
                "description": "Owner-scoped memory embeddings",
            },
        )

        existing = self._collection.metadata or {}
        space = existing.get("hnsw:space", self.metric)
        if space != self.metric:
            raise ConfigurationError(
                f"Collection '{self.collection_name}' uses '{space}' distance, expected '{self.metric}'"
            )
        stored_dimension = existing.get("dimension")
        if stored_dimension is not None and int(stored_dimension) != self._dimension:
            raise ConfigurationError(
                f"Collection '{self.collection_name}' was built for {stored_dimension}-dim vectors, "
                f"but the index is configured for {self._dimension}"
            )

        count = self._collection.count()
        logger.info(f"ChromaDB initialized with {count} existing vectors")

    def _ensure_initialized(self) -> None:
        """Ensure the index is initialized."""
        if self._collection is None:
            raise RuntimeError("ChromaVectorIndex not initialized. Call initialize() first.")

    def _payload_to_metadata(self, payload: dict) -> dict:
        """Flatten a payload into Chroma-compatible metadata."""
        metadata = {}
        for key, value in payload.items():
            if isinstance(value, (list, tuple, set, frozenset, dict)):
                metadata[key] = json.dumps(sorted(value) if isinstance(value, (set, frozenset)) else value)
            else:
                metadata[key] = value
        return metadata

    async def upsert(self, id: str, vector: list[float], payload: dict) -> None:
        """Store a vector under its correlation ID."""
        self._ensure_initialized()

        if len(vector) != self._dimension:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, index expects {self._dimension}"
            )

        self._collection.upsert(
            ids=[id],
            embeddings=[vector],
            documents=[payload.get("raw_text", "")],
            metadatas=[self._payload_to_metadata(payload)],
        )
        logger.debug(f"Indexed vector {id}")

    async def query(
        self,
        vector: list[float],
        owner_id: str,
        limit: int = 5,
    ) -> list[VectorHit]:
        """Search one owner's vectors by cosine similarity."""
        self._ensure_initialized()

        total = self._collection.count()
        if total == 0:
            return []

        # ChromaDB uses distance (lower is better), we want similarity (higher is better)
        # For cosine distance: similarity = 1 - distance
        results = self._collection.query(
            query_embeddings=[vector],
            n_results=min(limit, total),
            where={"owner_id": owner_id},
            include=["distances"],
        )

        hits = []
        if results["ids"] and results["ids"][0]:
            for i, hit_id in enumerate(results["ids"][0]):
                distance = results["distances"][0][i]
                similarity = min(1.0, max(0.0, 1.0 - distance))
                hits.append(VectorHit(id=hit_id, score=similarity))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def existing_ids(self, ids: set[str]) -> set[str]:
        """Which of the given correlation IDs have an entry."""
        self._ensure_initialized()

        if not ids:
            return set()

        results = self._collection.get(ids=sorted(ids), include=[])
        return set(results["ids"])

    async def delete(self, id: str) -> None:
        """Remove an entry by correlation ID."""
        self._ensure_initialized()
        self._collection.delete(ids=[id])
        logger.debug(f"Deleted vector {id}")

    async def count(self) -> int:
        """Get total number of indexed vectors."""
        self._ensure_initialized()
        return self._collection.count()

    async def close(self) -> None:
        """Clean up resources."""
        # ChromaDB PersistentClient handles cleanup automatically
        self._client = None
        self._collection = None
        logger.info("ChromaDB connection closed")
