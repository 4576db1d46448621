"""
Memory Manager - Orchestrates the dual-store memory system.

This is the high-level interface the CLI and the chat flow use.
It handles:
- Wiring the record store, vector index and embedding provider
- Startup validation (embedding dimension and metric must match the index)
- Remembering and recalling memories
- Chronological history, deletion and index repair
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from ..errors import ConfigurationError, EmbeddingUnavailable, ValidationError
from .base import (
    ContextItem,
    EntityExtractor,
    IngestionResult,
    MemoryRecord,
    RecordStore,
    RetrievalResult,
    VectorIndex,
)
from .context import ContextAssembler
from .correlation import embed_text, embed_texts, owner_scope, require_text
from .embeddings import EmbeddingProvider, create_embedding_provider
from .ingestion import MemoryIngestionService
from .retrieval import DEFAULT_LIMIT, MAX_LIMIT, RetrievalService

logger = logging.getLogger("mnemo.memory.manager")

# Missing records are embedded this many at a time when reindexing
REINDEX_BATCH_SIZE = 32


@dataclass
class RepairReport:
    """Outcome of a reindex pass over one owner's records."""
    scanned: int = 0
    missing: int = 0
    repaired: int = 0
    failed: int = 0


class MemoryManager:
    """
    High-level memory management.

    Owns both stores; call initialize() before use and close() after.
    """

    def __init__(
        self,
        record_store: RecordStore,
        vector_index: VectorIndex,
        embedding_provider: EmbeddingProvider,
        entity_extractor: Optional[EntityExtractor] = None,
        max_limit: int = MAX_LIMIT,
        min_score: float = 0.0,
        embedding_timeout: Optional[float] = None,
    ):
        self.record_store = record_store
        self.vector_index = vector_index
        self.embedding_provider = embedding_provider
        self.embedding_timeout = embedding_timeout

        self.ingestion = MemoryIngestionService(
            record_store=record_store,
            vector_index=vector_index,
            embedding_provider=embedding_provider,
            entity_extractor=entity_extractor,
            embedding_timeout=embedding_timeout,
        )
        self.retrieval = RetrievalService(
            record_store=record_store,
            vector_index=vector_index,
            embedding_provider=embedding_provider,
            max_limit=max_limit,
            min_score=min_score,
            embedding_timeout=embedding_timeout,
        )
        self.assembler = ContextAssembler()
        self._initialized = False
        logger.info("MemoryManager created")

    def validate_configuration(self) -> None:
        """
        Check that the embedding provider and the index agree.

        Raises:
            ConfigurationError: On a dimension or metric mismatch
        """
        if self.embedding_provider.dimension != self.vector_index.dimension:
            raise ConfigurationError(
                f"Embedding provider emits {self.embedding_provider.dimension}-dim vectors "
                f"but the index is configured for {self.vector_index.dimension}"
            )
        if self.vector_index.metric != "cosine":
            raise ConfigurationError(
                f"Index uses '{self.vector_index.metric}' similarity, expected 'cosine'"
            )

    async def initialize(self) -> None:
        """Validate configuration, then initialize both stores."""
        self.validate_configuration()
        await self.record_store.initialize()
        await self.vector_index.initialize()
        self._initialized = True

        records = await self.record_store.count()
        vectors = await self.vector_index.count()
        logger.info(f"MemoryManager initialized with {records} records and {vectors} indexed vectors")
        if vectors > records:
            logger.info(f"{vectors - records} index entries have no record and will be skipped")

    def _ensure_initialized(self) -> None:
        """Ensure the system is initialized."""
        if not self._initialized:
            raise RuntimeError("MemoryManager not initialized. Call initialize() first.")

    async def embed(self, text: str) -> list[float]:
        """
        Embed text once so it can be both recalled against and remembered.

        Raises:
            ValidationError: Empty text
            EmbeddingUnavailable: Provider failed
        """
        self._ensure_initialized()
        require_text(text, "text")
        return await embed_text(self.embedding_provider, text, self.embedding_timeout)

    async def remember(
        self,
        owner_id: str,
        text: str,
        vector: Optional[list[float]] = None,
    ) -> IngestionResult:
        """Store a new memory. See MemoryIngestionService.ingest."""
        self._ensure_initialized()
        return await self.ingestion.ingest(owner_id, text, vector=vector)

    async def recall(
        self,
        owner_id: str,
        query: str,
        limit: int = DEFAULT_LIMIT,
        vector: Optional[list[float]] = None,
    ) -> list[RetrievalResult]:
        """Find related memories. See RetrievalService.retrieve."""
        self._ensure_initialized()
        return await self.retrieval.retrieve(owner_id, query, limit, vector=vector)

    async def recall_context(
        self,
        owner_id: str,
        query: str,
        limit: int = DEFAULT_LIMIT,
    ) -> list[ContextItem]:
        """Related memories, assembled for a reply generator."""
        results = await self.recall(owner_id, query, limit)
        return self.assembler.assemble(results)

    async def history(
        self,
        owner_id: str,
        limit: int = 20,
        newest_first: bool = True,
    ) -> list[MemoryRecord]:
        """Chronological listing straight from the record store."""
        self._ensure_initialized()
        require_text(owner_id, "owner_id")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")
        return await self.record_store.list_by_owner(owner_id, newest_first=newest_first, limit=limit)

    async def forget(self, owner_id: str, record_id: str) -> bool:
        """
        Delete a memory from both stores.

        The record goes first. If the index delete then fails, the leftover
        entry is an orphan: retrieval skips it, so nothing is exposed.

        Returns:
            False if the owner has no such memory
        """
        self._ensure_initialized()
        require_text(owner_id, "owner_id")
        require_text(record_id, "record_id")

        with owner_scope(owner_id):
            record = await self.record_store.get(owner_id, record_id)
            if record is None:
                return False

            deleted = await self.record_store.delete(owner_id, record_id)
            if not deleted:
                return False

            try:
                await self.vector_index.delete(record.correlation_id)
            except Exception as e:
                logger.warning(
                    f"Memory #{record_id} deleted but its index entry "
                    f"{record.correlation_id} remains as an orphan: {e}"
                )

            logger.info(f"Forgot memory #{record_id}")
            return True

    async def reindex_missing(self, owner_id: str, limit: int = 1000) -> RepairReport:
        """
        Re-index an owner's records that have no vector.

        Safe to run repeatedly: entries are upserted under the record's
        existing correlation ID.
        """
        self._ensure_initialized()
        require_text(owner_id, "owner_id")

        report = RepairReport()
        with owner_scope(owner_id):
            records = await self.record_store.list_by_owner(owner_id, newest_first=True, limit=limit)
            report.scanned = len(records)
            if not records:
                return report

            present = await self.vector_index.existing_ids({r.correlation_id for r in records})
            missing = [r for r in records if r.correlation_id not in present]
            report.missing = len(missing)

            for start in range(0, len(missing), REINDEX_BATCH_SIZE):
                batch = missing[start:start + REINDEX_BATCH_SIZE]
                try:
                    vectors = await embed_texts(
                        self.embedding_provider, [r.raw_text for r in batch], self.embedding_timeout
                    )
                except EmbeddingUnavailable as e:
                    report.failed += len(batch)
                    logger.warning(f"Could not embed {len(batch)} memories for reindexing: {e}")
                    continue

                for record, vector in zip(batch, vectors):
                    try:
                        await self.vector_index.upsert(record.correlation_id, vector, record.to_payload())
                        report.repaired += 1
                    except Exception as e:
                        report.failed += 1
                        logger.warning(f"Could not reindex memory #{record.id}: {e}")

        logger.info(
            f"Reindex: scanned={report.scanned} missing={report.missing} "
            f"repaired={report.repaired} failed={report.failed}"
        )
        return report

    async def close(self) -> None:
        """Clean up resources."""
        await self.vector_index.close()
        await self.record_store.close()
        self._initialized = False
        logger.info("MemoryManager closed")


async def create_memory_manager(
    record_store_type: Literal["sqlite", "postgres"] = "sqlite",
    index_type: Literal["chroma", "pgvector"] = "chroma",
    embedding_provider: Literal["openai", "google", "local"] = "openai",
    api_key: str = "",
    embedding_model: str = "",
    embedding_dimensions: int | None = None,
    sqlite_path: str = "mnemo.db",
    chroma_path: str = "./memory_index",
    collection_name: str = "owner_memories",
    postgres_url: str = "",
    entity_extractor: Optional[EntityExtractor] = None,
    max_limit: int = MAX_LIMIT,
    min_score: float = 0.0,
    embedding_timeout: Optional[float] = None,
) -> MemoryManager:
    """
    Factory function to create a configured, initialized MemoryManager.

    Args:
        record_store_type: "sqlite" for local, "postgres" for production
        index_type: "chroma" for local, "pgvector" for production
        embedding_provider: "openai", "google" or "local"
        api_key: Key for the embedding provider
        postgres_url: Required for the postgres record store or pgvector index

    Returns:
        Initialized MemoryManager
    """
    provider = create_embedding_provider(
        provider=embedding_provider,
        api_key=api_key,
        model=embedding_model,
        dimensions=embedding_dimensions,
    )

    if record_store_type == "sqlite":
        from .record_store import SQLiteRecordStore
        record_store = SQLiteRecordStore(db_path=sqlite_path)
    elif record_store_type == "postgres":
        if not postgres_url:
            raise ValueError("postgres_url required for postgres record store")
        from .pg_record_store import PostgresRecordStore
        record_store = PostgresRecordStore(connection_string=postgres_url)
    else:
        raise ValueError(f"Unknown record store type: {record_store_type}")

    if index_type == "chroma":
        from .chroma_index import ChromaVectorIndex
        vector_index = ChromaVectorIndex(
            persist_directory=chroma_path,
            collection_name=collection_name,
            dimension=provider.dimension,
        )
    elif index_type == "pgvector":
        if not postgres_url:
            raise ValueError("postgres_url required for pgvector index")
        from .pgvector_index import PgVectorIndex
        vector_index = PgVectorIndex(
            connection_string=postgres_url,
            embedding_dimension=provider.dimension,
        )
    else:
        raise ValueError(f"Unknown index type: {index_type}")

    manager = MemoryManager(
        record_store=record_store,
        vector_index=vector_index,
        embedding_provider=provider,
        entity_extractor=entity_extractor,
        max_limit=max_limit,
        min_score=min_score,
        embedding_timeout=embedding_timeout,
    )

    try:
        await manager.initialize()
    except Exception:
        await manager.close()
        raise
    return manager
