"""
Memory ingestion: one utterance in, one record plus one index entry out.

The two stores share no transaction. Writes are ordered instead:

1. embed the text (failure here means nothing was written)
2. write the record (the canonical copy)
3. write the vector under the same correlation ID

If step 3 fails the record is kept and the caller gets a degraded
success. Losing searchability can be repaired by reindexing; losing the
text cannot.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from ..errors import IndexWriteFailed
from .base import (
    Entities,
    EntityExtractor,
    IngestionResult,
    MemoryRecord,
    RecordStore,
    VectorIndex,
)
from .correlation import check_vector, embed_text, new_correlation_id, owner_scope, require_text
from .embeddings import EmbeddingProvider

logger = logging.getLogger("mnemo.memory.ingestion")


def _log_detached_write(task: asyncio.Task) -> None:
    """Report the outcome of a write whose caller was cancelled."""
    if task.cancelled():
        logger.error("Memory write was cancelled before it finished")
        return

    error = task.exception()
    if error is not None:
        logger.error(f"Memory write failed after the caller was cancelled: {error}")
        return

    result = task.result()
    if result.degraded:
        logger.warning(
            f"Memory #{result.record.id} stored after the caller was cancelled, "
            f"but not indexed: {result.warning}"
        )
    else:
        logger.info(f"Memory #{result.record.id} stored after the caller was cancelled")


class MemoryIngestionService:
    """Creates memories across the record store and the vector index."""

    def __init__(
        self,
        record_store: RecordStore,
        vector_index: VectorIndex,
        embedding_provider: EmbeddingProvider,
        entity_extractor: Optional[EntityExtractor] = None,
        embedding_timeout: Optional[float] = None,
    ):
        self.record_store = record_store
        self.vector_index = vector_index
        self.embedding_provider = embedding_provider
        self.entity_extractor = entity_extractor
        self.embedding_timeout = embedding_timeout

    async def ingest(
        self,
        owner_id: str,
        raw_text: str,
        vector: Optional[list[float]] = None,
    ) -> IngestionResult:
        """
        Store a new memory.

        Args:
            owner_id: The user the memory belongs to
            raw_text: The utterance, stored verbatim
            vector: Embedding of raw_text if the caller already has one

        Returns:
            IngestionResult; ``warning`` is set if only the record was written

        Raises:
            ValidationError: Empty owner or text (nothing written)
            EmbeddingUnavailable: Provider failed (nothing written)
            RecordStoreError: The record write failed (nothing written)
        """
        require_text(owner_id, "owner_id")
        require_text(raw_text, "raw_text")

        with owner_scope(owner_id):
            if vector is None:
                vector = await embed_text(self.embedding_provider, raw_text, self.embedding_timeout)
            else:
                vector = check_vector(self.embedding_provider, vector)
            entities = await self._extract_entities(raw_text)

            record = MemoryRecord(
                owner_id=owner_id,
                raw_text=raw_text,
                correlation_id=new_correlation_id(),
                entities=entities,
            )

            # Once writing starts it runs to completion even if the caller is cancelled
            write = asyncio.ensure_future(self._write(record, vector))
            try:
                return await asyncio.shield(write)
            except asyncio.CancelledError:
                write.add_done_callback(_log_detached_write)
                raise

    async def _extract_entities(self, raw_text: str) -> Entities:
        """Entities are an annotation; failing to extract them never blocks a memory."""
        if self.entity_extractor is None:
            return Entities()
        try:
            return await self.entity_extractor.extract(raw_text)
        except Exception as e:
            logger.warning(f"Entity extraction failed, storing memory without entities: {e}")
            return Entities()

    async def _write(self, record: MemoryRecord, vector: list[float]) -> IngestionResult:
        record_id = await self.record_store.insert(record)
        record = replace(record, id=record_id)

        try:
            await self.vector_index.upsert(record.correlation_id, vector, record.to_payload())
        except Exception as e:
            logger.warning(
                f"Memory #{record_id} stored but not indexed "
                f"(correlation {record.correlation_id}): {e}"
            )
            warning = IndexWriteFailed(
                f"Memory stored but not searchable until reindexed: {e}",
                record_id=record_id,
                correlation_id=record.correlation_id,
            )
            return IngestionResult(record=record, warning=warning)

        logger.info(f"Ingested memory #{record_id} with {len(vector)}-dim embedding")
        return IngestionResult(record=record)
