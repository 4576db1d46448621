"""
Memory retrieval: query text in, ranked owner-scoped memories out.

The index answers "which correlation IDs are close", the record store
answers "what was actually said". Results come back in a total order:
score descending, newest first on ties.
"""

import logging
from typing import Optional

from ..errors import IndexQueryFailed, ValidationError
from .base import RecordStore, RetrievalResult, VectorIndex
from .correlation import check_vector, embed_text, join_hits, owner_scope, rank_results, require_text
from .embeddings import EmbeddingProvider

logger = logging.getLogger("mnemo.memory.retrieval")

DEFAULT_LIMIT = 5
MAX_LIMIT = 50


class RetrievalService:
    """Similarity search joined back to the record store."""

    def __init__(
        self,
        record_store: RecordStore,
        vector_index: VectorIndex,
        embedding_provider: EmbeddingProvider,
        max_limit: int = MAX_LIMIT,
        min_score: float = 0.0,
        embedding_timeout: Optional[float] = None,
    ):
        self.record_store = record_store
        self.vector_index = vector_index
        self.embedding_provider = embedding_provider
        self.max_limit = max_limit
        self.min_score = min_score
        self.embedding_timeout = embedding_timeout

    def _validate_limit(self, limit) -> int:
        # bool is an int subclass; True is not a limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError(f"limit must be an integer, got {limit!r}")
        if not 1 <= limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}, got {limit}")
        return limit

    async def retrieve(
        self,
        owner_id: str,
        query_text: str,
        limit: int = DEFAULT_LIMIT,
        vector: Optional[list[float]] = None,
    ) -> list[RetrievalResult]:
        """
        Find the owner's memories most similar to the query.

        Args:
            owner_id: Whose memories to search
            query_text: Free-text query
            limit: Maximum results (1..max_limit)
            vector: Embedding of query_text if the caller already has one

        Returns:
            Ranked results; may be shorter than ``limit`` when orphaned
            index entries are dropped

        Raises:
            ValidationError: Bad input
            EmbeddingUnavailable: Provider failed
            IndexQueryFailed: The index could not be searched
            RecordStoreError: The join lookup failed
        """
        require_text(owner_id, "owner_id")
        require_text(query_text, "query_text")
        limit = self._validate_limit(limit)

        with owner_scope(owner_id):
            if vector is None:
                vector = await embed_text(
                    self.embedding_provider, query_text, self.embedding_timeout, query=True
                )
            else:
                vector = check_vector(self.embedding_provider, vector)

            try:
                hits = await self.vector_index.query(vector, owner_id=owner_id, limit=limit)
            except Exception as e:
                logger.error(f"Vector index query failed: {e}")
                raise IndexQueryFailed(f"Vector index query failed: {e}") from e

            if self.min_score > 0:
                hits = [h for h in hits if h.score >= self.min_score]
            if not hits:
                logger.info("No similar memories found")
                return []

            records = await self.record_store.find_by_correlation_ids({h.id for h in hits})
            results, orphans = join_hits(hits, records, owner_id)

            if orphans:
                logger.info(f"Skipped {orphans} orphaned index entries")

            ranked = rank_results(results)[:limit]
            logger.info(f"Retrieved {len(ranked)} memories from {len(hits)} index hits")
            for r in ranked:
                logger.debug(f"  - #{r.record.id}: score={r.score:.3f}")

            return ranked
