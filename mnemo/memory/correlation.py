"""
Correlation and consistency helpers shared by ingestion and retrieval.

- correlation IDs: generated locally, before either store is written
- input validation and owner-scoped logging
- embedding calls mapped onto the error taxonomy
- joining index hits back to records, and the deterministic ranking order
"""

import asyncio
import logging
import uuid
from contextlib import contextmanager
from typing import Iterable, Optional

from ..config import owner_context
from ..errors import EmbeddingUnavailable, ValidationError
from .base import MemoryRecord, RetrievalResult, VectorHit
from .embeddings import EmbeddingProvider

logger = logging.getLogger("mnemo.memory.correlation")


def new_correlation_id() -> str:
    """A random 128-bit identifier, shared by a record and its index entry."""
    return uuid.uuid4().hex


def require_text(value, name: str) -> str:
    """Reject missing, non-string, empty and whitespace-only values."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


@contextmanager
def owner_scope(owner_id: str):
    """Tag every log line emitted inside the block with the owner ID."""
    token = owner_context.set(owner_id)
    try:
        yield
    finally:
        owner_context.reset(token)


def check_vector(provider: EmbeddingProvider, vector) -> list[float]:
    """
    Reject a vector of the wrong length as a provider failure.

    Writing it would poison the index.
    """
    if not vector or len(vector) != provider.dimension:
        got = len(vector) if vector else 0
        raise EmbeddingUnavailable(
            f"Embedding provider returned {got} dimensions, expected {provider.dimension}"
        )
    return list(vector)


async def _call_provider(make_call, timeout: Optional[float]):
    try:
        if timeout:
            return await asyncio.wait_for(make_call(), timeout=timeout)
        return await make_call()
    except asyncio.TimeoutError as e:
        logger.error(f"Embedding request timed out after {timeout}s")
        raise EmbeddingUnavailable(f"Embedding provider timed out after {timeout}s") from e
    except Exception as e:
        logger.error(f"Embedding provider error: {e}")
        raise EmbeddingUnavailable(f"Embedding provider failed: {e}") from e


async def embed_text(
    provider: EmbeddingProvider,
    text: str,
    timeout: Optional[float] = None,
    query: bool = False,
) -> list[float]:
    """
    Embed text, turning any provider failure into EmbeddingUnavailable.

    Args:
        query: Embed as a search query rather than as a stored document
    """
    method = provider.embed_query if query else provider.embed
    vector = await _call_provider(lambda: method(text), timeout)
    return check_vector(provider, vector)


async def embed_texts(
    provider: EmbeddingProvider,
    texts: list[str],
    timeout: Optional[float] = None,
) -> list[list[float]]:
    """Embed several documents in one provider call; all or nothing."""
    if not texts:
        return []

    vectors = await _call_provider(lambda: provider.embed_batch(texts), timeout)
    if len(vectors) != len(texts):
        raise EmbeddingUnavailable(
            f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
        )
    return [check_vector(provider, v) for v in vectors]


def ranking_key(result: RetrievalResult) -> tuple:
    """
    Sort key: score descending, then newest first.

    The correlation ID only decides between results whose score and
    timestamp are both identical, which keeps the order total.
    """
    return (-result.score, -result.record.created_at.timestamp(), result.record.correlation_id)


def rank_results(results: Iterable[RetrievalResult]) -> list[RetrievalResult]:
    """Order results deterministically regardless of input order."""
    return sorted(results, key=ranking_key)


def join_hits(
    hits: list[VectorHit],
    records: dict[str, MemoryRecord],
    owner_id: str,
) -> tuple[list[RetrievalResult], int]:
    """
    Attach each index hit to its record.

    Hits with no record are orphans (left behind by a degraded ingestion
    or a partial delete) and are dropped. Records owned by someone else
    are dropped as well.

    Returns:
        (results, orphans_skipped)
    """
    results = []
    orphans = 0
    seen = set()

    for hit in hits:
        if hit.id in seen:
            continue
        seen.add(hit.id)

        record = records.get(hit.id)
        if record is None:
            orphans += 1
            logger.debug(f"OrphanSkipped: index entry {hit.id} has no record")
            continue
        if record.owner_id != owner_id:
            logger.warning(
                f"Index returned entry {hit.id} owned by another user; dropping it"
            )
            continue

        results.append(RetrievalResult(record=record, score=hit.score))

    return results, orphans
