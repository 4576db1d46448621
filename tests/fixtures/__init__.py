"""
Test fixtures and fakes for Mnemo tests.
"""

import math
import re
import zlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from mnemo.memory.base import Entities, MemoryRecord, VectorHit, VectorIndex
from mnemo.memory.embeddings import EmbeddingProvider

# Words that should land close together, one group per dimension
CONCEPTS = [
    {"food", "lunch", "dinner", "breakfast", "meal", "ate", "eat", "eating", "soup", "cake"},
    {"visit", "visited", "visiting", "came", "stopped"},
    {"walk", "walked", "park", "garden", "outside"},
    {"doctor", "appointment", "medicine", "pills", "nurse"},
    {"music", "song", "sang", "piano", "radio"},
]
HASH_BUCKETS = 11
DIMENSION = len(CONCEPTS) + HASH_BUCKETS

BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _normalize(vector: list[float]) -> list[float]:
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class KeywordEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic embedding: concept words weigh heavily, every other word
    lands in a hashed bucket. Enough to make "food" find "lunch".
    """

    def __init__(self):
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return DIMENSION

    def vector_for(self, text: str) -> list[float]:
        vector = [0.0] * DIMENSION
        for word in re.findall(r"[a-z']+", text.lower()):
            for i, concept in enumerate(CONCEPTS):
                if word in concept:
                    vector[i] += 3.0
                    break
            else:
                vector[len(CONCEPTS) + zlib.crc32(word.encode()) % HASH_BUCKETS] += 1.0
        return _normalize(vector)

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


class FailingEmbeddingProvider(EmbeddingProvider):
    """Always fails, like an unreachable API."""

    def __init__(self, error: Exception = None):
        self.error = error or ConnectionError("embedding API unreachable")

    @property
    def dimension(self) -> int:
        return DIMENSION

    async def embed(self, text: str) -> list[float]:
        raise self.error

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        raise self.error


class InMemoryVectorIndex(VectorIndex):
    """
    Exact cosine search over a dict, with the owner filter applied
    inside query() like a real index would.
    """

    def __init__(self, dimension: int = DIMENSION):
        self._dimension = dimension
        self.entries: dict[str, tuple[list[float], dict]] = {}
        self.fail_upsert = False
        self.fail_query = False
        self.fail_delete = False
        self.queries: list[dict] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    async def initialize(self) -> None:
        pass

    async def upsert(self, id: str, vector: list[float], payload: dict) -> None:
        if self.fail_upsert:
            raise ConnectionError("index unavailable")
        self.entries[id] = (list(vector), dict(payload))

    async def query(self, vector: list[float], owner_id: str, limit: int = 5) -> list[VectorHit]:
        if self.fail_query:
            raise ConnectionError("index unavailable")
        self.queries.append({"owner_id": owner_id, "limit": limit})

        query = _normalize(list(vector))
        hits = []
        for entry_id, (stored, payload) in self.entries.items():
            if payload.get("owner_id") != owner_id:
                continue
            score = sum(a * b for a, b in zip(query, _normalize(stored)))
            hits.append(VectorHit(id=entry_id, score=max(0.0, min(1.0, score))))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    async def existing_ids(self, ids: set[str]) -> set[str]:
        return {i for i in ids if i in self.entries}

    async def delete(self, id: str) -> None:
        if self.fail_delete:
            raise ConnectionError("index unavailable")
        self.entries.pop(id, None)

    async def count(self) -> int:
        return len(self.entries)

    async def close(self) -> None:
        pass


def make_record(
    raw_text: str = "Mom enjoyed her lunch today",
    owner_id: str = "alice",
    correlation_id: str = "c0ffee",
    minutes: int = 0,
    id: str = "",
    people: Optional[list[str]] = None,
    activities: Optional[list[str]] = None,
) -> MemoryRecord:
    """Create a MemoryRecord at BASE_TIME + minutes."""
    return MemoryRecord(
        id=id,
        owner_id=owner_id,
        raw_text=raw_text,
        correlation_id=correlation_id,
        entities=Entities.from_lists(people=people, activities=activities),
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
