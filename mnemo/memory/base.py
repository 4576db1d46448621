"""
Base interfaces and data structures for the dual-store memory engine.

A memory lives in two places:
- a RecordStore, the durable source of truth for what was said
- a VectorIndex, which holds its embedding for similarity search

The two are joined by a correlation ID generated before either write,
so neither store has to know about the other's keys.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..errors import IndexWriteFailed


def utc_now() -> datetime:
    """Timezone-aware creation timestamp."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Entities:
    """Structured annotation attached to a memory at creation."""
    people: frozenset[str] = frozenset()
    activities: frozenset[str] = frozenset()

    @classmethod
    def from_lists(cls, people=None, activities=None) -> "Entities":
        return cls(
            people=frozenset(p for p in (people or []) if p),
            activities=frozenset(a for a in (activities or []) if a),
        )

    def is_empty(self) -> bool:
        return not self.people and not self.activities


@dataclass(frozen=True)
class MemoryRecord:
    """
    The durable record of one utterance.

    Records are never updated in place. ``id`` is empty until the record
    store assigns one on insert.
    """
    owner_id: str
    raw_text: str
    correlation_id: str
    entities: Entities = field(default_factory=Entities)
    created_at: datetime = field(default_factory=utc_now)
    id: str = ""

    def to_payload(self) -> dict:
        """
        Index-side payload mirroring the record.

        Used for owner filtering inside the index; display always goes
        through the record store.
        """
        return {
            "owner_id": self.owner_id,
            "raw_text": self.raw_text,
            "created_at": self.created_at.isoformat(),
            "people": sorted(self.entities.people),
            "activities": sorted(self.entities.activities),
        }


@dataclass(frozen=True)
class VectorHit:
    """A raw hit from the similarity index."""
    id: str  # correlation ID
    score: float  # 0-1, higher is more similar


@dataclass(frozen=True)
class RetrievalResult:
    """A ranked, record-hydrated search result. Never cached."""
    record: MemoryRecord
    score: float


@dataclass(frozen=True)
class ContextItem:
    """One entry of the context handed to a reply generator."""
    text: str
    created_at: datetime


@dataclass
class IngestionResult:
    """
    Outcome of an ingestion.

    ``warning`` is set when the record was stored but the index write
    failed (degraded success).
    """
    record: MemoryRecord
    warning: Optional[IndexWriteFailed] = None

    @property
    def degraded(self) -> bool:
        return self.warning is not None


class EntityExtractor(ABC):
    """Annotates an utterance with the people and activities it mentions."""

    @abstractmethod
    async def extract(self, text: str) -> Entities:
        pass


class RecordStore(ABC):
    """
    Abstract interface for the primary record store.

    Implementations: SQLite (local), PostgreSQL (production)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if needed."""
        pass

    @abstractmethod
    async def insert(self, record: MemoryRecord) -> str:
        """
        Persist a new record.

        Returns:
            The store-assigned ID
        """
        pass

    @abstractmethod
    async def find_by_correlation_ids(self, correlation_ids: set[str]) -> dict[str, MemoryRecord]:
        """Batched lookup. Missing IDs are simply absent from the mapping."""
        pass

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: str,
        newest_first: bool = True,
        limit: int = 20,
    ) -> list[MemoryRecord]:
        """Chronological history for one owner."""
        pass

    @abstractmethod
    async def get(self, owner_id: str, record_id: str) -> Optional[MemoryRecord]:
        """Get one record, scoped to its owner."""
        pass

    @abstractmethod
    async def delete(self, owner_id: str, record_id: str) -> bool:
        """Delete one record. Returns False if it did not exist for this owner."""
        pass

    @abstractmethod
    async def count(self, owner_id: Optional[str] = None) -> int:
        """Number of stored records, optionally for one owner."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass


class VectorIndex(ABC):
    """
    Abstract interface for the similarity index.

    Implementations: ChromaDB (local), pgvector (production)
    """

    metric = "cosine"

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Vector dimension this index was configured for."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the index (create collections, etc.)."""
        pass

    @abstractmethod
    async def upsert(self, id: str, vector: list[float], payload: dict) -> None:
        """
        Store a vector under the given correlation ID.

        Raises on failure; the caller decides whether that is fatal.
        """
        pass

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        owner_id: str,
        limit: int = 5,
    ) -> list[VectorHit]:
        """
        Nearest neighbours by cosine similarity, restricted to one owner.

        The owner filter must be applied by the index itself.

        Returns:
            Hits ordered by descending score
        """
        pass

    @abstractmethod
    async def existing_ids(self, ids: set[str]) -> set[str]:
        """Which of the given correlation IDs have an entry."""
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        """Remove an entry; deleting a missing entry is not an error."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Get total number of indexed vectors."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass
