"""
Dual-store semantic memory.

Memories are written to a durable record store and indexed by embedding
in a vector index; retrieval searches the index and joins back to the
records.
"""

from .base import (
    ContextItem,
    Entities,
    EntityExtractor,
    IngestionResult,
    MemoryRecord,
    RecordStore,
    RetrievalResult,
    VectorHit,
    VectorIndex,
)
from .context import ContextAssembler
from .embeddings import EmbeddingProvider, create_embedding_provider
from .ingestion import MemoryIngestionService
from .memory_manager import MemoryManager, RepairReport, create_memory_manager
from .retrieval import RetrievalService

__all__ = [
    "ContextItem",
    "Entities",
    "EntityExtractor",
    "IngestionResult",
    "MemoryRecord",
    "RecordStore",
    "RetrievalResult",
    "VectorHit",
    "VectorIndex",
    "ContextAssembler",
    "EmbeddingProvider",
    "create_embedding_provider",
    "MemoryIngestionService",
    "MemoryManager",
    "RepairReport",
    "create_memory_manager",
    "RetrievalService",
]
