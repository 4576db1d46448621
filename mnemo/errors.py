"""
Error taxonomy for the memory engine.

Every error carries a stable ``code`` so callers (an HTTP layer, the CLI)
can tell failures apart without string matching, and a ``retryable`` flag
that says whether trying again later can help. The engine itself never
retries.
"""


class MnemoError(Exception):
    """Base class for all Mnemo errors."""
    code = "mnemo_error"
    retryable = False


class ValidationError(MnemoError):
    """Bad caller input. No writes were attempted."""
    code = "validation_error"


class ConfigurationError(MnemoError):
    """Deployment configuration is inconsistent (e.g. vector dimension mismatch)."""
    code = "configuration_error"


class EmbeddingUnavailable(MnemoError):
    """The embedding provider failed or timed out. No writes were attempted."""
    code = "embedding_unavailable"
    retryable = True


class RecordStoreError(MnemoError):
    """The primary record store rejected a read or write."""
    code = "record_store_error"
    retryable = True


class IndexQueryFailed(MnemoError):
    """The similarity index could not be queried; retrieval cannot degrade."""
    code = "index_query_failed"
    retryable = True


class IndexWriteFailed(MnemoError):
    """
    The record was persisted but its vector could not be indexed.

    This is a degraded success, not a failure: it is returned alongside the
    created record rather than raised. The record stays visible in
    chronological history and becomes searchable after a reindex.
    """
    code = "index_write_failed"
    retryable = True

    def __init__(self, message: str, record_id: str = "", correlation_id: str = ""):
        super().__init__(message)
        self.record_id = record_id
        self.correlation_id = correlation_id
