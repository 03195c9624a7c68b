"""
Error Taxonomy for Legislation RAG

Hard failures (bad document, bad query, store unreachable, unknown citation
type) propagate to the caller. Soft failures (rerank, hydration) are raised
inside their component and recovered by the context builder.
"""

from typing import Optional


class LegislationRagError(Exception):
    """Base class for all legislation RAG errors."""


class ParseError(LegislationRagError):
    """Raised when legislative markup cannot be turned into a document."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class InvalidQuery(LegislationRagError):
    """Raised for an empty or malformed query. Not retryable."""

    def __init__(self, message: str = "Query must not be empty", query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class RetrievalUnavailable(LegislationRagError):
    """Raised when the store cannot be reached. The caller may retry the request."""

    def __init__(self, message: str, leg: Optional[str] = None):
        super().__init__(message)
        self.leg = leg


class RerankDegraded(LegislationRagError):
    """Raised by the reranker when the cross-encoder signal is unavailable."""


class HydrationFailed(LegislationRagError):
    """Raised by the hydrator when the top source cannot be fetched."""

    def __init__(self, message: str, source_id: Optional[str] = None):
        super().__init__(message)
        self.source_id = source_id


class UnsupportedSourceType(LegislationRagError):
    """Raised when no citation formatter exists for a source type."""

    def __init__(self, source_type: str):
        super().__init__(f"No citation formatter for source type: {source_type!r}")
        self.source_type = source_type
