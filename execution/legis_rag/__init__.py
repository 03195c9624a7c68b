"""
Legislation RAG - Retrieval for Canadian Federal Legislation

This module provides:
- Parsing of Justice Canada act/regulation XML (English and French)
- Section, defined-term and publication chunking
- Hybrid (vector + keyword) search with cross-encoder reranking
- Prompt-ready context with bilingual citations and a hydrated top source
"""

from .document_parser import LegislationParser
from .chunker import LegislationChunker
from .embeddings import EmbeddingService
from .vector_store import VectorStore, InMemoryVectorStore
from .retriever import HybridRetriever
from .reranker import CohereReranker
from .hydrate import LegislationHydrator
from .context_builder import ContextBuilder, LegislationContext
from .citation import Citation, format_citation
from .indexer import LegislationIndexer

__all__ = [
    "LegislationParser",
    "LegislationChunker",
    "EmbeddingService",
    "VectorStore",
    "InMemoryVectorStore",
    "HybridRetriever",
    "CohereReranker",
    "LegislationHydrator",
    "ContextBuilder",
    "LegislationContext",
    "Citation",
    "format_citation",
    "LegislationIndexer",
]

__version__ = "0.1.0"
