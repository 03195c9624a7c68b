"""
Hybrid Retriever for Legislation

Combines semantic (vector) search with keyword (full-text) search using a
fixed linear blend:

    hybrid = 0.7 * vector + 0.3 * keyword (+ 0.15 when the query appears verbatim)

The two legs run in parallel. The keyword leg is best-effort (a failure or
timeout contributes 0); the vector leg is required.
"""

import re
import time
import logging
from typing import Optional
from dataclasses import dataclass, field, replace as _replace
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from .chunker import resource_key
from .errors import InvalidQuery, RetrievalUnavailable

logger = logging.getLogger(__name__)

# Hybrid weights (vector dominant, sum to 1.0)
VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
EXACT_MATCH_BOOST = 0.15

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SIMILARITY_THRESHOLD = 0.4

# Score bump for defined terms in definition-oriented search
TERM_BOOST = 0.15

_WHITESPACE = re.compile(r"\s+")


def hybrid_score(vector: float, keyword: float, exact_match: bool = False) -> float:
    """Blend leg scores. Monotone non-decreasing in both inputs."""
    score = VECTOR_WEIGHT * vector + KEYWORD_WEIGHT * keyword
    if exact_match:
        score += EXACT_MATCH_BOOST
    return score


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(1, int(limit)), MAX_LIMIT)


def _normalize_for_match(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip().lower()


def _remaining(deadline: float) -> float:
    return max(0.0, deadline - time.monotonic())


@dataclass
class RetrievedCandidate:
    """A search hit with per-leg and blended scores."""
    source_id: str
    content: str
    vector_score: float = 0.0
    keyword_score: float = 0.0
    hybrid_score: float = 0.0
    exact_match: bool = False
    rerank_score: Optional[float] = None
    metadata: dict = field(default_factory=dict)

    @property
    def source_type(self) -> str:
        return self.metadata.get("source_type", "unknown")

    @property
    def resource_key(self) -> str:
        return resource_key(self.metadata)

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "content": self.content,
            "vector_score": self.vector_score,
            "keyword_score": self.keyword_score,
            "hybrid_score": self.hybrid_score,
            "exact_match": self.exact_match,
            "rerank_score": self.rerank_score,
            "metadata": self.metadata,
        }


def hybrid_rank_key(candidate: RetrievedCandidate):
    """Hybrid score descending, then source id ascending."""
    return (-candidate.hybrid_score, candidate.source_id)


def dedupe_by_resource(candidates: list[RetrievedCandidate]) -> list[RetrievedCandidate]:
    """Keep one candidate per resource key, the one with the higher hybrid score."""
    best: dict[str, RetrievedCandidate] = {}
    for candidate in candidates:
        key = candidate.resource_key
        current = best.get(key)
        if current is None or hybrid_rank_key(candidate) < hybrid_rank_key(current):
            best[key] = candidate
    return list(best.values())


@dataclass
class RetrievalConfig:
    """Configuration for hybrid retrieval."""
    # Candidates fetched per leg, as a multiple of the requested limit
    leg_fetch_multiplier: int = 2

    # Vector floor; keyword hits qualify regardless
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD

    # Per-leg timeout (seconds) for a single search request
    leg_timeout_seconds: float = 10.0

    # Full-text configuration for the keyword leg
    fts_language: str = "simple"

    # Retry without the language filter when it yields nothing
    language_fallback: bool = True


class HybridRetriever:
    """
    Hybrid retrieval over the legislation index.

    Pipeline:
    1. Parallel vector (embed + cosine search) and keyword legs
    2. Keyword ranks normalized to 0..1 by the leg maximum
    3. Linear blend with exact-match boost
    4. Dedup by resource, order by hybrid score, truncate
    """

    def __init__(
        self,
        vector_store,
        embedding_service,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retriever.

        Args:
            vector_store: VectorStore or InMemoryVectorStore instance
            embedding_service: Embedding service instance
            config: Optional retrieval configuration
        """
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or RetrievalConfig()

    def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
    ) -> list[RetrievedCandidate]:
        """
        Run hybrid search.

        Args:
            query: Natural-language query
            limit: Number of results (clamped to 1..100)
            language: Optional "en"/"fr" filter
            source_types: Optional source type filter

        Returns:
            Candidates ordered by hybrid score, ties by source id

        Raises:
            InvalidQuery: query is empty or whitespace
            RetrievalUnavailable: the vector leg (or query embedding) failed
        """
        if query is None or not query.strip():
            raise InvalidQuery(query=query)
        query = query.strip()
        limit = clamp_limit(limit)

        start_time = time.time()
        candidates = self._search_once(query, limit, language, source_types)

        if language and not candidates and self.config.language_fallback:
            logger.info(f"No {language} results, retrying without language filter")
            candidates = self._search_once(query, limit, None, source_types)

        elapsed = (time.time() - start_time) * 1000
        logger.info(f"Returning {len(candidates)} candidates in {elapsed:.0f}ms")
        return candidates

    def search_with_definitions(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
    ) -> list[RetrievedCandidate]:
        """
        Definition-oriented search ("what does X mean").

        Defined terms and general results are searched in parallel; terms get
        TERM_BOOST (capped at 1.0) so they lead the merged list.
        """
        if query is None or not query.strip():
            raise InvalidQuery(query=query)
        limit = clamp_limit(limit)

        with ThreadPoolExecutor(max_workers=2) as executor:
            terms_future = executor.submit(self.search, query, limit, language, ["defined_term"])
            general_future = executor.submit(self.search, query, limit, language, source_types)
            term_results = terms_future.result()
            general_results = general_future.result()

        boosted = [
            _replace(c, hybrid_score=min(1.0, c.hybrid_score + TERM_BOOST))
            for c in term_results
        ]
        merged = dedupe_by_resource(boosted + general_results)
        merged.sort(key=hybrid_rank_key)
        return merged[:limit]

    # =========================================================================
    # Legs
    # =========================================================================

    def _vector_leg(self, query, top_k, language, source_types):
        embedding = self.embeddings.embed_query(query)
        if not embedding:
            raise RuntimeError("empty query embedding")
        return self.store.search(
            query_embedding=embedding,
            top_k=top_k,
            language=language,
            source_types=source_types,
            min_score=0.0,
        )

    def _keyword_leg(self, query, top_k, language, source_types):
        return self.store.keyword_search(
            query=query,
            top_k=top_k,
            language=language,
            source_types=source_types,
            fts_language=self.config.fts_language,
        )

    def _search_once(
        self,
        query: str,
        limit: int,
        language: Optional[str],
        source_types: Optional[list[str]],
    ) -> list[RetrievedCandidate]:
        top_k = limit * self.config.leg_fetch_multiplier
        timeout = self.config.leg_timeout_seconds

        executor = ThreadPoolExecutor(max_workers=2)
        try:
            deadline = time.monotonic() + timeout
            vector_future = executor.submit(self._vector_leg, query, top_k, language, source_types)
            keyword_future = executor.submit(self._keyword_leg, query, top_k, language, source_types)

            try:
                keyword_results = keyword_future.result(timeout=_remaining(deadline))
            except FutureTimeout:
                logger.warning(f"Keyword search timed out after {timeout}s. Using vector scores only.")
                keyword_results = []
            except Exception as e:
                logger.warning(f"Keyword search failed: {e}. Using vector scores only.")
                keyword_results = []

            try:
                vector_results = vector_future.result(timeout=_remaining(deadline))
            except FutureTimeout:
                raise RetrievalUnavailable(f"Vector search timed out after {timeout}s", leg="vector")
            except Exception as e:
                logger.error(f"Vector search failed: {e}")
                raise RetrievalUnavailable(f"Vector search failed: {e}", leg="vector") from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(
            f"Vector results: {len(vector_results)}, keyword results: {len(keyword_results)}"
        )
        return self._merge(query, vector_results, keyword_results, limit)

    def _merge(self, query, vector_results, keyword_results, limit) -> list[RetrievedCandidate]:
        max_rank = max((r.score for r in keyword_results), default=0.0)
        needle = _normalize_for_match(query)

        merged: dict[str, RetrievedCandidate] = {}
        for r in vector_results:
            merged[r.source_id] = RetrievedCandidate(
                source_id=r.source_id,
                content=r.content,
                vector_score=max(0.0, r.score),
                metadata=dict(r.metadata),
            )

        keyword_hits = set()
        for r in keyword_results:
            keyword_hits.add(r.source_id)
            score = r.score / max_rank if max_rank > 0 else 0.0
            candidate = merged.get(r.source_id)
            if candidate is None:
                merged[r.source_id] = RetrievedCandidate(
                    source_id=r.source_id,
                    content=r.content,
                    keyword_score=score,
                    metadata=dict(r.metadata),
                )
            else:
                candidate.keyword_score = max(candidate.keyword_score, score)

        candidates = []
        for candidate in merged.values():
            qualifies = (
                candidate.source_id in keyword_hits
                or candidate.vector_score >= self.config.similarity_threshold
            )
            if not qualifies:
                continue
            candidate.exact_match = bool(needle) and needle in _normalize_for_match(candidate.content)
            candidate.hybrid_score = hybrid_score(
                candidate.vector_score, candidate.keyword_score, candidate.exact_match
            )
            candidates.append(candidate)

        candidates = dedupe_by_resource(candidates)
        candidates.sort(key=hybrid_rank_key)
        return candidates[:limit]


# Factory function
def get_retriever(
    vector_store,
    embedding_service,
    config: Optional[RetrievalConfig] = None,
) -> HybridRetriever:
    """Get configured retriever instance."""
    return HybridRetriever(vector_store, embedding_service, config)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    from .vector_store import VectorStore
    from .embeddings import get_embedding_service

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    store = VectorStore()
    store.connect()
    retriever = HybridRetriever(store, get_embedding_service())

    query = " ".join(sys.argv[1:]) or "who may apply for citizenship"

    print(f"\nSearching for: {query}")
    print("-" * 50)

    for i, c in enumerate(retriever.search(query, limit=5), 1):
        print(f"\n{i}. [{c.source_type}] {c.metadata.get('document_title')} "
              f"s {c.metadata.get('section_label') or '-'} (hybrid: {c.hybrid_score:.4f})")
        print(f"   vector={c.vector_score:.3f} keyword={c.keyword_score:.3f} exact={c.exact_match}")
        print(f"   Preview: {c.content[:200]}...")
