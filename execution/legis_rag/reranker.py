"""
Cross-Encoder Reranker for Legislation

Scores (query, candidate) pairs with Cohere's rerank-multilingual-v3.0 so
English and French provisions are judged on the same scale. Scores are
cached per query and candidate set.
"""

import os
import json
import logging
from typing import Optional
from dataclasses import dataclass

from .cache import CACHE_TTL, NullCache, hash_key
from .errors import RerankDegraded

logger = logging.getLogger(__name__)

MIN_RERANK_SCORE = 0.1


@dataclass
class RerankConfig:
    """Configuration for cross-encoder reranking."""
    model: str = "rerank-multilingual-v3.0"
    min_score: float = MIN_RERANK_SCORE  # Scores below this are dropped after a successful rerank
    use_cache: bool = True


class CohereReranker:
    """
    Cohere rerank client.

    score() returns one relevance score per candidate, in input order.
    Any failure (no API key, API error, malformed response) raises
    RerankDegraded; callers fall back to hybrid order.
    """

    def __init__(self, config: Optional[RerankConfig] = None, cache=None, client=None):
        """
        Args:
            config: Optional rerank configuration
            cache: Optional shared cache for scores
            client: Optional pre-built cohere.Client (tests inject a stub)
        """
        self.config = config or RerankConfig()
        self._cache = cache or NullCache()
        self._client = client
        if self._client is None:
            self._init_client()

    def _init_client(self):
        """Initialize Cohere reranker."""
        api_key = os.getenv("COHERE_API_KEY")
        if not api_key:
            logger.warning("COHERE_API_KEY not found. Reranking disabled.")
            return

        import cohere
        self._client = cohere.Client(api_key)
        logger.info(f"Cohere reranker initialized with model {self.config.model}")

    def _cache_key(self, query: str, candidates) -> str:
        ids = ",".join(c.source_id for c in candidates)
        return f"leg:rerank:{len(candidates)}:" + hash_key(query, ids)

    def score(self, query: str, candidates) -> list[float]:
        """
        Relevance score per candidate.

        Raises:
            RerankDegraded: reranking is unavailable for this request
        """
        if not candidates:
            return []
        if not self._client:
            raise RerankDegraded("Reranker client not initialized")

        cache_key = self._cache_key(query, candidates)
        if self.config.use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                try:
                    scores = json.loads(cached)
                    if len(scores) == len(candidates):
                        logger.debug("Rerank cache hit - returning cached scores")
                        return scores
                except ValueError:
                    pass

        try:
            response = self._client.rerank(
                model=self.config.model,
                query=query,
                documents=[c.content for c in candidates],
                top_n=len(candidates),
            )
            scores = [0.0] * len(candidates)
            for item in response.results:
                scores[item.index] = float(item.relevance_score)
        except Exception as e:
            raise RerankDegraded(f"Rerank request failed: {e}") from e

        logger.debug(f"Reranked {len(candidates)} candidates, top score {max(scores):.3f}")
        if self.config.use_cache:
            self._cache.set(cache_key, json.dumps(scores), ttl_seconds=CACHE_TTL["rerank"])
        return scores
