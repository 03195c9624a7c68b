"""
Embedding Service for Legislation RAG

Provides embeddings via Cohere (embed-multilingual-v3.0) or Voyage AI
(voyage-multilingual-2). Both models handle English and French, so one
index serves both official languages.

Architecture:
    BaseEmbeddingService  -- normalization, batching, retries, caching
        EmbeddingService          -- Cohere provider
        VoyageEmbeddingService    -- Voyage AI provider

Text is whitespace-normalized before it is embedded or hashed. Providers
truncate long inputs at their token budget, so very long chunks are not
embedded in full.
"""

import os
import re
import json
import time
import logging
from typing import Optional, Union
from dataclasses import dataclass

from .cache import CACHE_TTL, NullCache, hash_key

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_for_embedding(text: str) -> str:
    """Newlines to spaces, collapse whitespace, trim."""
    return _WHITESPACE.sub(" ", text.replace("\n", " ")).strip()


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "cohere"  # "cohere" or "voyage"
    model: str = "embed-multilingual-v3.0"
    dimensions: int = 1024
    batch_size: int = 96  # Cohere accepts up to 96 texts per call
    max_tokens_per_batch: int = 100000
    chars_per_token: float = 4.0
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0
    use_cache: bool = True


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Provides shared functionality:
    - Whitespace normalization of inputs
    - Batched embedding with bounded retries per batch
    - Memory cache plus an optional shared key-value cache
    - Document vs query input type distinction

    Subclasses implement _init_client() and _call_provider(), and set:
    - _provider_name: Human-readable provider name for error messages
    - _env_var_name: Environment variable name for the API key
    - _doc_input_type / _query_input_type: provider input types
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None, cache=None):
        """
        Initialize embedding service.

        Args:
            config: Optional configuration. Uses defaults if not provided.
            cache: Optional shared cache (RedisCache). Defaults to no shared cache.
        """
        self.config = config or EmbeddingConfig()
        self._client = None
        self._memory_cache: dict[str, list[float]] = {}
        self._shared_cache = cache or NullCache()

        self._init_client()

    def _init_client(self):
        """Initialize the provider-specific API client. Must be overridden by subclasses."""
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _call_provider(self, texts: list[str], input_type: str) -> list[list[float]]:
        """Embed one batch with the provider API. Must be overridden by subclasses."""
        raise NotImplementedError("Subclasses must implement _call_provider()")

    def _require_client(self) -> None:
        if not self._client:
            raise RuntimeError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into batches respecting both item count and token limits."""
        batches = []
        current_batch = []
        current_tokens = 0
        cpt = self.config.chars_per_token

        for text in texts:
            est_tokens = len(text) / cpt
            if current_batch and (
                len(current_batch) >= self.config.batch_size
                or current_tokens + est_tokens > self.config.max_tokens_per_batch
            ):
                batches.append(current_batch)
                current_batch = []
                current_tokens = 0
            current_batch.append(text)
            current_tokens += est_tokens

        if current_batch:
            batches.append(current_batch)

        return batches

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for document chunks.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, in input order
        """
        if not texts:
            return []
        self._require_client()

        normalized = [normalize_for_embedding(t) for t in texts]
        batches = self._create_batches(normalized)

        logger.info(
            f"Embedding {len(texts)} chunks in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        embeddings = []
        for batch_idx, batch in enumerate(batches):
            embeddings.extend(self._embed_batch(batch, input_type=self._doc_input_type))

            if (batch_idx + 1) % 10 == 0:
                logger.info(f"Processed batch {batch_idx + 1}/{len(batches)}")

        return embeddings

    def embed_query(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Uses the provider's query input type for better query-document matching.
        """
        self._require_client()
        result = self._embed_batch([normalize_for_embedding(query)], input_type=self._query_input_type)
        return result[0] if result else []

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        """Embed a batch, serving cached vectors and retrying provider failures."""
        results: list[Optional[list[float]]] = [None] * len(texts)
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached = self._get_cached(self._get_cache_key(text, input_type))
            if cached is not None:
                results[i] = cached
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            embeddings = self._call_with_retries(uncached_texts, input_type)
            for idx, embedding in zip(uncached_indices, embeddings):
                self._set_cached(self._get_cache_key(texts[idx], input_type), embedding)
                results[idx] = embedding

        return results

    def _call_with_retries(self, texts: list[str], input_type: str) -> list[list[float]]:
        attempts = self.config.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._call_provider(texts, input_type)
            except Exception as e:
                if attempt == attempts:
                    logger.error(f"{self._provider_name} embedding failed after {attempts} attempts: {e}")
                    raise
                logger.warning(
                    f"{self._provider_name} embedding attempt {attempt} failed: {e}. Retrying."
                )
                time.sleep(self.config.retry_backoff_seconds * attempt)
        return []

    def _get_cache_key(self, text: str, input_type: str) -> str:
        """Cache key for text: emb:{sha256(model|input_type|text)}."""
        return "emb:" + hash_key(self.config.model, input_type, text)

    def _get_cached(self, key: str) -> Optional[list[float]]:
        if not self.config.use_cache:
            return None

        if key in self._memory_cache:
            return self._memory_cache[key]

        raw = self._shared_cache.get(key)
        if raw is not None:
            try:
                embedding = json.loads(raw)
            except ValueError as e:
                logger.debug(f"Discarding unreadable cached embedding {key}: {e}")
                return None
            self._memory_cache[key] = embedding
            return embedding

        return None

    def _set_cached(self, key: str, embedding: list[float]) -> None:
        if not self.config.use_cache:
            return
        self._memory_cache[key] = embedding
        self._shared_cache.set(key, json.dumps(embedding), ttl_seconds=CACHE_TTL["embedding"])

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


class EmbeddingService(BaseEmbeddingService):
    """
    Generates embeddings using Cohere's embed-multilingual-v3.0 model.

    - 1024-dimensional embeddings
    - search_document / search_query input types
    - Long inputs truncated from the end by the API
    """

    _provider_name = "Cohere"
    _env_var_name = "COHERE_API_KEY"
    _doc_input_type = "search_document"
    _query_input_type = "search_query"

    def _init_client(self):
        """Initialize the Cohere client."""
        api_key = os.getenv("COHERE_API_KEY")

        if not api_key:
            logger.warning(
                "COHERE_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        import cohere
        self._client = cohere.Client(api_key)
        logger.info(f"Cohere client initialized with model {self.config.model}")

    def _call_provider(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
            truncate="END",
        )
        return list(response.embeddings)


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using Voyage AI's voyage-multilingual-2 model.

    - 1024-dimensional embeddings
    - document / query input types
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        """Initialize the Voyage AI client."""
        api_key = os.getenv("VOYAGE_API_KEY")

        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get an API key at https://dash.voyageai.com/"
            )
            return

        import voyageai
        self._client = voyageai.Client(api_key=api_key)
        logger.info(f"Voyage AI client initialized with model {self.config.model}")

    def _call_provider(self, texts: list[str], input_type: str) -> list[list[float]]:
        result = self._client.embed(
            texts,
            model=self.config.model,
            input_type=input_type,
            truncation=True,
        )
        return list(result.embeddings)


def get_embedding_service(
    provider: Optional[str] = None,
    language_config=None,
    cache=None,
) -> Union[EmbeddingService, VoyageEmbeddingService]:
    """
    Factory function to get the configured embedding service.

    Args:
        provider: "cohere" (default) or "voyage". Falls back to EMBEDDING_PROVIDER.
        language_config: Optional LanguageConfig overriding model and provider
        cache: Optional shared cache for embeddings

    Returns:
        Configured embedding service
    """
    prov = provider or os.getenv("EMBEDDING_PROVIDER", "cohere")
    model = None
    if language_config is not None:
        model = language_config.embedding_model
        prov = provider or language_config.embedding_provider

    if prov == "voyage":
        config = EmbeddingConfig(
            provider="voyage",
            model=model if model and model.startswith("voyage") else "voyage-multilingual-2",
            dimensions=1024,
            batch_size=128,
            chars_per_token=2.0,
        )
        return VoyageEmbeddingService(config, cache=cache)

    config = EmbeddingConfig(
        provider="cohere",
        model=model or "embed-multilingual-v3.0",
        dimensions=1024,
        batch_size=96,
    )
    return EmbeddingService(config, cache=cache)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = get_embedding_service()
    query = " ".join(sys.argv[1:]) or "Qui peut demander la citoyenneté canadienne?"

    print(f"Query: {query}")
    embedding = service.embed_query(query)
    print(f"Embedding dimensions: {len(embedding)}")
    print(f"First 10 values: {embedding[:10]}")
