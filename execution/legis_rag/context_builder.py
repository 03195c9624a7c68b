"""
Legislation Context Builder

Turns a question into an LLM-ready context block with numbered citations:

    1. Detect query language (EN/FR) unless the caller pins one
    2. Over-fetch hybrid candidates
    3. Cross-encoder rerank (falls back to hybrid order when unavailable)
    4. Dedup by resource and snippet, truncate to top_n
    5. Number citations [L1]..[Ln] in final rank order
    6. Assemble the prompt within a character budget
    7. Hydrate the top source, concurrently with prompt assembly

Whole contexts are cached under leg:ctx:{sha256(query|limit)}.
"""

import re
import json
import logging
from typing import Optional
from dataclasses import dataclass, field, replace as _replace
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from .cache import CACHE_TTL, NullCache, hash_key, is_cache_disabled
from .citation import Citation, format_citation
from .errors import InvalidQuery, RerankDegraded
from .hydrate import HydratedSource
from .language_patterns import (
    CONTEXT_LABELS,
    FRENCH_ACCENT_PATTERN,
    FRENCH_WORD_PATTERN,
    get_labels,
)
from .reranker import MIN_RERANK_SCORE
from .retriever import MAX_LIMIT, clamp_limit, dedupe_by_resource, hybrid_rank_key

logger = logging.getLogger(__name__)

CITATION_PREFIX = "L"
MIN_CANDIDATES = 50
DEFAULT_TOP_N = 10
SNIPPET_MAX_CHARS = 480
SNIPPET_MIN_BOUNDARY = 200

_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Language detection
# =============================================================================

@dataclass
class LanguageDetection:
    language: str
    confidence: float


def detect_language(text: Optional[str]) -> LanguageDetection:
    """
    Guess EN/FR from stopwords and diacritics.

    Two French stopword hits, or one plus an accented letter, make it
    French. Anything else (including empty input) is English.
    """
    if not text or not text.strip():
        return LanguageDetection("en", 0.0)
    hits = len(FRENCH_WORD_PATTERN.findall(text))
    accented = FRENCH_ACCENT_PATTERN.search(text) is not None
    if hits >= 2 or (hits >= 1 and accented):
        return LanguageDetection("fr", 0.8)
    return LanguageDetection("en", 0.7)


# =============================================================================
# Context objects
# =============================================================================

@dataclass
class LegislationContext:
    """Prompt text plus the citations it references."""
    language: str
    prompt: str
    citations: list[Citation] = field(default_factory=list)
    hydrated_sources: list[HydratedSource] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "language": self.language,
            "prompt": self.prompt,
            "citations": [c.to_dict() for c in self.citations],
            "hydrated_sources": [h.to_dict() for h in self.hydrated_sources],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LegislationContext":
        return cls(
            language=data["language"],
            prompt=data["prompt"],
            citations=[Citation.from_dict(c) for c in data.get("citations", [])],
            hydrated_sources=[HydratedSource.from_dict(h) for h in data.get("hydrated_sources", [])],
        )


@dataclass
class ContextConfig:
    """Configuration for context assembly."""
    top_n: int = DEFAULT_TOP_N
    min_candidates: int = MIN_CANDIDATES  # Over-fetch floor for reranking
    max_prompt_chars: int = 16000
    snippet_max_chars: int = SNIPPET_MAX_CHARS
    min_rerank_score: float = MIN_RERANK_SCORE
    hydrate: bool = True
    hydration_timeout_seconds: float = 15.0
    use_cache: bool = True


def make_snippet(content: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """
    Whitespace-collapsed excerpt of at most max_chars.

    A cut ends at the last sentence end past SNIPPET_MIN_BOUNDARY, if any,
    and is marked with an ellipsis.
    """
    raw = _WHITESPACE.sub(" ", content or "").strip()
    cut = raw[:max_chars]
    last = max(cut.rfind(". "), cut.rfind("? "), cut.rfind("! "))
    if last > SNIPPET_MIN_BOUNDARY:
        cut = cut[: last + 1]
    return cut + ("…" if len(raw) > len(cut) else "")


def _rerank_order(candidate):
    return (-(candidate.rerank_score or 0.0), -candidate.hybrid_score, candidate.source_id)


class ContextBuilder:
    """
    Assembles LegislationContext objects.

    Usage:
        builder = ContextBuilder(retriever, reranker, hydrator, cache=get_cache())
        context = builder.get_context("Who may apply for citizenship?")
        print(context.prompt)
    """

    def __init__(
        self,
        retriever=None,
        reranker=None,
        hydrator=None,
        cache=None,
        config: Optional[ContextConfig] = None,
    ):
        """
        Args:
            retriever: HybridRetriever (required for get_context)
            reranker: Optional CohereReranker. Without one, hybrid order is used.
            hydrator: Optional LegislationHydrator
            cache: Optional shared cache for whole contexts
            config: Optional context configuration
        """
        self.retriever = retriever
        self.reranker = reranker
        self.hydrator = hydrator
        self.cache = cache or NullCache()
        self.config = config or ContextConfig()

    # =========================================================================
    # Full pipeline
    # =========================================================================

    def get_context(
        self,
        query: str,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> LegislationContext:
        """
        Retrieve, rerank and assemble a context for a query.

        Raises:
            InvalidQuery: query is empty
            RetrievalUnavailable: the store could not be searched
        """
        if query is None or not query.strip():
            raise InvalidQuery(query=query)
        query = _WHITESPACE.sub(" ", query).strip()
        limit = clamp_limit(limit if limit is not None else self.config.top_n)

        cache = NullCache() if (is_cache_disabled() or not self.config.use_cache) else self.cache
        key_parts = (query, limit) if language is None else (query, limit, language)
        cache_key = "leg:ctx:" + hash_key(*key_parts)

        cached = cache.get(cache_key)
        if cached is not None:
            try:
                context = LegislationContext.from_dict(json.loads(cached))
                logger.debug(f"Context cache hit {cache_key}")
                return context
            except (ValueError, KeyError, TypeError) as e:
                logger.debug(f"Ignoring unreadable cached context {cache_key}: {e}")

        lang = language or detect_language(query).language
        fetch = min(max(limit * 2, self.config.min_candidates), MAX_LIMIT)
        candidates = self.retriever.search(query, limit=fetch, language=lang)
        logger.info(f"Retrieved {len(candidates)} candidates (lang={lang}, limit={limit})")

        context = self.build_context(query, candidates, language=lang, top_n=limit)

        cache.set(cache_key, json.dumps(context.to_dict()), ttl_seconds=CACHE_TTL["context"])
        return context

    # =========================================================================
    # Assembly
    # =========================================================================

    def build_context(
        self,
        query: str,
        candidates: list,
        language: Optional[str] = None,
        top_n: int = DEFAULT_TOP_N,
    ) -> LegislationContext:
        """Rerank, dedupe and format candidates into a LegislationContext."""
        if query is None or not query.strip():
            raise InvalidQuery(query=query)
        lang = language or detect_language(query).language
        labels = get_labels(CONTEXT_LABELS, lang)

        if not candidates:
            return LegislationContext(language=lang, prompt=labels["empty"])

        ranked = self._rank(query, dedupe_by_resource(candidates))

        executor = None
        hydration_future = None
        if self.config.hydrate and self.hydrator is not None and ranked:
            executor = ThreadPoolExecutor(max_workers=1)
            hydration_future = executor.submit(self.hydrator.hydrate_top_source, ranked, lang)

        try:
            selected = self._select(ranked, top_n)
            citations = self._citations(selected)
            prompt = self._prompt(selected, citations, lang)
            hydrated = self._collect_hydration(hydration_future)
        finally:
            if executor is not None:
                executor.shutdown(wait=False)

        logger.info(
            f"Built context: {len(citations)} citations, {len(hydrated)} hydrated sources"
        )
        return LegislationContext(
            language=lang,
            prompt=prompt,
            citations=citations,
            hydrated_sources=hydrated,
        )

    def _rank(self, query: str, candidates: list) -> list:
        if self.reranker is None:
            return sorted(candidates, key=hybrid_rank_key)
        try:
            scores = self.reranker.score(query, candidates)
        except RerankDegraded as e:
            logger.warning(f"Reranking failed: {e}. Using hybrid order.")
            return sorted(candidates, key=hybrid_rank_key)

        reranked = [_replace(c, rerank_score=s) for c, s in zip(candidates, scores)]
        reranked.sort(key=_rerank_order)
        kept = [c for c in reranked if c.rerank_score >= self.config.min_rerank_score]
        logger.debug(f"Rerank kept {len(kept)} of {len(reranked)} candidates")
        return kept

    def _select(self, ranked: list, top_n: int) -> list:
        selected = []
        seen_snippets = set()
        for candidate in ranked:
            snippet = make_snippet(candidate.content, self.config.snippet_max_chars)
            normalized = snippet.lower()
            if normalized in seen_snippets:
                continue
            seen_snippets.add(normalized)
            selected.append((candidate, snippet))
            if len(selected) >= top_n:
                break
        return selected

    def _citations(self, selected: list) -> list[Citation]:
        citations = []
        for n, (candidate, _) in enumerate(selected, 1):
            citation = format_citation(candidate.source_type, candidate.metadata)
            citations.append(_replace(citation, id=n, prefixed_id=f"{CITATION_PREFIX}{n}"))
        return citations

    def _prompt(self, selected: list, citations: list[Citation], language: str) -> str:
        labels = get_labels(CONTEXT_LABELS, language)
        header = labels["header"]
        budget = self.config.max_prompt_chars

        source_lines = []
        for citation in citations:
            url = citation.url(language)
            source = f"  [{citation.prefixed_id}] {citation.text(language)}"
            source_lines.append(f"{source} ({url})" if url else source)

        # Every block is paid for together with its own sources line
        blocks = []
        used = len(header) + 1 + len(labels["sources"])
        for (candidate, snippet), citation, source in zip(selected, citations, source_lines):
            meta = candidate.metadata
            label = citation.title(language)
            if meta.get("section_label"):
                label += f", {labels['section']} {meta['section_label']}"
            if meta.get("marginal_note"):
                label += f" ({meta['marginal_note']})"
            block = f"- [{citation.prefixed_id}] ({candidate.source_type}) {label}\n  {snippet}"

            cost = len(block) + (2 if blocks else 1) + len(source) + 1
            if used + cost > budget:
                break
            blocks.append(block)
            used += cost

        sources = source_lines[:len(blocks)]
        for source in source_lines[len(blocks):]:
            if used + len(source) + 1 > budget:
                break
            sources.append(source)
            used += len(source) + 1

        if len(blocks) < len(citations):
            logger.debug(
                f"Prompt budget reached: {len(blocks)} blocks, "
                f"{len(sources)} of {len(citations)} sources listed"
            )

        lines = [header]
        if blocks:
            lines.append("\n\n".join(blocks))
        lines.append(labels["sources"])
        lines.extend(sources)
        return "\n".join(lines)[:budget]

    def _collect_hydration(self, future) -> list[HydratedSource]:
        if future is None:
            return []
        try:
            return future.result(timeout=self.config.hydration_timeout_seconds)
        except FutureTimeout:
            logger.warning(
                f"Hydration timed out after {self.config.hydration_timeout_seconds}s. "
                "Using no hydrated sources."
            )
        except Exception as e:
            logger.warning(f"Hydration failed: {e}. Using no hydrated sources.")
        return []


# =============================================================================
# Factory
# =============================================================================

_builder = None


def get_context_builder() -> ContextBuilder:
    """
    Process-wide ContextBuilder wired to PostgreSQL, Cohere and Redis.

    Connection settings come from POSTGRES_URL/DATABASE_URL, COHERE_API_KEY
    (or VOYAGE_API_KEY with EMBEDDING_PROVIDER=voyage) and REDIS_URL.
    """
    global _builder
    if _builder is None:
        from .cache import get_cache
        from .embeddings import get_embedding_service
        from .hydrate import LegislationHydrator
        from .reranker import CohereReranker
        from .retriever import HybridRetriever
        from .vector_store import VectorStore

        cache = get_cache()
        store = VectorStore()
        store.connect()
        _builder = ContextBuilder(
            retriever=HybridRetriever(store, get_embedding_service(cache=cache)),
            reranker=CohereReranker(cache=cache),
            hydrator=LegislationHydrator(store),
            cache=cache,
        )
    return _builder


def get_legislation_context(query: str, limit: Optional[int] = None) -> LegislationContext:
    """Convenience wrapper around the process-wide builder."""
    return get_context_builder().get_context(query, limit=limit)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    question = " ".join(sys.argv[1:]) or "Qui peut demander la citoyenneté?"
    result = get_legislation_context(question)

    print(result.prompt)
    for source in result.hydrated_sources:
        print("\n" + "=" * 60)
        print(f"{source.id} ({source.language_used})" + (f" - {source.note}" if source.note else ""))
        print(source.markdown[:2000])
