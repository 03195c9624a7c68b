"""
Tests for execution/legis_rag/context_builder.py

Covers: language detection, snippets, rerank ordering and filtering,
        degraded rerank, snippet dedup, citation numbering, prompt budget,
        hydration (success, failure), over-fetch sizing, and whole-context
        caching.
"""

from unittest.mock import MagicMock, patch

import pytest

from conftest import MockReranker, make_candidate


def _candidates(n=3):
    return [
        make_candidate(f"C-46/en/s{90 + i}", 0.9 - i * 0.1, content=f"Provision {i} about firearms.")
        for i in range(n)
    ]


def _builder(reranker=None, hydrator=None, retriever=None, cache=None, **config):
    from execution.legis_rag.context_builder import ContextBuilder, ContextConfig
    return ContextBuilder(
        retriever=retriever,
        reranker=reranker,
        hydrator=hydrator,
        cache=cache,
        config=ContextConfig(**config),
    )


@pytest.fixture
def redis_cache():
    import fakeredis
    from execution.legis_rag.cache import RedisCache
    return RedisCache(fakeredis.FakeRedis(decode_responses=True))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestDetectLanguage:
    """Tests for detect_language()."""

    @pytest.mark.parametrize("text,expected", [
        ("Qui peut demander la citoyenneté?", "fr"),
        ("Quelles sont les conditions pour un visa", "fr"),
        ("la résidence permanente", "fr"),
        ("Who may apply for citizenship?", "en"),
        ("section de", "en"),
        ("", "en"),
        (None, "en"),
    ])
    def test_detection(self, text, expected):
        from execution.legis_rag.context_builder import detect_language
        assert detect_language(text).language == expected

    def test_empty_has_zero_confidence(self):
        from execution.legis_rag.context_builder import detect_language
        assert detect_language("   ").confidence == 0.0


class TestMakeSnippet:
    """Tests for make_snippet()."""

    def test_short_text_unchanged_but_collapsed(self):
        from execution.legis_rag.context_builder import make_snippet
        assert make_snippet("  Every  person\n\nwho  ") == "Every person who"

    def test_cut_at_sentence_end(self):
        from execution.legis_rag.context_builder import make_snippet

        text = "A" * 250 + ". " + "b" * 400
        snippet = make_snippet(text)
        assert snippet == "A" * 250 + ".…"

    def test_hard_cut_without_sentence_end(self):
        from execution.legis_rag.context_builder import SNIPPET_MAX_CHARS, make_snippet

        snippet = make_snippet("x" * 600)
        assert snippet == "x" * SNIPPET_MAX_CHARS + "…"

    def test_early_sentence_end_ignored(self):
        from execution.legis_rag.context_builder import make_snippet

        text = "Short. " + "y" * 600
        assert make_snippet(text, 300) == text[:300] + "…"


# ---------------------------------------------------------------------------
# build_context
# ---------------------------------------------------------------------------

class TestBuildContext:
    """Tests for ContextBuilder.build_context()."""

    def test_empty_candidates(self):
        context = _builder().build_context("firearm licence", [])
        assert context.prompt == "No legislative results found."
        assert context.citations == []
        assert context.hydrated_sources == []

    def test_empty_candidates_french(self):
        context = _builder().build_context("Qui peut demander la citoyenneté?", [])
        assert context.language == "fr"
        assert context.prompt == "Aucun résultat législatif trouvé."

    def test_empty_query_rejected(self):
        from execution.legis_rag.errors import InvalidQuery

        with pytest.raises(InvalidQuery):
            _builder().build_context("  ", _candidates())

    def test_rerank_order_and_numbering(self):
        reranker = MockReranker({"C-46/en/s90": 0.2, "C-46/en/s91": 0.9, "C-46/en/s92": 0.5})
        context = _builder(reranker=reranker).build_context("firearm licence", _candidates())

        assert [c.prefixed_id for c in context.citations] == ["L1", "L2", "L3"]
        assert [c.id for c in context.citations] == [1, 2, 3]
        assert context.citations[0].text_en == "[Criminal Code, s s91]"
        assert context.prompt.startswith("Legislative context:\n- [L1] (act_section) Criminal Code, s s91\n")

    def test_low_rerank_scores_dropped(self):
        reranker = MockReranker({"C-46/en/s90": 0.05}, default=0.6)
        context = _builder(reranker=reranker).build_context("firearm licence", _candidates())

        assert len(context.citations) == 2
        assert "s s90" not in context.prompt

    def test_rerank_failure_uses_hybrid_order(self):
        reranker = MockReranker(fail=True)
        context = _builder(reranker=reranker).build_context("firearm licence", _candidates())

        assert [c.text_en for c in context.citations] == [
            "[Criminal Code, s s90]", "[Criminal Code, s s91]", "[Criminal Code, s s92]",
        ]
        assert reranker.calls == 1

    def test_no_reranker_uses_hybrid_order(self):
        candidates = list(reversed(_candidates()))
        context = _builder().build_context("firearm licence", candidates)
        assert context.citations[0].text_en == "[Criminal Code, s s90]"

    def test_top_n_truncates(self):
        context = _builder().build_context("firearm licence", _candidates(6), top_n=2)
        assert [c.prefixed_id for c in context.citations] == ["L1", "L2"]

    def test_duplicate_snippets_collapsed(self):
        candidates = [
            make_candidate("C-46/en/s91", 0.9, content="Same   text about firearms."),
            make_candidate("C-46/en/s92", 0.8, content="same text about FIREARMS."),
            make_candidate("C-46/en/s93", 0.7, content="Different text."),
        ]
        context = _builder().build_context("firearm licence", candidates)
        assert [c.text_en for c in context.citations] == [
            "[Criminal Code, s s91]", "[Criminal Code, s s93]",
        ]

    def test_marginal_note_in_label(self):
        candidates = [make_candidate("C-46/en/s91", 0.9, marginal_note="Unauthorized possession of firearm")]
        context = _builder().build_context("firearm licence", candidates)
        assert "Criminal Code, s s91 (Unauthorized possession of firearm)" in context.prompt

    def test_sources_list_with_urls(self):
        context = _builder().build_context("firearm licence", _candidates(1))
        assert context.prompt.endswith(
            "Sources:\n  [L1] [Criminal Code, s s90] "
            "(https://laws-lois.justice.gc.ca/eng/acts/C-46/page-1.html#secs90)"
        )

    def test_french_labels(self):
        candidates = [make_candidate("C-46/fr/s91", 0.9, language="fr", section_label="91")]
        context = _builder().build_context("Qui peut posséder une arme à feu?", candidates, language="fr")

        assert context.prompt.startswith("Contexte législatif:\n- [L1] (act_section) Criminal Code, art 91")
        assert "[L1] [Criminal Code, art 91]" in context.prompt

    def test_budget_limits_blocks_and_sources(self):
        candidates = [
            make_candidate(f"C-46/en/s{i}", 0.9 - i * 0.01, content=f"Provision {i}. " + "z" * 300)
            for i in range(5)
        ]
        context = _builder(max_prompt_chars=600).build_context("firearm licence", candidates)

        body, sources = context.prompt.split("Sources:\n")
        assert len(context.prompt) <= 600
        assert 0 < body.count("- [L") < 5
        assert "[L1]" in sources
        assert len(context.citations) == 5

    def test_many_citations_stay_within_budget(self):
        candidates = [
            make_candidate(f"C-46/en/s{i}", 0.99 - i * 0.01, content=f"Provision {i} on firearms.")
            for i in range(30)
        ]
        context = _builder(max_prompt_chars=300).build_context("firearm licence", candidates, top_n=30)

        assert len(context.prompt) <= 300
        assert "Sources:" in context.prompt
        assert len(context.citations) == 30

    def test_every_block_has_its_source_line(self):
        candidates = [
            make_candidate(f"C-46/en/s{i}", 0.99 - i * 0.01, content=f"Provision {i} on firearms.")
            for i in range(10)
        ]
        context = _builder(max_prompt_chars=700).build_context("firearm licence", candidates, top_n=10)

        body, sources = context.prompt.split("Sources:\n")
        shown = body.count("- [L")
        assert shown > 0
        assert all(f"  [L{n}] " in sources for n in range(1, shown + 1))


class TestHydration:
    """Tests for hydration inside build_context()."""

    def test_hydrated_sources_attached(self):
        from execution.legis_rag.hydrate import HydratedSource

        source = HydratedSource(source_type="act", markdown="# Criminal Code", language_used="en", id="act-C-46")
        hydrator = MagicMock()
        hydrator.hydrate_top_source.return_value = [source]

        reranker = MockReranker({"C-46/en/s92": 0.9})
        context = _builder(reranker=reranker, hydrator=hydrator).build_context("firearm", _candidates())

        assert context.hydrated_sources == [source]
        ranked, lang = hydrator.hydrate_top_source.call_args.args
        assert ranked[0].source_id == "C-46/en/s92"
        assert lang == "en"

    def test_hydration_failure_gives_empty(self):
        hydrator = MagicMock()
        hydrator.hydrate_top_source.side_effect = RuntimeError("boom")

        context = _builder(hydrator=hydrator).build_context("firearm", _candidates())
        assert context.hydrated_sources == []
        assert len(context.citations) == 3

    def test_hydration_disabled(self):
        hydrator = MagicMock()
        context = _builder(hydrator=hydrator, hydrate=False).build_context("firearm", _candidates())
        hydrator.hydrate_top_source.assert_not_called()
        assert context.hydrated_sources == []


# ---------------------------------------------------------------------------
# get_context
# ---------------------------------------------------------------------------

class TestGetContext:
    """Tests for ContextBuilder.get_context()."""

    @pytest.fixture
    def retriever(self):
        stub = MagicMock()
        stub.search.return_value = _candidates()
        return stub

    @pytest.mark.parametrize("limit,fetch", [(None, 50), (5, 50), (40, 80), (80, 100), (500, 100)])
    def test_over_fetch_size(self, retriever, limit, fetch):
        _builder(retriever=retriever).get_context("firearm licence", limit=limit)
        assert retriever.search.call_args.kwargs["limit"] == fetch

    def test_detected_language_passed(self, retriever):
        context = _builder(retriever=retriever).get_context("Qui peut demander la citoyenneté?")
        assert retriever.search.call_args.kwargs["language"] == "fr"
        assert context.language == "fr"

    def test_pinned_language(self, retriever):
        _builder(retriever=retriever).get_context("citizenship", language="fr")
        assert retriever.search.call_args.kwargs["language"] == "fr"

    def test_empty_query(self, retriever):
        from execution.legis_rag.errors import InvalidQuery

        with pytest.raises(InvalidQuery):
            _builder(retriever=retriever).get_context("")
        retriever.search.assert_not_called()

    def test_retrieval_errors_propagate(self, retriever):
        from execution.legis_rag.errors import RetrievalUnavailable

        retriever.search.side_effect = RetrievalUnavailable("down", leg="vector")
        with pytest.raises(RetrievalUnavailable):
            _builder(retriever=retriever).get_context("firearm")

    def test_cached_context_identical(self, retriever, redis_cache):
        builder = _builder(retriever=retriever, cache=redis_cache)

        first = builder.get_context("firearm licence", limit=3)
        second = builder.get_context("firearm licence", limit=3)

        assert retriever.search.call_count == 1
        assert second.prompt == first.prompt
        assert second.citations == first.citations

    def test_cache_key_varies_with_limit_and_pinned_language(self, retriever, redis_cache):
        builder = _builder(retriever=retriever, cache=redis_cache)

        builder.get_context("firearm licence", limit=3)
        builder.get_context("firearm licence", limit=4)
        builder.get_context("firearm licence", limit=3, language="en")
        assert retriever.search.call_count == 3

    def test_cache_key_ignores_extra_whitespace(self, retriever, redis_cache):
        builder = _builder(retriever=retriever, cache=redis_cache)

        builder.get_context("firearm licence", limit=3)
        builder.get_context("  firearm \n licence ", limit=3)
        assert retriever.search.call_count == 1
        assert retriever.search.call_args.args[0] == "firearm licence"

    def test_cache_disabled_by_env(self, retriever, redis_cache, monkeypatch):
        monkeypatch.setenv("RAG_CACHE_DISABLE", "true")
        builder = _builder(retriever=retriever, cache=redis_cache)

        builder.get_context("firearm licence")
        builder.get_context("firearm licence")
        assert retriever.search.call_count == 2

    def test_unreadable_cache_entry_ignored(self, retriever, redis_cache):
        from execution.legis_rag.cache import hash_key

        redis_cache.set("leg:ctx:" + hash_key("firearm licence", 10), "{not json")
        context = _builder(retriever=retriever, cache=redis_cache).get_context("firearm licence")

        assert retriever.search.call_count == 1
        assert len(context.citations) == 3


class TestLegislationContext:
    """Tests for LegislationContext serialization."""

    def test_round_trip(self):
        from execution.legis_rag.context_builder import LegislationContext

        context = _builder().build_context("firearm licence", _candidates())
        assert LegislationContext.from_dict(context.to_dict()) == context


class TestFactory:
    """Tests for the process-wide builder."""

    def test_builder_wired_once(self, monkeypatch):
        from execution.legis_rag.cache import NullCache
        from execution.legis_rag.context_builder import ContextBuilder, get_context_builder

        monkeypatch.delenv("COHERE_API_KEY", raising=False)
        monkeypatch.delenv("EMBEDDING_PROVIDER", raising=False)
        with patch("execution.legis_rag.vector_store.VectorStore") as store_cls:
            first = get_context_builder()
            second = get_context_builder()

        assert first is second
        assert isinstance(first, ContextBuilder)
        assert isinstance(first.cache, NullCache)
        store_cls.return_value.connect.assert_called_once()
        assert first.hydrator.store is store_cls.return_value
