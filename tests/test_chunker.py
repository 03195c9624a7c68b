"""
Tests for execution/legis_rag/chunker.py

Covers: text cleaning and windowed splitting, section/term/publication/
        document chunks, chunk metadata for citations, resource keys and
        deterministic chunk ids.
"""

import pytest


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

class TestCleanText:
    """Tests for clean_text()."""

    def test_line_endings_and_blank_runs(self):
        from execution.legis_rag.chunker import clean_text
        assert clean_text("a\r\nb\n\n\n\nc  ") == "a\nb\n\nc"

    def test_none_is_empty(self):
        from execution.legis_rag.chunker import clean_text
        assert clean_text(None) == ""


class TestChunkText:
    """Tests for chunk_text()."""

    def test_short_text_single_piece(self):
        from execution.legis_rag.chunker import chunk_text
        assert chunk_text("One sentence.") == ["One sentence."]

    def test_empty_text(self):
        from execution.legis_rag.chunker import chunk_text
        assert chunk_text("   ") == []

    def test_long_text_splits_on_sentences_with_overlap(self):
        from execution.legis_rag.chunker import chunk_text

        text = "".join(f"Sentence number {i} is here. " for i in range(60))
        pieces = chunk_text(text, chunk_size=300, overlap=50, sentence_window=40)

        assert len(pieces) > 1
        assert all(p.endswith(".") for p in pieces)
        # consecutive pieces share text
        assert pieces[0][-20:] in pieces[1] or pieces[1][:20] in pieces[0]
        assert pieces[-1].endswith("Sentence number 59 is here.")

    def test_text_without_sentence_ends_still_splits(self):
        from execution.legis_rag.chunker import chunk_text

        pieces = chunk_text("x" * 1000, chunk_size=300, overlap=50, sentence_window=40)
        assert len(pieces) >= 3
        assert all(len(p) <= 300 for p in pieces)


# ---------------------------------------------------------------------------
# Document chunking
# ---------------------------------------------------------------------------

class TestChunkDocument:
    """Tests for LegislationChunker.chunk_document()."""

    def test_chunk_counts(self, chunker, sample_act):
        chunks = chunker.chunk_document(sample_act)
        by_type = {}
        for c in chunks:
            by_type[c.source_type] = by_type.get(c.source_type, 0) + 1

        assert by_type["act"] == 1
        assert by_type["defined_term"] == 3
        assert by_type["act_section"] == 5
        assert by_type["schedule"] == 6
        assert "publication_item" not in by_type

    def test_section_chunk_prefix_and_metadata(self, chunker, sample_act):
        chunks = chunker.chunk_section(sample_act, sample_act.get_section("11"))
        assert len(chunks) == 1
        chunk = chunks[0]

        assert chunk.content.startswith(
            "Immigration and Refugee Protection Act\nSection 11: Application before entering Canada\n\n"
        )
        assert chunk.source_type == "act_section"
        assert chunk.document_id == "I-2.5"
        assert chunk.language == "en"
        assert chunk.metadata["act_id"] == "I-2.5"
        assert chunk.metadata["regulation_id"] is None
        assert chunk.metadata["section_label"] == "11"
        assert chunk.metadata["part_label"] == "PART 1"
        assert chunk.metadata["hierarchy_path"] == "PART 1 Immigration to Canada"
        assert chunk.metadata["chunk_index"] == 0
        assert chunk.metadata["total_chunks"] == 1

    def test_schedule_chunk_type(self, chunker, sample_act):
        section = next(s for s in sample_act.sections if s.label == "SCHEDULE Item 1")
        chunk = chunker.chunk_section(sample_act, section)[0]
        assert chunk.source_type == "schedule"
        assert chunk.metadata["schedule_label"] == "SCHEDULE"

    def test_repealed_status_carried(self, chunker, sample_act):
        chunk = chunker.chunk_section(sample_act, sample_act.get_section("13"))[0]
        assert chunk.metadata["status"] == "repealed"

    def test_french_prefix(self, chunker, sample_act_fr):
        chunk = chunker.chunk_section(sample_act_fr, sample_act_fr.sections[0])[0]
        assert chunk.content.startswith("Loi sur la citoyenneté\nArticle 2: Définitions")

    def test_term_chunks(self, chunker, sample_act):
        terms = [c for c in chunker.chunk_document(sample_act) if c.source_type == "defined_term"]
        first = terms[0]
        assert first.metadata["term"] == "foreign national"
        assert first.metadata["paired_term"] == "étranger"
        assert first.metadata["term_id"] == "I-2.5/en/term/0"
        assert first.metadata["scope_type"] == "act"
        assert first.content.startswith("Immigration and Refugee Protection Act\nforeign national\n\n")

    def test_publication_chunks(self, chunker, sample_regulation):
        pubs = [c for c in chunker.chunk_document(sample_regulation) if c.source_type == "publication_item"]
        assert [c.metadata["block_type"] for c in pubs] == ["recommendation", "notice"]
        notice = pubs[1]
        assert notice.metadata["publication_index"] == 1
        assert notice.metadata["publication_requirement"] == "STATUTORY"
        assert notice.metadata["source_sections"] == ["5", "14"]
        assert notice.source_id == "SOR-2002-227/en/notice/1#0"

    def test_regulation_document_chunk(self, chunker, sample_regulation):
        doc_chunk = next(c for c in chunker.chunk_document(sample_regulation) if c.source_type == "regulation")
        assert "Enabling Act: Immigration and Refugee Protection Act" in doc_chunk.content
        assert doc_chunk.metadata["regulation_id"] == "SOR-2002-227"
        assert doc_chunk.metadata["consolidation_date"] == "2024-02-15"

    def test_config_can_disable_terms_and_document(self, sample_act):
        from execution.legis_rag.chunker import ChunkConfig, LegislationChunker

        chunker = LegislationChunker(ChunkConfig(include_defined_terms=False, include_document_chunk=False))
        types = {c.source_type for c in chunker.chunk_document(sample_act)}
        assert types == {"act_section", "schedule"}

    def test_chunk_ids_deterministic(self, chunker, sample_act):
        first = [c.chunk_id for c in chunker.chunk_document(sample_act)]
        second = [c.chunk_id for c in chunker.chunk_document(sample_act)]
        assert first == second
        assert len(set(first)) == len(first)


class TestLongSections:
    """Tests for splitting oversized sections."""

    def test_long_section_split_with_prefix(self, chunker, sample_act):
        from dataclasses import replace

        section = replace(
            sample_act.get_section("12"),
            content="".join(f"The Board may consider factor {i} in every claim. " for i in range(400)),
        )
        chunks = chunker.chunk_section(sample_act, section)

        assert len(chunks) > 1
        assert all(c.content.startswith("Immigration and Refugee Protection Act\nSection 12\n\n") for c in chunks)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)
        assert len({c.source_id for c in chunks}) == len(chunks)
        assert len({c.resource_key for c in chunks}) == len(chunks)


# ---------------------------------------------------------------------------
# Resource keys
# ---------------------------------------------------------------------------

class TestResourceKey:
    """Tests for resource_key()."""

    @pytest.mark.parametrize("metadata,expected", [
        ({"source_type": "act", "act_id": "C-46", "language": "fr", "chunk_index": 0},
         "act:C-46:meta:fr:0"),
        ({"source_type": "act_section", "act_id": "C-46", "section_id": "C-46/en/ordinary/4/s91", "chunk_index": 1},
         "act_section:C-46:C-46/en/ordinary/4/s91:1"),
        ({"source_type": "defined_term", "act_id": "C-46", "term_id": "C-46/en/term/3"},
         "term:C-46/en/term/3:C-46"),
        ({"source_type": "publication_item", "regulation_id": "SOR-1", "publication_type": "notice",
          "publication_index": 2, "language": "en"},
         "pub:SOR-1:notice:2:en"),
        ({"source_type": "bill"}, "bill:unknown:0"),
    ])
    def test_patterns(self, metadata, expected):
        from execution.legis_rag.chunker import resource_key
        assert resource_key(metadata) == expected

    def test_chunk_to_dict_includes_resource_key(self, chunker, sample_act):
        chunk = chunker.chunk_section(sample_act, sample_act.get_section("2"))[0]
        data = chunk.to_dict()
        assert data["resource_key"] == chunk.resource_key
        assert data["source_id"].endswith("#0")
