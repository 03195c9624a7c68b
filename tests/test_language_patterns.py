"""
Tests for execution/legis_rag/language_patterns.py

Covers: French stopword/diacritic patterns, part headings, and that every
        bilingual label table carries the same keys in both languages.
"""

import pytest

from execution.legis_rag import language_patterns as lp


class TestFrenchPatterns:
    """Tests for the patterns used by language detection."""

    def test_stopwords_whole_words_only(self):
        assert len(lp.FRENCH_WORD_PATTERN.findall("Qui est le ministre")) == 4
        assert lp.FRENCH_WORD_PATTERN.findall("delete the lesson") == []

    def test_multiword_stopword(self):
        assert "projet de loi" in [m.lower() for m in lp.FRENCH_WORD_PATTERN.findall("Le projet de loi C-11")]

    @pytest.mark.parametrize("text,expected", [
        ("citoyenneté", True), ("Français", True), ("citizenship", False),
    ])
    def test_accents(self, text, expected):
        assert (lp.FRENCH_ACCENT_PATTERN.search(text) is not None) is expected


class TestPartHeading:
    """Tests for PART_HEADING_PATTERN."""

    @pytest.mark.parametrize("text,expected", [
        ("PART 1", True), ("Partie 2", True), ("  PARTIE III", True),
        ("Particulars", False), ("Interpretation", False),
    ])
    def test_match(self, text, expected):
        assert bool(lp.PART_HEADING_PATTERN.match(text)) is expected


class TestLabelTables:
    """Tests for the bilingual label tables."""

    @pytest.mark.parametrize("table", [
        lp.VOTE_LABELS, lp.BILL_LABELS, lp.HANSARD_LABELS,
        lp.LEGISLATION_LABELS, lp.CONTEXT_LABELS, lp.HYDRATION_LABELS,
    ])
    def test_same_keys_in_both_languages(self, table):
        assert set(table) == {"en", "fr"}
        assert set(table["en"]) == set(table["fr"])
        assert all(table["fr"].values())

    def test_get_labels_defaults_to_english(self):
        assert lp.get_labels(lp.CONTEXT_LABELS, "de") is lp.CONTEXT_LABELS["en"]
        assert lp.get_labels(lp.CONTEXT_LABELS, "fr")["section"] == "art"
