"""
Language Configuration for Bilingual Legislation RAG

Federal legislation is published in English and French. Each language carries
its own full-text search config and token ratio; embeddings and reranking use
multilingual models so one index serves both.
"""

from dataclasses import dataclass


# Supported languages with their PostgreSQL FTS config names and token ratios
SUPPORTED_LANGUAGES = {
    "en": {
        "name": "English",
        "fts_config": "english",
        "chars_per_token": 4,
    },
    "fr": {
        "name": "French",
        "fts_config": "french",
        "chars_per_token": 4,
    },
}

DEFAULT_LANGUAGE = "en"

# Whitelist of valid FTS language configs (for SQL injection prevention).
# "simple" is used for the bilingual chunk index.
VALID_FTS_CONFIGS = frozenset(
    [lang["fts_config"] for lang in SUPPORTED_LANGUAGES.values()] + ["simple"]
)


def other_language(language: str) -> str:
    """Return the counterpart of an official language."""
    return "fr" if language == "en" else "en"


@dataclass
class LanguageConfig:
    """Per-language model and search configuration."""
    language: str = "en"
    embedding_model: str = "embed-multilingual-v3.0"
    embedding_provider: str = "cohere"
    reranker_model: str = "rerank-multilingual-v3.0"
    fts_language: str = "english"
    chars_per_token: int = 4

    @classmethod
    def for_language(cls, language: str) -> "LanguageConfig":
        """
        Factory method returning defaults for a given language.

        Args:
            language: ISO 639-1 code ("en" or "fr")

        Returns:
            LanguageConfig with appropriate defaults
        """
        if language not in SUPPORTED_LANGUAGES:
            language = DEFAULT_LANGUAGE

        settings = SUPPORTED_LANGUAGES[language]
        return cls(
            language=language,
            fts_language=settings["fts_config"],
            chars_per_token=settings["chars_per_token"],
        )

    def validate_fts_language(self) -> bool:
        """Check that fts_language is in the whitelist."""
        return self.fts_language in VALID_FTS_CONFIGS
