"""
Bilingual Pattern Definitions for Legislation RAG

All regex patterns, display labels and prompt strings organized by language.
Modules import from here instead of defining patterns inline.
"""

import re

# =============================================================================
# Query Language Detection
# =============================================================================

FRENCH_WORD_PATTERN = re.compile(
    r"\b(le|la|les|de|du|des|un|une|que|qui|est|sont|pour|dans|avec|sur|par|"
    r"ce|cette|ces|au|aux|en|et|ou|mais|donc|projet de loi|parlement|député|"
    r"gouvernement|ministre)\b",
    re.IGNORECASE,
)

FRENCH_ACCENT_PATTERN = re.compile(r"[àâäéèêëïîôùûüÿœæç]", re.IGNORECASE)

# =============================================================================
# Definition Scope Patterns
# =============================================================================

SCOPE_PHRASES = {
    "en": {
        "act": "in this act",
        "act_exclusion": "in this act and",
        "regulation": "in this regulation",
        "part": "in this part",
        "section": ("in this section", "apply in this section"),
    },
    "fr": {
        "act": "la présente loi",
        "regulation": "le présent règlement",
        "part": "dans la présente partie",
        "section": ("au présent article", "présent article"),
    },
}

AND_SECTIONS_PATTERN = re.compile(
    r"in this section and (?:in )?sections?\s+(.+?)(?:\.|$)", re.IGNORECASE
)
AND_ARTICLES_PATTERN = re.compile(
    r"au présent article et aux articles?\s*(?:à\.?)?\s*([\d\s.,àto-]+)", re.IGNORECASE
)
SECTIONS_APPLY_PATTERN = re.compile(
    r"(?:apply|definitions apply) in sections?\s*(?:to\.?)?\s*([\d\s.,to-]+)", re.IGNORECASE
)
ARTICLES_APPLY_PATTERN = re.compile(
    r"(?:s'appliquent|appliquent)\s*(?:aux|au)\s*articles?\s*(?:à\.?)?\s*([\d\s.,àto-]+)",
    re.IGNORECASE,
)

# Part headings open a new definition scope
PART_HEADING_PATTERN = re.compile(r"^\s*(?:PART|PARTIE)\b", re.IGNORECASE)

# =============================================================================
# Citation Labels
# =============================================================================

VOTE_LABELS = {
    "en": {
        "vote": "Vote",
        "passed": "Passed",
        "failed": "Failed",
        "yea": "Yea",
        "nay": "Nay",
        "unknown_date": "unknown date",
        "unknown_result": "unknown result",
        "unknown_vote": "unknown vote",
        "unknown_party": "Unknown Party",
        "unknown_member": "Unknown Member",
    },
    "fr": {
        "vote": "Vote",
        "passed": "Adopté",
        "failed": "Rejeté",
        "yea": "Oui",
        "nay": "Non",
        "unknown_date": "date inconnue",
        "unknown_result": "résultat inconnu",
        "unknown_vote": "vote inconnu",
        "unknown_party": "Parti inconnu",
        "unknown_member": "Député inconnu",
    },
}

BILL_LABELS = {
    "en": {
        "bill": "Bill",
        "unknown_bill": "Unknown bill",
        "parliament": "Parliament",
        "session": "Session",
    },
    "fr": {
        "bill": "Projet de loi",
        "unknown_bill": "Projet de loi inconnu",
        "parliament": "Parlement",
        "session": "Session",
    },
}

HANSARD_LABELS = {
    "en": {
        "hansard": "Hansard",
        "unknown_date": "unknown date",
        "unknown_speaker": "Unknown Speaker",
        "house_debate": "House Debate",
    },
    "fr": {
        "hansard": "Hansard",
        "unknown_date": "date inconnue",
        "unknown_speaker": "Orateur inconnu",
        "house_debate": "Débat de la Chambre",
    },
}

LEGISLATION_LABELS = {
    "en": {
        "legislation": "Legislation",
        "act": "Act",
        "regulation": "Regulation",
        "section": "s",
        "schedule": "Schedule",
        "defined_term": "Definition",
        "recommendation": "Recommendation",
        "notice": "Notice",
        "enacting_clause": "Enacting Clause",
    },
    "fr": {
        "legislation": "Législation",
        "act": "Loi",
        "regulation": "Règlement",
        "section": "art",
        "schedule": "Annexe",
        "defined_term": "Définition",
        "recommendation": "Recommandation",
        "notice": "Avis",
        "enacting_clause": "Formule d'édiction",
    },
}

# =============================================================================
# Prompt Strings
# =============================================================================

CONTEXT_LABELS = {
    "en": {
        "header": "Legislative context:",
        "empty": "No legislative results found.",
        "sources": "Sources:",
        "section": "s",
    },
    "fr": {
        "header": "Contexte législatif:",
        "empty": "Aucun résultat législatif trouvé.",
        "sources": "Sources:",
        "section": "art",
    },
}

# =============================================================================
# Hydrated Markdown Labels
# =============================================================================

HYDRATION_LABELS = {
    "en": {
        "status": "Status",
        "consolidation_date": "Consolidation Date",
        "enabling_act": "Enabling Act",
        "table_of_contents": "Table of Contents",
        "more_sections": "more sections",
        "section": "Section",
        "showing": "> *Showing {shown} of {total} sections. See Justice Canada website for full text.*",
        "truncated": "*Content truncated. See Justice Canada website for full text.*",
        "fallback_note": "English text not available; using French source text.",
        "defined_term": "Defined Term",
        "corresponding_term": "Corresponding term",
        "source": "Source",
        "scope": "Scope",
        "definition": "Definition",
        "definition_unavailable": "Definition not available in English.",
    },
    "fr": {
        "status": "Statut",
        "consolidation_date": "Date de consolidation",
        "enabling_act": "Loi habilitante",
        "table_of_contents": "Table des matières",
        "more_sections": "autres articles",
        "section": "Article",
        "showing": "> *Affichage de {shown} sur {total} sections. Consultez le site Justice Canada pour le texte complet.*",
        "truncated": "*Contenu tronqué. Consultez le site Justice Canada pour le texte complet.*",
        "fallback_note": "Texte français non disponible; utilisation du texte anglais.",
        "defined_term": "Terme défini",
        "corresponding_term": "Terme correspondant",
        "source": "Source",
        "scope": "Portée",
        "definition": "Définition",
        "definition_unavailable": "Définition non disponible en français.",
    },
}


def get_labels(table: dict, language: str) -> dict:
    """Return the label set for a language, defaulting to English."""
    return table.get(language, table["en"])
