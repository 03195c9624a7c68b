"""
Citation Formatting for Legislation and Parliamentary Sources

Deterministic, bilingual citation builders. Every builder fills both the
English and French slots, falling back to fixed placeholder labels when an
input is missing, and accepts CitationOverrides for callers that need to
inject enumeration context:

    [Criminal Code, s 91]            [Code criminel, art 91]
    [Vote, 2024-03-20, Passed]       [Vote, 2024-03-20, Adopté]

URLs point at Justice Laws (laws-lois.justice.gc.ca), LEGISinfo and
ourcommons.ca.
"""

import re
import logging
from dataclasses import dataclass, replace as _replace
from typing import Optional

from .definitions import translate_regulation_id
from .errors import UnsupportedSourceType
from .language_patterns import BILL_LABELS, HANSARD_LABELS, LEGISLATION_LABELS, VOTE_LABELS

logger = logging.getLogger(__name__)

JUSTICE_BASE_URL = "https://laws-lois.justice.gc.ca"
OURCOMMONS_VOTES_URL = "https://www.ourcommons.ca/Members/{lang}/votes"
LEGISINFO_BASE_URL = "https://www.parl.ca/legisinfo"
HANSARD_BASE_URL = "https://www.ourcommons.ca/DocumentViewer"
DEFAULT_SESSION_ID = "44-1"

EN, FR = VOTE_LABELS["en"], VOTE_LABELS["fr"]


@dataclass
class Citation:
    """A bilingual citation. Both language slots are always populated."""
    text_en: str
    text_fr: str
    title_en: str
    title_fr: str
    source_type: str
    url_en: Optional[str] = None  # None means non-linkable
    url_fr: Optional[str] = None
    id: int = 0  # Assigned by the context builder
    prefixed_id: str = ""

    def text(self, language: str = "en") -> str:
        return self.text_fr if language == "fr" else self.text_en

    def title(self, language: str = "en") -> str:
        return self.title_fr if language == "fr" else self.title_en

    def url(self, language: str = "en") -> Optional[str]:
        return self.url_fr if language == "fr" else self.url_en

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefixed_id": self.prefixed_id,
            "text_en": self.text_en,
            "text_fr": self.text_fr,
            "title_en": self.title_en,
            "title_fr": self.title_fr,
            "url_en": self.url_en,
            "url_fr": self.url_fr,
            "source_type": self.source_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Citation":
        return cls(**data)


@dataclass
class CitationOverrides:
    """Replace individual output fields without recomputing the rest."""
    text_en: Optional[str] = None
    text_fr: Optional[str] = None
    title_en: Optional[str] = None
    title_fr: Optional[str] = None


def _apply_overrides(citation: Citation, overrides: Optional[CitationOverrides]) -> Citation:
    if overrides is None:
        return citation
    changes = {
        field: value
        for field, value in vars(overrides).items()
        if value
    }
    return _replace(citation, **changes) if changes else citation


# =============================================================================
# Parliamentary Votes
# =============================================================================

def build_vote_urls(session_id: str, vote_number: Optional[int]) -> tuple[str, str]:
    """
    Vote detail URLs for both languages.

    "44-1" and 123 give .../votes/44/1/123. A zero or missing vote number
    gives the generic votes landing page.
    """
    if not vote_number:
        return (
            OURCOMMONS_VOTES_URL.format(lang="en"),
            OURCOMMONS_VOTES_URL.format(lang="fr"),
        )
    session_path = (session_id or "").replace("-", "/", 1)
    return (
        f"{OURCOMMONS_VOTES_URL.format(lang='en')}/{session_path}/{vote_number}",
        f"{OURCOMMONS_VOTES_URL.format(lang='fr')}/{session_path}/{vote_number}",
    )


def _map_code(code: Optional[str], yes_key: str, no_key: str, missing_key: str) -> tuple[str, str]:
    """Map a Y/N code to labels; other codes pass through verbatim."""
    if code == "Y":
        return EN[yes_key], FR[yes_key]
    if code == "N":
        return EN[no_key], FR[no_key]
    if code:
        return code, code
    return EN[missing_key], FR[missing_key]


def _dates(date: Optional[str]) -> tuple[str, str]:
    return date or EN["unknown_date"], date or FR["unknown_date"]


def build_vote_question_citation(
    session_id: str = "",
    vote_number: Optional[int] = 0,
    date: Optional[str] = None,
    result: Optional[str] = None,
    title: Optional[str] = None,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """Citation for a recorded division: [Vote, date, Passed]."""
    date_en, date_fr = _dates(date)
    result_en, result_fr = _map_code(result, "passed", "failed", "unknown_result")
    url_en, url_fr = build_vote_urls(session_id, vote_number)

    citation = Citation(
        text_en=f"[{EN['vote']}, {date_en}, {result_en}]",
        text_fr=f"[{FR['vote']}, {date_fr}, {result_fr}]",
        title_en=title or f"Vote #{vote_number or 0}",
        title_fr=title or f"Vote nº {vote_number or 0}",
        source_type="vote_question",
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


def build_party_vote_citation(
    session_id: str = "",
    vote_number: Optional[int] = 0,
    date: Optional[str] = None,
    result: Optional[str] = None,
    party_name_en: Optional[str] = None,
    party_name_fr: Optional[str] = None,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """Citation for a party's position on a vote: [Liberal Vote, date, Yea]."""
    date_en, date_fr = _dates(date)
    party_en = party_name_en or party_name_fr or EN["unknown_party"]
    party_fr = party_name_fr or party_name_en or FR["unknown_party"]
    vote_en, vote_fr = _map_code(result, "yea", "nay", "unknown_vote")
    url_en, url_fr = build_vote_urls(session_id, vote_number)

    citation = Citation(
        text_en=f"[{party_en} {EN['vote']}, {date_en}, {vote_en}]",
        text_fr=f"[{FR['vote']} {party_fr}, {date_fr}, {vote_fr}]",
        title_en=f"{party_en}: {vote_en}",
        title_fr=f"{party_fr}: {vote_fr}",
        source_type="vote_party",
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


def build_member_vote_citation(
    session_id: str = "",
    vote_number: Optional[int] = 0,
    date: Optional[str] = None,
    result: Optional[str] = None,
    member_name: Optional[str] = None,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """Citation for an individual member's ballot: [Jane Doe, date, Nay]."""
    date_en, date_fr = _dates(date)
    member_en = member_name or EN["unknown_member"]
    member_fr = member_name or FR["unknown_member"]
    vote_en, vote_fr = _map_code(result, "yea", "nay", "unknown_vote")
    url_en, url_fr = build_vote_urls(session_id, vote_number)

    citation = Citation(
        text_en=f"[{member_en}, {date_en}, {vote_en}]",
        text_fr=f"[{member_fr}, {date_fr}, {vote_fr}]",
        title_en=f"{member_en}: {vote_en}",
        title_fr=f"{member_fr}: {vote_fr}",
        source_type="vote_member",
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


# =============================================================================
# Bills and Hansard
# =============================================================================

def _as_number(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def format_ordinal(value) -> str:
    """English ordinal: 1st, 2nd, 3rd, 11th, 44th. Non-numeric values pass through."""
    number = _as_number(value)
    if number is None:
        return str(value)
    if 11 <= number % 100 <= 13:
        return f"{number}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def format_ordinal_fr(value) -> str:
    """French ordinal: 1re, 2e, 44e. Non-numeric values pass through."""
    number = _as_number(value)
    if number is None:
        return str(value)
    return f"{number}re" if number == 1 else f"{number}e"


def build_bill_urls(session_id: str, bill_number: Optional[str]) -> tuple[str, str]:
    if not bill_number:
        return (
            f"{LEGISINFO_BASE_URL}/en/bills?parlsession={session_id}",
            f"{LEGISINFO_BASE_URL}/fr/projets-de-loi?parlsession={session_id}",
        )
    bill = str(bill_number).lower()
    return (
        f"{LEGISINFO_BASE_URL}/en/bill/{session_id}/{bill}",
        f"{LEGISINFO_BASE_URL}/fr/projet-de-loi/{session_id}/{bill}",
    )


def build_bill_citation(
    bill_number: Optional[str],
    session_id: str = DEFAULT_SESSION_ID,
    bill_title: Optional[str] = None,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """Citation for a bill: [Bill C-11, 44th Parliament, 1st Session]."""
    en, fr = BILL_LABELS["en"], BILL_LABELS["fr"]
    session_id = session_id or DEFAULT_SESSION_ID
    parliament, _, session = session_id.partition("-")
    session = session or "1"
    url_en, url_fr = build_bill_urls(session_id, bill_number)

    name_en = f"{en['bill']} {bill_number}" if bill_number else en["unknown_bill"]
    name_fr = f"{fr['bill']} {bill_number}" if bill_number else fr["unknown_bill"]

    citation = Citation(
        text_en=(
            f"[{name_en}, {format_ordinal(parliament)} {en['parliament']}, "
            f"{format_ordinal(session)} {en['session']}]"
        ),
        text_fr=(
            f"[{name_fr}, {format_ordinal_fr(parliament)} {fr['parliament']}, "
            f"{format_ordinal_fr(session)} {fr['session'].lower()}]"
        ),
        title_en=bill_title or name_en,
        title_fr=bill_title or name_fr,
        source_type="bill",
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


def build_hansard_urls(session_id: str, doc_number: Optional[str] = None) -> tuple[str, str]:
    if not doc_number:
        return (
            f"{HANSARD_BASE_URL}/en/{session_id}/house/hansard",
            f"{HANSARD_BASE_URL}/fr/{session_id}/chambre/debats",
        )
    return (
        f"{HANSARD_BASE_URL}/en/{session_id}/house/sitting-{doc_number}/hansard",
        f"{HANSARD_BASE_URL}/fr/{session_id}/chambre/seance-{doc_number}/debats",
    )


def build_hansard_citation(
    date: Optional[str] = None,
    speaker_name_en: Optional[str] = None,
    speaker_name_fr: Optional[str] = None,
    doc_number: Optional[str] = None,
    session_id: Optional[str] = None,
    name_en: Optional[str] = None,
    name_fr: Optional[str] = None,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """Citation for a Hansard intervention: [Hansard, date, speaker]."""
    en, fr = HANSARD_LABELS["en"], HANSARD_LABELS["fr"]
    speaker_en = speaker_name_en or speaker_name_fr or en["unknown_speaker"]
    speaker_fr = speaker_name_fr or speaker_name_en or fr["unknown_speaker"]
    url_en, url_fr = build_hansard_urls(session_id or DEFAULT_SESSION_ID, doc_number)

    citation = Citation(
        text_en=f"[{en['hansard']}, {date or en['unknown_date']}, {speaker_en}]",
        text_fr=f"[{fr['hansard']}, {date or fr['unknown_date']}, {speaker_fr}]",
        title_en=name_en or name_fr or en["house_debate"],
        title_fr=name_fr or name_en or fr["house_debate"],
        source_type="hansard",
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


# =============================================================================
# Legislation (Justice Laws)
# =============================================================================

def section_anchor(label: Optional[str]) -> str:
    """In-page anchor for a section label: "91(1)" gives "#sec911"."""
    if not label:
        return ""
    return "#sec" + re.sub(r"[^a-zA-Z0-9]", "", label)


def build_legislation_urls(
    document_type: str,
    document_id: str,
    section_label: Optional[str] = None,
    language: str = "en",
) -> tuple[str, str]:
    """
    Justice Laws URLs for an act or regulation.

    Regulation ids differ by language (SOR-2000-1 / DORS-2000-1), so the id
    is translated from its source language for the other URL.
    """
    anchor = section_anchor(section_label)
    if document_type == "regulation":
        id_en = translate_regulation_id(document_id, language, "en")
        id_fr = translate_regulation_id(document_id, language, "fr")
        return (
            f"{JUSTICE_BASE_URL}/eng/regulations/{id_en}/page-1.html{anchor}",
            f"{JUSTICE_BASE_URL}/fra/reglements/{id_fr}/page-1.html{anchor}",
        )
    return (
        f"{JUSTICE_BASE_URL}/eng/acts/{document_id}/page-1.html{anchor}",
        f"{JUSTICE_BASE_URL}/fra/lois/{document_id}/page-1.html{anchor}",
    )


def _document_identity(metadata: dict) -> tuple[str, str, str]:
    """(document type, id, title) from chunk metadata."""
    if metadata.get("regulation_id"):
        doc_id = metadata["regulation_id"]
        return "regulation", doc_id, metadata.get("document_title") or f"Regulation {doc_id}"
    doc_id = metadata.get("act_id") or "unknown"
    return "act", doc_id, metadata.get("document_title") or f"Act {doc_id}"


def _section_suffixes(label: Optional[str]) -> tuple[str, str]:
    if not label:
        return "", ""
    return (
        f", {LEGISLATION_LABELS['en']['section']} {label}",
        f", {LEGISLATION_LABELS['fr']['section']} {label}",
    )


def _document_citation(metadata: dict, source_type: str, overrides) -> Citation:
    doc_type, doc_id, title = _document_identity(metadata)
    url_en, url_fr = build_legislation_urls(doc_type, doc_id, language=metadata.get("language", "en"))
    citation = Citation(
        text_en=f"[{title}]",
        text_fr=f"[{title}]",
        title_en=title,
        title_fr=title,
        source_type=source_type,
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


def _section_citation(metadata: dict, source_type: str, overrides) -> Citation:
    doc_type, doc_id, title = _document_identity(metadata)
    label = metadata.get("section_label")
    url_en, url_fr = build_legislation_urls(
        doc_type, doc_id, label, language=metadata.get("language", "en")
    )
    suffix_en, suffix_fr = _section_suffixes(label)
    citation = Citation(
        text_en=f"[{title}{suffix_en}]",
        text_fr=f"[{title}{suffix_fr}]",
        title_en=title,
        title_fr=title,
        source_type=source_type,
        url_en=url_en,
        url_fr=url_fr,
    )
    return _apply_overrides(citation, overrides)


def build_act_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    return _document_citation(metadata, "act", overrides)


def build_act_section_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    return _section_citation(metadata, "act_section", overrides)


def build_regulation_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    return _document_citation(metadata, "regulation", overrides)


def build_regulation_section_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    return _section_citation(metadata, "regulation_section", overrides)


def build_defined_term_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    """Citation for a definition: [Criminal Code, s 2, "firearm"]."""
    base = _section_citation(metadata, "defined_term", None)
    term = metadata.get("term") or ""
    paired = metadata.get("paired_term") or term
    language = metadata.get("language", "en")
    term_en, term_fr = (paired, term) if language == "fr" else (term, paired)

    citation = _replace(
        base,
        text_en=base.text_en[:-1] + f', "{term_en}"]' if term_en else base.text_en,
        text_fr=base.text_fr[:-1] + f", « {term_fr} »]" if term_fr else base.text_fr,
        title_en=term_en or base.title_en,
        title_fr=term_fr or base.title_fr,
    )
    return _apply_overrides(citation, overrides)


def build_schedule_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    """Citation for schedule content: [Criminal Code, Schedule II]."""
    base = _document_citation(metadata, "schedule", None)
    label = metadata.get("schedule_label") or metadata.get("section_label")
    if not label:
        return _apply_overrides(base, overrides)

    citation = _replace(
        base,
        text_en=base.text_en[:-1] + f", {label}]",
        text_fr=base.text_fr[:-1] + f", {label}]",
    )
    return _apply_overrides(citation, overrides)


def build_publication_item_citation(metadata: dict, overrides: Optional[CitationOverrides] = None) -> Citation:
    """Citation for a regulation's Recommendation or Notice block."""
    base = _document_citation(metadata, "publication_item", None)
    block_type = metadata.get("block_type") or "notice"
    label_en = LEGISLATION_LABELS["en"].get(block_type, block_type)
    label_fr = LEGISLATION_LABELS["fr"].get(block_type, block_type)

    citation = _replace(
        base,
        text_en=base.text_en[:-1] + f", {label_en}]",
        text_fr=base.text_fr[:-1] + f", {label_fr}]",
    )
    return _apply_overrides(citation, overrides)


# =============================================================================
# Dispatch
# =============================================================================

def _vote_question(metadata: dict, overrides) -> Citation:
    return build_vote_question_citation(
        session_id=metadata.get("session_id") or "",
        vote_number=metadata.get("vote_number") or 0,
        date=metadata.get("date"),
        result=metadata.get("result"),
        title=metadata.get("title"),
        overrides=overrides,
    )


def _party_vote(metadata: dict, overrides) -> Citation:
    return build_party_vote_citation(
        session_id=metadata.get("session_id") or "",
        vote_number=metadata.get("vote_number") or 0,
        date=metadata.get("date"),
        result=metadata.get("result"),
        party_name_en=metadata.get("party_name_en"),
        party_name_fr=metadata.get("party_name_fr"),
        overrides=overrides,
    )


def _member_vote(metadata: dict, overrides) -> Citation:
    return build_member_vote_citation(
        session_id=metadata.get("session_id") or "",
        vote_number=metadata.get("vote_number") or 0,
        date=metadata.get("date"),
        result=metadata.get("result"),
        member_name=metadata.get("member_name"),
        overrides=overrides,
    )


def _bill(metadata: dict, overrides) -> Citation:
    return build_bill_citation(
        bill_number=metadata.get("bill_number") or "",
        session_id=metadata.get("session_id") or DEFAULT_SESSION_ID,
        bill_title=metadata.get("bill_title"),
        overrides=overrides,
    )


def _hansard(metadata: dict, overrides) -> Citation:
    return build_hansard_citation(
        date=metadata.get("date"),
        speaker_name_en=metadata.get("speaker_name_en"),
        speaker_name_fr=metadata.get("speaker_name_fr"),
        doc_number=metadata.get("doc_number"),
        session_id=metadata.get("session_id"),
        name_en=metadata.get("name_en"),
        name_fr=metadata.get("name_fr"),
        overrides=overrides,
    )


CITATION_FORMATTERS = {
    "vote_question": _vote_question,
    "vote_party": _party_vote,
    "vote_member": _member_vote,
    "bill": _bill,
    "hansard": _hansard,
    "act": build_act_citation,
    "act_section": build_act_section_citation,
    "regulation": build_regulation_citation,
    "regulation_section": build_regulation_section_citation,
    "defined_term": build_defined_term_citation,
    "schedule": build_schedule_citation,
    "publication_item": build_publication_item_citation,
}

CITATION_SOURCE_TYPES = frozenset(CITATION_FORMATTERS)


def format_citation(
    source_type: str,
    metadata: dict,
    overrides: Optional[CitationOverrides] = None,
) -> Citation:
    """
    Build the citation for a source-type tag.

    Raises:
        UnsupportedSourceType: if no formatter is registered for the tag
    """
    formatter = CITATION_FORMATTERS.get(source_type)
    if formatter is None:
        logger.error(f"No citation formatter for source type {source_type!r}")
        raise UnsupportedSourceType(source_type)
    return formatter(metadata, overrides)
