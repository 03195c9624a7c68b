"""
Defined Term Helpers

Scope detection for Definition blocks ("In this Act", "The following
definitions apply in sections 17 to 19", ...), section-range parsing,
term normalization and bilingual regulation-id translation.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .language_patterns import (
    AND_ARTICLES_PATTERN,
    AND_SECTIONS_PATTERN,
    ARTICLES_APPLY_PATTERN,
    SCOPE_PHRASES,
    SECTIONS_APPLY_PATTERN,
)

_RANGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:to|-|à)\s*(\d+(?:\.\d+)?)")
_SINGLE_PATTERN = re.compile(r"\b(\d+(?:\.\d+)?)\b")
_DASHES = re.compile(r"[–—\-]")


@dataclass
class DefinitionScope:
    """Where a group of definitions applies."""
    scope_type: str  # act | regulation | part | section
    scope_sections: Optional[list[str]] = None
    scope_raw_text: Optional[str] = None


def parse_section_range(text: str) -> list[str]:
    """
    Expand section references like "17 to 19 and 21" into labels.

    Integer ranges are enumerated. Decimal ranges (90.02 to 90.24) cannot be
    enumerated, so only their endpoints are kept. Also copes with text
    flattened from XRefInternal runs such as "sectionsto.73 80".
    """
    normalized = re.sub(r"sections?\s*to\.?", "sections ", text, flags=re.IGNORECASE)
    normalized = re.sub(r"(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)", r"\1 to \2", normalized)

    sections: list[str] = []
    range_spans = []

    for match in _RANGE_PATTERN.finditer(normalized):
        start_str, end_str = match.group(1), match.group(2)
        range_spans.append(match.span())

        if "." in start_str or "." in end_str:
            sections.append(start_str)
            if start_str != end_str:
                sections.append(end_str)
        else:
            for number in range(int(start_str), int(end_str) + 1):
                sections.append(str(number))

    for match in _SINGLE_PATTERN.finditer(normalized):
        in_range = any(start <= match.start() < end for start, end in range_spans)
        if not in_range and match.group(1) not in sections:
            sections.append(match.group(1))

    return sections


def _unique(labels: list[str]) -> list[str]:
    return list(dict.fromkeys(labels))


def parse_definition_scope(
    scope_text: str,
    current_section_label: str,
    document_type: str,
) -> DefinitionScope:
    """
    Classify the lead-in text of a definitions section.

    Args:
        scope_text: Text of the section (or subsection) holding the definitions
        current_section_label: Label of the defining section
        document_type: "act" or "regulation", used when nothing matches

    Returns:
        DefinitionScope with the detected scope type and sections
    """
    text = scope_text.lower()
    en, fr = SCOPE_PHRASES["en"], SCOPE_PHRASES["fr"]

    if en["act"] in text and en["act_exclusion"] not in text:
        return DefinitionScope("act", scope_raw_text=scope_text)
    if fr["act"] in text:
        return DefinitionScope("act", scope_raw_text=scope_text)

    if en["regulation"] in text and "sections" not in text:
        return DefinitionScope("regulation", scope_raw_text=scope_text)
    if fr["regulation"] in text:
        return DefinitionScope("regulation", scope_raw_text=scope_text)

    if en["part"] in text and "sections" not in text:
        return DefinitionScope("part", scope_raw_text=scope_text)
    if fr["part"] in text and "articles" not in text:
        return DefinitionScope("part", scope_raw_text=scope_text)

    if any(phrase in text for phrase in en["section"]):
        sections = [current_section_label]
        match = AND_SECTIONS_PATTERN.search(text)
        if match:
            sections.extend(parse_section_range(match.group(1)))
        return DefinitionScope("section", _unique(sections), scope_text)

    if any(phrase in text for phrase in fr["section"]):
        sections = [current_section_label]
        match = AND_ARTICLES_PATTERN.search(text)
        if match:
            sections.extend(parse_section_range(match.group(1)))
        return DefinitionScope("section", _unique(sections), scope_text)

    for pattern in (SECTIONS_APPLY_PATTERN, ARTICLES_APPLY_PATTERN):
        match = pattern.search(text)
        if match:
            sections = parse_section_range(match.group(1))
            if sections:
                return DefinitionScope("section", sections, scope_text)

    return DefinitionScope(document_type, scope_raw_text=scope_text)


def normalize_term(term: str) -> str:
    """
    Normalize a defined term for matching across languages.

    Dashes become spaces and accented letters are dropped, so
    "Canada–Colombia" gives "canada colombia" and "barrière" gives "barrire".
    """
    term = _DASHES.sub(" ", term).lower()
    term = re.sub(r"[^\w\s]", "", term, flags=re.ASCII)
    return re.sub(r"\s+", " ", term).strip()


def normalize_regulation_id(instrument_number: str) -> str:
    """Turn an instrument number ("SOR/2000-1", "C.R.C., c. 870") into an id."""
    return instrument_number.strip().replace("/", "-").replace(", ", "_")


# (en prefix, fr prefix) pairs for regulation ids
_REGULATION_ID_PREFIXES = [
    ("C.R.C._c. ", "C.R.C._ch. "),
    ("SOR-", "DORS-"),
    ("SI-", "TR-"),
]


def translate_regulation_id(regulation_id: str, from_lang: str, to_lang: str) -> str:
    """
    Translate a regulation id between its English and French forms.

    Unknown formats are returned unchanged.
    """
    if from_lang == to_lang:
        return regulation_id

    to_french = from_lang == "en"
    for en_prefix, fr_prefix in _REGULATION_ID_PREFIXES:
        source, target = (en_prefix, fr_prefix) if to_french else (fr_prefix, en_prefix)
        if regulation_id.startswith(source):
            return target + regulation_id[len(source):]

    # Annual statutes: 2018_c. 12_s. 187 <-> 2018_ch. 12_art. 187
    if to_french and "_c. " in regulation_id and "_s. " in regulation_id:
        return regulation_id.replace("_c. ", "_ch. ", 1).replace("_s. ", "_art. ", 1)
    if not to_french and "_ch. " in regulation_id and "_art. " in regulation_id:
        return regulation_id.replace("_ch. ", "_c. ", 1).replace("_art. ", "_s. ", 1)

    return regulation_id
