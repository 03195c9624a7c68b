"""
Markup Helpers for Justice Canada Legislative XML

Thin layer over BeautifulSoup (lxml XML tree builder) used by the parser:
plain-text extraction, HTML rendering with navigable anchors, and the
attribute-level extractors (LIMS metadata, footnotes, cross-references).
"""

import html
import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from bs4.element import (
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from .citation import build_legislation_urls, section_anchor

# Elements rendered inline (joined without extra spaces)
INLINE_TAGS = frozenset([
    "XRefExternal",
    "XRefInternal",
    "Emphasis",
    "DefinedTermEn",
    "DefinedTermFr",
    "FootnoteRef",
    "Language",
    "Sup",
    "Sub",
    "Abbr",
    "Acronym",
    "Repealed",
])

# Captured separately, never part of body text
NOTE_TAGS = frozenset(["Footnote", "HistoricalNote"])

# Section furniture that the document model stores in dedicated fields
HEADER_TAGS = frozenset(["Label", "MarginalNote"])

LIMS_ATTRIBUTES = [
    # (key, attribute, is_date)
    ("fid", "lims:fid", False),
    ("id", "lims:id", False),
    ("enacted_date", "lims:enacted-date", True),
    ("enact_id", "lims:enactId", False),
    ("pit_date", "lims:pit-date", True),
    ("current_date", "lims:current-date", True),
    ("inforce_start_date", "lims:inforce-start-date", True),
]

_WHITESPACE = re.compile(r"\s+")
_YYYYMMDD = re.compile(r"^\d{8}$")
_YYYY_MM_DD = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def load_markup(raw_markup: str) -> BeautifulSoup:
    """Parse raw legislative XML with the lxml XML builder."""
    return BeautifulSoup(raw_markup, "xml")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _is_text(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, _SKIPPED_STRINGS)


def child(el: Tag, name: str) -> Optional[Tag]:
    """Direct child element by name."""
    return el.find(name, recursive=False)


def children(el: Tag, name: Optional[str] = None) -> list[Tag]:
    """Direct child elements, optionally filtered by name."""
    if name is None:
        return [c for c in el.children if isinstance(c, Tag)]
    return el.find_all(name, recursive=False)


# =============================================================================
# Text Extraction
# =============================================================================

def _collect_text(el: Tag, exclude: frozenset, parts: list[str]) -> None:
    for node in el.children:
        if isinstance(node, Tag):
            if node.name in exclude:
                continue
            if node.name in INLINE_TAGS:
                _collect_text(node, exclude, parts)
            else:
                parts.append(" ")
                _collect_text(node, exclude, parts)
                parts.append(" ")
        elif _is_text(node):
            parts.append(str(node))


def extract_text(
    el: Optional[Tag],
    exclude: Iterable[str] = NOTE_TAGS,
    skip_children: Iterable[str] = (),
) -> str:
    """
    Flatten an element to normalized plain text.

    Block elements are separated by a space, inline elements run on, and
    whitespace is collapsed. Tags in `exclude` are dropped at any depth,
    tags in `skip_children` only when they are direct children of `el`.
    """
    if el is None:
        return ""
    exclude = frozenset(exclude)
    skip = frozenset(skip_children)
    parts: list[str] = []
    for node in el.children:
        if isinstance(node, Tag):
            if node.name in exclude or node.name in skip:
                continue
            inline = node.name in INLINE_TAGS
            parts.append("" if inline else " ")
            _collect_text(node, exclude, parts)
            parts.append("" if inline else " ")
        elif _is_text(node):
            parts.append(str(node))
    return collapse_whitespace("".join(parts))


def extract_body_text(el: Optional[Tag]) -> str:
    """Plain text of a provision without its own label, marginal note or notes."""
    return extract_text(el, skip_children=HEADER_TAGS)


def child_text(el: Tag, name: str) -> Optional[str]:
    """Text of a direct child element, or None when absent or empty."""
    found = child(el, name)
    if found is None:
        return None
    return extract_text(found) or None


# =============================================================================
# HTML Rendering
# =============================================================================

def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _render_children(el: Tag, language: str, exclude: frozenset, skip: frozenset = frozenset()) -> str:
    out = []
    for node in el.children:
        if isinstance(node, Tag):
            if node.name not in exclude and node.name not in skip:
                out.append(_render_tag(node, language, exclude))
        elif _is_text(node):
            out.append(html.escape(str(node), quote=False))
    return "".join(out)


def _render_tag(el: Tag, language: str, exclude: frozenset) -> str:
    inner = _render_children(el, language, exclude)
    name = el.name

    if name == "XRefInternal":
        target = extract_text(el)
        return f'<a class="xref-internal" href="{_attr(section_anchor(target))}">{inner}</a>'

    if name == "XRefExternal":
        link = el.get("link")
        ref_type = el.get("reference-type")
        if link and ref_type in ("act", "regulation"):
            url_en, url_fr = build_legislation_urls(ref_type, link)
            url = url_fr if language == "fr" else url_en
            return f'<a class="xref-external" href="{_attr(url)}">{inner}</a>'
        return f'<cite class="xref-external">{inner}</cite>'

    if name == "Emphasis":
        style = el.get("style")
        if style == "italic":
            return f"<em>{inner}</em>"
        if style == "bold":
            return f"<strong>{inner}</strong>"
        return f"<span>{inner}</span>"

    if name in ("DefinedTermEn", "DefinedTermFr"):
        return f"<dfn>{inner}</dfn>"

    if name == "FootnoteRef":
        idref = el.get("idref", "")
        return f'<sup class="footnote-ref"><a href="#{_attr(idref)}">{inner}</a></sup>'

    if name == "Footnote":
        return f'<aside class="footnote" id="{_attr(el.get("id", ""))}">{inner}</aside>'

    if name == "Text":
        return f"<p>{inner}</p>"

    css_class = _attr(name.lower())
    if name in INLINE_TAGS:
        return f'<span class="{css_class}">{inner}</span>'
    return f'<div class="{css_class}">{inner}</div>'


def render_html(
    el: Optional[Tag],
    language: str = "en",
    exclude: Iterable[str] = ("HistoricalNote",),
    skip_children: Iterable[str] = (),
) -> str:
    """
    Render an element's children as HTML.

    Internal references become in-page anchors (#sec{label}) and external
    act/regulation references link to Justice Laws.
    """
    if el is None:
        return ""
    return _render_children(el, language, frozenset(exclude), frozenset(skip_children)).strip()


def render_body_html(el: Optional[Tag], language: str = "en") -> str:
    """HTML of a provision without its own label and marginal note."""
    return render_html(el, language, skip_children=HEADER_TAGS)


# =============================================================================
# Attribute-level Extractors
# =============================================================================

def parse_date(value: Optional[str]) -> Optional[str]:
    """Normalize LIMS dates (YYYYMMDD or YYYY-MM-DD) to YYYY-MM-DD."""
    if not value:
        return None
    value = value.strip()
    if _YYYYMMDD.match(value):
        return f"{value[:4]}-{value[4:6]}-{value[6:8]}"
    if _YYYY_MM_DD.match(value):
        return value
    return None


def parse_date_element(el: Optional[Tag]) -> Optional[str]:
    """Read a <Date><YYYY/><MM/><DD/></Date> element."""
    if el is None:
        return None
    year = child_text(el, "YYYY")
    if not year:
        return None
    month = (child_text(el, "MM") or "01").zfill(2)
    day = (child_text(el, "DD") or "01").zfill(2)
    return f"{year}-{month}-{day}"


def extract_lims_metadata(el: Tag) -> Optional[dict[str, str]]:
    """
    Read the lims: attributes of an element.

    Only attributes that are present (and, for dates, parseable) become keys.
    Returns None when the element carries none of them.
    """
    metadata = {}
    for key, attribute, is_date in LIMS_ATTRIBUTES:
        value = el.get(attribute)
        if is_date:
            value = parse_date(value)
        if value:
            metadata[key] = value
    return metadata or None


def extract_footnotes(el: Tag) -> list[dict]:
    """Footnotes under an element, in source order. Footnotes without an id are skipped."""
    footnotes = []
    for note in el.find_all("Footnote"):
        footnote_id = note.get("id")
        if not footnote_id:
            continue
        label = child_text(note, "Label")
        text_el = child(note, "Text")
        text = extract_text(text_el) if text_el is not None else extract_text(note, exclude=("Label",))
        footnotes.append({
            "id": footnote_id,
            "placement": note.get("placement"),
            "status": note.get("status"),
            "label": label,
            "text": text,
        })
    return footnotes


def extract_historical_notes(el: Tag) -> list[str]:
    """Amendment history lines (HistoricalNote items) directly under an element."""
    notes = []
    for note in children(el, "HistoricalNote"):
        items = note.find_all("HistoricalNoteSubItem")
        if items:
            notes.extend(t for t in (extract_text(item) for item in items) if t)
        else:
            text = extract_text(note, exclude=())
            if text:
                notes.append(text)
    return notes


def extract_internal_references(el: Tag) -> list[str]:
    """Ordered, unduplicated target labels of XRefInternal elements."""
    targets = []
    for ref in el.find_all("XRefInternal"):
        target = extract_text(ref) or ref.get("idref") or ref.get("link")
        if target and target not in targets:
            targets.append(target)
    return targets


def extract_cross_references(el: Tag, source_section_label: Optional[str] = None) -> list[dict]:
    """XRefExternal elements that point at another act or regulation."""
    refs = []
    for ref in el.find_all("XRefExternal"):
        link = ref.get("link")
        ref_type = ref.get("reference-type")
        if link and ref_type in ("act", "regulation"):
            refs.append({
                "source_section_label": source_section_label,
                "target_type": ref_type,
                "target_ref": link,
                "reference_text": extract_text(ref) or None,
            })
    return refs
