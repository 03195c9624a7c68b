"""
Legislation Hydration

Expands the most relevant search hit into a full document view (markdown)
for display next to the answer: an act or regulation with its sections, or
a single defined term.
"""

import logging
from typing import Optional
from dataclasses import dataclass, asdict

from .errors import HydrationFailed
from .language_config import other_language
from .language_patterns import HYDRATION_LABELS, get_labels

logger = logging.getLogger(__name__)

TOC_SECTION_THRESHOLD = 10
TOC_MAX_ENTRIES = 30
MAX_SECTIONS_TO_HYDRATE = 150
MAX_MARKDOWN_SIZE = 100_000

ACT_SOURCE_TYPES = ("act", "act_section")
REGULATION_SOURCE_TYPES = ("regulation", "regulation_section")
_SCHEDULE_LIKE = ("schedule", "form", "table")


@dataclass
class HydratedSource:
    """A full-document (or full-term) view of a search hit."""
    source_type: str  # act | regulation | defined_term
    markdown: str
    language_used: str
    id: str
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HydratedSource":
        return cls(**data)


def format_document_markdown(
    title: str,
    sections: list[dict],
    language: str,
    total_sections: int,
    long_title: Optional[str] = None,
    status: Optional[str] = None,
    consolidation_date: Optional[str] = None,
    enabling_act_title: Optional[str] = None,
) -> str:
    """
    Render an act or regulation as markdown.

    Sections are added in order until MAX_MARKDOWN_SIZE would be exceeded,
    at which point a truncation notice ends the document.
    """
    labels = get_labels(HYDRATION_LABELS, language)
    lines = [f"# {title}"]
    if long_title and long_title != title:
        lines.append(f"\n*{long_title}*")
    lines.append("")

    if total_sections > len(sections):
        lines.append(labels["showing"].format(shown=len(sections), total=total_sections))
        lines.append("")

    meta = []
    if status:
        meta.append(f"- **{labels['status']}:** {status}")
    if consolidation_date:
        meta.append(f"- **{labels['consolidation_date']}:** {consolidation_date}")
    if enabling_act_title:
        meta.append(f"- **{labels['enabling_act']}:** {enabling_act_title}")
    if meta:
        lines.extend(meta)
        lines.append("")

    if len(sections) > TOC_SECTION_THRESHOLD:
        lines.append(f"## {labels['table_of_contents']}")
        lines.append("")
        for s in sections[:TOC_MAX_ENTRIES]:
            note = s.get("marginal_note")
            lines.append(f"- {s['section_label']}" + (f" — {note}" if note else ""))
        if len(sections) > TOC_MAX_ENTRIES:
            lines.append(f"- ... ({len(sections) - TOC_MAX_ENTRIES} {labels['more_sections']})")
        lines.append("")

    size = len("\n".join(lines))
    for s in sections:
        label = s["section_label"]
        note = s.get("marginal_note")
        block = []
        if s.get("section_type") in _SCHEDULE_LIKE:
            block.append(f"## {label}")
            if note:
                block.append(f"*{note}*")
        else:
            header = f"### {labels['section']} {label}"
            block.append(f"{header} — {note}" if note else header)
        block.append("")
        block.append(s.get("content") or "")
        block.append("")

        text = "\n".join(block)
        if size + len(text) > MAX_MARKDOWN_SIZE:
            lines.append(f"\n\n---\n{labels['truncated']}")
            break
        lines.extend(block)
        size += len(text)

    return "\n".join(lines)


class LegislationHydrator:
    """
    Builds HydratedSource views from the store.

    Usage:
        hydrator = LegislationHydrator(store)
        sources = hydrator.hydrate_top_source(candidates, "en")
    """

    def __init__(self, store):
        self.store = store

    def hydrate_top_source(self, candidates, language: str) -> list[HydratedSource]:
        """
        Hydrate the most relevant source.

        Priority: the first defined term when the top hit is a term, else the
        first act hit, else the first regulation hit. Never raises: failures
        are logged and yield [].
        """
        if not candidates:
            return []

        try:
            top_type = candidates[0].metadata.get("source_type")
            if top_type == "defined_term":
                return [self.hydrate_defined_term(candidates[0], language)]

            act_hit = next(
                (c for c in candidates
                 if c.metadata.get("source_type") in ACT_SOURCE_TYPES and c.metadata.get("act_id")),
                None,
            )
            if act_hit is not None:
                return [self.hydrate_document("act", act_hit.metadata["act_id"], language)]

            reg_hit = next(
                (c for c in candidates
                 if c.metadata.get("source_type") in REGULATION_SOURCE_TYPES
                 and c.metadata.get("regulation_id")),
                None,
            )
            if reg_hit is not None:
                return [self.hydrate_document("regulation", reg_hit.metadata["regulation_id"], language)]
        except HydrationFailed as e:
            logger.warning(f"Hydration failed: {e}. Using no hydrated sources.")
        except Exception as e:
            logger.warning(f"Hydration failed unexpectedly: {e}. Using no hydrated sources.")
        return []

    def hydrate_document(self, document_type: str, document_id: str, language: str) -> HydratedSource:
        """
        Full act/regulation markdown, falling back to the other language.

        Raises:
            HydrationFailed: the document is not stored in either language
        """
        used = language
        doc = self.store.get_document(document_type, document_id, language)
        if doc is None:
            used = other_language(language)
            doc = self.store.get_document(document_type, document_id, used)
        if doc is None:
            raise HydrationFailed(
                f"{document_type} {document_id} not found in any language",
                source_id=document_id,
            )

        sections = self.store.get_document_sections(
            document_type, document_id, used, limit=MAX_SECTIONS_TO_HYDRATE
        )
        total = self.store.count_document_sections(document_type, document_id, used)
        logger.info(
            f"Hydrating {document_type} {document_id} ({used}): "
            f"{len(sections)}/{total} sections"
        )

        markdown = format_document_markdown(
            title=doc["title"],
            sections=sections,
            language=used,
            total_sections=total,
            long_title=doc.get("long_title"),
            status=doc.get("status"),
            consolidation_date=doc.get("consolidation_date"),
            enabling_act_title=doc.get("enabling_act_title") if document_type == "regulation" else None,
        )
        prefix = "act" if document_type == "act" else "reg"
        return HydratedSource(
            source_type=document_type,
            markdown=markdown,
            language_used=used,
            id=f"{prefix}-{document_id}",
            note=get_labels(HYDRATION_LABELS, language)["fallback_note"] if used != language else None,
        )

    def hydrate_defined_term(self, candidate, language: str) -> HydratedSource:
        """Markdown for a defined-term hit, built from the hit itself."""
        meta = candidate.metadata
        used = meta.get("language") or language
        labels = get_labels(HYDRATION_LABELS, used)

        lines = [f"# {labels['defined_term']}: {meta.get('term') or 'Unknown'}", ""]
        if meta.get("paired_term"):
            lines.append(f"**{labels['corresponding_term']}:** {meta['paired_term']}")
            lines.append("")
        lines.append(f"**{labels['source']}:** {meta.get('document_title') or 'Unknown'}")
        if meta.get("section_label"):
            lines.append(f"**{labels['section']}:** {meta['section_label']}")
        scope = meta.get("scope_type")
        if scope and scope not in ("act", "regulation"):
            lines.append(f"**{labels['scope']}:** {scope}")
        lines.append("")
        lines.append(f"## {labels['definition']}")
        lines.append("")
        lines.append(candidate.content)

        return HydratedSource(
            source_type="defined_term",
            markdown="\n".join(lines),
            language_used=used,
            id=f"term-{meta.get('term_id') or 'unknown'}",
            note=(
                get_labels(HYDRATION_LABELS, language)["definition_unavailable"]
                if used != language else None
            ),
        )
