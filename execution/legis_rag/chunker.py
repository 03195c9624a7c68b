"""
Legislation Chunker

Turns a parsed LegalDocument into retrieval chunks:
- one document-level chunk per act/regulation (titles, status, preamble)
- section chunks, prefixed with the document title and section label
- one chunk per defined term
- recommendation/notice blocks of regulations

Long sections are split on a character window with overlap, ending at a
sentence boundary where one is close to the window edge.
"""

import re
import uuid
import logging
from dataclasses import dataclass, field
from typing import Optional

from .document_parser import LegalDocument, Section, DefinedTerm, RegulationBlock
from .language_patterns import HYDRATION_LABELS, get_labels

logger = logging.getLogger(__name__)

CHUNK_SIZE_CHARS = 6144
OVERLAP_CHARS = 1024
SENTENCE_WINDOW_CHARS = 200
PREFIX_MARGIN_CHARS = 50

_SENTENCE_END = re.compile(r"[.!?]\s")
_CRLF = re.compile(r"\r\n?")
_BLANK_LINES = re.compile(r"\n{3,}")

# Section types that belong to a schedule rather than the body
SCHEDULE_SECTION_TYPES = frozenset(["schedule", "form", "table"])


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters."""
    chunk_size_chars: int = CHUNK_SIZE_CHARS
    overlap_chars: int = OVERLAP_CHARS
    sentence_window_chars: int = SENTENCE_WINDOW_CHARS
    chars_per_token: float = 4.0  # For token_count estimates
    include_document_chunk: bool = True
    include_defined_terms: bool = True
    include_publication_items: bool = True


@dataclass
class Chunk:
    """A chunk of legislation text with the metadata needed to cite it."""
    chunk_id: str
    source_id: str
    source_type: str
    document_id: str
    language: str
    content: str
    token_count: int = 0
    chunk_index: int = 0
    total_chunks: int = 1
    metadata: dict = field(default_factory=dict)

    @property
    def resource_key(self) -> str:
        return resource_key(self.metadata)

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "document_id": self.document_id,
            "language": self.language,
            "content": self.content,
            "token_count": self.token_count,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "resource_key": self.resource_key,
            "metadata": self.metadata,
        }


def resource_key(metadata: dict) -> str:
    """
    Identity of the resource a chunk came from.

    Two hits with the same key are the same provision (or the same piece of
    it), so retrieval keeps only the best-scoring one.
    """
    source_type = metadata.get("source_type") or "unknown"
    doc = metadata.get("act_id") or metadata.get("regulation_id") or ""
    chunk_index = metadata.get("chunk_index") or 0
    language = metadata.get("language") or ""

    if source_type in ("act", "regulation"):
        return f"{source_type}:{doc}:meta:{language}:{chunk_index}"
    if source_type in ("act_section", "regulation_section", "schedule"):
        return f"{source_type}:{doc}:{metadata.get('section_id') or ''}:{chunk_index}"
    if source_type == "defined_term":
        return f"term:{metadata.get('term_id') or ''}:{doc}"
    if source_type == "publication_item":
        return (
            f"pub:{doc}:{metadata.get('publication_type') or ''}:"
            f"{metadata.get('publication_index') or 0}:{language}"
        )
    return f"{source_type}:{doc or 'unknown'}:{chunk_index}"


# =============================================================================
# Text helpers
# =============================================================================

def clean_text(text: str) -> str:
    """Normalize line endings, squeeze runs of blank lines, trim."""
    text = _CRLF.sub("\n", text or "")
    return _BLANK_LINES.sub("\n\n", text).strip()


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE_CHARS,
    overlap: int = OVERLAP_CHARS,
    sentence_window: int = SENTENCE_WINDOW_CHARS,
) -> list[str]:
    """
    Split text into overlapping pieces of about chunk_size characters.

    Each cut moves to just after the last sentence end found within
    sentence_window characters of the nominal boundary.
    """
    text = clean_text(text)
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    pieces = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            window_start = max(start, end - sentence_window)
            window_end = min(length, end + sentence_window)
            last = None
            for match in _SENTENCE_END.finditer(text, window_start, window_end):
                last = match
            if last is not None:
                end = last.start() + 1

        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)
        if end >= length:
            break

        next_start = end - overlap
        if next_start <= start:
            break
        start = next_start

    return pieces


# =============================================================================
# Chunker
# =============================================================================

class LegislationChunker:
    """
    Chunks parsed legislation for embedding.

    Every chunk's metadata carries what the citation formatters need
    (document ids and title, section label, term, block type), so a search
    hit can be cited without another lookup.
    """

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()

    def chunk_document(self, document: LegalDocument) -> list[Chunk]:
        """Produce all chunks for one document (one language)."""
        chunks: list[Chunk] = []

        if self.config.include_document_chunk:
            chunks.extend(self._document_chunks(document))

        skipped = 0
        for section in document.sections:
            if not section.content or not section.content.strip():
                skipped += 1
                continue
            chunks.extend(self.chunk_section(document, section))

        if self.config.include_defined_terms:
            for index, term in enumerate(document.defined_terms):
                chunk = self._term_chunk(document, term, index)
                if chunk is not None:
                    chunks.append(chunk)

        if self.config.include_publication_items:
            for index, block in enumerate(document.recommendations + document.notices):
                chunks.append(self._publication_chunk(document, block, index))

        logger.info(
            f"Chunked {document.document_type} {document.document_id} ({document.language}): "
            f"{len(chunks)} chunks, {skipped} empty sections skipped"
        )
        return chunks

    def chunk_section(self, document: LegalDocument, section: Section) -> list[Chunk]:
        """Chunks for a single section, each prefixed with title and label."""
        labels = get_labels(HYDRATION_LABELS, document.language)
        prefix = f"{document.title}\n{labels['section']} {section.label}"
        if section.marginal_note:
            prefix += f": {section.marginal_note}"

        content = clean_text(section.content)
        full = f"{prefix}\n\n{content}"
        if len(full) <= self.config.chunk_size_chars:
            bodies = [full]
        else:
            size = self.config.chunk_size_chars - len(prefix) - PREFIX_MARGIN_CHARS
            bodies = [
                f"{prefix}\n\n{piece}"
                for piece in chunk_text(
                    content, size, self.config.overlap_chars, self.config.sentence_window_chars
                )
            ]

        if section.section_type in SCHEDULE_SECTION_TYPES and section.schedule_label:
            source_type = "schedule"
        else:
            source_type = f"{document.document_type}_section"

        base = self._base_metadata(document, source_type)
        base.update({
            "section_id": section.canonical_section_id,
            "section_label": section.label,
            "section_type": section.section_type,
            "marginal_note": section.marginal_note,
            "status": section.status,
            "hierarchy_path": " > ".join(section.hierarchy_path),
            "part_label": section.part_label,
            "schedule_label": section.schedule_label,
            "inforce_start_date": section.inforce_start_date,
        })
        return self._make_chunks(document, section.canonical_section_id, source_type, bodies, base)

    def _document_chunks(self, document: LegalDocument) -> list[Chunk]:
        labels = get_labels(HYDRATION_LABELS, document.language)
        lines = [document.title]
        if document.long_title and document.long_title != document.title:
            lines.append(document.long_title)
        lines.append(f"{labels['status']}: {document.status}")
        if document.consolidation_date:
            lines.append(f"{labels['consolidation_date']}: {document.consolidation_date}")
        for authority in document.enabling_authorities:
            if authority.get("act_title"):
                lines.append(f"{labels['enabling_act']}: {authority['act_title']}")
        text = "\n".join(lines)
        if document.preamble:
            text += f"\n\n{document.preamble}"

        bodies = chunk_text(
            text,
            self.config.chunk_size_chars,
            self.config.overlap_chars,
            self.config.sentence_window_chars,
        )
        base = self._base_metadata(document, document.document_type)
        base.update({
            "long_title": document.long_title,
            "status": document.status,
            "consolidation_date": document.consolidation_date,
        })
        source_id = f"{document.document_id}/{document.language}/document"
        return self._make_chunks(document, source_id, document.document_type, bodies, base)

    def _term_chunk(self, document: LegalDocument, term: DefinedTerm, index: int) -> Optional[Chunk]:
        definition = clean_text(term.definition)
        if not definition:
            return None
        term_id = f"{document.document_id}/{document.language}/term/{index}"
        metadata = self._base_metadata(document, "defined_term")
        metadata.update({
            "term_id": term_id,
            "term": term.term,
            "term_normalized": term.term_normalized,
            "paired_term": term.paired_term,
            "section_label": term.section_label,
            "scope_type": term.scope_type,
            "scope_sections": term.scope_sections,
            "part_label": term.part_label,
        })
        content = f"{document.title}\n{term.term}\n\n{definition}"
        return self._make_chunks(document, term_id, "defined_term", [content], metadata)[0]

    def _publication_chunk(self, document: LegalDocument, block: RegulationBlock, index: int) -> Chunk:
        source_id = f"{document.document_id}/{document.language}/{block.block_type}/{index}"
        metadata = self._base_metadata(document, "publication_item")
        metadata.update({
            "block_type": block.block_type,
            "publication_type": block.block_type,
            "publication_index": index,
            "publication_requirement": block.publication_requirement,
            "source_sections": block.source_sections,
        })
        content = f"{document.title}\n\n{clean_text(block.content)}"
        return self._make_chunks(document, source_id, "publication_item", [content], metadata)[0]

    def _base_metadata(self, document: LegalDocument, source_type: str) -> dict:
        return {
            "source_type": source_type,
            "document_type": document.document_type,
            "act_id": document.act_id,
            "regulation_id": document.regulation_id,
            "document_title": document.title,
            "language": document.language,
        }

    def _make_chunks(
        self,
        document: LegalDocument,
        source_id: str,
        source_type: str,
        bodies: list[str],
        base_metadata: dict,
    ) -> list[Chunk]:
        chunks = []
        total = len(bodies)
        for index, body in enumerate(bodies):
            metadata = dict(base_metadata, chunk_index=index, total_chunks=total)
            chunks.append(Chunk(
                chunk_id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"{source_id}#{index}")),
                source_id=f"{source_id}#{index}",
                source_type=source_type,
                document_id=document.document_id,
                language=document.language,
                content=body,
                token_count=int(len(body) / self.config.chars_per_token),
                chunk_index=index,
                total_chunks=total,
                metadata=metadata,
            ))
        return chunks
