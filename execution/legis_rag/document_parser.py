"""
Legislation Parser - Turns Justice Canada XML into a document model

Parses consolidated federal acts (<Statute>) and regulations (<Regulation>)
in either official language. One parse produces one single-language
LegalDocument; bilingual coverage comes from parsing the EN and FR files
separately and correlating sections by label.

Extracted structure:
- Sections in document order, typed ordinary / schedule / form / table
  (plus amending and provision), with hierarchy, status and LIMS metadata
- Defined terms with their scope (whole document, Part, or listed sections)
- Schedules, with every nested section inheriting the schedule heading
- Regulation-only Recommendation and Notice blocks
- Footnotes, historical notes, internal and external cross-references
- Document-level history: enacting clause (also kept as a provision
  section ahead of the body), bill history, recent amendments, related
  provisions, signature blocks, table of provisions, and for regulations
  the regulation type, Gazette part and regulation maker order
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from bs4.element import Tag

from .definitions import DefinitionScope, normalize_regulation_id, normalize_term, parse_definition_scope
from .document_metadata import (
    Amendment,
    BillHistory,
    EnactingClause,
    RegulationMakerOrder,
    RelatedProvision,
    SignatureBlock,
    TableOfProvisionsEntry,
    extract_bill_history,
    extract_enacting_clause,
    extract_recent_amendments,
    extract_regulation_maker_order,
    extract_related_provisions,
    extract_signature_blocks,
    extract_table_of_provisions,
)
from .errors import ParseError
from .language_config import SUPPORTED_LANGUAGES
from .language_patterns import LEGISLATION_LABELS, PART_HEADING_PATTERN, get_labels
from .markup import (
    child,
    child_text,
    children,
    extract_body_text,
    extract_cross_references,
    extract_footnotes,
    extract_historical_notes,
    extract_internal_references,
    extract_lims_metadata,
    extract_text,
    load_markup,
    parse_date,
    parse_date_element,
    render_body_html,
    render_html,
)

logger = logging.getLogger(__name__)

DOCUMENT_SCOPES = ("act", "regulation")

# Root children that never hold body provisions
_NON_BODY_ELEMENTS = frozenset([
    "Identification",
    "Introduction",
    "Recommendation",
    "Notice",
    "RecentAmendments",
    "TableOfProvisions",
    "ScheduleFormHeading",
    "Footnote",
    "HistoricalNote",
])


# =============================================================================
# Document Model
# =============================================================================

@dataclass
class Footnote:
    """A footnote attached to a provision or regulation block."""
    id: str
    placement: Optional[str] = None
    status: Optional[str] = None
    label: Optional[str] = None
    text: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CrossReference:
    """A reference from a section to another act or regulation."""
    source_section_label: Optional[str]
    target_type: str  # act | regulation
    target_ref: str
    reference_text: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Section:
    """A numbered or labelled unit of legal text."""
    canonical_section_id: str
    label: str
    order: int
    language: str
    section_type: str  # ordinary | schedule | form | table | amending | provision
    content: str
    content_html: str = ""
    marginal_note: Optional[str] = None
    status: str = "in-force"  # in-force | repealed | not-in-force
    hierarchy_path: list[str] = field(default_factory=list)
    parent_label: Optional[str] = None
    part_label: Optional[str] = None
    inforce_start_date: Optional[str] = None
    last_amended_date: Optional[str] = None
    enacted_date: Optional[str] = None
    lims_metadata: Optional[dict[str, str]] = None
    footnotes: list[Footnote] = field(default_factory=list)
    historical_notes: list[str] = field(default_factory=list)
    internal_references: list[str] = field(default_factory=list)
    # Schedule context, inherited from the enclosing Schedule
    schedule_id: Optional[str] = None
    schedule_label: Optional[str] = None
    schedule_title: Optional[str] = None
    schedule_originating_ref: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DefinedTerm:
    """A term introduced by a Definition block."""
    term: str
    term_normalized: str
    language: str
    definition: str
    section_label: Optional[str]
    scope_type: str  # act | regulation | part | section
    scope_sections: Optional[list[str]] = None
    scope_raw_text: Optional[str] = None
    paired_term: Optional[str] = None
    part_label: Optional[str] = None
    lims_metadata: Optional[dict[str, str]] = None
    act_id: Optional[str] = None
    regulation_id: Optional[str] = None

    def applies_to(self, section: Section) -> bool:
        """Whether this definition is in force for the given section."""
        if self.scope_type in DOCUMENT_SCOPES:
            return True
        if self.scope_type == "part":
            return self.part_label == section.part_label
        if self.scope_type == "section":
            return section.label in (self.scope_sections or [])
        return False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Schedule:
    """A schedule appended to an act or regulation."""
    schedule_id: Optional[str]
    label: Optional[str]
    title: Optional[str]
    originating_ref: Optional[str] = None
    section_labels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RegulationBlock:
    """A root-level Recommendation or Notice of a regulation."""
    block_type: str  # recommendation | notice
    content: str
    content_html: str = ""
    publication_requirement: Optional[str] = None  # Notice only
    source_sections: list[str] = field(default_factory=list)
    lims_metadata: Optional[dict[str, str]] = None
    footnotes: list[Footnote] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LegalDocument:
    """A parsed act or regulation in one language."""
    document_id: str
    document_type: str  # act | regulation
    language: str
    short_title: Optional[str] = None
    long_title: Optional[str] = None
    status: str = "in-force"
    in_force_date: Optional[str] = None
    consolidation_date: Optional[str] = None
    enacted_date: Optional[str] = None
    last_amended_date: Optional[str] = None
    registration_date: Optional[str] = None
    preamble: Optional[str] = None
    enabling_authorities: list[dict] = field(default_factory=list)
    lims_metadata: Optional[dict[str, str]] = None
    sections: list[Section] = field(default_factory=list)
    defined_terms: list[DefinedTerm] = field(default_factory=list)
    cross_references: list[CrossReference] = field(default_factory=list)
    schedules: list[Schedule] = field(default_factory=list)
    recommendations: list[RegulationBlock] = field(default_factory=list)
    notices: list[RegulationBlock] = field(default_factory=list)
    enacting_clause: Optional[EnactingClause] = None
    bill_history: Optional[BillHistory] = None
    recent_amendments: list[Amendment] = field(default_factory=list)
    related_provisions: list[RelatedProvision] = field(default_factory=list)
    signature_blocks: list[SignatureBlock] = field(default_factory=list)
    table_of_provisions: list[TableOfProvisionsEntry] = field(default_factory=list)
    # Regulations only
    regulation_type: Optional[str] = None
    gazette_part: Optional[str] = None
    regulation_maker_order: Optional[RegulationMakerOrder] = None

    def __post_init__(self):
        self._section_index: Optional[dict] = None

    @property
    def title(self) -> str:
        return self.short_title or self.long_title or self.document_id

    @property
    def act_id(self) -> Optional[str]:
        return self.document_id if self.document_type == "act" else None

    @property
    def regulation_id(self) -> Optional[str]:
        return self.document_id if self.document_type == "regulation" else None

    def get_section(self, label: str, section_type: str = "ordinary") -> Optional[Section]:
        """
        Look up a section by (type, label).

        Labels repeat across schedules, so the type is part of the identity.
        The index is built on first use, after the whole tree is parsed.
        """
        if self._section_index is None:
            self._section_index = {}
            for section in self.sections:
                self._section_index.setdefault((section.section_type, section.label), section)
        return self._section_index.get((section_type, label))

    def terms_for_section(self, section: Section) -> list[DefinedTerm]:
        """Definitions that apply to a section: document-wide, its Part, or listed sections."""
        return [term for term in self.defined_terms if term.applies_to(section)]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["title"] = self.title
        return data


# =============================================================================
# Parser
# =============================================================================

@dataclass
class _ScheduleContext:
    schedule: Schedule
    amending: bool = False

    @property
    def display_label(self) -> str:
        return self.schedule.label or self.schedule.schedule_id or "Schedule"

    @property
    def slug(self) -> str:
        return "-".join(self.display_label.split()).lower()


class _BodyWalker:
    """Depth-first walk over a document body, accumulating the model in document order."""

    def __init__(self, document: LegalDocument):
        self.document = document
        self.language = document.language
        self.order = 0
        self.hierarchy: list[tuple[int, str]] = []
        self.part_label: Optional[str] = None
        self.part_level: Optional[int] = None

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def walk(self, el: Tag, context: Optional[_ScheduleContext] = None) -> None:
        for node in children(el):
            name = node.name
            if name in _NON_BODY_ELEMENTS:
                continue
            if name == "Heading":
                self._enter_heading(node)
            elif name == "Section":
                self._add_section(node, context)
            elif name == "Provision":
                self._add_provision(node, context)
            elif name == "Schedule":
                self._walk_schedule(node)
            elif context is not None and name == "List":
                self._add_list_items(node, context, [context.display_label])
            elif context is not None and name == "FormGroup":
                self._add_group(node, context, "form")
            elif context is not None and name == "TableGroup":
                self._add_group(node, context, "table")
            else:
                # BillPiece, RelatedOrNotInForce, Order, Body, Group, ...
                self.walk(node, context)

    def _enter_heading(self, heading: Tag) -> None:
        try:
            level = int(heading.get("level", "1"))
        except ValueError:
            level = 1
        label = child_text(heading, "Label")
        title = child_text(heading, "TitleText")
        text = " ".join(part for part in (label, title) if part)

        self.hierarchy = [(lvl, h) for lvl, h in self.hierarchy if lvl < level]
        if text:
            self.hierarchy.append((level, text))

        if label and PART_HEADING_PATTERN.match(label):
            self.part_label = label
            self.part_level = level
        elif self.part_level is not None and level <= self.part_level:
            self.part_label = None
            self.part_level = None

    def _walk_schedule(self, el: Tag) -> None:
        heading = child(el, "ScheduleFormHeading")
        label = title = originating_ref = heading_type = None
        if heading is not None:
            label = child_text(heading, "Label")
            title = child_text(heading, "TitleText")
            ref_el = child(heading, "OriginatingRef")
            if ref_el is not None:
                originating_ref = extract_text(ref_el) or None
            heading_type = heading.get("type")

        schedule = Schedule(
            schedule_id=el.get("id"),
            label=label,
            title=title,
            originating_ref=originating_ref,
        )
        self.document.schedules.append(schedule)
        context = _ScheduleContext(
            schedule=schedule,
            amending=el.get("id") == "NifProvs" or heading_type == "amending",
        )

        saved = (self.hierarchy, self.part_label, self.part_level)
        self.hierarchy = [(0, context.display_label)]
        self.part_label = self.part_level = None
        self.walk(el, context)
        self.hierarchy, self.part_label, self.part_level = saved

    # -------------------------------------------------------------------------
    # Section builders
    # -------------------------------------------------------------------------

    def _canonical_id(self, section_type: str, suffix: str, context: Optional[_ScheduleContext]) -> str:
        base = f"{self.document.document_id}/{self.language}/{section_type}/{self.order}"
        if context is not None:
            return f"{base}/sch-{context.slug}{suffix}"
        return f"{base}{suffix}"

    def _new_section(
        self,
        el: Tag,
        label: str,
        section_type: str,
        canonical_id: str,
        content: str,
        context: Optional[_ScheduleContext],
        hierarchy: Optional[list[str]] = None,
        marginal_note: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Section:
        path = hierarchy if hierarchy is not None else [h for _, h in self.hierarchy]
        section = Section(
            canonical_section_id=canonical_id,
            label=label,
            order=self.order,
            language=self.language,
            section_type=section_type,
            content=content,
            content_html=render_body_html(el, self.language),
            marginal_note=marginal_note,
            status=status or _status(el),
            hierarchy_path=list(path),
            parent_label=path[-1] if path else None,
            part_label=self.part_label,
            inforce_start_date=parse_date(el.get("lims:inforce-start-date")),
            last_amended_date=parse_date(el.get("lims:lastAmendedDate")),
            enacted_date=parse_date(el.get("lims:enacted-date")),
            lims_metadata=extract_lims_metadata(el),
            footnotes=[Footnote(**fn) for fn in extract_footnotes(el)],
            historical_notes=extract_historical_notes(el),
            internal_references=extract_internal_references(el),
        )
        if context is not None:
            schedule = context.schedule
            section.schedule_id = schedule.schedule_id
            section.schedule_label = schedule.label
            section.schedule_title = schedule.title
            section.schedule_originating_ref = schedule.originating_ref
            schedule.section_labels.append(label)

        self.document.sections.append(section)
        self.document.cross_references.extend(
            CrossReference(**ref) for ref in extract_cross_references(el, label)
        )
        return section

    def _add_section(self, el: Tag, context: Optional[_ScheduleContext]) -> None:
        label = child_text(el, "Label")
        if not label:
            return
        self.order += 1

        xml_type = el.get("type")
        if xml_type in ("amending", "CIF"):
            section_type = "amending"
        elif context is not None:
            section_type = "amending" if context.amending else "schedule"
        else:
            section_type = "ordinary"

        section = self._new_section(
            el,
            label=label,
            section_type=section_type,
            canonical_id=self._canonical_id(section_type, f"/s{label}", context),
            content=extract_body_text(el),
            context=context,
            marginal_note=child_text(el, "MarginalNote"),
            status="repealed" if _is_repealed(el) else None,
        )
        self._add_definitions(el, section)

    def _add_provision(self, el: Tag, context: Optional[_ScheduleContext]) -> None:
        content = extract_body_text(el)
        if not content:
            return
        self.order += 1
        label = f"order-{self.order}"
        self._new_section(
            el,
            label=label,
            section_type="provision",
            canonical_id=self._canonical_id("provision", f"/{label}", context),
            content=content,
            context=context,
            marginal_note=child_text(el, "MarginalNote"),
        )

    def _add_list_items(self, list_el: Tag, context: _ScheduleContext, path: list[str]) -> None:
        section_type = "amending" if context.amending else "schedule"
        for item in children(list_el, "Item"):
            item_label = child_text(item, "Label")
            text = extract_text(item, skip_children=("Label", "List"))
            if text:
                self.order += 1
                suffix = f"-{item_label}" if item_label else "-item"
                self._new_section(
                    item,
                    label=f"{context.display_label} Item {item_label or self.order}",
                    section_type=section_type,
                    canonical_id=self._canonical_id(section_type, suffix, context),
                    content=text,
                    context=context,
                    hierarchy=path,
                    status="repealed" if child(item, "Repealed") is not None else None,
                )
            for nested in children(item, "List"):
                self._add_list_items(nested, context, path + [item_label or f"Item {self.order}"])

    def _add_group(self, el: Tag, context: _ScheduleContext, section_type: str) -> None:
        content = extract_text(el)
        if not content:
            return
        self.order += 1
        if section_type == "form":
            label, suffix, note = context.display_label, "-fg", context.schedule.title
        else:
            label, suffix, note = f"{context.display_label} Table", "-tbl", None
        self._new_section(
            el,
            label=label,
            section_type=section_type,
            canonical_id=self._canonical_id(section_type, suffix, context),
            content=content,
            context=context,
            hierarchy=[context.display_label],
            marginal_note=note,
        )

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def _add_definitions(self, el: Tag, section: Section) -> None:
        scope: Optional[DefinitionScope] = None
        text_el = child(el, "Text")
        if text_el is not None:
            scope_text = extract_text(text_el)
            if scope_text:
                scope = self._scope(scope_text, section.label)

        holders = [el]
        for subsection in children(el, "Subsection"):
            sub_text = child(subsection, "Text")
            if scope is None and sub_text is not None:
                scope_text = extract_text(sub_text)
                if scope_text:
                    scope = self._scope(scope_text, section.label)
            holders.append(subsection)

        for holder in holders:
            definitions = children(holder, "Definition")
            for definition in definitions:
                self._add_terms(definition, child(definition, "Text"), section, scope, lims=True)
            holder_text = child(holder, "Text")
            if not definitions and holder_text is not None and _has_inline_term(holder_text):
                self._add_terms(holder, holder_text, section, scope, lims=False)

    def _scope(self, text: str, label: str) -> DefinitionScope:
        return parse_definition_scope(text, label, self.document.document_type)

    def _add_terms(
        self,
        holder: Tag,
        text_el: Optional[Tag],
        section: Section,
        scope: Optional[DefinitionScope],
        lims: bool,
    ) -> None:
        if text_el is None:
            return
        terms_en = [t for t in (extract_text(x) for x in text_el.find_all("DefinedTermEn")) if t]
        terms_fr = [t for t in (extract_text(x) for x in text_el.find_all("DefinedTermFr")) if t]

        primary, paired = (terms_fr, terms_en) if self.language == "fr" else (terms_en, terms_fr)
        if not primary:
            primary, paired = paired, []
        if not primary:
            return

        definition = extract_text(text_el)
        lims_metadata = extract_lims_metadata(holder) if lims else None
        scope = scope or DefinitionScope(self.document.document_type)

        for index, term in enumerate(primary):
            if index < len(paired):
                paired_term = paired[index]
            else:
                paired_term = paired[0] if len(paired) == 1 else None
            self.document.defined_terms.append(DefinedTerm(
                term=term,
                term_normalized=normalize_term(term),
                language=self.language,
                definition=definition,
                section_label=section.label,
                scope_type=scope.scope_type,
                scope_sections=scope.scope_sections,
                scope_raw_text=scope.scope_raw_text,
                paired_term=paired_term,
                part_label=section.part_label,
                lims_metadata=lims_metadata,
                act_id=self.document.act_id,
                regulation_id=self.document.regulation_id,
            ))


def _status(el: Tag) -> str:
    return "not-in-force" if el.get("in-force") == "no" else "in-force"


def _is_repealed(el: Tag) -> bool:
    """
    A section is repealed when its primary content is a Repealed element,
    either directly or as the only element inside its Text.
    """
    if child(el, "Repealed") is not None:
        return True
    text_el = child(el, "Text")
    if text_el is None:
        return False
    elements = children(text_el)
    return len(elements) == 1 and elements[0].name == "Repealed"


def _has_inline_term(text_el: Tag) -> bool:
    return text_el.find(["DefinedTermEn", "DefinedTermFr"]) is not None


class LegislationParser:
    """
    Parses Justice Canada legislative XML into LegalDocument objects.

    Usage:
        parser = LegislationParser()
        doc = parser.parse(xml_text, "en")
        section = doc.get_section("91")
    """

    def parse(self, raw_markup: str, language: str) -> LegalDocument:
        """
        Parse an act or regulation.

        Args:
            raw_markup: XML source text
            language: "en" or "fr", the language of the source file

        Returns:
            LegalDocument for that language

        Raises:
            ParseError: if the root is not Statute/Regulation or the
                identification block lacks the document id
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ParseError(f"Unsupported language: {language!r}")

        soup = load_markup(raw_markup or "")
        root = soup.find(True)
        if root is None:
            raise ParseError("Document has no root element")

        if root.name == "Statute":
            document = self._parse_statute(root, language)
        elif root.name == "Regulation":
            document = self._parse_regulation(root, language)
        else:
            raise ParseError(f"Unrecognized root element <{root.name}>")

        document.recent_amendments = extract_recent_amendments(root)
        document.related_provisions = extract_related_provisions(root)
        document.signature_blocks = extract_signature_blocks(root)
        document.table_of_provisions = extract_table_of_provisions(root)

        _BodyWalker(document).walk(root)

        logger.info(
            f"Parsed {document.document_type} {document.document_id} ({language}): "
            f"{len(document.sections)} sections, {len(document.defined_terms)} terms, "
            f"{len(document.schedules)} schedules"
        )
        return document

    def parse_file(self, file_path: str, language: Optional[str] = None) -> LegalDocument:
        """
        Parse an XML file. The language defaults to the path convention of the
        Justice Canada dumps (.../eng/... or .../fra/...).
        """
        path = Path(file_path)
        if language is None:
            language = "fr" if any(p.lower() in ("fra", "fr") for p in path.parts) else "en"
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read {path}: {e}", source=str(path)) from e
        try:
            return self.parse(raw, language)
        except ParseError as e:
            e.source = str(path)
            raise

    # -------------------------------------------------------------------------
    # Root handling
    # -------------------------------------------------------------------------

    def _parse_statute(self, root: Tag, language: str) -> LegalDocument:
        identification = child(root, "Identification")
        chapter = child(identification, "Chapter") if identification is not None else None
        act_id = None
        if chapter is not None:
            act_id = child_text(chapter, "ConsolidatedNumber") or child_text(chapter, "OfficialNumber")
        if not act_id:
            raise ParseError("Statute is missing Chapter/ConsolidatedNumber")

        document = self._new_document(root, identification, act_id, "act", language)
        document.bill_history = extract_bill_history(identification)
        introduction = child(root, "Introduction")
        if introduction is not None:
            preamble = child(introduction, "Preamble")
            document.preamble = extract_text(preamble) or None
            document.enacting_clause = extract_enacting_clause(introduction)
            if document.enacting_clause is not None:
                document.sections.append(
                    self._enacting_section(document, child(introduction, "Enacts"))
                )
        return document

    def _parse_regulation(self, root: Tag, language: str) -> LegalDocument:
        identification = child(root, "Identification")
        instrument = child_text(identification, "InstrumentNumber") if identification is not None else None
        if not instrument:
            raise ParseError("Regulation is missing Identification/InstrumentNumber")

        document = self._new_document(
            root, identification, normalize_regulation_id(instrument), "regulation", language
        )
        document.regulation_type = root.get("regulation-type")
        document.gazette_part = root.get("gazette-part")
        document.regulation_maker_order = extract_regulation_maker_order(identification)

        registration = child(identification, "RegistrationDate")
        if registration is not None:
            document.registration_date = parse_date_element(child(registration, "Date"))

        for authority in identification.find_all("EnablingAuthority"):
            for ref in authority.find_all("XRefExternal"):
                document.enabling_authorities.append({
                    "act_id": ref.get("link"),
                    "act_title": extract_text(ref) or None,
                })

        document.recommendations = self._parse_blocks(root, "Recommendation", language)
        document.notices = self._parse_blocks(root, "Notice", language)
        return document

    def _new_document(
        self,
        root: Tag,
        identification: Tag,
        document_id: str,
        document_type: str,
        language: str,
    ) -> LegalDocument:
        consolidation_date = parse_date(root.get("lims:current-date"))
        if consolidation_date is None:
            consolidation = child(identification, "ConsolidationDate")
            if consolidation is not None:
                consolidation_date = parse_date_element(child(consolidation, "Date"))

        return LegalDocument(
            document_id=document_id,
            document_type=document_type,
            language=language,
            short_title=child_text(identification, "ShortTitle"),
            long_title=child_text(identification, "LongTitle"),
            status=_status(root),
            in_force_date=parse_date(root.get("lims:inforce-start-date")),
            consolidation_date=consolidation_date,
            enacted_date=parse_date(root.get("lims:enacted-date")),
            last_amended_date=parse_date(root.get("lims:lastAmendedDate")),
            lims_metadata=extract_lims_metadata(root),
        )

    def _enacting_section(self, document: LegalDocument, enacts: Tag) -> Section:
        """The enacting clause as a provision ahead of every body section (order 0)."""
        clause = document.enacting_clause
        return Section(
            canonical_section_id=f"{document.document_id}/{document.language}/enacts",
            label=get_labels(LEGISLATION_LABELS, document.language)["enacting_clause"],
            order=0,
            language=document.language,
            section_type="provision",
            content=clause.text,
            content_html=render_html(enacts, document.language),
            inforce_start_date=clause.inforce_start_date,
            enacted_date=clause.enacted_date,
            lims_metadata=clause.lims_metadata,
        )

    def _parse_blocks(self, root: Tag, name: str, language: str) -> list[RegulationBlock]:
        """Recommendation/Notice blocks. Only direct children of the root count."""
        blocks = []
        block_type = name.lower()
        for el in children(root, name):
            content = extract_text(el)
            requirement = el.get("publication-requirement") if block_type == "notice" else None
            lims_metadata = extract_lims_metadata(el)
            footnotes = [Footnote(**fn) for fn in extract_footnotes(el)]
            source_sections = extract_internal_references(el)

            if not (content or requirement or lims_metadata or footnotes or source_sections):
                continue
            blocks.append(RegulationBlock(
                block_type=block_type,
                content=content,
                content_html=render_html(el, language),
                publication_requirement=requirement,
                source_sections=source_sections,
                lims_metadata=lims_metadata,
                footnotes=footnotes,
            ))
        return blocks


def parse(raw_markup: str, language: str) -> LegalDocument:
    """Parse legislative XML with a default LegislationParser."""
    return LegislationParser().parse(raw_markup, language)


# CLI for testing
if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        print("Usage: python -m execution.legis_rag.document_parser <file.xml> [en|fr]")
        sys.exit(1)

    doc = LegislationParser().parse_file(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)

    print(f"\n{'='*60}")
    print(f"{doc.document_type.upper()} {doc.document_id}: {doc.title}")
    print(f"Language: {doc.language} | Status: {doc.status} | Consolidated: {doc.consolidation_date}")
    print(f"{'='*60}")
    print(f"Sections: {len(doc.sections)}")
    print(f"Defined terms: {len(doc.defined_terms)}")
    print(f"Schedules: {len(doc.schedules)}")
    print(f"Recommendations: {len(doc.recommendations)} | Notices: {len(doc.notices)}")
    print(f"Recent amendments: {len(doc.recent_amendments)} | Related provisions: {len(doc.related_provisions)}")
    if doc.bill_history and doc.bill_history.bill_number:
        print(f"Bill: {doc.bill_history.bill_number}")

    for section in doc.sections[:10]:
        note = f" - {section.marginal_note}" if section.marginal_note else ""
        print(f"  [{section.section_type}] {section.label}{note}")
