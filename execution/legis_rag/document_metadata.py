"""
Document-level metadata of Justice Canada XML

Readers for the parts of an act or regulation that sit outside its body:
the enacting clause, the bill history carried in the identification block,
the consolidation's recent amendments, related provisions, the regulation
maker and order, signature blocks and the table of provisions.

Every reader takes a bs4 Tag (or None) and returns None or an empty list when
the element is absent or holds nothing usable.
"""

from dataclasses import dataclass, field
from typing import Optional

from bs4.element import Tag

from .markup import (
    child,
    child_text,
    children,
    extract_lims_metadata,
    extract_text,
    parse_date,
    parse_date_element,
)


@dataclass
class EnactingClause:
    """The "Now, therefore, His Majesty ... enacts as follows" text."""
    text: str
    lims_metadata: Optional[dict[str, str]] = None
    inforce_start_date: Optional[str] = None
    enacted_date: Optional[str] = None


@dataclass
class BillStage:
    stage: str
    date: Optional[str] = None


@dataclass
class BillHistory:
    """Bill number, Parliament and passage stages of the enacting bill."""
    bill_number: Optional[str] = None
    ref_number: Optional[str] = None
    ref_date_time: Optional[str] = None
    parliament_number: Optional[str] = None
    parliament_session: Optional[str] = None
    parliament_years: Optional[str] = None
    regnal_year: Optional[str] = None
    monarch: Optional[str] = None
    stages: list[BillStage] = field(default_factory=list)


@dataclass
class Amendment:
    """One entry of the consolidation's RecentAmendments list."""
    citation: str
    date: Optional[str] = None
    link: Optional[str] = None


@dataclass
class RelatedProvision:
    label: Optional[str] = None
    source: Optional[str] = None
    sections: list[str] = field(default_factory=list)
    text: str = ""


@dataclass
class RegulationMakerOrder:
    regulation_maker: Optional[str] = None
    order_number: Optional[str] = None
    order_date: Optional[str] = None


@dataclass
class SignatureLine:
    name: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None


@dataclass
class SignatureBlock:
    """Signatures of a treaty or convention reproduced in a schedule."""
    witness_clause: Optional[str] = None
    done_at: Optional[str] = None
    lines: list[SignatureLine] = field(default_factory=list)


@dataclass
class TableOfProvisionsEntry:
    label: str
    title: str
    level: int


# =============================================================================
# Readers
# =============================================================================

def extract_enacting_clause(introduction: Optional[Tag]) -> Optional[EnactingClause]:
    """
    Introduction/Enacts. Text of all its Provisions is joined; dates and LIMS
    metadata come from the first Provision that has them, then from Enacts.
    """
    if introduction is None:
        return None
    enacts = child(introduction, "Enacts")
    if enacts is None:
        return None

    provisions = children(enacts, "Provision")
    if not provisions:
        text = extract_text(enacts)
        if not text:
            return None
        return EnactingClause(
            text=text,
            lims_metadata=extract_lims_metadata(enacts),
            inforce_start_date=parse_date(enacts.get("lims:inforce-start-date")),
            enacted_date=parse_date(enacts.get("lims:enacted-date")),
        )

    texts = [t for t in (extract_text(p) for p in provisions) if t]
    if not texts:
        return None

    sources = provisions + [enacts]
    return EnactingClause(
        text=" ".join(texts),
        lims_metadata=next(filter(None, (extract_lims_metadata(el) for el in sources)), None),
        inforce_start_date=next(
            filter(None, (parse_date(el.get("lims:inforce-start-date")) for el in sources)), None
        ),
        enacted_date=next(
            filter(None, (parse_date(el.get("lims:enacted-date")) for el in sources)), None
        ),
    )


def extract_bill_history(identification: Optional[Tag]) -> Optional[BillHistory]:
    if identification is None:
        return None
    history = BillHistory(bill_number=child_text(identification, "BillNumber"))

    ref = child(identification, "BillRefNumber")
    if ref is not None:
        history.ref_number = extract_text(ref) or None
        history.ref_date_time = ref.get("date-time")

    parliament = child(identification, "Parliament")
    if parliament is not None:
        history.parliament_session = child_text(parliament, "Session")
        history.parliament_number = child_text(parliament, "Number")
        history.parliament_years = child_text(parliament, "Year-s")
        regnal = child(parliament, "RegnalYear")
        if regnal is not None:
            history.regnal_year = child_text(regnal, "Year-s")
            history.monarch = child_text(regnal, "Monarch")

    bill_history = child(identification, "BillHistory")
    if bill_history is not None:
        for stage in children(bill_history, "Stages"):
            name = stage.get("stage")
            if name:
                history.stages.append(BillStage(stage=name, date=parse_date_element(child(stage, "Date"))))

    if not (history.bill_number or parliament is not None or history.stages):
        return None
    return history


def extract_recent_amendments(root: Tag) -> list[Amendment]:
    recent = child(root, "RecentAmendments")
    if recent is None:
        return []
    amendments = []
    for amendment in children(recent, "Amendment"):
        citation_el = child(amendment, "AmendmentCitation")
        citation = extract_text(citation_el)
        if not citation:
            continue
        amendments.append(Amendment(
            citation=citation,
            date=child_text(amendment, "AmendmentDate"),
            link=citation_el.get("link"),
        ))
    return amendments


def extract_related_provisions(root: Tag) -> list[RelatedProvision]:
    """RelatedProvisions at the root or directly under Body."""
    container = child(root, "RelatedProvisions")
    if container is None:
        body = child(root, "Body")
        container = child(body, "RelatedProvisions") if body is not None else None
    if container is None:
        return []

    provisions = []
    for el in children(container, "RelatedProvision"):
        sections = [s for s in (extract_text(s) for s in children(el, "Section")) if s]
        provision = RelatedProvision(
            label=el.get("label"),
            source=el.get("source"),
            sections=sections,
            text=extract_text(el),
        )
        if provision.text or provision.label or provision.source or sections:
            provisions.append(provision)
    return provisions


def extract_regulation_maker_order(identification: Optional[Tag]) -> Optional[RegulationMakerOrder]:
    if identification is None:
        return None
    el = child(identification, "RegulationMakerOrder")
    if el is None:
        return None
    order = RegulationMakerOrder(
        regulation_maker=child_text(el, "RegulationMaker"),
        order_number=child_text(el, "OrderNumber"),
        order_date=parse_date_element(child(el, "Date")),
    )
    if not (order.regulation_maker or order.order_number or order.order_date):
        return None
    return order


def extract_signature_blocks(root: Tag) -> list[SignatureBlock]:
    """SignatureBlock elements at any depth, in document order."""
    blocks = []
    for el in root.find_all("SignatureBlock"):
        block = SignatureBlock(
            witness_clause=child_text(el, "WitnessClause"),
            done_at=child_text(el, "DoneAt"),
        )
        for line_el in children(el, "SignatureLine"):
            line = SignatureLine(
                name=child_text(line_el, "SignatureName"),
                title=child_text(line_el, "SignatureTitle"),
                date=parse_date_element(child(line_el, "Date")),
                location=child_text(line_el, "Location"),
            )
            if line.name or line.title:
                block.lines.append(line)
        if block.lines or block.witness_clause or block.done_at:
            blocks.append(block)
    return blocks


def extract_table_of_provisions(root: Tag) -> list[TableOfProvisionsEntry]:
    """Flattened TableOfProvisions; nested TitleProvisions get level + 1."""
    table = root.find("TableOfProvisions")
    if table is None:
        return []
    entries: list[TableOfProvisionsEntry] = []

    def visit(el: Tag, level: int) -> None:
        label = child_text(el, "Label") or ""
        title = child_text(el, "TitleText") or extract_text(
            el, skip_children=("Label", "TitleProvision")
        )
        if label or title:
            entries.append(TableOfProvisionsEntry(label=label, title=title, level=level))
        for nested in children(el, "TitleProvision"):
            visit(nested, level + 1)

    for provision in children(table, "TitleProvision"):
        visit(provision, 1)
    return entries
