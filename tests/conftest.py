"""
Shared fixtures and test utilities for Legislation RAG tests.

Provides mock services, sample legislation XML, and reusable fixtures so that
all tests can run without API keys, databases, or external network access.
"""

import sys
import hashlib
from pathlib import Path

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

# ---------------------------------------------------------------------------
# Sample legislation XML (Justice Canada format, trimmed)
# ---------------------------------------------------------------------------

SAMPLE_ACT_EN = """<?xml version="1.0" encoding="UTF-8"?>
<Statute xmlns:lims="http://justice.gc.ca/lims" lims:current-date="20240301" lims:inforce-start-date="2002-06-28" lims:fid="1" lims:id="1" in-force="yes">
  <Identification>
    <LongTitle>An Act respecting immigration to Canada and the granting of refugee protection</LongTitle>
    <ShortTitle status="official">Immigration and Refugee Protection Act</ShortTitle>
    <Chapter><ConsolidatedNumber official="yes">I-2.5</ConsolidatedNumber></Chapter>
  </Identification>
  <Body>
    <Heading level="1"><TitleText>Interpretation</TitleText></Heading>
    <Section lims:fid="100" lims:inforce-start-date="2002-06-28">
      <MarginalNote>Definitions</MarginalNote>
      <Label>2</Label>
      <Text>The following definitions apply in this Act.</Text>
      <Definition lims:fid="12345"><Text><DefinedTermEn>foreign national</DefinedTermEn> means a person who is not a Canadian citizen or a permanent resident. (<DefinedTermFr>étranger</DefinedTermFr>)</Text></Definition>
      <Definition><Text><DefinedTermEn>Minister</DefinedTermEn> means the Minister of Citizenship and Immigration. (<DefinedTermFr>ministre</DefinedTermFr>)</Text></Definition>
    </Section>
    <Heading level="1"><Label>PART 1</Label><TitleText>Immigration to Canada</TitleText></Heading>
    <Section>
      <MarginalNote>Definitions</MarginalNote>
      <Label>10</Label>
      <Text>The following definitions apply in this Part.</Text>
      <Definition><Text><DefinedTermEn>officer</DefinedTermEn> means a person designated as an officer. (<DefinedTermFr>agent</DefinedTermFr>)</Text></Definition>
    </Section>
    <Section>
      <MarginalNote>Application before entering Canada</MarginalNote>
      <Label>11</Label>
      <Text>A foreign national must, before entering Canada, apply to an officer for a visa as provided under the <XRefExternal reference-type="act" link="C-29">Citizenship Act</XRefExternal>.</Text>
    </Section>
    <Heading level="1"><Label>PART 2</Label><TitleText>Refugee Protection</TitleText></Heading>
    <Section>
      <Label>12</Label>
      <Text>Refugee protection is conferred on a person whose claim is accepted.</Text>
    </Section>
    <Section>
      <Label>13</Label>
      <Text><Repealed>[Repealed, 2012, c. 17, s. 5]</Repealed></Text>
    </Section>
  </Body>
  <Schedule id="sched-1">
    <ScheduleFormHeading>
      <Label>SCHEDULE</Label>
      <OriginatingRef>(Section 2)</OriginatingRef>
      <TitleText>Designated Countries</TitleText>
    </ScheduleFormHeading>
    <List>
      <Item><Label>1</Label><Text>France</Text></Item>
      <Item><Label>2</Label><Text>Belgium</Text>
        <List><Item><Label>(a)</Label><Text>Flanders</Text></Item></List>
      </Item>
    </List>
    <FormGroup><Text>Form of application for protection</Text></FormGroup>
    <TableGroup><table><tbody><row><entry>Country code</entry></row></tbody></table></TableGroup>
  </Schedule>
  <Schedule id="sched-2">
    <ScheduleFormHeading>
      <Label>SCHEDULE 2</Label>
      <TitleText>Forms</TitleText>
    </ScheduleFormHeading>
    <List>
      <Item><Label>1</Label><Text>Visitor record</Text></Item>
    </List>
  </Schedule>
</Statute>
"""

SAMPLE_ACT_FR = """<?xml version="1.0" encoding="UTF-8"?>
<Statute xmlns:lims="http://justice.gc.ca/lims" lims:current-date="20240301">
  <Identification>
    <LongTitle>Loi concernant la citoyenneté</LongTitle>
    <ShortTitle status="official">Loi sur la citoyenneté</ShortTitle>
    <Chapter><ConsolidatedNumber official="yes">C-29</ConsolidatedNumber></Chapter>
  </Identification>
  <Body>
    <Section>
      <MarginalNote>Définitions</MarginalNote>
      <Label>2</Label>
      <Text>Les définitions qui suivent s'appliquent à la présente loi.</Text>
      <Definition lims:fid="555"><Text><DefinedTermFr>citoyen</DefinedTermFr> Citoyen canadien. (<DefinedTermEn>citizen</DefinedTermEn>)</Text></Definition>
    </Section>
  </Body>
</Statute>
"""

MINIMAL_ACT_EN = """<?xml version="1.0" encoding="UTF-8"?>
<Statute>
  <Identification>
    <ShortTitle>Access Act</ShortTitle>
    <Chapter><ConsolidatedNumber>A-1</ConsolidatedNumber></Chapter>
  </Identification>
  <Body>
    <Section><Label>1</Label><Text>This Act may be cited as the Access Act.</Text></Section>
  </Body>
</Statute>
"""

SAMPLE_REGULATION_EN = """<?xml version="1.0" encoding="UTF-8"?>
<Regulation xmlns:lims="http://justice.gc.ca/lims" lims:current-date="20240215">
  <Identification>
    <InstrumentNumber>SOR/2002-227</InstrumentNumber>
    <RegistrationDate><Date><YYYY>2002</YYYY><MM>6</MM><DD>11</DD></Date></RegistrationDate>
    <ShortTitle>Immigration and Refugee Protection Regulations</ShortTitle>
    <EnablingAuthority>IMMIGRATION AND REFUGEE PROTECTION ACT <XRefExternal reference-type="act" link="I-2.5">Immigration and Refugee Protection Act</XRefExternal></EnablingAuthority>
  </Identification>
  <Recommendation publication-requirement="STATUTORY">
    <Text>The Governor General in Council, on the recommendation of the Minister, pursuant to section <XRefInternal>5</XRefInternal>, makes the annexed Regulations.</Text>
  </Recommendation>
  <Notice publication-requirement="STATUTORY">
    <Text>Notice is given under sections <XRefInternal>5</XRefInternal>, <XRefInternal>14</XRefInternal> and <XRefInternal>5</XRefInternal> of the Act.</Text>
  </Notice>
  <Notice></Notice>
  <Body>
    <Section>
      <MarginalNote>Definitions</MarginalNote>
      <Label>1</Label>
      <Text>The following definitions apply in this Regulation.</Text>
      <Definition><Text><DefinedTermEn>common-law partner</DefinedTermEn> means a person who is cohabiting with the person in a conjugal relationship. (<DefinedTermFr>conjoint de fait</DefinedTermFr>)</Text></Definition>
    </Section>
    <Section>
      <MarginalNote>Visa required</MarginalNote>
      <Label>7</Label>
      <Text>A foreign national may not enter Canada to remain on a temporary basis without first obtaining a temporary resident visa.</Text>
    </Section>
  </Body>
</Regulation>
"""


@pytest.fixture
def sample_act_xml():
    return SAMPLE_ACT_EN


@pytest.fixture
def sample_act_fr_xml():
    return SAMPLE_ACT_FR


@pytest.fixture
def minimal_act_xml():
    return MINIMAL_ACT_EN


@pytest.fixture
def sample_regulation_xml():
    return SAMPLE_REGULATION_EN


@pytest.fixture
def parser():
    from execution.legis_rag.document_parser import LegislationParser
    return LegislationParser()


@pytest.fixture
def sample_act(parser):
    """Parsed English act with terms, Parts, a repealed section and schedules."""
    return parser.parse(SAMPLE_ACT_EN, "en")


@pytest.fixture
def sample_act_fr(parser):
    return parser.parse(SAMPLE_ACT_FR, "fr")


@pytest.fixture
def sample_regulation(parser):
    return parser.parse(SAMPLE_REGULATION_EN, "en")


@pytest.fixture
def chunker():
    """Return a default LegislationChunker instance."""
    from execution.legis_rag.chunker import LegislationChunker
    return LegislationChunker()


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=1024, fail=False):
        self._dimensions = dimensions
        self._call_count = 0
        self.fail = fail

    def embed_documents(self, texts):
        if self.fail:
            raise RuntimeError("embedding provider unavailable")
        return [self._deterministic_embedding(t) for t in texts]

    def embed_query(self, query):
        self._call_count += 1
        if self.fail:
            raise RuntimeError("embedding provider unavailable")
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService(dimensions=1024)


# ---------------------------------------------------------------------------
# Mock store (canned leg results, no database needed)
# ---------------------------------------------------------------------------

def make_result(source_id, score, content="text", source_type="act_section", **metadata):
    """SearchResult with citation-ready metadata."""
    from execution.legis_rag.vector_store import SearchResult
    meta = {
        "source_type": source_type,
        "act_id": "C-46",
        "document_title": "Criminal Code",
        "language": "en",
        "section_id": source_id,
        "section_label": source_id.split("/")[-1],
        "chunk_index": 0,
    }
    meta.update(metadata)
    return SearchResult(
        chunk_id=f"chunk-{source_id}",
        source_id=source_id,
        source_type=source_type,
        document_id=meta.get("act_id") or meta.get("regulation_id") or "",
        language=meta["language"],
        content=content,
        score=score,
        metadata=meta,
    )


class MockStore:
    """Store stub returning canned vector/keyword results."""

    def __init__(self, vector_results=None, keyword_results=None,
                 fail_vector=False, fail_keyword=False):
        self.vector_results = vector_results or []
        self.keyword_results = keyword_results or []
        self.fail_vector = fail_vector
        self.fail_keyword = fail_keyword
        self.search_calls = []
        self.keyword_calls = []

    def search(self, query_embedding, top_k=10, language=None, source_types=None, min_score=0.0):
        self.search_calls.append({"language": language, "source_types": source_types, "top_k": top_k})
        if self.fail_vector:
            raise ConnectionError("database unreachable")
        return [r for r in self.vector_results
                if (language is None or r.language == language)
                and (not source_types or r.source_type in source_types)][:top_k]

    def keyword_search(self, query, top_k=10, language=None, source_types=None, fts_language="simple"):
        self.keyword_calls.append({"language": language, "fts_language": fts_language})
        if self.fail_keyword:
            raise RuntimeError("tsquery syntax error")
        return [r for r in self.keyword_results
                if (language is None or r.language == language)
                and (not source_types or r.source_type in source_types)][:top_k]


@pytest.fixture
def mock_store():
    return MockStore()


@pytest.fixture
def memory_store():
    from execution.legis_rag.vector_store import InMemoryVectorStore
    return InMemoryVectorStore()


# ---------------------------------------------------------------------------
# Mock reranker
# ---------------------------------------------------------------------------

class MockReranker:
    """Scores candidates from a {source_id: score} map, or fails on demand."""

    def __init__(self, scores=None, fail=False, default=0.5):
        self.scores = scores or {}
        self.fail = fail
        self.default = default
        self.calls = 0

    def score(self, query, candidates):
        from execution.legis_rag.errors import RerankDegraded
        self.calls += 1
        if self.fail:
            raise RerankDegraded("rerank service unavailable")
        return [self.scores.get(c.source_id, self.default) for c in candidates]


@pytest.fixture
def mock_reranker():
    return MockReranker()


def make_candidate(source_id, hybrid, content=None, source_type="act_section", **metadata):
    """RetrievedCandidate with citation-ready metadata."""
    from execution.legis_rag.retriever import RetrievedCandidate
    meta = {
        "source_type": source_type,
        "act_id": "C-46",
        "document_title": "Criminal Code",
        "language": "en",
        "section_id": source_id,
        "section_label": source_id.split("/")[-1],
        "chunk_index": 0,
    }
    meta.update(metadata)
    return RetrievedCandidate(
        source_id=source_id,
        content=content or f"Provision text for {source_id}.",
        vector_score=hybrid,
        hybrid_score=hybrid,
        metadata=meta,
    )


# ---------------------------------------------------------------------------
# Singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_cache_singleton(monkeypatch):
    """Keep the process-wide cache and context builder isolated per test."""
    import execution.legis_rag.cache as cache_mod
    import execution.legis_rag.context_builder as builder_mod
    monkeypatch.delenv("RAG_CACHE_DISABLE", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    cache_mod.reset_cache()
    builder_mod._builder = None
    yield
    cache_mod.reset_cache()
    builder_mod._builder = None
