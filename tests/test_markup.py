"""
Tests for execution/legis_rag/markup.py

Covers: text extraction (inline vs block, excluded notes), HTML rendering
        of references and emphasis, LIMS attribute extraction, date parsing,
        footnotes, historical notes, internal and external references.
"""

import pytest


def _el(xml):
    from execution.legis_rag.markup import load_markup
    return load_markup(xml).find(True)


class TestExtractText:
    """Tests for extract_text() and friends."""

    def test_inline_elements_run_on(self):
        from execution.legis_rag.markup import extract_text

        el = _el("<Text>the <Emphasis style=\"italic\">Criminal</Emphasis> Code</Text>")
        assert extract_text(el) == "the Criminal Code"

    def test_block_elements_separated(self):
        from execution.legis_rag.markup import extract_text

        el = _el("<Section><Text>First.</Text><Text>Second.</Text></Section>")
        assert extract_text(el) == "First. Second."

    def test_notes_excluded(self):
        from execution.legis_rag.markup import extract_text

        el = _el(
            "<Section><Text>Body.</Text><HistoricalNote>2012, c. 1</HistoricalNote>"
            "<Footnote id=\"f1\"><Text>Note.</Text></Footnote></Section>"
        )
        assert extract_text(el) == "Body."

    def test_body_text_skips_label_and_marginal_note(self):
        from execution.legis_rag.markup import extract_body_text

        el = _el("<Section><MarginalNote>Title</MarginalNote><Label>5</Label><Text>Body.</Text></Section>")
        assert extract_body_text(el) == "Body."

    def test_none_gives_empty(self):
        from execution.legis_rag.markup import extract_text
        assert extract_text(None) == ""

    def test_child_text_absent(self):
        from execution.legis_rag.markup import child_text

        el = _el("<Section><Label>5</Label><Text></Text></Section>")
        assert child_text(el, "Label") == "5"
        assert child_text(el, "MarginalNote") is None
        assert child_text(el, "Text") is None


class TestRenderHtml:
    """Tests for render_html()."""

    def test_internal_reference_anchor(self):
        from execution.legis_rag.markup import render_html

        el = _el("<Text>see section <XRefInternal>91(1)</XRefInternal></Text>")
        assert '<a class="xref-internal" href="#sec911">91(1)</a>' in render_html(el)

    def test_external_reference_french_url(self):
        from execution.legis_rag.markup import render_html

        el = _el('<Text><XRefExternal reference-type="act" link="C-46">Code criminel</XRefExternal></Text>')
        html = render_html(el, "fr")
        assert "https://laws-lois.justice.gc.ca/fra/lois/C-46/page-1.html" in html

    def test_external_reference_without_link_is_cite(self):
        from execution.legis_rag.markup import render_html

        el = _el("<Text><XRefExternal>Some Act</XRefExternal></Text>")
        assert '<cite class="xref-external">Some Act</cite>' in render_html(el)

    def test_emphasis_and_escaping(self):
        from execution.legis_rag.markup import render_html

        el = _el('<Text><Emphasis style="bold">a &amp; b</Emphasis></Text>')
        assert render_html(el) == "<strong>a &amp; b</strong>"

    def test_historical_note_not_rendered(self):
        from execution.legis_rag.markup import render_html

        el = _el("<Section><Text>Body</Text><HistoricalNote>old</HistoricalNote></Section>")
        assert "old" not in render_html(el)


class TestLimsAndDates:
    """Tests for LIMS metadata and date parsing."""

    def test_fid_only(self):
        from execution.legis_rag.markup import extract_lims_metadata

        el = _el('<Definition xmlns:lims="http://justice.gc.ca/lims" lims:fid="12345"><Text>x</Text></Definition>')
        assert extract_lims_metadata(el) == {"fid": "12345"}

    def test_no_lims_gives_none(self):
        from execution.legis_rag.markup import extract_lims_metadata

        el = _el("<Definition><Text>x</Text></Definition>")
        assert extract_lims_metadata(el) is None

    def test_dates_normalized_and_bad_dates_dropped(self):
        from execution.legis_rag.markup import extract_lims_metadata

        el = _el(
            '<Section xmlns:lims="http://justice.gc.ca/lims" lims:enacted-date="19850101" '
            'lims:pit-date="not-a-date" lims:inforce-start-date="2003-04-01"/>'
        )
        assert extract_lims_metadata(el) == {
            "enacted_date": "1985-01-01",
            "inforce_start_date": "2003-04-01",
        }

    @pytest.mark.parametrize("value,expected", [
        ("20240301", "2024-03-01"),
        ("2024-03-01", "2024-03-01"),
        ("", None),
        (None, None),
        ("March 2024", None),
    ])
    def test_parse_date(self, value, expected):
        from execution.legis_rag.markup import parse_date
        assert parse_date(value) == expected

    def test_parse_date_element_pads(self):
        from execution.legis_rag.markup import parse_date_element

        el = _el("<Date><YYYY>2002</YYYY><MM>6</MM><DD>1</DD></Date>")
        assert parse_date_element(el) == "2002-06-01"


class TestNotesAndReferences:
    """Tests for footnotes, historical notes and references."""

    def test_footnotes_in_order_without_id_skipped(self):
        from execution.legis_rag.markup import extract_footnotes

        el = _el(
            '<Section><Footnote id="fn1" placement="page"><Label>*</Label><Text>First</Text></Footnote>'
            "<Footnote><Text>No id</Text></Footnote>"
            '<Footnote id="fn2"><Text>Second</Text></Footnote></Section>'
        )
        notes = extract_footnotes(el)
        assert [n["id"] for n in notes] == ["fn1", "fn2"]
        assert notes[0]["label"] == "*"
        assert notes[0]["text"] == "First"
        assert notes[0]["placement"] == "page"

    def test_historical_note_items(self):
        from execution.legis_rag.markup import extract_historical_notes

        el = _el(
            "<Section><HistoricalNote><HistoricalNoteSubItem>R.S., c. C-34</HistoricalNoteSubItem>"
            "<HistoricalNoteSubItem>2012, c. 1, s. 5</HistoricalNoteSubItem></HistoricalNote></Section>"
        )
        assert extract_historical_notes(el) == ["R.S., c. C-34", "2012, c. 1, s. 5"]

    def test_internal_references_deduplicated(self):
        from execution.legis_rag.markup import extract_internal_references

        el = _el(
            "<Text><XRefInternal>5</XRefInternal>, <XRefInternal>14</XRefInternal> "
            "and <XRefInternal>5</XRefInternal></Text>"
        )
        assert extract_internal_references(el) == ["5", "14"]

    def test_cross_references_only_acts_and_regulations(self):
        from execution.legis_rag.markup import extract_cross_references

        el = _el(
            '<Text><XRefExternal reference-type="regulation" link="SOR-2002-227">Regs</XRefExternal>'
            '<XRefExternal reference-type="other" link="x">Other</XRefExternal></Text>'
        )
        refs = extract_cross_references(el, "7")
        assert refs == [{
            "source_section_label": "7",
            "target_type": "regulation",
            "target_ref": "SOR-2002-227",
            "reference_text": "Regs",
        }]
