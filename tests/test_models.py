"""
Tests for data models.
"""

import dataclasses

import pytest
from bib_auditor.models import (
    AuditResult, AuthorDateCitation, BibliographyEntry, CitationContext, CitationStyle,
    NoteCitation, NumericCitation, ParsedDocument
)


def test_citation_style_families():
    """Test that every style maps to a parsing family."""
    assert CitationStyle.IEEE.family == "numeric-bracket"
    assert CitationStyle.NATURE.family == "numeric-parenthetical"
    assert CitationStyle.HARVARD.family == "author-date"
    assert CitationStyle.MLA.family == "author-page"
    assert CitationStyle.CHICAGO_NOTES.family == "note"
    assert CitationStyle.BIBTEX_KEY.family == "explicit-key"
    assert CitationStyle.MIXED.family == "generic"
    assert CitationStyle.UNKNOWN.family == "generic"
    assert CitationStyle("Chicago-AuthorDate") is CitationStyle.CHICAGO_AUTHOR_DATE


def test_citation_variants():
    """Test the type discriminator of each citation variant."""
    numeric = NumericCitation("6,7,8", "[6-8]", 10, (6, 7, 8))
    author_date = AuthorDateCitation("khan_2019", "(Khan et al., 2019)", 0, ("Khan",), 2019)
    note = NoteCitation("3", "3", 5, 3)

    assert numeric.type == "numeric"
    assert author_date.type == "author-date"
    assert note.type == "note"
    assert numeric.to_dict()["numbers"] == [6, 7, 8]
    assert author_date.to_dict()["authors"] == ["Khan"]
    assert note.to_dict()["numbers"] == [3]


def test_entities_are_frozen():
    """Test that parsed entities cannot be mutated."""
    entry = BibliographyEntry(entry_id="1", raw_text="Some reference text")
    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.title = "Changed"


def test_parsed_document_mapping_is_read_only():
    """Test that the citation mapping is wrapped read-only."""
    document = ParsedDocument(
        style=CitationStyle.IEEE,
        style_confidence=0.9,
        body_text="See [1].",
        references_text="[1] Ref",
        citation_to_bib_mapping={"1": "1"},
    )

    with pytest.raises(TypeError):
        document.citation_to_bib_mapping["2"] = "2"
    assert document.to_dict()["citationToBibMapping"] == {"1": "1"}


def test_parsed_document_to_dict():
    """Test the serialized document contract."""
    entry = BibliographyEntry(entry_id="1", raw_text="A. Author, \"Title,\" 2020.", year=2020)
    document = ParsedDocument(
        style=CitationStyle.IEEE,
        style_confidence=0.91234,
        body_text="body",
        references_text="refs",
        in_text_citations=(NumericCitation("1", "[1]", 0, (1,)),),
        bibliography=(entry,),
    )

    data = document.to_dict()
    assert data["style"] == "IEEE"
    assert data["styleConfidence"] == 0.912
    assert data["bibliography"][0]["entryId"] == "1"
    assert data["inTextCitations"][0]["type"] == "numeric"
    assert document.entry("1") is entry
    assert document.entry("2") is None


def test_audit_result_records():
    """Test per-entry storage records and scorer requests."""
    entries = (
        BibliographyEntry("2", "Second", authors=("A", "B", "C"), year=2019, position=1),
        BibliographyEntry("1", "First", authors=("Smith, J.",), journal="Nature", position=0),
    )
    document = ParsedDocument(CitationStyle.IEEE, 0.9, "", "", bibliography=entries)
    result = AuditResult(
        document=document,
        contexts=(CitationContext("1", "before text", "after text", anchored=True),),
    )

    records = result.to_records()
    assert [r["entryId"] for r in records] == ["1", "2"]
    assert records[0]["firstAuthor"] == "Smith, J."
    assert records[0]["secondAuthor"] is None
    assert records[0]["publication"] == "Nature"
    assert records[0]["contextBefore"] == "before text"
    assert records[1]["lastAuthor"] == "C"
    assert records[1]["contextAfter"] is None

    requests = result.scoring_requests()
    assert requests[0].raw_citation_text == "Second"
    assert requests[1].context_after == "after text"
    assert result.has_references
