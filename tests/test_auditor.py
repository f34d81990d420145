"""
Tests for the end-to-end pipeline and the auditor entry points.
"""

import time

import pytest
from bib_auditor.auditor import (
    WARNING_EMPTY_INPUT, WARNING_NO_HEADING, WARNING_TIMEOUT, WARNING_UNKNOWN_STYLE,
    BibliographyAuditor, Deadline, find_duplicate_entries, parse_document
)
from bib_auditor.bibliography import BibliographyParser
from bib_auditor.config import AuditorSettings
from bib_auditor.exceptions import EmptyDocumentError, ParseTimeoutError
from bib_auditor.models import BibliographyEntry, CitationStyle

IEEE_DOCUMENT = """Introduction
Attention models [1] changed machine translation. Deep networks [2] and later work [1, 2] built on this.

References
[1] A. Vaswani, N. Shazeer, and L. Kaiser, "Attention is all you need," in Proc. NeurIPS, 2017, pp. 5998-6008.
[2] Y. LeCun, Y. Bengio, and G. Hinton, "Deep learning," Nature, vol. 521, no. 7553,
pp. 436-444, 2015, doi: 10.1038/nature14539.
"""

APA_DOCUMENT = """Neural translation (Bahdanau, Cho, & Bengio, 2014) inspired later studies (Smith & Wesson, 2020a; Khan et al., 2019).

References
Bahdanau, D., Cho, K., & Bengio, Y. (2014). Neural machine translation by jointly learning to align and translate. arXiv preprint arXiv:1409.0473.
Smith, J., & Wesson, D. (2020a). Firearms and society. Journal of Social Studies, 12(3), 45-67. https://doi.org/10.1000/jss.2020.1
Khan, A., Lee, B., & Park, C. (2019). Deep models for text. Computational Linguistics, 45(2), 100-120.
"""


def _assert_round_trip(document):
    entry_ids = {e.entry_id for e in document.bibliography}
    assert set(document.citation_to_bib_mapping.values()) <= entry_ids


@pytest.mark.parametrize("text", ["", "   \n\t  "])
def test_empty_input(text):
    """Test the empty-input boundary."""
    document = parse_document(text)

    assert document.style is CitationStyle.UNKNOWN
    assert document.style_confidence == 0
    assert document.in_text_citations == ()
    assert document.bibliography == ()
    assert WARNING_EMPTY_INPUT in document.warnings


def test_ieee_document():
    """Test a full numeric document from split to links."""
    document = parse_document(IEEE_DOCUMENT)

    assert document.style is CitationStyle.IEEE
    assert document.style_confidence >= 0.9
    assert len(document.in_text_citations) == 3
    assert [e.entry_id for e in document.bibliography] == ["1", "2"]
    assert dict(document.citation_to_bib_mapping) == {"1": "1", "2": "2"}
    assert not document.degraded
    _assert_round_trip(document)


def test_references_opening_with_label_one():
    """Test that a [1] reference list wins over author-date body signals."""
    text = (
        "Earlier (Smith, 2020) and (Jones, 2019) and (Brown, 2018) reported this.\n"
        "References\n"
        "[1] J. Smith, \"A study of things,\" Journal of Studies, 2020.\n"
    )
    document = parse_document(text)
    assert document.style is CitationStyle.IEEE
    assert document.style_confidence >= 0.9


def test_author_date_document():
    """Test a full APA document linking every citation by key."""
    document = parse_document(APA_DOCUMENT)

    assert document.style is CitationStyle.APA
    assert [c.citation_id for c in document.in_text_citations] == [
        "bahdanau_2014", "smith_wesson_2020a", "khan_2019"
    ]
    assert dict(document.citation_to_bib_mapping) == {
        "bahdanau_2014": "bahdanau_2014",
        "smith_wesson_2020a": "smith_wesson_2020a",
        "khan_2019": "khan_2019",
    }
    _assert_round_trip(document)


def test_no_heading_and_no_style():
    """Test the fallback split and generic parsing warnings."""
    document = parse_document("Just some words with no markers at all.")

    assert document.style is CitationStyle.UNKNOWN
    assert WARNING_NO_HEADING in document.warnings
    assert WARNING_UNKNOWN_STYLE in document.warnings
    assert document.bibliography == ()


def test_truncation_warning():
    """Test that oversized input is truncated with a warning."""
    document = parse_document("word " * 20, max_chars=50)
    assert "input truncated to 50 characters" in document.warnings


def test_timeout_returns_degraded_document():
    """Test that exceeding the time budget degrades instead of raising."""
    document = parse_document(IEEE_DOCUMENT, timeout=1e-9)

    assert document.degraded
    assert document.style is CitationStyle.UNKNOWN
    assert document.style_confidence == 0
    assert document.bibliography == ()
    assert WARNING_TIMEOUT in document.warnings


def test_unclosed_parenthesis_parses_quickly():
    """Test that a long run after an unclosed parenthesis stays fast."""
    text = (
        "(Smith, 2020) opens here (" + "Smith 2020 " * 12000
        + "\nReferences\nSmith, J. (2020). A title. Journal, 1, 2-3.\n"
    )
    started = time.monotonic()
    document = parse_document(text, timeout=30)

    assert time.monotonic() - started < 5
    assert not document.degraded
    assert document.citation_to_bib_mapping.get("smith_2020") == "smith_2020"


def test_slow_stage_is_cut_off_by_timeout(monkeypatch):
    """Test that a stage running past the budget yields a degraded document on time."""
    def slow_parse(self, references_text, style, deadline=None):
        time.sleep(2)
        return ()

    monkeypatch.setattr(BibliographyParser, "parse", slow_parse)
    started = time.monotonic()
    document = parse_document(IEEE_DOCUMENT, timeout=0.2)

    assert time.monotonic() - started < 1.5
    assert document.degraded
    assert WARNING_TIMEOUT in document.warnings


def test_numbered_reference_list_with_parenthetical_markers():
    """Test that "(1,2)" markers link when the style comes out Mixed."""
    text = (
        "Background\n\n"
        "Recent studies (1,2) have shown the effectiveness of deep learning. The transformer\n"
        "architecture (3) has become the standard approach.\n\n"
        "References\n\n"
        "1. LeCun Y, Bengio Y, Hinton G. Deep learning. Nature. 2015;521(7553):436-444. "
        "doi: 10.1038/nature14539\n\n"
        "2. Goodfellow I, Bengio Y, Courville A. Deep Learning. MIT Press; 2016.\n\n"
        "3. Vaswani A, Shazeer N, Parmar N, et al. Attention is all you need. In: Advances in "
        "Neural Information Processing Systems. 2017:5998-6008.\n"
    )
    document = parse_document(text)

    assert document.style is CitationStyle.MIXED
    assert [c.raw_text for c in document.in_text_citations] == ["(1,2)", "(3)"]
    assert dict(document.citation_to_bib_mapping) == {"1": "1", "2": "2", "3": "3"}
    _assert_round_trip(document)


def test_narrative_citations_need_a_matching_entry():
    """Test that "China (2019)" is not read as a citation."""
    text = APA_DOCUMENT.replace(
        "Neural translation (Bahdanau, Cho, & Bengio, 2014) inspired later studies "
        "(Smith & Wesson, 2020a; Khan et al., 2019).",
        "Exports from China (2019) grew, as Khan et al. (2019) noted (Smith & Wesson, 2020a).",
    )
    document = parse_document(text)

    assert [c.citation_id for c in document.in_text_citations] == ["khan_2019", "smith_wesson_2020a"]
    _assert_round_trip(document)


def test_deadline():
    """Test the cooperative deadline."""
    assert not Deadline(None).expired
    assert not Deadline(0).expired
    Deadline(60).check()
    with pytest.raises(ParseTimeoutError):
        Deadline(1e-9).check()


def test_find_duplicate_entries():
    """Test duplicate detection by DOI and by near-identical title."""
    entries = [
        BibliographyEntry("1", "a", title="Deep learning for everything", doi="10.1/ABC"),
        BibliographyEntry("2", "b", title="Something unrelated entirely", doi="10.1/abc"),
        BibliographyEntry("3", "c", title="Deep Learning for Everything"),
        BibliographyEntry("4", "d", title="Short"),
    ]
    assert find_duplicate_entries(entries) == [("1", "2"), ("1", "3")]


def test_audit_contexts():
    """Test that the auditor attaches an anchored context to each entry."""
    auditor = BibliographyAuditor(AuditorSettings(context_before_words=3, context_after_words=2))
    result = auditor.audit(IEEE_DOCUMENT, source_name="paper.txt")

    assert result.has_references
    assert result.source_name == "paper.txt"
    first = result.context_for("1")
    assert first.anchored
    assert first.before == "Introduction Attention models"
    assert first.after == "changed machine"
    assert result.context_for("2").before == "translation. Deep networks"
    assert result.duplicate_entries == ()
    assert len(result.scoring_requests()) == 2


def test_audit_anchors_explicit_key_citations():
    """Test that a \\cite{key} citation anchors its entry's context."""
    text = (
        "Some words come first here. Attention models \\cite{vaswani17} changed translation.\n"
        "References\n"
        "\\begin{thebibliography}{9}\n"
        "\\bibitem{vaswani17} A. Vaswani, N. Shazeer. Attention is all you need. \\newblock In NeurIPS, 2017.\n"
        "\\end{thebibliography}\n"
    )
    auditor = BibliographyAuditor(AuditorSettings(context_before_words=3, context_after_words=2))
    result = auditor.audit(text)

    assert result.document.citation_to_bib_mapping["vaswani17"] == "vaswani17"
    context = result.context_for("vaswani17")
    assert context.anchored
    assert context.before == "here. Attention models"
    assert context.after == "changed translation."


def test_audit_requires_text():
    """Test that require_text rejects empty input."""
    auditor = BibliographyAuditor()
    with pytest.raises(EmptyDocumentError):
        auditor.audit("  ", require_text=True)
    assert not auditor.audit("").has_references


def test_audit_file(tmp_path):
    """Test auditing a text file."""
    path = tmp_path / "paper.txt"
    path.write_text(APA_DOCUMENT, encoding="utf-8")

    result = BibliographyAuditor().audit_file(str(path))
    assert result.source_name == "paper.txt"
    assert len(result.document.bibliography) == 3

    with pytest.raises(FileNotFoundError):
        BibliographyAuditor().audit_file(str(tmp_path / "missing.txt"))


def test_audit_many(tmp_path):
    """Test batch processing with failures collected."""
    good = tmp_path / "good.txt"
    good.write_text(IEEE_DOCUMENT, encoding="utf-8")
    empty = tmp_path / "empty.txt"
    empty.write_text("   ", encoding="utf-8")
    missing = tmp_path / "missing.txt"

    summary = BibliographyAuditor(AuditorSettings(max_workers=2)).audit_many(
        [str(good), str(empty), str(missing)]
    )

    assert summary['total_files'] == 3
    assert summary['processed_files'] == 1
    assert summary['failed_files'] == 2
    assert summary['total_references'] == 2
    assert summary['results'][0]['filename'] == "good.txt"
    assert [e['file'] for e in summary['processing_errors']] == ["empty.txt", "missing.txt"]


def test_audit_many_without_paths():
    """Test that an empty batch does nothing."""
    summary = BibliographyAuditor().audit_many([])
    assert summary['total_files'] == 0
    assert summary['results'] == []
