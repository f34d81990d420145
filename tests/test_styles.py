"""
Tests for citation style detection.
"""

import pytest
from bib_auditor.models import CitationStyle
from bib_auditor.styles import MIXED_CONFIDENCE, StyleDetector, detect_style


def test_no_signal_is_unknown():
    """Test that text without any marker yields Unknown with zero confidence."""
    detection = detect_style("Plain text with no markers at all.", "Nothing here")
    assert detection.style is CitationStyle.UNKNOWN
    assert detection.confidence == 0.0


def test_empty_input_is_unknown():
    """Test that empty input never raises."""
    detection = detect_style("", "")
    assert detection.style is CitationStyle.UNKNOWN
    assert detection.confidence == 0.0


def test_bracket_numeric_confidence():
    """Test confidence = top / (total + 1)."""
    detection = detect_style("See [1], [2] and [3].", "")
    assert detection.style is CitationStyle.IEEE
    assert detection.confidence == pytest.approx(0.75)


def test_references_opening_with_label_one_forces_ieee():
    """Test that references beginning with [1] override body signals."""
    body = "Prior work (Smith, 2020) and (Jones & Lee, 2019) and (Brown et al., 2018)."
    references = "[1] J. Smith, \"A study,\" Journal, 2020.\n[2] K. Jones, \"Another,\" 2019."
    detection = detect_style(body, references)

    assert detection.style is CitationStyle.IEEE
    assert detection.confidence >= 0.9


def test_bibitem_forces_explicit_key():
    """Test that \\bibitem markers are a near-certain explicit-key signal."""
    detection = detect_style("As in (1) and (2).", "\\bibitem{smith20} J. Smith. Title. 2020.")
    assert detection.style is CitationStyle.BIBTEX_KEY
    assert detection.confidence >= 0.9


def test_author_date_detection():
    """Test APA detection boosted by author-date reference lines."""
    body = "Prior work (Smith, 2020) and (Jones & Lee, 2019) and (Brown et al., 2018)."
    references = "Smith, J. (2020). Title of the work. Journal of Things, 1(2), 3-4."
    detector = StyleDetector()
    detection = detector.detect(body, references)

    assert detection.style is CitationStyle.APA
    assert detection.counts[CitationStyle.APA] == 13
    assert detection.confidence == pytest.approx(13 / 14)


def test_mixed_when_runner_up_is_close():
    """Test the Mixed rule when two conventions are used."""
    body = "Shown in [1] and [2] and (Smith, 2020) and (Jones, 2019)."
    detection = detect_style(body, "")

    assert detection.style is CitationStyle.MIXED
    assert detection.confidence == MIXED_CONFIDENCE


def test_mla_detection():
    """Test author-page markers without years."""
    detection = detect_style("As argued (Shakespeare 42) and (Austen 10).", "")
    assert detection.style is CitationStyle.MLA


def test_numbered_reference_lines_boost_vancouver():
    """Test that n. reference lines favour Vancouver over Nature."""
    body = " ".join(f"Claim number {i} holds ({i})." for i in range(1, 21))
    references = "1. Smith J, Jones A. Title. J Med. 2020;12(3):45-50.\n"
    detection = detect_style(body, references)

    assert detection.counts[CitationStyle.VANCOUVER] == 40
    assert detection.counts[CitationStyle.NATURE] == 15
    assert detection.style is CitationStyle.VANCOUVER


def test_sparse_numbered_document_is_mixed():
    """Test that the Nature boost makes a sparse numbered document Mixed."""
    detection = detect_style("Treatment helps (1).", "1. Smith J. Title. J Med. 2020;1:1-2.")
    assert detection.style is CitationStyle.MIXED
