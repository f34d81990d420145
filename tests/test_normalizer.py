"""
Tests for text normalization.
"""

from bib_auditor.normalizer import normalize_text


def test_quotes_and_dashes():
    """Test that typographic quotes and dashes become ASCII."""
    text = "“Deep learning” ‘works’ on pp. 10–20 — really"
    assert normalize_text(text) == "\"Deep learning\" 'works' on pp. 10-20 - really"


def test_whitespace_and_line_endings():
    """Test that horizontal whitespace collapses but newlines survive."""
    text = "References\r\n[1]\t A. Smith,   \"Title\"\r[2] B. Jones"
    assert normalize_text(text) == "References\n[1] A. Smith, \"Title\"\n[2] B. Jones"


def test_control_characters_removed():
    """Test that control characters from PDF extraction are scrubbed."""
    assert normalize_text("Smith\x00\x0bet al.") == "Smith et al."


def test_empty_input():
    """Test that empty or missing text normalizes to an empty string."""
    assert normalize_text("") == ""
    assert normalize_text(None) == ""
