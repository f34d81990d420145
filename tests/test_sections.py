"""
Tests for splitting body text from the bibliography.
"""

from bib_auditor.sections import SectionSplitter, split_sections


def test_split_on_references_heading():
    """Test the basic heading split."""
    text = "Intro text cites [1].\n\nReferences\n[1] A. Smith, \"Title,\" 2020.\n"
    split = split_sections(text)

    assert split.heading == "References"
    assert not split.used_fallback
    assert split.body_text == "Intro text cites [1].\n\n"
    assert split.references_text.strip() == "[1] A. Smith, \"Title,\" 2020."


def test_numbered_and_uppercase_headings():
    """Test headings with section numbers, case variations and colons."""
    assert split_sections("Body\n7. References:\n[1] X").heading == "References"
    assert split_sections("Body\nVII. REFERENCES\n[1] X").heading == "References"
    assert split_sections("Body\nWorks Cited\nSmith, John.").heading == "Works Cited"
    assert split_sections("Body\nLiterature cited\nSmith, J.").heading == "Literature Cited"


def test_heading_priority():
    """Test that References wins over an earlier Bibliography heading."""
    text = "Body\nBibliography\nSee below.\nReferences\n[1] Entry"
    split = split_sections(text)

    assert split.heading == "References"
    assert "Bibliography" in split.body_text
    assert split.references_text.strip() == "[1] Entry"


def test_inline_word_is_not_a_heading():
    """Test that the word references inside a sentence is ignored."""
    text = "The references listed below are relevant.\nNotes\n1. A note."
    split = split_sections(text)
    assert split.heading == "Notes"


def test_trailing_material_trimmed():
    """Test that figures and appendices after the bibliography are cut."""
    text = (
        "Body [1] [2].\nReferences\n"
        "[1] A. Smith, \"One,\" 2020.\n"
        "[2] B. Jones, \"Two,\" 2021.\n"
        "Figure 3: Accuracy over time\n"
        "Appendix A\nExtra material."
    )
    split = split_sections(text)

    assert "[2] B. Jones" in split.references_text
    assert "Figure 3" not in split.references_text
    assert "Appendix" not in split.references_text


def test_fallback_uses_last_fifth():
    """Test the positional fallback when there is no heading."""
    lines = [f"Line number {i} of the document body." for i in range(20)]
    text = "\n".join(lines)
    split = SectionSplitter().split(text)

    assert split.used_fallback
    assert split.heading is None
    assert split.body_text + split.references_text == text
    assert len(split.references_text) < len(text) * 0.25
    assert split.references_text.startswith("Line number")


def test_empty_text():
    """Test that empty input still yields a split."""
    split = split_sections("")
    assert split.body_text == ""
    assert split.references_text == ""
