"""
Splitting document text into body and bibliography sections.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Fraction of the document treated as references when no heading is found.
FALLBACK_REFERENCES_FRACTION = 0.2


@dataclass(frozen=True)
class SectionSplit:
    """Body and references spans of a document."""
    body_text: str
    references_text: str
    heading: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.heading is None


def _heading_pattern(words: str) -> "re.Pattern":
    # Optional section number ("7.", "VII.") and trailing colon; heading alone on its line.
    return re.compile(
        r'^[ \t]*(?:(?:\d{1,2}|[IVXLC]{1,6})\.?[ \t]+)?' + words + r'[ \t]*:?[ \t]*$',
        re.IGNORECASE | re.MULTILINE,
    )


class SectionSplitter:
    """Locate the bibliography heading and split the text around it."""

    def __init__(self):
        # Priority order: the first heading kind that occurs wins.
        self.heading_patterns = [
            ("References", _heading_pattern(r'References?')),
            ("Bibliography", _heading_pattern(r'Bibliography')),
            ("Works Cited", _heading_pattern(r'Works[ \t]+Cited')),
            ("Literature Cited", _heading_pattern(r'Literature[ \t]+Cited')),
            ("Notes and References", _heading_pattern(r'Notes[ \t]+and[ \t]+References')),
            ("Notes", _heading_pattern(r'(?:End)?notes')),
        ]

        # Start of material that is not part of the bibliography.
        self.trailing_noise = re.compile(
            r'^[ \t]*(?:'
            r'Fig(?:ure)?\.?[ \t]*\d+'
            r'|Table[ \t]+(?:\d+|[IVX]+)\b'
            r'|Appendix\b|Appendices\b'
            r'|Supplementary\b|Supplemental[ \t]+Material'
            r'|Acknowledge?ments?\b'
            r'|About[ \t]+the[ \t]+Authors?\b'
            r'|Author[ \t]+Biograph'
            r')',
            re.IGNORECASE | re.MULTILINE,
        )

    def split(self, text: str) -> SectionSplit:
        """Return the body and references spans of ``text``."""
        if not text:
            return SectionSplit(body_text="", references_text="")

        for name, pattern in self.heading_patterns:
            match = pattern.search(text)
            if match:
                body = text[:match.start()]
                references = self.trim_trailing_noise(text[match.end():])
                logger.debug(f"Bibliography heading '{name}' found at offset {match.start()}")
                return SectionSplit(body_text=body, references_text=references, heading=name)

        logger.warning("No bibliography heading found; using the last 20% of the document")
        split_point = int(len(text) * (1 - FALLBACK_REFERENCES_FRACTION))
        newline = text.find("\n", split_point)
        if newline != -1:
            split_point = newline + 1
        return SectionSplit(
            body_text=text[:split_point],
            references_text=self.trim_trailing_noise(text[split_point:]),
        )

    def trim_trailing_noise(self, references: str) -> str:
        """Cut the references span at the first figure, table or appendix block."""
        first_content = len(references) - len(references.lstrip())
        for match in self.trailing_noise.finditer(references):
            if match.start() > first_content:
                logger.debug(f"Trimming trailing material at offset {match.start()}: {match.group(0)!r}")
                return references[:match.start()]
        return references


def split_sections(text: str) -> SectionSplit:
    """Split normalized text into body and references."""
    return SectionSplitter().split(text)
