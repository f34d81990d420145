"""
Context windows around the places where bibliography entries are cited.

Contexts come from one of two sources. When a citation of the entry is found in
the text the window is taken around it (``anchored=True``). Otherwise a window is
taken at a position proportional to the entry's rank in the bibliography; such
contexts are best-effort and are not verified citation sites (``anchored=False``).
"""

import bisect
import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence

from .citations import expand_numbers
from .fields import author_surname, normalize_key_token
from .models import (
    BibliographyEntry, CitationContext, NoteCitation, NumericCitation, ParsedCitation
)

logger = logging.getLogger(__name__)

DEFAULT_BEFORE_WORDS = 100
DEFAULT_AFTER_WORDS = 50

_BRACKET_TOKEN = re.compile(r'^\[(\d+(?:\s*[-,]\s*\d+)*)\]')
_DOT_NUMBER_TOKEN = re.compile(r'^\.(\d+)\.')
_PAREN_SURNAME_TOKEN = re.compile(r"^\(([A-Z][\w'-]+)")


def _linked_entry_ids(citation: ParsedCitation, mapping: Mapping[str, str]) -> List[str]:
    if isinstance(citation, NumericCitation):
        keys = [str(n) for n in citation.numbers]
    elif isinstance(citation, NoteCitation):
        keys = [str(citation.number)]
    else:
        keys = [citation.citation_id]
    return [mapping[key] for key in keys if key in mapping]


class ContextExtractor:
    """Word-window context lookup over one document's text."""

    def __init__(self, full_text: str, anchor_limit: Optional[int] = None,
                 citations: Sequence[ParsedCitation] = (),
                 mapping: Optional[Mapping[str, str]] = None):
        """Index anchors in a single pass.

        Args:
            full_text: The normalized document text.
            anchor_limit: Character offset after which tokens are not indexed as
                anchors, typically the end of the body so that labels in the
                reference list itself are not mistaken for citation sites.
            citations: Parsed in-text citations; their ``position`` offsets must
                refer to ``full_text``.
            mapping: The citation-to-entry mapping. Linked citations anchor
                their entries before any token lookup.
        """
        self.words: List[str] = []
        self.anchors: Dict[str, int] = {}
        word_starts: List[int] = []
        for index, match in enumerate(re.finditer(r'\S+', full_text or "")):
            self.words.append(match.group(0))
            word_starts.append(match.start())
            if anchor_limit is not None and match.start() >= anchor_limit:
                continue
            for key in self._anchor_keys(match.group(0)):
                self.anchors.setdefault(key, index)

        self.entry_anchors: Dict[str, int] = {}
        for citation in citations:
            index = bisect.bisect_right(word_starts, citation.position) - 1
            if index < 0:
                continue
            for entry_id in _linked_entry_ids(citation, mapping or {}):
                self.entry_anchors.setdefault(entry_id, index)
        logger.debug(
            f"Indexed {len(self.anchors)} citation anchors and {len(self.entry_anchors)} "
            f"linked citations over {len(self.words)} words"
        )

    @staticmethod
    def _anchor_keys(word: str) -> List[str]:
        match = _BRACKET_TOKEN.match(word)
        if match:
            return [f"[{n}]" for n in expand_numbers(match.group(1))]
        match = _DOT_NUMBER_TOKEN.match(word)
        if match:
            return [f".{match.group(1)}."]
        match = _PAREN_SURNAME_TOKEN.match(word)
        if match:
            return [normalize_key_token(match.group(1))]
        return []

    @staticmethod
    def entry_keys(entry: BibliographyEntry) -> List[str]:
        """Anchor keys that could mark a citation of ``entry``, best first."""
        if entry.entry_id.isdigit():
            return [f"[{entry.entry_id}]", f".{entry.entry_id}."]
        if entry.authors:
            return [normalize_key_token(author_surname(entry.authors[0]))]
        return []

    def window(self, index: int, before: int, after: int) -> CitationContext:
        before_words = self.words[max(0, index - before):index]
        after_words = self.words[index + 1:index + after + 1]
        return CitationContext(
            entry_id="",
            before=" ".join(before_words) if before_words else None,
            after=" ".join(after_words) if after_words else None,
        )

    def extract(self, entry: BibliographyEntry, entries: Sequence[BibliographyEntry],
                before: int = DEFAULT_BEFORE_WORDS,
                after: int = DEFAULT_AFTER_WORDS) -> CitationContext:
        """Return the context for ``entry``; ``entries`` is the full bibliography."""
        if not self.words:
            return CitationContext(entry_id=entry.entry_id)

        index = self.entry_anchors.get(entry.entry_id)
        if index is None:
            index = next((self.anchors[key] for key in self.entry_keys(entry)
                          if key in self.anchors), None)
        if index is not None:
            found = self.window(index, before, after)
            return CitationContext(entry.entry_id, found.before, found.after, anchored=True)

        # Proportional fallback: best-effort context, not a citation site.
        ranks = [e.entry_id for e in entries]
        rank = ranks.index(entry.entry_id) if entry.entry_id in ranks else entry.position
        section_size = len(self.words) // max(len(entries), 1)
        index = min(max(rank * section_size + section_size // 2, before),
                    len(self.words) - after - 1)
        if index <= 0 or index >= len(self.words):
            return CitationContext(entry_id=entry.entry_id)
        found = self.window(index, before, after)
        return CitationContext(entry.entry_id, found.before, found.after, anchored=False)

    def extract_all(self, entries: Sequence[BibliographyEntry],
                    before: int = DEFAULT_BEFORE_WORDS,
                    after: int = DEFAULT_AFTER_WORDS) -> List[CitationContext]:
        return [self.extract(entry, entries, before, after) for entry in entries]
