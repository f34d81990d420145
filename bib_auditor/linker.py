"""
Linking in-text citations to bibliography entries.
"""

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

from .fields import author_surname, normalize_key_token
from .models import AuthorDateCitation, BibliographyEntry, NoteCitation, NumericCitation, ParsedCitation

logger = logging.getLogger(__name__)


class CitationLinker:
    """Map citation ids to the entry ids they refer to."""

    def __init__(self, bibliography: Sequence[BibliographyEntry]):
        self.entries_by_id: Dict[str, BibliographyEntry] = {}
        self.entries_by_surname: Dict[str, BibliographyEntry] = {}
        for entry in bibliography:
            self.entries_by_id.setdefault(entry.entry_id, entry)
            if entry.authors:
                surname = normalize_key_token(author_surname(entry.authors[0]))
                self.entries_by_surname.setdefault(surname, entry)

    def link(self, citations: Sequence[ParsedCitation]) -> Mapping[str, str]:
        mapping: Dict[str, str] = {}
        unmatched = 0
        for citation in citations:
            if isinstance(citation, NumericCitation):
                numbers = citation.numbers
            elif isinstance(citation, NoteCitation):
                numbers = (citation.number,)
            else:
                entry_id = self._match_author_date(citation)
                if entry_id is None:
                    unmatched += 1
                else:
                    mapping[citation.citation_id] = entry_id
                continue

            for number in numbers:
                key = str(number)
                if key in self.entries_by_id:
                    mapping[key] = key
                else:
                    unmatched += 1

        if unmatched:
            logger.debug(f"{unmatched} citation references had no bibliography entry")
        return MappingProxyType(mapping)

    def _match_author_date(self, citation: AuthorDateCitation) -> Optional[str]:
        if citation.citation_id in self.entries_by_id:
            return citation.citation_id
        # Author-page markers carry no year, so only the lead surname can match.
        if citation.year is None and citation.authors:
            entry = self.entries_by_surname.get(normalize_key_token(citation.authors[0]))
            if entry is not None:
                return entry.entry_id
        return None


def link_citations(citations: Sequence[ParsedCitation],
                   bibliography: Sequence[BibliographyEntry]) -> Mapping[str, str]:
    """Return ``{citation_id: entry_id}``; unmatched citations are left out."""
    return CitationLinker(bibliography).link(citations)
