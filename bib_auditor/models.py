"""
Data models for the bibliography auditor.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class CitationStyle(Enum):
    """Citation conventions recognized by the pipeline."""
    IEEE = "IEEE"
    VANCOUVER = "Vancouver"
    NATURE = "Nature"
    APA = "APA"
    HARVARD = "Harvard"
    CHICAGO_AUTHOR_DATE = "Chicago-AuthorDate"
    CHICAGO_NOTES = "Chicago-Notes"
    MLA = "MLA"
    BIBTEX_KEY = "BibTeXKey"
    MIXED = "Mixed"
    UNKNOWN = "Unknown"

    @property
    def family(self) -> str:
        """Parsing strategy family shared by in-text and bibliography parsing."""
        return _STYLE_FAMILIES[self]


_STYLE_FAMILIES = {
    CitationStyle.IEEE: "numeric-bracket",
    CitationStyle.VANCOUVER: "numeric-parenthetical",
    CitationStyle.NATURE: "numeric-parenthetical",
    CitationStyle.APA: "author-date",
    CitationStyle.HARVARD: "author-date",
    CitationStyle.CHICAGO_AUTHOR_DATE: "author-date",
    CitationStyle.MLA: "author-page",
    CitationStyle.CHICAGO_NOTES: "note",
    CitationStyle.BIBTEX_KEY: "explicit-key",
    CitationStyle.MIXED: "generic",
    CitationStyle.UNKNOWN: "generic",
}


@dataclass(frozen=True)
class NumericCitation:
    """A numeric marker such as [2], [6-8] or (1,3)."""
    citation_id: str
    raw_text: str
    position: int
    numbers: Tuple[int, ...] = ()

    @property
    def type(self) -> str:
        return "numeric"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "citationId": self.citation_id,
            "rawText": self.raw_text,
            "type": self.type,
            "position": self.position,
            "numbers": list(self.numbers),
        }


@dataclass(frozen=True)
class AuthorDateCitation:
    """An author-date, author-page or explicit-key marker."""
    citation_id: str
    raw_text: str
    position: int
    authors: Tuple[str, ...] = ()
    year: Optional[int] = None
    suffix: str = ""
    pages: Optional[str] = None

    @property
    def type(self) -> str:
        return "author-date"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "citationId": self.citation_id,
            "rawText": self.raw_text,
            "type": self.type,
            "position": self.position,
            "authors": list(self.authors),
            "year": self.year,
            "suffix": self.suffix,
            "pages": self.pages,
        }


@dataclass(frozen=True)
class NoteCitation:
    """A superscript-like note number. Low precision by nature."""
    citation_id: str
    raw_text: str
    position: int
    number: int = 0

    @property
    def type(self) -> str:
        return "note"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "citationId": self.citation_id,
            "rawText": self.raw_text,
            "type": self.type,
            "position": self.position,
            "numbers": [self.number],
        }


ParsedCitation = Union[NumericCitation, AuthorDateCitation, NoteCitation]


@dataclass(frozen=True)
class BibliographyEntry:
    """One record parsed from the references section."""
    entry_id: str
    raw_text: str
    authors: Tuple[str, ...] = ()
    title: Optional[str] = None
    year: Optional[int] = None
    journal: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    publisher: Optional[str] = None
    confidence: float = 0.0
    position: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "rawText": self.raw_text,
            "authors": list(self.authors),
            "title": self.title,
            "year": self.year,
            "journal": self.journal,
            "volume": self.volume,
            "issue": self.issue,
            "pages": self.pages,
            "doi": self.doi,
            "url": self.url,
            "publisher": self.publisher,
            "confidence": round(self.confidence, 3),
            "position": self.position,
        }


@dataclass(frozen=True)
class ParsedDocument:
    """Aggregate result of a single parse call."""
    style: CitationStyle
    style_confidence: float
    body_text: str
    references_text: str
    in_text_citations: Tuple[ParsedCitation, ...] = ()
    bibliography: Tuple[BibliographyEntry, ...] = ()
    citation_to_bib_mapping: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    degraded: bool = False
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        """Freeze the mapping so the document stays read-only."""
        if not isinstance(self.citation_to_bib_mapping, MappingProxyType):
            object.__setattr__(
                self, "citation_to_bib_mapping",
                MappingProxyType(dict(self.citation_to_bib_mapping))
            )

    def entry(self, entry_id: str) -> Optional[BibliographyEntry]:
        """Return the bibliography entry with the given id, if any."""
        for entry in self.bibliography:
            if entry.entry_id == entry_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "style": self.style.value,
            "styleConfidence": round(self.style_confidence, 3),
            "bodyText": self.body_text,
            "referencesText": self.references_text,
            "inTextCitations": [c.to_dict() for c in self.in_text_citations],
            "bibliography": [e.to_dict() for e in self.bibliography],
            "citationToBibMapping": dict(self.citation_to_bib_mapping),
            "degraded": self.degraded,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class CitationContext:
    """Text surrounding the place where a bibliography entry is cited.

    When ``anchored`` is False the window came from the proportional-position
    fallback: it is best-effort context, not a verified citation site.
    """
    entry_id: str
    before: Optional[str] = None
    after: Optional[str] = None
    anchored: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "contextBefore": self.before,
            "contextAfter": self.after,
            "anchored": self.anchored,
        }


@dataclass(frozen=True)
class ScoringRequest:
    """The arguments this pipeline supplies to the external support scorer."""
    raw_citation_text: str
    context_before: Optional[str]
    context_after: Optional[str]


@dataclass(frozen=True)
class SupportScore:
    """Score returned by the external support scorer."""
    score: int
    justification: str = ""


@dataclass(frozen=True)
class AuditResult:
    """Parsed document plus per-entry contexts and report diagnostics."""
    document: ParsedDocument
    contexts: Tuple[CitationContext, ...] = ()
    duplicate_entries: Tuple[Tuple[str, str], ...] = ()
    source_name: Optional[str] = None

    @property
    def has_references(self) -> bool:
        return bool(self.document.bibliography)

    def context_for(self, entry_id: str) -> Optional[CitationContext]:
        for context in self.contexts:
            if context.entry_id == entry_id:
                return context
        return None

    def scoring_requests(self) -> List[ScoringRequest]:
        """Build one scorer request per bibliography entry, in document order."""
        requests = []
        for entry in self.document.bibliography:
            context = self.context_for(entry.entry_id)
            requests.append(ScoringRequest(
                raw_citation_text=entry.raw_text,
                context_before=context.before if context else None,
                context_after=context.after if context else None,
            ))
        return requests

    def to_records(self) -> List[Dict[str, Any]]:
        """Per-entry storage records ordered by original position."""
        records = []
        for entry in sorted(self.document.bibliography, key=lambda e: e.position):
            context = self.context_for(entry.entry_id)
            authors = entry.authors
            records.append({
                "position": entry.position,
                "entryId": entry.entry_id,
                "rawCitationText": entry.raw_text,
                "contextBefore": context.before if context else None,
                "contextAfter": context.after if context else None,
                "firstAuthor": authors[0] if authors else None,
                "secondAuthor": authors[1] if len(authors) > 1 else None,
                "lastAuthor": authors[-1] if len(authors) > 2 else None,
                "year": entry.year,
                "publication": entry.journal,
            })
        return records
