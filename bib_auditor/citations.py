"""
In-text citation parsing, one strategy per style family.
"""

import logging
import re
from typing import AbstractSet, Callable, Dict, List, Optional, Tuple

from .fields import make_author_date_key, normalize_key_token
from .models import (
    AuthorDateCitation, CitationStyle, NoteCitation, NumericCitation, ParsedCitation
)

logger = logging.getLogger(__name__)

# Ranges wider than this are treated as noise rather than expanded.
MAX_RANGE_WIDTH = 500

_NAME = r"[A-Z][\w'-]+"
_NUMBER_LIST = r"\d+(?:\s*-\s*\d+)?(?:\s*,\s*\d+(?:\s*-\s*\d+)?)*"
_YEAR_IN_GROUP = re.compile(r'(?:19|20)\d{2}')

# Longest parenthetical group scanned for author-date items.
MAX_GROUP_CHARS = 400

# Capitalized words that precede "(YYYY)" in prose without naming an author.
_NARRATIVE_STOPWORDS = (
    r"(?:In|The|See|Since|From|Until|After|Before|During|By|On|At|As|For|Between|"
    r"This|That|These|Those|Also|And|But|Then|Table|Figure|Fig|Section|Chapter|"
    r"Version|Year|Spring|Summer|Autumn|Fall|Winter|January|February|March|April|"
    r"May|June|July|August|September|October|November|December)"
)


def expand_numbers(label_text: str) -> Tuple[int, ...]:
    """Expand "2, 4, 6-8" into (2, 4, 6, 7, 8): sorted, unique, ranges inclusive."""
    numbers = set()
    for part in (p.strip() for p in label_text.split(",")):
        if not part:
            continue
        if "-" in part:
            start_text, end_text = (s.strip() for s in part.split("-", 1))
            if not (start_text.isdigit() and end_text.isdigit()):
                continue
            start, end = sorted((int(start_text), int(end_text)))
            if end - start > MAX_RANGE_WIDTH:
                logger.debug(f"Ignoring implausible citation range {part!r}")
                continue
            numbers.update(range(start, end + 1))
        elif part.isdigit():
            numbers.add(int(part))
    return tuple(sorted(numbers))


def numeric_citation_id(numbers: Tuple[int, ...]) -> str:
    return ",".join(str(n) for n in numbers)


class InTextCitationParser:
    """Extract citation markers from body text according to the detected style."""

    def __init__(self):
        self.bracket_pattern = re.compile(r'\[(' + _NUMBER_LIST + r')\]')
        self.paren_numeric_pattern = re.compile(
            r'\((\d{1,3}(?:\s*-\s*\d{1,3})?(?:\s*,\s*\d{1,3}(?:\s*-\s*\d{1,3})?)*)\)'
        )

        # A bounded parenthetical group; those holding a year are split on ';' into items.
        self.author_date_group = re.compile(r'\(([^()]{1,%d})\)' % MAX_GROUP_CHARS)
        self.author_date_item = re.compile(
            r'^(?:(?:see also|see|e\.g\.,?|cf\.|i\.e\.,?)\s+)?'
            r'(?P<authors>' + _NAME + r'(?:(?:,?\s+(?:&|and)\s+|,\s+)' + _NAME + r')*)'
            r'(?P<etal>\s+et\s+al\.?)?,?\s+'
            r'(?P<years>(?:19|20)\d{2}[a-z]?(?:\s*,\s*(?:19|20)\d{2}[a-z]?)*)'
            r'(?:,\s*(?P<pages>(?:pp?\.\s*)?\d+(?:\s*-\s*\d+)?))?\s*$'
        )
        self.narrative_pattern = re.compile(
            r'\b(?!' + _NARRATIVE_STOPWORDS + r'\b)'
            r'(?P<authors>' + _NAME + r'(?:,\s+' + _NAME + r'){0,8}(?:,?\s+(?:and|&)\s+' + _NAME + r')?)'
            r'(?P<etal>\s+et\s+al\.?)?\s+\((?P<year>(?:19|20)\d{2})(?P<suffix>[a-z])?\)'
        )
        self.author_page_pattern = re.compile(
            r'\((?P<authors>' + _NAME + r'(?:\s+(?:and|&)\s+' + _NAME + r')?)\s+'
            r'(?!(?:19|20)\d{2}\b)(?P<pages>\d{1,4}(?:-\d{1,4})?)\)'
        )
        # Bare numerals glued to a word or following sentence punctuation.
        self.note_pattern = re.compile(
            r'(?:(?<=[a-z])|(?<=[A-Za-z][.,;:!?"\']))(\d{1,3})(?=[\s,.;:]|$)', re.MULTILINE
        )
        self.key_pattern = re.compile(r'\\cite[pt]?\*?(?:\[[^\]]{0,200}\]){0,2}\{([^}]{1,400})\}')

        self.strategies: Dict[str, Callable[[str], List[ParsedCitation]]] = {
            "numeric-bracket": self.parse_bracket_numeric,
            "numeric-parenthetical": self.parse_parenthetical_numeric,
            "author-date": self.parse_author_date,
            "author-page": self.parse_author_page,
            "note": self.parse_notes,
            "explicit-key": self.parse_keys,
        }

    def parse(self, body_text: str, style: CitationStyle,
              known_surnames: Optional[AbstractSet[str]] = None) -> Tuple[ParsedCitation, ...]:
        """Return every citation marker in ``body_text`` ordered by position.

        ``known_surnames``, when given, holds the normalized lead surnames of the
        bibliography; narrative "Name (YYYY)" forms are only kept for those names.
        """
        if not body_text or style is CitationStyle.UNKNOWN:
            return ()
        if style is CitationStyle.MIXED:
            citations = (
                self.parse_bracket_numeric(body_text)
                + self.parse_parenthetical_numeric(body_text)
                + self.parse_author_date(body_text, known_surnames)
            )
        elif style.family == "author-date":
            citations = self.parse_author_date(body_text, known_surnames)
        else:
            citations = self.strategies[style.family](body_text)
        return tuple(sorted(citations, key=lambda c: c.position))

    def parse_bracket_numeric(self, text: str) -> List[ParsedCitation]:
        return self._numeric(self.bracket_pattern, text)

    def parse_parenthetical_numeric(self, text: str) -> List[ParsedCitation]:
        return self._numeric(self.paren_numeric_pattern, text)

    def _numeric(self, pattern: "re.Pattern", text: str) -> List[ParsedCitation]:
        citations = []
        for match in pattern.finditer(text):
            numbers = expand_numbers(match.group(1))
            if not numbers:
                continue
            citations.append(NumericCitation(
                citation_id=numeric_citation_id(numbers),
                raw_text=match.group(0),
                position=match.start(),
                numbers=numbers,
            ))
        return citations

    def parse_author_date(self, text: str,
                          known_surnames: Optional[AbstractSet[str]] = None) -> List[ParsedCitation]:
        """Parenthetical author-date groups plus narrative "Smith et al. (2020)" forms."""
        citations = []
        for group in self.author_date_group.finditer(text):
            inner = group.group(1)
            if not _YEAR_IN_GROUP.search(inner):
                continue
            items = self._split_items(inner, group.start(1))
            single = len(items) == 1
            for item_text, item_start in items:
                match = self.author_date_item.match(item_text)
                if not match:
                    continue
                raw_text = group.group(0) if single else item_text
                position = group.start() if single else item_start
                surnames = self._surnames(match.group("authors"))
                pages = match.group("pages")
                if pages:
                    pages = re.sub(r'^pp?\.\s*', "", pages).replace(" ", "")
                for year_text in re.findall(r'(?:19|20)\d{2}[a-z]?', match.group("years")):
                    year, suffix = int(year_text[:4]), year_text[4:]
                    citations.append(AuthorDateCitation(
                        citation_id=make_author_date_key(surnames, year, suffix),
                        raw_text=raw_text,
                        position=position,
                        authors=surnames,
                        year=year,
                        suffix=suffix,
                        pages=pages,
                    ))

        for match in self.narrative_pattern.finditer(text):
            surnames = self._surnames(match.group("authors"))
            if known_surnames is not None and normalize_key_token(surnames[0]) not in known_surnames:
                logger.debug(f"Skipping narrative match {match.group(0)!r}: no such author")
                continue
            year = int(match.group("year"))
            suffix = match.group("suffix") or ""
            citations.append(AuthorDateCitation(
                citation_id=make_author_date_key(surnames, year, suffix),
                raw_text=match.group(0),
                position=match.start(),
                authors=surnames,
                year=year,
                suffix=suffix,
            ))
        return citations

    def parse_author_page(self, text: str) -> List[ParsedCitation]:
        citations = []
        for match in self.author_page_pattern.finditer(text):
            surnames = self._surnames(match.group("authors"))
            pages = match.group("pages")
            citations.append(AuthorDateCitation(
                citation_id=f"{normalize_key_token(surnames[0])}_page{pages}",
                raw_text=match.group(0),
                position=match.start(),
                authors=surnames,
                pages=pages,
            ))
        return citations

    def parse_notes(self, text: str) -> List[ParsedCitation]:
        """Bare note numbers. Prone to false positives on ordinary numerals."""
        citations = []
        for match in self.note_pattern.finditer(text):
            number = int(match.group(1))
            if number == 0:
                continue
            citations.append(NoteCitation(
                citation_id=str(number),
                raw_text=match.group(0),
                position=match.start(),
                number=number,
            ))
        return citations

    def parse_keys(self, text: str) -> List[ParsedCitation]:
        citations = []
        for match in self.key_pattern.finditer(text):
            for key in (k.strip() for k in match.group(1).split(",")):
                if key:
                    citations.append(AuthorDateCitation(
                        citation_id=key,
                        raw_text=match.group(0),
                        position=match.start(),
                    ))
        return citations

    @staticmethod
    def _split_items(inner: str, offset: int) -> List[Tuple[str, int]]:
        items = []
        cursor = 0
        for piece in inner.split(";"):
            stripped = piece.strip()
            if stripped:
                items.append((stripped, offset + cursor + piece.index(stripped)))
            cursor += len(piece) + 1
        return items

    @staticmethod
    def _surnames(authors_text: str) -> Tuple[str, ...]:
        parts = re.split(r'\s*,\s*(?:&\s*|and\s+)?|\s+(?:&|and)\s+', authors_text.strip())
        return tuple(p for p in parts if p)


def parse_in_text(body_text: str, style: CitationStyle,
                  known_surnames: Optional[AbstractSet[str]] = None) -> Tuple[ParsedCitation, ...]:
    return InTextCitationParser().parse(body_text, style, known_surnames)
