"""
Bibliography parsing: segment the references span into entries and extract
structured fields from each one.
"""

import itertools
import logging
import re
import string
from collections import Counter
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple

import bibtexparser
from bibtexparser.bparser import BibTexParser
from bibtexparser.customization import convert_to_unicode

from .fields import (
    FieldProfile, author_surname, find_doi, find_issue, find_pages, find_publisher,
    find_quoted_title, find_title_after, find_url, find_venue, find_volume, find_year,
    make_author_date_key, parse_authors, split_segments, strip_identifiers
)
from .models import BibliographyEntry, CitationStyle

logger = logging.getLogger(__name__)

MIN_GENERIC_ENTRY_CHARS = 20
BIBTEX_RECORD_CONFIDENCE = 0.9

PROFILES: Dict[str, FieldProfile] = {
    "numeric-bracket": FieldProfile(
        "ieee", title_rule="quoted", author_format="initials-first", base_confidence=0.8),
    "numeric-parenthetical": FieldProfile(
        "vancouver", title_rule="second-segment", author_format="surname-initials",
        base_confidence=0.75),
    "note": FieldProfile(
        "notes", title_rule="quoted", author_format="initials-first", base_confidence=0.5),
    "author-date": FieldProfile(
        "author-date", title_rule="after-year", author_format="surname-first",
        year_parenthesized=True, given_names=True, base_confidence=0.7),
    "author-page": FieldProfile(
        "mla", title_rule="quoted", author_format="surname-first", given_names=True,
        base_confidence=0.65),
    "explicit-key": FieldProfile(
        "bibitem", title_rule="second-segment", author_format="initials-first",
        base_confidence=0.6, expected_fields=("authors", "title", "year")),
    "generic": FieldProfile(
        "generic", title_rule="quoted", author_format="initials-first", base_confidence=0.3),
}

_NUMERIC_LABEL = re.compile(r'^[ \t]*(?:\[(\d{1,3})\]|(\d{1,3})[.)])[ \t]+', re.MULTILINE)
# "Surname, I." or "Surname, Given." / "Surname, Given M.,"; a bare capitalized word
# after the comma is a wrapped continuation line ("Systems, Curran Associates").
_AUTHOR_DATE_START = re.compile(
    r"^(?=[A-Z][\w'-]+(?:[ \t]+[A-Z][\w'-]+)?,[ \t]+"
    r"(?:[A-Z]\.|[A-Z][a-z]+(?:[ \t]+[A-Z]\.)*[.,]))",
    re.MULTILINE,
)
_BIBITEM = re.compile(r'\\bibitem(?:\[[^\]]*\])?\{([^}]+)\}')
_BIBTEX_RECORD = re.compile(r'^[ \t]*@(\w+)\s*\{\s*([^,\s]+)\s*,', re.MULTILINE)
_BLANK_LINE = re.compile(r'\n[ \t]*\n')

_SURNAME_FIRST = re.compile(r"^[A-Z][\w'-]+(?:\s+[A-Z][\w'-]+)?,\s+[A-Z]")
_SURNAME_INITIALS = re.compile(r"^[A-Z][\w'-]+\s+[A-Z]{1,3}(?:,|\.|\s*$)")
_INITIALS_FIRST = re.compile(r"^(?:[A-Z]\.\s*-?)+\s*[A-Z]")


def _resolve_author_format(authors_text: str, default: str) -> str:
    """Infer the author naming convention actually used by one entry."""
    if _SURNAME_FIRST.match(authors_text):
        return "surname-first"
    if _SURNAME_INITIALS.match(authors_text):
        return "surname-initials"
    if _INITIALS_FIRST.match(authors_text):
        return "initials-first"
    return default


def _clean_author_span(text: str) -> str:
    text = text.strip(" ,;:")
    # Keep the period of a trailing initial, drop the one ending a full word.
    return re.sub(r'(?<=[a-z]{2})\.$', "", text)


def _strip_latex(text: str) -> str:
    text = re.sub(r'\\newblock\b', " ", text)
    text = re.sub(r'\\(?:emph|textit|textbf|textsc|url|doi)\{([^}]*)\}', r'\1', text)
    text = re.sub(r'\\[a-zA-Z]+\*?', " ", text)
    text = text.replace("~", " ").replace("{", "").replace("}", "")
    text = re.sub(r"``|''", '"', text)
    return re.sub(r'[ \t]+', " ", text).strip()


def _join_lines(text: str) -> str:
    return re.sub(r'\s*\n\s*', " ", text).strip()


def _id_candidates(entry_id: str, author_date: bool) -> Iterator[str]:
    """Replacement ids for a duplicated entry id, in order of preference."""
    if author_date and not re.search(r'\d[a-z]$', entry_id):
        for letter in string.ascii_lowercase:
            yield f"{entry_id}{letter}"
    else:
        yield entry_id
    for number in itertools.count(2):
        yield f"{entry_id}-{number}"


class BibliographyParser:
    """Split a references span into ``BibliographyEntry`` records."""

    def __init__(self, profiles: Optional[Dict[str, FieldProfile]] = None):
        self.profiles = dict(profiles or PROFILES)

    def parse(self, references_text: str, style: CitationStyle,
              deadline=None) -> Tuple[BibliographyEntry, ...]:
        """Parse every entry in ``references_text`` according to ``style``.

        ``deadline``, when given, is checked between entries so that a slow parse
        can be abandoned cooperatively.
        """
        if not references_text or not references_text.strip():
            return ()

        family = style.family
        if family == "explicit-key":
            entries = self._parse_explicit_key(references_text, deadline)
        elif family in ("numeric-bracket", "numeric-parenthetical", "note"):
            segments = self.segment_numeric(references_text)
            if segments:
                entries = self._build(segments, self.profiles[family], deadline)
            else:
                logger.debug("No numeric labels in references; using generic segmentation")
                entries = self._build(self.segment_generic(references_text),
                                      self.profiles["generic"], deadline)
        elif family in ("author-date", "author-page"):
            segments = self.segment_author_date(references_text)
            if segments:
                entries = self._build(segments, self.profiles[family], deadline, keyed=True)
            else:
                logger.debug("No author-led lines in references; using generic segmentation")
                entries = self._build(self.segment_generic(references_text),
                                      self.profiles["generic"], deadline)
        else:
            entries = self._build(self.segment_generic(references_text),
                                  self.profiles["generic"], deadline)

        entries = self._deduplicate_ids(entries, author_date=family in ("author-date", "author-page"))
        logger.debug(f"Parsed {len(entries)} bibliography entries ({style.value})")
        return tuple(entries)

    # Segmentation

    def segment_numeric(self, text: str) -> List[Tuple[Optional[str], str]]:
        """Split on ``[n]``, ``n.`` or ``n)`` labels at line start."""
        labels = list(_NUMERIC_LABEL.finditer(text))
        segments = []
        for index, match in enumerate(labels):
            end = labels[index + 1].start() if index + 1 < len(labels) else len(text)
            body = _join_lines(text[match.end():end])
            if body:
                segments.append((match.group(1) or match.group(2), body))
        return segments

    def segment_author_date(self, text: str) -> List[Tuple[Optional[str], str]]:
        """Split on lines that open with ``Surname, I.`` or ``Surname, Given``."""
        starts = [m.start() for m in _AUTHOR_DATE_START.finditer(text)]
        segments = []
        for index, start in enumerate(starts):
            end = starts[index + 1] if index + 1 < len(starts) else len(text)
            body = _join_lines(text[start:end])
            if body:
                segments.append((None, body))
        return segments

    def segment_generic(self, text: str) -> List[Tuple[Optional[str], str]]:
        """Blank-line blocks, else labelled lines, else one entry per line."""
        blocks = [b for b in _BLANK_LINE.split(text) if b.strip()]
        if len(blocks) <= 1:
            labelled = self.segment_numeric(text)
            if labelled:
                return [(label, body) for label, body in labelled
                        if len(body) >= MIN_GENERIC_ENTRY_CHARS]
            blocks = [line for line in text.splitlines() if line.strip()]

        segments = []
        for block in blocks:
            body = _join_lines(block)
            if len(body) < MIN_GENERIC_ENTRY_CHARS:
                continue
            label_match = _NUMERIC_LABEL.match(body)
            if label_match:
                segments.append((label_match.group(1) or label_match.group(2),
                                 body[label_match.end():].strip()))
            else:
                segments.append((None, body))
        return segments

    # Field extraction

    def extract_fields(self, text: str, profile: FieldProfile) -> Dict[str, object]:
        """Extract every field the profile knows how to find from one entry."""
        doi = find_doi(text)
        url = find_url(text)
        clean = strip_identifiers(text)
        year_match = find_year(clean, parenthesized=profile.year_parenthesized)

        authors_text, title, venue = self._locate_fields(clean, profile, year_match)
        author_format = _resolve_author_format(authors_text, profile.author_format)
        authors = parse_authors(_clean_author_span(authors_text), author_format,
                                given_names=profile.given_names)

        return {
            "authors": authors,
            "title": title or None,
            "year": year_match.year if year_match else None,
            "year_suffix": year_match.suffix if year_match else "",
            "journal": venue,
            "volume": find_volume(clean),
            "issue": find_issue(clean),
            "pages": find_pages(clean),
            "doi": doi,
            "url": url,
            "publisher": find_publisher(clean),
        }

    def _locate_fields(self, clean: str, profile: FieldProfile, year_match):
        """Return (authors span, title, venue) using the profile's title rule."""
        if profile.title_rule == "quoted":
            quoted = find_quoted_title(clean)
            if quoted:
                title, start, end = quoted
                venue = find_venue(clean[end:])
                return clean[:start], title, venue[0] if venue else None

        if profile.title_rule == "after-year" and year_match and year_match.start > 0:
            found = find_title_after(clean, year_match.end)
            if found:
                title, _, end = found
                venue = find_venue(clean[end:])
                return clean[:year_match.start], title, venue[0] if venue else None

        # Period-delimited fallback: authors. title. venue ...
        authors_guess = clean[:year_match.start] if year_match else clean
        break_after_initials = _resolve_author_format(
            authors_guess, profile.author_format) == "surname-initials"
        spans = split_segments(clean, break_after_initials=break_after_initials)
        if len(spans) < 2:
            return "", clean.strip() if spans else None, None
        authors_text = clean[spans[0][0]:spans[0][1]]
        title = clean[spans[1][0]:spans[1][1]].strip()
        venue = find_venue(clean[spans[1][1] + 1:]) if spans[1][1] < len(clean) else None
        if year_match and re.fullmatch(r'\(?\d{4}[a-z]?\)?', title):
            # "Surname, I. (2020). Title." with no author-date profile
            title = clean[spans[2][0]:spans[2][1]].strip() if len(spans) > 2 else None
        return authors_text, title, venue[0] if venue else None

    def _confidence(self, fields: Dict[str, object], profile: FieldProfile) -> float:
        expected = profile.expected_fields
        filled = sum(1 for name in expected if fields.get(name))
        return round(profile.base_confidence * (0.5 + 0.5 * filled / len(expected)), 3)

    def _build(self, segments: List[Tuple[Optional[str], str]], profile: FieldProfile,
               deadline=None, keyed: bool = False) -> List[BibliographyEntry]:
        entries = []
        for rank, (label, body) in enumerate(segments):
            if deadline is not None:
                deadline.check()
            fields = self.extract_fields(body, profile)
            if keyed:
                surnames = [author_surname(a) for a in fields["authors"]]
                entry_id = make_author_date_key(surnames, fields["year"], fields["year_suffix"])
            else:
                entry_id = label or str(rank + 1)
            entries.append(BibliographyEntry(
                entry_id=entry_id,
                raw_text=body,
                authors=fields["authors"],
                title=fields["title"],
                year=fields["year"],
                journal=fields["journal"],
                volume=fields["volume"],
                issue=fields["issue"],
                pages=fields["pages"],
                doi=fields["doi"],
                url=fields["url"],
                publisher=fields["publisher"],
                confidence=self._confidence(fields, profile),
                position=rank,
            ))
        return entries

    # Explicit-key inputs

    def _parse_explicit_key(self, text: str, deadline=None) -> List[BibliographyEntry]:
        if _BIBTEX_RECORD.search(text):
            entries = self._parse_bibtex_records(text)
            if entries:
                return entries
        items = list(_BIBITEM.finditer(text))
        if not items:
            logger.debug("No \\bibitem markers in references; using generic segmentation")
            return self._build(self.segment_generic(text), self.profiles["generic"], deadline)

        profile = self.profiles["explicit-key"]
        entries = []
        for rank, match in enumerate(items):
            if deadline is not None:
                deadline.check()
            end = items[rank + 1].start() if rank + 1 < len(items) else len(text)
            body = _strip_latex(re.sub(r'\\end\{thebibliography\}.*', "", text[match.end():end], flags=re.S))
            fields = self.extract_fields(body, profile)
            entries.append(BibliographyEntry(
                entry_id=match.group(1).strip(),
                raw_text=body,
                authors=fields["authors"],
                title=fields["title"],
                year=fields["year"],
                journal=fields["journal"],
                volume=fields["volume"],
                issue=fields["issue"],
                pages=fields["pages"],
                doi=fields["doi"],
                url=fields["url"],
                publisher=fields["publisher"],
                confidence=self._confidence(fields, profile),
                position=rank,
            ))
        return entries

    def _parse_bibtex_records(self, text: str) -> List[BibliographyEntry]:
        """Parse ``@article{key, ...}`` database records with bibtexparser."""
        starts = [(m.start(), m.group(2)) for m in _BIBTEX_RECORD.finditer(text)]
        raw_by_key = {}
        for index, (start, key) in enumerate(starts):
            end = starts[index + 1][0] if index + 1 < len(starts) else len(text)
            raw_by_key[key] = text[start:end].strip()

        parser = BibTexParser(common_strings=True)
        parser.customization = convert_to_unicode
        bib_database = bibtexparser.loads(text, parser=parser)

        entries = []
        for rank, record in enumerate(bib_database.entries):
            authors = tuple(
                part.strip() for part in record.get('author', '').split(' and ') if part.strip()
            )
            year = None
            year_match = find_year(record.get('year', ''))
            if year_match:
                year = year_match.year
            doi = record.get('doi', '').strip()
            if doi:
                doi = re.sub(r'^(doi:?|https?://(?:dx\.)?doi\.org/)', '', doi, flags=re.IGNORECASE)
                doi = doi.strip('/')
            key = record.get('ID', str(rank + 1))
            entries.append(BibliographyEntry(
                entry_id=key,
                raw_text=raw_by_key.get(key, ""),
                authors=authors,
                title=record.get('title', '').strip('{}') or None,
                year=year,
                journal=record.get('journal') or record.get('booktitle'),
                volume=record.get('volume'),
                issue=record.get('number'),
                pages=re.sub(r'-+', "-", record['pages']) if record.get('pages') else None,
                doi=doi or None,
                url=record.get('url'),
                publisher=record.get('publisher'),
                confidence=BIBTEX_RECORD_CONFIDENCE,
                position=rank,
            ))
        return entries

    @staticmethod
    def _deduplicate_ids(entries: List[BibliographyEntry],
                         author_date: bool) -> List[BibliographyEntry]:
        """Make entry ids unique within the document."""
        counts = Counter(e.entry_id for e in entries)
        # Ids that occur once are kept as they are; generated ids must avoid them.
        used = {entry_id for entry_id, count in counts.items() if count == 1}
        unique = []
        for entry in entries:
            entry_id = entry.entry_id
            if counts[entry_id] > 1:
                new_id = next(c for c in _id_candidates(entry_id, author_date) if c not in used)
                if new_id != entry_id:
                    entry = replace(entry, entry_id=new_id)
            used.add(entry.entry_id)
            unique.append(entry)
        return unique


def parse_bibliography(references_text: str, style: CitationStyle,
                       deadline=None) -> Tuple[BibliographyEntry, ...]:
    return BibliographyParser().parse(references_text, style, deadline=deadline)
