"""
Field-extraction primitives shared by every bibliography style.

Each style family differs only in which primitives it chains and in the
``FieldProfile`` it passes; the primitives themselves are style-agnostic.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

# Identifiers
DOI_PATTERN = re.compile(
    r'(?:doi:?\s*|https?://(?:dx\.)?doi\.org/)?(10\.\d{4,9}/[^\s"<>]+)', re.IGNORECASE
)
URL_PATTERN = re.compile(r'https?://[^\s"<>]+', re.IGNORECASE)
ACCESS_NOTE_PATTERN = re.compile(
    r'\b(?:Available\s+(?:from|at|online)|Retrieved\s+from|Accessed)\b:?', re.IGNORECASE
)

# Years are only plausible in 1900-2099; a year glued to a range is a page span.
YEAR_PATTERN = re.compile(r'(?<![\d-])(19\d{2}|20\d{2})([a-z])?(?![\da-z]|\s*-\s*\d)')
PAREN_YEAR_PATTERN = re.compile(r'\((19\d{2}|20\d{2})([a-z])?(?:,[^)]{0,40})?\)')

# Pages
PAGES_PREFIXED = re.compile(r'\bpp?\.\s*(\d+(?:\s*-\s*\d+)?)', re.IGNORECASE)
PAGES_AFTER_COLON = re.compile(r':\s*(\d+(?:\s*-\s*\d+)?)(?=\s*(?:[.,;]|$))')
PAGES_RANGE = re.compile(r'(?<![\d.:/])(\d{1,6})\s*-\s*(\d{1,6})(?![\d/])')

# Volume and issue
VOLUME_PREFIXED = re.compile(r'\bvol(?:ume)?\.?\s*(\d+)', re.IGNORECASE)
ISSUE_PREFIXED = re.compile(r'\b(?:no|issue|iss)\.?\s*(\d+)', re.IGNORECASE)
VOLUME_ISSUE = re.compile(r'(?<![\d(])(\d{1,5})\s*\((\d{1,5}(?:-\d{1,5})?)\)')
YEAR_VOLUME = re.compile(
    r'(?:19|20)\d{2}[^;:\d]{0,20};\s*(\d+)\s*(?:\((\d+(?:-\d+)?)\))?\s*:'
)

# Publisher
PUBLISHER_LABEL = re.compile(r'\bPublisher:\s*([^.;,]+)', re.IGNORECASE)
PUBLISHER_PATTERN = re.compile(
    r"((?:[A-Z][\w&'-]*\.?\s+){0,4}(?:Press|Publishing|Publishers|Publisher|Books))\b"
)
KNOWN_PUBLISHERS = (
    "Springer", "Elsevier", "Wiley", "Routledge", "SAGE", "Sage",
    "Taylor & Francis", "Pearson", "McGraw-Hill", "O'Reilly", "Penguin",
)

# A single capital or a short capitalized abbreviation before a period does not
# end a field ("J. Smith", "Proc. NAACL").
_ABBREVIATION = re.compile(
    r"^(?:[A-Z]|et al|eds?|Eds?|vol|Vol|no|No|pp|Proc|Int|Conf|Trans|Natl|Acad|Sci"
    r"|Rev|Res|Soc|Assoc|Univ|Dept|J|Am|Eng|Med|Phys|Chem|Biol|Lett|Mol|Comput"
    r"|Inf|Syst|Appl|Mech|Stat|Math|Ann|Annu|Eur|Br|Symp|Workshop|Adv)$"
)
_LAST_WORD = re.compile(r"((?:et )?[A-Za-z]+)$")
_INITIALS = re.compile(r"^(?:[A-Z]\.?[\s-]?){1,4}$")
_GIVEN_NAME = re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]*\.?){0,2}$")
_NOT_A_NAME = re.compile(r"^(?:in|vol|no|pp|eds?|edited|available|retrieved)\b", re.IGNORECASE)


@dataclass(frozen=True)
class FieldProfile:
    """Per-style configuration for field extraction.

    ``title_rule`` is one of ``quoted``, ``after-year`` or ``second-segment``;
    ``author_format`` is one of ``surname-first``, ``initials-first`` or
    ``surname-initials``.
    """
    name: str
    title_rule: str
    author_format: str
    year_parenthesized: bool = False
    given_names: bool = False
    base_confidence: float = 0.5
    expected_fields: Tuple[str, ...] = ("authors", "title", "year", "journal")


@dataclass(frozen=True)
class YearMatch:
    year: int
    suffix: str
    start: int
    end: int


def find_year(text: str, parenthesized: bool = False) -> Optional[YearMatch]:
    """Find the publication year, preferring a parenthesized year when asked."""
    if not text:
        return None
    if parenthesized:
        match = PAREN_YEAR_PATTERN.search(text)
        if match:
            return YearMatch(int(match.group(1)), match.group(2) or "", match.start(), match.end())
    match = YEAR_PATTERN.search(text)
    if match:
        return YearMatch(int(match.group(1)), match.group(2) or "", match.start(), match.end())
    return None


def _trim_identifier(value: str) -> str:
    value = value.rstrip(".,;:'\"")
    for opener, closer in (("(", ")"), ("[", "]")):
        while value.endswith(closer) and value.count(opener) < value.count(closer):
            value = value[:-1].rstrip(".,;:")
    return value


def find_doi(text: str) -> Optional[str]:
    """Find a DOI regardless of style."""
    match = DOI_PATTERN.search(text or "")
    if match:
        return _trim_identifier(match.group(1))
    return None


def find_url(text: str) -> Optional[str]:
    """Find the first URL that is not just a DOI resolver link."""
    for match in URL_PATTERN.finditer(text or ""):
        url = _trim_identifier(match.group(0))
        if "doi.org/" not in url.lower():
            return url
    return None


def strip_identifiers(text: str) -> str:
    """Remove DOIs, URLs and access notes so they do not pollute other fields."""
    stripped = URL_PATTERN.sub(" ", text)
    stripped = DOI_PATTERN.sub(" ", stripped)
    stripped = ACCESS_NOTE_PATTERN.sub(" ", stripped)
    stripped = re.sub(r'\bdoi:?\s*(?=\s|$)', " ", stripped, flags=re.IGNORECASE)
    return re.sub(r'[ \t]+', " ", stripped).strip()


def _normalize_range(value: str) -> str:
    return re.sub(r'\s*-\s*', "-", value.strip())


def _is_year_range(start: str, end: str) -> bool:
    return all(len(v) == 4 and 1900 <= int(v) <= 2099 for v in (start, end))


def find_pages(text: str) -> Optional[str]:
    """Find a page or page range: ``pp.`` first, then ``:pages``, then a bare range."""
    if not text:
        return None
    match = PAGES_PREFIXED.search(text)
    if match:
        return _normalize_range(match.group(1))
    match = PAGES_AFTER_COLON.search(text)
    if match:
        return _normalize_range(match.group(1))
    for match in PAGES_RANGE.finditer(text):
        if not _is_year_range(match.group(1), match.group(2)):
            return f"{match.group(1)}-{match.group(2)}"
    return None


def find_volume(text: str) -> Optional[str]:
    if not text:
        return None
    for pattern in (VOLUME_PREFIXED, YEAR_VOLUME, VOLUME_ISSUE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def find_issue(text: str) -> Optional[str]:
    if not text:
        return None
    match = ISSUE_PREFIXED.search(text)
    if match:
        return match.group(1)
    for pattern in (YEAR_VOLUME, VOLUME_ISSUE):
        match = pattern.search(text)
        if match and match.group(2):
            return match.group(2)
    return None


def find_publisher(text: str) -> Optional[str]:
    if not text:
        return None
    match = PUBLISHER_LABEL.search(text)
    if match:
        return match.group(1).strip()
    match = PUBLISHER_PATTERN.search(text)
    if match:
        publisher = re.sub(r'^(?:In|The)\s+', "", match.group(1).strip())
        return publisher or None
    for name in KNOWN_PUBLISHERS:
        if re.search(r'\b' + re.escape(name) + r'\b', text):
            return name
    return None


def split_segments(text: str, break_after_initials: bool = False) -> List[Tuple[int, int]]:
    """Split text into period-delimited field spans.

    A period ends a field only when followed by whitespace (or the end) and,
    unless ``break_after_initials`` is set, not preceded by an initial or a
    short abbreviation.
    """
    spans = []
    start = 0
    for match in re.finditer(r'[.?!](?=\s|$)', text):
        if not break_after_initials and match.group(0) == ".":
            word = _LAST_WORD.search(text[max(start, match.start() - 12):match.start()])
            if word and _ABBREVIATION.match(word.group(1)):
                continue
        segment = text[start:match.start()].strip()
        if segment:
            spans.append((start, match.start()))
        start = match.end()
    if text[start:].strip():
        spans.append((start, len(text)))
    return [(s + (len(text[s:e]) - len(text[s:e].lstrip())), e) for s, e in spans]


def find_quoted_title(text: str) -> Optional[Tuple[str, int, int]]:
    """Return the first double-quoted span as (title, start, end)."""
    match = re.search(r'"([^"]{3,})"', text)
    if not match:
        return None
    title = match.group(1).strip().rstrip(",.;:").strip()
    return (title, match.start(), match.end()) if title else None


def find_title_after(text: str, offset: int) -> Optional[Tuple[str, int, int]]:
    """Return the title that starts at ``offset`` (used after an author-date year)."""
    rest = text[offset:]
    lead = len(rest) - len(rest.lstrip(" .,:"))
    rest = rest[lead:]
    if not rest:
        return None
    quote = rest[0]
    if quote in "\"'":
        close = rest.find(quote, 1)
        if close > 1:
            return rest[1:close].strip().rstrip(",."), offset + lead, offset + lead + close + 1
    spans = split_segments(rest)
    if not spans:
        return None
    start, end = spans[0]
    title = rest[start:end].strip()
    if not title:
        return None
    return title, offset + lead + start, offset + lead + end + 1


def find_venue(remainder: str) -> Optional[Tuple[str, int]]:
    """Return the journal or venue at the start of ``remainder`` and where it ends."""
    lead = len(remainder) - len(remainder.lstrip(" .,;:"))
    text = remainder[lead:]
    prefix = re.match(r'(?:In:?|in)\s+', text)
    if prefix:
        lead += prefix.end()
        text = text[prefix.end():]
    end = len(text)
    for match in re.finditer(r'[,;(\[]|\.(?=\s|$)|(?<!\w)(?:19|20)\d{2}\b', text):
        if match.group(0) == ".":
            word = _LAST_WORD.search(text[max(0, match.start() - 12):match.start()])
            follower = text[match.end():match.end() + 2].strip()
            if word and _ABBREVIATION.match(word.group(1)) and follower and not follower[0].isdigit():
                continue
        end = match.start()
        break
    venue = text[:end].strip(" .,:")
    if len(venue) < 2 or not re.search(r'[A-Za-z]{2}', venue) or len(venue) > 200:
        return None
    if re.match(r'^(?:pp?|vol|no)\b', venue, re.IGNORECASE):
        return None
    return venue, lead + end


def is_initials(token: str) -> bool:
    return bool(_INITIALS.match(token.strip()))


def _clean_author(name: str) -> Optional[str]:
    name = re.sub(r'\((?:eds?|Ed|Eds)\.?\)', "", name).strip(" ,;:")
    name = re.sub(r'^(?:Dr|Mr|Ms|Mrs|Prof)\.\s*', "", name)
    if len(name) < 2 or len(name) > 80 or re.search(r'\d', name):
        return None
    if _NOT_A_NAME.match(name) or not name[0].isupper():
        return None
    return name


def parse_authors(text: str, author_format: str = "surname-first",
                  given_names: bool = False) -> Tuple[str, ...]:
    """Split an author span into individual names.

    ``surname-first``: "Bahdanau, D., Cho, K., & Bengio, Y."
    ``initials-first``: "Y. LeCun, Y. Bengio, and G. Hinton"
    ``surname-initials``: "LeCun Y, Bengio Y, Hinton G"
    """
    if not text:
        return ()
    cleaned = re.sub(r'\s*(?:\.\.\.|…)\s*', ", ", text)
    cleaned = re.sub(r'\bet\s+al\b\.?', "", cleaned)
    cleaned = re.sub(r'\s*&\s*|\s+and\s+', ", ", cleaned)
    tokens = [t.strip() for t in re.split(r'[,;]', cleaned) if t.strip(" .")]

    authors = []
    if author_format == "surname-first":
        i = 0
        while i < len(tokens):
            token = tokens[i]
            following = tokens[i + 1] if i + 1 < len(tokens) else None
            if following and (is_initials(following) or
                              (given_names and i == 0 and _GIVEN_NAME.match(following))):
                authors.append(f"{token}, {following}")
                i += 2
            else:
                authors.append(token)
                i += 1
    else:
        authors = tokens

    return tuple(a for a in (_clean_author(a) for a in authors) if a)


def author_surname(name: str) -> str:
    """Return the family name from any of the supported author formats."""
    name = name.strip()
    if "," in name:
        return name.split(",")[0].strip()
    words = name.replace(".", ". ").split()
    if not words:
        return ""
    if len(words) == 1:
        return words[0]
    if is_initials(words[-1]) and not is_initials(words[0]):
        return words[0]
    return words[-1]


def normalize_key_token(surname: str) -> str:
    return re.sub(r"[^\w'-]", "", surname.lower())


def make_author_date_key(surnames: Sequence[str], year: Optional[int], suffix: str = "") -> str:
    """Build the key shared by author-date citations and bibliography entries.

    One or two surnames are kept; three or more collapse to the first, which is
    what an "et al." citation names.
    """
    tokens = [t for t in (normalize_key_token(s) for s in surnames) if t]
    if len(tokens) > 2:
        tokens = tokens[:1]
    if not tokens:
        tokens = ["unknown"]
    year_part = str(year) if year else "nd"
    return f"{'_'.join(tokens)}_{year_part}{suffix}"
