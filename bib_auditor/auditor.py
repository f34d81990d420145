"""
Main entry points that run the extraction and linking pipeline.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fuzzywuzzy import fuzz
from tqdm import tqdm

from .bibliography import BibliographyParser
from .citations import InTextCitationParser
from .config import DEFAULT_MAX_CHARS, DEFAULT_TIMEOUT, AuditorSettings
from .context import ContextExtractor
from .exceptions import EmptyDocumentError, ParseTimeoutError
from .fields import author_surname, normalize_key_token
from .linker import link_citations
from .models import AuditResult, BibliographyEntry, CitationStyle, ParsedDocument
from .normalizer import normalize_text
from .sections import SectionSplitter
from .styles import StyleDetector

logger = logging.getLogger(__name__)

DUPLICATE_TITLE_RATIO = 90

WARNING_EMPTY_INPUT = "empty input"
WARNING_NO_HEADING = "no bibliography heading found; used the last 20% of the document"
WARNING_TIMEOUT = "parse timed out"
WARNING_NOTE_PRECISION = "note-style markers are low precision and may include ordinary numerals"
WARNING_UNKNOWN_STYLE = "citation style not recognized; used generic parsing"


class Deadline:
    """Cooperative wall-clock budget checked between pipeline steps."""

    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds if seconds else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self):
        if self.expired:
            raise ParseTimeoutError(f"parse exceeded {self.seconds}s")


def _degraded_document(warnings: List[str]) -> ParsedDocument:
    return ParsedDocument(
        style=CitationStyle.UNKNOWN,
        style_confidence=0.0,
        body_text="",
        references_text="",
        degraded=True,
        warnings=tuple(warnings + [WARNING_TIMEOUT]),
    )


def parse_document(text: str, max_chars: int = DEFAULT_MAX_CHARS,
                   timeout: Optional[float] = DEFAULT_TIMEOUT) -> ParsedDocument:
    """
    Run the full pipeline over one document's extracted text.

    Never raises for document content. Empty input yields an ``Unknown``
    document with no citations; exceeding ``timeout`` yields a degraded one.

    Args:
        text: Extracted document text
        max_chars: Input longer than this is truncated before parsing
        timeout: Wall-clock budget in seconds; 0 or None disables it
    """
    if not isinstance(text, str) or not text.strip():
        return ParsedDocument(
            style=CitationStyle.UNKNOWN,
            style_confidence=0.0,
            body_text="",
            references_text="",
            warnings=(WARNING_EMPTY_INPUT,),
        )

    warnings: List[str] = []
    deadline = Deadline(timeout)

    if len(text) > max_chars:
        logger.warning(f"Input of {len(text)} characters truncated to {max_chars}")
        warnings.append(f"input truncated to {max_chars} characters")
        text = text[:max_chars]

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bib-auditor-parse")
    future = executor.submit(_run_pipeline, text, deadline, warnings)
    try:
        return future.result(timeout=timeout or None)
    except ParseTimeoutError as e:
        logger.warning(f"Degraded result: {e}")
    except FuturesTimeoutError:
        logger.warning(f"Degraded result: parse exceeded {timeout}s")
    finally:
        # An abandoned worker stops at its next deadline check.
        executor.shutdown(wait=False)
    return _degraded_document(list(warnings))


def _run_pipeline(text: str, deadline: Deadline, warnings: List[str]) -> ParsedDocument:
    # Step 1: Normalize and split
    normalized = normalize_text(text)
    split = SectionSplitter().split(normalized)
    if split.used_fallback:
        warnings.append(WARNING_NO_HEADING)
    deadline.check()

    # Step 2: Detect the citation style
    detection = StyleDetector().detect(split.body_text, split.references_text)
    logger.info(f"Detected style {detection.style.value} (confidence {detection.confidence:.2f})")
    if detection.style is CitationStyle.UNKNOWN:
        warnings.append(WARNING_UNKNOWN_STYLE)
    elif detection.style.family == "note":
        warnings.append(WARNING_NOTE_PRECISION)
    deadline.check()

    # Step 3: Parse the bibliography, then the in-text citations
    bibliography = BibliographyParser().parse(
        split.references_text, detection.style, deadline=deadline
    )
    deadline.check()
    known_surnames = {
        normalize_key_token(author_surname(entry.authors[0]))
        for entry in bibliography if entry.authors
    }
    citations = InTextCitationParser().parse(split.body_text, detection.style, known_surnames)
    deadline.check()

    # Step 4: Link
    mapping = link_citations(citations, bibliography)

    logger.info(
        f"Found {len(citations)} in-text citations, {len(bibliography)} bibliography entries, "
        f"{len(mapping)} links"
    )
    return ParsedDocument(
        style=detection.style,
        style_confidence=detection.confidence,
        body_text=split.body_text,
        references_text=split.references_text,
        in_text_citations=citations,
        bibliography=bibliography,
        citation_to_bib_mapping=mapping,
        warnings=tuple(warnings),
    )


def find_duplicate_entries(entries: Sequence[BibliographyEntry]) -> List[Tuple[str, str]]:
    """Pairs of entry ids that share a DOI or have near-identical titles."""
    duplicates = []
    for i, first in enumerate(entries):
        for second in entries[i + 1:]:
            if first.doi and second.doi and first.doi.lower() == second.doi.lower():
                duplicates.append((first.entry_id, second.entry_id))
            elif first.title and second.title and min(len(first.title), len(second.title)) >= 10:
                if fuzz.token_sort_ratio(first.title, second.title) >= DUPLICATE_TITLE_RATIO:
                    duplicates.append((first.entry_id, second.entry_id))
    return duplicates


class BibliographyAuditor:
    """Parse documents and attach per-entry citation contexts."""

    def __init__(self, settings: Optional[AuditorSettings] = None):
        self.settings = settings or AuditorSettings()

    def audit(self, text: str, require_text: bool = False,
              source_name: Optional[str] = None) -> AuditResult:
        """
        Parse one document and collect the context around each entry's citation.

        Raises:
            EmptyDocumentError: if ``require_text`` is set and there is no text.
        """
        if require_text and (not isinstance(text, str) or not text.strip()):
            raise EmptyDocumentError(f"No text to audit in {source_name or 'input'}")

        document = parse_document(text, self.settings.max_chars, self.settings.timeout)

        contexts = ()
        if document.bibliography:
            full_text = document.body_text + "\n" + document.references_text
            extractor = ContextExtractor(
                full_text,
                anchor_limit=len(document.body_text),
                citations=document.in_text_citations,
                mapping=document.citation_to_bib_mapping,
            )
            contexts = tuple(extractor.extract_all(
                document.bibliography,
                before=self.settings.context_before_words,
                after=self.settings.context_after_words,
            ))
            anchored = sum(1 for c in contexts if c.anchored)
            logger.info(f"Anchored contexts for {anchored} of {len(contexts)} entries")

        return AuditResult(
            document=document,
            contexts=contexts,
            duplicate_entries=tuple(find_duplicate_entries(document.bibliography)),
            source_name=source_name,
        )

    def audit_file(self, path: str, require_text: bool = True) -> AuditResult:
        """Audit a UTF-8 text file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Text file not found: {file_path}")
        text = file_path.read_text(encoding='utf-8', errors='replace')
        logger.info(f"Read {len(text)} characters from {file_path}")
        return self.audit(text, require_text=require_text, source_name=file_path.name)

    def audit_many(self, paths: Sequence[str]) -> Dict[str, Any]:
        """Audit several files in parallel; failures are collected, not raised."""
        batch_stats: Dict[str, Any] = {
            'total_files': len(paths),
            'processed_files': 0,
            'failed_files': 0,
            'total_references': 0,
            'processing_errors': [],
            'results': [],
        }
        if not paths:
            return batch_stats

        outcomes: Dict[int, Tuple[Optional[AuditResult], Optional[str]]] = {}
        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            futures = {executor.submit(self.audit_file, path): i for i, path in enumerate(paths)}
            for future in tqdm(as_completed(futures), total=len(futures), desc="Parsing documents"):
                index = futures[future]
                try:
                    outcomes[index] = (future.result(), None)
                except (OSError, EmptyDocumentError) as e:
                    logger.error(f"Error processing {paths[index]}: {e}")
                    outcomes[index] = (None, str(e))

        for index, path in enumerate(paths):
            result, error = outcomes[index]
            name = Path(path).name
            if error is None:
                batch_stats['processed_files'] += 1
                batch_stats['total_references'] += len(result.document.bibliography)
                batch_stats['results'].append({'filename': name, 'result': result})
            else:
                batch_stats['failed_files'] += 1
                batch_stats['processing_errors'].append({'file': name, 'error': error})

        logger.info(
            f"Batch complete: {batch_stats['processed_files']} processed, "
            f"{batch_stats['failed_files']} failed"
        )
        return batch_stats
