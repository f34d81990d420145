"""
Citation style detection.

Nine independent counters run over the body text; strong structural signals in
the references span boost their counts. The style with the highest adjusted
count wins unless a runner-up is close enough to call the document mixed.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from .models import CitationStyle

logger = logging.getLogger(__name__)

# Runner-up / winner ratio above which the document is reported as Mixed.
MIXED_RATIO = 0.4
MIXED_CONFIDENCE = 0.5
DOMINANT_CONFIDENCE = 0.9

_NAME = r"[A-Z][\w'-]+"


@dataclass(frozen=True)
class StyleSignature:
    """A compiled body-text counter for one style."""
    style: CitationStyle
    pattern: "re.Pattern"

    def count(self, text: str) -> int:
        return sum(1 for _ in self.pattern.finditer(text))


@dataclass(frozen=True)
class ReferenceSignal:
    """A references-span pattern that adds weight to one or more styles."""
    pattern: "re.Pattern"
    boosts: Tuple[Tuple[CitationStyle, int], ...]


@dataclass(frozen=True)
class StyleDetection:
    style: CitationStyle
    confidence: float
    counts: Mapping[CitationStyle, int] = field(default_factory=lambda: MappingProxyType({}))


def _signatures() -> Tuple[StyleSignature, ...]:
    return (
        StyleSignature(CitationStyle.IEEE, re.compile(
            r'\[\d+(?:\s*[-,]\s*\d+)*\]')),
        StyleSignature(CitationStyle.VANCOUVER, re.compile(
            r'\(\d{1,3}(?:\s*-\s*\d{1,3})?(?:\s*,\s*\d{1,3}(?:\s*-\s*\d{1,3})?)*\)')),
        StyleSignature(CitationStyle.NATURE, re.compile(
            r'(?<=[a-z)])\d{1,3}(?:,\d{1,3})*(?=[\s,.;:])')),
        StyleSignature(CitationStyle.APA, re.compile(
            r'\(' + _NAME + r'(?:,?\s+(?:&|and)\s+' + _NAME + r'|\s+et al\.?|,\s+' + _NAME + r')*'
            r',\s*\d{4}[a-z]?(?:,\s*pp?\.\s*[\d-]+)?(?:;[^()]{0,400})?\)')),
        StyleSignature(CitationStyle.HARVARD, re.compile(
            r'\(' + _NAME + r'(?:\s+(?:&|and)\s+' + _NAME + r'|\s+et al\.?)*'
            r'\s+\d{4}[a-z]?(?:;[^()]{0,400})?\)')),
        StyleSignature(CitationStyle.CHICAGO_AUTHOR_DATE, re.compile(
            r'\(' + _NAME + r'(?:\s+(?:and|&)\s+' + _NAME + r'|\s+et al\.?)?'
            r'\s+\d{4}[a-z]?,\s*[\d-]+\)')),
        StyleSignature(CitationStyle.CHICAGO_NOTES, re.compile(
            r'(?<=[A-Za-z][.,;:!?"\'])\d{1,3}(?=\s|$)', re.MULTILINE)),
        StyleSignature(CitationStyle.MLA, re.compile(
            r'\(' + _NAME + r'(?:\s+(?:and|&)\s+' + _NAME + r')?'
            r'\s+(?!(?:19|20)\d{2}\b)\d{1,4}(?:-\d{1,4})?\)')),
        StyleSignature(CitationStyle.BIBTEX_KEY, re.compile(
            r'\\cite[pt]?\*?(?:\[[^\]]*\])*\{[^}]+\}')),
    )


def _reference_signals() -> Tuple[ReferenceSignal, ...]:
    return (
        ReferenceSignal(
            re.compile(r'\\bibitem|\\begin\{thebibliography\}|^\s*@\w+\s*\{', re.MULTILINE),
            ((CitationStyle.BIBTEX_KEY, 50),)),
        ReferenceSignal(
            re.compile(r'^\s*\[\d+\]', re.MULTILINE),
            ((CitationStyle.IEEE, 20),)),
        ReferenceSignal(
            re.compile(r'^\s*\d+\.\s+', re.MULTILINE),
            ((CitationStyle.VANCOUVER, 20), (CitationStyle.NATURE, 15))),
        ReferenceSignal(
            re.compile(r'^' + _NAME + r',\s+[A-Z]\.[^\n(]{0,200}\((?:19|20)\d{2}[a-z]?\)', re.MULTILINE),
            ((CitationStyle.APA, 10),)),
        ReferenceSignal(
            re.compile(r'^' + _NAME + r',\s+[A-Z][a-z]+[^\n"]{0,200}?\.\s+(?:19|20)\d{2}[a-z]?\.', re.MULTILINE),
            ((CitationStyle.CHICAGO_AUTHOR_DATE, 10),)),
        ReferenceSignal(
            re.compile(r'^' + _NAME + r',\s+[A-Z][a-z]+[^\n"]{0,80}\.\s+"', re.MULTILINE),
            ((CitationStyle.MLA, 10),)),
    )


class StyleDetector:
    """Score body and references text against the nine style signatures."""

    def __init__(self):
        self.signatures = _signatures()
        self.reference_signals = _reference_signals()
        self.dominant_openers = (
            (re.compile(r'\s*\[1\]'), CitationStyle.IEEE),
            (re.compile(r'\s*\\begin\{thebibliography\}|\s*\\bibitem'), CitationStyle.BIBTEX_KEY),
        )

    def count(self, body_text: str, references_text: str) -> Dict[CitationStyle, int]:
        """Return the adjusted match count per style."""
        counts = {sig.style: sig.count(body_text or "") for sig in self.signatures}
        for signal in self.reference_signals:
            if signal.pattern.search(references_text or ""):
                for style, boost in signal.boosts:
                    counts[style] += boost
        return counts

    def detect(self, body_text: str, references_text: str) -> StyleDetection:
        """Return the best style and its confidence. Never raises."""
        counts = self.count(body_text, references_text)
        frozen_counts = MappingProxyType(dict(counts))
        total = sum(counts.values())

        dominant = self._dominant_style(references_text)
        if dominant is not None:
            confidence = max(counts[dominant] / (total + 1), DOMINANT_CONFIDENCE)
            logger.debug(f"References open with a {dominant.value} label; confidence {confidence:.2f}")
            return StyleDetection(dominant, confidence, frozen_counts)

        if total == 0:
            return StyleDetection(CitationStyle.UNKNOWN, 0.0, frozen_counts)

        # Stable sort keeps signature order as the tie-breaker.
        ranked = sorted(
            (item for item in counts.items() if item[1] > 0),
            key=lambda item: item[1], reverse=True,
        )
        top_style, top_count = ranked[0]
        if len(ranked) > 1 and ranked[1][1] / top_count > MIXED_RATIO:
            logger.debug(
                f"Mixed styles: {top_style.value}={top_count}, {ranked[1][0].value}={ranked[1][1]}"
            )
            return StyleDetection(CitationStyle.MIXED, MIXED_CONFIDENCE, frozen_counts)

        return StyleDetection(top_style, top_count / (total + 1), frozen_counts)

    def _dominant_style(self, references_text: str):
        for pattern, style in self.dominant_openers:
            if pattern.match(references_text or ""):
                return style
        return None


def detect_style(body_text: str, references_text: str) -> StyleDetection:
    return StyleDetector().detect(body_text, references_text)
