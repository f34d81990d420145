"""
Interface to the external support scorer.

The pipeline only prepares ``ScoringRequest`` objects; scoring itself is done
by an implementation of ``SupportScorer`` supplied by the caller.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from .models import ScoringRequest, SupportScore

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10
DEFAULT_SCORE = 5


class SupportScorer(ABC):
    """Abstract base class for scorers of citation support."""

    @abstractmethod
    def score(
        self,
        raw_citation_text: str,
        context_before: Optional[str],
        context_after: Optional[str],
        source_abstract: Optional[str]
    ) -> SupportScore:
        """Rate how well the cited source supports the surrounding text (1-10)."""
        pass

    def score_request(self, request: ScoringRequest,
                      source_abstract: Optional[str] = None) -> SupportScore:
        return self.score(
            request.raw_citation_text,
            request.context_before,
            request.context_after,
            source_abstract,
        )


def _clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def parse_score_response(content: str) -> SupportScore:
    """Parse a scorer reply, JSON or ``SCORE:``/``JUSTIFICATION:`` lines."""
    content = (content or "").strip()
    match = re.search(r'\{.*\}', content, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(0))
            score = int(round(float(data.get('score', DEFAULT_SCORE))))
            justification = str(data.get('justification') or data.get('explanation') or "")
            return SupportScore(score=_clamp(score), justification=justification)
        except (ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Could not parse JSON score response: {e}")

    score = DEFAULT_SCORE
    justification = "Unable to parse response"
    for line in content.split('\n'):
        if line.upper().startswith('SCORE:'):
            try:
                score = _clamp(int(line.split(':', 1)[1].strip().split('/')[0]))
            except ValueError:
                pass
        elif line.upper().startswith('JUSTIFICATION:'):
            justification = line.split(':', 1)[1].strip()
    return SupportScore(score=score, justification=justification)
