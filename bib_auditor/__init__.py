"""
Bibliography Auditor

Extracts in-text citations and bibliography entries from document text,
detects the citation style, links citations to entries and collects the
context around each citation for downstream support scoring.
"""

__version__ = "1.0.0"
__author__ = "Bib Auditor"

from .auditor import BibliographyAuditor, parse_document
from .exceptions import BibAuditorError, ConfigurationError, EmptyDocumentError
from .models import (
    AuditResult, AuthorDateCitation, BibliographyEntry, CitationContext, CitationStyle,
    NoteCitation, NumericCitation, ParsedDocument, ScoringRequest, SupportScore
)
from .reporters import generate_report
from .scoring import SupportScorer, parse_score_response

__all__ = [
    'BibliographyAuditor',
    'parse_document',
    'BibAuditorError',
    'ConfigurationError',
    'EmptyDocumentError',
    'AuditResult',
    'AuthorDateCitation',
    'BibliographyEntry',
    'CitationContext',
    'CitationStyle',
    'NoteCitation',
    'NumericCitation',
    'ParsedDocument',
    'ScoringRequest',
    'SupportScore',
    'generate_report',
    'SupportScorer',
    'parse_score_response'
]
