"""
Exceptions raised at the edges of the auditor.

The parsing pipeline itself never raises for document content; these are for
callers that need to reject a request outright.
"""


class BibAuditorError(Exception):
    """Base class for bib-auditor errors."""


class EmptyDocumentError(BibAuditorError):
    """Raised when the caller requires text and the input has none."""


class ConfigurationError(BibAuditorError):
    """Raised when a configuration value cannot be interpreted."""

    def __init__(self, key: str, value, reason: str = "invalid value"):
        self.key = key
        self.value = value
        super().__init__(f"{key}={value!r}: {reason}")


class ParseTimeoutError(BibAuditorError):
    """Raised inside the pipeline when a parse exceeds its time budget.

    ``parse_document`` catches it and returns a degraded document instead.
    """
