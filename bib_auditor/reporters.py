"""
Report generators for audit results.
"""

import json
from datetime import datetime
from typing import Any, Dict, List

from . import __version__
from .models import AuditResult, BibliographyEntry, NoteCitation, NumericCitation, ParsedCitation


def _citation_keys(citation: ParsedCitation) -> List[str]:
    if isinstance(citation, NumericCitation):
        return [str(n) for n in citation.numbers]
    if isinstance(citation, NoteCitation):
        return [str(citation.number)]
    return [citation.citation_id]


def unlinked_citations(result: AuditResult) -> List[ParsedCitation]:
    """In-text citations with at least one key that found no entry."""
    mapping = result.document.citation_to_bib_mapping
    return [
        c for c in result.document.in_text_citations
        if any(key not in mapping for key in _citation_keys(c))
    ]


def uncited_entries(result: AuditResult) -> List[BibliographyEntry]:
    cited = set(result.document.citation_to_bib_mapping.values())
    return [e for e in result.document.bibliography if e.entry_id not in cited]


class MarkdownReporter:
    """Generate Markdown reports."""

    def generate_report(self, result: AuditResult) -> str:
        document = result.document
        md_lines = []

        # Header
        md_lines.append("# Bibliography Audit Report")
        md_lines.append("")
        md_lines.append(f"**Generated**: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        if result.source_name:
            md_lines.append(f"**Document**: {result.source_name}")
        md_lines.append("")

        # Summary
        md_lines.append("## Summary")
        md_lines.append("")
        md_lines.append(f"- **Citation Style**: {document.style.value} "
                        f"(confidence {document.style_confidence:.2f})")
        md_lines.append(f"- **In-text Citations**: {len(document.in_text_citations)}")
        md_lines.append(f"- **Bibliography Entries**: {len(document.bibliography)}")
        md_lines.append(f"- **Linked Citations**: {len(document.citation_to_bib_mapping)}")
        md_lines.append(f"- **Unlinked Citations**: {len(unlinked_citations(result))}")
        md_lines.append(f"- **Uncited Entries**: {len(uncited_entries(result))}")
        if document.degraded:
            md_lines.append("- **Degraded**: yes, the parse did not finish in time")
        md_lines.append("")

        if document.warnings:
            md_lines.append("## Warnings")
            md_lines.append("")
            for warning in document.warnings:
                md_lines.append(f"- {warning}")
            md_lines.append("")

        if result.duplicate_entries:
            md_lines.append("## Possible Duplicate Entries")
            md_lines.append("")
            for first, second in result.duplicate_entries:
                md_lines.append(f"- `{first}` and `{second}`")
            md_lines.append("")

        # Entries
        md_lines.append("## Bibliography")
        md_lines.append("")
        for entry in document.bibliography:
            md_lines.extend(self._format_entry(entry, result))
            md_lines.append("")

        return "\n".join(md_lines)

    def _format_entry(self, entry: BibliographyEntry, result: AuditResult) -> List[str]:
        lines = []
        lines.append(f"### [{entry.entry_id}] {entry.title or 'Unknown Title'}")
        lines.append("")
        lines.append(f"> {entry.raw_text}")
        lines.append("")

        if entry.authors:
            lines.append(f"**Authors**: {', '.join(entry.authors[:3])}"
                         f"{' et al.' if len(entry.authors) > 3 else ''}")
        if entry.year:
            lines.append(f"**Year**: {entry.year}")
        if entry.journal:
            lines.append(f"**Journal**: {entry.journal}")
        if entry.pages:
            lines.append(f"**Pages**: {entry.pages}")
        if entry.doi:
            lines.append(f"**DOI**: {entry.doi}")
        lines.append(f"**Confidence**: {entry.confidence:.2f}")

        context = result.context_for(entry.entry_id)
        if context and (context.before or context.after):
            label = "Context" if context.anchored else "Context (approximate)"
            snippet = f"...{context.before or ''} [{entry.entry_id}] {context.after or ''}..."
            lines.append(f"**{label}**: {snippet}")
        return lines


class JSONReporter:
    """Generate JSON reports."""

    def generate_report(self, result: AuditResult) -> str:
        document = result.document
        report_dict = {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "tool_version": __version__,
                "source": result.source_name,
            },
            "summary": {
                "style": document.style.value,
                "style_confidence": round(document.style_confidence, 3),
                "in_text_citations": len(document.in_text_citations),
                "bibliography_entries": len(document.bibliography),
                "linked_citations": len(document.citation_to_bib_mapping),
                "unlinked_citations": len(unlinked_citations(result)),
                "uncited_entries": [e.entry_id for e in uncited_entries(result)],
                "degraded": document.degraded,
                "warnings": list(document.warnings),
            },
            "document": self._document_to_dict(result),
            "records": result.to_records(),
            "duplicates": [list(pair) for pair in result.duplicate_entries],
        }
        return json.dumps(report_dict, indent=2, ensure_ascii=False)

    def _document_to_dict(self, result: AuditResult) -> Dict[str, Any]:
        document_dict = result.document.to_dict()
        document_dict["contexts"] = [c.to_dict() for c in result.contexts]
        return document_dict


def generate_report(result: AuditResult, format_type: str = "markdown") -> str:
    """Generate a report in the specified format."""
    if format_type.lower() == "json":
        reporter = JSONReporter()
    else:
        reporter = MarkdownReporter()

    return reporter.generate_report(result)
