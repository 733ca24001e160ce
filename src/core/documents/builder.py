"""
Mapping of validated analysis data into a ProcessDocument.

Everything here is deterministic given its inputs: the current time and
the file name suffix are passed in (defaulting to now and a random id)
so that file names and metadata can be pinned in tests.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from ..analysis.models import AnalysisResult, Level
from .markdown import render_markdown
from .models import (
    DocumentMetadata,
    DocumentSection,
    DocumentStatus,
    DocumentTemplate,
    DocumentType,
    OutputFormat,
    ProcessDocument,
    TemplateType,
)

DEFAULT_AUTHOR = "Automated RPA Analysis System"
DEFAULT_VERSION = "1.0"
FILE_NAME_PREFIX = "functional_analysis"

_DEVELOPMENT_TIME_BY_COMPLEXITY = {
    Level.LOW: "1-2 days",
    Level.MEDIUM: "3-5 days",
    Level.HIGH: "1-2 weeks",
}


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_STANDARD_SECTIONS = (
    DocumentSection("general_info", "General Information", 1, True),
    DocumentSection("executive_summary", "Executive Summary", 2, True),
    DocumentSection("rpa_actions", "Identified RPA Actions", 3, True),
    DocumentSection("test_cases", "Test Cases", 4, True),
    DocumentSection("recommendations", "Recommendations", 5, False),
    DocumentSection("appendix", "Appendix", 6, False),
)

TEMPLATES: dict[TemplateType, DocumentTemplate] = {
    TemplateType.STANDARD: DocumentTemplate(
        id="standard",
        name="Standard RPA Analysis",
        description="Standard functional analysis for an RPA process",
        type=TemplateType.STANDARD,
        sections=_STANDARD_SECTIONS,
    ),
    TemplateType.DETAILED: DocumentTemplate(
        id="detailed",
        name="Detailed RPA Analysis",
        description="Standard analysis plus error handling, validation and test data details",
        type=TemplateType.DETAILED,
        sections=_STANDARD_SECTIONS,
    ),
    TemplateType.MINIMAL: DocumentTemplate(
        id="minimal",
        name="Minimal RPA Analysis",
        description="Actions and test cases without boilerplate guidance",
        type=TemplateType.MINIMAL,
        sections=_STANDARD_SECTIONS,
    ),
}


def list_templates() -> list[DocumentTemplate]:
    return list(TEMPLATES.values())


def get_template(template_id: str) -> Optional[DocumentTemplate]:
    try:
        return TEMPLATES[TemplateType(template_id)]
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_document(
    process_name: str,
    analysis: AnalysisResult,
    author: Optional[str] = None,
    version: Optional[str] = None,
    document_type: DocumentType = DocumentType.FUNCTIONAL_ANALYSIS,
    now: Optional[datetime] = None,
) -> ProcessDocument:
    """Build the document model for one analysis. Status always starts at DRAFT."""
    if not process_name or not process_name.strip():
        raise ValueError("process_name is required")

    timestamp = now or datetime.now(timezone.utc)
    complexity = estimate_complexity(analysis)

    return ProcessDocument(
        metadata=DocumentMetadata(
            process_name=process_name,
            author=author or DEFAULT_AUTHOR,
            version=version or DEFAULT_VERSION,
            created_at=timestamp,
            updated_at=timestamp,
            document_type=document_type,
            status=DocumentStatus.DRAFT,
        ),
        summary=analysis.summary,
        rpa_actions=analysis.rpa_actions,
        test_cases=analysis.test_cases,
        recommendations=analysis.recommendations,
        complexity=complexity,
        estimated_development_time=_development_time(analysis, complexity),
        risk_assessment=assess_risk(analysis),
        confidence=analysis.confidence,
    )


def estimate_complexity(analysis: AnalysisResult) -> Level:
    """The model's own estimate when given, otherwise sized by action count."""
    notes = analysis.technical_notes
    if notes is not None and notes.complexity is not None:
        return notes.complexity

    action_count = len(analysis.rpa_actions)
    if action_count <= 5:
        return Level.LOW
    if action_count <= 15:
        return Level.MEDIUM
    return Level.HIGH


def assess_risk(analysis: AnalysisResult) -> str:
    notes = analysis.technical_notes
    if notes is not None and notes.risk_factors:
        return "Identified risk factors: " + "; ".join(notes.risk_factors)

    if analysis.confidence >= 80:
        return "Low risk: the recorded process was identified with high confidence."
    if analysis.confidence >= 50:
        return (
            f"Medium risk: analysis confidence is {analysis.confidence}%. "
            "Review the identified actions before development."
        )
    return (
        f"High risk: analysis confidence is {analysis.confidence}%. "
        "Manual review of the process is required."
    )


def _development_time(analysis: AnalysisResult, complexity: Level) -> str:
    notes = analysis.technical_notes
    if notes is not None and notes.estimated_development_time:
        return notes.estimated_development_time
    return _DEVELOPMENT_TIME_BY_COMPLEXITY[complexity]


def generate_file_name(
    process_name: str,
    output_format: OutputFormat,
    now: Optional[datetime] = None,
    suffix: Optional[str] = None,
) -> str:
    """
    Filesystem-safe output name.

    "Invoice Entry (SAP)!" at 2026-10-18 09:30:00 in markdown becomes
    functional_analysis_invoice_entry_sap_20261018T093000_<suffix>.md

    The suffix defaults to eight random hex characters, so two documents
    generated for the same process in the same second never share a path.
    """
    sanitized = re.sub(r"[^a-zA-Z0-9\s-]", "", process_name)
    sanitized = re.sub(r"\s+", "_", sanitized.strip()).lower()

    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S")

    parts = [FILE_NAME_PREFIX]
    if sanitized:
        parts.append(sanitized)
    parts.append(timestamp)
    parts.append(suffix or uuid4().hex[:8])
    return "_".join(parts) + f".{output_format.extension}"


@dataclass(frozen=True)
class PreparedDocument:
    """A built document plus what a writer needs to persist it."""
    document: ProcessDocument
    file_name: str
    output_format: OutputFormat
    template_type: TemplateType
    markdown: Optional[str] = None


def prepare_document(
    process_name: str,
    analysis: AnalysisResult,
    output_format: OutputFormat = OutputFormat.MARKDOWN,
    template_type: TemplateType = TemplateType.STANDARD,
    author: Optional[str] = None,
    version: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PreparedDocument:
    """Build the document and, for markdown output, render it."""
    timestamp = now or datetime.now(timezone.utc)
    document = build_document(
        process_name,
        analysis,
        author=author,
        version=version,
        now=timestamp,
    )

    markdown = None
    if output_format is OutputFormat.MARKDOWN:
        markdown = render_markdown(document, template_type)

    return PreparedDocument(
        document=document,
        file_name=generate_file_name(process_name, output_format, timestamp),
        output_format=output_format,
        template_type=template_type,
        markdown=markdown,
    )
