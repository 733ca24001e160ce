"""
Document models.

A ProcessDocument is the format-independent description of one
functional analysis. Renderers (markdown, JSON, Excel) consume it; none of
them add facts of their own.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..analysis.models import Level, RPAAction, TestCase


class DocumentType(Enum):
    FUNCTIONAL_ANALYSIS = "FUNCTIONAL_ANALYSIS"
    TECHNICAL_SPECIFICATION = "TECHNICAL_SPECIFICATION"
    USER_MANUAL = "USER_MANUAL"


class DocumentStatus(Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    ARCHIVED = "ARCHIVED"


class OutputFormat(Enum):
    """Formats the document writer can produce, with their file extensions."""
    MARKDOWN = "markdown"
    JSON = "json"
    EXCEL = "excel"

    @property
    def extension(self) -> str:
        return {
            OutputFormat.MARKDOWN: "md",
            OutputFormat.JSON: "json",
            OutputFormat.EXCEL: "xlsx",
        }[self]


class TemplateType(Enum):
    STANDARD = "standard"
    DETAILED = "detailed"
    MINIMAL = "minimal"


@dataclass(frozen=True)
class DocumentSection:
    id: str
    title: str
    order: int
    required: bool


@dataclass(frozen=True)
class DocumentTemplate:
    id: str
    name: str
    description: str
    type: TemplateType
    sections: tuple[DocumentSection, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "sections": [
                {
                    "id": section.id,
                    "title": section.title,
                    "order": section.order,
                    "required": section.required,
                }
                for section in self.sections
            ],
        }


@dataclass(frozen=True)
class DocumentMetadata:
    process_name: str
    author: str
    version: str
    created_at: datetime
    updated_at: datetime
    document_type: DocumentType = DocumentType.FUNCTIONAL_ANALYSIS
    status: DocumentStatus = DocumentStatus.DRAFT

    def to_dict(self) -> dict[str, Any]:
        return {
            "processName": self.process_name,
            "author": self.author,
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "documentType": self.document_type.value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ProcessDocument:
    """
    Everything a renderer needs to produce the functional analysis.

    Built fresh per generation request and never mutated afterwards.
    """
    metadata: DocumentMetadata
    summary: str
    rpa_actions: tuple[RPAAction, ...]
    test_cases: tuple[TestCase, ...]
    recommendations: tuple[str, ...]
    complexity: Level
    estimated_development_time: str
    risk_assessment: str
    confidence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "summary": self.summary,
            "rpaActions": [action.to_dict() for action in self.rpa_actions],
            "testCases": [test_case.to_dict() for test_case in self.test_cases],
            "recommendations": list(self.recommendations),
            "complexity": self.complexity.value,
            "estimatedDevelopmentTime": self.estimated_development_time,
            "riskAssessment": self.risk_assessment,
            "confidence": self.confidence,
        }
