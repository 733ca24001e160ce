"""
Document assembly.

Maps validated analysis data into a format-independent ProcessDocument and
renders it as markdown.
"""

from .builder import (
    PreparedDocument,
    build_document,
    generate_file_name,
    get_template,
    list_templates,
    prepare_document,
)
from .markdown import group_test_cases, render_markdown
from .models import (
    DocumentMetadata,
    DocumentStatus,
    DocumentTemplate,
    DocumentType,
    OutputFormat,
    ProcessDocument,
    TemplateType,
)

__all__ = [
    "PreparedDocument",
    "build_document",
    "generate_file_name",
    "get_template",
    "list_templates",
    "prepare_document",
    "group_test_cases",
    "render_markdown",
    "DocumentMetadata",
    "DocumentStatus",
    "DocumentTemplate",
    "DocumentType",
    "OutputFormat",
    "ProcessDocument",
    "TemplateType",
]
