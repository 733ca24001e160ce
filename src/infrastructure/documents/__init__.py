"""
Document output.

Persists generated documents as markdown, JSON or Excel files.
"""

from .writer import FileDocumentWriter, build_workbook

__all__ = ["FileDocumentWriter", "build_workbook"]
