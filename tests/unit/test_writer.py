"""
Unit tests for the file document writer.
"""

import asyncio
import json
import re
from datetime import datetime, timezone

import pytest
from openpyxl import load_workbook
from openpyxl.utils.exceptions import IllegalCharacterError

from src.core.analysis.validation import validate_analysis_data
from src.core.documents import OutputFormat, TemplateType, prepare_document
from src.core.errors import RenderError
from src.infrastructure.documents import FileDocumentWriter, writer

NOW = datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def prepare(analysis_payload):
    analysis = validate_analysis_data(analysis_payload).result

    def factory(output_format: OutputFormat):
        return prepare_document(
            "Invoice Entry",
            analysis,
            output_format=output_format,
            template_type=TemplateType.STANDARD,
            now=NOW,
        )
    return factory


class TestFileDocumentWriter:
    """Tests for writing each output format."""

    def test_writes_markdown(self, tmp_path, prepare):
        prepared = prepare(OutputFormat.MARKDOWN)

        path = asyncio.run(FileDocumentWriter(tmp_path / "out").write(prepared))

        assert path.parent == tmp_path / "out"
        assert re.fullmatch(r"functional_analysis_invoice_entry_20261018T093000_[0-9a-f]{8}\.md", path.name)
        assert path.read_text(encoding="utf-8") == prepared.markdown

    def test_writes_json_matching_document(self, tmp_path, prepare):
        prepared = prepare(OutputFormat.JSON)

        path = asyncio.run(FileDocumentWriter(tmp_path).write(prepared))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == prepared.document.to_dict()
        assert data["metadata"]["status"] == "DRAFT"

    def test_writes_excel_workbook(self, tmp_path, prepare):
        prepared = prepare(OutputFormat.EXCEL)

        path = asyncio.run(FileDocumentWriter(tmp_path).write(prepared))

        workbook = load_workbook(path)
        assert workbook.sheetnames == ["Summary", "RPA Actions", "Test Cases"]

        actions = workbook["RPA Actions"]
        assert actions.cell(row=1, column=3).value == "Description"
        assert actions.cell(row=2, column=3).value == "Click the login button"

        cases = workbook["Test Cases"]
        assert cases.cell(row=2, column=1).value == "tc_001"
        assert "Open the application" in cases.cell(row=2, column=8).value

    def test_control_characters_are_stripped_from_workbook(self, tmp_path, analysis_payload):
        payload = dict(analysis_payload, summary="Login\u000bflow")
        payload["rpaActions"] = [dict(analysis_payload["rpaActions"][0], description="Press\u0007 Enter")]
        analysis = validate_analysis_data(payload).result
        prepared = prepare_document("Invoice Entry", analysis, output_format=OutputFormat.EXCEL, now=NOW)

        path = asyncio.run(FileDocumentWriter(tmp_path).write(prepared))

        workbook = load_workbook(path)
        summary = {row[0]: row[1] for row in workbook["Summary"].iter_rows(values_only=True)}
        assert summary["Summary"] == "Loginflow"
        assert workbook["RPA Actions"].cell(row=2, column=3).value == "Press Enter"

    def test_workbook_errors_are_render_errors(self, tmp_path, prepare, monkeypatch):
        def reject(document):
            raise IllegalCharacterError("Login\u000bflow cannot be used in worksheets.")
        monkeypatch.setattr(writer, "build_workbook", reject)

        with pytest.raises(RenderError, match="cannot be used in worksheets"):
            asyncio.run(FileDocumentWriter(tmp_path).write(prepare(OutputFormat.EXCEL)))

    def test_write_failure_is_render_error(self, tmp_path, prepare):
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")

        with pytest.raises(RenderError):
            asyncio.run(FileDocumentWriter(blocker).write(prepare(OutputFormat.MARKDOWN)))
