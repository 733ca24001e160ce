"""
Document persistence.

Writes a PreparedDocument into the output directory as markdown, JSON or
an Excel workbook. The workbook has three sheets:
  1. Summary - document metadata, assessment and recommendations
  2. RPA Actions - one row per action
  3. Test Cases - one row per test case, steps flattened into one cell

Files are written in a worker thread so the event loop never blocks on
disk or on openpyxl.
"""

import asyncio
import json
import logging
from pathlib import Path

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from src.core.documents import OutputFormat, PreparedDocument, ProcessDocument
from src.core.analysis.models import thaw
from src.core.documents.markdown import group_test_cases
from src.core.errors import RenderError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Excel styles
# ---------------------------------------------------------------------------

_HEADER_FONT = Font(bold=True, size=10)
_HEADER_FILL = PatternFill(start_color="D9E2F3", end_color="D9E2F3", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

_BODY_FONT = Font(size=10)
_BODY_ALIGN = Alignment(vertical="top", wrap_text=True)

_THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

ACTION_HEADERS = [
    "Step", "ID", "Description", "Action Type", "Category",
    "Target", "Parameters", "Prerequisites",
]
ACTION_WIDTHS = [6, 16, 50, 20, 18, 35, 35, 35]

TEST_CASE_HEADERS = [
    "ID", "Type", "Title", "Priority", "Category",
    "Description", "Preconditions", "Steps", "Expected Result",
]
TEST_CASE_WIDTHS = [12, 10, 35, 10, 14, 45, 35, 60, 40]


def _style_row(ws, row: int, col_count: int, header: bool = False) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = _HEADER_FONT if header else _BODY_FONT
        cell.alignment = _HEADER_ALIGN if header else _BODY_ALIGN
        cell.border = _THIN_BORDER
        if header:
            cell.fill = _HEADER_FILL


def _set_widths(ws, widths: list[int]) -> None:
    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _cell_value(value):
    # worksheets reject most ASCII control characters; model text can contain them
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _json_cell(value) -> str:
    if not value:
        return ""
    return json.dumps(value, ensure_ascii=False, default=str)


def _write_summary_sheet(ws, document: ProcessDocument) -> None:
    ws.title = "Summary"

    meta = document.metadata
    rows = [
        ("Process Name", meta.process_name),
        ("Author", meta.author),
        ("Version", meta.version),
        ("Created", meta.created_at.isoformat()),
        ("Status", meta.status.value),
        ("Summary", document.summary),
        ("RPA Actions", len(document.rpa_actions)),
        ("Test Cases", len(document.test_cases)),
        ("Complexity", document.complexity.value),
        ("Estimated Development Time", document.estimated_development_time),
        ("Risk Assessment", document.risk_assessment),
        ("Confidence", f"{document.confidence}%"),
    ]
    for index, recommendation in enumerate(document.recommendations, 1):
        rows.append((f"Recommendation {index}", recommendation))

    ws.cell(row=1, column=1, value="Field")
    ws.cell(row=1, column=2, value="Value")
    _style_row(ws, 1, 2, header=True)

    for i, (label, value) in enumerate(rows):
        row = i + 2
        ws.cell(row=row, column=1, value=label)
        ws.cell(row=row, column=2, value=_cell_value(value))
        _style_row(ws, row, 2)

    _set_widths(ws, [28, 80])


def _write_actions_sheet(ws, document: ProcessDocument) -> None:
    ws.title = "RPA Actions"

    for col, header in enumerate(ACTION_HEADERS, 1):
        ws.cell(row=1, column=col, value=header)
    _style_row(ws, 1, len(ACTION_HEADERS), header=True)

    for i, action in enumerate(document.rpa_actions):
        row = i + 2
        values = [
            action.step,
            action.id,
            action.description,
            action.action_type,
            action.category.value,
            _json_cell(action.target.to_dict() if action.target else None),
            _json_cell(thaw(action.parameters)),
            "\n".join(action.prerequisites),
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=_cell_value(value))
        _style_row(ws, row, len(ACTION_HEADERS))

    _set_widths(ws, ACTION_WIDTHS)
    ws.freeze_panes = "A2"


def _write_test_cases_sheet(ws, document: ProcessDocument) -> None:
    ws.title = "Test Cases"

    for col, header in enumerate(TEST_CASE_HEADERS, 1):
        ws.cell(row=1, column=col, value=header)
    _style_row(ws, 1, len(TEST_CASE_HEADERS), header=True)

    row = 2
    for _, cases in group_test_cases(document.test_cases):
        for test_case in cases:
            steps = "\n".join(
                f"{step.step}. {step.action} -> {step.expected_result}"
                for step in test_case.steps
            )
            values = [
                test_case.id,
                test_case.type.value,
                test_case.title,
                test_case.priority.value,
                test_case.category.value,
                test_case.description,
                "\n".join(test_case.preconditions),
                steps,
                test_case.expected_result,
            ]
            for col, value in enumerate(values, 1):
                ws.cell(row=row, column=col, value=_cell_value(value))
            _style_row(ws, row, len(TEST_CASE_HEADERS))
            row += 1

    _set_widths(ws, TEST_CASE_WIDTHS)
    ws.freeze_panes = "A2"


def build_workbook(document: ProcessDocument) -> Workbook:
    wb = Workbook()
    _write_summary_sheet(wb.active, document)
    _write_actions_sheet(wb.create_sheet(), document)
    _write_test_cases_sheet(wb.create_sheet(), document)
    return wb


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class FileDocumentWriter:
    """Writes prepared documents under one output directory."""

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def write(self, prepared: PreparedDocument) -> Path:
        path = self._output_dir / prepared.file_name

        try:
            await asyncio.to_thread(self._write_sync, prepared, path)
        except (OSError, ValueError, TypeError, IllegalCharacterError) as e:
            logger.error(
                "Failed to write document",
                extra={"path": str(path), "error": str(e)},
            )
            raise RenderError(f"Failed to write document {path.name}: {e}") from e

        logger.info(
            "Document written",
            extra={"path": str(path), "format": prepared.output_format.value},
        )
        return path

    def _write_sync(self, prepared: PreparedDocument, path: Path) -> None:
        self._output_dir.mkdir(parents=True, exist_ok=True)

        if prepared.output_format is OutputFormat.MARKDOWN:
            if prepared.markdown is None:
                raise ValueError("Markdown output requested but nothing was rendered")
            path.write_text(prepared.markdown, encoding="utf-8")
        elif prepared.output_format is OutputFormat.JSON:
            path.write_text(
                json.dumps(prepared.document.to_dict(), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        else:
            build_workbook(prepared.document).save(path)
