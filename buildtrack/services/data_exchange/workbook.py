"""
Workbook I/O — spreadsheet bytes ⇄ ``{sheet name: [row dict, ...]}``.

Reading: the first row of every sheet is its header; each following row
becomes a dict of header → cell value with empty cells left out, and rows
without any value are dropped.  A CSV upload is a single sheet named after
the file.

Writing: one styled header row per sheet (the dark header used across all
BuildTrack exports) followed by the data rows.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.comments import Comment
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from buildtrack.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

# Excel refuses longer sheet titles
MAX_SHEET_TITLE = 31


def sheet_title(name: str) -> str:
    return name[:MAX_SHEET_TITLE]


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ═══════════════════════════════════════════════════════════════
# READING
# ═══════════════════════════════════════════════════════════════

def _rows_from_table(header, body) -> list[dict]:
    columns = [
        (index, str(name).strip())
        for index, name in enumerate(header)
        if not _is_empty(name)
    ]
    rows = []
    for values in body:
        row = {}
        for index, name in columns:
            value = values[index] if index < len(values) else None
            if not _is_empty(value):
                row[name] = value
        if row:
            rows.append(row)
    return rows


def parse_csv(content: str | bytes) -> list[dict]:
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")  # Handle BOM
    reader = csv.reader(io.StringIO(content))
    header = next(reader, None)
    if header is None:
        return []
    return _rows_from_table(header, reader)


def parse_xlsx(content: bytes) -> dict[str, list[dict]]:
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise ValidationError(f"Could not read workbook: {exc}") from exc

    sheets = {}
    try:
        for ws in wb.worksheets:
            rows = ws.iter_rows(values_only=True)
            header = next(rows, None)
            sheets[ws.title] = _rows_from_table(header, rows) if header else []
    finally:
        wb.close()
    return sheets


def read_workbook(content: bytes, filename: str = "upload.xlsx") -> dict[str, list[dict]]:
    """Parse uploaded spreadsheet bytes into sheets of row dicts."""
    stem, ext = os.path.splitext(os.path.basename(filename or ""))
    if ext.lower() == ".csv":
        try:
            return {stem or "Sheet1": parse_csv(content)}
        except UnicodeDecodeError as exc:
            raise ValidationError(f"CSV file is not UTF-8 encoded: {exc}") from exc
    sheets = parse_xlsx(content)
    logger.debug("Read workbook %s: %s", filename, {name: len(rows) for name, rows in sheets.items()})
    return sheets


# ═══════════════════════════════════════════════════════════════
# WRITING
# ═══════════════════════════════════════════════════════════════

def new_workbook() -> Workbook:
    """Workbook without the default empty sheet."""
    wb = Workbook()
    wb.remove(wb.active)
    return wb


def _apply_header_style(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 50 chars)."""
    for col in ws.columns:
        max_len = 0
        for cell in col:
            if cell.value is not None:
                max_len = max(max_len, min(len(str(cell.value)), 50))
        ws.column_dimensions[get_column_letter(col[0].column)].width = max(max_len + 2, 12)


def write_sheet(wb: Workbook, name: str, headers: list[str], rows: list[list], notes: dict | None = None):
    """Append a sheet with a styled header row; ``notes`` adds header comments."""
    ws = wb.create_sheet(title=sheet_title(name))
    ws.append(list(headers))
    _apply_header_style(ws, 1, len(headers))
    for values in rows:
        ws.append(list(values))
    if notes:
        for col, header in enumerate(headers, 1):
            if header in notes:
                ws.cell(row=1, column=col).comment = Comment(notes[header], "BuildTrack")
    ws.freeze_panes = "A2"
    _auto_width(ws)
    return ws


def workbook_to_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
