"""
Spreadsheet Reader.

Decodes an uploaded ``.csv`` or ``.xlsx`` import file into ``ImportRow``
dicts keyed by template header. Row 1 is the header row, row 2 is the
template's sample row and is skipped, data starts at row 3. Fully blank
rows are ignored; each row keeps its spreadsheet row number for error
reporting.
"""
from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass, field
from typing import Any

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..core.exceptions import BadRequestError, SpreadsheetFormatError
from ..schemas.specialist_import import ImportRow
from .import_schema import SAMPLE_ROW, TEMPLATE_HEADERS

logger = structlog.get_logger(__name__)

FIRST_DATA_ROW = 3

CSV_CONTENT_TYPES = ("text/csv", "application/csv", "text/plain")
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class ParsedSpreadsheet:
    """Data rows of an import file with their spreadsheet row numbers."""

    rows: list[ImportRow] = field(default_factory=list)
    row_numbers: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def _header_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _rows_from_grid(grid: list[tuple[Any, ...]], filename: str, max_rows: int) -> ParsedSpreadsheet:
    if not grid:
        raise SpreadsheetFormatError("Spreadsheet is empty or has no header row.", filename=filename)

    headers = [_header_text(cell) for cell in grid[0]]
    missing = [header for header in TEMPLATE_HEADERS if header not in headers]
    if missing:
        raise SpreadsheetFormatError(
            f"Spreadsheet is missing required column(s): {', '.join(missing)}.",
            filename=filename,
            missing_headers=missing,
        )

    parsed = ParsedSpreadsheet()
    for offset, cells in enumerate(grid[FIRST_DATA_ROW - 1:]):
        if all(cell is None or str(cell).strip() == "" for cell in cells):
            continue
        row: ImportRow = {
            header: cells[index] if index < len(cells) else None
            for index, header in enumerate(headers)
            if header
        }
        parsed.rows.append(row)
        parsed.row_numbers.append(FIRST_DATA_ROW + offset)

    if not parsed.rows:
        raise BadRequestError(
            "Spreadsheet contains no data rows. Data starts on row 3, below the sample row.",
            error_code="EMPTY_SPREADSHEET",
        )
    if len(parsed.rows) > max_rows:
        raise BadRequestError(
            f"Too many rows: {len(parsed.rows)} (maximum allowed: {max_rows}).",
            error_code="TOO_MANY_ROWS",
            details={"row_count": len(parsed.rows), "max_rows": max_rows},
        )
    return parsed


def read_csv(content: bytes, filename: str, max_rows: int) -> ParsedSpreadsheet:
    try:
        text = content.decode("utf-8-sig")  # strip BOM if present
    except UnicodeDecodeError:
        raise SpreadsheetFormatError("CSV file must be UTF-8 encoded.", filename=filename) from None
    grid = [tuple(cells) for cells in csv.reader(io.StringIO(text))]
    return _rows_from_grid(grid, filename, max_rows)


def read_xlsx(content: bytes, filename: str, max_rows: int) -> ParsedSpreadsheet:
    """Read the first worksheet; cell values keep their native types."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise SpreadsheetFormatError(
            f"Could not open Excel workbook: {exc}", filename=filename
        ) from exc
    try:
        worksheet = workbook.worksheets[0]
        grid = [tuple(cells) for cells in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return _rows_from_grid(grid, filename, max_rows)


def read_spreadsheet(
    content: bytes,
    filename: str,
    max_rows: int,
    content_type: str | None = None,
) -> ParsedSpreadsheet:
    """Dispatch on file extension (falling back to content type)."""
    name = (filename or "").lower()
    if name.endswith(".xlsx") or content_type == XLSX_CONTENT_TYPE:
        parsed = read_xlsx(content, filename, max_rows)
    elif name.endswith(".csv") or content_type in CSV_CONTENT_TYPES:
        parsed = read_csv(content, filename, max_rows)
    else:
        raise SpreadsheetFormatError(
            "Only .csv and .xlsx files are accepted.", filename=filename
        )
    logger.info("Spreadsheet decoded", filename=filename, data_rows=len(parsed))
    return parsed


def render_template_csv() -> str:
    """Header row plus one sample row, as served by the template download."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow([SAMPLE_ROW[header] for header in TEMPLATE_HEADERS])
    return buffer.getvalue()
