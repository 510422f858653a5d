# app/core/parsers/excel_parser.py

"""Spreadsheet statements (.xlsx via openpyxl, .xls via xlrd)."""

from typing import Any, Optional
import io

import pandas as pd

from app.core.parsers.columns import extract_table
from app.models import FileType, ParseResult

SHEET_KEYWORDS = ["transaction", "statement", "account", "history", "ledger"]

ENGINES = {
    FileType.XLSX: "openpyxl",
    FileType.XLS: "xlrd",
}


def pick_sheet(sheet_names: list[str]) -> str:
    """Prefer a sheet whose name mentions transactions, else the first."""
    for name in sheet_names:
        lowered = name.lower()
        if any(keyword in lowered for keyword in SHEET_KEYWORDS):
            return name
    return sheet_names[0]


def _frame_to_rows(frame: pd.DataFrame) -> list[list[Any]]:
    return [list(row) for row in frame.itertuples(index=False, name=None)]


def parse_excel(
    content: bytes,
    file_type: FileType = FileType.XLSX,
    bank_hint: Optional[str] = None,
) -> ParseResult:
    sheets: dict[str, pd.DataFrame] = pd.read_excel(
        io.BytesIO(content),
        sheet_name=None,
        header=None,
        dtype=object,
        engine=ENGINES.get(file_type, "openpyxl"),
    )

    if not sheets:
        return ParseResult.failed("Workbook has no sheets")

    sheet_name = pick_sheet(list(sheets.keys()))
    rows = _frame_to_rows(sheets[sheet_name])

    if len(rows) < 2:
        return ParseResult.failed(f"Sheet '{sheet_name}' is empty or has insufficient data")

    return extract_table(rows, bank_hint)
