# app/core/parsers/columns.py

"""
Shared table extractor.

Every statement family (CSV, spreadsheet, PDF tables) ends up as a list of
rows of cells. This module finds the header row, picks the bank format,
maps columns and turns each data row into a RawTransaction.
"""

from datetime import date
from typing import Any, Optional
import re

from pydantic import BaseModel

from app.core.bank_formats import (
    BANK_FORMATS,
    GENERIC,
    BankFormat,
    detect_bank_format,
    get_bank_format,
)
from app.core.normalizers import (
    cell_to_text,
    mask_account_number,
    normalize_header,
    parse_amount,
    parse_date,
)
from app.models import ParseResult, RawTransaction

HEADER_SCAN_ROWS = 10

DEBIT_INDICATORS = {"dr", "d", "debit", "withdrawal", "db"}
CREDIT_INDICATORS = {"cr", "c", "credit", "deposit"}

_ACCOUNT_PATTERN = re.compile(
    r"account\s*(?:no\.?|number|num|#)?\s*[:.\-]?\s*([\d][\d \t\-*xX]{5,})",
    re.IGNORECASE,
)


class ColumnMapping(BaseModel):
    """Column indexes for one statement table."""

    date: int
    description: int
    amount: Optional[int] = None
    credit: Optional[int] = None
    debit: Optional[int] = None
    balance: Optional[int] = None
    reference: Optional[int] = None
    indicator: Optional[int] = None

    @property
    def has_amount_source(self) -> bool:
        return self.amount is not None or self.credit is not None or self.debit is not None


# ============================================
# Header discovery
# ============================================

def _all_synonyms(attr: str) -> list[str]:
    seen: list[str] = []
    for fmt in BANK_FORMATS.values():
        for synonym in getattr(fmt, attr):
            if synonym not in seen:
                seen.append(synonym)
    return seen


_DATE_SYNONYMS = _all_synonyms("date_columns")
_DESCRIPTION_SYNONYMS = _all_synonyms("description_columns")


def _header_matches(header: str, synonym: str, exact: bool) -> bool:
    if exact:
        return header == synonym
    # Short synonyms like "cr" or "dr" only match whole headers
    if len(synonym) < 4:
        return False
    return re.search(rf"\b{re.escape(synonym)}\b", header) is not None


def find_column(headers: list[str], synonyms: list[str], taken: set[int]) -> Optional[int]:
    """Index of the first header matching a synonym, exact matches first."""
    for exact in (True, False):
        for synonym in synonyms:
            for index, header in enumerate(headers):
                if index in taken or not header:
                    continue
                if _header_matches(header, synonym, exact):
                    return index
    return None


def find_header_row(rows: list[list[Any]], max_scan: int = HEADER_SCAN_ROWS) -> Optional[int]:
    """
    Locate the header row within the first rows of a table.

    A header row names both a date column and a description column.
    """
    for index, row in enumerate(rows[:max_scan]):
        headers = [normalize_header(cell_to_text(cell)) for cell in row]
        date_index = find_column(headers, _DATE_SYNONYMS, set())
        if date_index is None:
            continue
        if find_column(headers, _DESCRIPTION_SYNONYMS, {date_index}) is not None:
            return index
    return None


def _synonyms(fmt: BankFormat, attr: str) -> list[str]:
    own = list(getattr(fmt, attr))
    return own + [s for s in getattr(GENERIC, attr) if s not in own]


def map_columns(headers: list[str], fmt: BankFormat) -> Optional[ColumnMapping]:
    """
    Map normalized headers to transaction fields.

    Returns None when the date, description or every amount source is missing.
    """
    taken: set[int] = set()

    def claim(attr: str) -> Optional[int]:
        index = find_column(headers, _synonyms(fmt, attr), taken)
        if index is not None:
            taken.add(index)
        return index

    date_index = claim("date_columns")
    description_index = claim("description_columns")
    if date_index is None or description_index is None:
        return None

    mapping = ColumnMapping(
        date=date_index,
        description=description_index,
        balance=claim("balance_columns"),
        reference=claim("reference_columns"),
        indicator=claim("indicator_columns"),
        credit=claim("credit_columns"),
        debit=claim("debit_columns"),
        amount=claim("amount_columns"),
    )
    if not mapping.has_amount_source:
        return None
    return mapping


def resolve_format(bank_hint: Optional[str], preamble: str) -> BankFormat:
    """Hint first, then aliases in the preamble, then Generic."""
    return get_bank_format(bank_hint) or detect_bank_format(preamble) or GENERIC


def find_account_number(text: str) -> Optional[str]:
    """Best-effort account number from statement text, masked."""
    if not text:
        return None
    match = _ACCOUNT_PATTERN.search(text)
    if not match:
        return None
    return mask_account_number(match.group(1))


# ============================================
# Row parsing
# ============================================

def _cell(row: list[Any], index: Optional[int]) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


def _apply_indicator(amount: float, indicator: str) -> float:
    marker = indicator.strip().lower()
    if marker in DEBIT_INDICATORS:
        return -abs(amount)
    if marker in CREDIT_INDICATORS:
        return abs(amount)
    return amount


def parse_row(
    row: list[Any],
    mapping: ColumnMapping,
    fmt: BankFormat,
    headers: list[str],
) -> Optional[RawTransaction]:
    """
    Parse a single data row.

    Returns None for rows that carry no transaction (no description, zero
    amount). Raises ValueError for rows that look like transactions but
    cannot be read.
    """
    date_cell = _cell(row, mapping.date)
    transaction_date = parse_date(date_cell, fmt.date_formats)
    if transaction_date is None:
        raise ValueError(f"Invalid date: {cell_to_text(date_cell) or '(empty)'}")

    description = cell_to_text(_cell(row, mapping.description))
    if not description:
        return None

    amount_text = cell_to_text(_cell(row, mapping.amount))
    indicator = cell_to_text(_cell(row, mapping.indicator))

    if amount_text:
        amount = parse_amount(_cell(row, mapping.amount))
        if indicator:
            amount = _apply_indicator(amount, indicator)
        elif fmt.debits_positive:
            amount = -amount
    elif mapping.credit is not None or mapping.debit is not None:
        credit = abs(parse_amount(_cell(row, mapping.credit)))
        debit = abs(parse_amount(_cell(row, mapping.debit)))
        amount = round(credit - debit, 2)
    else:
        raise ValueError("Could not determine transaction amount")

    if amount == 0:
        return None

    balance_cell = _cell(row, mapping.balance)
    balance = parse_amount(balance_cell) if cell_to_text(balance_cell) else None
    reference = cell_to_text(_cell(row, mapping.reference)) or None

    raw_data = {}
    for index, header in enumerate(headers):
        text = cell_to_text(_cell(row, index))
        if header and text:
            raw_data[header] = text

    return RawTransaction(
        transaction_date=transaction_date,
        description=description,
        amount=amount,
        reference=reference,
        balance=balance,
        raw_data=raw_data,
    )


# ============================================
# Table extraction
# ============================================

def extract_table(
    rows: list[list[Any]],
    bank_hint: Optional[str] = None,
    preamble: str = "",
) -> ParseResult:
    """
    Turn a table of cells into a ParseResult.

    Repeated header rows (PDF tables split across pages) are skipped.
    """
    header_index = find_header_row(rows)
    if header_index is None:
        return ParseResult.failed("Could not identify required columns (date, description, amount)")

    header_cells = rows[header_index]
    headers = [normalize_header(cell_to_text(cell)) for cell in header_cells]

    above = "\n".join(
        " ".join(cell_to_text(cell) for cell in row) for row in rows[:header_index]
    )
    text = "\n".join(part for part in (preamble, above) if part)
    fmt = resolve_format(bank_hint, text)

    mapping = map_columns(headers, fmt)
    if mapping is None:
        return ParseResult.failed("Could not identify required columns (date, description, amount)")

    transactions: list[RawTransaction] = []
    warnings: list[str] = []

    for index, row in enumerate(rows[header_index + 1:], start=header_index + 2):
        cells = [cell_to_text(cell) for cell in row]
        if not any(cells):
            continue
        if [normalize_header(c) for c in cells] == headers:
            continue
        try:
            transaction = parse_row(row, mapping, fmt, headers)
        except ValueError as e:
            warnings.append(f"Row {index}: {e}")
            continue
        if transaction is not None:
            transactions.append(transaction)

    return ParseResult(
        success=True,
        transactions=transactions,
        bank_name=fmt.name,
        account_number=find_account_number(text),
        warnings=warnings,
    )


def finalize_result(result: ParseResult) -> ParseResult:
    """Fill the statement period and reject empty statements."""
    if not result.success:
        return result

    if not result.transactions:
        return ParseResult.failed("No transactions found in statement", result.warnings)

    dates: list[date] = sorted(t.transaction_date for t in result.transactions)
    return result.model_copy(update={
        "period_start": result.period_start or dates[0],
        "period_end": result.period_end or dates[-1],
    })
