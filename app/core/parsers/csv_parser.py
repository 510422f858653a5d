# app/core/parsers/csv_parser.py

"""Delimited text statements (CSV, semicolon, tab or pipe separated)."""

from typing import Optional
import csv

from app.core.parsers.columns import extract_table
from app.models import ParseResult

DELIMITERS = [",", ";", "\t", "|"]


def decode_text(content: bytes) -> str:
    """UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def detect_delimiter(lines: list[str]) -> str:
    """Most frequent candidate delimiter across the sampled lines."""
    best, best_count = ",", 0
    for delimiter in DELIMITERS:
        count = sum(line.count(delimiter) for line in lines)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def parse_csv(content: bytes, bank_hint: Optional[str] = None) -> ParseResult:
    text = decode_text(content)
    lines = [line for line in text.splitlines() if line.strip()]

    if len(lines) < 2:
        return ParseResult.failed("File is empty or has insufficient data")

    delimiter = detect_delimiter(lines[:10])
    rows = [row for row in csv.reader(lines, delimiter=delimiter)]

    return extract_table(rows, bank_hint)
