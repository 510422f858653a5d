# app/core/normalizers.py

"""
Data normalization utilities for statement cells.

Ensures consistent values regardless of which bank or file format
produced them.
"""

from datetime import date, datetime, timedelta
from typing import Any
import math
import numbers
import re

# Tried in order when a bank format does not say otherwise.
# Day-first before month-first: most supported banks print DD/MM/YYYY.
DEFAULT_DATE_FORMATS = [
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%d-%b-%Y",
    "%d-%m-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%Y/%m/%d",
    "%d/%m/%y",
    "%d-%b-%y",
    "%d.%m.%Y",
]

EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_SERIAL_RANGE = (20000, 80000)  # 1954 .. 2119

_DEBIT_SUFFIX = re.compile(r"(dr|debit)\.?$", re.IGNORECASE)
_CREDIT_SUFFIX = re.compile(r"(cr|credit)\.?$", re.IGNORECASE)
_DEBIT_PREFIX = re.compile(r"^(dr|debit)\b", re.IGNORECASE)
_CREDIT_PREFIX = re.compile(r"^(cr|credit)\b", re.IGNORECASE)


def parse_amount(value: Any) -> float:
    """
    Normalize a statement amount cell to a signed float.

    Handles:
    - Numbers (spreadsheet cells)
    - Currency symbols and codes (₦, $, €, £, ¥, NGN)
    - Thousands separators and stray whitespace
    - Negative markers: leading/trailing minus, parentheses, DR/Debit tags
    - CR/Credit tags (forced positive)
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, numbers.Real):
        if math.isnan(value):
            return 0.0
        return round(float(value), 2)

    text = str(value).strip()
    if not text:
        return 0.0

    is_debit = bool(_DEBIT_SUFFIX.search(text) or _DEBIT_PREFIX.search(text))
    is_credit = bool(_CREDIT_SUFFIX.search(text) or _CREDIT_PREFIX.search(text))
    is_negative = (
        text.startswith("-")
        or text.startswith("(")
        or text.endswith("-")
        or is_debit
    )

    cleaned = re.sub(r"[^\d.]", "", text)
    if not cleaned or cleaned == ".":
        return 0.0

    try:
        amount = float(cleaned)
    except ValueError:
        return 0.0

    if is_credit and not is_debit:
        return round(amount, 2)
    return round(-amount if is_negative else amount, 2)


def parse_date(value: Any, formats: list[str] | None = None) -> date | None:
    """
    Normalize a statement date cell to a date object.

    Handles:
    - datetime / pandas Timestamp objects
    - date objects
    - Excel serial day numbers
    - Strings in the bank's preferred formats, then ISO
    """
    if value is None or isinstance(value, bool):
        return None

    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, numbers.Real):
        if math.isnan(value):
            return None
        low, high = _EXCEL_SERIAL_RANGE
        if low <= value <= high:
            return EXCEL_EPOCH + timedelta(days=int(value))
        return None

    text = str(value).strip()
    if not text:
        return None

    # Drop a trailing time component ("15/01/2024 10:32:11")
    candidates = [text]
    if " " in text and ":" in text:
        candidates.append(text.rsplit(" ", 1)[0])

    for candidate in candidates:
        for fmt in formats or DEFAULT_DATE_FORMATS:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue

        try:
            return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
        except ValueError:
            pass

    return None


def normalize_header(header: Any) -> str:
    """Lowercase, trimmed header text with collapsed whitespace."""
    if header is None:
        return ""
    text = str(header).strip().lower()
    return re.sub(r"\s+", " ", text)


def cell_to_text(value: Any) -> str:
    """Render a cell as text, treating NaN/None as empty."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def normalize_string(s: str | None) -> str:
    """
    Normalize string for comparison.

    - Lowercase
    - Remove special characters
    - Collapse whitespace
    """
    if not s:
        return ""

    s = s.lower()
    s = re.sub(r'[^a-z0-9\s]', ' ', s)
    s = re.sub(r'\s+', ' ', s).strip()
    return s


def normalize_customer_name(name: str | None) -> str:
    """
    Normalize customer name for matching.

    Handles:
    - Common suffixes (Ltd, Limited, Plc, Inc, LLC, etc.)
    - Punctuation
    - Case
    """
    if not name:
        return ""

    name = name.lower()

    suffixes = [
        r'\s+inc\.?$',
        r'\s+llc\.?$',
        r'\s+corp\.?$',
        r'\s+corporation$',
        r'\s+ltd\.?$',
        r'\s+limited$',
        r'\s+plc\.?$',
        r'\s+co\.?$',
        r'\s+company$',
        r'\s+enterprises?$',
    ]
    for suffix in suffixes:
        name = re.sub(suffix, '', name, flags=re.IGNORECASE)

    name = re.sub(r'[^\w\s]', '', name)
    name = re.sub(r'\s+', ' ', name).strip()

    return name


def mask_account_number(account: str | None) -> str | None:
    """Keep only the last four digits of an account number."""
    if not account:
        return None
    digits = re.sub(r"\D", "", account)
    if len(digits) < 4:
        return None
    return f"****{digits[-4:]}"
