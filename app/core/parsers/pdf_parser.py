# app/core/parsers/pdf_parser.py

"""
PDF statements.

Three passes, first one with transactions wins:
1. Tables found by pdfplumber, through the shared table extractor
2. Text lines matching "date description amount [balance]"
3. Claude extraction of the page text (when configured)
"""

from datetime import date
from typing import Any, Optional
import io
import logging
import re

import pdfplumber

from app.core.parsers.columns import extract_table, find_account_number, resolve_format
from app.core.normalizers import mask_account_number, parse_amount, parse_date
from app.integrations import claude
from app.models import ParseResult, RawTransaction

logger = logging.getLogger(__name__)

_DATE = r"\d{1,2}[/\-. ](?:\d{1,2}|[A-Za-z]{3,9})[/\-. ]\d{2,4}|\d{4}-\d{2}-\d{2}"
_MONEY = r"\(?-?[₦$€£¥]?\s?[\d,]+\.\d{2}\)?(?:\s?(?:CR|DR|Cr|Dr))?"

LINE_PATTERN = re.compile(
    rf"^(?P<date>{_DATE})\s+(?P<description>.+?)\s+(?P<amount>{_MONEY})"
    rf"(?:\s+(?P<balance>{_MONEY}))?\s*$"
)

PERIOD_PATTERN = re.compile(
    rf"(?:period|from)\s*:?\s*(?P<start>{_DATE})\s*(?:to|-|–)\s*(?P<end>{_DATE})",
    re.IGNORECASE,
)

OPENING_BALANCE_PATTERN = re.compile(
    rf"(?:opening\s+balance|balance\s+b/?f|balance\s+brought\s+forward|brought\s+forward)"
    rf"\s*:?\s*(?P<balance>{_MONEY})",
    re.IGNORECASE,
)

_SIGN_MARKER = re.compile(r"^\(|^-|-$|(?:CR|DR)$", re.IGNORECASE)

# Narration cues for lines whose direction the balance cannot tell
_DEBIT_CUES = re.compile(
    r"\b(?:pos|atm|purchase|withdrawal|charges?|fees?|vat|levy|debit|bill|airtime"
    r"|(?:transfer|trf|tfr)\s+to|payment\s+to)\b",
    re.IGNORECASE,
)
_CREDIT_CUES = re.compile(
    r"\b(?:deposit|lodgement|credit|refund|reversal|interest|inward"
    r"|(?:transfer|trf|tfr)\s+from|payment\s+from)\b",
    re.IGNORECASE,
)

NO_TRANSACTIONS_ERROR = (
    "Could not extract transactions from PDF. "
    "Try exporting the statement as CSV or Excel."
)


def read_pdf(content: bytes) -> tuple[str, list[list[Any]]]:
    """Full text and every table row from every page."""
    texts: list[str] = []
    rows: list[list[Any]] = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            texts.append(page.extract_text() or "")
            for table in page.extract_tables() or []:
                rows.extend(table)
    return "\n".join(texts), rows


def find_period(text: str, formats: list[str]) -> tuple[Optional[date], Optional[date]]:
    match = PERIOD_PATTERN.search(text)
    if not match:
        return None, None
    return parse_date(match.group("start"), formats), parse_date(match.group("end"), formats)


def find_opening_balance(text: str) -> Optional[float]:
    match = OPENING_BALANCE_PATTERN.search(text)
    return parse_amount(match.group("balance")) if match else None


def direction_from_narration(description: str) -> int:
    """-1 for debit cues, 1 for credit cues or no cue at all."""
    if _CREDIT_CUES.search(description):
        return 1
    if _DEBIT_CUES.search(description):
        return -1
    return 1


def parse_text_lines(text: str, formats: list[str]) -> list[RawTransaction]:
    """
    Parse free-text statement lines.

    Direction, first rule that applies:
    1. Running balance movement against the previous balance (or a printed
       opening balance for the first line)
    2. The amount's own markers (DR/CR, minus, parentheses)
    3. Debit/credit cues in the narration
    """
    transactions: list[RawTransaction] = []
    previous_balance: Optional[float] = find_opening_balance(text)

    for line in text.splitlines():
        match = LINE_PATTERN.match(line.strip())
        if not match:
            continue

        transaction_date = parse_date(match.group("date"), formats)
        if transaction_date is None:
            continue

        description = match.group("description").strip()
        amount_text = match.group("amount").strip()
        amount = parse_amount(amount_text)
        balance = parse_amount(match.group("balance")) if match.group("balance") else None

        if balance is not None and previous_balance is not None:
            amount = abs(amount) if balance >= previous_balance else -abs(amount)
        elif not _SIGN_MARKER.search(amount_text):
            amount = direction_from_narration(description) * abs(amount)
        if balance is not None:
            previous_balance = balance

        if amount == 0:
            continue

        transactions.append(RawTransaction(
            transaction_date=transaction_date,
            description=description,
            amount=amount,
            balance=balance,
            raw_data={"line": line.strip()},
        ))

    return transactions


def _from_ai_payload(payload: dict, formats: list[str]) -> tuple[list[RawTransaction], list[str]]:
    transactions: list[RawTransaction] = []
    warnings: list[str] = []

    for index, item in enumerate(payload.get("transactions", []), start=1):
        if not isinstance(item, dict):
            continue
        transaction_date = parse_date(item.get("date"), formats)
        description = str(item.get("description") or "").strip()
        if transaction_date is None:
            warnings.append(f"Row {index}: Invalid date: {item.get('date')}")
            continue
        if not description:
            continue

        amount = parse_amount(item.get("amount"))
        direction = str(item.get("type") or "").lower()
        if direction == "debit":
            amount = -abs(amount)
        elif direction == "credit":
            amount = abs(amount)
        if amount == 0:
            continue

        balance = item.get("balance")
        transactions.append(RawTransaction(
            transaction_date=transaction_date,
            description=description,
            amount=amount,
            reference=str(item["reference"]) if item.get("reference") else None,
            balance=parse_amount(balance) if balance is not None else None,
            raw_data={k: str(v) for k, v in item.items() if v is not None},
        ))

    return transactions, warnings


def parse_pdf(content: bytes, bank_hint: Optional[str] = None) -> ParseResult:
    text, table_rows = read_pdf(content)

    fmt = resolve_format(bank_hint, text)
    period_start, period_end = find_period(text, fmt.date_formats)
    account_number = find_account_number(text)
    metadata = {
        "bank_name": fmt.name,
        "account_number": account_number,
        "period_start": period_start,
        "period_end": period_end,
    }

    warnings: list[str] = []

    # Pass 1: tables
    if table_rows:
        result = extract_table(table_rows, bank_hint, preamble=text)
        if result.success and result.transactions:
            return result.model_copy(update={
                **metadata,
                "bank_name": result.bank_name or fmt.name,
                "account_number": result.account_number or account_number,
            })
        warnings.extend(result.warnings)

    # Pass 2: text lines
    transactions = parse_text_lines(text, fmt.date_formats)
    if transactions:
        return ParseResult(success=True, transactions=transactions, warnings=warnings, **metadata)

    # Pass 3: Claude
    if claude.is_enabled():
        logger.info("No readable layout in PDF, falling back to AI extraction")
        payload = claude.extract_statement(text)
        if payload:
            transactions, ai_warnings = _from_ai_payload(payload, fmt.date_formats)
            if transactions:
                return ParseResult(
                    success=True,
                    transactions=transactions,
                    bank_name=payload.get("bank_name") or fmt.name,
                    account_number=mask_account_number(str(payload.get("account_number") or "")) or account_number,
                    period_start=parse_date(payload.get("period_start")) or period_start,
                    period_end=parse_date(payload.get("period_end")) or period_end,
                    warnings=warnings + ai_warnings,
                )

    return ParseResult.failed(NO_TRANSACTIONS_ERROR, warnings)
