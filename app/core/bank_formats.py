# app/core/bank_formats.py

"""
Known bank statement layouts.

Each format lists the header synonyms used to find its columns, the date
formats it prints, and the aliases used to spot the bank in statement
preamble text. Formats are data only; the table extractor does the work.
"""

from typing import Optional
import re

from pydantic import BaseModel, Field


class BankFormat(BaseModel):
    key: str
    name: str
    aliases: list[str] = Field(default_factory=list)

    date_columns: list[str]
    description_columns: list[str]
    amount_columns: list[str] = Field(default_factory=lambda: ["amount"])
    credit_columns: list[str] = Field(default_factory=list)
    debit_columns: list[str] = Field(default_factory=list)
    balance_columns: list[str] = Field(default_factory=list)
    reference_columns: list[str] = Field(
        default_factory=lambda: ["reference", "ref", "transaction id", "txn id", "trans ref"]
    )
    indicator_columns: list[str] = Field(
        default_factory=lambda: ["dr/cr", "cr/dr", "type", "indicator"]
    )

    date_formats: list[str]

    # Unsigned amount column that reports debits as positive numbers
    debits_positive: bool = False

    class Config:
        frozen = True


BANK_FORMATS: dict[str, BankFormat] = {
    "gtbank": BankFormat(
        key="gtbank",
        name="GTBank",
        aliases=["gtbank", "guaranty trust", "gtco"],
        date_columns=["transaction date", "trans. date", "txn date", "date"],
        description_columns=["description", "narration", "details", "remarks"],
        credit_columns=["credit", "credits", "cr"],
        debit_columns=["debit", "debits", "dr"],
        balance_columns=["balance", "running balance"],
        date_formats=["%d-%b-%Y", "%d/%m/%Y", "%Y-%m-%d", "%d-%b-%y"],
    ),
    "access": BankFormat(
        key="access",
        name="Access Bank",
        aliases=["access bank", "accessbank"],
        date_columns=["trans date", "transaction date", "posted date", "date"],
        description_columns=["narration", "description", "details"],
        credit_columns=["credit", "deposit"],
        debit_columns=["debit", "withdrawal"],
        balance_columns=["balance"],
        date_formats=["%d-%b-%Y", "%d/%m/%Y", "%d-%b-%y"],
    ),
    "firstbank": BankFormat(
        key="firstbank",
        name="First Bank",
        aliases=["first bank", "firstbank", "fbn"],
        date_columns=["trans date", "date", "value date"],
        description_columns=["narration", "description", "remarks"],
        credit_columns=["credit", "cr amount"],
        debit_columns=["debit", "dr amount"],
        balance_columns=["balance", "book balance"],
        date_formats=["%d/%m/%Y", "%d-%m-%Y", "%d-%b-%Y"],
    ),
    "uba": BankFormat(
        key="uba",
        name="UBA",
        aliases=["united bank for africa", "uba"],
        date_columns=["trans date", "posted date", "date"],
        description_columns=["narration", "description"],
        credit_columns=["credit"],
        debit_columns=["debit"],
        balance_columns=["balance"],
        date_formats=["%d-%b-%Y", "%d/%m/%Y", "%d-%b-%y"],
    ),
    "zenith": BankFormat(
        key="zenith",
        name="Zenith Bank",
        aliases=["zenith bank", "zenithbank", "zenith"],
        date_columns=["transaction date", "date posted", "value date", "date"],
        description_columns=["description", "narration"],
        credit_columns=["credit", "cr"],
        debit_columns=["debit", "dr"],
        balance_columns=["balance"],
        date_formats=["%d/%m/%Y", "%d-%b-%Y", "%d/%m/%y"],
    ),
    "card": BankFormat(
        key="card",
        name="Card Account",
        aliases=["card statement", "credit card", "card account"],
        date_columns=["transaction date", "posting date", "post date", "date"],
        description_columns=["description", "merchant", "details"],
        amount_columns=["amount", "transaction amount"],
        credit_columns=["payments", "credits"],
        debit_columns=["charges", "purchases"],
        balance_columns=["balance"],
        date_formats=["%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y"],
        debits_positive=True,
    ),
    "generic": BankFormat(
        key="generic",
        name="Generic",
        date_columns=["transaction date", "trans date", "posted date", "value date", "date"],
        description_columns=["description", "narration", "details", "remarks", "memo", "particulars"],
        amount_columns=["amount", "transaction amount"],
        credit_columns=["credit", "cr", "deposit", "money in", "paid in"],
        debit_columns=["debit", "dr", "withdrawal", "money out", "paid out"],
        balance_columns=["balance", "running balance", "available balance"],
        date_formats=["%d/%m/%Y", "%m/%d/%Y", "%Y-%m-%d", "%d-%b-%Y", "%d-%m-%Y", "%d %b %Y", "%d/%m/%y"],
    ),
}

GENERIC = BANK_FORMATS["generic"]


def get_bank_format(hint: Optional[str]) -> Optional[BankFormat]:
    """Resolve a user-supplied bank hint by key, name or alias."""
    if not hint:
        return None

    needle = hint.strip().lower()
    for fmt in BANK_FORMATS.values():
        if needle in (fmt.key, fmt.name.lower()) or needle in fmt.aliases:
            return fmt
    return None


def detect_bank_format(preamble: str) -> Optional[BankFormat]:
    """Find a bank whose alias appears in the text above the transaction table."""
    if not preamble:
        return None

    text = preamble.lower()
    for fmt in BANK_FORMATS.values():
        for alias in fmt.aliases:
            if re.search(rf"\b{re.escape(alias)}\b", text):
                return fmt
    return None
