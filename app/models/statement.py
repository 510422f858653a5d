# app/models/statement.py

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from app.models.transaction import RawTransaction


class FileType(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"
    PDF = "pdf"


class StatementFile(BaseModel):
    """An uploaded statement as received from the HTTP boundary."""

    file_name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class ParseResult(BaseModel):
    """Outcome of parsing one statement file."""

    success: bool
    transactions: list[RawTransaction] = Field(default_factory=list)
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def failed(cls, error: str, warnings: Optional[list[str]] = None) -> "ParseResult":
        return cls(success=False, error=error, warnings=warnings or [])
