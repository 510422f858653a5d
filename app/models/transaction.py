# app/models/transaction.py

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    """Economic nature of a bank statement line."""

    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"
    UNKNOWN = "unknown"


class RawTransaction(BaseModel):
    """A single statement line, normalized to negative-outflow / positive-inflow."""

    transaction_date: date
    description: str
    amount: float
    reference: Optional[str] = None
    balance: Optional[float] = None
    raw_data: dict[str, str] = Field(default_factory=dict)

    class Config:
        frozen = True

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0


class CategorizedTransaction(RawTransaction):
    """A statement line after categorization, plus its import outcome."""

    type: TransactionType = TransactionType.UNKNOWN
    category: Optional[str] = None
    vendor_name: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    # Outcome (set once by the orchestrator)
    imported: bool = False
    imported_record_id: Optional[str] = None
    matched_invoice_id: Optional[str] = None
    error: Optional[str] = None

    def with_outcome(
        self,
        imported: bool,
        imported_record_id: Optional[str] = None,
        matched_invoice_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> "CategorizedTransaction":
        """Return a copy carrying the terminal import outcome."""
        return self.model_copy(update={
            "imported": imported,
            "imported_record_id": imported_record_id,
            "matched_invoice_id": matched_invoice_id,
            "error": error,
        })

    def skipped(self, reason: str) -> "CategorizedTransaction":
        return self.with_outcome(imported=False, error=reason)
