# app/models/import_batch.py

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field

from app.core.exceptions import InvalidBatchTransition
from app.models.transaction import CategorizedTransaction


# ============================================
# Batch State Machine
# ============================================

class BatchStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNDONE = "undone"


ALLOWED_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PROCESSING: frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED}),
    BatchStatus.COMPLETED: frozenset({BatchStatus.UNDONE}),
    BatchStatus.FAILED: frozenset(),
    BatchStatus.UNDONE: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportBatch(BaseModel):
    """One run of the import pipeline over one uploaded file."""

    id: Optional[str] = None
    user_id: str
    file_name: str
    file_type: str
    file_size: int = 0

    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    total_transactions: int = 0
    imported_expenses: int = 0
    imported_income: int = 0
    skipped_transactions: int = 0

    status: BatchStatus = BatchStatus.PROCESSING
    error_message: Optional[str] = None

    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    undone_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def can_transition(self, target: BatchStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition(self, target: BatchStatus) -> None:
        """Move to ``target`` or raise InvalidBatchTransition."""
        if not self.can_transition(target):
            raise InvalidBatchTransition(
                f"Cannot move import batch from '{self.status.value}' to '{target.value}'",
                details={"batch_id": self.id, "from": self.status.value, "to": target.value},
            )
        self.status = target

    def complete(self) -> None:
        self.transition(BatchStatus.COMPLETED)
        self.completed_at = _utcnow()

    def fail(self, message: str) -> None:
        self.transition(BatchStatus.FAILED)
        self.error_message = message
        self.completed_at = _utcnow()

    def mark_undone(self) -> None:
        self.transition(BatchStatus.UNDONE)
        self.undone_at = _utcnow()

    @property
    def is_consistent(self) -> bool:
        """Count invariant for completed batches."""
        return (
            self.imported_expenses + self.imported_income + self.skipped_transactions
            == self.total_transactions
        )

    def to_record(self, *fields: str) -> dict[str, Any]:
        """Serialize for the store. With no fields, every column except id."""
        data = self.model_dump(mode="json", exclude={"id"})
        if fields:
            data = {k: data[k] for k in fields}
        return data


# ============================================
# Compensation Log
# ============================================

BatchActionType = Literal[
    "expense_created",
    "invoice_marked_paid",
    "invoice_created",
    "customer_created",
]


class BatchAction(BaseModel):
    """One reversible persistence step taken by an import batch."""

    id: Optional[str] = None
    batch_id: str
    user_id: str
    action: BatchActionType
    record_id: str
    previous_state: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


# ============================================
# API Response Models
# ============================================

class ImportSummary(BaseModel):
    total_transactions: int = 0
    imported_expenses: int = 0
    imported_income: int = 0
    skipped_transactions: int = 0
    new_invoices_created: int = 0
    invoices_marked_paid: int = 0


class ImportResult(BaseModel):
    """Response for a finished import."""

    success: bool
    batch_id: str
    summary: ImportSummary
    transactions: list[CategorizedTransaction] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class UndoResult(BaseModel):
    success: bool
    batch_id: str
    deleted_expenses: int = 0
    reverted_invoices: int = 0
    deleted_invoices: int = 0
    message: str = ""


class ImportDetail(BaseModel):
    """One import batch with the expenses it created."""

    batch: ImportBatch
    expenses: list[dict[str, Any]] = Field(default_factory=list)


class ImportHistory(BaseModel):
    imports: list[ImportBatch] = Field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0
