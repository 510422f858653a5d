# app/models/__init__.py

from app.models.transaction import (
    TransactionType,
    RawTransaction,
    CategorizedTransaction,
)
from app.models.statement import (
    FileType,
    StatementFile,
    ParseResult,
)
from app.models.match import (
    ConfidenceBreakdown,
    MatchType,
    MatchResult,
    OperationResult,
)
from app.models.import_batch import (
    BatchStatus,
    ALLOWED_TRANSITIONS,
    ImportBatch,
    BatchAction,
    BatchActionType,
    ImportSummary,
    ImportResult,
    UndoResult,
    ImportDetail,
    ImportHistory,
)

__all__ = [
    # Transaction
    "TransactionType",
    "RawTransaction",
    "CategorizedTransaction",
    # Statement
    "FileType",
    "StatementFile",
    "ParseResult",
    # Match
    "ConfidenceBreakdown",
    "MatchType",
    "MatchResult",
    "OperationResult",
    # Import batch
    "BatchStatus",
    "ALLOWED_TRANSITIONS",
    "ImportBatch",
    "BatchAction",
    "BatchActionType",
    "ImportSummary",
    "ImportResult",
    "UndoResult",
    "ImportDetail",
    "ImportHistory",
]
