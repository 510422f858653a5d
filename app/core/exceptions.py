# app/core/exceptions.py

"""
Exceptions raised by the import pipeline.

Per-transaction problems never escape the orchestrator loop; everything
defined here is either a batch-level failure or a rejected request.
"""

from typing import Any, Optional


class ReconcilerError(Exception):
    """Base exception for all statement import errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================
# File validation (raised before a batch exists)
# ============================================

class FileRejected(ReconcilerError):
    """The uploaded file cannot be imported at all."""


class FileTypeUnsupported(FileRejected):
    """File type could not be detected or is not a supported statement format."""


class FileTooLarge(FileRejected):
    """File exceeds the configured upload limit."""


# ============================================
# Batch-level failures
# ============================================

class ParseFailure(ReconcilerError):
    """Statement could not be parsed or contained no transactions."""

    def __init__(self, message: str, batch_id: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.batch_id = batch_id


class BatchFatalError(ReconcilerError):
    """Unexpected failure outside the per-transaction loop."""

    def __init__(self, message: str, batch_id: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.batch_id = batch_id


class InvalidBatchTransition(ReconcilerError):
    """Attempted an illegal import batch status change."""


class UndoRejected(ReconcilerError):
    """Undo request refused. No records were touched."""

    def __init__(self, message: str, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.reason = reason


# ============================================
# Persistence
# ============================================

class StoreError(ReconcilerError):
    """A read or write against the data store failed."""


class BatchNotFound(ReconcilerError):
    """Import batch does not exist or belongs to another user."""
