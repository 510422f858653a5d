# app/routers/bank_import.py

"""
Bank statement import routes.

Upload a statement, browse import history, and undo an import.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from app.core.exceptions import (
    BatchFatalError,
    BatchNotFound,
    FileTooLarge,
    FileTypeUnsupported,
    ParseFailure,
    StoreError,
    UndoRejected,
)
from app.core.importer import ImportOrchestrator
from app.dependencies import get_current_user, get_orchestrator
from app.models import StatementFile

router = APIRouter()


# ============================================
# Upload
# ============================================

@router.post("/upload")
def upload_statement(
    file: UploadFile = File(...),
    bank: Optional[str] = Form(None, description="Bank hint, e.g. gtbank, access, zenith"),
    user_id: str = Depends(get_current_user),
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
):
    """
    Import a bank statement (CSV, Excel or PDF).

    Expenses are created for outflows; inflows mark a matching invoice paid
    or become a new paid invoice.
    """
    statement = StatementFile(
        file_name=file.filename or "statement",
        content=file.file.read(),
        content_type=file.content_type,
    )

    try:
        result = orchestrator.run(user_id, statement, bank_hint=bank)
    except FileTooLarge as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=e.message)
    except FileTypeUnsupported as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ParseFailure as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": e.message, "batch_id": e.batch_id, "warnings": e.details.get("warnings", [])},
        )
    except BatchFatalError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": f"Import failed: {e.message}", "batch_id": e.batch_id},
        )
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return result


# ============================================
# History
# ============================================

@router.get("")
def list_imports(
    user_id: str = Depends(get_current_user),
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the user's statement imports, newest first."""
    try:
        history = orchestrator.list_imports(user_id, limit=limit, offset=offset)
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return {
        "success": True,
        "imports": history.imports,
        "pagination": {
            "total": history.total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < history.total,
        },
    }


@router.get("/{batch_id}")
def get_import(
    batch_id: str,
    user_id: str = Depends(get_current_user),
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
):
    """One import with the expenses it created."""
    try:
        detail = orchestrator.get_import(batch_id, user_id)
    except BatchNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return {
        "success": True,
        "import": detail.batch,
        "expenses": detail.expenses,
    }


# ============================================
# Undo
# ============================================

@router.delete("/{batch_id}")
def undo_import(
    batch_id: str,
    user_id: str = Depends(get_current_user),
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
):
    """Undo an import: delete its expenses and invoices, restore matched invoices."""
    try:
        return orchestrator.undo(batch_id, user_id)
    except UndoRejected as e:
        if e.reason in ("not_found", "forbidden"):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
