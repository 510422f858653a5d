# app/dependencies.py

"""
FastAPI dependencies.

Validates Supabase JWTs and extracts user_id for all protected endpoints,
and hands routers the data store and import orchestrator.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.importer import ImportOrchestrator
from app.database import SupabaseStore, get_admin_client

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate the Supabase JWT and return the user_id.

    Uses the admin client's auth.get_user() to verify the token.
    This is a sync function -- FastAPI auto-runs it in a threadpool.
    """
    token = credentials.credentials

    try:
        user_response = get_admin_client().auth.get_user(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user_response is None or user_response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_response.user.id


def get_store() -> SupabaseStore:
    return SupabaseStore()


def get_orchestrator(store: SupabaseStore = Depends(get_store)) -> ImportOrchestrator:
    return ImportOrchestrator(store)
