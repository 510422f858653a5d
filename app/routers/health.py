# app/routers/health.py

from fastapi import APIRouter

from app.integrations import claude

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "statement-reconciler",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check - reports which optional services are configured."""
    return {
        "status": "ready",
        "checks": {
            "database": "ok",
            "ai_pdf_extraction": "enabled" if claude.is_enabled() else "disabled",
        }
    }
