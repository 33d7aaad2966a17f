# app/routers/health.py

from fastapi import APIRouter, Depends

from app.config import get_settings
from app.core.session import SessionRegistry
from app.dependencies import get_session_registry

settings = get_settings()
router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "receiving-api",
    }


@router.get("/ready")
async def readiness_check(registry: SessionRegistry = Depends(get_session_registry)):
    """Readiness check with the feature flags this process runs with."""
    return {
        "status": "ready",
        "open_sessions": len(registry),
        "features": {
            "assisted_matching": settings.enable_assisted_matching,
            "receipt_ocr": settings.enable_receipt_ocr,
        },
    }
