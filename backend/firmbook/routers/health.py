"""Health check endpoints for load balancers and monitoring."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from firmbook.config import settings
from firmbook.database import engine
from firmbook.documents import get_document_store
from firmbook.documents.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight liveness check (no store / DB round trip)."""
    return {
        "status": "ok",
        "service": "Firmbook",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(store: DocumentStore = Depends(get_document_store)):
    """Readiness check covering the document store and the activity-log DB.

    Returns 503 if either dependency is unreachable.
    """
    checks = {
        "service": "ok",
        "document_store": "unknown",
        "database": "unknown",
    }
    overall_healthy = True

    try:
        await store.ping()
        checks["document_store"] = "ok"
    except Exception as e:
        logger.warning("Readiness: document store check failed: %s", e)
        checks["document_store"] = f"error: {str(e)[:100]}"
        overall_healthy = False

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.warning("Readiness: database check failed: %s", e)
        checks["database"] = f"error: {str(e)[:100]}"
        overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if overall_healthy else "unhealthy",
            "service": "Firmbook",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
