"""
Health check endpoints
"""

from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assembly_factory.config.settings import get_settings
from assembly_factory.core.database import get_db
from assembly_factory.core.parts_catalog import parts_catalog

router = APIRouter()
settings = get_settings()


@router.get("/")
async def health_check() -> Dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)) -> Dict[str, Union[str, bool, int]]:
    """Readiness check including database connectivity and catalog state."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"

    return {
        "status": "ready" if db_status == "connected" else "not ready",
        "database": db_status,
        "catalog_loaded": parts_catalog.is_loaded,
        "catalog_parts": len(parts_catalog.list()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
