"""Liveness and service info endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.dependencies import DbSession

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(db: DbSession):
    """Report whether the API and its database are reachable."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "message": "Database unavailable"},
        )
    return {"status": "healthy", "message": f"{get_settings().app_name} is running"}


@router.get("/")
async def root():
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "environment": settings.environment,
    }
