# raceledger/routers/health.py
"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from raceledger.config import Settings
from raceledger.core.deps import get_app_settings, get_db_session
from raceledger.core.logging import get_logger

router = APIRouter(tags=["Health"])

logger = get_logger(__name__)


@router.get("/health")
def health(
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Report application version and database reachability."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"❌ Database health check failed: {e}")
        database = "unavailable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "database": database,
    }
