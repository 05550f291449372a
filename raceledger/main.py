"""
Race Ledger - FastAPI Application
"""
# raceledger/main.py
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from raceledger.config import get_settings
from raceledger.core.deps import get_notifier
from raceledger.core.logging import setup_logging, get_logger

import raceledger.routers.health as health
import raceledger.routers.sessions as sessions
import raceledger.routers.results as results
import raceledger.routers.backups as backups
import raceledger.routers.orphans as orphans
import raceledger.routers.seasons as seasons
import raceledger.routers.members as members
import raceledger.routers.realtime as realtime


settings = get_settings()

# Setup logging
setup_logging(settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"Reject duplicate session UIDs: {settings.reject_duplicate_sessions}")
    logger.info("=" * 60)

    get_notifier().attach_loop(asyncio.get_running_loop())

    yield

    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Race Ledger API

    Features:
    - Import of finished sim-racing sessions with event and driver resolution
    - Audited result edits (penalties, positions, disqualifications, member mapping) with revert
    - Backups, restore and reset to the imported results
    - Orphaned session review and season standings
    - Live notifications via WebSocket
    """,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(results.router)
app.include_router(backups.router)
app.include_router(orphans.router)
app.include_router(seasons.router)
app.include_router(members.router)
app.include_router(realtime.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "raceledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
