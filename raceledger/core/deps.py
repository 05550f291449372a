# raceledger/core/deps.py
"""FastAPI dependencies."""
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from raceledger.config import Settings, get_settings
from raceledger.db import SessionLocal, get_db
from raceledger.services.backups import BackupService
from raceledger.services.edit_ledger import EditLedger
from raceledger.services.league import LeagueService
from raceledger.services.notifications import WebSocketNotifier
from raceledger.services.orphans import OrphanHandler
from raceledger.services.session_importer import SessionImporter


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    yield from get_db()


def get_app_settings() -> Settings:
    """Get application settings dependency."""
    return get_settings()


def get_session_factory() -> sessionmaker:
    """Get the session factory services open their transactions from."""
    return SessionLocal


@lru_cache()
def get_notifier() -> WebSocketNotifier:
    """Process-wide notifier shared by services and the realtime endpoint."""
    return WebSocketNotifier()


def get_orphan_handler(
    session_factory: sessionmaker = Depends(get_session_factory),
    notifier: WebSocketNotifier = Depends(get_notifier),
) -> OrphanHandler:
    return OrphanHandler(session_factory, notifier)


def get_importer(
    session_factory: sessionmaker = Depends(get_session_factory),
    notifier: WebSocketNotifier = Depends(get_notifier),
    orphan_handler: OrphanHandler = Depends(get_orphan_handler),
    settings: Settings = Depends(get_app_settings),
) -> SessionImporter:
    return SessionImporter(session_factory, notifier, orphan_handler, settings)


def get_edit_ledger(session_factory: sessionmaker = Depends(get_session_factory)) -> EditLedger:
    return EditLedger(session_factory)


def get_backup_service(session_factory: sessionmaker = Depends(get_session_factory)) -> BackupService:
    return BackupService(session_factory)


def get_league_service(session_factory: sessionmaker = Depends(get_session_factory)) -> LeagueService:
    return LeagueService(session_factory)
