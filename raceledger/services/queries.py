"""
Common database query functions.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session

from raceledger.core.exceptions import NotFoundError
from raceledger.models.league import Member, Race, Season, Track
from raceledger.models.results import (
    DriverSessionResult,
    RaceBackup,
    RaceEditHistory,
    SessionResult,
    OrphanedSession,
)
from raceledger.services.lookups import normalize_track_name


def get_race_by_id(db: Session, race_id: int) -> Race:
    """Get race by ID."""
    race = db.get(Race, race_id)
    if not race:
        raise NotFoundError(f"Race {race_id} not found")
    return race


def get_season_by_id(db: Session, season_id: int) -> Season:
    """Get season by ID."""
    season = db.get(Season, season_id)
    if not season:
        raise NotFoundError(f"Season {season_id} not found")
    return season


def get_member_by_id(db: Session, member_id: int) -> Member:
    """Get member by ID."""
    member = db.get(Member, member_id)
    if not member:
        raise NotFoundError(f"Member {member_id} not found")
    return member


def get_session_result(db: Session, session_result_id: int) -> SessionResult:
    """Get session result by ID."""
    session_result = db.get(SessionResult, session_result_id)
    if not session_result:
        raise NotFoundError(f"Session {session_result_id} not found")
    return session_result


def get_driver_result(
    db: Session,
    driver_result_id: int,
    session_result_id: int | None = None
) -> DriverSessionResult:
    """Get a driver entry, optionally checking that it belongs to the given session."""
    driver_result = db.get(DriverSessionResult, driver_result_id)
    if not driver_result or (
        session_result_id is not None and driver_result.session_result_id != session_result_id
    ):
        raise NotFoundError(f"Driver session result {driver_result_id} not found")
    return driver_result


def get_session_driver_results(db: Session, session_result_id: int) -> list[DriverSessionResult]:
    """Get a session's current rows ordered by position, unclassified last."""
    stmt = (
        select(DriverSessionResult)
        .where(DriverSessionResult.session_result_id == session_result_id)
        .order_by(DriverSessionResult.position.nulls_last(), DriverSessionResult.id)
    )
    return list(db.execute(stmt).scalars().all())


def get_race_sessions(db: Session, race_id: int) -> list[SessionResult]:
    """Get all sessions of a race in import order."""
    stmt = (
        select(SessionResult)
        .where(SessionResult.race_id == race_id)
        .order_by(SessionResult.id)
    )
    return list(db.execute(stmt).scalars().all())


def get_session_by_uid(db: Session, session_uid: str) -> SessionResult | None:
    """Find an already-imported session by its external identifier."""
    stmt = (
        select(SessionResult)
        .where(SessionResult.session_uid == session_uid)
        .order_by(SessionResult.id)
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def get_edit(db: Session, edit_id: int) -> RaceEditHistory:
    """Get history entry by ID."""
    edit = db.get(RaceEditHistory, edit_id)
    if not edit:
        raise NotFoundError(f"Edit {edit_id} not found")
    return edit


def get_backup(db: Session, backup_id: int) -> RaceBackup:
    """Get backup by ID."""
    backup = db.get(RaceBackup, backup_id)
    if not backup:
        raise NotFoundError(f"Backup {backup_id} not found")
    return backup


def get_orphaned_session(db: Session, orphan_id: int) -> OrphanedSession:
    """Get orphaned session by ID."""
    orphan = db.get(OrphanedSession, orphan_id)
    if not orphan:
        raise NotFoundError(f"Orphaned session {orphan_id} not found")
    return orphan


def find_track_by_name(db: Session, track_name: str) -> Track | None:
    """Case-insensitive track lookup."""
    key = normalize_track_name(track_name)
    if not key:
        return None
    for track in db.execute(select(Track)).scalars():
        if normalize_track_name(track.name) == key:
            return track
    return None
