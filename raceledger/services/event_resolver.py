"""
Event resolution: find (or create) the race a session belongs to.
"""
from datetime import date
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from raceledger.core.logging import get_logger
from raceledger.models.enums import RaceStatus
from raceledger.models.league import Race, Season, Track
from raceledger.services import queries
from raceledger.services.lookups import canonical_track_name, normalize_track_name, track_aliases

logger = get_logger(__name__)

EventStrategy = Callable[[list[Race], str], Race | None]


def match_track_name(candidates: list[Race], track_name: str) -> Race | None:
    """Case-normalized exact match on the race's track name."""
    key = normalize_track_name(track_name)
    if not key:
        return None
    return next((race for race in candidates if normalize_track_name(race.track.name) == key), None)


def match_track_alias(candidates: list[Race], track_name: str) -> Race | None:
    """Retry the exact match with every known alias of the circuit."""
    for alias in track_aliases(track_name):
        race = match_track_name(candidates, alias)
        if race is not None:
            logger.info(f"Matched track {track_name!r} through alias {alias!r}")
            return race
    return None


EVENT_STRATEGIES: tuple[EventStrategy, ...] = (match_track_name, match_track_alias)


def _candidate_races(db: Session, season_id: int | None) -> list[Race]:
    """Open races of the given season, or of any active season."""
    stmt = (
        select(Race)
        .join(Race.season)
        .options(joinedload(Race.track))
        .where(Race.status.in_([RaceStatus.SCHEDULED.value, RaceStatus.COMPLETED.value]))
    )
    if season_id is not None:
        stmt = stmt.where(Race.season_id == season_id)
    else:
        stmt = stmt.where(Season.is_active.is_(True))

    races = list(db.execute(stmt).scalars().unique().all())
    # Scheduled events first, then by date
    races.sort(key=lambda r: (
        r.status != RaceStatus.SCHEDULED.value,
        r.race_date is None,
        r.race_date or date.min,
        r.id,
    ))
    return races


def find_or_create_track(db: Session, track_name: str) -> Track:
    """Reuse a track known under this name or any alias; otherwise create it."""
    for name in [track_name, *track_aliases(track_name)]:
        track = queries.find_track_by_name(db, name)
        if track is not None:
            return track

    track = Track(name=canonical_track_name(track_name))
    db.add(track)
    db.flush()
    logger.info(f"Created track {track.name!r}")
    return track


def resolve_event(
    db: Session,
    track_name: str,
    season_id: int | None = None,
    race_date: date | None = None
) -> int | None:
    """
    Find the race for a session's track.

    Args:
        db: Database session
        track_name: Free-text track name from the simulator
        season_id: Season to search and, if nothing matches, create the race in
        race_date: Date for a newly created race (default today)

    Returns:
        Race ID, or None when nothing matches and no season was given
    """
    candidates = _candidate_races(db, season_id)

    for strategy in EVENT_STRATEGIES:
        race = strategy(candidates, track_name)
        if race is not None:
            return race.id

    if season_id is None:
        logger.warning(f"No event found for track {track_name!r} and no season to create one in")
        return None

    queries.get_season_by_id(db, season_id)
    track = find_or_create_track(db, track_name)
    race = Race(
        season_id=season_id,
        track_id=track.id,
        race_date=race_date or date.today(),
        status=RaceStatus.COMPLETED.value,
    )
    db.add(race)
    db.flush()
    logger.info(f"Created race {race.id} at {track.name!r} in season {season_id}")
    return race.id
