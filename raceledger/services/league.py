"""
League administration: seasons, races, members and driver mappings.
"""
from datetime import date

from sqlalchemy import or_, select, update
from sqlalchemy.orm import sessionmaker

from raceledger.core.exceptions import NotFoundError, ValidationError
from raceledger.core.logging import get_logger
from raceledger.db import session_scope
from raceledger.models.enums import RaceStatus
from raceledger.models.league import DriverMapping, Member, Race, Season
from raceledger.schemas.league import (
    DriverMappingCreate,
    DriverMappingSchema,
    MemberSchema,
    RaceSchema,
    SeasonCreate,
    SeasonSchema,
)
from raceledger.services import queries
from raceledger.services.event_resolver import find_or_create_track

logger = get_logger(__name__)


def _race_schema(race: Race) -> RaceSchema:
    return RaceSchema(
        id=race.id,
        season_id=race.season_id,
        track_id=race.track_id,
        track_name=race.track.name,
        race_date=race.race_date,
        status=race.status,
    )


class LeagueService:
    """CRUD for the league entities the importer resolves against."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # === Seasons ===

    def create_season(self, data: SeasonCreate) -> SeasonSchema:
        with session_scope(self.session_factory) as db:
            if data.is_active:
                db.execute(update(Season).values(is_active=False))
            season = Season(**data.model_dump())
            db.add(season)
            db.flush()
            logger.info(f"Created season {season.id} ({season.name})")
            return SeasonSchema.model_validate(season)

    def set_active_season(self, season_id: int) -> SeasonSchema:
        """Activate one season and deactivate all others."""
        with session_scope(self.session_factory) as db:
            season = queries.get_season_by_id(db, season_id)
            db.execute(update(Season).where(Season.id != season_id).values(is_active=False))
            season.is_active = True
            db.flush()
            logger.info(f"✅ Season {season_id} is now active")
            return SeasonSchema.model_validate(season)

    def get_active_season(self) -> SeasonSchema | None:
        with session_scope(self.session_factory) as db:
            season = db.execute(
                select(Season).where(Season.is_active.is_(True)).order_by(Season.id.desc()).limit(1)
            ).scalar_one_or_none()
            return SeasonSchema.model_validate(season) if season else None

    def delete_season(self, season_id: int) -> None:
        """Delete a season with its races, sessions and mappings."""
        with session_scope(self.session_factory) as db:
            season = queries.get_season_by_id(db, season_id)
            db.delete(season)
            logger.info(f"Deleted season {season_id}")

    # === Races ===

    def create_race(self, season_id: int, track_name: str, race_date: date | None = None) -> RaceSchema:
        """Schedule a race; the track is reused by name or alias when known."""
        with session_scope(self.session_factory) as db:
            queries.get_season_by_id(db, season_id)
            track = find_or_create_track(db, track_name)
            race = Race(
                season_id=season_id,
                track_id=track.id,
                race_date=race_date,
                status=RaceStatus.SCHEDULED.value,
            )
            db.add(race)
            db.flush()
            logger.info(f"Scheduled race {race.id} at {track.name!r} in season {season_id}")
            return _race_schema(race)

    def list_races(self, season_id: int) -> list[RaceSchema]:
        with session_scope(self.session_factory) as db:
            season = queries.get_season_by_id(db, season_id)
            races = sorted(season.races, key=lambda r: (r.race_date or date.max, r.id))
            return [_race_schema(r) for r in races]

    # === Members ===

    def create_member(self, name: str, steam_id: str | None = None) -> MemberSchema:
        if not name or not name.strip():
            raise ValidationError("Member name is required")
        with session_scope(self.session_factory) as db:
            member = Member(name=name.strip(), steam_id=steam_id)
            db.add(member)
            db.flush()
            logger.info(f"Created member {member.id} ({member.name})")
            return MemberSchema.model_validate(member)

    # === Driver mappings ===

    def create_driver_mapping(self, season_id: int, data: DriverMappingCreate) -> DriverMappingSchema:
        """
        Bind a simulator identity to a member for a season.

        An active mapping in the same season with the same network id or
        steam id is deactivated first, so each identity has at most one.

        Args:
            season_id: Season the mapping applies to
            data: Member and simulator identity

        Returns:
            The new mapping
        """
        with session_scope(self.session_factory) as db:
            queries.get_season_by_id(db, season_id)
            queries.get_member_by_id(db, data.member_id)

            same_identity = []
            if data.network_id is not None:
                same_identity.append(DriverMapping.network_id == data.network_id)
            if data.steam_id:
                same_identity.append(DriverMapping.steam_id == data.steam_id)
            if same_identity:
                superseded = db.execute(
                    select(DriverMapping)
                    .where(DriverMapping.season_id == season_id)
                    .where(DriverMapping.is_active.is_(True))
                    .where(or_(*same_identity))
                ).scalars().all()
                for previous in superseded:
                    previous.is_active = False
                    logger.info(f"Deactivated driver mapping {previous.id} (superseded)")
                db.flush()

            mapping = DriverMapping(season_id=season_id, is_active=True, **data.model_dump())
            db.add(mapping)
            db.flush()
            logger.info(
                f"👤 Mapped {mapping.sim_driver_name or mapping.network_id or mapping.steam_id!r} "
                f"to member {mapping.member_id} in season {season_id}"
            )
            return DriverMappingSchema.model_validate(mapping)

    def deactivate_driver_mapping(self, mapping_id: int) -> DriverMappingSchema:
        with session_scope(self.session_factory) as db:
            mapping = db.get(DriverMapping, mapping_id)
            if mapping is None:
                raise NotFoundError(f"Driver mapping {mapping_id} not found")
            mapping.is_active = False
            db.flush()
            logger.info(f"Deactivated driver mapping {mapping_id}")
            return DriverMappingSchema.model_validate(mapping)
