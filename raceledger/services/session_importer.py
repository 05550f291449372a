"""
Session import: one atomic transaction from payload to stored results.

Steps:
    1. resolve (or reuse) the race, else route to the orphan handler
    2. resolve driver identities in one batch
    3. reject an already-imported session UID
    4. create the SessionResult
    5. write the immutable OriginalSessionResult snapshot
    6. write the current DriverSessionResult rows
    7. mark the race completed for a Race session
then, after commit, recalculate standings (best effort) and notify.
"""
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from raceledger.config import Settings, get_settings
from raceledger.core.exceptions import (
    DuplicateSessionError,
    EventResolutionError,
    PersistenceError,
    RaceLedgerException,
    ValidationError,
)
from raceledger.core.logging import get_logger
from raceledger.db import session_scope
from raceledger.models.enums import RaceStatus, SessionType
from raceledger.models.results import (
    DriverSessionResult,
    OriginalSessionResult,
    SessionError,
    SessionResult,
)
from raceledger.schemas.results import ImportResultSchema
from raceledger.schemas.session import DriverResultPayload, SessionInfo, check_unique_positions
from raceledger.services import queries
from raceledger.services.event_resolver import resolve_event
from raceledger.services.identity_resolver import RawIdentity, ResolvedIdentity, resolve_identities
from raceledger.services.notifications import SESSION_COMPLETED, NotificationSink
from raceledger.services.orphans import OrphanHandler
from raceledger.services.serializers import serialize_driver_result
from raceledger.services.standings import calculate_season_standings, log_standings

logger = get_logger(__name__)


def build_result_values(result: DriverResultPayload, identity: ResolvedIdentity) -> dict[str, Any]:
    """Column values shared by the snapshot row and the current row."""
    return {
        "member_id": identity.member_id,
        "position": result.position,
        "grid_position": result.grid_position,
        "points": result.points,
        "num_laps": result.num_laps,
        "best_lap_time_ms": result.best_lap_time_ms,
        "sector1_time_ms": result.sector1_time_ms,
        "sector2_time_ms": result.sector2_time_ms,
        "sector3_time_ms": result.sector3_time_ms,
        "total_race_time_ms": result.total_race_time_ms,
        "penalties": result.penalties,
        "warnings": result.warnings,
        "result_status": result.result_status.value,
        "dnf_reason": result.dnf_reason,
        "fastest_lap": result.fastest_lap,
        "pole_position": result.pole_position,
        "sim_driver_name": result.driver_name,
        "sim_car_number": result.car_number,
        "sim_team_name": result.team_name,
        "network_id": result.network_id,
        "steam_id": result.steam_id,
    }


class SessionImporter:
    """Orchestrates imports. Each call runs in its own transaction."""

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: NotificationSink,
        orphan_handler: OrphanHandler | None = None,
        settings: Settings | None = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.orphan_handler = orphan_handler or OrphanHandler(session_factory, notifier)
        self.settings = settings or get_settings()

    def import_session(
        self,
        session_info: SessionInfo,
        driver_results: list[DriverResultPayload],
        race_id: int | None = None,
        season_id: int | None = None
    ) -> ImportResultSchema:
        """
        Import one finished session.

        Args:
            session_info: Track, session type and optional external UID
            driver_results: Final classification rows
            race_id: Known race to attach to; skips event resolution
            season_id: Season used to create a race when no event matches

        Returns:
            ImportResultSchema with race and session result IDs

        Raises:
            ValidationError: empty results or duplicate classified positions
            NotFoundError: unknown race_id or season_id
            DuplicateSessionError: session UID already imported
            EventResolutionError: no event found; the payload was stored as an orphan
            PersistenceError: the store failed; nothing was written
        """
        if not driver_results:
            raise ValidationError("No final results provided")
        try:
            check_unique_positions(driver_results)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        logger.info(
            f"🏁 Importing {session_info.display_name} at {session_info.track_name!r} "
            f"({len(driver_results)} drivers)"
        )

        try:
            with session_scope(self.session_factory) as db:
                persisted = self._persist(db, session_info, driver_results, race_id, season_id)
        except RaceLedgerException:
            raise
        except Exception as e:
            logger.error(f"❌ Error importing session at {session_info.track_name!r}: {e}")
            self._log_session_error(e, session_info, driver_results)
            raise PersistenceError(f"Session import failed: {e}") from e

        if persisted is None:
            orphan_id = self.orphan_handler.handle_orphaned_session(session_info, driver_results)
            raise EventResolutionError(session_info.track_name, orphan_id)

        resolved_race_id, race_season_id, session_result_id, rows = persisted
        logger.info(f"✅ Stored session result {session_result_id} for race {resolved_race_id}")

        self._recalculate_standings(race_season_id)
        self._notify(resolved_race_id, session_result_id, session_info, rows)

        return ImportResultSchema(race_id=resolved_race_id, session_result_id=session_result_id)

    def _persist(
        self,
        db: Session,
        session_info: SessionInfo,
        driver_results: list[DriverResultPayload],
        race_id: int | None,
        season_id: int | None
    ) -> tuple[int, int, int, list[dict[str, Any]]] | None:
        # Step 1: race
        if race_id is not None:
            race = queries.get_race_by_id(db, race_id)
        else:
            resolved = resolve_event(db, session_info.track_name, season_id)
            if resolved is None:
                return None
            race = queries.get_race_by_id(db, resolved)

        # Step 2: identities
        identities = resolve_identities(
            db, race.season_id, [RawIdentity.from_payload(r) for r in driver_results]
        )

        # Step 3: duplicate guard
        if session_info.session_uid and self.settings.reject_duplicate_sessions:
            existing = queries.get_session_by_uid(db, session_info.session_uid)
            if existing is not None:
                raise DuplicateSessionError(session_info.session_uid, existing.id)

        # Step 4: session row
        session_result = SessionResult(
            race_id=race.id,
            session_type=int(session_info.session_type),
            session_name=session_info.display_name,
            session_uid=session_info.session_uid,
        )
        db.add(session_result)
        db.flush()

        # Step 5: immutable snapshot, written before anything else can change
        values = [build_result_values(r, i) for r, i in zip(driver_results, identities)]
        originals = [OriginalSessionResult(session_result_id=session_result.id, **v) for v in values]
        db.add_all(originals)
        db.flush()

        # Step 6: current rows with identical values
        current = [
            DriverSessionResult(session_result_id=session_result.id, original_result_id=original.id, **v)
            for original, v in zip(originals, values)
        ]
        db.add_all(current)
        db.flush()

        # Step 7: race completion
        if session_info.session_type == SessionType.RACE:
            race.status = RaceStatus.COMPLETED.value
            logger.info(f"✅ Race {race.id} marked as completed")

        rows = []
        for row, identity in zip(current, identities):
            data = serialize_driver_result(row, include_penalties=False)
            data["mapped_driver_name"] = identity.mapped_driver_name
            data["mapped_car_number"] = identity.mapped_car_number
            rows.append(data)

        return race.id, race.season_id, session_result.id, rows

    def _recalculate_standings(self, season_id: int) -> None:
        """Best effort: results are already committed."""
        try:
            with session_scope(self.session_factory) as db:
                standings = calculate_season_standings(db, season_id)
            log_standings(standings, top=self.settings.standings_log_top)
        except Exception as e:
            logger.error(f"❌ Error recalculating standings for season {season_id}: {e}")

    def _notify(
        self,
        race_id: int,
        session_result_id: int,
        session_info: SessionInfo,
        rows: list[dict[str, Any]]
    ) -> None:
        try:
            self.notifier.publish(SESSION_COMPLETED, {
                "raceId": race_id,
                "sessionResultId": session_result_id,
                "sessionType": int(session_info.session_type),
                "sessionName": session_info.display_name,
                "results": rows,
            })
        except Exception as e:
            logger.error(f"❌ Error publishing {SESSION_COMPLETED} for session {session_result_id}: {e}")

    def _log_session_error(
        self,
        error: Exception,
        session_info: SessionInfo,
        driver_results: list[DriverResultPayload]
    ) -> None:
        """Record the failed payload in its own transaction."""
        payload = {
            "error": repr(error),
            "sessionInfo": session_info.model_dump(mode="json", by_alias=True),
            "driverResults": [r.model_dump(mode="json", by_alias=True) for r in driver_results],
        }
        logger.error(f"📝 Logging session error with payload: {payload}")
        try:
            with session_scope(self.session_factory) as db:
                db.add(SessionError(error_message=str(error) or error.__class__.__name__, session_data=payload))
        except Exception as e:
            logger.error(f"❌ Could not record session error: {e}")
