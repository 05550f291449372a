"""
Orphaned sessions: payloads that matched no event, kept for admin disposition.
"""
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from raceledger.core.exceptions import ConflictError
from raceledger.core.logging import get_logger
from raceledger.db import session_scope
from raceledger.models.base import utcnow
from raceledger.models.enums import OrphanStatus
from raceledger.models.results import OrphanedSession
from raceledger.schemas.results import OrphanedSessionSchema
from raceledger.schemas.session import DriverResultPayload, SessionInfo
from raceledger.services import queries
from raceledger.services.notifications import ORPHANED_SESSION, NotificationSink

logger = get_logger(__name__)


class OrphanHandler:
    """Stores unmatched sessions and moves them through pending → processed / ignored."""

    def __init__(self, session_factory: sessionmaker, notifier: NotificationSink):
        self.session_factory = session_factory
        self.notifier = notifier

    def handle_orphaned_session(
        self,
        session_info: SessionInfo,
        driver_results: list[DriverResultPayload]
    ) -> int:
        """Persist the full payload as a pending orphan and notify admins."""
        session_data = {
            "sessionInfo": session_info.model_dump(mode="json", by_alias=True),
            "driverResults": [r.model_dump(mode="json", by_alias=True) for r in driver_results],
        }
        with session_scope(self.session_factory) as db:
            orphan = OrphanedSession(
                track_name=session_info.track_name,
                session_type=int(session_info.session_type),
                session_data=session_data,
                session_time=utcnow(),
                status=OrphanStatus.PENDING.value,
            )
            db.add(orphan)
            db.flush()
            orphan_id = orphan.id
            session_time = orphan.session_time

        logger.warning(f"📝 Orphaned session {orphan_id} stored for admin review ({session_info.track_name})")
        try:
            self.notifier.publish(ORPHANED_SESSION, {
                "orphanId": orphan_id,
                "trackName": session_info.track_name,
                "sessionType": int(session_info.session_type),
                "sessionName": session_info.display_name,
                "timestamp": session_time.isoformat(),
            })
        except Exception as e:
            logger.error(f"❌ Error publishing {ORPHANED_SESSION} for orphan {orphan_id}: {e}")
        return orphan_id

    def process_orphaned_session(self, orphan_id: int, race_id: int) -> OrphanedSessionSchema:
        """Mark a pending orphan as processed and link it to the chosen race."""
        with session_scope(self.session_factory) as db:
            orphan = queries.get_orphaned_session(db, orphan_id)
            queries.get_race_by_id(db, race_id)
            self._require_pending(orphan)
            orphan.status = OrphanStatus.PROCESSED.value
            orphan.processed_race_id = race_id
            db.flush()
            result = OrphanedSessionSchema.model_validate(orphan)

        logger.info(f"✅ Orphaned session {orphan_id} linked to race {race_id}")
        return result

    def ignore_orphaned_session(self, orphan_id: int) -> OrphanedSessionSchema:
        """Mark a pending orphan as ignored."""
        with session_scope(self.session_factory) as db:
            orphan = queries.get_orphaned_session(db, orphan_id)
            self._require_pending(orphan)
            orphan.status = OrphanStatus.IGNORED.value
            db.flush()
            result = OrphanedSessionSchema.model_validate(orphan)

        logger.info(f"Orphaned session {orphan_id} ignored")
        return result

    def list_orphaned_sessions(self, status: OrphanStatus | None = None) -> list[OrphanedSessionSchema]:
        with session_scope(self.session_factory) as db:
            stmt = select(OrphanedSession).order_by(OrphanedSession.session_time.desc(), OrphanedSession.id.desc())
            if status is not None:
                stmt = stmt.where(OrphanedSession.status == status.value)
            return [OrphanedSessionSchema.model_validate(o) for o in db.execute(stmt).scalars()]

    @staticmethod
    def _require_pending(orphan: OrphanedSession) -> None:
        if orphan.status != OrphanStatus.PENDING.value:
            raise ConflictError(f"Orphaned session {orphan.id} is already {orphan.status}")
