"""
Backups and resets.

A backup is a verbatim copy of a session's current rows and their penalties.
Restoring replaces the current rows wholesale. Resets copy the import snapshot
back onto the current rows.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from raceledger.core.exceptions import ConflictError, NotFoundError
from raceledger.core.logging import get_logger
from raceledger.db import session_scope
from raceledger.models.enums import EditType, ResultStatus
from raceledger.models.league import Member
from raceledger.models.results import (
    DriverSessionResult,
    OriginalSessionResult,
    Penalty,
    RaceBackup,
)
from raceledger.schemas.results import BackupSchema, EditHistorySchema
from raceledger.services import queries
from raceledger.services.edit_ledger import classified_conflict, history_schema, record_edit
from raceledger.services.serializers import (
    classification_values,
    result_field_values,
    serialize_driver_result,
    serialize_penalty,
)

logger = get_logger(__name__)


def _backup_schema(backup: RaceBackup) -> BackupSchema:
    return BackupSchema(
        id=backup.id,
        session_result_id=backup.session_result_id,
        created_at=backup.created_at,
        row_count=len((backup.backup_data or {}).get("rows", [])),
    )


def _restore_penalty(db: Session, data: dict[str, Any]) -> Penalty:
    penalty = Penalty(
        seconds=data["seconds"],
        reason=data.get("reason"),
        created_by=data.get("created_by"),
    )
    if data.get("created_at"):
        penalty.created_at = datetime.fromisoformat(data["created_at"])
    if db.get(Penalty, data["id"]) is None:
        penalty.id = data["id"]
    return penalty


class BackupService:
    """Backup, restore and reset-to-original for session results."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_backup(self, session_result_id: int) -> int:
        """
        Store the session's current rows verbatim.

        Returns:
            ID of the new backup
        """
        with session_scope(self.session_factory) as db:
            queries.get_session_result(db, session_result_id)
            rows = [serialize_driver_result(r) for r in queries.get_session_driver_results(db, session_result_id)]
            backup = RaceBackup(
                session_result_id=session_result_id,
                backup_data={"session_result_id": session_result_id, "rows": rows},
            )
            db.add(backup)
            db.flush()
            logger.info(f"💾 Created backup {backup.id} for session {session_result_id} ({len(rows)} rows)")
            return backup.id

    def list_backups(self, session_result_id: int) -> list[BackupSchema]:
        """A session's backups, newest first."""
        with session_scope(self.session_factory) as db:
            queries.get_session_result(db, session_result_id)
            stmt = (
                select(RaceBackup)
                .where(RaceBackup.session_result_id == session_result_id)
                .order_by(RaceBackup.created_at.desc(), RaceBackup.id.desc())
            )
            return [_backup_schema(b) for b in db.execute(stmt).scalars()]

    def restore_from_backup(self, backup_id: int, editor: str) -> EditHistorySchema:
        """
        Replace a session's current rows with a backup.

        Rows are re-inserted with their backed-up ids and penalties. The
        replaced rows are kept in a single backup_restore history entry.

        Args:
            backup_id: Backup to restore
            editor: Who requested the restore

        Returns:
            The backup_restore history entry
        """
        with session_scope(self.session_factory) as db:
            backup = queries.get_backup(db, backup_id)
            session_result_id = backup.session_result_id
            rows = (backup.backup_data or {}).get("rows", [])

            current = queries.get_session_driver_results(db, session_result_id)
            replaced = [serialize_driver_result(r) for r in current]
            for row in current:
                db.delete(row)
            db.flush()

            for data in rows:
                values = result_field_values(data)
                if values["member_id"] is not None and db.get(Member, values["member_id"]) is None:
                    values["member_id"] = None
                original_id = data.get("original_result_id")
                if original_id is not None and db.get(OriginalSessionResult, original_id) is None:
                    original_id = None

                restored = DriverSessionResult(
                    id=data["id"],
                    session_result_id=session_result_id,
                    original_result_id=original_id,
                    **values,
                )
                restored.post_race_penalties = [
                    _restore_penalty(db, p) for p in data.get("post_race_penalties", [])
                ]
                db.add(restored)
            db.flush()

            entry = record_edit(
                db,
                session_result_id=session_result_id,
                edit_type=EditType.BACKUP_RESTORE,
                old_value={"rows": replaced},
                new_value={"backup_id": backup_id, "row_count": len(rows)},
                edited_by=editor,
                reason=f"Restored backup {backup_id}",
            )
            logger.info(
                f"♻️ Restored backup {backup_id} into session {session_result_id}: "
                f"{len(replaced)} rows replaced by {len(rows)}"
            )
            return history_schema(entry)

    # === Reset to original ===

    def reset_driver_to_original(
        self,
        session_result_id: int,
        driver_result_id: int,
        editor: str
    ) -> EditHistorySchema | None:
        """
        Copy the import snapshot back onto one entry and drop its post-race penalties.

        Returns:
            The history entry, or None when the entry already matched its snapshot

        Raises:
            NotFoundError: unknown entry or missing snapshot
            ConflictError: another classified entry now holds the original position
        """
        with session_scope(self.session_factory) as db:
            driver = queries.get_driver_result(db, driver_result_id, session_result_id)
            entry = self._reset_row(db, driver, editor, check_conflicts=True)
            return history_schema(entry) if entry else None

    def reset_race_to_original(self, race_id: int, editor: str) -> list[EditHistorySchema]:
        """Reset every entry of every session of a race."""
        with session_scope(self.session_factory) as db:
            queries.get_race_by_id(db, race_id)
            entries = []
            for session in queries.get_race_sessions(db, race_id):
                for driver in queries.get_session_driver_results(db, session.id):
                    entry = self._reset_row(db, driver, editor, check_conflicts=False)
                    if entry is not None:
                        entries.append(history_schema(entry, session))

            logger.info(f"⏪ Reset race {race_id} to original results ({len(entries)} entries changed)")
            return entries

    @staticmethod
    def _reset_row(db: Session, driver: DriverSessionResult, editor: str, check_conflicts: bool):
        original = driver.original
        if original is None:
            raise NotFoundError(f"Original result for driver session result {driver.id} not found")

        current_values = classification_values(driver)
        original_values = classification_values(original)
        if current_values == original_values and not driver.post_race_penalties:
            logger.debug(f"Driver result {driver.id} already matches its original")
            return None

        if check_conflicts and original.result_status != ResultStatus.DSQ.value and original.position is not None:
            conflict = classified_conflict(db, driver, original.position)
            if conflict is not None:
                raise ConflictError(
                    f"Original position {original.position} is now held by driver session result {conflict.id}",
                    conflicting_entry_id=conflict.id,
                )

        old_value = {
            **current_values,
            "post_race_penalties": [serialize_penalty(p) for p in driver.post_race_penalties],
        }
        for field, value in original_values.items():
            setattr(driver, field, value)
        driver.post_race_penalties.clear()
        db.flush()

        return record_edit(
            db,
            session_result_id=driver.session_result_id,
            edit_type=EditType.RESET_TO_ORIGINAL,
            old_value=old_value,
            new_value=original_values,
            edited_by=editor,
            driver_session_result_id=driver.id,
            member_id=driver.member_id,
            reason="Reset to original result",
        )

