"""
Edit ledger: manual corrections to imported results with an append-only audit trail.

Every edit is validated before anything is written and runs in one transaction.
A revert is a new history entry (old and new swapped, reverts_edit_id set);
the reverted entry itself is never touched.
"""
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from raceledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from raceledger.core.logging import get_logger
from raceledger.db import session_scope
from raceledger.models.enums import EditType, ResultStatus
from raceledger.models.results import (
    DriverSessionResult,
    Penalty,
    RaceEditHistory,
    SessionResult,
)
from raceledger.schemas.results import EditHistorySchema, MappingUpdateSchema
from raceledger.services import queries
from raceledger.services.identity_resolver import RawIdentity, resolve_identities
from raceledger.services.serializers import serialize_penalty

logger = get_logger(__name__)

NON_REVERTIBLE = (EditType.RESET_TO_ORIGINAL.value, EditType.BACKUP_RESTORE.value)


def record_edit(
    db: Session,
    session_result_id: int,
    edit_type: EditType,
    old_value: Any,
    new_value: Any,
    edited_by: str | None,
    driver_session_result_id: int | None = None,
    member_id: int | None = None,
    reason: str | None = None,
    reverts_edit_id: int | None = None
) -> RaceEditHistory:
    """Append one history entry to the current transaction."""
    entry = RaceEditHistory(
        session_result_id=session_result_id,
        driver_session_result_id=driver_session_result_id,
        member_id=member_id,
        edit_type=edit_type.value,
        old_value=old_value,
        new_value=new_value,
        reason=reason,
        edited_by=edited_by,
        reverts_edit_id=reverts_edit_id,
    )
    db.add(entry)
    db.flush()
    return entry


def history_schema(entry: RaceEditHistory, session: SessionResult | None = None) -> EditHistorySchema:
    schema = EditHistorySchema.model_validate(entry)
    if session is not None:
        schema.session_name = session.session_name
        schema.session_type = session.session_type
    return schema


def _require_positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{label} must be a number")
    value = int(round(value))
    if value < 1:
        raise ValidationError(f"{label} must be greater than zero")
    return value


def classified_conflict(
    db: Session,
    driver: DriverSessionResult,
    position: int
) -> DriverSessionResult | None:
    """Another classified entry of the same session already holding the position."""
    for row in queries.get_session_driver_results(db, driver.session_result_id):
        if row.id != driver.id and row.is_classified and row.position == position:
            return row
    return None


def _member_conflict(
    db: Session,
    session_result_id: int,
    member_id: int,
    exclude_id: int
) -> DriverSessionResult | None:
    stmt = (
        select(DriverSessionResult)
        .where(DriverSessionResult.session_result_id == session_result_id)
        .where(DriverSessionResult.member_id == member_id)
        .where(DriverSessionResult.id != exclude_id)
        .order_by(DriverSessionResult.id)
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def _same_identity_entries(db: Session, driver: DriverSessionResult) -> list[DriverSessionResult]:
    """Entries of the same simulator identity across the race's sessions."""
    race_id = driver.session_result.race_id
    stmt = (
        select(DriverSessionResult)
        .join(SessionResult, SessionResult.id == DriverSessionResult.session_result_id)
        .where(SessionResult.race_id == race_id)
        .order_by(DriverSessionResult.session_result_id, DriverSessionResult.id)
    )
    if driver.network_id is not None:
        stmt = stmt.where(DriverSessionResult.network_id == driver.network_id)
    elif driver.sim_driver_name:
        stmt = (
            stmt.where(DriverSessionResult.network_id.is_(None))
            .where(DriverSessionResult.sim_driver_name == driver.sim_driver_name)
        )
    else:
        return [driver]
    return list(db.execute(stmt).scalars().all())


def _cascade_targets(db: Session, driver: DriverSessionResult) -> list[DriverSessionResult]:
    """
    The edited entry plus its counterpart in each other session of the race.

    Other entries of the edited session are separate cars and stay untouched.
    A session with more than one matching entry is ambiguous and skipped.
    """
    by_session: dict[int, list[DriverSessionResult]] = {}
    for entry in _same_identity_entries(db, driver):
        if entry.session_result_id != driver.session_result_id:
            by_session.setdefault(entry.session_result_id, []).append(entry)

    targets = [driver]
    for session_result_id, entries in by_session.items():
        if len(entries) > 1:
            logger.warning(
                f"⚠️ {len(entries)} entries in session {session_result_id} share the identity of "
                f"driver result {driver.id}, mapping not cascaded there"
            )
            continue
        targets.append(entries[0])
    return targets


def move_position(db: Session, driver: DriverSessionResult, new_position: int | None) -> list[int]:
    """
    Move an entry and shift the classified entries in between by one.

    Args:
        db: Database session
        driver: Entry being moved
        new_position: Target position, or None to unclassify

    Returns:
        IDs of the entries that were shifted
    """
    old_position = driver.position
    shifted: list[int] = []

    if driver.is_classified and old_position != new_position:
        for row in queries.get_session_driver_results(db, driver.session_result_id):
            if row.id == driver.id or not row.is_classified or row.position is None:
                continue
            if old_position is None:
                delta = 1 if row.position >= new_position else 0
            elif new_position is None:
                delta = -1 if row.position > old_position else 0
            elif new_position < old_position:
                delta = 1 if new_position <= row.position < old_position else 0
            else:
                delta = -1 if old_position < row.position <= new_position else 0
            if delta:
                row.position += delta
                shifted.append(row.id)

    driver.position = new_position
    db.flush()
    return shifted


class EditLedger:
    """Validated, audited edits to a session's current results."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # === Validation ===

    def validate_edit(self, session_result_id: int, edit_type: EditType | str, data: dict[str, Any]) -> bool:
        """
        Pre-check an edit without writing anything.

        Args:
            session_result_id: Target session
            edit_type: One of EditType
            data: Edit arguments (driver_result_id, seconds, penalty_id,
                new_position, reason, member_id)

        Returns:
            True when the edit may be applied

        Raises:
            ValidationError: bad values or missing mandatory reason
            NotFoundError: unknown session, entry, penalty or member
        """
        with session_scope(self.session_factory) as db:
            self._validate(db, session_result_id, edit_type, data)
        return True

    def _validate(
        self,
        db: Session,
        session_result_id: int,
        edit_type: EditType | str,
        data: dict[str, Any]
    ) -> DriverSessionResult | None:
        try:
            edit_type = EditType(edit_type)
        except ValueError as e:
            raise ValidationError(f"Unknown edit type: {edit_type}") from e

        queries.get_session_result(db, session_result_id)
        driver = None
        if data.get("driver_result_id") is not None:
            driver = queries.get_driver_result(db, data["driver_result_id"], session_result_id)

        if edit_type == EditType.PENALTY:
            if data.get("penalty_id") is not None:
                penalty = db.get(Penalty, data["penalty_id"])
                if penalty is None or (driver is not None and penalty.driver_session_result_id != driver.id):
                    raise NotFoundError(f"Penalty {data['penalty_id']} not found")
            else:
                _require_positive_int(data.get("seconds"), "Penalty seconds")

        elif edit_type == EditType.POSITION_CHANGE:
            new_position = data.get("new_position")
            if isinstance(new_position, bool) or not isinstance(new_position, int) or new_position < 1:
                raise ValidationError("Position must be 1 or higher")

        elif edit_type == EditType.DISQUALIFICATION:
            reason = data.get("reason")
            if not reason or not str(reason).strip():
                raise ValidationError("Disqualification reason is required")
            if driver is not None and not driver.is_classified:
                raise ValidationError(f"Driver session result {driver.id} is already disqualified")

        elif edit_type == EditType.USER_MAPPING:
            if data.get("member_id") is not None:
                queries.get_member_by_id(db, data["member_id"])

        return driver

    # === Penalties ===

    def add_penalty(
        self,
        driver_result_id: int,
        seconds: int,
        reason: str | None,
        editor: str
    ) -> EditHistorySchema:
        """Stack a post-race time penalty on an entry."""
        with session_scope(self.session_factory) as db:
            driver = queries.get_driver_result(db, driver_result_id)
            self._validate(db, driver.session_result_id, EditType.PENALTY, {
                "driver_result_id": driver_result_id, "seconds": seconds,
            })
            seconds = int(round(seconds))
            total_before = driver.post_race_penalty_seconds

            penalty = Penalty(seconds=seconds, reason=reason, created_by=editor)
            driver.post_race_penalties.append(penalty)
            db.flush()

            entry = record_edit(
                db,
                session_result_id=driver.session_result_id,
                edit_type=EditType.PENALTY,
                old_value={"total_seconds": total_before},
                new_value={"penalty": serialize_penalty(penalty), "total_seconds": driver.post_race_penalty_seconds},
                edited_by=editor,
                driver_session_result_id=driver.id,
                member_id=driver.member_id,
                reason=reason,
            )
            logger.info(f"⚖️ Added {seconds}s penalty to driver result {driver.id} (edit {entry.id})")
            return history_schema(entry)

    def remove_penalty(self, driver_result_id: int, penalty_id: int, editor: str) -> EditHistorySchema:
        """Delete one post-race penalty."""
        with session_scope(self.session_factory) as db:
            driver = queries.get_driver_result(db, driver_result_id)
            self._validate(db, driver.session_result_id, EditType.PENALTY, {
                "driver_result_id": driver_result_id, "penalty_id": penalty_id,
            })
            penalty = db.get(Penalty, penalty_id)
            total_before = driver.post_race_penalty_seconds
            removed = serialize_penalty(penalty)

            driver.post_race_penalties.remove(penalty)
            db.flush()

            entry = record_edit(
                db,
                session_result_id=driver.session_result_id,
                edit_type=EditType.PENALTY,
                old_value={"penalty": removed, "total_seconds": total_before},
                new_value={"total_seconds": driver.post_race_penalty_seconds},
                edited_by=editor,
                driver_session_result_id=driver.id,
                member_id=driver.member_id,
                reason=f"Removed penalty {penalty_id}",
            )
            logger.info(f"⚖️ Removed penalty {penalty_id} from driver result {driver.id} (edit {entry.id})")
            return history_schema(entry)

    # === Classification ===

    def change_position(
        self,
        session_result_id: int,
        driver_result_id: int,
        new_position: int,
        reason: str | None,
        editor: str
    ) -> EditHistorySchema:
        """Move an entry to a new position, shifting the entries in between."""
        with session_scope(self.session_factory) as db:
            driver = self._validate(db, session_result_id, EditType.POSITION_CHANGE, {
                "driver_result_id": driver_result_id, "new_position": new_position,
            })
            old_position = driver.position
            shifted = move_position(db, driver, new_position)

            entry = record_edit(
                db,
                session_result_id=session_result_id,
                edit_type=EditType.POSITION_CHANGE,
                old_value={"position": old_position},
                new_value={"position": new_position},
                edited_by=editor,
                driver_session_result_id=driver.id,
                member_id=driver.member_id,
                reason=reason,
            )
            logger.info(
                f"🔀 Driver result {driver.id}: P{old_position} → P{new_position}, "
                f"{len(shifted)} other entr{'y' if len(shifted) == 1 else 'ies'} shifted (edit {entry.id})"
            )
            return history_schema(entry)

    def disqualify_driver(
        self,
        session_result_id: int,
        driver_result_id: int,
        reason: str,
        editor: str
    ) -> EditHistorySchema:
        """Disqualify an entry. The reason is mandatory and becomes its dnf_reason."""
        with session_scope(self.session_factory) as db:
            driver = self._validate(db, session_result_id, EditType.DISQUALIFICATION, {
                "driver_result_id": driver_result_id, "reason": reason,
            })
            old_value = {
                "result_status": driver.result_status,
                "position": driver.position,
                "dnf_reason": driver.dnf_reason,
            }
            driver.result_status = ResultStatus.DSQ.value
            driver.dnf_reason = reason.strip()
            db.flush()

            entry = record_edit(
                db,
                session_result_id=session_result_id,
                edit_type=EditType.DISQUALIFICATION,
                old_value=old_value,
                new_value={
                    "result_status": driver.result_status,
                    "position": driver.position,
                    "dnf_reason": driver.dnf_reason,
                },
                edited_by=editor,
                driver_session_result_id=driver.id,
                member_id=driver.member_id,
                reason=reason.strip(),
            )
            logger.info(f"🚫 Driver result {driver.id} disqualified (edit {entry.id})")
            return history_schema(entry)

    # === Identity ===

    def update_driver_user_mapping(
        self,
        driver_result_id: int,
        member_id: int | None,
        editor: str,
        reason: str | None = None
    ) -> list[MappingUpdateSchema]:
        """
        Reassign the member behind a simulator entry.

        The change is applied to the matching entry of the same simulator
        identity in each other session of the race, at most one per session.
        Each session is checked for another entry already holding the member;
        any conflict aborts the whole change.

        Args:
            driver_result_id: Entry the admin edited
            member_id: New member, or None to clear
            editor: Who made the change
            reason: Optional note; a default is used when absent

        Returns:
            One MappingUpdateSchema per entry whose member changed

        Raises:
            NotFoundError: unknown entry or member
            ConflictError: member already on another entry of a session
        """
        with session_scope(self.session_factory) as db:
            driver = queries.get_driver_result(db, driver_result_id)
            self._validate(db, driver.session_result_id, EditType.USER_MAPPING, {
                "driver_result_id": driver_result_id, "member_id": member_id,
            })
            previous_member_id = driver.member_id
            reason = reason or ("Mapped race result to user" if member_id else "Cleared race result mapping")

            targets = _cascade_targets(db, driver)
            for target in targets:
                if target.id != driver.id and target.member_id not in (None, previous_member_id, member_id):
                    raise ConflictError(
                        f"Driver session result {target.id} is mapped to a different member",
                        conflicting_entry_id=target.id,
                    )
                self._check_member_free(db, target, member_id)

            updates = []
            for target in targets:
                old_member_id = target.member_id
                changed = old_member_id != member_id
                if not changed and target.id != driver.id:
                    continue
                target.member_id = member_id
                record_edit(
                    db,
                    session_result_id=target.session_result_id,
                    edit_type=EditType.USER_MAPPING,
                    old_value={"member_id": old_member_id},
                    new_value={"member_id": member_id},
                    edited_by=editor,
                    driver_session_result_id=target.id,
                    member_id=member_id,
                    reason=reason,
                )
                if changed:
                    updates.append(MappingUpdateSchema(
                        driver_session_result_id=target.id,
                        session_result_id=target.session_result_id,
                        old_member_id=old_member_id,
                        new_member_id=member_id,
                    ))

            logger.info(
                f"👤 Driver result {driver_result_id} mapped {previous_member_id} → {member_id}, "
                f"{len(updates)} entr{'y' if len(updates) == 1 else 'ies'} updated"
            )
            return updates

    def reresolve_identities(self, session_result_id: int, editor: str) -> list[MappingUpdateSchema]:
        """Run identity resolution again for the session's unmapped entries."""
        with session_scope(self.session_factory) as db:
            session = queries.get_session_result(db, session_result_id)
            unmapped = [r for r in queries.get_session_driver_results(db, session_result_id) if r.member_id is None]
            if not unmapped:
                return []

            resolved = resolve_identities(
                db, session.race.season_id, [RawIdentity.from_result(r) for r in unmapped]
            )
            updates = []
            for row, identity in zip(unmapped, resolved):
                if identity.member_id is None:
                    continue
                conflict = _member_conflict(db, session_result_id, identity.member_id, row.id)
                if conflict is not None:
                    logger.warning(
                        f"⚠️ Member {identity.member_id} already on driver result {conflict.id}, "
                        f"leaving {row.id} unmapped"
                    )
                    continue
                row.member_id = identity.member_id
                record_edit(
                    db,
                    session_result_id=session_result_id,
                    edit_type=EditType.USER_MAPPING,
                    old_value={"member_id": None},
                    new_value={"member_id": identity.member_id},
                    edited_by=editor,
                    driver_session_result_id=row.id,
                    member_id=identity.member_id,
                    reason=f"Re-resolved identity by {identity.matched_by}",
                )
                updates.append(MappingUpdateSchema(
                    driver_session_result_id=row.id,
                    session_result_id=session_result_id,
                    old_member_id=None,
                    new_member_id=identity.member_id,
                ))

            logger.info(f"👤 Re-resolved {len(updates)} of {len(unmapped)} unmapped entries in session {session_result_id}")
            return updates

    @staticmethod
    def _check_member_free(db: Session, driver: DriverSessionResult, member_id: int | None) -> None:
        if member_id is None:
            return
        conflict = _member_conflict(db, driver.session_result_id, member_id, driver.id)
        if conflict is not None:
            raise ConflictError(
                f"Member {member_id} is already mapped to driver session result {conflict.id} "
                f"in session {driver.session_result_id}",
                conflicting_entry_id=conflict.id,
            )

    # === Revert ===

    def revert_edit(self, edit_id: int, editor: str) -> EditHistorySchema:
        """
        Undo a history entry by writing a new one with old and new swapped.

        Raises:
            NotFoundError: unknown edit, or its entry no longer exists
            ValidationError: the edit type cannot be reverted
            ConflictError: already reverted, or the undo would break a session invariant
        """
        with session_scope(self.session_factory) as db:
            edit = queries.get_edit(db, edit_id)
            if edit.edit_type in NON_REVERTIBLE:
                raise ValidationError(f"Edits of type {edit.edit_type} cannot be reverted")

            existing = db.execute(
                select(RaceEditHistory).where(RaceEditHistory.reverts_edit_id == edit.id)
            ).scalar_one_or_none()
            if existing is not None:
                raise ConflictError(f"Edit {edit.id} was already reverted by edit {existing.id}",
                                    conflicting_entry_id=existing.id)

            if edit.driver_session_result_id is None:
                raise NotFoundError(f"Edit {edit.id} has no driver session result to revert")
            driver = queries.get_driver_result(db, edit.driver_session_result_id, edit.session_result_id)

            handler = self._revert_handlers()[EditType(edit.edit_type)]
            new_value = handler(db, driver, edit)

            entry = record_edit(
                db,
                session_result_id=edit.session_result_id,
                edit_type=EditType(edit.edit_type),
                old_value=edit.new_value,
                new_value=new_value,
                edited_by=editor,
                driver_session_result_id=driver.id,
                member_id=driver.member_id,
                reason=f"Reverted edit {edit.id}",
                reverts_edit_id=edit.id,
            )
            logger.info(f"↩️ Reverted {edit.edit_type} edit {edit.id} (edit {entry.id})")
            return history_schema(entry)

    def _revert_handlers(self) -> dict[EditType, Callable[[Session, DriverSessionResult, RaceEditHistory], Any]]:
        return {
            EditType.PENALTY: self._revert_penalty,
            EditType.POSITION_CHANGE: self._revert_position,
            EditType.DISQUALIFICATION: self._revert_disqualification,
            EditType.USER_MAPPING: self._revert_mapping,
        }

    @staticmethod
    def _revert_penalty(db: Session, driver: DriverSessionResult, edit: RaceEditHistory) -> Any:
        old_value = edit.old_value or {}
        new_value = edit.new_value or {}

        if "penalty" in new_value:
            penalty = db.get(Penalty, new_value["penalty"]["id"])
            if penalty is None or penalty.driver_session_result_id != driver.id:
                raise ConflictError(f"Penalty {new_value['penalty']['id']} no longer exists")
            driver.post_race_penalties.remove(penalty)
            db.flush()
            return {**old_value, "total_seconds": driver.post_race_penalty_seconds}

        removed = old_value.get("penalty")
        if not removed:
            raise ValidationError(f"Edit {edit.id} has no penalty to restore")
        penalty = Penalty(
            seconds=removed["seconds"],
            reason=removed.get("reason"),
            created_by=removed.get("created_by"),
        )
        if db.get(Penalty, removed["id"]) is None:
            penalty.id = removed["id"]
        driver.post_race_penalties.append(penalty)
        db.flush()
        return {"penalty": serialize_penalty(penalty), "total_seconds": driver.post_race_penalty_seconds}

    @staticmethod
    def _revert_position(db: Session, driver: DriverSessionResult, edit: RaceEditHistory) -> Any:
        position = (edit.old_value or {}).get("position")
        move_position(db, driver, position)
        return edit.old_value

    @staticmethod
    def _revert_disqualification(db: Session, driver: DriverSessionResult, edit: RaceEditHistory) -> Any:
        values = edit.old_value or {}
        status = values.get("result_status", ResultStatus.FINISHED.value)
        position = values.get("position")

        if status != ResultStatus.DSQ.value and position is not None:
            conflict = classified_conflict(db, driver, position)
            if conflict is not None:
                raise ConflictError(
                    f"Position {position} is now held by driver session result {conflict.id}",
                    conflicting_entry_id=conflict.id,
                )

        driver.result_status = status
        driver.position = position
        driver.dnf_reason = values.get("dnf_reason")
        db.flush()
        return edit.old_value

    def _revert_mapping(self, db: Session, driver: DriverSessionResult, edit: RaceEditHistory) -> Any:
        member_id = (edit.old_value or {}).get("member_id")
        self._check_member_free(db, driver, member_id)
        driver.member_id = member_id
        db.flush()
        return edit.old_value

    # === History ===

    def get_edit_history(self, session_result_id: int) -> list[EditHistorySchema]:
        """A session's history, most recent first."""
        with session_scope(self.session_factory) as db:
            session = queries.get_session_result(db, session_result_id)
            stmt = (
                select(RaceEditHistory)
                .where(RaceEditHistory.session_result_id == session_result_id)
                .order_by(RaceEditHistory.created_at.desc(), RaceEditHistory.id.desc())
            )
            return [history_schema(e, session) for e in db.execute(stmt).scalars()]

    def get_race_edit_history(self, race_id: int) -> list[EditHistorySchema]:
        """History of every session of a race, most recent first."""
        with session_scope(self.session_factory) as db:
            queries.get_race_by_id(db, race_id)
            stmt = (
                select(RaceEditHistory, SessionResult)
                .join(SessionResult, SessionResult.id == RaceEditHistory.session_result_id)
                .where(SessionResult.race_id == race_id)
                .order_by(RaceEditHistory.created_at.desc(), RaceEditHistory.id.desc())
            )
            return [history_schema(e, s) for e, s in db.execute(stmt).all()]

    def get_driver_edit_history(self, driver_result_id: int) -> list[EditHistorySchema]:
        with session_scope(self.session_factory) as db:
            driver = queries.get_driver_result(db, driver_result_id)
            stmt = (
                select(RaceEditHistory)
                .where(RaceEditHistory.driver_session_result_id == driver_result_id)
                .order_by(RaceEditHistory.created_at.desc(), RaceEditHistory.id.desc())
            )
            return [history_schema(e, driver.session_result) for e in db.execute(stmt).scalars()]
