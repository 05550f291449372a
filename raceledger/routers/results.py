# raceledger/routers/results.py
"""
Result edits, resets, reverts and edit history.
"""
from fastapi import APIRouter, Depends, Query

from raceledger.core.deps import get_backup_service, get_edit_ledger
from raceledger.core.exceptions import (
    NotFoundError,
    RaceLedgerException,
    ValidationError,
    to_http_exception,
)
from raceledger.schemas.results import (
    DisqualifyRequest,
    EditHistorySchema,
    EditorRequest,
    MappingRequest,
    MappingUpdateSchema,
    PenaltyRequest,
    PositionChangeRequest,
    ValidateEditRequest,
    ValidateEditResponse,
)
from raceledger.services.backups import BackupService
from raceledger.services.edit_ledger import EditLedger

router = APIRouter(prefix="/results", tags=["Results"])


# === Edits ===

@router.post("/drivers/{driver_result_id}/penalties", response_model=EditHistorySchema)
def add_penalty(
    driver_result_id: int,
    request: PenaltyRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> EditHistorySchema:
    try:
        return ledger.add_penalty(driver_result_id, request.seconds, request.reason, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.delete("/drivers/{driver_result_id}/penalties/{penalty_id}", response_model=EditHistorySchema)
def remove_penalty(
    driver_result_id: int,
    penalty_id: int,
    edited_by: str = Query(...),
    ledger: EditLedger = Depends(get_edit_ledger),
) -> EditHistorySchema:
    try:
        return ledger.remove_penalty(driver_result_id, penalty_id, edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/sessions/{session_result_id}/drivers/{driver_result_id}/position", response_model=EditHistorySchema)
def change_position(
    session_result_id: int,
    driver_result_id: int,
    request: PositionChangeRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> EditHistorySchema:
    try:
        return ledger.change_position(
            session_result_id, driver_result_id, request.new_position, request.reason, request.edited_by
        )
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/sessions/{session_result_id}/drivers/{driver_result_id}/disqualify", response_model=EditHistorySchema)
def disqualify_driver(
    session_result_id: int,
    driver_result_id: int,
    request: DisqualifyRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> EditHistorySchema:
    try:
        return ledger.disqualify_driver(session_result_id, driver_result_id, request.reason, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.put("/drivers/{driver_result_id}/member", response_model=list[MappingUpdateSchema])
def update_driver_user_mapping(
    driver_result_id: int,
    request: MappingRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> list[MappingUpdateSchema]:
    """Reassign the member behind an entry; 409 names the entry already holding that member."""
    try:
        return ledger.update_driver_user_mapping(
            driver_result_id, request.member_id, request.edited_by, request.reason
        )
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/edits/{edit_id}/revert", response_model=EditHistorySchema)
def revert_edit(
    edit_id: int,
    request: EditorRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> EditHistorySchema:
    try:
        return ledger.revert_edit(edit_id, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/sessions/{session_result_id}/validate", response_model=ValidateEditResponse)
def validate_edit(
    session_result_id: int,
    request: ValidateEditRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> ValidateEditResponse:
    """Dry-run an edit. Validation failures are reported in the body, not as errors."""
    try:
        ledger.validate_edit(session_result_id, request.edit_type, request.data)
    except (ValidationError, NotFoundError) as e:
        return ValidateEditResponse(valid=False, errors=[str(e)])
    return ValidateEditResponse(valid=True)


# === Resets ===

@router.post("/sessions/{session_result_id}/drivers/{driver_result_id}/reset", response_model=EditHistorySchema | None)
def reset_driver_to_original(
    session_result_id: int,
    driver_result_id: int,
    request: EditorRequest,
    backups: BackupService = Depends(get_backup_service),
) -> EditHistorySchema | None:
    """Restore the imported result; returns null when nothing changed."""
    try:
        return backups.reset_driver_to_original(session_result_id, driver_result_id, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/races/{race_id}/reset", response_model=list[EditHistorySchema])
def reset_race_to_original(
    race_id: int,
    request: EditorRequest,
    backups: BackupService = Depends(get_backup_service),
) -> list[EditHistorySchema]:
    try:
        return backups.reset_race_to_original(race_id, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


# === History ===

@router.get("/sessions/{session_result_id}/history", response_model=list[EditHistorySchema])
def get_edit_history(
    session_result_id: int,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> list[EditHistorySchema]:
    """Most recent first."""
    try:
        return ledger.get_edit_history(session_result_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/races/{race_id}/history", response_model=list[EditHistorySchema])
def get_race_edit_history(
    race_id: int,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> list[EditHistorySchema]:
    try:
        return ledger.get_race_edit_history(race_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/drivers/{driver_result_id}/history", response_model=list[EditHistorySchema])
def get_driver_edit_history(
    driver_result_id: int,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> list[EditHistorySchema]:
    try:
        return ledger.get_driver_edit_history(driver_result_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
