# raceledger/routers/backups.py
"""
Session backups.
"""
from fastapi import APIRouter, Depends, status

from raceledger.core.deps import get_backup_service
from raceledger.core.exceptions import RaceLedgerException, to_http_exception
from raceledger.schemas.results import BackupSchema, EditHistorySchema, EditorRequest
from raceledger.services.backups import BackupService

router = APIRouter(prefix="/backups", tags=["Backups"])


@router.post("/sessions/{session_result_id}", status_code=status.HTTP_201_CREATED)
def create_backup(
    session_result_id: int,
    backups: BackupService = Depends(get_backup_service),
) -> dict:
    try:
        return {"backup_id": backups.create_backup(session_result_id)}
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/sessions/{session_result_id}", response_model=list[BackupSchema])
def list_backups(
    session_result_id: int,
    backups: BackupService = Depends(get_backup_service),
) -> list[BackupSchema]:
    try:
        return backups.list_backups(session_result_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/{backup_id}/restore", response_model=EditHistorySchema)
def restore_from_backup(
    backup_id: int,
    request: EditorRequest,
    backups: BackupService = Depends(get_backup_service),
) -> EditHistorySchema:
    """Replace the session's current rows with the backup."""
    try:
        return backups.restore_from_backup(backup_id, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
