# raceledger/routers/sessions.py
"""
Session import and current results.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from raceledger.core.deps import get_db_session, get_edit_ledger, get_importer
from raceledger.core.exceptions import RaceLedgerException, to_http_exception
from raceledger.schemas.results import (
    DriverSessionResultSchema,
    EditorRequest,
    ImportRequest,
    ImportResultSchema,
    MappingUpdateSchema,
)
from raceledger.services import queries
from raceledger.services.edit_ledger import EditLedger
from raceledger.services.session_importer import SessionImporter

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("/import", response_model=ImportResultSchema, status_code=status.HTTP_201_CREATED)
def import_session(
    request: ImportRequest,
    importer: SessionImporter = Depends(get_importer),
) -> ImportResultSchema:
    """
    Import a finished session.

    Responds 202 with the orphan id when no event matches the track.
    """
    try:
        return importer.import_session(
            request.session_info,
            request.driver_results,
            race_id=request.race_id,
            season_id=request.season_id,
        )
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/{session_result_id}/results", response_model=list[DriverSessionResultSchema])
def get_session_results(
    session_result_id: int,
    db: Session = Depends(get_db_session),
) -> list[DriverSessionResultSchema]:
    """Current classification, unclassified entries last."""
    try:
        queries.get_session_result(db, session_result_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e

    return [
        DriverSessionResultSchema.model_validate(row)
        for row in queries.get_session_driver_results(db, session_result_id)
    ]


@router.post("/{session_result_id}/reresolve", response_model=list[MappingUpdateSchema])
def reresolve_identities(
    session_result_id: int,
    request: EditorRequest,
    ledger: EditLedger = Depends(get_edit_ledger),
) -> list[MappingUpdateSchema]:
    """Map entries that were unknown at import time using the current mappings."""
    try:
        return ledger.reresolve_identities(session_result_id, request.edited_by)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
