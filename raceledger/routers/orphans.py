# raceledger/routers/orphans.py
"""
Orphaned sessions awaiting admin disposition.
"""
from fastapi import APIRouter, Depends

from raceledger.core.deps import get_orphan_handler
from raceledger.core.exceptions import RaceLedgerException, to_http_exception
from raceledger.models.enums import OrphanStatus
from raceledger.schemas.results import OrphanedSessionSchema, ProcessOrphanRequest
from raceledger.services.orphans import OrphanHandler

router = APIRouter(prefix="/orphans", tags=["Orphans"])


@router.get("", response_model=list[OrphanedSessionSchema])
def list_orphaned_sessions(
    status: OrphanStatus | None = None,
    handler: OrphanHandler = Depends(get_orphan_handler),
) -> list[OrphanedSessionSchema]:
    return handler.list_orphaned_sessions(status)


@router.post("/{orphan_id}/process", response_model=OrphanedSessionSchema)
def process_orphaned_session(
    orphan_id: int,
    request: ProcessOrphanRequest,
    handler: OrphanHandler = Depends(get_orphan_handler),
) -> OrphanedSessionSchema:
    """Link a pending orphan to a race."""
    try:
        return handler.process_orphaned_session(orphan_id, request.race_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/{orphan_id}/ignore", response_model=OrphanedSessionSchema)
def ignore_orphaned_session(
    orphan_id: int,
    handler: OrphanHandler = Depends(get_orphan_handler),
) -> OrphanedSessionSchema:
    try:
        return handler.ignore_orphaned_session(orphan_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
