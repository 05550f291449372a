# raceledger/core/exceptions.py
"""Custom exceptions."""
from fastapi import HTTPException, status


class RaceLedgerException(Exception):
    """Base exception for Race Ledger application."""
    pass


class ValidationError(RaceLedgerException):
    """Raised when an edit or payload is rejected before any write."""
    pass


class NotFoundError(RaceLedgerException):
    """Raised when a session, driver result, backup, edit or orphan is unknown."""
    pass


class ConflictError(RaceLedgerException):
    """Raised when an operation collides with existing state."""

    def __init__(self, message: str, conflicting_entry_id: int | None = None):
        super().__init__(message)
        self.conflicting_entry_id = conflicting_entry_id


class DuplicateSessionError(ConflictError):
    """Raised when a session UID has already been imported."""

    def __init__(self, session_uid: str, existing_session_result_id: int):
        super().__init__(
            f"Session {session_uid} already imported as session result {existing_session_result_id}",
            conflicting_entry_id=existing_session_result_id,
        )
        self.session_uid = session_uid


class EventResolutionError(RaceLedgerException):
    """Raised when no race matches a session; the payload was stored as an orphan."""

    def __init__(self, track_name: str, orphan_id: int):
        super().__init__(f"No event found for track {track_name!r}; stored as orphaned session {orphan_id}")
        self.track_name = track_name
        self.orphan_id = orphan_id


class PersistenceError(RaceLedgerException):
    """Raised when the store fails and the transaction was rolled back."""
    pass


def to_http_exception(exc: RaceLedgerException) -> HTTPException:
    """Create HTTPException for a domain error."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "conflicting_entry_id": exc.conflicting_entry_id},
        )
    if isinstance(exc, EventResolutionError):
        return HTTPException(
            status_code=status.HTTP_202_ACCEPTED,
            detail={"message": str(exc), "orphan_id": exc.orphan_id},
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Persistence error: {exc}"
    )
